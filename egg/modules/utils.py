# egg/modules/utils.py

import hashlib
import os
import shutil
from pathlib import Path
from typing import Iterable


class EggError(Exception):
    """Base de todos os erros do egg."""


def ensure_dir(path):
    """
    Cria diretório se não existir.
    """
    os.makedirs(path, exist_ok=True)
    return path


def clean(path) -> bool:
    """
    Remove um diretório e subdiretórios.
    Não falha se ele não existir. Retorna True se algo foi removido.
    """
    try:
        shutil.rmtree(path)
        return True
    except FileNotFoundError:
        return False


def join_search_path(paths: Iterable) -> str:
    """
    Junta caminhos com o separador do sistema (":" ou ";"), por exemplo:
    build/deps/CoolCollections/build/ttc:build/deps/NotJson/build/ttc
    """
    return os.pathsep.join(str(p) for p in paths)


def hash_string(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def fingerprint_tree(root, ignore=(".git", "build")) -> str:
    """
    Fingerprint de uma árvore de fontes: nomes relativos + conteúdo.
    Diretórios em `ignore` (no primeiro nível) são pulados.
    """
    root = Path(root)
    m = hashlib.sha256()
    for dirpath, dirnames, filenames in os.walk(root):
        if Path(dirpath) == root:
            dirnames[:] = [d for d in dirnames if d not in ignore]
        dirnames.sort()
        for fn in sorted(filenames):
            fp = Path(dirpath) / fn
            m.update(fp.relative_to(root).as_posix().encode("utf-8"))
            m.update(b"\0")
            with open(fp, "rb") as fh:
                while True:
                    chunk = fh.read(8192)
                    if not chunk:
                        break
                    m.update(chunk)
            m.update(b"\0")
    return m.hexdigest()
