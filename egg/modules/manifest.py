# egg/modules/manifest.py
"""
Manifest model - leitura, validação e escrita de egg.yaml

Formato:

    package:
      name: AmazingTool
      version: 0.1.0
      source_dir: src            # opcional
    dependencies:
      CoolCollections:
        git: https://github.com/Kiiyya/CoolCollections
        branch: main             # ou tag: / rev: / ref: (opcional)
      NotJson:
        path: ../NotJson         # relativo ao diretório do manifest

A ordem das dependências no arquivo é preservada.

Pacotes antigos com `Egg.toml` (mesmas seções `[package]` e `[dependencies]`,
com `Nome = { git = "..." }`) são lidos quando não existe egg.yaml.
"""

from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from egg.modules import logger as _logger
from egg.modules.config import config
from egg.modules.utils import EggError


class ManifestError(EggError):
    pass


GIT_REF_KINDS = ("branch", "tag", "rev", "ref")

# manifest name used by earlier Lair packages; read when egg.yaml is absent
LEGACY_MANIFEST = "Egg.toml"


@dataclass(frozen=True)
class GitRef:
    """Branch, tag or commit to check out. `ref` means "let git decide"."""
    kind: str
    name: str

    def __str__(self):
        return f"{self.kind}={self.name}"


@dataclass(frozen=True)
class GitSource:
    url: str
    ref: Optional[GitRef] = None

    def __str__(self):
        return f"git {self.url}" + (f" ({self.ref})" if self.ref else "")


@dataclass(frozen=True)
class LocalPath:
    path: Path

    def __str__(self):
        return f"path {self.path}"


SourceDescriptor = Union[GitSource, LocalPath]


@dataclass(frozen=True)
class DependencySpec:
    name: str
    source: SourceDescriptor


@dataclass(frozen=True)
class PackageManifest:
    name: str
    version: str = "0.0.0"
    dependencies: Tuple[DependencySpec, ...] = ()
    source_dir: str = "src"

    def dependency_names(self) -> List[str]:
        return [d.name for d in self.dependencies]


class ManifestManager:
    REQUIRED_FIELDS = ["name"]

    def __init__(self, logger: Optional[_logger.Logger] = None, filename: Optional[str] = None):
        self.log = logger or _logger.Logger("manifest")
        self.filename = filename or config.manifest_file()

    # -------------------------
    # I/O
    # -------------------------
    def manifest_path(self, path) -> Path:
        path = Path(path).absolute()
        if path.is_dir():
            candidate = path / self.filename
            legacy = path / LEGACY_MANIFEST
            if not candidate.is_file() and legacy.is_file():
                return legacy
            return candidate
        return path

    def load(self, path) -> PackageManifest:
        """Carrega egg.yaml (ou Egg.toml) de um diretório ou de um arquivo específico"""
        candidate = self.manifest_path(path)
        if not candidate.is_file():
            raise ManifestError(f"Manifest file not found: {candidate}")

        raw = self._read(candidate)
        manifest = self.parse(raw, base_dir=candidate.parent)
        self.log.debug(f"Manifest carregado: {candidate}")
        return manifest

    @staticmethod
    def _read(candidate: Path) -> Dict[str, Any]:
        if candidate.suffix == ".toml":
            try:
                with open(candidate, "rb") as f:
                    return tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ManifestError(f"Invalid TOML in {candidate}: {e}") from e
        try:
            with open(candidate, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML in {candidate}: {e}") from e

    def save(self, manifest: PackageManifest, dest_dir) -> Path:
        """Salva o manifest como egg.yaml no diretório destino"""
        dest_dir = Path(dest_dir).absolute()
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest_file = dest_dir / self.filename
        with open(dest_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(manifest, base_dir=dest_dir), f,
                           sort_keys=False, allow_unicode=True)
        self.log.info(f"Manifest salvo em: {dest_file}")
        return dest_file

    def create(self, dest_dir, name: str, version: str = "0.1.0",
               dependencies: Optional[List[DependencySpec]] = None,
               source_dir: str = "src") -> Path:
        """Cria um egg.yaml básico (comando `egg init`)."""
        manifest = PackageManifest(name=name, version=version,
                                   dependencies=tuple(dependencies or ()),
                                   source_dir=source_dir)
        dest = self.save(manifest, dest_dir)
        src = Path(dest_dir) / source_dir
        src.mkdir(parents=True, exist_ok=True)
        main = src / f"{name}.idr"
        if not main.exists():
            main.write_text(f"module {name}\n", encoding="utf-8")
        return dest

    # -------------------------
    # Validação / conversão
    # -------------------------
    def validate(self, raw: Dict[str, Any]) -> bool:
        """Valida a estrutura bruta de um egg.yaml"""
        if not isinstance(raw, dict):
            raise ManifestError("Manifest must be a mapping")
        package = raw.get("package")
        if not isinstance(package, dict):
            raise ManifestError("Missing 'package' section")
        missing = [f for f in self.REQUIRED_FIELDS if not package.get(f)]
        if missing:
            raise ManifestError(f"Missing required fields in 'package': {missing}")
        if not isinstance(package["name"], str):
            raise ManifestError("Field 'package.name' must be a string")

        deps = raw.get("dependencies") or {}
        if not isinstance(deps, dict):
            raise ManifestError("Field 'dependencies' must be a mapping of name -> source")
        for name, dep in deps.items():
            if not isinstance(dep, dict):
                raise ManifestError(f"Dependency '{name}' must be a mapping")
            kinds = [k for k in ("git", "path") if k in dep]
            if len(kinds) != 1:
                raise ManifestError(f"Dependency '{name}' must declare exactly one of 'git' or 'path'")
            refs = [k for k in GIT_REF_KINDS if k in dep]
            if len(refs) > 1:
                raise ManifestError(f"Dependency '{name}' declares more than one of {refs}")
            if refs and "path" in dep:
                raise ManifestError(f"Dependency '{name}': '{refs[0]}' only applies to git sources")
        return True

    def parse(self, raw: Dict[str, Any], base_dir=".") -> PackageManifest:
        self.validate(raw)
        package = raw["package"]
        base_dir = Path(base_dir).absolute()

        specs = []
        for name, dep in (raw.get("dependencies") or {}).items():
            specs.append(DependencySpec(str(name), self._parse_source(dep, base_dir)))

        return PackageManifest(
            name=package["name"],
            version=str(package.get("version", "0.0.0")),
            dependencies=tuple(specs),
            source_dir=package.get("source_dir") or config.get("build", "source_dir", fallback="src"),
        )

    @staticmethod
    def _parse_source(dep: Dict[str, Any], base_dir: Path) -> SourceDescriptor:
        if "path" in dep:
            p = Path(os.path.expanduser(str(dep["path"])))
            if not p.is_absolute():
                p = base_dir / p
            return LocalPath(Path(os.path.normpath(p)))
        ref = None
        for kind in GIT_REF_KINDS:
            if kind in dep:
                ref = GitRef(kind, str(dep[kind]))
        return GitSource(str(dep["git"]), ref)

    @staticmethod
    def to_dict(manifest: PackageManifest, base_dir=None) -> Dict[str, Any]:
        package = {"name": manifest.name, "version": manifest.version}
        if manifest.source_dir != "src":
            package["source_dir"] = manifest.source_dir
        deps: Dict[str, Any] = {}
        for spec in manifest.dependencies:
            src = spec.source
            if isinstance(src, LocalPath):
                path = src.path
                if base_dir is not None:
                    path = Path(os.path.relpath(path, base_dir))
                deps[spec.name] = {"path": path.as_posix()}
            else:
                entry = {"git": src.url}
                if src.ref:
                    entry[src.ref.kind] = src.ref.name
                deps[spec.name] = entry
        return {"package": package, "dependencies": deps}


def load_manifest(root) -> PackageManifest:
    """Loader padrão usado pelo resolver: lê `<root>/egg.yaml`."""
    return ManifestManager().load(root)
