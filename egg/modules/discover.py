# egg/modules/discover.py
"""
Module discovery for one package.

Every `*.idr` file under the package's source directory is a module; its
identifier is the path relative to the source directory with `/` replaced
by `.` (`src/Data/Tree.idr` -> `Data.Tree`). Imports are read from the file
header. Imports of the package's own modules order the modules; any other
import must name a namespace provided by a dependency package or by the
compiler's standard libraries.
"""

from __future__ import annotations
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from egg.modules import logger as _logger
from egg.modules.config import config
from egg.modules.graph import PackageNode, Visit
from egg.modules.utils import EggError

SOURCE_SUFFIX = ".idr"


class CompositionError(EggError):
    pass


class DiscoveryError(CompositionError):
    pass


class ModuleCycleError(DiscoveryError):
    def __init__(self, package: str, path: List[str]):
        super().__init__(f"Import cycle in package {package}: " + " -> ".join(path))
        self.package = package
        self.path = path


class UnknownImportError(DiscoveryError):
    def __init__(self, package: str, module: str, imported: str):
        super().__init__(f"{package}: module {module} imports {imported}, "
                         f"which is neither in {package} nor in its dependencies")
        self.package = package
        self.module = module
        self.imported = imported


@dataclass(frozen=True)
class ModuleNode:
    identifier: str
    path: Path
    imports: Tuple[str, ...]
    package: str
    package_root: Path
    source_root: Path


_IMPORT = re.compile(
    r"^import\s+(?:public\s+)?([A-Za-z_][\w']*(?:\.[A-Za-z_][\w']*)*)(?:\s+as\s+[\w.']+)?\s*$"
)


def _strip_comments(line: str, depth: int) -> Tuple[str, int]:
    """Remove `--` and (nested) `{- -}` comments; `depth` carries across lines."""
    out = []
    i = 0
    while i < len(line):
        pair = line[i:i + 2]
        if pair == "{-":
            depth += 1
            i += 2
        elif pair == "-}" and depth:
            depth -= 1
            i += 2
        elif depth:
            i += 1
        elif pair == "--":
            break
        else:
            out.append(line[i])
            i += 1
    return "".join(out), depth


def parse_imports(text: str) -> List[str]:
    """Imported module identifiers, in declaration order, from a module header."""
    imports: List[str] = []
    depth = 0
    for raw in text.splitlines():
        if raw.lstrip().startswith("|||"):
            continue
        line, depth = _strip_comments(raw, depth)
        if not line.strip() or line[0].isspace():
            continue
        stripped = line.strip()
        if stripped.startswith("%") or stripped == "module" or stripped.startswith("module "):
            continue
        m = _IMPORT.match(stripped)
        if not m:
            break
        if m.group(1) not in imports:
            imports.append(m.group(1))
    return imports


def module_identifier(path: Path, source_root: Path) -> str:
    rel = path.relative_to(source_root).with_suffix("")
    return ".".join(rel.parts)


class ModuleDiscoverer:
    def __init__(self,
                 builtin_namespaces: Optional[Iterable[str]] = None,
                 build_dir: Optional[str] = None,
                 logger: Optional[_logger.Logger] = None):
        if builtin_namespaces is None:
            builtin_namespaces = config.builtin_namespaces()
        self.builtin_namespaces = set(builtin_namespaces)
        # relative to the package root; holds dependency checkouts too
        self.build_dir = build_dir or config.build_dir()
        self.log = logger or _logger.Logger("discover")

    def source_files(self, node: PackageNode) -> List[Path]:
        """`*.idr` files under the source directory, minus build output and hidden directories."""
        source_root = node.source_root
        build_dir = os.path.normpath(os.path.join(node.root, self.build_dir))
        files: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(source_root):
            dirnames[:] = [d for d in dirnames
                           if not d.startswith(".")
                           and os.path.normpath(os.path.join(dirpath, d)) != build_dir]
            files.extend(Path(dirpath) / fn for fn in filenames if fn.endswith(SOURCE_SUFFIX))
        return sorted(files)

    def scan(self, node: PackageNode) -> Dict[str, ModuleNode]:
        source_root = node.source_root
        if not source_root.is_dir():
            raise DiscoveryError(f"{node.name}: source directory {source_root} not found")

        modules: Dict[str, ModuleNode] = {}
        for path in self.source_files(node):
            if not path.is_file():
                continue
            ident = module_identifier(path, source_root)
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise DiscoveryError(f"{node.name}: cannot read {path}: {e}") from e
            modules[ident] = ModuleNode(ident, path, tuple(parse_imports(text)),
                                        node.name, node.root, source_root)
        return modules

    def discover(self, node: PackageNode, dependencies: Iterable[str] = ()) -> List[ModuleNode]:
        """
        Ordered modules of `node`: every module comes after the modules of
        the same package that it imports.
        `dependencies` are the package names `node` may import from.
        """
        modules = self.scan(node)
        allowed = set(dependencies) | self.builtin_namespaces

        for mod in modules.values():
            for imp in mod.imports:
                if imp in modules:
                    continue
                if imp.split(".", 1)[0] not in allowed:
                    raise UnknownImportError(node.name, mod.identifier, imp)

        ordered = self._sort(node.name, modules)
        self.log.debug(f"{node.name}: {len(ordered)} module(s): {[m.identifier for m in ordered]}")
        return ordered

    @staticmethod
    def _sort(package: str, modules: Dict[str, ModuleNode]) -> List[ModuleNode]:
        state = {ident: Visit.UNVISITED for ident in modules}
        ordered: List[ModuleNode] = []

        for start in modules:
            if state[start] is not Visit.UNVISITED:
                continue
            state[start] = Visit.IN_PROGRESS
            stack = [(start, iter(modules[start].imports))]
            while stack:
                ident, pending = stack[-1]
                nxt = None
                for imp in pending:
                    if imp not in modules:
                        continue
                    if state[imp] is Visit.IN_PROGRESS:
                        path = [s[0] for s in stack]
                        raise ModuleCycleError(package, path[path.index(imp):] + [imp])
                    if state[imp] is Visit.UNVISITED:
                        nxt = imp
                        break
                if nxt is None:
                    state[ident] = Visit.DONE
                    ordered.append(modules[ident])
                    stack.pop()
                else:
                    state[nxt] = Visit.IN_PROGRESS
                    stack.append((nxt, iter(modules[nxt].imports)))
        return ordered
