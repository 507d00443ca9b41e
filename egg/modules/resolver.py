# egg/modules/resolver.py
"""
Dependency graph construction.

Depth-first traversal from the root manifest, driven by an explicit work
stack so deep dependency chains are not bounded by the interpreter's
recursion limit. Every package is fetched at most once; a name seen again
with the same source is linked to the existing node, a name seen again with
a different source is a conflict, and an edge into a package that is still
on the traversal stack is a cycle. The first error aborts construction.
"""

from __future__ import annotations
from pathlib import Path
from typing import Callable, List, Optional

from egg.modules import logger as _logger
from egg.modules.fetcher import FetchError
from egg.modules.graph import PackageGraph, PackageNode, Visit
from egg.modules.hooks import HookManager
from egg.modules.manifest import (
    DependencySpec,
    LocalPath,
    ManifestError,
    PackageManifest,
    SourceDescriptor,
    load_manifest,
)
from egg.modules.utils import EggError

ROOT_REVISION = "workspace"


class GraphError(EggError):
    pass


class ConflictError(GraphError):
    def __init__(self, name: str, existing: SourceDescriptor, requested: SourceDescriptor):
        super().__init__(f"Package {name} is required from two different sources: "
                         f"{existing} and {requested}")
        self.name = name
        self.existing = existing
        self.requested = requested


class CycleError(GraphError):
    def __init__(self, path: List[str]):
        super().__init__("Dependency cycle: " + " -> ".join(path))
        self.path = path


class FetchFailed(GraphError):
    def __init__(self, name: str, cause: Exception):
        super().__init__(f"Failed to fetch {name}: {cause}")
        self.name = name
        self.cause = cause


class _Frame:
    __slots__ = ("node", "next")

    def __init__(self, node: PackageNode):
        self.node = node
        self.next = 0


class DependencyResolver:
    def __init__(self,
                 fetcher,
                 manifest_loader: Callable[[Path], PackageManifest] = load_manifest,
                 hooks: Optional[HookManager] = None,
                 logger: Optional[_logger.Logger] = None):
        self.fetcher = fetcher
        self.manifest_loader = manifest_loader
        self.log = logger or _logger.Logger("resolver")
        self.hooks = hooks or HookManager(log=self.log)

    def resolve(self, root_manifest: PackageManifest, root_path=".") -> PackageGraph:
        root_path = Path(root_path).absolute()
        graph = PackageGraph(root_manifest.name)
        root = graph.add(PackageNode(root_manifest, LocalPath(root_path), root_path, ROOT_REVISION))
        root.state = Visit.IN_PROGRESS

        stack = [_Frame(root)]
        while stack:
            frame = stack[-1]
            deps = frame.node.manifest.dependencies
            if frame.next >= len(deps):
                frame.node.state = Visit.DONE
                stack.pop()
                continue
            spec = deps[frame.next]
            frame.next += 1

            existing = graph.get(spec.name)
            if existing is not None:
                # any edge back to the root package is a cycle, whatever source it names
                if existing is not root and existing.source != spec.source:
                    raise ConflictError(spec.name, existing.source, spec.source)
                if existing.state is Visit.IN_PROGRESS:
                    raise CycleError([f.node.name for f in stack] + [spec.name])
                frame.node.dependencies.append(spec.name)
                continue

            node = graph.add(self._fetch_node(spec))
            node.state = Visit.IN_PROGRESS
            frame.node.dependencies.append(spec.name)
            stack.append(_Frame(node))

        graph.seal()
        self.log.info(f"Resolved {len(graph)} package(s) for {graph.root}")
        return graph

    def _fetch_node(self, spec: DependencySpec) -> PackageNode:
        self.hooks.emit("fetch_start", package=spec.name, source=spec.source)
        try:
            fetched = self.fetcher.fetch(spec.source)
        except FetchError as e:
            raise FetchFailed(spec.name, e) from e
        try:
            manifest = self.manifest_loader(fetched.root)
        except ManifestError as e:
            raise FetchFailed(spec.name, e) from e
        if manifest.name != spec.name:
            raise FetchFailed(spec.name, ManifestError(
                f"{fetched.root} declares package {manifest.name}, expected {spec.name}"))
        self.hooks.emit("fetch_done", package=spec.name, root=fetched.root, revision=fetched.revision)
        return PackageNode(manifest, spec.source, Path(fetched.root), fetched.revision)
