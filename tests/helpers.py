"""Helpers shared by the test modules: a fake package universe and synthetic plans."""

import threading
from pathlib import Path

from egg.modules.discover import ModuleNode
from egg.modules.fetcher import FetchResult, NotFound
from egg.modules.graph import PackageGraph, PackageNode
from egg.modules.manifest import DependencySpec, GitSource, LocalPath, PackageManifest
from egg.modules.outcome import CompileResult
from egg.modules.plan import BuildPlan, PackageBuildStep


def url_for(name):
    return f"https://example.com/{name}.git"


def dep(name, url=None):
    return DependencySpec(name, GitSource(url or url_for(name)))


class Universe:
    """
    Packages reachable by URL, each with a directory on disk.

    Acts as both the fetcher (`fetch`) and the manifest loader (`load`).
    """

    def __init__(self, base: Path):
        self.base = base
        self.sources = {}
        self.manifests = {}
        self.fetches = []

    def _deps(self, deps):
        return tuple(d if isinstance(d, DependencySpec) else dep(d) for d in deps)

    def define(self, name, *deps, url=None, modules=None, manifest_name=None):
        src = GitSource(url or url_for(name))
        root = self.base / f"{name}-{len(self.sources)}"
        self._write_modules(root, name, modules)
        self.sources[src] = root
        self.manifests[root] = PackageManifest(manifest_name or name, "0.1.0", self._deps(deps))
        return src

    def root(self, name, *deps, modules=None):
        root = self.base / "root"
        self._write_modules(root, name, modules)
        manifest = PackageManifest(name, "0.1.0", self._deps(deps))
        self.manifests[root] = manifest
        return manifest, root

    @staticmethod
    def _write_modules(root, name, modules):
        src = root / "src"
        src.mkdir(parents=True, exist_ok=True)
        if modules is None:
            modules = {f"{name}.idr": f"module {name}\n"}
        for rel, text in modules.items():
            path = src / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text)

    def fetch(self, descriptor):
        self.fetches.append(descriptor)
        if descriptor not in self.sources:
            raise NotFound(descriptor, "no such repository")
        root = self.sources[descriptor]
        return FetchResult(root, f"rev-{root.name}")

    def load(self, root):
        return self.manifests[Path(root)]

    def fetched_names(self):
        return [d.url.rsplit("/", 1)[-1][:-4] for d in self.fetches]


def make_graph(edges, root):
    """
    PackageGraph from {name: [dependency names]}; insertion order of `edges`
    is the discovery order.
    """
    graph = PackageGraph(root)
    for name, deps in edges.items():
        node = PackageNode(PackageManifest(name, "0.1.0", tuple(dep(d) for d in deps)),
                           LocalPath(Path("/pkgs") / name), Path("/pkgs") / name, f"rev-{name}",
                           dependencies=list(deps))
        graph.add(node)
    return graph


def make_plan(edges, root, order, modules=None):
    """BuildPlan over `make_graph(edges)` with steps in `order`; one module per package by default."""
    graph = make_graph(edges, root)
    modules = modules or {}
    steps = []
    for name in order:
        node = graph[name]
        idents = modules.get(name, [name])
        steps.append(PackageBuildStep(node, tuple(
            ModuleNode(ident, node.root / "src" / f"{ident}.idr", (), name, node.root, node.root / "src")
            for ident in idents
        )))
    return BuildPlan(graph, steps)


class FakeCompiler:
    """Records every call; modules listed in `failing` fail to compile."""

    def __init__(self, failing=(), raising=()):
        self.failing = set(failing)
        self.raising = set(raising)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, module, dependency_artifacts):
        with self._lock:
            self.calls.append((module.package, module.identifier, list(dependency_artifacts)))
        if module.identifier in self.raising:
            raise RuntimeError(f"compiler crashed on {module.identifier}")
        if module.identifier in self.failing:
            return CompileResult.failure(f"{module.identifier}: type mismatch")
        return CompileResult.success()

    def compiled(self):
        return [c[1] for c in self.calls]


