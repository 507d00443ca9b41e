# egg/modules/plan.py
"""
Build plan composition.

Packages are ordered by an iterative post-order DFS from the root that
follows dependency edges in manifest declaration order, so dependencies come
before dependents and independent packages keep the order in which their
nearest common dependent declares them. Each package step carries its
modules in import order (see discover.py).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from egg.modules import logger as _logger
from egg.modules.discover import CompositionError, ModuleDiscoverer, ModuleNode
from egg.modules.graph import PackageGraph, PackageNode, Visit
from egg.modules.outcome import BuildOutcome

__all__ = ["BuildPlan", "BuildPlanComposer", "CompositionError", "PackageBuildStep", "package_order"]


@dataclass(frozen=True)
class PackageBuildStep:
    package: PackageNode
    modules: Tuple[ModuleNode, ...]

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def dependencies(self) -> List[str]:
        return list(self.package.dependencies)


class BuildPlan:
    def __init__(self, graph: PackageGraph, steps: Sequence[PackageBuildStep]):
        self.graph = graph
        self.steps: Tuple[PackageBuildStep, ...] = tuple(steps)
        self._index: Dict[str, int] = {s.name: i for i, s in enumerate(self.steps)}
        self.outcome = BuildOutcome(self.order())

    def __iter__(self):
        return iter(self.steps)

    def __len__(self):
        return len(self.steps)

    def order(self) -> List[str]:
        return [s.name for s in self.steps]

    def index_of(self, name: str) -> int:
        return self._index[name]

    def step(self, name: str) -> PackageBuildStep:
        return self.steps[self._index[name]]

    def dependencies_of(self, name: str) -> List[str]:
        return self.step(name).dependencies

    def transitive_dependencies(self, name: str) -> List[str]:
        """Transitive dependencies of `name`, in plan order."""
        deps = set(self.graph.transitive_dependencies(name))
        return [s.name for s in self.steps if s.name in deps]

    def describe(self) -> List[str]:
        lines = []
        for i, step in enumerate(self.steps, 1):
            node = step.package
            lines.append(f"{i}. {node.name} ({node.source}, {node.revision[:12]})")
            for mod in step.modules:
                lines.append(f"     {mod.identifier}")
        return lines


def package_order(graph: PackageGraph) -> List[str]:
    state = {node.name: Visit.UNVISITED for node in graph}
    ordered: List[str] = []
    state[graph.root] = Visit.IN_PROGRESS
    stack = [(graph.root, iter(graph[graph.root].dependencies))]
    while stack:
        name, pending = stack[-1]
        nxt = None
        for dep in pending:
            if state[dep] is Visit.IN_PROGRESS:
                raise CompositionError(f"Dependency cycle through {dep}")
            if state[dep] is Visit.UNVISITED:
                nxt = dep
                break
        if nxt is None:
            state[name] = Visit.DONE
            ordered.append(name)
            stack.pop()
        else:
            state[nxt] = Visit.IN_PROGRESS
            stack.append((nxt, iter(graph[nxt].dependencies)))
    return ordered


class BuildPlanComposer:
    def __init__(self,
                 discoverer: Optional[ModuleDiscoverer] = None,
                 logger: Optional[_logger.Logger] = None):
        self.log = logger or _logger.Logger("plan")
        self.discoverer = discoverer or ModuleDiscoverer(logger=self.log)

    def compose(self, graph: PackageGraph) -> BuildPlan:
        order = package_order(graph)
        self.log.info(f"Topological order: {order}")
        steps = []
        for name in order:
            node = graph[name]
            modules = self.discoverer.discover(node, graph.transitive_dependencies(name))
            steps.append(PackageBuildStep(node, tuple(modules)))
        return BuildPlan(graph, steps)
