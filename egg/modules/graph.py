# egg/modules/graph.py
"""
Package dependency graph.

Nodes live in an arena keyed by package name (names are unique within one
resolved graph); edges are stored as sequences of names in manifest declaration
order. The graph is built by `resolver.DependencyResolver`, which seals it:
nodes and edge tuples are read-only afterwards.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from egg.modules.manifest import PackageManifest, SourceDescriptor


class Visit(enum.Enum):
    UNVISITED = "unvisited"
    IN_PROGRESS = "in_progress"
    DONE = "done"


@dataclass
class PackageNode:
    manifest: PackageManifest
    source: SourceDescriptor
    root: Path
    revision: str
    dependencies: Sequence[str] = field(default_factory=list)
    state: Visit = Visit.UNVISITED

    def __setattr__(self, name, value):
        if getattr(self, "_sealed", False):
            raise AttributeError(f"Package node {self.name} is read-only once resolved")
        super().__setattr__(name, value)

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def source_root(self) -> Path:
        return self.root / self.manifest.source_dir

    def seal(self):
        """Freeze edges and visitation state; the node is read-only afterwards."""
        self.dependencies = tuple(self.dependencies)
        self.state = Visit.UNVISITED
        object.__setattr__(self, "_sealed", True)


class PackageGraph:
    def __init__(self, root: str):
        self.root = root
        self.nodes: Dict[str, PackageNode] = {}
        self.sealed = False

    def add(self, node: PackageNode) -> PackageNode:
        if self.sealed:
            raise ValueError(f"Graph of {self.root} is already resolved")
        if node.name in self.nodes:
            raise KeyError(f"Package {node.name} already in graph")
        self.nodes[node.name] = node
        return node

    def get(self, name: str) -> Optional[PackageNode]:
        return self.nodes.get(name)

    def __getitem__(self, name: str) -> PackageNode:
        return self.nodes[name]

    def __contains__(self, name) -> bool:
        return name in self.nodes

    def __iter__(self) -> Iterator[PackageNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def root_node(self) -> PackageNode:
        return self.nodes[self.root]

    def dependencies_of(self, name: str) -> List[PackageNode]:
        return [self.nodes[d] for d in self.nodes[name].dependencies]

    def edges(self) -> List[Tuple[str, str]]:
        """(dependent, dependency) pairs."""
        return [(n.name, d) for n in self for d in n.dependencies]

    def transitive_dependencies(self, name: str) -> List[str]:
        """Every package reachable from `name`, excluding itself, in DFS pre-order."""
        seen: Set[str] = set()
        ordered: List[str] = []
        stack = list(reversed(self.nodes[name].dependencies))
        while stack:
            cur = stack.pop()
            if cur in seen or cur == name:
                continue
            seen.add(cur)
            ordered.append(cur)
            stack.extend(reversed(self.nodes[cur].dependencies))
        return ordered

    def seal(self):
        """Called once construction is complete: visits reset, nodes and edges frozen."""
        for node in self:
            node.seal()
        self.sealed = True

    def to_dot(self) -> str:
        lines = ["digraph dependencies {"]
        for node in self:
            if not node.dependencies:
                lines.append(f'  "{node.name}";')
            for d in node.dependencies:
                lines.append(f'  "{d}" -> "{node.name}";')
        lines.append("}")
        return "\n".join(lines) + "\n"

    def export_dot(self, output="deps.dot") -> str:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(self.to_dot())
        return output
