"""Tests for resolver.py - dependency graph construction."""

import pytest

from egg.modules.fetcher import NotFound
from egg.modules.graph import Visit
from egg.modules.hooks import HookManager
from egg.modules.manifest import GitSource, ManifestError
from egg.modules.resolver import ConflictError, CycleError, DependencyResolver, FetchFailed
from tests.helpers import dep, url_for


def resolver_for(universe, hooks=None):
    return DependencyResolver(universe, manifest_loader=universe.load, hooks=hooks)


class TestResolve:
    def test_amazing_tool(self, universe):
        universe.define("CoolCollections")
        universe.define("NotJson", "CoolCollections")
        manifest, root = universe.root("AmazingTool", "CoolCollections", "NotJson")

        graph = resolver_for(universe).resolve(manifest, root)

        assert list(graph.nodes) == ["AmazingTool", "CoolCollections", "NotJson"]
        assert graph.root == "AmazingTool"
        assert graph["AmazingTool"].dependencies == ("CoolCollections", "NotJson")
        assert graph["NotJson"].dependencies == ("CoolCollections",)
        assert graph["CoolCollections"].dependencies == ()
        assert graph.root_node.root == root

    def test_shared_dependency_fetched_once(self, universe):
        universe.define("CoolCollections")
        universe.define("NotJson", "CoolCollections")
        manifest, root = universe.root("AmazingTool", "CoolCollections", "NotJson")

        resolver_for(universe).resolve(manifest, root)

        assert universe.fetched_names() == ["CoolCollections", "NotJson"]

    def test_size_equals_distinct_packages(self, universe):
        universe.define("D")
        universe.define("B", "D")
        universe.define("C", "D")
        universe.define("A", "B", "C")
        universe.define("E", "A", "D")
        manifest, root = universe.root("Root", "A", "E", "D")

        graph = resolver_for(universe).resolve(manifest, root)

        assert len(graph) == 6
        assert sorted(n.name for n in graph) == ["A", "B", "C", "D", "E", "Root"]
        assert len(universe.fetches) == 5

    def test_node_records_fetch_result(self, universe):
        src = universe.define("Leaf")
        manifest, root = universe.root("Top", "Leaf")

        graph = resolver_for(universe).resolve(manifest, root)

        leaf = graph["Leaf"]
        assert leaf.source == src
        assert leaf.root == universe.sources[src]
        assert leaf.revision == f"rev-{leaf.root.name}"

    def test_visit_state_reset_after_construction(self, universe):
        universe.define("Leaf")
        manifest, root = universe.root("Top", "Leaf")

        graph = resolver_for(universe).resolve(manifest, root)

        assert all(node.state is Visit.UNVISITED for node in graph)

    def test_graph_is_read_only_after_construction(self, universe):
        universe.define("Leaf")
        manifest, root = universe.root("Top", "Leaf")

        graph = resolver_for(universe).resolve(manifest, root)

        with pytest.raises(AttributeError):
            graph["Top"].dependencies.append("Other")
        with pytest.raises(AttributeError):
            graph["Leaf"].revision = "tampered"
        with pytest.raises(ValueError):
            graph.add(graph["Leaf"])
        assert graph["Top"].dependencies == ("Leaf",)

    def test_transitive_dependencies(self, universe):
        universe.define("C")
        universe.define("B", "C")
        manifest, root = universe.root("A", "B")

        graph = resolver_for(universe).resolve(manifest, root)

        assert graph.transitive_dependencies("A") == ["B", "C"]
        assert graph.transitive_dependencies("C") == []

    def test_deep_chain_does_not_hit_recursion_limit(self, universe):
        depth = 3000
        universe.define("P0")
        for i in range(1, depth):
            universe.define(f"P{i}", f"P{i - 1}")
        manifest, root = universe.root("Top", f"P{depth - 1}")

        graph = resolver_for(universe).resolve(manifest, root)

        assert len(graph) == depth + 1

    def test_fetch_events(self, universe):
        universe.define("Leaf")
        manifest, root = universe.root("Top", "Leaf")
        events = []
        hooks = HookManager()
        hooks.register("fetch_start", lambda package, source: events.append(("start", package)))
        hooks.register("fetch_done", lambda package, root, revision: events.append(("done", package)))

        resolver_for(universe, hooks).resolve(manifest, root)

        assert events == [("start", "Leaf"), ("done", "Leaf")]


class TestCycles:
    def test_cycle_through_root(self, universe):
        universe.define("B", "A")
        manifest, root = universe.root("A", "B")

        with pytest.raises(CycleError) as exc:
            resolver_for(universe).resolve(manifest, root)

        assert exc.value.path == ["A", "B", "A"]

    def test_cycle_below_root(self, universe):
        universe.define("A", "B")
        universe.define("B", "A")
        manifest, root = universe.root("Root", "A")

        with pytest.raises(CycleError) as exc:
            resolver_for(universe).resolve(manifest, root)

        assert exc.value.path == ["Root", "A", "B", "A"]

    def test_self_dependency(self, universe):
        universe.define("Loop", "Loop")
        manifest, root = universe.root("Root", "Loop")

        with pytest.raises(CycleError) as exc:
            resolver_for(universe).resolve(manifest, root)

        assert exc.value.path == ["Root", "Loop", "Loop"]

    def test_diamond_is_not_a_cycle(self, universe):
        universe.define("D")
        universe.define("B", "D")
        universe.define("C", "D")
        manifest, root = universe.root("A", "B", "C")

        graph = resolver_for(universe).resolve(manifest, root)

        assert len(graph) == 4


class TestConflicts:
    def test_conflict_is_fail_fast(self, universe):
        universe.define("X")
        universe.define("X", url="https://mirror.example.com/X.git")
        universe.define("Y", dep("X", "https://mirror.example.com/X.git"))
        universe.define("Z")
        manifest, root = universe.root("Root", "X", "Y", "Z")

        with pytest.raises(ConflictError) as exc:
            resolver_for(universe).resolve(manifest, root)

        assert exc.value.name == "X"
        assert exc.value.existing == GitSource(url_for("X"))
        assert exc.value.requested == GitSource("https://mirror.example.com/X.git")
        assert "Z" not in universe.fetched_names()
        assert universe.fetched_names() == ["X", "Y"]

    def test_same_name_same_source_is_reused(self, universe):
        universe.define("X")
        universe.define("Y", "X")
        manifest, root = universe.root("Root", "Y", "X")

        graph = resolver_for(universe).resolve(manifest, root)

        assert universe.fetched_names() == ["Y", "X"]
        assert graph["Root"].dependencies == ("Y", "X")


class TestFetchFailures:
    def test_unknown_repository(self, universe):
        manifest, root = universe.root("Root", "Missing")

        with pytest.raises(FetchFailed) as exc:
            resolver_for(universe).resolve(manifest, root)

        assert exc.value.name == "Missing"
        assert isinstance(exc.value.cause, NotFound)

    def test_failure_stops_traversal(self, universe):
        universe.define("Later")
        manifest, root = universe.root("Root", "Missing", "Later")

        with pytest.raises(FetchFailed):
            resolver_for(universe).resolve(manifest, root)

        assert "Later" not in universe.fetched_names()

    def test_manifest_name_mismatch(self, universe):
        universe.define("Pkg", manifest_name="SomethingElse")
        manifest, root = universe.root("Root", "Pkg")

        with pytest.raises(FetchFailed) as exc:
            resolver_for(universe).resolve(manifest, root)

        assert isinstance(exc.value.cause, ManifestError)
        assert "SomethingElse" in str(exc.value)

    def test_unreadable_manifest(self, universe):
        universe.define("Pkg")
        manifest, root = universe.root("Root", "Pkg")

        def loader(path):
            raise ManifestError(f"Manifest file not found: {path}")

        resolver = DependencyResolver(universe, manifest_loader=loader)
        with pytest.raises(FetchFailed) as exc:
            resolver.resolve(manifest, root)

        assert isinstance(exc.value.cause, ManifestError)
