"""Tests for cli.py - commands over local-path packages, compiler faked."""

import io
import json

import pytest
from rich.console import Console
from rich.text import Text

from egg.modules import build as build_mod
from egg.modules.cli import (
    CLI,
    EXIT_BUILD_FAILED,
    EXIT_OK,
    EXIT_RESOLVE_FAILED,
    ConsoleReporter,
    build_argparser,
    main,
    make_console,
)
from egg.modules.manifest import ManifestManager
from egg.modules.outcome import StepState
from tests.helpers import FakeCompiler


def package(base, name, *deps):
    root = base / name
    ManifestManager().create(root, name)
    if deps:
        lines = [f"package:\n  name: {name}\n  version: 0.1.0\ndependencies:\n"]
        lines += [f"  {d}:\n    path: ../{d}\n" for d in deps]
        (root / "egg.yaml").write_text("".join(lines))
    return root


@pytest.fixture
def amazing_tool(tmp_path):
    package(tmp_path, "CoolCollections")
    package(tmp_path, "NotJson", "CoolCollections")
    return package(tmp_path, "AmazingTool", "CoolCollections", "NotJson")


@pytest.fixture
def compiler(monkeypatch):
    fake = FakeCompiler()
    monkeypatch.setattr(build_mod, "Idris2Compiler", lambda **_: fake)
    return fake


def run_cli(argv):
    """Runs one command with the console captured; returns (exit code, output)."""
    args = build_argparser().parse_args(argv)
    out = io.StringIO()
    cli = CLI(Console(file=out, width=200, color_system=None), args)
    code = getattr(cli, f"cmd_{args.command}")()
    return code, out.getvalue()


class TestCommands:
    def test_plan(self, amazing_tool, compiler):
        code, out = run_cli(["-C", str(amazing_tool), "plan"])

        assert code == EXIT_OK
        assert out.index("1. CoolCollections") < out.index("2. NotJson") < out.index("3. AmazingTool")
        assert compiler.calls == []

    def test_build_dry_run(self, amazing_tool, compiler):
        code, out = run_cli(["-C", str(amazing_tool), "build", "--dry-run"])

        assert code == EXIT_OK
        assert "3. AmazingTool" in out
        assert compiler.calls == []

    def test_build(self, amazing_tool, compiler, tmp_path):
        report = tmp_path / "report.json"

        code, out = run_cli(["-C", str(amazing_tool), "build", "-j", "2", "--report", str(report)])

        assert code == EXIT_OK
        assert sorted(compiler.compiled()) == ["AmazingTool", "CoolCollections", "NotJson"]
        assert "Done!" in out
        data = json.loads(report.read_text())
        assert data["success"] is True
        assert [s["package"] for s in data["steps"]] == ["CoolCollections", "NotJson", "AmazingTool"]

    def test_build_failure(self, amazing_tool, compiler):
        compiler.failing.add("NotJson")

        code, out = run_cli(["-C", str(amazing_tool), "build", "-j", "1"])

        assert code == EXIT_BUILD_FAILED
        assert "Failed: NotJson" in out
        assert "Aborted: AmazingTool" in out

    def test_graph(self, amazing_tool, compiler, tmp_path):
        out_file = tmp_path / "deps.dot"

        code, _ = run_cli(["-C", str(amazing_tool), "graph", "--output", str(out_file)])

        dot = out_file.read_text()
        assert code == EXIT_OK
        assert '"NotJson" -> "AmazingTool";' in dot
        assert '"CoolCollections" -> "NotJson";' in dot

    def test_clean(self, amazing_tool):
        (amazing_tool / "build" / "ttc").mkdir(parents=True)

        code, out = run_cli(["-C", str(amazing_tool), "clean"])

        assert code == EXIT_OK
        assert not (amazing_tool / "build").exists()
        assert "Removed" in out

    def test_init(self, tmp_path):
        target = tmp_path / "Hello"
        target.mkdir()

        code, _ = run_cli(["-C", str(target), "init", "Hello", "--version", "0.2.0"])

        assert code == EXIT_OK
        manifest = ManifestManager().load(target)
        assert manifest.name == "Hello"
        assert manifest.version == "0.2.0"
        assert (target / "src" / "Hello.idr").is_file()

        again, _ = run_cli(["-C", str(target), "init", "Hello"])
        assert again == EXIT_RESOLVE_FAILED


class TestExitCodes:
    def test_cycle(self, tmp_path, compiler):
        package(tmp_path, "B", "A")
        a = package(tmp_path, "A", "B")

        assert main(["-C", str(a), "--no-color", "plan"]) == EXIT_RESOLVE_FAILED

    def test_missing_dependency(self, tmp_path, compiler):
        a = package(tmp_path, "A", "Missing")

        assert main(["-C", str(a), "--no-color", "build"]) == EXIT_RESOLVE_FAILED
        assert compiler.calls == []

    def test_missing_manifest(self, tmp_path):
        assert main(["-C", str(tmp_path), "--no-color", "plan"]) == EXIT_RESOLVE_FAILED

    def test_build_alias(self, amazing_tool, compiler):
        assert main(["-C", str(amazing_tool), "--quiet", "b"]) == EXIT_OK
        assert len(compiler.calls) == 3


class TestConsole:
    def test_no_color_still_renders_markup(self):
        console = make_console(no_color=True, quiet=False)
        reporter = ConsoleReporter(console)

        with console.capture() as cap:
            reporter.step_state("NotJson", StepState.FAILED, "module NotJson failed")

        out = Text.from_ansi(cap.get()).plain.rstrip("\n")
        assert out == "NotJson: failed (module NotJson failed)"
        assert console.no_color
