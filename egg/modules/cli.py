# egg/modules/cli.py
"""
Command line interface for egg.

Usage examples:
  egg build                     # fetch dependencies, compile everything
  egg build --fail-fast -j 4
  egg plan                      # show the build order without compiling
  egg graph --output deps.dot   # Graphviz export of the package graph
  egg clean                     # remove the build directory
  egg init AmazingTool          # write a skeleton egg.yaml + src/AmazingTool.idr
"""

from __future__ import annotations
import argparse
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from egg import __version__
from egg.modules import logger as _logger
from egg.modules.build import BuildManager
from egg.modules.config import config
from egg.modules.discover import CompositionError
from egg.modules.hooks import HookManager
from egg.modules.manifest import ManifestError
from egg.modules.outcome import StepState
from egg.modules.resolver import CycleError, FetchFailed, GraphError
from egg.modules.utils import EggError, clean

EXIT_OK = 0
EXIT_BUILD_FAILED = 1
EXIT_RESOLVE_FAILED = 2
EXIT_UNEXPECTED = 3

STATE_STYLES = {
    StepState.SUCCEEDED: "green",
    StepState.FAILED: "red",
    StepState.ABORTED: "yellow",
    StepState.RUNNING: "blue",
    StepState.PENDING: "dim",
}


def make_console(no_color: bool, quiet: bool) -> Console:
    return Console(no_color=no_color, quiet=quiet)


class ConsoleReporter:
    """Prints build progress on the rich console."""

    def __init__(self, console: Console, verbose: bool = False):
        self.console = console
        self.verbose = verbose

    def attach(self, hooks: HookManager) -> HookManager:
        hooks.register("fetch_start", self.fetch_start)
        hooks.register("step_state", self.step_state)
        hooks.register("module_done", self.module_done)
        return hooks

    def fetch_start(self, package, source):
        self.console.print(f"Downloading {package} from {source}")

    def step_state(self, package, state, reason=None):
        if state is StepState.RUNNING:
            self.console.print(f"Building {package}")
        elif state.terminal:
            style = STATE_STYLES[state]
            suffix = f" ({reason})" if reason else ""
            self.console.print(f"[{style}]{package}: {state.value}{suffix}[/{style}]")

    def module_done(self, package, module, outcome):
        if not outcome.ok:
            self.console.print(Panel(Text(outcome.diagnostics or "(no output)"),
                                     title=f"{package}: {module}", style="red"))
        elif self.verbose:
            self.console.print(f"  {module} ok")


class CLI:
    def __init__(self, console: Console, args: argparse.Namespace):
        self.console = console
        self.args = args
        self.log = _logger.Logger("cli")
        self.hooks = HookManager(log=self.log)
        ConsoleReporter(console, verbose=getattr(args, "verbose", False)).attach(self.hooks)

    def manager(self) -> BuildManager:
        return BuildManager(root_path=self.args.path,
                            workers=getattr(self.args, "workers", None),
                            fail_fast=getattr(self.args, "fail_fast", None) or None,
                            hooks=self.hooks, logger=self.log)

    # -----------------------
    # build
    # -----------------------
    def cmd_build(self) -> int:
        mgr = self.manager()
        plan = mgr.plan()
        if self.args.dry_run:
            self._print_plan(plan)
            return EXIT_OK
        outcome = mgr.build(plan)

        table = Table(title="Build result")
        table.add_column("Package", style="bold")
        table.add_column("Status")
        table.add_column("Modules", justify="right")
        table.add_column("Detail", overflow="fold")
        for step in outcome:
            style = STATE_STYLES[step.state]
            compiled = sum(1 for m in step.modules if m.ok)
            table.add_row(step.package, f"[{style}]{step.state.value}[/{style}]",
                          f"{compiled}/{len(plan.step(step.package).modules)}", step.reason or "")
        self.console.print(table)

        if self.args.report:
            out = outcome.report_json(self.args.report)
            self.console.print(f"Report written to {out}")

        if outcome.success:
            ttc = Path(self.args.path).absolute() / "build" / "ttc"
            self.console.print(Panel(f"Done! TTCs are in {ttc}", title="build", style="green"))
            return EXIT_OK
        self.console.print(Panel(f"Failed: {', '.join(outcome.failed) or '-'}\n"
                                 f"Aborted: {', '.join(outcome.aborted) or '-'}",
                                 title="build", style="red"))
        return EXIT_BUILD_FAILED

    # -----------------------
    # plan / graph
    # -----------------------
    def _print_plan(self, plan):
        self.console.print(Panel("\n".join(plan.describe()) or "(empty)", title="build plan"))

    def cmd_plan(self) -> int:
        self._print_plan(self.manager().plan())
        return EXIT_OK

    def cmd_graph(self) -> int:
        graph = self.manager().resolve()
        if self.args.output == "-":
            self.console.print(graph.to_dot(), markup=False, highlight=False)
        else:
            out = graph.export_dot(self.args.output)
            self.console.print(f"Graph exported to {out}")
        return EXIT_OK

    # -----------------------
    # clean / init
    # -----------------------
    def cmd_clean(self) -> int:
        build_dir = Path(self.args.path).absolute() / config.build_dir()
        if clean(build_dir):
            self.console.print(f"Removed {build_dir}")
        else:
            self.console.print(f"Nothing to clean in {build_dir}")
        return EXIT_OK

    def cmd_init(self) -> int:
        mgr = self.manager()
        if mgr.manifests.manifest_path(self.args.path).exists():
            self.console.print(f"[red]{mgr.manifests.manifest_path(self.args.path)} already exists[/red]")
            return EXIT_RESOLVE_FAILED
        dest = mgr.manifests.create(self.args.path, self.args.name, version=self.args.version)
        self.console.print(f"Manifest written to {dest}")
        return EXIT_OK


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="egg", description="Source-dependency package manager for Idris2")
    ap.add_argument("--version", action="version", version=f"egg {__version__}")
    ap.add_argument("-C", "--path", default=".", help="Package directory (containing egg.yaml)")
    ap.add_argument("--no-color", action="store_true")
    ap.add_argument("--quiet", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p_build = sub.add_parser("build", help="Fetch dependencies and compile", aliases=["b"])
    p_build.add_argument("-j", "--workers", type=int, help="Parallel package builds")
    p_build.add_argument("--fail-fast", action="store_true", help="Stop starting new packages after a failure")
    p_build.add_argument("--dry-run", action="store_true", help="Resolve and print the plan only")
    p_build.add_argument("--report", help="Write a JSON build report to this file")

    sub.add_parser("plan", help="Show the build plan")

    p_graph = sub.add_parser("graph", help="Export the dependency graph (DOT)")
    p_graph.add_argument("--output", default="deps.dot", help="Output file, '-' for stdout")

    sub.add_parser("clean", help="Remove the build directory")

    p_init = sub.add_parser("init", help="Create a new package manifest")
    p_init.add_argument("name")
    p_init.add_argument("--version", default="0.1.0")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_argparser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    console = make_console(args.no_color, args.quiet)
    cli = CLI(console, args)

    handlers = {
        "build": cli.cmd_build,
        "b": cli.cmd_build,
        "plan": cli.cmd_plan,
        "graph": cli.cmd_graph,
        "clean": cli.cmd_clean,
        "init": cli.cmd_init,
    }
    try:
        return handlers[args.command]()
    except CycleError as e:
        console.print(f"[red]Dependency cycle:[/red] {' -> '.join(e.path)}")
        return EXIT_RESOLVE_FAILED
    except FetchFailed as e:
        console.print(f"[red]Could not fetch {e.name}:[/red] {e.cause}")
        return EXIT_RESOLVE_FAILED
    except (GraphError, CompositionError, ManifestError) as e:
        console.print(f"[red]{e}[/red]")
        return EXIT_RESOLVE_FAILED
    except EggError as e:
        console.print(f"[red]{e}[/red]")
        return EXIT_UNEXPECTED
    except Exception as e:
        console.print(f"[red]Unhandled CLI error: {e}[/red]")
        cli.log.error(traceback.format_exc())
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    raise SystemExit(main())
