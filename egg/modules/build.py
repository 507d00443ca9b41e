# egg/modules/build.py
"""
Build orchestration.

Features:
 - package steps run on a thread pool; a step starts only once every step it
   depends on has finished
 - modules of a step compile one after another in plan order; the first
   failing module fails the step and skips the rest of it
 - steps depending on a failed (or aborted) step are aborted without
   invoking the compiler; independent steps keep building
 - optional fail-fast: after the first failure, steps that have not started
   are aborted, running compiler invocations are left to finish
 - one event per step state transition and per compiled module; a listener
   that raises fails the step it was reporting on
"""

from __future__ import annotations
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set

from egg.modules import logger as _logger
from egg.modules.compiler import Idris2Compiler, artifact_dir
from egg.modules.config import config
from egg.modules.discover import ModuleNode
from egg.modules.fetcher import SourceFetcher
from egg.modules.graph import PackageGraph
from egg.modules.hooks import HookManager
from egg.modules.manifest import ManifestManager, PackageManifest
from egg.modules.outcome import (
    BuildOutcome,
    CompileResult,
    ModuleOutcome,
    StepOutcome,
    StepState,
)
from egg.modules.plan import BuildPlan, BuildPlanComposer, PackageBuildStep
from egg.modules.resolver import DependencyResolver

Compile = Callable[[ModuleNode, Sequence[Path]], CompileResult]


class BuildOrchestrator:
    def __init__(self,
                 compiler: Compile,
                 workers: Optional[int] = None,
                 fail_fast: Optional[bool] = None,
                 hooks: Optional[HookManager] = None,
                 logger: Optional[_logger.Logger] = None,
                 artifact_for: Callable = artifact_dir):
        self.compiler = compiler
        self.workers = max(1, workers or config.workers())
        self.fail_fast = config.getboolean("build", "fail_fast") if fail_fast is None else fail_fast
        self.log = logger or _logger.Logger("build")
        self.hooks = hooks or HookManager(log=self.log)
        self.artifact_for = artifact_for

    def execute(self, plan: BuildPlan) -> BuildOutcome:
        outcome = plan.outcome
        # steps whose outcome is final and visible to dependents
        settled: Set[str] = {s.package for s in outcome if s.state.terminal}
        pending: List[str] = [s.name for s in plan if s.name not in settled]
        running: Dict[Future, str] = {}
        cancelled = False

        with ThreadPoolExecutor(max_workers=self.workers) as ex:
            while pending or running:
                for name in list(pending):
                    deps = plan.dependencies_of(name)
                    blocker = next((d for d in deps if d in settled
                                    and outcome[d].state is not StepState.SUCCEEDED), None)
                    if blocker is not None:
                        pending.remove(name)
                        self._settle(outcome[name], StepState.ABORTED,
                                     f"dependency {blocker} {outcome[blocker].state.value}")
                        settled.add(name)
                    elif cancelled:
                        pending.remove(name)
                        self._settle(outcome[name], StepState.ABORTED, "cancelled")
                        settled.add(name)
                    elif len(running) < self.workers and all(d in settled for d in deps):
                        pending.remove(name)
                        if not self._settle(outcome[name], StepState.RUNNING):
                            settled.add(name)
                            continue
                        running[ex.submit(self._run_step, plan, plan.step(name))] = name

                if not running:
                    continue

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for fut in done:
                    name = running.pop(fut)
                    err = fut.exception()
                    if err is not None:
                        self._hook_failed(outcome[name], err)
                    settled.add(name)
                    if outcome[name].state is StepState.FAILED and self.fail_fast and not cancelled:
                        self.log.warning(f"Fail-fast: {name} failed, cancelling steps not yet started")
                        cancelled = True

        if outcome.success:
            self.log.success(f"Build succeeded ({len(plan)} package(s))")
        else:
            self.log.error(f"Build failed: {outcome.failed} (aborted: {outcome.aborted})")
        return outcome

    def _transition(self, record: StepOutcome, state: StepState, reason: Optional[str] = None):
        record.state = state
        record.reason = reason
        self.hooks.emit("step_state", package=record.package, state=state, reason=reason)

    def _settle(self, record: StepOutcome, state: StepState, reason: Optional[str] = None) -> bool:
        """Transition from the scheduling thread; False if a hook raised and the step failed."""
        try:
            self._transition(record, state, reason)
        except Exception as e:
            self._hook_failed(record, e)
            return False
        return True

    def _hook_failed(self, record: StepOutcome, err: BaseException):
        # not re-emitted: the listener that raised would see it again
        self.log.error(f"{record.package}: progress hook raised {type(err).__name__}: {err}")
        record.state = StepState.FAILED
        record.reason = f"hook error: {type(err).__name__}: {err}"

    def _run_step(self, plan: BuildPlan, step: PackageBuildStep):
        record = plan.outcome[step.name]
        start = time.time()
        state, reason = StepState.SUCCEEDED, None
        try:
            artifacts = [self.artifact_for(plan.step(d).package)
                         for d in plan.transitive_dependencies(step.name)]
            for module in step.modules:
                try:
                    result = self.compiler(module, artifacts)
                except Exception as e:
                    self.log.error(f"Compiler raised on {module.identifier}: {e}")
                    result = CompileResult.failure(f"{type(e).__name__}: {e}")
                mod_outcome = ModuleOutcome(module.identifier, result.ok, result.diagnostics)
                record.modules.append(mod_outcome)
                self.hooks.emit("module_done", package=step.name, module=module.identifier, outcome=mod_outcome)
                if not result.ok:
                    state, reason = StepState.FAILED, f"module {module.identifier} failed"
                    break
        except Exception as e:
            self.log.error(f"{step.name}: step interrupted: {type(e).__name__}: {e}")
            state, reason = StepState.FAILED, f"{type(e).__name__}: {e}"

        record.duration = time.time() - start
        self._transition(record, state, reason)


class BuildManager:
    """Wires manifest -> graph -> plan -> build for one package directory."""

    def __init__(self,
                 root_path=".",
                 fetcher=None,
                 compiler: Optional[Compile] = None,
                 workers: Optional[int] = None,
                 fail_fast: Optional[bool] = None,
                 hooks: Optional[HookManager] = None,
                 logger: Optional[_logger.Logger] = None):
        self.root_path = Path(root_path).absolute()
        self.log = logger or _logger.Logger("build-manager")
        self.hooks = hooks or HookManager(log=self.log)
        self.manifests = ManifestManager(logger=self.log)
        self.fetcher = fetcher or SourceFetcher(deps_dir=str(self.root_path / config.deps_dir()),
                                                logger=self.log)
        self.compiler = compiler or Idris2Compiler(log=self.log)
        self.workers = workers
        self.fail_fast = fail_fast

    def manifest(self) -> PackageManifest:
        return self.manifests.load(self.root_path)

    def resolve(self) -> PackageGraph:
        resolver = DependencyResolver(self.fetcher, manifest_loader=self.manifests.load,
                                      hooks=self.hooks, logger=self.log)
        return resolver.resolve(self.manifest(), self.root_path)

    def plan(self, graph: Optional[PackageGraph] = None) -> BuildPlan:
        if graph is None:
            graph = self.resolve()
        return BuildPlanComposer(logger=self.log).compose(graph)

    def build(self, plan: Optional[BuildPlan] = None) -> BuildOutcome:
        orchestrator = BuildOrchestrator(self.compiler, workers=self.workers, fail_fast=self.fail_fast,
                                         hooks=self.hooks, logger=self.log)
        return orchestrator.execute(self.plan() if plan is None else plan)
