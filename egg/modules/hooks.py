# egg/modules/hooks.py
from typing import Callable, Dict, List, Optional

from egg.modules import logger


class HookManager:
    """
    Despacha eventos de progresso para quem estiver ouvindo (CLI, logs).

    Stages emitidos pelo core:
        • fetch_start  {package, source}
        • fetch_done   {package, root, revision}
        • step_state   {package, state, reason}
        • module_done  {package, module, outcome}

    emit() é chamado pelas threads de build; os hooks precisam ser thread-safe.
    """

    def __init__(self, log: Optional[logger.Logger] = None):
        self.hooks: Dict[str, List[Callable]] = {}
        self.log = log or logger.Logger("hooks")

    def register(self, stage: str, func: Callable):
        """Registra um hook para um stage"""
        self.hooks.setdefault(stage, []).append(func)
        self.log.debug(f"Hook registrado para stage={stage}: {func}")

    def emit(self, stage: str, **payload):
        for func in self.hooks.get(stage, []):
            try:
                func(**payload)
            except Exception as e:
                self.log.error(f"Erro no hook {func} (stage={stage}): {e}")
                raise

    def list_hooks(self) -> Dict[str, List[str]]:
        """Lista hooks registrados"""
        return {stage: [getattr(f, "__name__", repr(f)) for f in funcs]
                for stage, funcs in self.hooks.items()}


class LoggingReporter:
    """Escreve cada evento no logger."""

    def __init__(self, log: Optional[logger.Logger] = None):
        self.log = log or logger.Logger("progress")

    def attach(self, hooks: HookManager) -> HookManager:
        hooks.register("fetch_start", self.fetch_start)
        hooks.register("fetch_done", self.fetch_done)
        hooks.register("step_state", self.step_state)
        hooks.register("module_done", self.module_done)
        return hooks

    def fetch_start(self, package, source):
        self.log.info(f"{package} [SRC] fetching {source}")

    def fetch_done(self, package, root, revision):
        self.log.info(f"{package} [SRC] {root} @ {revision[:12]}")

    def step_state(self, package, state, reason=None):
        msg = f"{package} [BUILD] {state.value}"
        if reason:
            msg += f" ({reason})"
        if state.value == "failed":
            self.log.error(msg)
        elif state.value == "succeeded":
            self.log.success(msg)
        else:
            self.log.info(msg)

    def module_done(self, package, module, outcome):
        if outcome.ok:
            self.log.debug(f"{package} [TTC] {module} ok")
        else:
            self.log.error(f"{package} [TTC] {module} failed\n{outcome.diagnostics}")
