# egg/modules/outcome.py
"""Build outcome records, one per package step, filled in by the orchestrator."""

from __future__ import annotations
import enum
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


class StepState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (StepState.SUCCEEDED, StepState.FAILED, StepState.ABORTED)


@dataclass(frozen=True)
class CompileResult:
    ok: bool
    diagnostics: str = ""

    @classmethod
    def success(cls, diagnostics: str = "") -> "CompileResult":
        return cls(True, diagnostics)

    @classmethod
    def failure(cls, diagnostics: str) -> "CompileResult":
        return cls(False, diagnostics)


@dataclass(frozen=True)
class ModuleOutcome:
    module: str
    ok: bool
    diagnostics: str = ""


@dataclass
class StepOutcome:
    package: str
    state: StepState = StepState.PENDING
    modules: List[ModuleOutcome] = field(default_factory=list)
    reason: Optional[str] = None
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package": self.package,
            "state": self.state.value,
            "reason": self.reason,
            "duration": round(self.duration, 3),
            "modules": [
                {"module": m.module, "ok": m.ok, "diagnostics": m.diagnostics}
                for m in self.modules
            ],
        }


class BuildOutcome:
    def __init__(self, packages: Iterable[str]):
        self.steps: Dict[str, StepOutcome] = {p: StepOutcome(p) for p in packages}

    def __getitem__(self, package: str) -> StepOutcome:
        return self.steps[package]

    def __iter__(self):
        return iter(self.steps.values())

    def _in_state(self, state: StepState) -> List[str]:
        return [s.package for s in self.steps.values() if s.state is state]

    @property
    def success(self) -> bool:
        return all(s.state is StepState.SUCCEEDED for s in self.steps.values())

    @property
    def failed(self) -> List[str]:
        """Packages whose own modules failed to compile, in plan order."""
        return self._in_state(StepState.FAILED)

    @property
    def aborted(self) -> List[str]:
        """Packages skipped because a dependency failed or the run was cancelled."""
        return self._in_state(StepState.ABORTED)

    def report(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "failed": self.failed,
            "aborted": self.aborted,
            "steps": [s.to_dict() for s in self.steps.values()],
            "generated_at": time.time(),
        }

    def report_json(self, out: str = "build-report.json") -> str:
        with open(out, "w", encoding="utf-8") as fh:
            json.dump(self.report(), fh, indent=2)
        return out

    def __repr__(self):
        if self.success:
            return "BuildOutcome(Success)"
        return f"BuildOutcome(Failed({self.failed}))"
