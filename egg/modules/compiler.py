# egg/modules/compiler.py
"""Idris2 invocation: one `--check` per module, dependency TTCs on IDRIS2_PATH."""

import os
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Sequence

from egg.modules import logger
from egg.modules.config import config
from egg.modules.outcome import CompileResult
from egg.modules.utils import join_search_path


def artifact_dir(node) -> Path:
    """Compiled TTC files of a package, usually `{root}/build/ttc`."""
    return Path(node.root) / "build" / "ttc"


class CommandResult:
    """Resultado de uma invocação do compilador"""

    def __init__(self, command, returncode, stdout, stderr, duration):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.duration = duration

    def ok(self):
        return self.returncode == 0


class Idris2Compiler:
    def __init__(self,
                 executable: Optional[str] = None,
                 timeout: Optional[float] = None,
                 log: Optional[logger.Logger] = None):
        self.executable = executable or config.get("build", "compiler", fallback="idris2")
        self.timeout = timeout
        self.log = log or logger.Logger("compiler")

    def command(self, module) -> List[str]:
        root = Path(module.package_root)
        return [
            self.executable,
            "--source-dir", os.path.relpath(module.source_root, root),
            "--build-dir", "build",
            "--check", os.path.relpath(module.path, root),
        ]

    def run(self, module, dependency_artifacts: Sequence[Path]) -> CommandResult:
        cmd = self.command(module)
        env = os.environ.copy()
        env["IDRIS2_PATH"] = join_search_path(dependency_artifacts)
        self.log.debug(f"Running command: `{' '.join(cmd)}` (IDRIS2_PATH={env['IDRIS2_PATH']})")

        start = time.time()
        try:
            proc = subprocess.run(cmd, cwd=module.package_root, env=env,
                                  stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                  text=True, timeout=self.timeout)
            return CommandResult(cmd, proc.returncode, proc.stdout, proc.stderr, time.time() - start)
        except subprocess.TimeoutExpired:
            return CommandResult(cmd, -1, "", f"Timeout after {self.timeout}s", time.time() - start)
        except OSError as e:
            return CommandResult(cmd, 127, "", f"Cannot run {self.executable}: {e}", time.time() - start)

    def __call__(self, module, dependency_artifacts: Sequence[Path]) -> CompileResult:
        result = self.run(module, dependency_artifacts)
        self.log.debug(f"{module.identifier}: exit {result.returncode} in {result.duration:.2f}s")
        if result.ok():
            return CompileResult.success(result.stdout.strip())
        return CompileResult.failure((result.stderr or result.stdout).strip())
