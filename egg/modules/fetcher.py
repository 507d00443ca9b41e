# egg/modules/fetcher.py
"""
fetcher.py - obtains a local working copy for a dependency's source descriptor.

- GitSource: cloned (or updated with `git fetch`) under the deps directory,
  then the requested ref is checked out detached; the revision is the commit.
- LocalPath: used in place; the revision is a fingerprint of the tree.
- Results are memoised per descriptor for the lifetime of the fetcher, so a
  run never fetches the same descriptor twice.
"""

import os
import re
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from egg.modules import logger as _logger
from egg.modules.config import config
from egg.modules.manifest import GitSource, LocalPath, SourceDescriptor
from egg.modules.utils import EggError, clean, fingerprint_tree, hash_string


class FetchError(EggError):
    def __init__(self, descriptor, message: str):
        super().__init__(f"{descriptor}: {message}")
        self.descriptor = descriptor
        self.message = message


class NotFound(FetchError):
    pass


class RefNotFound(FetchError):
    pass


class TransportError(FetchError):
    pass


@dataclass(frozen=True)
class FetchResult:
    root: Path
    revision: str


class GitCommandError(Exception):
    def __init__(self, cmd: List[str], returncode: int, stdout: str, stderr: str):
        super().__init__(f"Command failed: {' '.join(cmd)}\nstdout: {stdout}\nstderr: {stderr}")
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


# git's wording when the remote repository itself is missing
_MISSING_REPO = re.compile(
    r"(repository.*not found|does not exist|does not appear to be a git repository"
    r"|not a git repository|could not read from remote repository|returned error: 404)",
    re.IGNORECASE,
)


class SourceFetcher:
    def __init__(self,
                 deps_dir: Optional[str] = None,
                 git: str = "git",
                 logger: Optional[_logger.Logger] = None):
        self.deps_dir = Path(deps_dir or config.deps_dir()).absolute()
        self.git = git
        self.log = logger or _logger.Logger("fetcher")
        self._resolved: Dict[SourceDescriptor, FetchResult] = {}
        self._lock = threading.Lock()

    def fetch(self, descriptor: SourceDescriptor) -> FetchResult:
        with self._lock:
            cached = self._resolved.get(descriptor)
            if cached is not None:
                return cached
            if isinstance(descriptor, LocalPath):
                result = self._fetch_local(descriptor)
            elif isinstance(descriptor, GitSource):
                result = self._fetch_git(descriptor)
            else:
                raise TypeError(f"Unknown source descriptor: {descriptor!r}")
            self._resolved[descriptor] = result
            return result

    # ---------------------------
    # local paths
    # ---------------------------
    def _fetch_local(self, src: LocalPath) -> FetchResult:
        root = Path(src.path).absolute()
        if not root.is_dir():
            raise NotFound(src, "directory does not exist")
        try:
            revision = fingerprint_tree(root)
        except OSError as e:
            raise TransportError(src, f"could not read source tree: {e}") from e
        self.log.debug(f"Local source {root} at {revision[:12]}")
        return FetchResult(root, revision)

    # ---------------------------
    # git
    # ---------------------------
    def checkout_dir(self, src: GitSource) -> Path:
        """`<deps_dir>/<repo>-<hash>`; stable for the same url + ref."""
        base = src.url.rstrip("/").rsplit("/", 1)[-1]
        if base.endswith(".git"):
            base = base[:-4]
        base = re.sub(r"[^A-Za-z0-9_.-]", "_", base) or "repo"
        key = src.url + "#" + (str(src.ref) if src.ref else "")
        return self.deps_dir / f"{base}-{hash_string(key)[:10]}"

    def _run(self, cmd: List[str], cwd=None) -> str:
        self.log.debug(f"Running: {' '.join(cmd)} (cwd={cwd})")
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        res = subprocess.run(cmd, cwd=cwd, env=env,
                             stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        if res.returncode != 0:
            raise GitCommandError(cmd, res.returncode, res.stdout, res.stderr)
        return res.stdout.strip()

    def _fetch_git(self, src: GitSource) -> FetchResult:
        dest = self.checkout_dir(src)
        try:
            if (dest / ".git").is_dir():
                self.log.info(f"Updating {src.url} in {dest}")
                try:
                    self._run([self.git, "fetch", "--quiet", "--tags", "origin"], cwd=dest)
                except GitCommandError as e:
                    raise TransportError(src, e.stderr.strip() or str(e)) from e
            else:
                self.log.info(f"Cloning {src.url} into {dest}")
                clean(dest)
                dest.parent.mkdir(parents=True, exist_ok=True)
                try:
                    self._run([self.git, "clone", "--quiet", src.url, str(dest)])
                except GitCommandError as e:
                    clean(dest)
                    if _MISSING_REPO.search(e.stderr):
                        raise NotFound(src, e.stderr.strip()) from e
                    raise TransportError(src, e.stderr.strip() or str(e)) from e

            commit = self._resolve_ref(src, dest)
            try:
                self._run([self.git, "checkout", "--quiet", "--detach", commit], cwd=dest)
            except GitCommandError as e:
                raise TransportError(src, e.stderr.strip() or str(e)) from e
        except OSError as e:
            raise TransportError(src, str(e)) from e

        self.log.info(f"{src.url} at {commit[:12]}")
        return FetchResult(dest, commit)

    def _resolve_ref(self, src: GitSource, dest: Path) -> str:
        ref = src.ref
        if ref is None:
            candidates = ["origin/HEAD"]
        elif ref.kind == "branch":
            candidates = [f"origin/{ref.name}"]
        elif ref.kind == "tag":
            candidates = [f"refs/tags/{ref.name}"]
        elif ref.kind == "rev":
            candidates = [ref.name]
        else:
            candidates = [f"origin/{ref.name}", f"refs/tags/{ref.name}", ref.name]

        for candidate in candidates:
            try:
                return self._run([self.git, "rev-parse", "--verify", "--quiet",
                                  f"{candidate}^{{commit}}"], cwd=dest)
            except GitCommandError:
                continue
        raise RefNotFound(src, f"ref {ref or 'HEAD'} does not exist")
