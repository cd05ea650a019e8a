"""`MirrorBackend` implemented with the `git` executable."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.log import debug
from tabforge.icon_policy.models import RepositoryMirror

from .repo_sync import MergeAnalysis

SCOPE = "svg_icons"
GIT_TIMEOUT_SECONDS = 600

# Used for merge commits in the mirror when no identity is configured.
DEFAULT_IDENTITY = {
    "GIT_AUTHOR_NAME": "tabforge",
    "GIT_AUTHOR_EMAIL": "tabforge@localhost",
    "GIT_COMMITTER_NAME": "tabforge",
    "GIT_COMMITTER_EMAIL": "tabforge@localhost",
}


def _tail(text: str, limit: int = 400) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


class GitCliBackend:
    def __init__(
        self,
        *,
        git: str = "git",
        timeout: float = GIT_TIMEOUT_SECONDS,
        run_fn: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        environ: Optional[dict] = None,
        stderr: Optional[TextIO] = sys.stderr,
        verbose: bool = False,
    ) -> None:
        self.git = git
        self.timeout = timeout
        self._run = run_fn
        env = dict(os.environ if environ is None else environ)
        for key, value in DEFAULT_IDENTITY.items():
            env.setdefault(key, value)
        env["GIT_TERMINAL_PROMPT"] = "0"
        self._env = env
        self._stderr = stderr
        self._verbose = verbose

    def _call(
        self,
        mirror: RepositoryMirror,
        args: List[str],
        *,
        cwd: Optional[Path] = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd = [self.git]
        if cwd is not None:
            cmd += ["-C", str(cwd)]
        cmd += args
        debug(self._stderr, self._verbose, SCOPE, "run " + " ".join(cmd))
        try:
            proc = self._run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._env,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise BuildError(
                ErrorKind.REPOSITORY_SYNC,
                f"git {args[0]} failed for repo: {mirror.remote_url}",
                ref=mirror.remote_url,
                path=mirror.path,
            ) from exc
        if check and proc.returncode != 0:
            raise BuildError(
                ErrorKind.REPOSITORY_SYNC,
                f"git {args[0]} failed for repo: {mirror.remote_url} "
                f"(exit {proc.returncode}: {_tail(proc.stderr)})",
                ref=mirror.remote_url,
                path=mirror.path,
            )
        return proc

    def _git(self, mirror: RepositoryMirror, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        return self._call(mirror, list(args), cwd=mirror.path, check=check)

    def _is_ancestor(self, mirror: RepositoryMirror, ancestor: str, descendant: str) -> bool:
        proc = self._git(mirror, "merge-base", "--is-ancestor", ancestor, descendant, check=False)
        if proc.returncode in (0, 1):
            return proc.returncode == 0
        raise BuildError(
            ErrorKind.REPOSITORY_SYNC,
            f"git merge-base failed for repo: {mirror.remote_url} "
            f"(exit {proc.returncode}: {_tail(proc.stderr)})",
            ref=mirror.remote_url,
            path=mirror.path,
        )

    def _head(self, mirror: RepositoryMirror) -> Optional[str]:
        proc = self._git(mirror, "rev-parse", "--verify", "--quiet", "HEAD^{commit}", check=False)
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None

    def is_present(self, mirror: RepositoryMirror) -> bool:
        return (mirror.path / ".git").exists()

    def clone(self, mirror: RepositoryMirror) -> None:
        try:
            mirror.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildError(
                ErrorKind.CACHE_DIR,
                f"failed to locate cache dir @ {mirror.path.parent}",
                ref=mirror.remote_url,
                path=mirror.path.parent,
            ) from exc
        self._call(
            mirror,
            [
                "clone",
                "--origin",
                mirror.remote_name,
                "--branch",
                mirror.branch,
                mirror.remote_url,
                str(mirror.path),
            ],
        )

    def fetch(self, mirror: RepositoryMirror) -> str:
        tracking = f"refs/remotes/{mirror.remote_name}/{mirror.branch}"
        self._git(
            mirror,
            "fetch",
            "--tags",
            mirror.remote_name,
            f"+refs/heads/{mirror.branch}:{tracking}",
        )
        proc = self._git(mirror, "rev-parse", "--verify", f"{tracking}^{{commit}}")
        return proc.stdout.strip()

    def analyze(self, mirror: RepositoryMirror, remote_tip: str) -> MergeAnalysis:
        head = self._head(mirror)
        if head is None:
            return MergeAnalysis.FAST_FORWARD
        if head == remote_tip or self._is_ancestor(mirror, remote_tip, head):
            return MergeAnalysis.UP_TO_DATE
        if self._is_ancestor(mirror, head, remote_tip):
            return MergeAnalysis.FAST_FORWARD
        return MergeAnalysis.NORMAL

    def fast_forward(self, mirror: RepositoryMirror, remote_tip: str) -> None:
        ref = f"refs/heads/{mirror.branch}"
        self._git(
            mirror,
            "update-ref",
            "-m",
            f"Fast-Forward: Setting {ref} to id: {remote_tip}",
            ref,
            remote_tip,
        )
        self._git(mirror, "symbolic-ref", "HEAD", ref)
        self._git(mirror, "checkout", "--force", mirror.branch, "--")

    def merge(self, mirror: RepositoryMirror, remote_tip: str) -> bool:
        head = self._head(mirror) or "HEAD"
        proc = self._git(
            mirror,
            "merge",
            "--no-ff",
            "--no-edit",
            "-m",
            f"Merge: {remote_tip} into {head}",
            remote_tip,
            check=False,
        )
        if proc.returncode == 0:
            return True
        unmerged = self._git(mirror, "ls-files", "--unmerged")
        if unmerged.stdout.strip():
            return False
        raise BuildError(
            ErrorKind.REPOSITORY_SYNC,
            f"git merge failed for repo: {mirror.remote_url} "
            f"(exit {proc.returncode}: {_tail(proc.stderr)})",
            ref=mirror.remote_url,
            path=mirror.path,
        )
