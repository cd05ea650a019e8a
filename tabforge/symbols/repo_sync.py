"""Keep a local mirror of the icon asset repository synchronized.

The mirror moves through three states:

- ABSENT: nothing on disk yet; the remote is cloned.
- SYNCED: the local branch tip equals the remote tip or a merge of it.
- CONFLICTED: a merge left conflicts in the working copy; nothing was
  committed. Icons that are still readable can be extracted, missing ones
  fail the build.

The state machine only talks to a `MirrorBackend`, so a different storage
(for example a plain content-addressed download) can replace git.
"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, TextIO

from tabforge.icon_policy.log import debug, log
from tabforge.icon_policy.models import RepositoryMirror

SCOPE = "svg_icons"


class SyncState(str, Enum):
    ABSENT = "absent"
    SYNCED = "synced"
    CONFLICTED = "conflicted"


class MergeAnalysis(str, Enum):
    UP_TO_DATE = "up_to_date"
    FAST_FORWARD = "fast_forward"
    NORMAL = "normal"


SYNC_ACTIONS = ("cloned", "fast_forward", "merged", "conflicted", "up_to_date")


@dataclass(frozen=True)
class SyncResult:
    state: SyncState
    action: str
    tip: Optional[str] = None


class MirrorBackend(Protocol):
    def is_present(self, mirror: RepositoryMirror) -> bool: ...

    def clone(self, mirror: RepositoryMirror) -> None: ...

    def fetch(self, mirror: RepositoryMirror) -> str:
        """Fetch the tracked branch and return the remote tip id."""

    def analyze(self, mirror: RepositoryMirror, remote_tip: str) -> MergeAnalysis: ...

    def fast_forward(self, mirror: RepositoryMirror, remote_tip: str) -> None: ...

    def merge(self, mirror: RepositoryMirror, remote_tip: str) -> bool:
        """Merge `remote_tip` into the local branch. Return False on conflicts."""


def mirror_state(mirror: RepositoryMirror, backend: MirrorBackend) -> SyncState:
    return SyncState.SYNCED if backend.is_present(mirror) else SyncState.ABSENT


def ensure_synced(
    mirror: RepositoryMirror,
    backend: MirrorBackend,
    *,
    stderr: Optional[TextIO] = sys.stderr,
    verbose: bool = False,
) -> SyncResult:
    """Bring `mirror` up to date with its remote branch.

    Backend failures propagate unchanged; there is no fallback source.
    """
    started = time.monotonic()
    if mirror_state(mirror, backend) is SyncState.ABSENT:
        log(stderr, SCOPE, f"cloning svg icons repo repo_url={mirror.remote_url} repo_dir={mirror.path}")
        backend.clone(mirror)
        result = SyncResult(SyncState.SYNCED, "cloned")
    else:
        log(stderr, SCOPE, f"pulling svg icons repo repo_url={mirror.remote_url} repo_dir={mirror.path}")
        remote_tip = backend.fetch(mirror)
        analysis = backend.analyze(mirror, remote_tip)
        debug(stderr, verbose, SCOPE, f"merge analysis={analysis.value} remote_tip={remote_tip}")
        if analysis is MergeAnalysis.FAST_FORWARD:
            backend.fast_forward(mirror, remote_tip)
            result = SyncResult(SyncState.SYNCED, "fast_forward", remote_tip)
        elif analysis is MergeAnalysis.NORMAL:
            if backend.merge(mirror, remote_tip):
                result = SyncResult(SyncState.SYNCED, "merged", remote_tip)
            else:
                log(stderr, SCOPE, f"merge conflicts detected repo_dir={mirror.path}")
                result = SyncResult(SyncState.CONFLICTED, "conflicted", remote_tip)
        else:
            result = SyncResult(SyncState.SYNCED, "up_to_date", remote_tip)

    elapsed_ms = int((time.monotonic() - started) * 1000)
    debug(stderr, verbose, SCOPE, f"repo sync action={result.action} elapsed_ms={elapsed_ms}")
    return result
