"""Disk cache for decoded site icons, keyed by website URL with a fixed TTL."""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path
from typing import Callable, Optional, TextIO

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.identity import icon_identity
from tabforge.icon_policy.log import debug, log

CACHE_TTL_SECONDS = 604800  # one week
SCOPE = "site_icon_cache"


class SiteIconCache:
    """Stores PNG bytes under `<root>/<icon_identity(url)>`.

    Entries whose age reaches the TTL are treated as absent and removed on
    lookup. The entry timestamp is the file modification time; when it cannot
    be read the entry is considered fresh.
    """

    def __init__(
        self,
        root: Path,
        *,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        now_fn: Callable[[], float] = time.time,
        stat_fn: Callable[..., os.stat_result] = os.stat,
        stderr: Optional[TextIO] = sys.stderr,
        verbose: bool = False,
    ) -> None:
        self.root = Path(root)
        self.ttl_seconds = ttl_seconds
        self._now = now_fn
        self._stat = stat_fn
        self._stderr = stderr
        self._verbose = verbose

    def path_for(self, url: str) -> Path:
        return self.root / icon_identity(url)

    def _is_expired(self, path: Path) -> bool:
        try:
            created = self._stat(path).st_mtime
        except OSError:
            return False
        return self._now() - created >= self.ttl_seconds

    def get(self, url: str) -> Optional[bytes]:
        path = self.path_for(url)
        if not path.exists():
            return None

        if self._is_expired(path):
            try:
                path.unlink()
            except OSError:
                log(self._stderr, SCOPE, f"failed to remove expired icon from cache path={path}")
            else:
                debug(self._stderr, self._verbose, SCOPE, f"evicted expired icon path={path}")
            return None

        debug(self._stderr, self._verbose, SCOPE, f"reading cached site icon path={path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise BuildError(
                ErrorKind.CACHE_READ,
                f"failed to read cached icon @ {path}",
                ref=url,
                path=path,
            ) from exc

    def put(self, url: str, data: bytes) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildError(
                ErrorKind.CACHE_DIR,
                f"failed to locate cache dir @ {self.root}",
                ref=url,
                path=self.root,
            ) from exc

        path = self.path_for(url)
        debug(self._stderr, self._verbose, SCOPE, f"writing site icon to cache path={path}")
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise BuildError(
                ErrorKind.CACHE_WRITE,
                f"failed to write icon @ {path}",
                ref=url,
                path=path,
            ) from exc
        return path
