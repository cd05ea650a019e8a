"""Cache root discovery and the whole-build advisory lock."""

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import BuildError, ErrorKind

APP_NAME = "tabforge"
SITE_ICONS_SUBDIR = "site_icons"
ICON_REPO_DIRNAME = "material-design-icons"
ICON_REPO_URL = "https://github.com/marella/material-design-icons.git"
ICON_REPO_BRANCH = "main"
LOCK_NAME = ".lock"


def cache_root_base(environ: Optional[dict] = None) -> Path:
    env = os.environ if environ is None else environ
    override = (env.get("TABFORGE_CACHE_DIR") or "").strip()
    if override:
        return Path(override).expanduser()
    xdg = (env.get("XDG_CACHE_HOME") or "").strip()
    if xdg:
        return Path(xdg).expanduser() / APP_NAME
    try:
        home = Path.home()
    except RuntimeError:
        return Path.cwd() / f".{APP_NAME}-cache"
    return home / ".cache" / APP_NAME


def cache_root(environ: Optional[dict] = None) -> Path:
    """Return the cache root, creating it if needed."""
    root = cache_root_base(environ)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildError(
            ErrorKind.CACHE_DIR,
            f"failed to locate cache dir @ {root}",
            ref=str(root),
            path=root,
        ) from exc
    return root


@contextmanager
def build_lock(root: Path) -> Iterator[Path]:
    """Hold an exclusive advisory lock on the cache root for one build.

    A second run sharing the same cache root waits until the first finishes.
    """
    lock_path = root / LOCK_NAME
    try:
        fh = lock_path.open("w")
    except OSError as exc:
        raise BuildError(
            ErrorKind.CACHE_DIR,
            f"failed to open cache lock @ {lock_path}",
            ref=str(root),
            path=lock_path,
        ) from exc
    try:
        fcntl.flock(fh, fcntl.LOCK_EX)
        yield lock_path
    finally:
        try:
            fcntl.flock(fh, fcntl.LOCK_UN)
        finally:
            fh.close()
