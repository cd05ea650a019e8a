"""Diagnostics written to stderr in `[scope] <timestamp> <message>` form."""

from datetime import datetime
from typing import Optional, TextIO


def log(stderr: Optional[TextIO], scope: str, msg: str) -> None:
    if stderr is None:
        return
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{scope}] {ts} {msg}", file=stderr)


def debug(stderr: Optional[TextIO], verbose: bool, scope: str, msg: str) -> None:
    if not verbose:
        return
    log(stderr, scope, msg)
