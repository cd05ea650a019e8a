"""Single error type for the build, tagged with a kind and the offending reference."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union


class ErrorKind(str, Enum):
    URL_LOAD = "url_load"
    ICON_REQUEST = "icon_request"
    ICON_DECODE = "icon_decode"
    ICON_ENCODE = "icon_encode"
    ICON_NOT_FOUND = "icon_not_found"
    ICON_LOAD = "icon_load"
    CACHE_DIR = "cache_dir"
    CACHE_READ = "cache_read"
    CACHE_WRITE = "cache_write"
    REPOSITORY_SYNC = "repository_sync"
    CONFLICT = "conflict"
    CONFIG = "config"
    TEMPLATE = "template"
    OUTPUT = "output"


# Coarse categories used when reporting a failure to the user.
ERROR_CATEGORIES = {
    ErrorKind.URL_LOAD: "resource_load",
    ErrorKind.ICON_REQUEST: "resource_load",
    ErrorKind.ICON_DECODE: "decode",
    ErrorKind.ICON_ENCODE: "encode",
    ErrorKind.ICON_NOT_FOUND: "not_found",
    ErrorKind.ICON_LOAD: "not_found",
    ErrorKind.CACHE_DIR: "cache_unavailable",
    ErrorKind.CACHE_READ: "cache_unavailable",
    ErrorKind.CACHE_WRITE: "cache_unavailable",
    ErrorKind.REPOSITORY_SYNC: "repository_sync",
    ErrorKind.CONFLICT: "conflict",
    ErrorKind.CONFIG: "config",
    ErrorKind.TEMPLATE: "template",
    ErrorKind.OUTPUT: "output",
}

Ref = Union[str, Tuple[str, str], None]


class BuildError(RuntimeError):
    """Raised by any stage of the build.

    `ref` carries the URL, `(icon name, icon style)` pair or resource name the
    failure is about. The underlying exception, if any, is chained as
    `__cause__` and appended to the message.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        ref: Ref = None,
        path: Optional[Path] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.ref = ref
        self.path = path

    @property
    def category(self) -> str:
        return ERROR_CATEGORIES[self.kind]

    def __str__(self) -> str:
        cause = self.__cause__
        if cause is None or not str(cause):
            return self.message
        return f"{self.message} ({cause})"
