"""Shared icon semantics used by both icon engines and the build."""

from .errors import BuildError, ErrorKind
from .identity import icon_identity, site_icon_class, svg_icon_href, svg_icon_id
from .models import (
    IconAssets,
    IconEntry,
    IconFormat,
    RepositoryMirror,
    ResolvedIcon,
    SymbolRef,
)

__all__ = [
    "BuildError",
    "ErrorKind",
    "icon_identity",
    "site_icon_class",
    "svg_icon_href",
    "svg_icon_id",
    "IconAssets",
    "IconEntry",
    "IconFormat",
    "RepositoryMirror",
    "ResolvedIcon",
    "SymbolRef",
]
