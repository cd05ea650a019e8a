"""Load icon SVGs from the mirror and rewrite them as `<symbol>` definitions."""

from __future__ import annotations

import html
import re
from pathlib import Path
from typing import List, Optional, Tuple

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.identity import svg_icon_id

LEGACY_PREFIX = '<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24"'
LEGACY_SUFFIX = "</svg>"

# Root attributes that only make sense on a standalone document.
DROPPED_ATTRS = {"xmlns", "width", "height"}

_ROOT_RE = re.compile(
    r"^\s*(?:<\?xml[^>]*\?>\s*)?(?:<!--.*?-->\s*)*<svg\b(?P<attrs>[^>]*?)(?P<selfclose>/?)>(?P<inner>.*)</svg>\s*$",
    re.DOTALL,
)
_ATTR_RE = re.compile(r"""([^\s=/>]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")


def icon_path(repo_root: Path, name: str, style: str) -> Path:
    return Path(repo_root) / "svg" / style / f"{name}.svg"


def _is_plain_segment(value: str) -> bool:
    return bool(value) and value not in {".", ".."} and "/" not in value and "\\" not in value


def load_icon(repo_root: Path, name: str, style: str) -> str:
    path = icon_path(repo_root, name, style)
    if not (_is_plain_segment(name) and _is_plain_segment(style)) or not path.is_file():
        raise BuildError(
            ErrorKind.ICON_NOT_FOUND,
            f"failed to find icon: '{name}' of style '{style}' @ '{path}'",
            ref=(name, style),
            path=path,
        )
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(
            ErrorKind.ICON_LOAD,
            f"failed to load icon: '{name}' of style '{style}' @ '{path}'",
            ref=(name, style),
            path=path,
        ) from exc


def parse_root(src: str) -> Optional[Tuple[List[Tuple[str, str]], str]]:
    """Split an SVG document into its root attributes and inner markup.

    Returns None when `src` is not a single `<svg>` root element.
    """
    match = _ROOT_RE.match(src)
    if match is None or match.group("selfclose"):
        return None
    attrs = []
    for attr in _ATTR_RE.finditer(match.group("attrs")):
        value = attr.group(2) if attr.group(2) is not None else attr.group(3)
        attrs.append((attr.group(1), html.unescape(value)))
    return attrs, match.group("inner")


def _legacy_symbol_def(src: str, symbol_id: str) -> str:
    body = src.strip()
    middle = body[len(LEGACY_PREFIX):len(body) - len(LEGACY_SUFFIX)]
    return f'<symbol id="{symbol_id}"{middle}</symbol>'


def to_symbol_def(src: str, name: str, style: str) -> str:
    symbol_id = svg_icon_id(name, style)
    parsed = parse_root(src)
    if parsed is None:
        return _legacy_symbol_def(src, symbol_id)

    attrs, inner = parsed
    kept = [
        f' {key}="{html.escape(value, quote=True)}"'
        for key, value in attrs
        if key.lower() not in DROPPED_ATTRS and not key.lower().startswith("xmlns:") and key.lower() != "id"
    ]
    return f'<symbol id="{symbol_id}"{"".join(kept)}>{inner}</symbol>'
