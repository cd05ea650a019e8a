"""Deterministic identifiers for icons, used as cache keys and HTML/CSS ids."""

from __future__ import annotations

import base64
import hashlib
from typing import Union

IDENTITY_LEN = 8


def icon_identity(value: Union[bytes, str]) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    digest = hashlib.sha1(value).digest()
    return base64.b32hexencode(digest).decode("ascii").lower()[:IDENTITY_LEN]


def site_icon_class(url: str) -> str:
    return f"ico-{icon_identity(url)}"


def svg_icon_id(name: str, style: str) -> str:
    return f"svg-{icon_identity(f'{name} {style}')}"


def svg_icon_href(name: str, style: str) -> str:
    return f"#{svg_icon_id(name, style)}"
