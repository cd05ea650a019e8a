"""Data models shared by the site-icon and symbol engines."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class IconFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    ICO = "ico"
    SVG = "svg"


# Pillow format names for the raster formats we decode.
PIL_FORMATS = {
    IconFormat.PNG: "PNG",
    IconFormat.JPEG: "JPEG",
    IconFormat.ICO: "ICO",
}


@dataclass(frozen=True)
class SymbolRef:
    name: str
    style: str


@dataclass(frozen=True)
class ResolvedIcon:
    data: bytes
    fmt: IconFormat
    source: str


@dataclass(frozen=True)
class IconEntry:
    url: str
    fmt: IconFormat
    body: Optional[bytes] = None


@dataclass(frozen=True)
class RepositoryMirror:
    path: Path
    remote_url: str
    branch: str = "main"
    remote_name: str = "origin"


@dataclass(frozen=True)
class IconAssets:
    site_icons: str
    svg_icons: str
