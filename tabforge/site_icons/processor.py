"""Decode, normalize and re-encode site icons as CSS data-URL rules."""

from __future__ import annotations

import base64
import io

from PIL import Image, ImageOps, UnidentifiedImageError

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.identity import site_icon_class
from tabforge.icon_policy.models import PIL_FORMATS, IconFormat, ResolvedIcon

ICON_SIZE = 24
ALPHA_VISIBLE_MIN = 32
CONTRAST_THRESHOLD = 0.25


def decode_icon(icon: ResolvedIcon, ref: str) -> Image.Image:
    """Decode `icon` strictly as its declared format and return it as RGBA."""
    pil_format = PIL_FORMATS.get(icon.fmt)
    if pil_format is None:
        raise BuildError(
            ErrorKind.ICON_DECODE,
            f"failed to decode icon for url: {ref} (unsupported format {icon.fmt.value})",
            ref=ref,
        )
    try:
        with Image.open(io.BytesIO(icon.data), formats=[pil_format]) as img:
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as exc:
        raise BuildError(
            ErrorKind.ICON_DECODE,
            f"failed to decode icon for url: {ref}",
            ref=ref,
        ) from exc


def avg_brightness(img: Image.Image) -> float:
    """Average brightness of visible pixels, from 0 to 1.

    Pixels with alpha at or below ALPHA_VISIBLE_MIN are ignored. An image with
    no visible pixels has brightness 0.
    """
    raw = img.convert("RGBA").tobytes()
    total = 0.0
    count = 0
    for idx in range(0, len(raw), 4):
        if raw[idx + 3] > ALPHA_VISIBLE_MIN:
            total += (raw[idx] + raw[idx + 1] + raw[idx + 2]) / 3
            count += 1
    if count == 0:
        return 0.0
    return total / count / 255


def should_invert(brightness: float, dark: bool) -> bool:
    if dark:
        return brightness < CONTRAST_THRESHOLD
    return brightness > 1 - CONTRAST_THRESHOLD


def invert_rgb(img: Image.Image) -> Image.Image:
    rgba = img.convert("RGBA")
    r, g, b, a = rgba.split()
    rgb = ImageOps.invert(Image.merge("RGB", (r, g, b)))
    return Image.merge("RGBA", (*rgb.split(), a))


def normalize_icon(
    img: Image.Image,
    size: int = ICON_SIZE,
    *,
    dark: bool,
    invert_low_contrast: bool,
) -> Image.Image:
    out = img.convert("RGBA").resize((size, size), Image.Resampling.LANCZOS)
    if invert_low_contrast and should_invert(avg_brightness(out), dark):
        out = invert_rgb(out)
    return out


def encode_png(img: Image.Image, ref: str) -> bytes:
    buf = io.BytesIO()
    try:
        img.save(buf, format="PNG")
    except (OSError, ValueError) as exc:
        raise BuildError(
            ErrorKind.ICON_ENCODE,
            f"failed to encode icon for url: {ref}",
            ref=ref,
        ) from exc
    return buf.getvalue()


def css_rule(url: str, png: bytes) -> str:
    data = base64.b64encode(png).decode("ascii")
    return f".{site_icon_class(url)}{{background-image:url(data:image/png;base64,{data})}}"


def process_icon(
    img: Image.Image,
    url: str,
    *,
    size: int = ICON_SIZE,
    dark: bool,
    invert_low_contrast: bool,
) -> str:
    normalized = normalize_icon(img, size, dark=dark, invert_low_contrast=invert_low_contrast)
    return css_rule(url, encode_png(normalized, url))


def as_png_icon(png: bytes, source: str) -> ResolvedIcon:
    return ResolvedIcon(data=png, fmt=IconFormat.PNG, source=source)
