"""Discover and download a website's icon.

The page is loaded once and scanned for `<link rel="...icon...">` entries.
When none of them points at `favicon.ico`, the conventional `/favicon.ico`
at the site root is probed as well. Selection prefers any `favicon.ico`
entry, then the first entry that is not an SVG.
"""

from __future__ import annotations

import posixpath
import sys
import urllib.parse
from typing import List, Optional, TextIO

import httpx
from bs4 import BeautifulSoup

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.log import debug
from tabforge.icon_policy.models import IconEntry, IconFormat, ResolvedIcon

SCOPE = "site_icons"
USER_AGENT = "tabforge (looking for icons)"

ICON_RELS = {
    "icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
    "mask-icon",
}

MEDIA_TYPE_FORMATS = {
    "image/png": IconFormat.PNG,
    "image/jpeg": IconFormat.JPEG,
    "image/jpg": IconFormat.JPEG,
    "image/x-icon": IconFormat.ICO,
    "image/vnd.microsoft.icon": IconFormat.ICO,
    "image/ico": IconFormat.ICO,
    "image/icon": IconFormat.ICO,
    "image/svg+xml": IconFormat.SVG,
}

EXTENSION_FORMATS = {
    ".png": IconFormat.PNG,
    ".jpg": IconFormat.JPEG,
    ".jpeg": IconFormat.JPEG,
    ".ico": IconFormat.ICO,
    ".svg": IconFormat.SVG,
}


def build_http_client(timeout: float = 30.0, user_agent: str = USER_AGENT) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": user_agent},
        follow_redirects=True,
    )


def format_for(media_type: Optional[str], url: str) -> Optional[IconFormat]:
    media = (media_type or "").split(";", 1)[0].strip().lower()
    if media in MEDIA_TYPE_FORMATS:
        return MEDIA_TYPE_FORMATS[media]
    path = urllib.parse.urlsplit(url).path
    ext = posixpath.splitext(path)[1].lower()
    return EXTENSION_FORMATS.get(ext)


def sniff_format(data: bytes) -> Optional[IconFormat]:
    """Identify an icon by its leading bytes, whatever the server claims."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return IconFormat.PNG
    if data.startswith(b"\xff\xd8\xff"):
        return IconFormat.JPEG
    if data.startswith(b"\x00\x00\x01\x00"):
        return IconFormat.ICO
    head = data[:256].lstrip().lower()
    if head.startswith(b"<svg") or head.startswith(b"<?xml"):
        return IconFormat.SVG
    return None


def _rel_tokens(value) -> set:
    if isinstance(value, (list, tuple)):
        return {str(v).strip().lower() for v in value}
    return set(str(value or "").lower().split())


def parse_icon_links(html: str, base_url: str) -> List[IconEntry]:
    soup = BeautifulSoup(html, "html.parser")
    entries: List[IconEntry] = []
    seen = set()
    for link in soup.find_all("link"):
        rel = _rel_tokens(link.get("rel"))
        href = (link.get("href") or "").strip()
        if not (rel & ICON_RELS) or not href or href.startswith("data:"):
            continue
        url = urllib.parse.urljoin(base_url, href)
        if url in seen:
            continue
        fmt = format_for(link.get("type"), url)
        if fmt is None:
            continue
        seen.add(url)
        entries.append(IconEntry(url=url, fmt=fmt))
    return entries


def _is_favicon_ico(entry: IconEntry) -> bool:
    return "favicon.ico" in urllib.parse.urlsplit(entry.url).path


def select_icon(website_url: str, entries: List[IconEntry]) -> IconEntry:
    for entry in entries:
        if _is_favicon_ico(entry):
            return entry
    for entry in entries:
        if entry.fmt != IconFormat.SVG:
            return entry
    raise BuildError(
        ErrorKind.ICON_NOT_FOUND,
        f"failed to find icon for url: {website_url}",
        ref=website_url,
    )


class SiteIconResolver:
    """Find and fetch the icon for a website through a shared HTTP client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        stderr: Optional[TextIO] = sys.stderr,
        verbose: bool = False,
    ) -> None:
        self._client = client
        self._stderr = stderr
        self._verbose = verbose

    async def _load_page(self, website_url: str) -> httpx.Response:
        try:
            response = await self._client.get(website_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise BuildError(
                ErrorKind.URL_LOAD,
                f"failed to load url: {website_url}",
                ref=website_url,
            ) from exc
        return response

    async def _probe_default_favicon(self, page_url: str) -> Optional[IconEntry]:
        favicon_url = urllib.parse.urljoin(page_url, "/favicon.ico")
        try:
            response = await self._client.get(favicon_url)
        except httpx.HTTPError:
            return None
        if response.status_code != 200 or not response.content:
            return None
        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        if content_type and not content_type.startswith("image/") and content_type != "application/octet-stream":
            return None
        icon_url = str(response.url)
        fmt = sniff_format(response.content) or format_for(content_type, icon_url)
        if fmt is None or fmt is IconFormat.SVG:
            return None
        return IconEntry(url=icon_url, fmt=fmt, body=response.content)

    async def discover(self, website_url: str) -> List[IconEntry]:
        debug(self._stderr, self._verbose, SCOPE, f"locating remote site icon url={website_url}")
        response = await self._load_page(website_url)
        page_url = str(response.url)
        entries = parse_icon_links(response.text, page_url)
        if not any(_is_favicon_ico(e) for e in entries):
            favicon = await self._probe_default_favicon(page_url)
            if favicon is not None:
                entries.append(favicon)
        return entries

    async def download(self, entry: IconEntry) -> bytes:
        if entry.body is not None:
            return entry.body
        try:
            response = await self._client.get(entry.url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise BuildError(
                ErrorKind.ICON_REQUEST,
                f"failed to download icon for url: {entry.url}",
                ref=entry.url,
            ) from exc
        return response.content

    async def resolve(self, website_url: str) -> ResolvedIcon:
        entries = await self.discover(website_url)
        debug(self._stderr, self._verbose, SCOPE, f"choosing site icon url={website_url} candidates={len(entries)}")
        entry = select_icon(website_url, entries)
        debug(self._stderr, self._verbose, SCOPE, f"downloading site icon icon_url={entry.url}")
        data = await self.download(entry)
        debug(self._stderr, self._verbose, SCOPE, f"downloaded site icon icon_url={entry.url} len={len(data)}")
        fmt = sniff_format(data) or entry.fmt
        if fmt is not entry.fmt:
            debug(self._stderr, self._verbose, SCOPE, f"icon bytes are {fmt.value}, not {entry.fmt.value} icon_url={entry.url}")
        return ResolvedIcon(data=data, fmt=fmt, source=entry.url)
