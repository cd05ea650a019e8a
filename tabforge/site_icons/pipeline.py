"""Site-icon pass: resolve every unique link URL into one CSS `<style>` block."""

from __future__ import annotations

import asyncio
import sys
import time
from typing import Iterable, List, Optional, TextIO

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.log import debug, log

from .cache import SiteIconCache
from .processor import ICON_SIZE, as_png_icon, decode_icon, encode_png, process_icon
from .resolver import SiteIconResolver

SCOPE = "site_icons"
DEFAULT_CONCURRENCY = 4


def unique_in_order(values: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


async def site_icon_rule(
    url: str,
    *,
    cache: SiteIconCache,
    resolver: SiteIconResolver,
    size: int = ICON_SIZE,
    dark: bool,
    invert_low_contrast: bool,
    stderr: Optional[TextIO] = sys.stderr,
    verbose: bool = False,
) -> str:
    """Produce the CSS rule for one website, reading through the cache."""
    cached = cache.get(url)
    if cached is not None:
        path = cache.path_for(url)
        try:
            img = decode_icon(as_png_icon(cached, str(path)), url)
        except BuildError as exc:
            raise BuildError(
                ErrorKind.CACHE_READ,
                f"failed to decode cached icon @ {path}",
                ref=url,
                path=path,
            ) from exc
        debug(stderr, verbose, SCOPE, f"cache hit url={url}")
    else:
        icon = await resolver.resolve(url)
        img = decode_icon(icon, url)
        cache.put(url, encode_png(img, url))
        debug(stderr, verbose, SCOPE, f"cache miss url={url} icon_url={icon.source}")

    debug(stderr, verbose, SCOPE, f"resizing url={url} size={size}")
    return process_icon(img, url, size=size, dark=dark, invert_low_contrast=invert_low_contrast)


async def build_site_icons(
    urls: Iterable[str],
    *,
    cache: SiteIconCache,
    resolver: SiteIconResolver,
    size: int = ICON_SIZE,
    dark: bool = True,
    invert_low_contrast: bool = True,
    concurrency: int = DEFAULT_CONCURRENCY,
    stderr: Optional[TextIO] = sys.stderr,
    verbose: bool = False,
) -> str:
    """Resolve all unique URLs with at most `concurrency` in flight.

    Rules are emitted in first-seen URL order. The first failure cancels the
    remaining work and propagates.
    """
    log(stderr, SCOPE, "building site icons")
    started = time.monotonic()
    unique_urls = unique_in_order(urls)
    limit = asyncio.Semaphore(max(1, int(concurrency)))

    async def _one(url: str) -> str:
        async with limit:
            return await site_icon_rule(
                url,
                cache=cache,
                resolver=resolver,
                size=size,
                dark=dark,
                invert_low_contrast=invert_low_contrast,
                stderr=stderr,
                verbose=verbose,
            )

    tasks = [asyncio.ensure_future(_one(url)) for url in unique_urls]
    try:
        rules = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    elapsed_ms = int((time.monotonic() - started) * 1000)
    debug(stderr, verbose, SCOPE, f"finished building site icons count={len(rules)} elapsed_ms={elapsed_ms}")
    return f"<style>{''.join(rules)}</style>"
