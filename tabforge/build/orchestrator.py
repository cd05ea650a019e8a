"""Drive both icon engines for a whole configuration."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Callable, Dict, Optional, TextIO

import httpx

from tabforge.icon_policy.log import log
from tabforge.icon_policy.models import IconAssets, RepositoryMirror
from tabforge.icon_policy.paths import (
    ICON_REPO_BRANCH,
    ICON_REPO_DIRNAME,
    ICON_REPO_URL,
    SITE_ICONS_SUBDIR,
    build_lock,
    cache_root,
)
from tabforge.site_icons.cache import SiteIconCache
from tabforge.site_icons.pipeline import build_site_icons, unique_in_order
from tabforge.site_icons.resolver import SiteIconResolver, build_http_client
from tabforge.symbols.git_backend import GitCliBackend
from tabforge.symbols.pipeline import build_symbol_sprite, unique_refs
from tabforge.symbols.repo_sync import MirrorBackend

from .config import ICON_SIZE, collect_link_urls, collect_symbol_refs, http_timeout, icon_concurrency

SCOPE = "build"


def icon_mirror(root: Path) -> RepositoryMirror:
    return RepositoryMirror(
        path=root / ICON_REPO_DIRNAME,
        remote_url=ICON_REPO_URL,
        branch=ICON_REPO_BRANCH,
    )


async def build_icon_assets(
    cfg: Dict,
    *,
    root: Optional[Path] = None,
    client: Optional[httpx.AsyncClient] = None,
    backend: Optional[MirrorBackend] = None,
    size: int = ICON_SIZE,
    concurrency: Optional[int] = None,
    build_site_icons_fn: Callable = build_site_icons,
    build_symbol_sprite_fn: Callable[..., str] = build_symbol_sprite,
    stderr: Optional[TextIO] = sys.stderr,
    verbose: bool = False,
) -> IconAssets:
    """Build the site-icon `<style>` block and the SVG sprite sheet.

    Both passes run concurrently; the symbol pass does blocking git and disk
    work on a worker thread. References are deduplicated before any I/O. A
    failure in either pass aborts the build once the other pass has stopped,
    so the cache lock is never released while work is still running.
    """
    root = cache_root() if root is None else Path(root)
    theme = cfg.get("theme") or {}
    urls = unique_in_order(collect_link_urls(cfg))
    refs = unique_refs(collect_symbol_refs(cfg))
    log(stderr, SCOPE, f"building icon assets site_icons={len(urls)} svg_icons={len(refs)} cache_root={root}")

    with build_lock(root):
        cache = SiteIconCache(root / SITE_ICONS_SUBDIR, stderr=stderr, verbose=verbose)
        mirror = icon_mirror(root)
        if backend is None:
            backend = GitCliBackend(stderr=stderr, verbose=verbose)
        owns_client = client is None
        if owns_client:
            client = build_http_client(timeout=http_timeout())

        try:
            resolver = SiteIconResolver(client, stderr=stderr, verbose=verbose)
            site_task = asyncio.ensure_future(
                build_site_icons_fn(
                    urls,
                    cache=cache,
                    resolver=resolver,
                    size=size,
                    dark=bool(theme.get("dark", True)),
                    invert_low_contrast=bool(theme.get("invertLowContrastIcons", True)),
                    concurrency=concurrency or icon_concurrency(),
                    stderr=stderr,
                    verbose=verbose,
                )
            )
            symbol_task = asyncio.ensure_future(
                asyncio.to_thread(
                    build_symbol_sprite_fn,
                    refs,
                    mirror=mirror,
                    backend=backend,
                    stderr=stderr,
                    verbose=verbose,
                )
            )
            try:
                site_icons, svg_icons = await asyncio.gather(site_task, symbol_task)
            except BaseException:
                site_task.cancel()
                await asyncio.gather(site_task, symbol_task, return_exceptions=True)
                raise
        finally:
            if owns_client:
                await client.aclose()

    return IconAssets(site_icons=site_icons, svg_icons=svg_icons)
