"""Symbol pass: sync the icon mirror once and build one hidden SVG sprite sheet."""

from __future__ import annotations

import sys
import time
from typing import Callable, Iterable, List, Optional, TextIO

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.log import debug, log
from tabforge.icon_policy.models import RepositoryMirror, SymbolRef

from .extractor import load_icon, to_symbol_def
from .repo_sync import MirrorBackend, SyncResult, SyncState, ensure_synced

SCOPE = "svg_icons"


def unique_refs(refs: Iterable[SymbolRef]) -> List[SymbolRef]:
    seen = set()
    out: List[SymbolRef] = []
    for ref in refs:
        if ref in seen:
            continue
        seen.add(ref)
        out.append(ref)
    return out


def build_symbol_sprite(
    refs: Iterable[SymbolRef],
    *,
    mirror: RepositoryMirror,
    backend: MirrorBackend,
    ensure_synced_fn: Callable[..., SyncResult] = ensure_synced,
    stderr: Optional[TextIO] = sys.stderr,
    verbose: bool = False,
) -> str:
    """Return `<svg style="display:none"><defs>...</defs></svg>` for `refs`.

    An icon missing from a mirror left conflicted by the sync is reported as a
    conflict rather than a plain missing icon.
    """
    log(stderr, SCOPE, "building svg icons")
    started = time.monotonic()
    unique = unique_refs(refs)
    if not unique:
        return '<svg style="display:none"><defs></defs></svg>'
    sync = ensure_synced_fn(mirror, backend, stderr=stderr, verbose=verbose)

    defs: List[str] = []
    for ref in unique:
        try:
            src = load_icon(mirror.path, ref.name, ref.style)
        except BuildError as exc:
            if sync.state is SyncState.CONFLICTED and exc.kind is ErrorKind.ICON_NOT_FOUND:
                raise BuildError(
                    ErrorKind.CONFLICT,
                    f"icon repo merge left conflicts; icon '{ref.name}' of style '{ref.style}' is missing",
                    ref=(ref.name, ref.style),
                    path=exc.path,
                ) from exc
            raise
        defs.append(to_symbol_def(src, ref.name, ref.style))

    elapsed_ms = int((time.monotonic() - started) * 1000)
    debug(stderr, verbose, SCOPE, f"finished building svg icons count={len(defs)} elapsed_ms={elapsed_ms}")
    return f'<svg style="display:none"><defs>{"".join(defs)}</defs></svg>'
