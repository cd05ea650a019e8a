#!/usr/bin/env python3
"""Build a self-contained new tab page from a JSON config.

Pipeline:
- Load and validate the config (or the bundled example)
- Fetch, cache and normalize a favicon for every link
- Sync the material icon mirror and extract page icons as SVG symbols
- Render the page and its stylesheet through Jinja2 templates
- Write the page to a file or stdout
"""

from __future__ import annotations

import asyncio
import sys
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.log import log

from .config import load_config, load_example_config
from .orchestrator import build_icon_assets
from .rendering import read_template_override, render_page

SCOPE = "tabforge"
DEFAULT_OUTPUT = "tabforge.html"
STDOUT_MARKER = "-"

USAGE = (
    "usage: tabforge [CONFIG | --example] [-o FILE|-] [--html FILE] [--css FILE] "
    "[--open] [-v|--verbose] [-q|--quiet]"
)


class UsageError(ValueError):
    pass


@dataclass
class Options:
    config: Optional[Path] = None
    example: bool = False
    output: str = DEFAULT_OUTPUT
    html: Optional[Path] = None
    css: Optional[Path] = None
    open_result: bool = False
    verbose: bool = False
    quiet: bool = False


def _value(args: List[str], idx: int, flag: str) -> str:
    if idx + 1 >= len(args):
        raise UsageError(f"{flag} requires a value")
    return args[idx + 1]


def parse_args(argv: List[str]) -> Optional[Options]:
    """Parse argv (program name first). Returns None when help was requested."""
    opts = Options()
    positional: List[str] = []
    args = list(argv[1:])
    idx = 0
    while idx < len(args):
        arg = args[idx]
        if arg in ("-h", "--help"):
            return None
        elif arg in ("-v", "--verbose"):
            opts.verbose = True
        elif arg in ("-q", "--quiet", "--silent"):
            opts.quiet = True
        elif arg == "--example":
            opts.example = True
        elif arg == "--open":
            opts.open_result = True
        elif arg in ("-o", "--output"):
            opts.output = _value(args, idx, arg)
            idx += 1
        elif arg.startswith("--output="):
            opts.output = arg.split("=", 1)[1]
        elif arg == "--html":
            opts.html = Path(_value(args, idx, arg)).expanduser()
            idx += 1
        elif arg.startswith("--html="):
            opts.html = Path(arg.split("=", 1)[1]).expanduser()
        elif arg == "--css":
            opts.css = Path(_value(args, idx, arg)).expanduser()
            idx += 1
        elif arg.startswith("--css="):
            opts.css = Path(arg.split("=", 1)[1]).expanduser()
        elif arg.startswith("-") and arg != STDOUT_MARKER:
            raise UsageError(f"unknown option: {arg}")
        else:
            positional.append(arg)
        idx += 1

    if len(positional) > 1:
        raise UsageError(f"unexpected args: {' '.join(positional[1:])}")
    if positional:
        opts.config = Path(positional[0]).expanduser()
    if (opts.config is None) == (not opts.example):
        raise UsageError("pass exactly one of CONFIG or --example")
    if not opts.output:
        raise UsageError("output path must not be empty")
    if opts.open_result and opts.output == STDOUT_MARKER:
        raise UsageError("--open cannot be used when writing to stdout")
    if opts.verbose and opts.quiet:
        raise UsageError("--verbose and --quiet are mutually exclusive")
    return opts


def write_output(page: str, output: str, *, stdout: TextIO = sys.stdout) -> Optional[Path]:
    if output == STDOUT_MARKER:
        stdout.write(page)
        stdout.flush()
        return None
    path = Path(output).expanduser()
    try:
        path.write_text(page, encoding="utf-8")
    except OSError as exc:
        raise BuildError(ErrorKind.OUTPUT, "failed to write output", ref=str(path), path=path) from exc
    return path


def run(
    opts: Options,
    *,
    build_icon_assets_fn: Callable = build_icon_assets,
    open_fn: Callable[[str], bool] = webbrowser.open,
    stdout: TextIO = sys.stdout,
    stderr: TextIO = sys.stderr,
) -> Optional[Path]:
    diag = None if opts.quiet else stderr
    cfg = load_example_config() if opts.example else load_config(opts.config)
    html_template = read_template_override(opts.html) if opts.html else None
    css_template = read_template_override(opts.css) if opts.css else None

    assets = asyncio.run(build_icon_assets_fn(cfg, stderr=diag, verbose=opts.verbose))
    page = render_page(cfg, assets, html_template=html_template, css_template=css_template)
    path = write_output(page, opts.output, stdout=stdout)
    if path is not None:
        log(diag, SCOPE, f"wrote {path}")
        if opts.open_result:
            open_fn(path.resolve().as_uri())
    return path


def main(argv: List[str], *, run_fn: Callable[..., Optional[Path]] = run, stderr: TextIO = sys.stderr) -> int:
    try:
        opts = parse_args(argv)
    except UsageError as exc:
        print(f"{exc}\n{USAGE}", file=stderr)
        return 2
    if opts is None:
        print(USAGE, file=stderr)
        return 0

    try:
        run_fn(opts, stderr=stderr)
    except BuildError as exc:
        print(f"build failed: {exc} [category={exc.category}]", file=stderr)
        return 1
    return 0


def cli_entry() -> int:
    return main(sys.argv)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
