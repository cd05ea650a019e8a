"""Render the new tab page from Jinja2 templates and built icon assets."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError
from markupsafe import Markup

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.identity import icon_identity, site_icon_class, svg_icon_href
from tabforge.icon_policy.models import IconAssets

from .config import count_links_in_page

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
HTML_TEMPLATE = "index.html.j2"
CSS_TEMPLATE = "styles.css.j2"


def build_environment(cfg: Dict, *, autoescape: bool) -> Environment:
    """Jinja2 environment exposing the icon helpers to templates.

    Filters: `hash`, `site_icon`. Globals: `svg_icon_href(icon, style)`,
    `count_links_in_page(page_name)` and `len(arr)`.
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=autoescape,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )

    def _svg_icon_href(icon: str, style: str) -> str:
        return svg_icon_href(icon, style)

    def _count_links(page_name: str) -> int:
        try:
            return count_links_in_page(cfg, page_name)
        except KeyError:
            raise BuildError(ErrorKind.TEMPLATE, f"page not found: {page_name}", ref=page_name) from None

    env.filters["hash"] = icon_identity
    env.filters["site_icon"] = site_icon_class
    env.globals["svg_icon_href"] = _svg_icon_href
    env.globals["count_links_in_page"] = _count_links
    env.globals["len"] = len
    return env


def read_template_override(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(ErrorKind.CONFIG, "failed to read template file", ref=str(path), path=Path(path)) from exc


def _render(env: Environment, name: str, source: Optional[str], context: Dict) -> str:
    try:
        template = env.get_template(name) if source is None else env.from_string(source)
        return template.render(context)
    except TemplateError as exc:
        label = name if source is None else f"{name} (override)"
        raise BuildError(ErrorKind.TEMPLATE, f"failed to render template: {label}", ref=label) from exc


def render_page(
    cfg: Dict,
    assets: IconAssets,
    html_template: Optional[str] = None,
    css_template: Optional[str] = None,
) -> str:
    """Render the stylesheet, wrap it in `<style>`, then render the page.

    `html_template` and `css_template` are template sources replacing the
    bundled ones.
    """
    context = {
        "config": cfg,
        "include_site_icons": Markup(assets.site_icons),
        "include_svg_icons": Markup(assets.svg_icons),
    }
    css = _render(build_environment(cfg, autoescape=False), CSS_TEMPLATE, css_template, context)
    context["include_styles"] = Markup(f"<style>{css}</style>")
    return _render(build_environment(cfg, autoescape=True), HTML_TEMPLATE, html_template, context)
