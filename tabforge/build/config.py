"""Page configuration: defaults, loading and icon reference collection."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Dict, List

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.models import SymbolRef

EXAMPLE_CONFIG_PATH = Path(__file__).resolve().parent / "example.json"

DEFAULT_THEME: Dict = {
    "dark": True,
    "invertLowContrastIcons": True,
    "fontFamily": "sans-serif",
    "fontSize": 14,
}

DEFAULT_BUILD: Dict = {
    "desktop": True,
    "mobile": False,
}

DEFAULT_CFG: Dict = {
    "title": "New Tab",
    "theme": DEFAULT_THEME,
    "build": DEFAULT_BUILD,
    "pages": [],
}

DEFAULT_PAGE_ICON = "image_not_supported"
DEFAULT_PAGE_ICON_STYLE = "outlined"

ICON_SIZE = 24
DEFAULT_ICON_CONCURRENCY = 4
DEFAULT_HTTP_TIMEOUT = 30.0


def _config_error(message: str) -> BuildError:
    return BuildError(ErrorKind.CONFIG, message, ref="config")


def _require_name(obj: object, where: str) -> str:
    if not isinstance(obj, dict):
        raise _config_error(f"{where} must be an object")
    name = obj.get("name")
    if not isinstance(name, str) or not name.strip():
        raise _config_error(f"{where} requires a non-empty `name`")
    return name


def _list_of(obj: Dict, key: str, where: str) -> List:
    value = obj.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise _config_error(f"{where}.{key} must be a list")
    return value


def _normalize_link(raw: object, where: str) -> Dict:
    name = _require_name(raw, where)
    url = raw.get("url")
    if not isinstance(url, str) or not url.strip():
        raise _config_error(f"{where} requires a non-empty `url`")
    return {"name": name, "url": url.strip()}


def _normalize_page(raw: object, where: str) -> Dict:
    name = _require_name(raw, where)
    sections = []
    for s_idx, section in enumerate(_list_of(raw, "sections", where)):
        s_where = f"{where}.sections[{s_idx}]"
        s_name = _require_name(section, s_where)
        links = [
            _normalize_link(link, f"{s_where}.links[{l_idx}]")
            for l_idx, link in enumerate(_list_of(section, "links", s_where))
        ]
        sections.append({"name": s_name, "links": links})
    return {
        "name": name,
        "icon": str(raw.get("icon") or DEFAULT_PAGE_ICON),
        "iconStyle": str(raw.get("iconStyle") or DEFAULT_PAGE_ICON_STYLE),
        "sections": sections,
    }


def merge_cfg(payload_cfg: Dict | None, override_cfg: Dict | None = None) -> Dict:
    """Merge a raw config (and optional override) onto DEFAULT_CFG.

    `theme` and `build` merge key by key; unknown theme keys are kept for
    templates. Pages are validated and given their icon defaults.
    """
    merged = copy.deepcopy(DEFAULT_CFG)
    for source in (payload_cfg, override_cfg):
        if not source:
            continue
        if not isinstance(source, dict):
            raise _config_error("config must be an object")
        for key, value in source.items():
            if key in ("theme", "build"):
                if not isinstance(value, dict):
                    raise _config_error(f"`{key}` must be an object")
                merged[key].update(value)
            else:
                merged[key] = value

    if not isinstance(merged.get("title"), str):
        raise _config_error("`title` must be a string")
    if not isinstance(merged.get("pages"), list):
        raise _config_error("`pages` must be a list")
    merged["pages"] = [_normalize_page(page, f"pages[{idx}]") for idx, page in enumerate(merged["pages"])]
    return merged


def load_config(path: Path) -> Dict:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(ErrorKind.CONFIG, "failed to read config file", ref=str(path)) from exc
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BuildError(ErrorKind.CONFIG, "failed to parse config file", ref=str(path)) from exc
    return merge_cfg(raw)


def load_example_config() -> Dict:
    return load_config(EXAMPLE_CONFIG_PATH)


def collect_link_urls(cfg: Dict) -> List[str]:
    urls = []
    for page in cfg.get("pages", []):
        for section in page.get("sections", []):
            for link in section.get("links", []):
                urls.append(link["url"])
    return urls


def collect_symbol_refs(cfg: Dict) -> List[SymbolRef]:
    return [SymbolRef(page["icon"], page["iconStyle"]) for page in cfg.get("pages", [])]


def count_links_in_page(cfg: Dict, page_name: str) -> int:
    for page in cfg.get("pages", []):
        if page.get("name") == page_name:
            return sum(len(section.get("links", [])) for section in page.get("sections", []))
    raise KeyError(page_name)


def _env_int(name: str, default: int, environ: Dict | None = None) -> int:
    env = os.environ if environ is None else environ
    raw = str(env.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_float(name: str, default: float, environ: Dict | None = None) -> float:
    env = os.environ if environ is None else environ
    raw = str(env.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def icon_concurrency(environ: Dict | None = None) -> int:
    return _env_int("TABFORGE_ICON_CONCURRENCY", DEFAULT_ICON_CONCURRENCY, environ)


def http_timeout(environ: Dict | None = None) -> float:
    return _env_float("TABFORGE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, environ)
