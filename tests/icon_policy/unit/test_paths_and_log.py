import io
import re
from pathlib import Path

import pytest

from tabforge.icon_policy import log as log_mod
from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.paths import LOCK_NAME, build_lock, cache_root, cache_root_base


def test_cache_root_base_prefers_explicit_override(tmp_path):
    env = {"TABFORGE_CACHE_DIR": str(tmp_path / "explicit"), "XDG_CACHE_HOME": str(tmp_path / "xdg")}
    assert cache_root_base(env) == tmp_path / "explicit"


def test_cache_root_base_uses_xdg_then_home(tmp_path, monkeypatch):
    assert cache_root_base({"XDG_CACHE_HOME": str(tmp_path)}) == tmp_path / "tabforge"

    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path / "home"))
    assert cache_root_base({}) == tmp_path / "home" / ".cache" / "tabforge"


def test_cache_root_base_falls_back_to_cwd_without_home(tmp_path, monkeypatch):
    def _no_home(cls):
        raise RuntimeError("Could not determine home directory.")

    monkeypatch.setattr(Path, "home", classmethod(_no_home))
    monkeypatch.chdir(tmp_path)
    assert cache_root_base({}) == Path.cwd() / ".tabforge-cache"


def test_cache_root_creates_directory(tmp_path):
    root = cache_root({"TABFORGE_CACHE_DIR": str(tmp_path / "a" / "b")})
    assert root.is_dir()


def test_cache_root_reports_unusable_location(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        cache_root({"TABFORGE_CACHE_DIR": str(blocker / "nested")})
    assert excinfo.value.kind is ErrorKind.CACHE_DIR


def test_build_lock_can_be_taken_repeatedly(tmp_path):
    with build_lock(tmp_path) as lock_path:
        assert lock_path == tmp_path / LOCK_NAME
        assert lock_path.exists()
    with build_lock(tmp_path):
        pass


def test_log_format_and_silence():
    buf = io.StringIO()
    log_mod.log(buf, "site_icons", "building site icons")
    assert re.match(r"^\[site_icons\] \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} building site icons\n$", buf.getvalue())

    log_mod.log(None, "site_icons", "ignored")


def test_debug_is_gated_by_verbose():
    buf = io.StringIO()
    log_mod.debug(buf, False, "svg_icons", "hidden")
    assert buf.getvalue() == ""
    log_mod.debug(buf, True, "svg_icons", "shown")
    assert "shown" in buf.getvalue()
