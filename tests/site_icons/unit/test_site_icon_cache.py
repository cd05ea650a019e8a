import io
import os

import pytest

from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.identity import icon_identity
from tabforge.site_icons.cache import CACHE_TTL_SECONDS, SiteIconCache

URL = "https://example.com"
NOW = 1_700_000_000.0


def _cache(root, **kwargs):
    kwargs.setdefault("now_fn", lambda: NOW)
    kwargs.setdefault("stderr", None)
    return SiteIconCache(root, **kwargs)


def _age(path, seconds):
    ts = NOW - seconds
    os.utime(path, (ts, ts))


def test_put_then_get_round_trips_under_identity_name(tmp_path):
    cache = _cache(tmp_path / "site_icons")
    path = cache.put(URL, b"png-bytes")

    assert path == tmp_path / "site_icons" / icon_identity(URL)
    _age(path, 10)
    assert cache.get(URL) == b"png-bytes"


def test_get_missing_entry_returns_none(tmp_path):
    assert _cache(tmp_path).get(URL) is None


def test_ttl_default_is_one_week():
    assert CACHE_TTL_SECONDS == 7 * 24 * 60 * 60


def test_entry_just_under_ttl_is_a_hit(tmp_path):
    cache = _cache(tmp_path)
    path = cache.put(URL, b"fresh")
    _age(path, CACHE_TTL_SECONDS - 1)

    assert cache.get(URL) == b"fresh"
    assert path.exists()


def test_entry_at_ttl_is_evicted(tmp_path):
    cache = _cache(tmp_path)
    path = cache.put(URL, b"stale")
    _age(path, CACHE_TTL_SECONDS)

    assert cache.get(URL) is None
    assert not path.exists()


def test_eviction_then_refill_replaces_entry(tmp_path):
    cache = _cache(tmp_path)
    path = cache.put(URL, b"old")
    _age(path, CACHE_TTL_SECONDS + 60)
    assert cache.get(URL) is None

    cache.put(URL, b"new")
    _age(path, 1)
    assert cache.get(URL) == b"new"


def test_unreadable_timestamp_fails_open(tmp_path):
    def _broken_stat(path):
        raise OSError("stat unsupported")

    cache = _cache(tmp_path, stat_fn=_broken_stat)
    path = cache.put(URL, b"kept")
    _age(path, CACHE_TTL_SECONDS * 10)

    assert cache.get(URL) == b"kept"


def test_read_failure_is_cache_read_error(tmp_path):
    cache = _cache(tmp_path)
    cache.path_for(URL).mkdir(parents=True)

    with pytest.raises(BuildError) as excinfo:
        cache.get(URL)
    assert excinfo.value.kind is ErrorKind.CACHE_READ
    assert excinfo.value.ref == URL


def test_put_into_unusable_root_is_cache_dir_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    cache = _cache(blocker / "site_icons")

    with pytest.raises(BuildError) as excinfo:
        cache.put(URL, b"x")
    assert excinfo.value.kind is ErrorKind.CACHE_DIR


def test_verbose_cache_logs_eviction(tmp_path):
    buf = io.StringIO()
    cache = _cache(tmp_path, stderr=buf, verbose=True)
    path = cache.put(URL, b"x")
    _age(path, CACHE_TTL_SECONDS)
    cache.get(URL)

    assert "evicted expired icon" in buf.getvalue()
