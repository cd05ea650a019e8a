"""Pytest configuration for shared markers and image fixtures."""

import io
import shutil

import pytest
from PIL import Image


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "git: needs the git executable; skipped when it is not installed.",
    )


def pytest_collection_modifyitems(config, items):
    if shutil.which("git") is not None:
        return
    skip_git = pytest.mark.skip(reason="git executable not found")
    for item in items:
        if item.get_closest_marker("git") is not None:
            item.add_marker(skip_git)


def _encode(color, size, fmt):
    img = Image.new("RGBA", size, color)
    buf = io.BytesIO()
    if fmt == "JPEG":
        img = img.convert("RGB")
    if fmt == "ICO":
        img.save(buf, format="ICO", sizes=[size])
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    def _make(color=(255, 255, 255, 255), size=(32, 32)):
        return _encode(color, size, "PNG")

    return _make


@pytest.fixture
def ico_bytes():
    def _make(color=(255, 255, 255, 255), size=(32, 32)):
        return _encode(color, size, "ICO")

    return _make


@pytest.fixture
def jpeg_bytes():
    def _make(color=(255, 255, 255, 255), size=(32, 32)):
        return _encode(color, size, "JPEG")

    return _make
