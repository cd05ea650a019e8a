import io
import json
from pathlib import Path

import pytest

from tabforge.build import cli
from tabforge.icon_policy.errors import BuildError, ErrorKind
from tabforge.icon_policy.models import IconAssets

ASSETS = IconAssets(site_icons="<style></style>", svg_icons='<svg style="display:none"><defs></defs></svg>')


def _config_file(tmp_path):
    path = tmp_path / "newtab.json"
    path.write_text(
        json.dumps(
            {
                "title": "CLI Tab",
                "pages": [{"name": "Home", "sections": [{"name": "S", "links": [{"name": "A", "url": "https://a.test"}]}]}],
            }
        ),
        encoding="utf-8",
    )
    return path


def _fake_assets(calls):
    async def _build(cfg, **kwargs):
        calls.append((cfg, kwargs))
        return ASSETS

    return _build


def test_parse_args_defaults_and_flags(tmp_path):
    opts = cli.parse_args(["tabforge", "conf.json"])
    assert opts.config == Path("conf.json")
    assert opts.output == cli.DEFAULT_OUTPUT
    assert not opts.example and not opts.open_result and not opts.verbose and not opts.quiet

    opts = cli.parse_args(
        ["tabforge", "--example", "-o", "-", "--html=page.html", "--css", "style.css", "-v"]
    )
    assert opts.config is None
    assert opts.example is True
    assert opts.output == "-"
    assert opts.html == Path("page.html")
    assert opts.css == Path("style.css")
    assert opts.verbose is True


def test_parse_args_help_returns_none():
    assert cli.parse_args(["tabforge", "--help"]) is None


@pytest.mark.parametrize(
    "argv",
    [
        ["tabforge"],
        ["tabforge", "a.json", "--example"],
        ["tabforge", "a.json", "b.json"],
        ["tabforge", "a.json", "--bogus"],
        ["tabforge", "a.json", "-o"],
        ["tabforge", "a.json", "-o", "-", "--open"],
        ["tabforge", "a.json", "-v", "-q"],
    ],
)
def test_parse_args_usage_errors(argv):
    with pytest.raises(cli.UsageError):
        cli.parse_args(argv)


def test_main_usage_error_exits_2():
    err = io.StringIO()
    assert cli.main(["tabforge"], stderr=err) == 2
    assert "usage: tabforge" in err.getvalue()


def test_main_build_failure_exits_1():
    def _fail(opts, **kwargs):
        raise BuildError(ErrorKind.URL_LOAD, "failed to load url: https://a.test", ref="https://a.test")

    err = io.StringIO()
    assert cli.main(["tabforge", "--example"], run_fn=_fail, stderr=err) == 1
    assert "build failed: failed to load url: https://a.test" in err.getvalue()
    assert "[category=resource_load]" in err.getvalue()


def test_run_writes_page_to_file(tmp_path):
    calls = []
    out = tmp_path / "out.html"
    opts = cli.parse_args(["tabforge", str(_config_file(tmp_path)), "-o", str(out), "-q"])

    path = cli.run(opts, build_icon_assets_fn=_fake_assets(calls), stderr=io.StringIO())

    assert path == out
    assert "<title>CLI Tab</title>" in out.read_text(encoding="utf-8")
    cfg, kwargs = calls[0]
    assert cfg["title"] == "CLI Tab"
    assert kwargs == {"stderr": None, "verbose": False}


def test_run_writes_to_stdout(tmp_path):
    stdout = io.StringIO()
    opts = cli.parse_args(["tabforge", str(_config_file(tmp_path)), "-o", "-"])

    assert cli.run(opts, build_icon_assets_fn=_fake_assets([]), stdout=stdout, stderr=io.StringIO()) is None
    assert stdout.getvalue().startswith("<!DOCTYPE html>")


def test_run_uses_template_overrides_and_opens_result(tmp_path):
    html = tmp_path / "page.html"
    html.write_text("{{ config.title }}{{ include_styles }}", encoding="utf-8")
    css = tmp_path / "style.css"
    css.write_text("b{}", encoding="utf-8")
    out = tmp_path / "out.html"
    opened = []
    opts = cli.parse_args(
        ["tabforge", str(_config_file(tmp_path)), "-o", str(out), "--html", str(html), "--css", str(css), "--open"]
    )

    cli.run(opts, build_icon_assets_fn=_fake_assets([]), open_fn=opened.append, stderr=io.StringIO())

    assert out.read_text(encoding="utf-8") == "CLI Tab<style>b{}</style>"
    assert opened == [out.resolve().as_uri()]


def test_run_with_example_config(tmp_path):
    calls = []
    opts = cli.parse_args(["tabforge", "--example", "-o", str(tmp_path / "example.html")])
    cli.run(opts, build_icon_assets_fn=_fake_assets(calls), stderr=io.StringIO())
    assert calls[0][0]["pages"]


def test_output_failure_is_output_error(tmp_path):
    with pytest.raises(BuildError) as excinfo:
        cli.write_output("x", str(tmp_path / "missing-dir" / "out.html"))
    assert excinfo.value.kind is ErrorKind.OUTPUT


def test_main_missing_config_exits_1(tmp_path):
    err = io.StringIO()
    assert cli.main(["tabforge", str(tmp_path / "nope.json")], stderr=err) == 1
    assert "build failed: failed to read config file" in err.getvalue()
    assert "[category=config]" in err.getvalue()
