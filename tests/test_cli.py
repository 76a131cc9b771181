import logging

from typer.testing import CliRunner

from conftest import write_docs

from tkml import __version__
from tkml.cli import app, parse_params, setup_logging

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_render_prints_markup(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    write_docs(tmp_path, {"site/index.tkml": "Hi <?= queryParams.name ?>"})

    result = runner.invoke(
        app, ["render", "/", "--root", str(tmp_path / "site"), "-p", "name=Ann"]
    )
    assert result.exit_code == 0
    assert "Hi Ann" in result.stdout


def test_render_html(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    write_docs(tmp_path, {"site/index.tkml": "<p>x</p>"})

    result = runner.invoke(app, ["render", "/", "--root", str(tmp_path / "site"), "--html"])
    assert result.exit_code == 0
    assert "<!DOCTYPE html>" in result.stdout


def test_render_uses_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    write_docs(
        tmp_path,
        {"tkml.yaml": "root_dir: pages\n", "pages/about.tkml": "about"},
    )
    result = runner.invoke(app, ["render", "/about.tkml"])
    assert result.exit_code == 0
    assert "about" in result.stdout


def test_render_missing_document_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["render", "/nope.tkml", "--root", str(tmp_path)])
    assert result.exit_code == 1
    assert "TKML file not found: nope.tkml" in result.stdout


def test_bad_param_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["render", "/", "--root", str(tmp_path), "-p", "novalue"])
    assert result.exit_code == 1


def test_parse_params():
    assert parse_params(["a=1", "b=x=y"]) == {"a": "1", "b": "x=y"}
    assert parse_params(None) == {}


def test_setup_logging_levels(monkeypatch):
    monkeypatch.delenv("TKML_DEBUG", raising=False)
    setup_logging()
    assert logging.getLogger("tkml").level == logging.WARNING

    setup_logging(verbose=True)
    assert logging.getLogger("tkml").level == logging.INFO

    monkeypatch.setenv("TKML_DEBUG", "1")
    setup_logging()
    assert logging.getLogger("tkml").level == logging.DEBUG


def test_setup_logging_shares_handler_with_uvicorn(monkeypatch):
    monkeypatch.delenv("TKML_DEBUG", raising=False)
    setup_logging(verbose=True)

    tkml_handlers = logging.getLogger("tkml").handlers
    assert len(tkml_handlers) == 1
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        assert logger.handlers == tkml_handlers
        assert logger.level == logging.INFO
        assert logger.propagate is False
