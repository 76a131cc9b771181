from pathlib import Path

import pytest

from tkml.compiler import Syntax
from tkml.config import ServerConfig
from tkml.exceptions import ConfigError


def test_defaults_when_file_missing(tmp_path):
    config = ServerConfig.load(tmp_path / "tkml.yaml")

    assert config.port == 8348
    assert config.root_dir == Path("./src")
    assert config.syntax is Syntax.PROCEDURE
    assert config.script_extension == ".script"
    assert config.static_types[".js"] == "application/javascript"
    assert config.config_path is None
    assert config.watched_files() == []


def test_load_resolves_relative_paths(tmp_path):
    cfg = tmp_path / "tkml.yaml"
    cfg.write_text(
        "root_dir: site\n"
        "port: 9000\n"
        "syntax: inline\n"
        "page_template: templates/page.html\n"
        "static_types:\n"
        "  .mjs: text/javascript\n"
    )
    config = ServerConfig.load(cfg)

    assert config.root_dir == tmp_path / "site"
    assert config.page_template == tmp_path / "templates" / "page.html"
    assert config.port == 9000
    assert config.syntax is Syntax.INLINE
    assert config.static_types == {".mjs": "text/javascript"}
    assert config.watched_files() == [cfg, tmp_path / "templates" / "page.html"]


def test_absolute_root_is_kept(tmp_path):
    cfg = tmp_path / "tkml.yaml"
    cfg.write_text(f"root_dir: {tmp_path / 'abs'}\n")
    assert ServerConfig.load(cfg).root_dir == tmp_path / "abs"


def test_env_var_points_at_config(tmp_path, monkeypatch):
    cfg = tmp_path / "custom.yaml"
    cfg.write_text("port: 1234\n")
    monkeypatch.setenv("TKML_CONFIG", str(cfg))
    assert ServerConfig.load().port == 1234


def test_empty_file_gives_defaults(tmp_path):
    cfg = tmp_path / "tkml.yaml"
    cfg.write_text("")
    assert ServerConfig.load(cfg).port == 8348


def test_invalid_yaml(tmp_path):
    cfg = tmp_path / "tkml.yaml"
    cfg.write_text("port: [unclosed\n")
    with pytest.raises(ConfigError):
        ServerConfig.load(cfg)


def test_non_mapping(tmp_path):
    cfg = tmp_path / "tkml.yaml"
    cfg.write_text("- a\n- b\n")
    with pytest.raises(ConfigError):
        ServerConfig.load(cfg)


def test_invalid_values(tmp_path):
    cfg = tmp_path / "tkml.yaml"
    cfg.write_text("port: not-a-number\nsyntax: php\n")
    with pytest.raises(ConfigError) as exc_info:
        ServerConfig.load(cfg)
    assert "port" in str(exc_info.value)


def test_companion_scripts_can_be_switched_off(tmp_path):
    cfg = tmp_path / "tkml.yaml"
    cfg.write_text("script_extension: null\n")
    assert ServerConfig.load(cfg).script_extension is None
