"""Configuration parsing for tkml.yaml"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, ValidationError

from tkml.compiler.spec import Syntax
from tkml.exceptions import ConfigError

CONFIG_ENV_VAR = "TKML_CONFIG"
DEFAULT_CONFIG_FILE = "tkml.yaml"

DEFAULT_STATIC_TYPES = {
    ".js": "application/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".txt": "text/plain",
}


class ServerConfig(BaseModel):
    """Full tkml.yaml configuration"""

    root_dir: Path = Path("./src")
    host: str = "127.0.0.1"
    port: int = 8348

    syntax: Syntax = Syntax.PROCEDURE
    document_extension: str = ".tkml"
    default_document: str = "index.tkml"
    # companion script next to each document; None disables them
    script_extension: str | None = ".script"
    raw_media_type: str = "application/tkml"

    # HTML page
    page_template: Path | None = None
    page_title: str = "TKML App"
    runtime_url: str = "https://tkml.app/tkml.min.js"
    stylesheet_url: str = "https://tkml.app/styles.min.css"
    version: str = "19"
    compiler: str = "passthrough"

    watch: bool = True
    static_types: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_STATIC_TYPES)
    )
    static_cache_control: str = "max-age=3600"

    # set by load(), not read from the file
    config_path: Path | None = Field(default=None, exclude=True)

    @classmethod
    def load(cls, path: Path | None = None) -> "ServerConfig":
        """Load config from a yaml file.

        Falls back to ``$TKML_CONFIG`` and then ``./tkml.yaml``. A missing
        file yields the defaults. Relative paths in the file are taken
        relative to the file's directory.
        """
        if path is None:
            path = Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE))

        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")

        base = path.parent
        for key in ("root_dir", "page_template"):
            value = data.get(key)
            if value and not Path(value).is_absolute():
                data[key] = str(base / value)

        try:
            config = cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

        config.config_path = path
        return config

    def watched_files(self) -> List[Path]:
        """Files whose modification clears every cache tier."""
        files = []
        if self.config_path is not None:
            files.append(self.config_path)
        if self.page_template is not None:
            files.append(self.page_template)
        return files
