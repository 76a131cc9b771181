"""Service - the process-wide pieces shared by every request."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tkml.cache.store import CacheManager
from tkml.compiler.renderer import Renderer
from tkml.config import ServerConfig
from tkml.page import MarkupCompiler, PageBuilder

log = logging.getLogger(__name__)


@dataclass
class TkmlService:
    """Config, cache, renderer and page builder for one server process."""

    config: ServerConfig
    cache: CacheManager
    renderer: Renderer
    pages: PageBuilder

    @classmethod
    def from_config(
        cls, config: ServerConfig, compiler: MarkupCompiler | None = None
    ) -> "TkmlService":
        cache = CacheManager(config.root_dir)
        renderer = Renderer(
            cache, syntax=config.syntax, script_extension=config.script_extension
        )
        pages = PageBuilder(config, cache, compiler)
        log.info(
            "Serving %s (syntax=%s, compiler=%s)",
            config.root_dir,
            config.syntax.value,
            pages.compiler.name,
        )
        return cls(config=config, cache=cache, renderer=renderer, pages=pages)
