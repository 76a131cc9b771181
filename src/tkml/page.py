"""HTML page assembly around the external markup compiler.

The markup compiler turns rendered TKML into HTML plus the client runtime
script. The real compiler lives outside this server, so it is pluggable:
built-ins are looked up by name, anything else is loaded from a
``module:Class`` reference.
"""

from __future__ import annotations

import hashlib
import importlib
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Mapping, Type

from tkml.cache.store import CacheEntry, CacheManager
from tkml.compiler.spec import RenderFrame
from tkml.config import ServerConfig
from tkml.exceptions import CompilerError

log = logging.getLogger(__name__)

HTML_WRAPPER = """<!DOCTYPE html>
<html>
<head>
    <title>{{title}}</title>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <link rel="stylesheet" href="{{stylesheetUrl}}?{{version}}">
    <script src="{{runtimeUrl}}?{{version}}"></script>
</head>
<body>
    <div id="container" class="tkml-cont">{{content}}</div>
    <script>
        const tkml = new TKML(document.getElementById('container'), { dark: true, URLControl: true, instanceId: {{instanceId}} });
        {{js}}
    </script>
</body>
</html>"""

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def fill_placeholders(template: str, values: Mapping[str, str]) -> str:
    """Substitute ``{{name}}`` placeholders in one pass.

    Substituted text is never scanned again, so content that happens to
    contain ``{{...}}`` is left alone. Unknown placeholders stay as they are.
    """

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        return values[name]

    return PLACEHOLDER.sub(replace, template)


@dataclass
class CompiledMarkup:
    html: str
    js: str
    instance_id: str


class MarkupCompiler(ABC):
    """Base class for markup compilers."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def compile(self, markup: str) -> CompiledMarkup:
        """Compile rendered markup into HTML and runtime script."""
        ...


class PassthroughCompiler(MarkupCompiler):
    """Hands the markup to the client runtime untouched."""

    def __init__(self) -> None:
        self.instance_id = uuid.uuid4().hex

    @property
    def name(self) -> str:
        return "passthrough"

    def compile(self, markup: str) -> CompiledMarkup:
        return CompiledMarkup(html=markup, js="", instance_id=self.instance_id)


_COMPILERS: Dict[str, Type[MarkupCompiler]] = {
    "passthrough": PassthroughCompiler,
}


def load_compiler(reference: str) -> MarkupCompiler:
    """Create a compiler from a registry name or a ``module:Class`` reference."""
    if reference in _COMPILERS:
        return _COMPILERS[reference]()

    module_name, _, attr = reference.partition(":")
    if not attr:
        raise CompilerError(f"Unknown markup compiler: {reference}")

    try:
        module = importlib.import_module(module_name)
        cls = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise CompilerError(f"Cannot load markup compiler {reference}: {exc}") from exc

    compiler = cls()
    if not isinstance(compiler, MarkupCompiler):
        raise CompilerError(f"{reference} is not a MarkupCompiler")
    return compiler


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode()).hexdigest()[:16]


class PageBuilder:
    """Builds full HTML pages and keeps them in the compiled tier."""

    def __init__(
        self,
        config: ServerConfig,
        cache: CacheManager,
        compiler: MarkupCompiler | None = None,
    ):
        self.config = config
        self.cache = cache
        self.compiler = compiler or load_compiler(config.compiler)

    def template(self) -> str:
        """Page template text, read on every call so edits apply after a clear."""
        if self.config.page_template is None:
            return HTML_WRAPPER
        return self.config.page_template.read_text(encoding="utf-8")

    def build(self, identifier: str, markup: str, frame: RenderFrame) -> str:
        source_key = _digest(markup)
        entry = self.cache.lookup_compiled(identifier, source_key)
        if entry is not None:
            return entry.content

        compiled = self.compiler.compile(markup)
        page = fill_placeholders(
            self.template(),
            {
                "title": self.config.page_title,
                "stylesheetUrl": self.config.stylesheet_url,
                "runtimeUrl": self.config.runtime_url,
                "version": self.config.version,
                "content": compiled.html,
                "js": compiled.js,
                "instanceId": json.dumps(compiled.instance_id),
            },
        )

        if frame.cacheable:
            self.cache.store_compiled(
                identifier,
                CacheEntry(
                    content=page,
                    dependencies=frozenset(frame.dependencies),
                    freshness=frame.freshness,
                    source_key=source_key,
                ),
            )
        log.debug("Compiled %s with %s", identifier, self.compiler.name)
        return page
