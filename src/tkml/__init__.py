"""TKML - server-side renderer for TKML documents with embedded scripting"""

from tkml._version import __version__
from tkml.cache import CacheEntry, CacheManager, DependencyGraph
from tkml.compiler import Continue, Renderer, RenderFrame, Syntax, Terminated
from tkml.config import ServerConfig
from tkml.context import RequestContext
from tkml.exceptions import (
    CircularIncludeError,
    CompilerError,
    ConfigError,
    DocumentNotFoundError,
    ParseError,
    ScriptExecutionError,
    TkmlError,
)
from tkml.request import DocumentResponse, RequestOrchestrator
from tkml.service import TkmlService

__all__ = [
    "__version__",
    # cache
    "CacheEntry",
    "CacheManager",
    "DependencyGraph",
    # rendering
    "Continue",
    "Renderer",
    "RenderFrame",
    "Syntax",
    "Terminated",
    "RequestContext",
    "RequestOrchestrator",
    "DocumentResponse",
    "TkmlService",
    "ServerConfig",
    # errors
    "TkmlError",
    "DocumentNotFoundError",
    "CircularIncludeError",
    "ParseError",
    "ScriptExecutionError",
    "ConfigError",
    "CompilerError",
]
