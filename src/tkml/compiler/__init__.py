"""Program synthesis, sandboxed execution and include resolution."""

from tkml.compiler.spec import (
    Continue,
    Outcome,
    Program,
    RenderFrame,
    Syntax,
    Terminated,
)
from tkml.compiler.compiler import Compiler
from tkml.compiler.resolver import IncludeResolver
from tkml.compiler.renderer import Renderer

__all__ = [
    "Compiler",
    "Renderer",
    "IncludeResolver",
    "Continue",
    "Outcome",
    "Program",
    "RenderFrame",
    "Syntax",
    "Terminated",
]
