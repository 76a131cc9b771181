"""TKML document model and segment parser."""

from tkml.ast.parser import Parser, classify, unparse
from tkml.ast.spec import (
    INLINE_DELIMITERS,
    PROCEDURE_DELIMITERS,
    Code,
    CodeKind,
    Delimiters,
    Literal,
    Segment,
)

__all__ = [
    "Parser",
    "classify",
    "unparse",
    "Code",
    "CodeKind",
    "Delimiters",
    "Literal",
    "Segment",
    "INLINE_DELIMITERS",
    "PROCEDURE_DELIMITERS",
]
