"""Compiler - synthesizes a sandbox program from a segment list.

The program is Jinja2 template source built so that, when rendered, it
produces the document output in source order:

- Literal segments become string constants, escaped so the literal form
  cannot be broken by quotes, backslashes or line breaks in the text.
- Expression segments become ``{{ (expr) }}`` output nodes.
- Statement segments are inlined verbatim as ``{% ... %}`` tags, one per
  ``;``- or newline-separated part. Control flow written there can skip or
  repeat the surrounding literal output.
"""

from __future__ import annotations

from typing import List

from tkml.ast.spec import Code, Literal, Segment
from tkml.compiler.spec import Program, Syntax

_QUOTES = {"'", '"'}
_OPENERS = {"(": ")", "[": "]", "{": "}"}


def escape_literal(text: str) -> str:
    """Escape text for a single-quoted template string literal."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )


def literal_source(text: str) -> str:
    if not text:
        return ""
    return "{{ '" + escape_literal(text) + "' }}"


def expression_source(body: str) -> str:
    body = body.strip()
    if not body:
        return ""
    return "{{ (" + body + ") }}"


def split_statements(body: str) -> List[str]:
    """Split a statement block on ``;`` and newlines.

    Separators inside string literals or brackets do not split, so a
    multi-line dict literal stays in one statement.
    """
    parts: List[str] = []
    current: List[str] = []
    quote: str | None = None
    closers: List[str] = []
    escaped = False

    for ch in body:
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue

        if ch in _QUOTES:
            quote = ch
        elif ch in _OPENERS:
            closers.append(_OPENERS[ch])
        elif closers and ch == closers[-1]:
            closers.pop()
        elif ch in ";\n" and not closers:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)

    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def statement_source(body: str) -> str:
    return "".join("{% " + part + " %}" for part in split_statements(body))


def script_source(text: str) -> str:
    """Synthesize a companion script: the whole file is one statement block.

    Lines starting with ``#`` are comments and are dropped before splitting.
    """
    lines = [line for line in text.splitlines() if not line.lstrip().startswith("#")]
    return statement_source("\n".join(lines))


class Compiler:
    """Compiles segment lists into Programs."""

    def __init__(self, syntax: Syntax = Syntax.PROCEDURE):
        self.syntax = syntax

    def compile(self, segments: List[Segment], identifier: str) -> Program:
        """Synthesize the program for one document.

        Statement segments are not validated here; a broken statement shows
        up as a failure when the sandbox compiles and runs the program.
        """
        if self.syntax is Syntax.INLINE:
            # Evaluated one expression at a time by the renderer
            return Program(
                identifier=identifier,
                source="",
                segments=list(segments),
                syntax=self.syntax,
            )

        parts: List[str] = []
        for segment in segments:
            if isinstance(segment, Literal):
                parts.append(literal_source(segment.text))
            elif isinstance(segment, Code) and segment.is_expression:
                parts.append(expression_source(segment.body))
            else:
                parts.append(statement_source(segment.body))

        return Program(
            identifier=identifier,
            source="".join(parts),
            segments=list(segments),
            syntax=self.syntax,
        )
