from __future__ import annotations

import re
from typing import List

from tkml.ast.spec import (
    PROCEDURE_DELIMITERS,
    Code,
    CodeKind,
    Delimiters,
    Literal,
    Segment,
)
from tkml.exceptions import ParseError

STATEMENT_KEYWORDS = frozenset(
    {
        "if",
        "elif",
        "else",
        "endif",
        "for",
        "endfor",
        "break",
        "continue",
        "set",
        "endset",
        "macro",
        "endmacro",
        "call",
        "endcall",
        "filter",
        "endfilter",
        "with",
        "endwith",
        "do",
    }
)

_FIRST_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
# name( / obj.method( / f(x)( / items[0](
_CALL = re.compile(r"[\w\)\]]\s*\(")


def classify(body: str) -> CodeKind:
    """Classify a code body as an expression or a statement block."""
    text = body.strip()
    if ";" in text or "{" in text or "}" in text:
        return CodeKind.STATEMENT

    match = _FIRST_WORD.match(text)
    if match and match.group(0) in STATEMENT_KEYWORDS:
        return CodeKind.STATEMENT
    return CodeKind.EXPRESSION


def is_call(body: str) -> bool:
    """True if the expression contains a parenthesized argument list."""
    return _CALL.search(body) is not None


class Parser:
    """Splits document text into literal and code segments.

    Parsing is pure: the result depends only on the text and the delimiters.
    """

    def __init__(self, delimiters: Delimiters = PROCEDURE_DELIMITERS):
        self.delimiters = delimiters

    def parse(self, text: str, identifier: str = "<string>") -> List[Segment]:
        """Parse ``text`` into an ordered segment list.

        Raises:
            ParseError: If an open token has no matching close token.
        """
        open_token = self.delimiters.open
        close_token = self.delimiters.close
        segments: List[Segment] = []
        pos = 0

        while pos < len(text):
            start = text.find(open_token, pos)
            if start == -1:
                segments.append(Literal(text[pos:]))
                break

            if start > pos:
                segments.append(Literal(text[pos:start]))

            body_start = start + len(open_token)
            end = text.find(close_token, body_start)
            if end == -1:
                raise ParseError(
                    identifier, start, f"Unterminated '{open_token}' block"
                )

            source = text[start : end + len(close_token)]
            segments.append(self._make_code(source, text[body_start:end], start))
            pos = end + len(close_token)

        return segments

    def _make_code(self, source: str, body: str, position: int) -> Code:
        marker = self.delimiters.expression_marker
        if marker and body.startswith(marker):
            body = body[len(marker) :]
            kind = CodeKind.EXPRESSION
        elif not self.delimiters.statements:
            kind = CodeKind.EXPRESSION
        else:
            kind = classify(body)

        return Code(
            source=source,
            body=body,
            kind=kind,
            is_call=kind is CodeKind.EXPRESSION and is_call(body),
            position=position,
        )


def unparse(segments: List[Segment]) -> str:
    """Reassemble the original text from a segment list."""
    return "".join(segment.source for segment in segments)


def read_file(filepath: str) -> str:
    """Read a document as-is; line endings are not translated."""
    try:
        with open(filepath, encoding="utf-8", newline="") as f:
            return f.read()
    except OSError as exc:
        raise FileNotFoundError(f"Could not read file: {filepath}") from exc
