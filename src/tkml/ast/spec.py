"""Segment model - the parsed form of a TKML document."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union


class CodeKind(str, enum.Enum):
    """How a code segment is turned into output."""

    EXPRESSION = "expression"
    STATEMENT = "statement"


@dataclass(frozen=True)
class Literal:
    """Literal document text, emitted unchanged."""

    source: str

    @property
    def text(self) -> str:
        return self.source


@dataclass(frozen=True)
class Code:
    """A delimited scripting region.

    ``source`` is the exact original text including delimiters,
    ``body`` is the code between them.
    """

    source: str
    body: str
    kind: CodeKind
    is_call: bool = False
    position: int = 0

    @property
    def is_expression(self) -> bool:
        return self.kind is CodeKind.EXPRESSION


Segment = Union[Literal, Code]


@dataclass(frozen=True)
class Delimiters:
    """Open/close token pair plus the optional forced-expression marker."""

    open: str
    close: str
    expression_marker: str | None = None
    statements: bool = True


# <? statement ?> and <?= expression ?>
PROCEDURE_DELIMITERS = Delimiters(open="<?", close="?>", expression_marker="=")

# {{ expression }} - every region is a single expression
INLINE_DELIMITERS = Delimiters(open="{{", close="}}", statements=False)
