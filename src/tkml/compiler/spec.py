"""Compiler IR spec - synthesized programs, render frames and outcomes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, List, Set, Union

from tkml.ast.spec import (
    INLINE_DELIMITERS,
    PROCEDURE_DELIMITERS,
    Delimiters,
    Segment,
)


class Syntax(str, enum.Enum):
    """Scripting syntax a server is configured for."""

    # <? ?> regions synthesized into one program per document
    PROCEDURE = "procedure"
    # {{ }} regions evaluated one expression at a time
    INLINE = "inline"

    @property
    def delimiters(self) -> Delimiters:
        if self is Syntax.INLINE:
            return INLINE_DELIMITERS
        return PROCEDURE_DELIMITERS


@dataclass
class Program:
    """A synthesized program for one document. Never cached."""

    identifier: str
    source: str
    segments: List[Segment] = field(default_factory=list)
    syntax: Syntax = Syntax.PROCEDURE


@dataclass(frozen=True)
class Continue:
    """Rendering finished normally."""

    output: str
    terminated: ClassVar[bool] = False


@dataclass(frozen=True)
class Terminated:
    """``finish()`` was called; ``output`` is the final response body."""

    output: str
    terminated: ClassVar[bool] = True


Outcome = Union[Continue, Terminated]


@dataclass
class RenderFrame:
    """State for rendering a single document within a request.

    ``in_flight`` holds the identifiers on the include chain from the
    top-level document down to this one. A child gets its own copy, so
    siblings never see each other's entries.
    """

    identifier: str
    in_flight: FrozenSet[str]
    dependencies: Set[str] = field(default_factory=set)
    exports: Dict[str, Any] = field(default_factory=dict)
    exported: Dict[str, Any] = field(default_factory=dict)
    freshness: int = 0
    cacheable: bool = True

    @classmethod
    def root(cls, identifier: str) -> "RenderFrame":
        return cls(identifier=identifier, in_flight=frozenset({identifier}))

    def child(self, identifier: str) -> "RenderFrame":
        return RenderFrame(identifier=identifier, in_flight=self.in_flight | {identifier})

    def absorb(self, child: "RenderFrame") -> None:
        """Merge a finished child's dependencies, exports and cacheability."""
        self.dependencies.update(child.dependencies)
        self.exports.update(child.exported)
        self.freshness = max(self.freshness, child.freshness)
        self.cacheable = self.cacheable and child.cacheable
