"""Dependency graph - reverse include edges used for invalidation fan-out."""

from __future__ import annotations

from collections import defaultdict
from typing import DefaultDict, Iterator, Set


class DependencyGraph:
    """Maps an identifier to the documents that include it or run it as a script.

    Edges accumulate across requests. An edge may outlive the include that
    created it, which can only cause extra invalidation, never a missed one.
    """

    def __init__(self) -> None:
        self._dependents: DefaultDict[str, Set[str]] = defaultdict(set)

    def add_edge(self, included: str, includer: str) -> None:
        """Record that ``includer`` includes ``included``."""
        self._dependents[included].add(includer)

    def dependents(self, identifier: str) -> Set[str]:
        """Identifiers that directly include ``identifier`` (a copy)."""
        return set(self._dependents.get(identifier, ()))

    def drop_dependent(self, identifier: str) -> None:
        """Remove every edge where ``identifier`` is the includer."""
        for included in list(self._dependents):
            dependents = self._dependents[included]
            dependents.discard(identifier)
            if not dependents:
                del self._dependents[included]

    def clear(self) -> None:
        self._dependents.clear()

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._dependents

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._dependents))

    def __len__(self) -> int:
        return len(self._dependents)
