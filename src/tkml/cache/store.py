"""Multi-tier document cache.

Three independent tiers, all keyed by document identifier:

- raw: file text plus the mtime it was read at, re-read once the file changes
- processed: rendered markup plus the dependency set and freshness stamp
- compiled: compiler output for the processed markup, same shape

A processed/compiled entry is a hit only while the document and every
dependency recorded for it are no newer on disk than the entry's freshness.
The check goes to the filesystem each time instead of trusting other
entries' stamps.

The cache is shared by every request without locking. Requests racing to
fill the same entry compute the same value, so the last writer wins.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Set

from tkml.ast.parser import read_file
from tkml.cache.graph import DependencyGraph
from tkml.exceptions import DocumentNotFoundError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawEntry:
    """File text plus the modification time observed when it was read."""

    text: str
    mtime: int


@dataclass
class CacheEntry:
    """A processed or compiled cache entry.

    ``freshness`` is the newest modification time (ns) among the files the
    content was produced from.
    """

    content: str
    dependencies: FrozenSet[str]
    freshness: int
    params_key: str = ""
    source_key: str = ""
    exports: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0


class CacheManager:
    """Process-wide cache tiers and dependency graph.

    Created once at startup and handed by reference to every request.
    """

    def __init__(self, root: Path, graph: Optional[DependencyGraph] = None):
        self.root = Path(root)
        self.graph = graph or DependencyGraph()
        self.raw: Dict[str, RawEntry] = {}
        self.processed: Dict[str, CacheEntry] = {}
        self.compiled: Dict[str, CacheEntry] = {}
        self.stats = CacheStats()

    # ------------------------------------------------------------------
    # Filesystem
    # ------------------------------------------------------------------

    def path_for(self, identifier: str) -> Path:
        return self.root / identifier

    def mtime(self, identifier: str) -> int | None:
        """Current modification time in ns, or None if the file is gone."""
        try:
            stat = self.path_for(identifier).stat()
        except OSError:
            return None
        return stat.st_mtime_ns

    def exists(self, identifier: str) -> bool:
        return self.path_for(identifier).is_file()

    async def read_raw(self, identifier: str) -> RawEntry:
        """Return the raw tier entry, reading the file on first access.

        A cached text whose file has been modified or removed since it was
        read is dropped and the file is read again. Only the raw entry is
        dropped here; processed entries built from the old text fail their
        own freshness check.

        Raises:
            DocumentNotFoundError: If the file does not exist.
        """
        path = self.path_for(identifier)
        mtime = self.mtime(identifier)

        entry = self.raw.get(identifier)
        if entry is not None:
            if entry.mtime == mtime:
                return entry
            log.info("Raw text of %s changed on disk", identifier)
            del self.raw[identifier]

        if mtime is None or not path.is_file():
            raise DocumentNotFoundError(identifier)

        try:
            text = await asyncio.to_thread(read_file, str(path))
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(identifier) from exc

        entry = RawEntry(text=text, mtime=mtime)
        self.raw[identifier] = entry
        log.debug("Read %s (%d bytes)", identifier, len(text))
        return entry

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup_processed(self, identifier: str, params_key: str) -> CacheEntry | None:
        entry = self.processed.get(identifier)
        if entry is None or entry.params_key != params_key:
            return self._miss(identifier, "processed")
        if not self.check_fresh(identifier, entry):
            return self._miss(identifier, "processed")
        return self._hit(identifier, "processed", entry)

    def lookup_compiled(self, identifier: str, source_key: str) -> CacheEntry | None:
        entry = self.compiled.get(identifier)
        if entry is None or entry.source_key != source_key:
            return self._miss(identifier, "compiled")
        if not self.check_fresh(identifier, entry):
            return self._miss(identifier, "compiled")
        return self._hit(identifier, "compiled", entry)

    def store_processed(self, identifier: str, entry: CacheEntry) -> None:
        self.processed[identifier] = entry

    def store_compiled(self, identifier: str, entry: CacheEntry) -> None:
        self.compiled[identifier] = entry

    def check_fresh(self, identifier: str, entry: CacheEntry) -> bool:
        """Check an entry against the current filesystem state.

        A stale entry is invalidated together with every stale dependency,
        so the next read goes back to disk.
        """
        stale = [
            dep
            for dep in sorted({identifier, *entry.dependencies})
            if (mtime := self.mtime(dep)) is None or mtime > entry.freshness
        ]
        if not stale:
            return True

        log.info("Stale cache entry %s (changed: %s)", identifier, ", ".join(stale))
        for dep in stale:
            self.invalidate(dep)
        self.invalidate(identifier)
        return False

    def _hit(self, identifier: str, tier: str, entry: CacheEntry) -> CacheEntry:
        self.stats.hits += 1
        log.debug("Cache hit: %s [%s]", identifier, tier)
        return entry

    def _miss(self, identifier: str, tier: str) -> None:
        self.stats.misses += 1
        log.debug("Cache miss: %s [%s]", identifier, tier)
        return None

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, identifier: str) -> Set[str]:
        """Evict ``identifier`` and everything that includes it.

        Returns the set of identifiers visited by this pass.
        """
        visited: Set[str] = set()
        self._invalidate(identifier, visited)
        return visited

    def _invalidate(self, identifier: str, visited: Set[str]) -> None:
        if identifier in visited:
            return
        visited.add(identifier)

        evicted = False
        for tier in (self.raw, self.processed, self.compiled):
            if tier.pop(identifier, None) is not None:
                evicted = True
        if evicted:
            self.stats.invalidations += 1
            log.debug("Invalidated %s", identifier)

        dependents = self.graph.dependents(identifier)
        self.graph.drop_dependent(identifier)
        for dependent in dependents:
            self._invalidate(dependent, visited)

    def clear(self) -> None:
        """Drop every tier and the dependency graph."""
        self.raw.clear()
        self.processed.clear()
        self.compiled.clear()
        self.graph.clear()
        log.info("Cleared all cache tiers")
