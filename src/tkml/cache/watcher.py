"""Change feed - turns filesystem events into cache invalidation.

watchdog delivers events on its own thread. They are handed to the event
loop through ``call_soon_threadsafe`` so cache state is only ever touched
from the loop thread.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Set

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from tkml.cache.store import CacheManager
from tkml.paths import identifier_for

log = logging.getLogger(__name__)

Dispatch = Callable[..., Any]

_CHANGE_EVENTS = {
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
}


def _as_path(raw: Any) -> Path:
    return Path(os.fsdecode(raw))


class DocumentEventHandler(FileSystemEventHandler):
    """Maps watchdog events to document identifiers or config changes."""

    def __init__(
        self,
        root: Path,
        on_document: Callable[[str], None],
        on_config: Callable[[], None],
        config_files: Iterable[Path] = (),
    ):
        self.root = Path(root)
        self.on_document = on_document
        self.on_config = on_config
        self.config_files: Set[Path] = {Path(p).resolve() for p in config_files}

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return

        self.handle(_as_path(event.src_path))
        dest = getattr(event, "dest_path", "")
        if dest:
            self.handle(_as_path(dest))

    def handle(self, path: Path) -> None:
        if path.resolve() in self.config_files:
            log.info("Configuration changed: %s", path)
            self.on_config()
            return

        identifier = identifier_for(path, self.root)
        if identifier is not None:
            log.debug("Document changed: %s", identifier)
            self.on_document(identifier)


class ChangeFeed:
    """Watches the document root and config files for the lifetime of a server."""

    def __init__(
        self,
        cache: CacheManager,
        root: Path,
        config_files: Iterable[Path] = (),
        dispatch: Optional[Dispatch] = None,
    ):
        self.cache = cache
        self.root = Path(root)
        self.config_files = [Path(p) for p in config_files]
        self.dispatch = dispatch
        self.handler = DocumentEventHandler(
            self.root, self._on_document, self._on_config, self.config_files
        )
        self._observer: Optional[Any] = None

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if self.dispatch is None:
            loop = loop or asyncio.get_running_loop()
            self.dispatch = loop.call_soon_threadsafe

        observer = Observer()
        observer.schedule(self.handler, str(self.root), recursive=True)

        root = self.root.resolve()
        watched_dirs = {root}
        for config_file in self.config_files:
            parent = config_file.resolve().parent
            if parent in watched_dirs or root in parent.parents:
                continue
            watched_dirs.add(parent)
            observer.schedule(self.handler, str(parent), recursive=False)

        observer.start()
        self._observer = observer
        log.info("Watching %s for changes", self.root)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def _on_document(self, identifier: str) -> None:
        assert self.dispatch is not None
        self.dispatch(self.cache.invalidate, identifier)

    def _on_config(self) -> None:
        assert self.dispatch is not None
        self.dispatch(self.cache.clear)
