"""Tests for turning filesystem events into cache invalidation."""

from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from tkml.cache import CacheEntry, CacheManager
from tkml.cache.watcher import ChangeFeed, DocumentEventHandler


def _entry(content):
    return CacheEntry(content=content, dependencies=frozenset(), freshness=0)


def _recording_handler(root, config_files=()):
    documents = []
    configs = []
    handler = DocumentEventHandler(
        root,
        on_document=documents.append,
        on_config=lambda: configs.append(True),
        config_files=config_files,
    )
    return handler, documents, configs


def test_document_events_map_to_identifiers(tmp_path):
    handler, documents, _ = _recording_handler(tmp_path)

    handler.dispatch(FileModifiedEvent(str(tmp_path / "docs" / "a.tkml")))
    handler.dispatch(FileCreatedEvent(str(tmp_path / "b.tkml")))
    handler.dispatch(FileDeletedEvent(str(tmp_path / "c.tkml")))

    assert documents == ["docs/a.tkml", "b.tkml", "c.tkml"]


def test_move_reports_both_paths(tmp_path):
    handler, documents, _ = _recording_handler(tmp_path)
    handler.dispatch(FileMovedEvent(str(tmp_path / "old.tkml"), str(tmp_path / "new.tkml")))
    assert documents == ["old.tkml", "new.tkml"]


def test_directory_and_other_events_are_ignored(tmp_path):
    handler, documents, _ = _recording_handler(tmp_path)
    handler.dispatch(DirModifiedEvent(str(tmp_path / "docs")))
    handler.dispatch(FileClosedEvent(str(tmp_path / "a.tkml")))
    assert documents == []


def test_paths_outside_root_are_ignored(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    handler, documents, _ = _recording_handler(root)
    handler.dispatch(FileModifiedEvent(str(tmp_path / "elsewhere.tkml")))
    assert documents == []


def test_config_file_change(tmp_path):
    config_file = tmp_path / "tkml.yaml"
    config_file.write_text("port: 1\n")
    handler, documents, configs = _recording_handler(tmp_path / "src", [config_file])

    handler.dispatch(FileModifiedEvent(str(config_file)))

    assert configs == [True]
    assert documents == []


def test_change_feed_invalidates_cache(tmp_path):
    cache = CacheManager(tmp_path)
    cache.graph.add_edge("part.tkml", "index.tkml")
    cache.store_processed("part.tkml", _entry("p"))
    cache.store_processed("index.tkml", _entry("i"))
    cache.store_processed("other.tkml", _entry("o"))

    feed = ChangeFeed(cache, tmp_path, dispatch=lambda fn, *args: fn(*args))
    feed.handler.dispatch(FileModifiedEvent(str(tmp_path / "part.tkml")))

    assert set(cache.processed) == {"other.tkml"}


def test_change_feed_clears_on_config_change(tmp_path):
    config_file = tmp_path / "tkml.yaml"
    config_file.write_text("")
    root = tmp_path / "src"
    root.mkdir()
    cache = CacheManager(root)
    cache.store_processed("a.tkml", _entry("a"))

    feed = ChangeFeed(
        cache, root, [config_file], dispatch=lambda fn, *args: fn(*args)
    )
    feed.handler.dispatch(FileModifiedEvent(str(config_file)))

    assert cache.processed == {}


def test_change_feed_start_stop(tmp_path):
    config_file = tmp_path / "conf" / "tkml.yaml"
    config_file.parent.mkdir()
    config_file.write_text("")
    root = tmp_path / "src"
    root.mkdir()

    feed = ChangeFeed(
        CacheManager(root), root, [config_file], dispatch=lambda fn, *args: fn(*args)
    )
    feed.start()
    try:
        assert feed._observer is not None
        assert feed._observer.is_alive()
    finally:
        feed.stop()
    assert feed._observer is None
    # stopping twice is harmless
    feed.stop()
