import asyncio
import os

import pytest

from tkml.config import ServerConfig
from tkml.request import RequestOrchestrator
from tkml.service import TkmlService


def write_docs(root, files):
    """Write ``{relative_path: text}`` under ``root``."""
    for name, text in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def touch_later(path, seconds=10):
    """Push a file's mtime forward so it is newer than any cached entry."""
    stat = path.stat()
    later = stat.st_mtime_ns + seconds * 1_000_000_000
    os.utime(path, ns=(later, later))


@pytest.fixture
def service(tmp_path):
    config = ServerConfig(root_dir=tmp_path, watch=False)
    return TkmlService.from_config(config)


@pytest.fixture
def render(service):
    """Render a request path to its raw output (query params optional)."""

    def _render(path, **query):
        orchestrator = RequestOrchestrator(service, query)
        return asyncio.run(orchestrator.render(path))

    return _render
