"""HTTP surface for the TKML server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, PlainTextResponse, Response

from tkml.cache.watcher import ChangeFeed
from tkml.config import ServerConfig
from tkml.exceptions import DocumentNotFoundError
from tkml.page import MarkupCompiler
from tkml.paths import normalize_identifier
from tkml.request import CORS_HEADERS, RequestOrchestrator
from tkml.service import TkmlService

logger = logging.getLogger(__name__)

PREFLIGHT_HEADERS = {**CORS_HEADERS, "Access-Control-Max-Age": "86400"}


async def read_form_params(request: Request) -> Dict[str, Any]:
    """Parse a POST body (JSON object or form data) into the form bag."""
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            data = await request.json()
            return data if isinstance(data, dict) else {}
        if (
            "application/x-www-form-urlencoded" in content_type
            or "multipart/form-data" in content_type
        ):
            form = await request.form()
            return {key: value for key, value in form.items()}
    except Exception as e:
        logger.error("Error parsing POST data: %s", e)
    return {}


def static_response(config: ServerConfig, path: str) -> Response | None:
    """Serve a static asset, or None if ``path`` is not one."""
    media_type = config.static_types.get(Path(path).suffix.lower())
    if media_type is None:
        return None

    try:
        identifier = normalize_identifier(path)
    except DocumentNotFoundError:
        return PlainTextResponse(f"File not found: {path}", status_code=404)

    file_path = config.root_dir / identifier
    if not file_path.is_file():
        return PlainTextResponse(f"File not found: {identifier}", status_code=404)

    return FileResponse(
        file_path,
        media_type=media_type,
        headers={"Cache-Control": config.static_cache_control},
    )


def create_app(
    config: ServerConfig | None = None, compiler: MarkupCompiler | None = None
) -> FastAPI:
    """Create the FastAPI app with its own service and change feed."""
    config = config or ServerConfig.load()
    service = TkmlService.from_config(config, compiler)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup/shutdown."""
        feed = None
        if config.watch:
            feed = ChangeFeed(service.cache, config.root_dir, config.watched_files())
            feed.start()
        yield
        if feed is not None:
            feed.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.service = service

    @app.options("/{path:path}")
    async def preflight(path: str) -> Response:
        """Answer CORS preflight requests."""
        return Response(status_code=204, headers=PREFLIGHT_HEADERS)

    @app.api_route("/{path:path}", methods=["GET", "POST"])
    async def serve(path: str, request: Request) -> Response:
        """Serve static assets directly and render everything else."""
        static = static_response(config, path)
        if static is not None:
            return static

        form_params: Dict[str, Any] = {}
        if request.method == "POST":
            form_params = await read_form_params(request)

        orchestrator = RequestOrchestrator(
            service, dict(request.query_params), form_params
        )
        result = await orchestrator.handle(path, request.headers.get("accept", ""))
        return Response(
            content=result.body,
            status_code=result.status,
            media_type=result.media_type,
            headers=result.headers,
        )

    return app
