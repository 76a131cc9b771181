"""Request orchestration - one orchestrator per inbound request."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from tkml.compiler.spec import Outcome, RenderFrame
from tkml.context import RequestContext
from tkml.exceptions import DocumentNotFoundError, ParseError
from tkml.paths import normalize_request_path
from tkml.service import TkmlService

log = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Accept",
}


@dataclass
class DocumentResponse:
    """Transport-independent response for one request."""

    status: int
    body: str
    media_type: str
    headers: Dict[str, str] = field(default_factory=dict)


def _plain(status: int, body: str) -> DocumentResponse:
    return DocumentResponse(status=status, body=body, media_type="text/plain")


class RequestOrchestrator:
    """Drives one request from path to response body.

    Owns the request context; the cache and renderer come from the shared
    service.
    """

    def __init__(
        self,
        service: TkmlService,
        query_params: Optional[Mapping[str, Any]] = None,
        form_params: Optional[Mapping[str, Any]] = None,
    ):
        self.service = service
        self.context = RequestContext(
            query_params=dict(query_params or {}),
            form_params=dict(form_params or {}),
        )
        self.identifier: str | None = None
        self.frame: RenderFrame | None = None

    async def render(self, path: str) -> Outcome:
        """Render the document addressed by a request path.

        Raises:
            DocumentNotFoundError: If the path maps to no document.
            ParseError: If the document itself fails to parse.
        """
        config = self.service.config
        identifier = normalize_request_path(
            path, config.document_extension, config.default_document
        )
        if not self.service.cache.exists(identifier):
            raise DocumentNotFoundError(identifier)

        self.identifier = identifier
        self.frame = RenderFrame.root(identifier)
        outcome = await self.service.renderer.render(
            identifier, self.context, self.frame
        )
        log.debug(
            "Rendered %s (terminated=%s, dependencies=%s)",
            identifier,
            outcome.terminated,
            sorted(self.context.current_dependencies),
        )
        return outcome

    async def handle(self, path: str, accept: str = "") -> DocumentResponse:
        """Render ``path`` and build the response for the given Accept header."""
        config = self.service.config
        try:
            outcome = await self.render(path)
            headers = {**CORS_HEADERS, "Cache-Control": "no-cache"}

            if config.raw_media_type in accept:
                return DocumentResponse(
                    status=200,
                    body=outcome.output,
                    media_type=config.raw_media_type,
                    headers=headers,
                )

            assert self.identifier is not None and self.frame is not None
            page = self.service.pages.build(self.identifier, outcome.output, self.frame)
            return DocumentResponse(
                status=200, body=page, media_type="text/html", headers=headers
            )
        except DocumentNotFoundError as exc:
            log.info("Not found: %s", path)
            return _plain(404, f"TKML file not found: {exc.identifier.lstrip('/')}")
        except ParseError as exc:
            log.error("Parse error: %s", exc)
            return _plain(500, f"Parse error: {exc}")
        except Exception:
            log.exception("Error handling %s", path)
            return _plain(500, "Server Error")
