"""Resolver - resolves include() calls to rendered documents.

Each include:
1. resolves the target against the including document (or the root)
2. records the reverse edge in the dependency graph and the dependency
   in the including frame and the request
3. refuses targets already on the include chain (circular include)
4. renders the target in a child frame and merges the child back in

Failures never propagate to the includer; they come back as inline
``[Error ...]`` markers so the rest of the document still renders.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tkml.compiler.spec import Continue, Outcome, RenderFrame, Terminated
from tkml.context import RequestContext
from tkml.exceptions import CircularIncludeError, DocumentNotFoundError, ParseError
from tkml.paths import resolve_include

if TYPE_CHECKING:
    from tkml.compiler.renderer import Renderer

log = logging.getLogger(__name__)


class IncludeResolver:
    """Resolves include targets through the renderer and its cache."""

    def __init__(self, renderer: "Renderer"):
        self.renderer = renderer

    @property
    def graph(self):
        return self.renderer.cache.graph

    async def resolve(
        self, ctx: RequestContext, frame: RenderFrame, target: str
    ) -> Outcome:
        """Resolve ``target`` as included from ``frame``'s document."""
        if ctx.terminated:
            return Terminated(ctx.termination_result or "")

        target = str(target)
        try:
            identifier = resolve_include(target, frame.identifier)
        except DocumentNotFoundError:
            log.error("Import path escapes document root: %s", target)
            return Continue(f"[Error: Import file not found: {target}]")

        self.graph.add_edge(identifier, frame.identifier)
        frame.dependencies.add(identifier)
        ctx.current_dependencies.add(identifier)

        if identifier in frame.in_flight:
            error = CircularIncludeError(identifier)
            log.error("%s (from %s)", error, frame.identifier)
            frame.cacheable = False
            return Continue(f"[Error: {error}]")

        child = frame.child(identifier)
        try:
            return await self.renderer.render(identifier, ctx, child)
        except DocumentNotFoundError:
            log.error("Import file not found: %s", identifier)
            return Continue(f"[Error: Import file not found: {target}]")
        except (ParseError, OSError, UnicodeDecodeError) as exc:
            log.error("Error importing %s: %s", identifier, exc)
            return Continue(f"[Error importing {target}: {exc}]")
        finally:
            frame.absorb(child)
