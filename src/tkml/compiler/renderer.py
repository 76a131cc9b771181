"""Renderer - runs documents through parse, synthesis and the sandbox.

Every render returns an Outcome: ``Continue(output)`` for a normal render,
``Terminated(output)`` once ``finish()`` has been called anywhere in the
request. A terminated render stops emitting its own output and the result
travels back up through every enclosing include unchanged.

A document may have a companion script next to it (``list.tkml`` and
``list.script``). The script runs in the same sandbox before the document;
its top-level ``set`` bindings are visible to the document, and a
``finish()`` there decides the output without running the document.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Any, Dict, List, Optional

from tkml.ast.parser import Parser
from tkml.ast.spec import Code, Literal
from tkml.cache.store import CacheEntry, CacheManager
from tkml.compiler.compiler import Compiler, expression_source, script_source
from tkml.compiler.extensions import build_capabilities, get_sandbox_env
from tkml.compiler.resolver import IncludeResolver
from tkml.compiler.spec import Continue, Outcome, Program, RenderFrame, Syntax, Terminated
from tkml.context import RequestContext
from tkml.exceptions import ScriptExecutionError
from tkml.paths import DEFAULT_SCRIPT_EXTENSION, script_identifier

log = logging.getLogger(__name__)


class _Finished(Exception):
    """Unwinds a companion script at its ``finish()`` call."""


def error_marker(message: Any) -> str:
    return f"[Error: {message}]"


class Renderer:
    """Renders documents for requests, filling and reading the processed tier."""

    def __init__(
        self,
        cache: CacheManager,
        syntax: Syntax = Syntax.PROCEDURE,
        script_extension: Optional[str] = DEFAULT_SCRIPT_EXTENSION,
    ):
        self.cache = cache
        self.syntax = syntax
        self.script_extension = script_extension
        self.parser = Parser(syntax.delimiters)
        self.compiler = Compiler(syntax)
        self.env = get_sandbox_env(enable_async=True)
        self.sync_env = get_sandbox_env(enable_async=False)
        self.resolver = IncludeResolver(self)

    async def render(
        self, identifier: str, ctx: RequestContext, frame: RenderFrame
    ) -> Outcome:
        """Render one document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
            ParseError: If the document has an unterminated delimiter.
        """
        if ctx.terminated:
            return Terminated(ctx.termination_result or "")

        entry = self.cache.lookup_processed(identifier, ctx.params_key)
        if entry is not None:
            frame.dependencies.update(entry.dependencies)
            frame.exported.update(entry.exports)
            frame.freshness = max(frame.freshness, entry.freshness)
            ctx.current_dependencies.update(entry.dependencies)
            return Continue(entry.content)

        raw = await self.cache.read_raw(identifier)
        frame.freshness = max(frame.freshness, raw.mtime)

        segments = self.parser.parse(raw.text, identifier)
        program = self.compiler.compile(segments, identifier)

        bindings: Dict[str, Any] = {}
        outcome = await self.run_script(identifier, ctx, frame, bindings)
        if outcome is None:
            outcome = await self.execute(program, ctx, frame, bindings)

        if outcome.terminated:
            frame.cacheable = False
        elif frame.cacheable:
            self.cache.store_processed(
                identifier,
                CacheEntry(
                    content=outcome.output,
                    dependencies=frozenset(frame.dependencies),
                    freshness=frame.freshness,
                    params_key=ctx.params_key,
                    exports=dict(frame.exported),
                ),
            )
        return outcome

    def capabilities(
        self, ctx: RequestContext, frame: RenderFrame, stop_on_finish: bool = False
    ) -> Dict[str, Any]:
        """Bind the per-render primitives to one request and frame."""

        async def include(path: str) -> str:
            outcome = await self.resolver.resolve(ctx, frame, path)
            return outcome.output

        def finish(result: Any = "") -> str:
            log.debug("finish() called in %s", frame.identifier)
            ctx.finish(result)
            if stop_on_finish:
                raise _Finished()
            return ""

        def export(name: str, value: Any) -> str:
            frame.exported[str(name)] = value
            return ""

        return build_capabilities(
            query_params=ctx.query_params,
            form_params=ctx.form_params,
            include=include,
            finish=finish,
            export=export,
            exports=frame.exports,
        )

    async def run_script(
        self,
        identifier: str,
        ctx: RequestContext,
        frame: RenderFrame,
        bindings: Dict[str, Any],
    ) -> Outcome | None:
        """Run the document's companion script, if it has one.

        The script's top-level bindings are added to ``bindings`` and to the
        frame's exports. Returns an outcome when the script decides the
        document's output (``finish()`` or a failure), None otherwise.
        """
        if not self.script_extension:
            return None

        script_id = script_identifier(identifier, self.script_extension)
        if script_id == identifier or not self.cache.exists(script_id):
            # a script created later still reaches the document via the change feed
            self.cache.graph.add_edge(script_id, identifier)
            return None

        raw = await self.cache.read_raw(script_id)
        self.cache.graph.add_edge(script_id, identifier)
        frame.dependencies.add(script_id)
        frame.freshness = max(frame.freshness, raw.mtime)
        ctx.current_dependencies.add(script_id)

        try:
            template = self.env.from_string(script_source(raw.text))
            context = template.new_context(
                self.capabilities(ctx, frame, stop_on_finish=True)
            )
            async with aclosing(template.root_render_func(context)) as stream:
                async for _ in stream:
                    if ctx.terminated:
                        break
        except _Finished:
            pass
        except Exception as exc:
            if not ctx.terminated:
                error = ScriptExecutionError(script_id, str(exc))
                log.error("Error executing script: %s", error)
                return Continue(error_marker(error.message))

        if ctx.terminated:
            return Terminated(ctx.termination_result or "")

        exported = context.get_exported()
        log.debug("%s exported %s", script_id, sorted(exported))
        bindings.update(exported)
        frame.exports.update(exported)
        return None

    async def execute(
        self,
        program: Program,
        ctx: RequestContext,
        frame: RenderFrame,
        bindings: Optional[Dict[str, Any]] = None,
    ) -> Outcome:
        """Run a synthesized program with the capability set bound.

        ``bindings`` are extra names visible to the program; the primitives
        take precedence over them.
        """
        capabilities = {**(bindings or {}), **self.capabilities(ctx, frame)}

        if program.syntax is Syntax.INLINE:
            return await self._run_inline(program, ctx, capabilities)
        return await self._run_procedure(program, ctx, capabilities)

    async def _run_procedure(
        self, program: Program, ctx: RequestContext, capabilities: Dict[str, Any]
    ) -> Outcome:
        """Run the whole document as one program; a failure replaces it."""
        chunks: List[str] = []
        try:
            template = self.env.from_string(program.source)
            async with aclosing(template.generate_async(capabilities)) as stream:
                async for chunk in stream:
                    if ctx.terminated:
                        break
                    chunks.append(chunk)
        except Exception as exc:
            if ctx.terminated:
                return Terminated(ctx.termination_result or "")
            error = ScriptExecutionError(program.identifier, str(exc))
            log.error("Error executing script: %s", error)
            return Continue(error_marker(error.message))

        if ctx.terminated:
            return Terminated(ctx.termination_result or "")
        return Continue("".join(chunks))

    async def _run_inline(
        self, program: Program, ctx: RequestContext, capabilities: Dict[str, Any]
    ) -> Outcome:
        """Evaluate expressions one at a time; a failure replaces one segment."""
        chunks: List[str] = []
        for segment in program.segments:
            if ctx.terminated:
                break
            if isinstance(segment, Literal):
                chunks.append(segment.text)
                continue

            try:
                value = await self.evaluate(segment, capabilities)
            except Exception as exc:
                error = ScriptExecutionError(program.identifier, str(exc))
                log.error("Error executing expression %r: %s", segment.body, error)
                value = error_marker(error.message)

            if ctx.terminated:
                break
            chunks.append(value)

        if ctx.terminated:
            return Terminated(ctx.termination_result or "")
        return Continue("".join(chunks))

    async def evaluate(self, segment: Code, capabilities: Dict[str, Any]) -> str:
        """Evaluate a single expression segment to its string form.

        Call expressions may suspend (``include``) and go through the async
        environment; anything else is evaluated synchronously.
        """
        source = expression_source(segment.body)
        if not source:
            return ""
        if segment.is_call:
            return await self.env.from_string(source).render_async(capabilities)
        return self.sync_env.from_string(source).render(capabilities)
