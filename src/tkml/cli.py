"""TKML CLI Entry Point

Usage:
    tkml serve                          # Serve ./src on port 8348
    tkml serve --root docs --port 9000  # Serve another root
    tkml render /docs/                  # Print rendered markup for a path
    tkml render /list.tkml -p page=2    # ... with query parameters
    tkml --version                      # Show version
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from ._version import __version__
from .config import ServerConfig
from .exceptions import ConfigError

console = Console(stderr=True)

app = typer.Typer(help="Server-side renderer for TKML documents.")


# loggers routed through the tkml handler
LOGGERS = ("tkml", "uvicorn", "uvicorn.error", "uvicorn.access")


def _log_level(verbose: bool) -> int:
    if os.environ.get("TKML_DEBUG"):
        return logging.DEBUG
    return logging.INFO if verbose else logging.WARNING


def setup_logging(verbose: bool = False) -> None:
    """Route tkml and uvicorn logging through one Rich handler.

    -v shows cache invalidations and config reloads; TKML_DEBUG=1 adds
    every cache hit/miss and include, with logger names.
    """
    level = _log_level(verbose)
    debug = level == logging.DEBUG

    handler = RichHandler(
        console=console,
        show_time=verbose or debug,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(
        logging.Formatter("%(name)s: %(message)s" if debug else "%(message)s")
    )

    for name in LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers = [handler]
        logger.propagate = False


def load_config(
    config_file: Optional[Path], root: Optional[Path], **overrides
) -> ServerConfig:
    """Load config and apply command-line overrides."""
    try:
        config = ServerConfig.load(config_file)
    except ConfigError as exc:
        typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    updates = {key: value for key, value in overrides.items() if value is not None}
    if root is not None:
        updates["root_dir"] = root
    if updates:
        config = config.model_copy(update=updates)
    return config


def parse_params(params: Optional[List[str]]) -> dict[str, str]:
    """Parse repeated key=value options into a dict."""
    result: dict[str, str] = {}
    for item in params or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            typer.secho(
                f"Error: Expected key=value, got {item!r}", err=True, fg=typer.colors.RED
            )
            raise typer.Exit(code=1)
        result[key] = value
    return result


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tkml {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Server-side renderer for TKML documents."""


@app.command()
def serve(
    config_file: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Path to tkml.yaml."
    ),
    root: Optional[Path] = typer.Option(None, "-r", "--root", help="Document root."),
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "-p", "--port", help="Port to bind."),
    no_watch: bool = typer.Option(
        False, "--no-watch", help="Do not watch the document root for changes."
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging."),
) -> None:
    """Serve TKML documents over HTTP."""
    import uvicorn

    from .api import create_app

    setup_logging(verbose)
    config = load_config(
        config_file, root, host=host, port=port, watch=False if no_watch else None
    )

    console.print(f"TKML server running at http://{config.host}:{config.port}")
    uvicorn.run(
        create_app(config), host=config.host, port=config.port, log_config=None
    )


@app.command()
def render(
    path: str = typer.Argument(..., help="Request path, e.g. /docs/"),
    params: Optional[List[str]] = typer.Option(
        None, "-p", "--param", help="Query parameter as key=value (repeatable)."
    ),
    html: bool = typer.Option(False, "--html", help="Output the full HTML page."),
    config_file: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Path to tkml.yaml."
    ),
    root: Optional[Path] = typer.Option(None, "-r", "--root", help="Document root."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging."),
) -> None:
    """Render one document and print the response body."""
    from .request import RequestOrchestrator
    from .service import TkmlService

    setup_logging(verbose)
    config = load_config(config_file, root)
    service = TkmlService.from_config(config)
    orchestrator = RequestOrchestrator(service, parse_params(params))

    accept = "text/html" if html else config.raw_media_type
    result = asyncio.run(orchestrator.handle(path, accept))

    typer.echo(result.body)
    if result.status >= 400:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
