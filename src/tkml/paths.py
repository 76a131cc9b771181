"""Path normalization - maps request and include paths to document identifiers.

An identifier is a root-relative POSIX path such as ``docs/index.tkml``.
It is the key shared by every cache tier and the dependency graph.
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path

from tkml.exceptions import DocumentNotFoundError

DEFAULT_EXTENSION = ".tkml"
DEFAULT_DOCUMENT = "index.tkml"
DEFAULT_SCRIPT_EXTENSION = ".script"


def normalize_identifier(path: str) -> str:
    """Normalize a root-relative path into a document identifier.

    Raises:
        DocumentNotFoundError: If the path climbs above the document root.
    """
    cleaned = os.path.normcase(path.replace("\\", "/")).replace("\\", "/")
    cleaned = cleaned.lstrip("/")
    if not cleaned:
        raise DocumentNotFoundError(path)

    normalized = posixpath.normpath(cleaned)
    if normalized == "." or normalized == ".." or normalized.startswith("../"):
        raise DocumentNotFoundError(path)
    return normalized


def normalize_request_path(
    path: str,
    extension: str = DEFAULT_EXTENSION,
    default_document: str = DEFAULT_DOCUMENT,
) -> str:
    """Map an incoming request path to a document identifier.

    Paths that do not end in the document extension are treated as
    directories and get the default document name appended.

    Example:
        >>> normalize_request_path("/docs/")
        'docs/index.tkml'
        >>> normalize_request_path("/about.tkml")
        'about.tkml'
    """
    path = path.replace("\\", "/").lstrip("/")
    if not path.endswith(extension):
        path = path.rstrip("/")
        path = f"{path}/{default_document}" if path else default_document
    return normalize_identifier(path)


def resolve_include(target: str, includer: str | None) -> str:
    """Resolve an include target against the including document.

    ``/``-prefixed targets resolve against the document root, everything
    else against the includer's directory.
    """
    target = target.replace("\\", "/")
    if target.startswith("/") or includer is None:
        return normalize_identifier(target)

    base = posixpath.dirname(includer)
    return normalize_identifier(posixpath.join(base, target))


def identifier_for(path: Path, root: Path) -> str | None:
    """Map a filesystem path under ``root`` back to its identifier.

    Returns None for paths outside the root.
    """
    try:
        relative = path.resolve().relative_to(root.resolve())
    except ValueError:
        return None
    try:
        return normalize_identifier(relative.as_posix())
    except DocumentNotFoundError:
        return None


def script_identifier(identifier: str, extension: str) -> str:
    """Identifier of a document's companion script.

    Example:
        >>> script_identifier("docs/list.tkml", ".script")
        'docs/list.script'
    """
    stem, _ = posixpath.splitext(identifier)
    return stem + extension
