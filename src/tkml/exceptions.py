"""TKML Exceptions

Custom exceptions for the TKML rendering pipeline.
"""

from __future__ import annotations


class TkmlError(Exception):
    """Base exception for all TKML errors."""

    pass


class DocumentNotFoundError(TkmlError):
    """Raised when a document does not exist under the document root."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Document not found: {identifier}")


class CircularIncludeError(TkmlError):
    """Raised when a document is included while it is still being rendered."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Circular include detected: {identifier}")


class ParseError(TkmlError):
    """Raised when a document has an unterminated script delimiter."""

    def __init__(self, identifier: str, position: int, message: str):
        self.identifier = identifier
        self.position = position
        super().__init__(f"{identifier}:{position}: {message}")


class ScriptExecutionError(TkmlError):
    """Raised when a synthesized program or expression fails to run."""

    def __init__(self, identifier: str, message: str):
        self.identifier = identifier
        self.message = message
        super().__init__(f"{identifier}: {message}")


class ConfigError(TkmlError):
    """Raised when the server configuration cannot be loaded."""

    pass


class CompilerError(TkmlError):
    """Raised when the markup compiler cannot be found or fails."""

    pass
