"""FastAPI application for the TKML server."""

from tkml.api.app import create_app

__all__ = ["create_app"]
