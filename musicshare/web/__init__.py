"""Web interface for Music Share."""

from .server import create_app

__all__ = ["create_app"]
