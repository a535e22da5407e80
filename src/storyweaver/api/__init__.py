"""FastAPI application exposing the AI suggestion endpoints."""

from .app import create_app

__all__ = ["create_app"]
