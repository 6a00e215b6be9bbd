"""Web application entry point for Inbox Feed."""

from .app import create_app

__all__ = ["create_app"]
