"""Core utilities for configuration, logging, and shared models."""

from .config import AppSettings, ImapSettings, ServerSettings, load_app_settings
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "ImapSettings",
    "ServerSettings",
    "configure_logging",
    "load_app_settings",
]
