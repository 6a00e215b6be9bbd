"""Ingestion pipeline components."""

from .fetcher import MailFetcher, SessionFactory, message_window
from .parser import EmailParser

__all__ = [
    "EmailParser",
    "MailFetcher",
    "SessionFactory",
    "message_window",
]
