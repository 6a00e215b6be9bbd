"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from .models import FeedDocument, MessageRecord


class MailSession(Protocol):
    """A single authenticated conversation with a mail server."""

    def login(self) -> None:
        """Open the connection and authenticate with configured credentials."""
        raise NotImplementedError

    def select_readonly(self, folder: str) -> int:
        """Select ``folder`` without write access and return its message count."""
        raise NotImplementedError

    def fetch_range(self, start: int, end: int) -> Iterator[MessageRecord]:
        """Yield full messages for sequence numbers ``start`` to ``end`` inclusive."""
        raise NotImplementedError

    def logout(self) -> None:
        """Release the session; must be safe to call after partial setup."""
        raise NotImplementedError


class FeedSource(Protocol):
    """Anything able to turn a folder path into a feed document."""

    def fetch(self, folder: str) -> FeedDocument:
        """Return a complete document or raise ``FeedFetchError``."""
        raise NotImplementedError


__all__ = ["FeedSource", "MailSession"]
