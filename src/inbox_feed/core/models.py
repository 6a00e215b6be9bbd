"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

JSON_FEED_VERSION = "https://jsonfeed.org/version/1.1"


@dataclass(frozen=True, slots=True)
class MessageRecord:
    """One message as streamed back by a mailbox session."""

    uid: int
    raw: bytes
    internal_date: datetime | None = None


@dataclass(frozen=True, slots=True)
class FeedItem:
    """A single mailbox message surfaced as a feed entry."""

    id: str
    title: str
    published_at: datetime
    content_html: str | None = None
    content_text: str | None = None
    url: str | None = None


@dataclass(frozen=True, slots=True)
class FeedDocument:
    """Ordered feed entries for one mailbox folder."""

    title: str
    items: tuple[FeedItem, ...]
    version: str = JSON_FEED_VERSION
    home_page_url: str | None = None
    feed_url: str | None = None


def feed_title(folder: str) -> str:
    """Derive a feed title from a folder path by stripping the leading separator."""
    return folder.removeprefix("/")


__all__ = [
    "JSON_FEED_VERSION",
    "FeedDocument",
    "FeedItem",
    "MessageRecord",
    "feed_title",
]
