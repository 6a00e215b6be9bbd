"""Cache-or-fetch orchestration and JSON Feed serialisation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..core.datetime_utils import serialize_datetime
from ..core.interfaces import FeedSource
from ..core.models import FeedDocument, FeedItem
from .cache import TtlCache

LOGGER = logging.getLogger(__name__)


class UnknownFeedError(LookupError):
    """Raised when a feed name is not part of the configured mapping."""


class FeedService:
    """Serve feed documents from the cache, fetching folders on a miss.

    Lookups and stores are individually atomic, but two concurrent misses
    for the same feed each call the source; the later store wins.
    """

    def __init__(
        self,
        feeds: Mapping[str, str],
        source: FeedSource,
        cache: TtlCache[FeedDocument],
    ) -> None:
        """Bind the feed mapping, the fetch capability, and the cache."""
        self._feeds = dict(feeds)
        self._source = source
        self._cache = cache

    def resolve_folder(self, name: str) -> str:
        """Return the folder behind ``name`` or raise :class:`UnknownFeedError`."""
        try:
            return self._feeds[name]
        except KeyError:
            raise UnknownFeedError(name) from None

    def get_feed(self, name: str) -> FeedDocument:
        """Return the feed called ``name``.

        Raises :class:`UnknownFeedError` for unmapped names and lets any
        ``FeedFetchError`` from the source propagate without touching the cache.
        """
        folder = self.resolve_folder(name)

        cached = self._cache.get(name)
        if cached is not None:
            LOGGER.info("Cache hit: %s", name)
            return cached

        LOGGER.info("Cache miss: fetching feed %s from folder %s", name, folder)
        document = self._source.fetch(folder)
        self._cache.set(name, document)
        LOGGER.info(
            "Fetched and cached feed %s (%d items)", name, len(document.items)
        )
        return document


def feed_name_from_path(segment: str) -> str:
    """Strip any extension from the last path segment: ``inbox.json`` -> ``inbox``."""
    return segment.split(".", 1)[0]


def serialize_feed(document: FeedDocument) -> dict[str, Any]:
    """Render ``document`` as a JSON Feed 1.1 object."""
    payload: dict[str, Any] = {
        "version": document.version,
        "title": document.title,
    }
    if document.home_page_url:
        payload["home_page_url"] = document.home_page_url
    if document.feed_url:
        payload["feed_url"] = document.feed_url
    payload["items"] = [_serialize_item(item) for item in document.items]
    return payload


def _serialize_item(item: FeedItem) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": item.id,
        "title": item.title,
    }
    if item.url:
        payload["url"] = item.url
    payload["date_published"] = serialize_datetime(item.published_at)
    if item.content_html:
        payload["content_html"] = item.content_html
    if item.content_text:
        payload["content_text"] = item.content_text
    return payload


__all__ = [
    "FeedService",
    "UnknownFeedError",
    "feed_name_from_path",
    "serialize_feed",
]
