"""FastAPI web application exposing mailbox folders as JSON Feeds."""

from __future__ import annotations

import logging
import time

from fastapi import Depends, FastAPI, HTTPException, Request, status as http_status
from fastapi.responses import JSONResponse

from inbox_feed.core import AppSettings, load_app_settings
from inbox_feed.core.errors import FeedFetchError
from inbox_feed.core.interfaces import FeedSource
from inbox_feed.core.models import FeedDocument
from inbox_feed.ingestion import MailFetcher
from inbox_feed.transport import ImapSession
from .cache import Clock, TtlCache
from .feeds import FeedService, UnknownFeedError, feed_name_from_path, serialize_feed
from .security import ApiKeyGuard

LOGGER = logging.getLogger(__name__)


def build_mail_fetcher(settings: AppSettings) -> MailFetcher:
    """Create the IMAP backed fetcher described by ``settings``."""
    return MailFetcher(
        lambda: ImapSession(settings.imap),
        window_size=settings.fetch.window_size,
        buffer_size=settings.fetch.buffer_size,
    )


def create_app(
    settings: AppSettings | None = None,
    *,
    source: FeedSource | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``source`` replaces the IMAP fetcher and ``clock`` the cache clock,
    which is how tests drive the app without a mail server.
    """
    app_settings = settings or load_app_settings()
    server = app_settings.server
    app = FastAPI(title="Inbox Feed")

    cache: TtlCache[FeedDocument] = TtlCache(
        server.cache_ttl_seconds, clock=clock or time.monotonic
    )
    service = FeedService(
        app_settings.feeds,
        source or build_mail_fetcher(app_settings),
        cache,
    )
    guard = ApiKeyGuard(server.api_key)

    if not server.api_key:
        LOGGER.warning("No API key configured; every feed request will be rejected")
    LOGGER.info(
        "Initialised feed server: feeds=%s ttl=%ss",
        sorted(app_settings.feeds),
        server.cache_ttl_seconds,
    )

    def require_api_key(request: Request) -> None:
        guard.validate(request)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    # Plain ``def`` so FastAPI runs each blocking fetch on its own worker thread.
    @app.get("/feeds/{feed_file}", dependencies=[Depends(require_api_key)])
    def read_feed(feed_file: str, request: Request) -> JSONResponse:
        """Return the JSON Feed for ``feed_file`` (extension optional)."""
        LOGGER.info("Incoming request: %s %s", request.method, request.url.path)
        name = feed_name_from_path(feed_file)
        try:
            document = service.get_feed(name)
        except UnknownFeedError:
            LOGGER.info("Not found: feed %r", name)
            raise HTTPException(
                status_code=http_status.HTTP_404_NOT_FOUND, detail="not found"
            ) from None
        except FeedFetchError as exc:
            LOGGER.error("Upstream error fetching %s: %s", name, exc, exc_info=True)
            raise HTTPException(
                status_code=http_status.HTTP_502_BAD_GATEWAY, detail="upstream error"
            ) from exc
        return JSONResponse(content=serialize_feed(document))

    return app


__all__ = ["build_mail_fetcher", "create_app"]
