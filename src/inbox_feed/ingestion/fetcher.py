"""Fetch the most recent messages of a folder and assemble a feed document."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass

from ..core.errors import FeedFetchError, FetchProtocolError
from ..core.interfaces import MailSession
from ..core.models import FeedDocument, FeedItem, MessageRecord, feed_title
from .parser import EmailParser

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], MailSession]

DEFAULT_WINDOW_SIZE = 25
DEFAULT_BUFFER_SIZE = 10
_PUT_POLL_SECONDS = 0.1


@dataclass(frozen=True, slots=True)
class _StreamClosed:
    """Terminal marker pushed after the last record, carrying any stream error."""

    error: BaseException | None = None


def message_window(
    total: int, size: int = DEFAULT_WINDOW_SIZE
) -> tuple[int, int] | None:
    """Return the inclusive sequence range of the newest ``size`` messages.

    ``None`` means the folder is empty and nothing should be requested.
    """
    if total <= 0:
        return None
    start = 1 if total <= size else total - size + 1
    return start, total


class MailFetcher:
    """Open one mail session per call and turn a folder into a feed document.

    Records are received on a producer thread and handed to the calling
    thread through a bounded queue, so a slow decode applies backpressure to
    the network side. Any failure fails the whole call.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        parser: EmailParser | None = None,
        *,
        window_size: int = DEFAULT_WINDOW_SIZE,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        """Initialise the fetcher with a session factory and bounds."""
        if window_size <= 0:
            raise ValueError("window_size must be positive")
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self._session_factory = session_factory
        self._parser = parser or EmailParser()
        self._window_size = window_size
        self._buffer_size = buffer_size

    def fetch(self, folder: str) -> FeedDocument:
        """Return a feed for ``folder`` or raise :class:`FeedFetchError`."""
        session = self._session_factory()
        try:
            session.login()
            total = session.select_readonly(folder)
            window = message_window(total, self._window_size)
            LOGGER.info(
                "Folder %s holds %d message(s); fetching range %s",
                folder,
                total,
                window,
            )
            items = self._stream_items(session, window) if window else ()
        finally:
            session.logout()

        LOGGER.info("Fetched %d item(s) from folder %s", len(items), folder)
        return FeedDocument(title=feed_title(folder), items=items)

    def _stream_items(
        self, session: MailSession, window: tuple[int, int]
    ) -> tuple[FeedItem, ...]:
        buffer: queue.Queue[MessageRecord | _StreamClosed] = queue.Queue(
            maxsize=self._buffer_size
        )
        cancelled = threading.Event()
        producer = threading.Thread(
            target=_produce,
            args=(session, window, buffer, cancelled),
            name="inbox-feed-receive",
            daemon=True,
        )
        producer.start()

        items: list[FeedItem] = []
        terminal_error: BaseException | None = None
        try:
            while True:
                entry = buffer.get()
                if isinstance(entry, _StreamClosed):
                    terminal_error = entry.error
                    break
                try:
                    items.append(self._parser.parse(entry))
                except Exception as exc:  # pylint: disable=broad-except
                    raise FetchProtocolError(
                        f"Failed to decode message UID {entry.uid}"
                    ) from exc
        finally:
            # Unblocks the producer if decoding bailed out early.
            cancelled.set()
            producer.join()

        if terminal_error is not None:
            LOGGER.warning(
                "Discarding %d partial item(s) after stream error: %s",
                len(items),
                terminal_error,
            )
            if isinstance(terminal_error, FeedFetchError):
                raise terminal_error
            raise FetchProtocolError("Message stream terminated") from terminal_error
        return tuple(items)


def _produce(
    session: MailSession,
    window: tuple[int, int],
    buffer: queue.Queue[MessageRecord | _StreamClosed],
    cancelled: threading.Event,
) -> None:
    """Push fetched records into ``buffer`` and always close the stream."""
    error: BaseException | None = None
    try:
        for record in session.fetch_range(*window):
            if not _put(buffer, record, cancelled):
                return
    except Exception as exc:  # pylint: disable=broad-except
        # Handed to the consumer through the closing marker.
        error = exc
    except BaseException as exc:
        error = exc
        raise
    finally:
        _put(buffer, _StreamClosed(error), cancelled)


def _put(
    buffer: queue.Queue[MessageRecord | _StreamClosed],
    entry: MessageRecord | _StreamClosed,
    cancelled: threading.Event,
) -> bool:
    """Block until ``entry`` is queued; give up once the consumer has gone."""
    while not cancelled.is_set():
        try:
            buffer.put(entry, timeout=_PUT_POLL_SECONDS)
            return True
        except queue.Full:
            continue
    return False


__all__ = [
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_WINDOW_SIZE",
    "MailFetcher",
    "SessionFactory",
    "message_window",
]
