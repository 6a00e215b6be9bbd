"""IMAP transport adapter providing read-only folder access."""

from __future__ import annotations

import imaplib
import logging
import re
from collections.abc import Iterator
from datetime import datetime

from ..core.config import ImapSettings
from ..core.datetime_utils import ensure_utc
from ..core.errors import AuthError, FeedConnectionError, FetchProtocolError, FolderError
from ..core.interfaces import MailSession
from ..core.models import MessageRecord

LOGGER = logging.getLogger(__name__)

FETCH_ITEMS = "(UID INTERNALDATE BODY.PEEK[])"

_UID_PATTERN = re.compile(rb"\bUID (\d+)")
_INTERNALDATE_PATTERN = re.compile(rb'\bINTERNALDATE "([^"]+)"')


class ImapSession(MailSession):
    """Thin wrapper around ``imaplib`` owning exactly one server session."""

    def __init__(self, settings: ImapSettings) -> None:
        """Initialise the session with connection settings; nothing is opened yet."""
        self._settings = settings
        self._connection: imaplib.IMAP4 | imaplib.IMAP4_SSL | None = None

    def login(self) -> None:
        """Open an encrypted connection and authenticate."""
        if self._connection is not None:
            return

        connection = self._open()
        # Keep the handle before authenticating so logout can release it.
        self._connection = connection

        username = self._settings.username
        password = self._settings.password
        if username is None or password is None:
            raise AuthError("IMAP credentials are not configured")

        LOGGER.debug("Authenticating as %s", username)
        try:
            connection.login(username, password)
        except imaplib.IMAP4.abort as exc:
            raise FeedConnectionError("IMAP connection lost during login") from exc
        except imaplib.IMAP4.error as exc:
            raise AuthError(f"IMAP login rejected for {username}") from exc
        except OSError as exc:
            raise FeedConnectionError("IMAP connection lost during login") from exc

    def select_readonly(self, folder: str) -> int:
        """Select ``folder`` read-only and return the number of messages in it."""
        connection = self._require_connection()
        LOGGER.debug("Selecting folder %s read-only", folder)
        try:
            status, data = connection.select(_quote_mailbox(folder), readonly=True)
        except imaplib.IMAP4.abort as exc:
            raise FeedConnectionError("IMAP connection lost during select") from exc
        except imaplib.IMAP4.error as exc:
            raise FolderError(f"Unable to select folder '{folder}'") from exc
        except OSError as exc:
            raise FeedConnectionError("IMAP connection lost during select") from exc
        if status != "OK":
            raise FolderError(f"Unable to select folder '{folder}'")
        try:
            return int(data[0]) if data and data[0] else 0
        except (TypeError, ValueError) as exc:
            raise FolderError(f"Unexpected SELECT response for '{folder}'") from exc

    def fetch_range(self, start: int, end: int) -> Iterator[MessageRecord]:
        """Yield messages ``start`` to ``end`` from a single FETCH command."""
        connection = self._require_connection()
        message_set = f"{start}:{end}"
        LOGGER.debug("Fetching messages %s", message_set)
        try:
            status, data = connection.fetch(message_set, FETCH_ITEMS)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise FetchProtocolError(f"FETCH {message_set} failed") from exc
        if status != "OK":
            raise FetchProtocolError(f"FETCH {message_set} returned {status}")

        for index, entry in enumerate(data):
            if not isinstance(entry, tuple) or len(entry) != 2:
                continue
            meta, raw = entry
            # Items after the literal (e.g. "BODY[] {n}" first) arrive in the
            # bytes element that closes the response.
            trailer = data[index + 1] if index + 1 < len(data) else b""
            if isinstance(trailer, bytes):
                meta += trailer
            yield MessageRecord(
                uid=_parse_uid(meta),
                raw=raw,
                internal_date=_parse_internal_date(meta),
            )

    def logout(self) -> None:
        """Terminate the IMAP session, tolerating an already broken connection."""
        if self._connection is None:
            return
        try:
            LOGGER.debug("Logging out of IMAP session")
            self._connection.logout()
        except (imaplib.IMAP4.error, OSError):
            LOGGER.debug("IMAP logout raised; suppressing during shutdown")
        finally:
            self._connection = None

    # Internal helpers ---------------------------------------------------------
    def _open(self) -> imaplib.IMAP4 | imaplib.IMAP4_SSL:
        host = self._settings.host
        port = self._settings.port
        timeout = self._settings.timeout_seconds
        try:
            if self._settings.use_ssl:
                LOGGER.debug("Connecting to IMAP host %s:%s via SSL", host, port)
                return imaplib.IMAP4_SSL(host, port, timeout=timeout)

            LOGGER.debug("Connecting to IMAP host %s:%s with STARTTLS", host, port)
            connection = imaplib.IMAP4(host, port, timeout=timeout)
            try:
                connection.starttls()
            except (imaplib.IMAP4.error, OSError):
                connection.shutdown()
                raise
            return connection
        except (imaplib.IMAP4.error, OSError) as exc:
            raise FeedConnectionError(
                f"Failed to open encrypted IMAP session to {host}:{port}"
            ) from exc

    def _require_connection(self) -> imaplib.IMAP4 | imaplib.IMAP4_SSL:
        if self._connection is None:
            raise FeedConnectionError("IMAP connection has not been established")
        return self._connection


def _quote_mailbox(folder: str) -> str:
    """Quote a folder name so spaces and quotes survive the IMAP grammar."""
    if folder.startswith('"') and folder.endswith('"') and len(folder) > 1:
        return folder
    escaped = folder.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _parse_uid(meta: bytes) -> int:
    match = _UID_PATTERN.search(meta)
    if match is None:
        raise FetchProtocolError(f"FETCH response without UID: {meta[:80]!r}")
    return int(match.group(1))


def _parse_internal_date(meta: bytes) -> datetime | None:
    match = _INTERNALDATE_PATTERN.search(meta)
    if match is None:
        return None
    try:
        parsed = datetime.strptime(
            match.group(1).decode("ascii").strip(), "%d-%b-%Y %H:%M:%S %z"
        )
    except ValueError:
        return None
    return ensure_utc(parsed)


__all__ = ["FETCH_ITEMS", "ImapSession"]
