"""Turn raw RFC822 payloads into feed items."""

from __future__ import annotations

import logging
from email import errors, policy
from email.message import EmailMessage
from email.parser import BytesParser

from ..core.datetime_utils import EPOCH, parse_header_datetime
from ..core.models import FeedItem, MessageRecord

LOGGER = logging.getLogger(__name__)

# Multipart containers whose structure could not be recovered at all.
_UNPARSABLE_DEFECTS = (
    errors.NoBoundaryInMultipartDefect,
    errors.StartBoundaryNotFoundDefect,
    errors.MultipartInvariantViolationDefect,
)


class EmailParser:
    """Convert streamed message records into immutable feed items."""

    def __init__(self) -> None:
        """Prepare internal parser instance."""
        self._parser = BytesParser(policy=policy.default)

    def parse(self, record: MessageRecord) -> FeedItem:
        """Build a :class:`FeedItem` from ``record``.

        Metadata always survives; body fields stay empty when the payload
        cannot be read as MIME.
        """
        try:
            message = self._parser.parsebytes(record.raw)
        except (errors.MessageError, LookupError, TypeError, ValueError):
            LOGGER.debug("Unparsable payload for UID %s", record.uid, exc_info=True)
            return FeedItem(
                id=str(record.uid),
                title="",
                published_at=record.internal_date or EPOCH,
            )

        html, text = extract_bodies(message)
        return FeedItem(
            id=_message_id(message) or str(record.uid),
            title=_header_text(message, "Subject"),
            published_at=(
                parse_header_datetime(_header_text(message, "Date"))
                or record.internal_date
                or EPOCH
            ),
            content_html=html,
            content_text=text,
        )


def extract_bodies(message: EmailMessage) -> tuple[str | None, str | None]:
    """Return the first ``text/html`` and first ``text/plain`` part contents."""
    if any(isinstance(defect, _UNPARSABLE_DEFECTS) for defect in message.defects):
        return None, None

    html: str | None = None
    text: str | None = None
    for part in message.walk():
        if html is not None and text is not None:
            break
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            continue
        content_type = part.get_content_type()
        if content_type == "text/html" and html is None:
            html = _part_content(part)
        elif content_type == "text/plain" and text is None:
            text = _part_content(part)
    return html, text


def _part_content(part: EmailMessage) -> str | None:
    try:
        content = part.get_content()
    except (LookupError, ValueError, AssertionError):
        # Unknown charset or broken transfer encoding; leave this part out.
        LOGGER.debug("Skipping undecodable %s part", part.get_content_type())
        return None
    if not isinstance(content, str) or not content:
        return None
    return content


def _header_text(message: EmailMessage, name: str) -> str:
    try:
        value = message.get(name)
    except (errors.HeaderParseError, IndexError, TypeError, ValueError):
        return ""
    return str(value) if value is not None else ""


def _message_id(message: EmailMessage) -> str | None:
    value = _header_text(message, "Message-ID").strip()
    return value or None


__all__ = ["EmailParser", "extract_bodies"]
