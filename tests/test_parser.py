"""Tests for turning RFC822 payloads into feed items."""

from __future__ import annotations

from datetime import UTC, datetime

from inbox_feed.core.datetime_utils import EPOCH
from inbox_feed.core.models import MessageRecord
from inbox_feed.ingestion import EmailParser

HEADERS = (
    b"Message-ID: <a@example.com>\n"
    b"Subject: Weekly report\n"
    b"Date: Tue, 16 Jul 2024 10:00:00 +0000\n"
    b"MIME-Version: 1.0\n"
)


def _record(raw: bytes, uid: int = 7) -> MessageRecord:
    return MessageRecord(uid=uid, raw=raw)


def test_alternative_message_populates_html_and_text() -> None:
    raw = HEADERS + (
        b'Content-Type: multipart/alternative; boundary="B"\n'
        b"\n"
        b"--B\n"
        b"Content-Type: text/plain; charset=utf-8\n"
        b"\n"
        b"Plain body\n"
        b"--B\n"
        b"Content-Type: text/html; charset=utf-8\n"
        b"\n"
        b"<p>HTML body</p>\n"
        b"--B--\n"
    )

    item = EmailParser().parse(_record(raw))

    assert item.id == "<a@example.com>"
    assert item.title == "Weekly report"
    assert item.published_at == datetime(2024, 7, 16, 10, 0, tzinfo=UTC)
    assert (item.content_text or "").strip() == "Plain body"
    assert (item.content_html or "").strip() == "<p>HTML body</p>"


def test_only_first_html_part_is_used() -> None:
    raw = HEADERS + (
        b'Content-Type: multipart/mixed; boundary="B"\n'
        b"\n"
        b"--B\n"
        b"Content-Type: text/html\n"
        b"\n"
        b"<p>first</p>\n"
        b"--B\n"
        b"Content-Type: text/html\n"
        b"\n"
        b"<p>second</p>\n"
        b"--B--\n"
    )

    item = EmailParser().parse(_record(raw))

    assert (item.content_html or "").strip() == "<p>first</p>"
    assert item.content_text is None


def test_unparsable_multipart_keeps_metadata_only() -> None:
    raw = HEADERS + (
        b'Content-Type: multipart/mixed; boundary="NEVER-USED"\n'
        b"\n"
        b"this body never opens the declared boundary\n"
    )

    item = EmailParser().parse(_record(raw))

    assert item.id == "<a@example.com>"
    assert item.title == "Weekly report"
    assert item.content_html is None
    assert item.content_text is None


def test_undecodable_part_is_skipped_for_the_next_of_its_type() -> None:
    raw = HEADERS + (
        b'Content-Type: multipart/mixed; boundary="B"\n'
        b"\n"
        b"--B\n"
        b"Content-Type: text/html; charset=x-no-such-charset\n"
        b"\n"
        b"<p>garbled</p>\n"
        b"--B\n"
        b"Content-Type: text/html; charset=utf-8\n"
        b"\n"
        b"<p>readable</p>\n"
        b"--B--\n"
    )

    item = EmailParser().parse(_record(raw))

    assert (item.content_html or "").strip() == "<p>readable</p>"


def test_attachments_do_not_fill_content() -> None:
    raw = HEADERS + (
        b'Content-Type: multipart/mixed; boundary="B"\n'
        b"\n"
        b"--B\n"
        b"Content-Type: text/html\n"
        b"\n"
        b"<p>body</p>\n"
        b"--B\n"
        b"Content-Type: text/plain\n"
        b'Content-Disposition: attachment; filename="notes.txt"\n'
        b"\n"
        b"attached notes\n"
        b"--B--\n"
    )

    item = EmailParser().parse(_record(raw))

    assert (item.content_html or "").strip() == "<p>body</p>"
    assert item.content_text is None


def test_plain_message_without_mime_headers_is_text() -> None:
    raw = b"Subject: hi\n\nJust text.\n"

    item = EmailParser().parse(_record(raw))

    assert (item.content_text or "").strip() == "Just text."
    assert item.content_html is None


def test_missing_headers_fall_back_to_uid_and_internal_date() -> None:
    received = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
    record = MessageRecord(uid=99, raw=b"\nno headers at all\n", internal_date=received)

    item = EmailParser().parse(record)

    assert item.id == "99"
    assert item.title == ""
    assert item.published_at == received


def test_missing_dates_fall_back_to_epoch() -> None:
    item = EmailParser().parse(_record(b"Subject: undated\n\nbody\n"))

    assert item.published_at == EPOCH
