"""Integration tests for the FastAPI feed endpoint."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from inbox_feed.core.config import AppSettings, ServerSettings
from inbox_feed.core.errors import FeedFetchError, FolderError
from inbox_feed.core.models import FeedDocument, FeedItem, MessageRecord
from inbox_feed.ingestion import MailFetcher
from inbox_feed.web import create_app

API_KEY = "test-key"
PUBLISHED = datetime(2024, 7, 16, 10, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class RecordingSource:
    """Feed source that records requested folders and replays scripted outcomes."""

    def __init__(self, *outcomes: FeedDocument | FeedFetchError) -> None:
        self.calls: list[str] = []
        self._outcomes = list(outcomes)

    def fetch(self, folder: str) -> FeedDocument:
        self.calls.append(folder)
        # The last scripted outcome repeats for any further calls.
        if len(self._outcomes) > 1:
            outcome = self._outcomes.pop(0)
        else:
            outcome = self._outcomes[0]
        if isinstance(outcome, FeedFetchError):
            raise outcome
        return outcome


def _document(title: str = "INBOX") -> FeedDocument:
    return FeedDocument(
        title=title,
        items=(
            FeedItem(
                id="<1@example.com>",
                title="Status update",
                published_at=PUBLISHED,
                content_text="Body",
            ),
        ),
    )


def _settings() -> AppSettings:
    return AppSettings(
        server=ServerSettings(api_key=API_KEY, cache_ttl_seconds=60),
        feeds={"inbox": "/INBOX"},
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _client(source: RecordingSource, clock: FakeClock) -> TestClient:
    return TestClient(create_app(_settings(), source=source, clock=clock))


def test_wrong_key_is_forbidden_without_fetching(clock: FakeClock) -> None:
    source = RecordingSource(_document())
    client = _client(source, clock)

    response = client.get("/feeds/inbox.json", params={"key": "nope"})
    missing = client.get("/feeds/inbox.json")

    assert response.status_code == 403
    assert response.json() == {"detail": "forbidden"}
    assert missing.status_code == 403
    assert source.calls == []


def test_unknown_feed_is_not_found_without_fetching(clock: FakeClock) -> None:
    source = RecordingSource(_document())
    client = _client(source, clock)

    response = client.get("/feeds/unknown.json", params={"key": API_KEY})

    assert response.status_code == 404
    assert source.calls == []


def test_cold_cache_fetches_once_and_serializes(clock: FakeClock) -> None:
    source = RecordingSource(_document())
    client = _client(source, clock)

    response = client.get("/feeds/inbox.json", params={"key": API_KEY})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert source.calls == ["/INBOX"]
    assert response.json() == {
        "version": "https://jsonfeed.org/version/1.1",
        "title": "INBOX",
        "items": [
            {
                "id": "<1@example.com>",
                "title": "Status update",
                "date_published": "2024-07-16T10:00:00Z",
                "content_text": "Body",
            }
        ],
    }


def test_repeat_request_within_ttl_is_served_from_cache(clock: FakeClock) -> None:
    source = RecordingSource(_document())
    client = _client(source, clock)

    first = client.get("/feeds/inbox.json", params={"key": API_KEY})
    clock.now += 59
    second = client.get("/feeds/inbox.json", headers={"X-API-Key": API_KEY})

    assert second.status_code == 200
    assert second.content == first.content
    assert source.calls == ["/INBOX"]


def test_expired_entry_triggers_a_new_fetch(clock: FakeClock) -> None:
    source = RecordingSource(_document(), _document("refreshed"))
    client = _client(source, clock)

    client.get("/feeds/inbox.json", params={"key": API_KEY})
    clock.now += 60
    response = client.get("/feeds/inbox", params={"key": API_KEY})

    assert response.json()["title"] == "refreshed"
    assert source.calls == ["/INBOX", "/INBOX"]


def test_fetch_failure_is_bad_gateway_and_not_cached(clock: FakeClock) -> None:
    source = RecordingSource(FolderError("gone"), _document())
    client = _client(source, clock)

    failed = client.get("/feeds/inbox.json", params={"key": API_KEY})
    retried = client.get("/feeds/inbox.json", params={"key": API_KEY})

    assert failed.status_code == 502
    assert failed.json() == {"detail": "upstream error"}
    assert retried.status_code == 200
    assert source.calls == ["/INBOX", "/INBOX"]


def test_empty_api_key_rejects_everything(clock: FakeClock) -> None:
    source = RecordingSource(_document())
    settings = AppSettings(feeds={"inbox": "/INBOX"})
    client = TestClient(create_app(settings, source=source, clock=clock))

    response = client.get("/feeds/inbox.json", params={"key": ""})

    assert response.status_code == 403
    assert source.calls == []


def test_healthz_needs_no_key(clock: FakeClock) -> None:
    client = _client(RecordingSource(_document()), clock)

    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TwoMessageSession:
    """Mail session stub holding two plain messages."""

    def __init__(self) -> None:
        sent = datetime(2024, 7, 16, 9, 0, tzinfo=UTC)
        self.records = [
            MessageRecord(uid=1, raw=self._raw("a", "one", sent)),
            MessageRecord(
                uid=2, raw=self._raw("b", "two", sent + timedelta(minutes=1))
            ),
        ]
        self.logged_out = False

    @staticmethod
    def _raw(message_id: str, subject: str, sent: datetime) -> bytes:
        date = sent.strftime("%a, %d %b %Y %H:%M:%S +0000")
        headers = f"Message-ID: {message_id}\nSubject: {subject}\nDate: {date}\n\n"
        return headers.encode()

    def login(self) -> None:
        return None

    def select_readonly(self, folder: str) -> int:
        assert folder == "/INBOX"
        return len(self.records)

    def fetch_range(self, start: int, end: int) -> Iterator[MessageRecord]:
        yield from self.records[start - 1 : end]

    def logout(self) -> None:
        self.logged_out = True


def test_end_to_end_feed_from_mail_session() -> None:
    session = TwoMessageSession()
    app = create_app(_settings(), source=MailFetcher(lambda: session))
    client = TestClient(app)

    response = client.get("/feeds/inbox.json", params={"key": API_KEY})

    assert response.status_code == 200
    payload = response.json()
    assert payload["title"] == "INBOX"
    assert [item["id"] for item in payload["items"]] == ["a", "b"]
    assert [item["title"] for item in payload["items"]] == ["one", "two"]
    assert payload["items"][0]["date_published"] == "2024-07-16T09:00:00Z"
    assert payload["items"][1]["date_published"] == "2024-07-16T09:01:00Z"
    assert "content_html" not in payload["items"][0]
    assert "content_text" not in payload["items"][0]
    assert session.logged_out
