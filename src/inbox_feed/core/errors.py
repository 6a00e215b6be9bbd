"""Error taxonomy for mailbox fetches."""

from __future__ import annotations


class FeedFetchError(RuntimeError):
    """Base class for any failure while building a feed from a mailbox."""


class FeedConnectionError(FeedFetchError):
    """An encrypted session to the mail host could not be established."""


class AuthError(FeedFetchError):
    """The mail host rejected the configured credentials."""


class FolderError(FeedFetchError):
    """The requested folder does not exist or cannot be selected."""


class FetchProtocolError(FeedFetchError):
    """The retrieval stream terminated with an error; partial results are void."""


__all__ = [
    "AuthError",
    "FeedConnectionError",
    "FeedFetchError",
    "FetchProtocolError",
    "FolderError",
]
