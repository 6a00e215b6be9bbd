"""Transport adapters for external mailbox providers."""

from .imap_session import ImapSession

__all__ = ["ImapSession"]
