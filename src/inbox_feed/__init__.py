"""Expose recent mailbox folder contents as JSON Feed documents."""

__version__ = "0.1.0"
