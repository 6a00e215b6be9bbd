"""Command-line entry point for Inbox Feed."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import uvicorn

from inbox_feed.core import AppSettings, configure_logging, load_app_settings
from inbox_feed.core.errors import FeedFetchError
from inbox_feed.web.app import build_mail_fetcher, create_app
from inbox_feed.web.feeds import serialize_feed


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Serve mailbox folders as JSON Feeds"
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "fetch", "serve"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "feed",
        nargs="?",
        default=None,
        help="Feed name for the fetch command.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return an exit status."""
    command = args.command
    if command == "info":
        print(f"IMAP host: {settings.imap.host}:{settings.imap.port}")
        print(f"Cache TTL: {settings.server.cache_ttl_seconds}s")
        if not settings.feeds:
            print("No feeds configured.")
        for name, folder in sorted(settings.feeds.items()):
            print(f"  {name} -> {folder}")
        return 0
    if command == "fetch":
        return _run_fetch(settings, args.feed)
    if command == "serve":
        _run_server(settings)
    return 0


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    sys.exit(execute(args, settings))


def _run_fetch(settings: AppSettings, feed: str | None) -> int:
    """Fetch one feed straight from the mailbox and print it."""
    if feed is None:
        print("The fetch command needs a feed name.", file=sys.stderr)
        return 2
    folder = settings.feeds.get(feed)
    if folder is None:
        print(f"Unknown feed: {feed}", file=sys.stderr)
        return 1
    try:
        document = build_mail_fetcher(settings).fetch(folder)
    except FeedFetchError as exc:
        print(f"Fetch failed: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(serialize_feed(document), indent=2, ensure_ascii=False))
    return 0


def _run_server(settings: AppSettings) -> None:
    """Run the HTTP server until interrupted."""
    app = create_app(settings)
    # Keep the dictConfig set up in main() instead of uvicorn's defaults.
    uvicorn.run(
        app, host=settings.server.host, port=settings.server.port, log_config=None
    )


if __name__ == "__main__":
    main()
