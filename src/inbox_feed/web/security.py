"""API key check for the feed endpoints."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

LOGGER = logging.getLogger(__name__)

API_KEY_QUERY_PARAM = "key"
API_KEY_HEADER = "X-API-Key"


@dataclass(slots=True)
class ApiKeyGuard:
    """Accept a request only when it carries the configured API key."""

    api_key: str
    query_param: str = API_KEY_QUERY_PARAM
    header_name: str = API_KEY_HEADER

    def supplied_key(self, request: Request) -> str | None:
        """Return the key from the query string, falling back to the header."""
        return request.query_params.get(self.query_param) or request.headers.get(
            self.header_name
        )

    def validate(self, request: Request) -> None:
        """Raise ``403`` unless the request presents the expected key."""
        supplied = self.supplied_key(request)
        if (
            not self.api_key
            or not supplied
            or not secrets.compare_digest(supplied.encode(), self.api_key.encode())
        ):
            client = request.client.host if request.client else "unknown"
            LOGGER.warning("Forbidden: invalid API key from %s", client)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="forbidden",
            )


__all__ = ["API_KEY_HEADER", "API_KEY_QUERY_PARAM", "ApiKeyGuard"]
