"""Authoritative unread count fetcher.

A fetcher issues exactly one request per call and never retries:
retry policy belongs to the SyncEngine.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from unreadsync.client.api import APIError, HTTPClient
from unreadsync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """Fetching the unread count failed (transport, timeout, status or body)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class Fetcher(Protocol):
    """Anything able to fetch the authoritative unread count."""

    def fetch_count(self) -> int: ...

    def close(self) -> None: ...


class CountFetcher:
    """Fetch the unread count through the chat API.

    Every failure is normalized to NetworkError so callers only need
    to handle a single exception type.
    """

    def __init__(self, client: HTTPClient) -> None:
        self._client = client

    @classmethod
    def for_token(cls, config: ServerConfig, token: str) -> CountFetcher:
        """Build a fetcher bound to a session token."""
        return cls(HTTPClient(config.with_token(token)))

    def fetch_count(self) -> int:
        """Fetch the unread count.

        Raises:
            NetworkError: On any failure.
        """
        try:
            return self._client.get_unread_count()
        except APIError as e:
            raise NetworkError(str(e), e.status_code) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request failed: {e}") from e

    def close(self) -> None:
        self._client.close()
