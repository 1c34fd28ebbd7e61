"""HTTP client for the marketplace chat API.

This module provides:
- HTTPClient: HTTP client for communicating with the server
- Unread count retrieval
- Health check
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from unreadsync.client.schemas import UnreadCountResponse
from unreadsync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


class InvalidResponseError(APIError):
    """Server answered with a body that does not match the expected schema."""


def _error_detail(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
        detail = data.get("detail") or data.get("message")
    except (ValueError, AttributeError):
        return default
    return str(detail) if detail else default


class HTTPClient:
    """HTTP client for the chat API."""

    def __init__(
        self,
        config: ServerConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server configuration with URL, token and timeout.
            transport: Optional httpx transport (used by tests).
        """
        self._config = config
        headers = {"Accept": "application/json"}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            headers=headers,
            verify=config.verify_ssl,
            transport=transport,
        )

    @property
    def config(self) -> ServerConfig:
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if response.status_code == 404:
            raise NotFoundError("Resource not found", 404)
        if not response.is_success:
            raise APIError(
                _error_detail(response, f"Unexpected status {response.status_code}"),
                response.status_code,
            )
        return response

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Chat operations ===

    def get_unread_count(self) -> int:
        """Get the number of unread chat messages of the session user.

        Returns:
            Unread count (never negative).

        Raises:
            AuthenticationError: If the token is rejected.
            InvalidResponseError: If the body has no valid count.
            APIError: For any other non-2xx status.
            httpx.RequestError: On transport failure or timeout.
        """
        response = self._handle_response(self._client.get(self._config.count_path))
        try:
            body = UnreadCountResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise InvalidResponseError(
                f"Invalid unread count response: {e}", response.status_code
            ) from e
        return body.value
