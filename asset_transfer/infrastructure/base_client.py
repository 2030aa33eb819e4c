"""Base class for async HTTP clients."""

import logging
from typing import Any

import httpx

from ..application.exceptions import APIError, ConfigurationError

from .decorators import retry_on_network_error


class BaseClient:
    """A base client that handles an async client and token configuration."""

    def __init__(self, client: httpx.AsyncClient, token: str, timeout: float):
        """
        Initializes the base client.

        Args:
            client: An instance of httpx.AsyncClient.
            token: An authentication token.
            timeout: Seconds allowed per request.

        Raises:
            ConfigurationError: If the token is missing or appears to be
                                a placeholder.
        """

        if not token or "YOUR_" in token.upper():
            raise ConfigurationError(
                f"Authentication token for {self.__class__.__name__} is missing "
                f"or is a placeholder. Please check your config files."
            )

        self.client = client
        self.token = token
        self.timeout = timeout
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json;odata=nometadata",
        }

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Executes one raw HTTP request and fails on error statuses."""
        response = await self.client.request(
            method, url, headers=self.headers, timeout=self.timeout, **kwargs
        )
        response.raise_for_status()
        return response

    _send_with_retry = retry_on_network_error(_send)

    async def _request(
        self, method: str, url: str, *, retry: bool = True, **kwargs: Any
    ) -> httpx.Response:
        """
        Executes a request, translating transport failures into APIError.

        Only idempotent calls may pass ``retry=True``.
        """
        send = self._send_with_retry if retry else self._send
        try:
            return await send(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise APIError(f"{method} {url} failed: {e}") from e
