"""Minimal JSON-over-HTTP transport for fundamentals providers."""

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ProviderRequestError(RuntimeError):
    """Raised when a provider response cannot be used (bad status or body)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class JsonHttpClient:
    """
    Blocking JSON GET client bound to one provider base URL.

    Transport errors (connection, timeout, HTTP status) propagate as
    ``requests`` exceptions so the retry layer can classify them; a body that
    is not JSON raises ProviderRequestError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def get_json(self, path: str = "", params: dict[str, Any] | None = None) -> Any:
        """
        GET ``base_url + path`` and decode the JSON body.

        Args:
            path: Path relative to the base URL ("" for query-style APIs)
            params: Query parameters

        Returns:
            Decoded JSON value
        """
        url = f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url
        # params carry the API key; never log them
        logger.debug(f"GET {url}")
        response = self._session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise ProviderRequestError(
                f"Non-JSON response from {url}", status_code=response.status_code
            ) from e

    def close(self) -> None:
        self._session.close()
