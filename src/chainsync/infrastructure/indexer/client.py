"""HTTP client for a Ponder-style indexer (status endpoint + GraphQL)."""

import logging
from typing import Any

import httpx

from chainsync.core.exceptions import MalformedResponseError, TransportError

logger = logging.getLogger(__name__)


class IndexerClient:
    """Client for one indexer deployment.

    Transport failures (connection errors, timeouts, non-2xx) raise
    ``TransportError``; unexpected payloads raise ``MalformedResponseError``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize indexer client.

        Args:
            base_url: Indexer base URL (GraphQL is served at the root)
            timeout: Default request timeout in seconds
            http_client: Optional pre-configured httpx client
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the underlying HTTP client if we created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(
        self, method: str, url: str, timeout: float | None = None, **kwargs: Any
    ) -> Any:
        client = self._get_http_client()
        try:
            response = await client.request(
                method, url, timeout=timeout or self.timeout, **kwargs
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportError(url, f"timed out: {e!r}") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                url, f"HTTP {e.response.status_code}: {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(url, str(e) or repr(e)) from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(url, "response is not valid JSON") from e

    async def get_status(self, timeout: float | None = None) -> dict[str, Any]:
        """Fetch the indexer's self-reported status.

        Args:
            timeout: Request timeout override in seconds

        Returns:
            Status payload keyed by chain name
        """
        url = f"{self.base_url}/status"
        payload = await self._request("GET", url, timeout=timeout)
        if not isinstance(payload, dict):
            raise MalformedResponseError(url, "status payload is not an object")
        return payload

    async def query(
        self, document: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Execute a GraphQL query.

        Args:
            document: GraphQL query document
            variables: Optional query variables

        Returns:
            The ``data`` member of the GraphQL response
        """
        body: dict[str, Any] = {"query": document}
        if variables:
            body["variables"] = variables

        payload = await self._request("POST", self.base_url, json=body)
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.base_url, "GraphQL payload is not an object")

        errors = payload.get("errors")
        if errors:
            first = errors[0].get("message") if isinstance(errors[0], dict) else errors[0]
            raise MalformedResponseError(self.base_url, f"GraphQL error: {first}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise MalformedResponseError(self.base_url, "GraphQL response has no data")
        return data
