"""
Request executors

The pipeline talks to the network only through RequestExecutor, so tests and
embedding applications can hand the client their own transport.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from laikatest.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TransportResponse:
    """Raw result of one HTTP exchange"""

    status_code: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)


@runtime_checkable
class RequestExecutor(Protocol):
    """
    Executes exactly one HTTP request

    Implementations raise httpx.RequestError (or OSError /
    asyncio.TimeoutError) when no response was received.
    """

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        json: Optional[Any] = None,
        timeout: float,
    ) -> TransportResponse:
        ...

    async def aclose(self) -> None:
        ...


class HttpxRequestExecutor:
    """RequestExecutor backed by a lazily created httpx.AsyncClient"""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = client
        self._transport = transport
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the HTTP client, creating it on first use"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(transport=self._transport)
            self._owns_client = True
        return self._client

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        json: Optional[Any] = None,
        timeout: float,
    ) -> TransportResponse:
        client = await self._get_client()
        response = await client.request(
            method,
            url,
            headers=headers,
            json=json,
            timeout=httpx.Timeout(timeout),
        )
        return TransportResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close the underlying client if this executor created it"""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("http_client_closed")
