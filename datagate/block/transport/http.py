# datagate/block/transport/http.py
"""
DataGate Block Transport: HTTP

One small async HTTP seam shared by the relay client, the indexed query
client and the IPFS gateway fetcher.

Transports:
    HTTPTransport      - Abstract interface
    HttpxTransport     - httpx.AsyncClient implementation
    MockHTTPTransport  - Records requests, replays queued responses

Error Mapping:
    Connection failures and timeouts raise TransientNetworkError.
    HTTP error statuses are returned as responses; callers decide.

Usage:
    async with HttpxTransport(timeout=10.0) as transport:
        response = await transport.post_json(url, {"query": query})
        data = response.json()

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx

from ...errors import SerializationError, TransientNetworkError


# =============================================================================
# Response
# =============================================================================

@dataclass
class HTTPResponse:
    """Transport-neutral HTTP response."""
    status_code: int
    content: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        try:
            return json.loads(self.content)
        except ValueError as e:
            raise SerializationError(f"Invalid JSON from {self.url}: {e}") from e


FileField = Tuple[str, bytes, str]


# =============================================================================
# HTTP Transport (Abstract)
# =============================================================================

class HTTPTransport(ABC):
    """Abstract async HTTP transport."""

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        json_body: Any = None,
        content: Optional[bytes] = None,
        files: Optional[Dict[str, FileField]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPResponse:
        """
        Send a request.

        Raises:
            TransientNetworkError: Connection failure or timeout
        """
        pass

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
        return await self.request("GET", url, headers=headers)

    async def post_json(
        self,
        url: str,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPResponse:
        return await self.request("POST", url, json_body=payload, headers=headers)

    async def aclose(self) -> None:
        pass

    async def __aenter__(self) -> HTTPTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class HttpxTransport(HTTPTransport):
    """httpx-backed transport."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            client: Pre-configured client (owned by the caller)
            timeout: Request timeout in seconds when creating a client
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def request(
        self,
        method: str,
        url: str,
        json_body: Any = None,
        content: Optional[bytes] = None,
        files: Optional[Dict[str, FileField]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPResponse:
        try:
            response = await self._client.request(
                method,
                url,
                json=json_body,
                content=content,
                files=files,
                headers=headers,
            )
        except httpx.TransportError as e:
            raise TransientNetworkError(f"{method} {url} failed: {e}") from e

        return HTTPResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
            url=str(response.url),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# =============================================================================
# Mock Transport
# =============================================================================

class MockHTTPTransport(HTTPTransport):
    """Mock HTTP transport for testing."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self._response_queue: List[Union[HTTPResponse, Exception]] = []

    def queue_response(
        self,
        status_code: int = 200,
        json_body: Any = None,
        content: bytes = b"",
    ) -> None:
        """Queue a response to return."""
        if json_body is not None:
            content = json.dumps(json_body).encode()
        self._response_queue.append(HTTPResponse(status_code=status_code, content=content))

    def queue_error(self, error: Exception) -> None:
        """Queue an exception to raise."""
        self._response_queue.append(error)

    async def request(
        self,
        method: str,
        url: str,
        json_body: Any = None,
        content: Optional[bytes] = None,
        files: Optional[Dict[str, FileField]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HTTPResponse:
        """Record request and return queued response."""
        self.requests.append({
            "method": method,
            "url": url,
            "json": json_body,
            "content": content,
            "files": files,
            "headers": headers or {},
        })
        if not self._response_queue:
            return HTTPResponse(status_code=404, url=url)

        queued = self._response_queue.pop(0)
        if isinstance(queued, Exception):
            raise queued
        queued.url = url
        return queued
