"""
httpx-backed transport adapter: the physical network call.

The adapter owns its httpx.AsyncClient (and so the connection pool) unless a
client is injected. It never retries; it converts every network-level
failure into a TransportError carrying a reason code the retry policy can
classify:

    httpx.TimeoutException              -> timeout
    httpx.ConnectError (name lookup)    -> dns-failure
    httpx.ConnectError (other)          -> connection-refused
    httpx.ReadError / WriteError /
    RemoteProtocolError / CloseError    -> connection-reset
    any other httpx.RequestError        -> other (not retried)

Response bodies are read with a size limit, like any untrusted download.
"""

import time
from typing import Any

import httpx

from geomcp.errors import (
    REASON_CONNECTION_REFUSED,
    REASON_CONNECTION_RESET,
    REASON_DNS_FAILURE,
    REASON_OTHER,
    REASON_TIMEOUT,
    TransportError,
)
from geomcp.http.models import HttpRequest, HttpResponse, redact_url

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RESPONSE_BYTES = 10 * 1024 * 1024  # 10 MB

# Fragments of name-resolution failures as reported by the OS resolver
_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated",
    "name resolution",
)


def classify_httpx_error(exc: httpx.RequestError) -> str:
    """Map an httpx request error to a transport reason code."""
    if isinstance(exc, httpx.TimeoutException):
        return REASON_TIMEOUT
    if isinstance(exc, httpx.ConnectError):
        message = str(exc).lower()
        if any(marker in message for marker in _DNS_MARKERS):
            return REASON_DNS_FAILURE
        return REASON_CONNECTION_REFUSED
    if isinstance(exc, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError, httpx.CloseError)):
        return REASON_CONNECTION_RESET
    return REASON_OTHER


class HttpxTransport:
    """
    Send HttpRequests with httpx.

    Attributes:
        timeout_seconds: Per-request timeout applied by httpx
        max_response_bytes: Largest body accepted before aborting
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_response_bytes = max_response_bytes
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)

    async def send(self, request: HttpRequest) -> HttpResponse:
        """
        Perform one physical request.

        Raises:
            TransportError: On any network-level failure or oversized body
        """
        url = redact_url(request.url)
        start = time.perf_counter()
        try:
            async with self._client.stream(
                request.method.value,
                request.url,
                headers=request.headers,
                content=request.encoded_body(),
                timeout=self.timeout_seconds,
            ) as response:
                body = await self._read_body(response, url)
        except httpx.RequestError as exc:
            reason = classify_httpx_error(exc)
            raise TransportError(
                message=f"Request to {url} failed ({reason}): {exc}",
                reason=reason,
                url=url,
            ) from exc

        return HttpResponse(
            status_code=response.status_code,
            headers=httpx.Headers(response.headers),
            body=body,
            elapsed=time.perf_counter() - start,
            url=str(response.url),
        )

    async def _read_body(self, response: httpx.Response, url: str) -> bytes:
        """Read the body, aborting once it exceeds max_response_bytes."""
        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_response_bytes:
            raise self._too_large(url, int(content_length))

        chunks: list[bytes] = []
        total = 0
        async for chunk in response.aiter_bytes():
            total += len(chunk)
            if total > self.max_response_bytes:
                raise self._too_large(url, total)
            chunks.append(chunk)
        return b"".join(chunks)

    def _too_large(self, url: str, size: int) -> TransportError:
        return TransportError(
            message=f"Response from {url} exceeded size limit: {size} bytes (max: {self.max_response_bytes})",
            reason=REASON_OTHER,
            url=url,
            context={"size": size, "max_bytes": self.max_response_bytes},
        )

    async def aclose(self) -> None:
        """Close the underlying client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
