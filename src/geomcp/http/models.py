"""
Request/response data shapes for the outbound HTTP pipeline.

- HttpRequest: what a tool wants sent (method, URL, headers, body)
- HttpResponse: what the transport produced; immutable
- CorrelationContext: trace identifiers for one logical call

A request carries the correlation context of its logical call. Every copy of
the request made during retries shares that context, but never the header map.
"""

import copy
import json
import secrets
from collections.abc import Callable, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

# Query parameters never written to logs or spans
SENSITIVE_PARAMS = frozenset({"access_token", "token", "api_key", "key"})


class HttpMethod(str, Enum):
    """HTTP methods the pipeline can issue."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


def normalize_headers(headers: Mapping[str, str] | httpx.Headers | None) -> httpx.Headers:
    """
    Build a case-insensitive header map where the last write for a name wins.

    httpx.Headers keeps repeated names as multiple values when constructed
    from a mapping, so names are assigned one at a time instead.
    """
    normalized = httpx.Headers()
    if headers is None:
        return normalized
    items = headers.multi_items() if isinstance(headers, httpx.Headers) else headers.items()
    for name, value in items:
        normalized[name] = value
    return normalized


def redact_url(url: str) -> str:
    """Replace the values of sensitive query parameters with '***'."""
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = [
        (name, "***" if name.lower() in SENSITIVE_PARAMS else value)
        for name, value in parse_qsl(parsed.query, keep_blank_values=True)
    ]
    return urlunparse(parsed._replace(query=urlencode(params, safe="*,;")))


# Completion callbacks receive (response, error); exactly one is not None
CompletionCallback = Callable[["HttpResponse | None", "BaseException | None"], None]


@dataclass
class CorrelationContext:
    """
    Trace identifiers attached to one logical pipeline call.

    Attributes:
        trace_id: 32 hex chars shared by every span of the trace
        span_id: 16 hex chars identifying this logical call
        parent_span_id: Span of the caller, when the call is nested
        attempt: Current physical attempt number (written by the retry policy)
    """

    trace_id: str = field(default_factory=lambda: secrets.token_hex(16))
    span_id: str = field(default_factory=lambda: secrets.token_hex(8))
    parent_span_id: str | None = None
    attempt: int = 0
    _callbacks: list[CompletionCallback] = field(default_factory=list, repr=False)
    _finished: bool = field(default=False, repr=False)

    @classmethod
    def derive(cls, parent: "CorrelationContext | None" = None) -> "CorrelationContext":
        """Create the context for a new logical call, joining parent's trace if given."""
        if parent is None:
            return cls()
        return cls(trace_id=parent.trace_id, parent_span_id=parent.span_id)

    @classmethod
    def from_traceparent(cls, value: str) -> "CorrelationContext | None":
        """Parse a W3C traceparent header; returns None when malformed."""
        parts = value.strip().split("-")
        if len(parts) != 4:
            return None
        version, trace_id, span_id, _flags = parts
        if len(version) != 2 or len(trace_id) != 32 or len(span_id) != 16:
            return None
        try:
            if int(trace_id, 16) == 0 or int(span_id, 16) == 0:
                return None
        except ValueError:
            return None
        return cls(trace_id=trace_id, span_id=span_id)

    def traceparent(self, span_id: str | None = None) -> str:
        """Render a W3C traceparent header value for this trace."""
        return f"00-{self.trace_id}-{span_id or self.span_id}-01"

    def on_complete(self, callback: CompletionCallback) -> None:
        """Register a callback fired once when the logical call finishes."""
        self._callbacks.append(callback)

    def finish(
        self,
        response: "HttpResponse | None" = None,
        error: BaseException | None = None,
    ) -> None:
        """Fire completion callbacks. Later calls are ignored."""
        if self._finished:
            return
        self._finished = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(response, error)


# Correlation context of the logical call currently executing in this task
current_correlation: ContextVar[CorrelationContext | None] = ContextVar(
    "geomcp_current_correlation", default=None
)


@dataclass
class HttpRequest:
    """
    An outbound request.

    Attributes:
        method: HTTP method
        url: Absolute http(s) URL, query string included
        headers: Case-insensitive header map
        body: Raw bytes, a JSON-serializable structure, or None
        context: Correlation context of the logical call (set by the pipeline)
    """

    method: HttpMethod
    url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes | dict[str, Any] | list[Any] | None = None
    context: CorrelationContext | None = None

    def __post_init__(self) -> None:
        """Normalize method and headers, reject relative URLs."""
        self.method = HttpMethod(self.method.upper())
        self.url = str(self.url)
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https"):
            msg = f"Request URL must be absolute http(s): {self.url!r}"
            raise ValueError(msg)
        if not parsed.netloc:
            msg = f"Request URL must have a host: {self.url!r}"
            raise ValueError(msg)
        self.headers = normalize_headers(self.headers)

    @classmethod
    def get(cls, url: str | httpx.URL, headers: Mapping[str, str] | None = None) -> "HttpRequest":
        """Shorthand for a GET request."""
        return cls(HttpMethod.GET, str(url), normalize_headers(headers))

    def copy(self) -> "HttpRequest":
        """Return an independent copy sharing only the correlation context."""
        return HttpRequest(
            method=self.method,
            url=self.url,
            headers=httpx.Headers(self.headers),
            body=self.body if isinstance(self.body, bytes) else copy.deepcopy(self.body),
            context=self.context,
        )

    def with_header(self, name: str, value: str) -> "HttpRequest":
        """Return a copy with one header set (replacing any previous value)."""
        request = self.copy()
        request.headers[name] = value
        return request

    def with_context(self, context: CorrelationContext) -> "HttpRequest":
        """Return a copy bound to the given correlation context."""
        request = self.copy()
        request.context = context
        return request

    def encoded_body(self) -> bytes | None:
        """Body as bytes; structured payloads are JSON-encoded."""
        if self.body is None or isinstance(self.body, bytes):
            return self.body
        return json.dumps(self.body, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class HttpResponse:
    """
    A response produced by the transport adapter. Immutable.

    Attributes:
        status_code: HTTP status code
        headers: Case-insensitive header map
        body: Raw response body
        elapsed: Seconds spent on the physical call
        url: Final URL of the request
    """

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""
    elapsed: float = 0.0
    url: str = ""

    def __post_init__(self) -> None:
        """Accept plain mappings for headers."""
        if not isinstance(self.headers, httpx.Headers):
            object.__setattr__(self, "headers", normalize_headers(self.headers))

    @property
    def is_success(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (invalid bytes replaced)."""
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Body parsed as JSON."""
        return json.loads(self.body)

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name, default)
