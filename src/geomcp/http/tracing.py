"""
Tracing policy: records spans for outbound calls.

Two kinds of span are produced:
    - "attempt": one per physical call that passes through the policy
    - "call": one per logical pipeline call, covering every attempt and
      recording the final outcome; emitted when the pipeline finishes

Spans are handed to a SpanSink. Exporting them anywhere else is the sink's
business. Tracing is observational only: a failing sink or a bug while
recording never changes the request outcome.
"""

import secrets
import threading
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar, Protocol

from geomcp.errors import TransportError
from geomcp.http.models import CorrelationContext, HttpRequest, HttpResponse, redact_url
from geomcp.http.pipeline import Handler, Policy
from geomcp.logging import get_logger

logger = get_logger(__name__)

# Response headers carrying upstream (edge/CDN) correlation identifiers
CORRELATION_HEADERS = ("x-request-id", "x-amz-cf-id", "x-amz-cf-pop", "cf-ray")

SPAN_KIND_CALL = "call"
SPAN_KIND_ATTEMPT = "attempt"

OUTCOME_OK = "ok"
OUTCOME_HTTP_ERROR = "http_error"
OUTCOME_TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class SpanRecord:
    """
    A completed span.

    Attributes:
        name: Span name ("http GET api.mapbox.com")
        kind: "call" or "attempt"
        trace_id: Trace the span belongs to
        span_id: This span's identifier
        parent_span_id: Enclosing span, if any
        started_at: Wall-clock start (UTC)
        duration_ms: Elapsed time in milliseconds
        method: HTTP method
        url: Request URL with secrets redacted
        status_code: Final HTTP status, if a response was received
        outcome: "ok", "http_error" or "transport_error"
        attempt: Attempt number (attempt spans) or attempt count (call spans)
        error_type: Exception class name on failure
        correlation: Upstream correlation headers found on the response
    """

    name: str
    kind: str
    trace_id: str
    span_id: str
    parent_span_id: str | None
    started_at: datetime
    duration_ms: float
    method: str
    url: str
    status_code: int | None = None
    outcome: str = OUTCOME_OK
    attempt: int = 0
    error_type: str | None = None
    correlation: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data


class SpanSink(Protocol):
    """Accepts completed spans."""

    def export(self, span: SpanRecord) -> None:
        """Hand off one completed span."""
        ...


class InMemorySpanSink:
    """Keeps spans in a list. Useful for tests and the CLI's debug output."""

    def __init__(self) -> None:
        self._spans: list[SpanRecord] = []
        self._lock = threading.Lock()

    def export(self, span: SpanRecord) -> None:
        with self._lock:
            self._spans.append(span)

    @property
    def spans(self) -> list[SpanRecord]:
        """Snapshot of exported spans in export order."""
        with self._lock:
            return list(self._spans)

    def by_kind(self, kind: str) -> list[SpanRecord]:
        """Exported spans of one kind."""
        return [span for span in self.spans if span.kind == kind]

    def clear(self) -> None:
        """Forget every exported span."""
        with self._lock:
            self._spans.clear()


class LogSpanSink:
    """Writes each span as a structured log event."""

    def __init__(self, event: str = "trace.span") -> None:
        self.event = event

    def export(self, span: SpanRecord) -> None:
        logger.info(self.event, **span.to_dict())


def _correlation_headers(response: HttpResponse | None) -> dict[str, str]:
    if response is None:
        return {}
    return {
        name: value
        for name in CORRELATION_HEADERS
        if (value := response.header(name)) is not None
    }


def _outcome(response: HttpResponse | None, error: BaseException | None) -> str:
    if error is not None or response is None:
        return OUTCOME_TRANSPORT_ERROR
    return OUTCOME_OK if response.status_code < 400 else OUTCOME_HTTP_ERROR


def _final_response(response: HttpResponse | None, error: BaseException | None) -> HttpResponse | None:
    """The response to report: the returned one, or the last one an error carries."""
    if response is not None:
        return response
    if isinstance(error, TransportError):
        return error.response
    return None


class TracingPolicy(Policy):
    """
    Record an attempt span per physical call and a call span per logical call.

    Injects a W3C traceparent header into the attempt request so the remote
    side can join the trace. With enabled=False or no sink the policy is a
    pure passthrough.
    """

    name: ClassVar[str] = "tracing"
    header: ClassVar[str] = "traceparent"

    def __init__(self, sink: SpanSink | None, enabled: bool = True) -> None:
        self.sink = sink
        self.enabled = enabled and sink is not None

    async def apply(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        if not self.enabled or request.context is None:
            return await next_handler(request)

        context = request.context
        span_id = secrets.token_hex(8)
        if context.attempt <= 1:
            self._guard(self._start_call_span, request)

        started_at = datetime.now(UTC)
        start = time.perf_counter()
        response: HttpResponse | None = None
        error: BaseException | None = None
        try:
            response = await next_handler(request.with_header(self.header, context.traceparent(span_id)))
            return response
        except BaseException as exc:
            error = exc
            raise
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._guard(
                self._export_attempt, request, span_id, started_at, elapsed_ms, response, error
            )

    def _guard(self, func: Any, *args: Any) -> None:
        """Run a recording step; tracing failures are logged and dropped."""
        try:
            func(*args)
        except Exception as exc:  # noqa: BLE001
            logger.debug("trace.record_failed", error=repr(exc), step=getattr(func, "__name__", "?"))

    def _start_call_span(self, request: HttpRequest) -> None:
        context = request.context
        started_at = datetime.now(UTC)
        start = time.perf_counter()

        def finish(response: HttpResponse | None, error: BaseException | None) -> None:
            self._guard(
                self._export_call,
                request,
                context,
                started_at,
                (time.perf_counter() - start) * 1000,
                response,
                error,
            )

        context.on_complete(finish)

    def _export_call(
        self,
        request: HttpRequest,
        context: CorrelationContext,
        started_at: datetime,
        elapsed_ms: float,
        response: HttpResponse | None,
        error: BaseException | None,
    ) -> None:
        final = _final_response(response, error)
        attempts = error.attempts if isinstance(error, TransportError) else max(context.attempt, 1)
        self.sink.export(
            SpanRecord(
                name=self._span_name(request),
                kind=SPAN_KIND_CALL,
                trace_id=context.trace_id,
                span_id=context.span_id,
                parent_span_id=context.parent_span_id,
                started_at=started_at,
                duration_ms=round(elapsed_ms, 3),
                method=request.method.value,
                url=redact_url(request.url),
                status_code=final.status_code if final is not None else None,
                outcome=_outcome(response, error),
                attempt=attempts,
                error_type=type(error).__name__ if error is not None else None,
                correlation=_correlation_headers(final),
            )
        )

    def _export_attempt(
        self,
        request: HttpRequest,
        span_id: str,
        started_at: datetime,
        elapsed_ms: float,
        response: HttpResponse | None,
        error: BaseException | None,
    ) -> None:
        context = request.context
        self.sink.export(
            SpanRecord(
                name=self._span_name(request),
                kind=SPAN_KIND_ATTEMPT,
                trace_id=context.trace_id,
                span_id=span_id,
                parent_span_id=context.span_id,
                started_at=started_at,
                duration_ms=round(elapsed_ms, 3),
                method=request.method.value,
                url=redact_url(request.url),
                status_code=response.status_code if response is not None else None,
                outcome=_outcome(response, error),
                attempt=context.attempt,
                error_type=type(error).__name__ if error is not None else None,
                correlation=_correlation_headers(response),
            )
        )

    @staticmethod
    def _span_name(request: HttpRequest) -> str:
        host = request.url.split("://", 1)[-1].split("/", 1)[0]
        return f"http {request.method.value} {host}"


def spans_by_trace(spans: list[SpanRecord]) -> Mapping[str, list[SpanRecord]]:
    """Group spans by trace id, preserving export order."""
    grouped: dict[str, list[SpanRecord]] = {}
    for span in spans:
        grouped.setdefault(span.trace_id, []).append(span)
    return grouped
