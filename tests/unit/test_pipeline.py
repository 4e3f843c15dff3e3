"""
Unit tests for HttpPipeline.

Tests cover:
- Policy ordering and composition
- Sealing after the first build
- Correlation context creation and propagation
- Errors propagate unchanged
"""

from typing import ClassVar

import pytest

from geomcp.config import ServerConfig
from geomcp.errors import PipelineSealedError, TransportError
from geomcp.http.identification import IdentificationPolicy
from geomcp.http.models import CorrelationContext, HttpRequest, HttpResponse, current_correlation
from geomcp.http.pipeline import Handler, HttpPipeline, Policy, build_pipeline
from geomcp.http.retry import RetryPolicy
from geomcp.http.tracing import InMemorySpanSink, TracingPolicy


class RecordingPolicy(Policy):
    """Appends its label to a shared log before and after the rest of the chain."""

    name: ClassVar[str] = "recording"

    def __init__(self, label: str, log: list[str]) -> None:
        self.label = label
        self.log = log

    async def apply(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        self.log.append(f"{self.label}:in")
        response = await next_handler(request.with_header(f"X-{self.label}", "1"))
        self.log.append(f"{self.label}:out")
        return response


class TestComposition:
    """Tests for policy ordering."""

    @pytest.mark.asyncio
    async def test_policies_run_in_registration_order(self, transport_factory) -> None:
        """The first registered policy is outermost."""
        log: list[str] = []
        transport = transport_factory()
        pipeline = HttpPipeline(transport)
        pipeline.use_policy(RecordingPolicy("a", log)).use_policy(RecordingPolicy("b", log))

        await pipeline.execute(HttpRequest.get("https://api.example.com/"))

        assert log == ["a:in", "b:in", "b:out", "a:out"]
        sent = transport.requests[0]
        assert sent.headers["X-a"] == "1"
        assert sent.headers["X-b"] == "1"

    @pytest.mark.asyncio
    async def test_empty_pipeline_calls_transport(self, transport_factory) -> None:
        """A pipeline without policies is just the transport."""
        transport = transport_factory([HttpResponse(204)])
        response = await HttpPipeline(transport).execute(HttpRequest.get("https://api.example.com/"))
        assert response.status_code == 204
        assert transport.calls == 1

    def test_policies_property(self, transport_factory) -> None:
        """Policies are exposed outermost first."""
        first = RecordingPolicy("a", [])
        second = RecordingPolicy("b", [])
        pipeline = HttpPipeline(transport_factory()).use_policy(first).use_policy(second)
        assert pipeline.policies == (first, second)

    def test_repr_shows_chain(self, transport_factory) -> None:
        """repr lists the chain down to the transport."""
        pipeline = HttpPipeline(transport_factory()).use_policy(RecordingPolicy("a", []))
        assert repr(pipeline) == "<HttpPipeline: recording -> transport>"


class TestSealing:
    """Tests for sealing the chain."""

    def test_use_policy_after_build_rejected(self, transport_factory) -> None:
        """Adding a policy after build raises."""
        pipeline = HttpPipeline(transport_factory())
        pipeline.build()
        with pytest.raises(PipelineSealedError) as exc_info:
            pipeline.use_policy(RecordingPolicy("late", []))
        assert exc_info.value.policy == "recording"

    @pytest.mark.asyncio
    async def test_execute_seals(self, transport_factory) -> None:
        """The first execute seals the pipeline."""
        pipeline = HttpPipeline(transport_factory())
        await pipeline.execute(HttpRequest.get("https://api.example.com/"))
        with pytest.raises(PipelineSealedError):
            pipeline.use_policy(RecordingPolicy("late", []))

    def test_build_is_idempotent(self, transport_factory) -> None:
        """build() returns the same handler every time."""
        pipeline = HttpPipeline(transport_factory())
        assert pipeline.build() is pipeline.build()


class TestCorrelation:
    """Tests for correlation contexts."""

    @pytest.mark.asyncio
    async def test_each_call_gets_a_context(self, transport_factory) -> None:
        """Every call gets its own context; the caller's request is untouched."""
        transport = transport_factory()
        pipeline = HttpPipeline(transport)
        request = HttpRequest.get("https://api.example.com/")

        await pipeline.execute(request)
        await pipeline.execute(request)

        first, second = (r.context for r in transport.requests)
        assert first is not None and second is not None
        assert first.trace_id != second.trace_id
        assert request.context is None

    @pytest.mark.asyncio
    async def test_explicit_parent_is_joined(self, transport_factory) -> None:
        """A context on the request becomes the parent of the call."""
        transport = transport_factory()
        parent = CorrelationContext()
        request = HttpRequest.get("https://api.example.com/").with_context(parent)

        await HttpPipeline(transport).execute(request)

        context = transport.requests[0].context
        assert context.trace_id == parent.trace_id
        assert context.parent_span_id == parent.span_id

    @pytest.mark.asyncio
    async def test_caller_traceparent_is_joined(self, transport_factory) -> None:
        """A traceparent header set by the caller names the parent span."""
        transport = transport_factory()
        parent = CorrelationContext()
        request = HttpRequest.get("https://api.example.com/", headers={"traceparent": parent.traceparent()})

        await HttpPipeline(transport).execute(request)

        context = transport.requests[0].context
        assert context.trace_id == parent.trace_id
        assert context.parent_span_id == parent.span_id

    @pytest.mark.asyncio
    async def test_malformed_traceparent_starts_new_trace(self, transport_factory) -> None:
        """An unparsable traceparent header is ignored."""
        transport = transport_factory()
        request = HttpRequest.get("https://api.example.com/", headers={"traceparent": "garbage"})

        await HttpPipeline(transport).execute(request)

        assert transport.requests[0].context.parent_span_id is None

    @pytest.mark.asyncio
    async def test_nested_call_joins_enclosing_trace(self, transport_factory) -> None:
        """A call made while another is running joins its trace."""
        inner_transport = transport_factory()
        inner = HttpPipeline(inner_transport)

        async def outer_send(request: HttpRequest) -> HttpResponse:
            await inner.execute(HttpRequest.get("https://inner.example.com/"))
            return HttpResponse(200)

        outer_transport = transport_factory([outer_send])
        await HttpPipeline(outer_transport).execute(HttpRequest.get("https://api.example.com/"))

        outer_context = outer_transport.requests[0].context
        inner_context = inner_transport.requests[0].context
        assert inner_context.trace_id == outer_context.trace_id
        assert inner_context.parent_span_id == outer_context.span_id

    @pytest.mark.asyncio
    async def test_current_correlation_reset(self, transport_factory) -> None:
        """The ambient context is cleared when the call ends."""
        await HttpPipeline(transport_factory()).execute(HttpRequest.get("https://api.example.com/"))
        assert current_correlation.get() is None

    @pytest.mark.asyncio
    async def test_completion_fires_on_error(self, transport_factory, refused) -> None:
        """Completion callbacks see the error that ended the call."""
        seen: list[BaseException | None] = []

        class Hook(Policy):
            name: ClassVar[str] = "hook"

            async def apply(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
                request.context.on_complete(lambda response, error: seen.append(error))
                return await next_handler(request)

        error = refused()
        pipeline = HttpPipeline(transport_factory([error])).use_policy(Hook())

        with pytest.raises(TransportError):
            await pipeline.execute(HttpRequest.get("https://api.example.com/"))
        assert seen == [error]


class TestBuildPipeline:
    """Tests for the standard chain."""

    def test_standard_order(self, transport_factory, config: ServerConfig) -> None:
        """Identification, then retry, then tracing."""
        pipeline = build_pipeline(config, transport_factory(), InMemorySpanSink())
        kinds = [type(p) for p in pipeline.policies]
        assert kinds == [IdentificationPolicy, RetryPolicy, TracingPolicy]

    def test_retry_limits_from_config(self, transport_factory) -> None:
        """Retry limits are converted from config milliseconds."""
        config = ServerConfig(http={"max_attempts": 5, "min_delay_ms": 100, "max_delay_ms": 900})
        retry = build_pipeline(config, transport_factory()).policies[1]
        assert retry.config.max_attempts == 5
        assert retry.config.min_delay == pytest.approx(0.1)
        assert retry.config.max_delay == pytest.approx(0.9)

    def test_tracing_disabled_by_config(self, transport_factory, config: ServerConfig) -> None:
        """Tracing is a passthrough unless enabled."""
        tracing = build_pipeline(config, transport_factory(), InMemorySpanSink()).policies[2]
        assert tracing.enabled is False
