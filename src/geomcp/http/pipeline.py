"""
The outbound HTTP policy pipeline.

Every tool issues its network requests through HttpPipeline.execute. The
pipeline is an ordered list of policies terminating in a transport adapter:

    execute(request)
      -> IdentificationPolicy.apply
        -> RetryPolicy.apply          (repeats everything below it)
          -> TracingPolicy.apply
            -> Transport.send

Design:
    - Policies share one capability: apply(request, next_handler)
    - Composition is right-to-left: the transport is the innermost handler
      and each policy wraps the previous result as its next_handler
    - The policy list is fixed once the pipeline starts serving calls
    - The pipeline holds no per-call state; each execute() creates its own
      correlation context, so concurrent calls never observe each other

Usage:
    pipeline = HttpPipeline(HttpxTransport())
    pipeline.use_policy(IdentificationPolicy(identity))
    pipeline.use_policy(RetryPolicy())
    pipeline.use_policy(TracingPolicy(sink))

    tool = ForwardGeocodeTool(pipeline.execute, config)
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from functools import partial
from typing import TYPE_CHECKING, ClassVar, Protocol

from geomcp.errors import PipelineSealedError
from geomcp.http.models import (
    CorrelationContext,
    HttpRequest,
    HttpResponse,
    current_correlation,
)

if TYPE_CHECKING:
    from geomcp.config import ServerConfig
    from geomcp.http.tracing import SpanSink


# The bound execute function handed to tools, and the shape of every link
Handler = Callable[[HttpRequest], Awaitable[HttpResponse]]


class Transport(Protocol):
    """The network call at the end of the chain."""

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Perform one physical request; raise TransportError on failure."""
        ...


class Policy(ABC):
    """
    A unit of cross-cutting request/response behavior.

    Policies wrap the rest of the chain. They may replace the request they
    pass down, inspect or retry what comes back, but must not keep per-call
    state on self: one instance serves every concurrent call.
    """

    name: ClassVar[str] = "policy"

    @abstractmethod
    async def apply(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        """
        Handle a request by (eventually) delegating to next_handler.

        Args:
            request: The request as seen at this point of the chain
            next_handler: The remainder of the chain toward the transport

        Returns:
            The response to hand back up the chain
        """
        ...

    def __repr__(self) -> str:
        """String representation of the policy."""
        return f"<Policy: {self.name}>"


def _inbound_trace(request: HttpRequest) -> CorrelationContext | None:
    """The trace named by a traceparent header already on the request, if any."""
    value = request.headers.get("traceparent")
    return CorrelationContext.from_traceparent(value) if value else None


class HttpPipeline:
    """
    Ordered policy chain plus a terminal transport.

    Attributes:
        transport: The adapter that performs the physical network call
    """

    def __init__(self, transport: Transport) -> None:
        """Initialize an empty pipeline around a transport."""
        self.transport = transport
        self._policies: list[Policy] = []
        self._handler: Handler | None = None

    @property
    def policies(self) -> tuple[Policy, ...]:
        """The configured policies, outermost first."""
        return tuple(self._policies)

    def use_policy(self, policy: Policy) -> "HttpPipeline":
        """
        Append a policy; composition order is call order.

        Raises:
            PipelineSealedError: If the pipeline has already been built
        """
        if self._handler is not None:
            raise PipelineSealedError(policy=policy.name)
        self._policies.append(policy)
        return self

    def build(self) -> Handler:
        """Compose the chain once and seal the pipeline."""
        if self._handler is None:
            handler: Handler = self.transport.send
            for policy in reversed(self._policies):
                handler = partial(policy.apply, next_handler=handler)
            self._handler = handler
        return self._handler

    async def execute(self, request: HttpRequest) -> HttpResponse:
        """
        Send a request through every policy to the transport.

        The call gets its own correlation context, joining the trace of
        request.context, of an enclosing pipeline call, or of a traceparent
        header the caller set, in that order.

        Raises:
            TransportError: When retries are exhausted or the failure is
                not retryable. Delivered 4xx responses are returned.
        """
        handler = self.build()
        context = CorrelationContext.derive(
            request.context or current_correlation.get() or _inbound_trace(request)
        )
        token = current_correlation.set(context)
        try:
            response = await handler(request.with_context(context))
        except BaseException as exc:
            context.finish(error=exc)
            raise
        else:
            context.finish(response=response)
            return response
        finally:
            current_correlation.reset(token)

    def __repr__(self) -> str:
        """String representation of the pipeline."""
        chain = " -> ".join([p.name for p in self._policies] + ["transport"])
        return f"<HttpPipeline: {chain}>"


def build_pipeline(
    config: "ServerConfig",
    transport: Transport,
    sink: "SpanSink | None" = None,
) -> HttpPipeline:
    """
    Assemble the standard chain: identification, retry, tracing.

    Tracing is added in passthrough mode when disabled in config or when no
    sink is given, so the chain shape is the same either way.
    """
    from geomcp.http.identification import IdentificationPolicy
    from geomcp.http.retry import RetryPolicy
    from geomcp.http.tracing import TracingPolicy

    pipeline = HttpPipeline(transport)
    pipeline.use_policy(IdentificationPolicy(config.identity()))
    pipeline.use_policy(RetryPolicy(config.retry_config()))
    pipeline.use_policy(TracingPolicy(sink, enabled=config.tracing.enabled))
    return pipeline
