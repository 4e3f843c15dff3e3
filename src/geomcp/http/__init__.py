"""
Outbound HTTP for geomcp.

Tools never touch the network directly. They receive HttpPipeline.execute
and send HttpRequests through it; the pipeline applies its policies and
finally calls the transport adapter.

Architecture:
    - HttpRequest / HttpResponse / CorrelationContext: data shapes
    - Policy: apply(request, next_handler) -> response
    - IdentificationPolicy: User-Agent stamping
    - RetryPolicy: jittered exponential backoff for transient failures
    - TracingPolicy: call and attempt spans handed to a SpanSink
    - HttpxTransport: the physical call, injected into the pipeline
"""

from geomcp.http.identification import ClientIdentity, IdentificationPolicy
from geomcp.http.models import (
    CorrelationContext,
    HttpMethod,
    HttpRequest,
    HttpResponse,
    current_correlation,
    redact_url,
)
from geomcp.http.pipeline import Handler, HttpPipeline, Policy, Transport, build_pipeline
from geomcp.http.retry import RetryConfig, RetryDecision, RetryPolicy, RetryState
from geomcp.http.tracing import (
    InMemorySpanSink,
    LogSpanSink,
    SpanRecord,
    SpanSink,
    TracingPolicy,
)
from geomcp.http.transport import HttpxTransport

__all__ = [
    "ClientIdentity",
    "CorrelationContext",
    "Handler",
    "HttpMethod",
    "HttpPipeline",
    "HttpRequest",
    "HttpResponse",
    "HttpxTransport",
    "IdentificationPolicy",
    "InMemorySpanSink",
    "LogSpanSink",
    "Policy",
    "RetryConfig",
    "RetryDecision",
    "RetryPolicy",
    "RetryState",
    "SpanRecord",
    "SpanSink",
    "TracingPolicy",
    "Transport",
    "build_pipeline",
    "current_correlation",
    "redact_url",
]
