"""
Retry policy: bounded, jittered exponential backoff for transient failures.

A failure is transient when it is a transport-level error (timeout,
connection refused/reset, DNS failure) or a delivered response with status
429 or 5xx. Other 4xx responses are returned immediately: retrying a
malformed request cannot fix it.

The retry loop is an explicit state machine rather than recursion:

    ATTEMPTING -> SUCCEEDED                 (non-retryable response)
    ATTEMPTING -> FAILED                    (non-retryable transport error)
    ATTEMPTING -> AWAITING_RETRY_DELAY      (transient, attempts left)
    ATTEMPTING -> EXHAUSTED                 (transient, no attempts left)
    AWAITING_RETRY_DELAY -> ATTEMPTING

Backoff:
    retry n (n >= 1) waits uniform(base, base * (1 + jitter)) seconds where
    base = min_delay * 2**(n-1), clamped to [min_delay, max_delay] and never
    shorter than the previous wait of the same call. A Retry-After header
    can lengthen the wait up to max_delay.

The policy assumes every request it wraps is safe to repeat. All requests
issued by geomcp tools are reads.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import ClassVar

from geomcp.errors import (
    REASON_HTTP_STATUS,
    REASON_TIMEOUT,
    RetryExhaustedError,
    TransportError,
)
from geomcp.http.models import HttpRequest, HttpResponse, redact_url
from geomcp.http.pipeline import Handler, Policy
from geomcp.logging import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


# =============================================================================
# Configuration and bookkeeping
# =============================================================================


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry limits, in seconds.

    Attributes:
        max_attempts: Total physical attempts, initial one included
        min_delay: Shortest wait between attempts
        max_delay: Longest wait between attempts
        jitter: Upper spread of each wait as a fraction of its base
        attempt_timeout: Deadline for one physical attempt (None = no deadline)
    """

    max_attempts: int = 3
    min_delay: float = 0.2
    max_delay: float = 2.0
    jitter: float = 0.5
    attempt_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate limits."""
        if self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)
        if self.min_delay <= 0 or self.max_delay < self.min_delay:
            msg = "delays must satisfy 0 < min_delay <= max_delay"
            raise ValueError(msg)
        if self.jitter <= 0:
            msg = "jitter must be positive"
            raise ValueError(msg)
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            msg = "attempt_timeout must be positive"
            raise ValueError(msg)


class RetryState(str, Enum):
    """States of the per-call retry loop."""

    ATTEMPTING = "attempting"
    AWAITING_RETRY_DELAY = "awaiting_retry_delay"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


class RetryDecision(str, Enum):
    """What to do after one attempt."""

    SUCCEED = "succeed"
    RETRY = "retry"
    GIVE_UP = "give_up"


@dataclass
class AttemptRecord:
    """
    Outcome of one physical attempt. Lives only inside one apply() call.

    Attributes:
        number: 1-based attempt number
        request: The independent request copy sent on this attempt
        response: Response observed, if any
        failure: Transport failure observed, if any
        decision: Classification of the outcome
        delay: Seconds to wait before the next attempt
    """

    number: int
    request: HttpRequest
    response: HttpResponse | None = None
    failure: TransportError | None = None
    decision: RetryDecision | None = None
    delay: float = 0.0


def is_retryable_status(status_code: int) -> bool:
    """429 and every 5xx are worth another attempt."""
    return status_code == 429 or 500 <= status_code <= 599


def classify(record: AttemptRecord) -> RetryDecision:
    """Classify an attempt's outcome, ignoring the attempt budget."""
    if record.failure is not None:
        return RetryDecision.RETRY if record.failure.transient else RetryDecision.GIVE_UP
    if record.response is not None and is_retryable_status(record.response.status_code):
        return RetryDecision.RETRY
    return RetryDecision.SUCCEED


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header (delta-seconds or HTTP date) into seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - datetime.now(UTC)).total_seconds())


# =============================================================================
# Policy
# =============================================================================


class RetryPolicy(Policy):
    """
    Repeat the rest of the chain while failures are transient.

    Each attempt sends an independent copy of the request, so headers added
    further down the chain never leak into the next attempt or back to the
    caller. The attempt number is published on the call's correlation context.

    Example:
        policy = RetryPolicy(RetryConfig(max_attempts=3), sleep=fake_sleep)
    """

    name: ClassVar[str] = "retry"

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._rng = rng or random.Random()

    def backoff_delay(self, retry: int, previous: float = 0.0, retry_after: float | None = None) -> float:
        """
        Seconds to wait before retry number `retry` (1-based).

        Args:
            retry: 1 for the first retry, 2 for the second, ...
            previous: Wait used before the previous retry of the same call
            retry_after: Server-requested wait, if any
        """
        cfg = self.config
        base = cfg.min_delay * (2 ** (retry - 1))
        delay = self._rng.uniform(base, base * (1 + cfg.jitter))
        if retry_after is not None:
            delay = max(delay, retry_after)
        delay = min(max(delay, cfg.min_delay), cfg.max_delay)
        return max(delay, previous)

    async def apply(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        state = RetryState.ATTEMPTING
        record: AttemptRecord | None = None
        number = 0
        delay = 0.0

        while True:
            if state is RetryState.ATTEMPTING:
                number += 1
                record = await self._attempt(number, request, next_handler)
                state = self._transition(record)
                if state is RetryState.AWAITING_RETRY_DELAY:
                    delay = self._delay_for(record, previous=delay)

            elif state is RetryState.AWAITING_RETRY_DELAY:
                await self._sleep(delay)
                state = RetryState.ATTEMPTING

            elif state is RetryState.SUCCEEDED:
                return record.response

            elif state is RetryState.FAILED:
                failure = record.failure
                failure.attempts = number
                failure.context["attempts"] = number
                raise failure

            else:
                raise self._exhausted(record) from record.failure

    async def _attempt(self, number: int, request: HttpRequest, next_handler: Handler) -> AttemptRecord:
        """Run one physical attempt and classify it."""
        attempt_request = request.copy()
        if attempt_request.context is not None:
            attempt_request.context.attempt = number
        record = AttemptRecord(number=number, request=attempt_request)

        try:
            if self.config.attempt_timeout is None:
                record.response = await next_handler(attempt_request)
            else:
                record.response = await asyncio.wait_for(
                    next_handler(attempt_request), timeout=self.config.attempt_timeout
                )
        except TimeoutError:
            record.failure = TransportError(
                message=f"Attempt {number} timed out after {self.config.attempt_timeout}s",
                reason=REASON_TIMEOUT,
                url=redact_url(request.url),
            )
        except TransportError as exc:
            record.failure = exc

        record.decision = classify(record)
        return record

    def _transition(self, record: AttemptRecord) -> RetryState:
        """Next state after an attempt, applying the attempt budget."""
        if record.decision is RetryDecision.SUCCEED:
            return RetryState.SUCCEEDED
        if record.decision is RetryDecision.GIVE_UP:
            return RetryState.FAILED
        if record.number >= self.config.max_attempts:
            record.decision = RetryDecision.GIVE_UP
            return RetryState.EXHAUSTED
        return RetryState.AWAITING_RETRY_DELAY

    def _delay_for(self, record: AttemptRecord, previous: float) -> float:
        """Compute and log the wait before the attempt after `record`."""
        retry_after = None
        if record.response is not None:
            retry_after = parse_retry_after(record.response.header("retry-after"))
        record.delay = self.backoff_delay(record.number, previous=previous, retry_after=retry_after)

        logger.warning(
            "http.retry",
            url=redact_url(record.request.url),
            attempt=record.number,
            max_attempts=self.config.max_attempts,
            status_code=record.response.status_code if record.response is not None else None,
            reason=record.failure.reason if record.failure is not None else REASON_HTTP_STATUS,
            delay_ms=round(record.delay * 1000),
        )
        return record.delay

    def _exhausted(self, record: AttemptRecord) -> RetryExhaustedError:
        """Build the error surfaced when every attempt failed transiently."""
        error = RetryExhaustedError(
            reason=record.failure.reason if record.failure is not None else REASON_HTTP_STATUS,
            url=redact_url(record.request.url),
            attempts=record.number,
            response=record.response,
        )
        logger.error(
            "http.retry_exhausted",
            url=error.url,
            attempts=error.attempts,
            reason=error.reason,
            status_code=error.status_code,
        )
        return error
