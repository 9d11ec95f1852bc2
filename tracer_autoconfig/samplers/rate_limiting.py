"""
Rate limiting sampler.

Token bucket: credits accrue at ``max_traces_per_second`` per second up to a
balance of ``max(max_traces_per_second, 1)``; each sampled trace costs one
credit.
"""

import threading
import time
from typing import Callable, Optional, Sequence

from opentelemetry.context import Context
from opentelemetry.sdk.trace.sampling import Decision, Sampler, SamplingResult
from opentelemetry.trace import Link, SpanKind, get_current_span
from opentelemetry.trace.span import TraceState
from opentelemetry.util.types import Attributes


class RateLimiter:
    """Credit balance replenished over time."""

    def __init__(
        self,
        credits_per_second: float,
        max_balance: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credits_per_second = credits_per_second
        self.max_balance = max_balance
        self.balance = max_balance
        self._clock = clock
        self._last_tick = clock()
        self._lock = threading.Lock()

    def check_credit(self, item_cost: float = 1.0) -> bool:
        """Spend ``item_cost`` credits if the balance allows it."""
        with self._lock:
            now = self._clock()
            elapsed = now - self._last_tick
            self._last_tick = now

            self.balance = min(self.balance + elapsed * self.credits_per_second, self.max_balance)
            if self.balance >= item_cost:
                self.balance -= item_cost
                return True
            return False


class RateLimitingSampler(Sampler):
    """Samples at most ``max_traces_per_second`` root traces per second."""

    SAMPLER_TYPE = "ratelimiting"

    def __init__(
        self,
        max_traces_per_second: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_traces_per_second < 0:
            raise ValueError(f"max_traces_per_second must be >= 0, got {max_traces_per_second}")

        self.max_traces_per_second = max_traces_per_second
        self.rate_limiter = RateLimiter(
            credits_per_second=max_traces_per_second,
            max_balance=max(max_traces_per_second, 1.0),
            clock=clock,
        )
        self._attributes = {
            "sampler.type": self.SAMPLER_TYPE,
            "sampler.param": float(max_traces_per_second),
        }

    def should_sample(
        self,
        parent_context: Optional[Context],
        trace_id: int,
        name: str,
        kind: Optional[SpanKind] = None,
        attributes: Attributes = None,
        links: Optional[Sequence[Link]] = None,
        trace_state: Optional[TraceState] = None,
    ) -> SamplingResult:
        parent_trace_state = get_current_span(parent_context).get_span_context().trace_state

        if self.rate_limiter.check_credit(1.0):
            return SamplingResult(Decision.RECORD_AND_SAMPLE, self._attributes, parent_trace_state)
        return SamplingResult(Decision.DROP, None, parent_trace_state)

    def get_description(self) -> str:
        return f"RateLimitingSampler{{{float(self.max_traces_per_second)}}}"

    def __repr__(self) -> str:
        return self.get_description()
