"""Sampler variants: const, probabilistic, rate limiting and remote-controlled."""

from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ALWAYS_ON, TraceIdRatioBased

from .rate_limiting import RateLimiter, RateLimitingSampler
from .remote import HttpSamplingManager, RemoteControlledSampler, parse_sampling_strategy


def const_sampler(decision: bool):
    """Sampler that always (True) or never (False) samples."""
    return ALWAYS_ON if decision else ALWAYS_OFF


def probabilistic_sampler(sampling_rate: float) -> TraceIdRatioBased:
    """Sampler that keeps ``sampling_rate`` of traces, decided by trace id."""
    return TraceIdRatioBased(sampling_rate)


__all__ = [
    "const_sampler",
    "probabilistic_sampler",
    "RateLimiter",
    "RateLimitingSampler",
    "HttpSamplingManager",
    "RemoteControlledSampler",
    "parse_sampling_strategy",
]
