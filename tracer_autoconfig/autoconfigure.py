"""
Process-wide tracer setup.

Call :func:`init_tracing` once at startup; application code then uses
:func:`get_tracer`.
"""

import logging
from typing import Any, Optional

from opentelemetry import propagate, trace

from .assembler import ComponentAssembler
from .config import TracingConfig
from .registry import ComponentRegistry
from .tracer import Tracer

logger = logging.getLogger(__name__)

_tracer: Optional[Any] = None
_initialized = False


def init_tracing(
    config: Optional[TracingConfig] = None,
    registry: Optional[ComponentRegistry] = None,
    set_global: bool = True,
) -> Optional[Any]:
    """
    Assemble the tracer and keep it for the lifetime of the process.

    Loads config from the environment when none is given. With
    ``set_global`` the tracer's provider and propagator become the
    OpenTelemetry globals. Returns the tracer, or None when disabled.
    Construction errors propagate.
    """
    global _tracer, _initialized

    if _initialized:
        return _tracer

    config = config or TracingConfig.from_env()

    tracer = ComponentAssembler(config, registry).assemble()
    if tracer is None:
        _initialized = True
        return None

    if set_global and isinstance(tracer, Tracer):
        trace.set_tracer_provider(tracer.provider)
        propagate.set_global_textmap(tracer.propagator)
        logger.info(f"Tracer for {tracer.service_name} installed globally")

    _tracer = tracer
    _initialized = True
    return tracer


def get_tracer(name: Optional[str] = None) -> trace.Tracer:
    """
    Get a tracer for instrumentation.

    Falls back to the global OpenTelemetry tracer (a no-op unless the host
    configured one) when tracing was not initialized or is disabled.
    """
    if isinstance(_tracer, Tracer):
        return _tracer.get_tracer(name)
    if _tracer is not None:
        # externally resolved
        return _tracer
    return trace.get_tracer(name or __name__)


def get_configured_tracer() -> Optional[Any]:
    """The tracer produced by :func:`init_tracing`, if any."""
    return _tracer


def shutdown_tracing():
    """Close the configured tracer and forget it."""
    global _tracer, _initialized

    if isinstance(_tracer, Tracer):
        _tracer.close()

    _tracer = None
    _initialized = False
