"""
Built-in tracer customizers.

A customizer is any callable taking the :class:`~tracer_autoconfig.tracer.TracerBuilder`;
customizers run in registration order before the tracer is built.
"""

import logging

from opentelemetry.propagators.b3 import B3MultiFormat

from .tracer import TracerBuilder

logger = logging.getLogger(__name__)


class B3PropagationCustomizer:
    """
    Handle B3 headers (``X-B3-TraceId`` ...) in addition to ``uber-trace-id``.

    Lets the tracer join traces started by Zipkin-instrumented services.
    """

    def __call__(self, builder: TracerBuilder) -> None:
        builder.register_propagator(B3MultiFormat())
        logger.info("B3 propagation enabled")

    def __repr__(self) -> str:
        return "B3PropagationCustomizer()"
