"""
Tracer builder and the immutable tracer it produces.

The builder is bound to a service name, reporter and sampler at creation;
customizers may add tags, propagators, an id generator or span limits, but
cannot rebind the sampler or reporter. :meth:`TracerBuilder.build` wires an
SDK ``TracerProvider`` and freezes the result.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.jaeger import JaegerPropagator
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import SpanLimits, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.id_generator import IdGenerator
from opentelemetry.sdk.trace.sampling import ParentBased, Sampler

logger = logging.getLogger(__name__)


class TracerBuilder:
    """Mutable construction parameters for a :class:`Tracer`."""

    def __init__(self, service_name: str, reporter: SpanProcessor, sampler: Sampler):
        self._service_name = service_name
        self._reporter = reporter
        self._sampler = sampler

        self.tags: Dict[str, Any] = {}
        self.propagators: List[TextMapPropagator] = [JaegerPropagator()]
        self.id_generator: Optional[IdGenerator] = None
        self.span_limits: Optional[SpanLimits] = None

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def reporter(self) -> SpanProcessor:
        return self._reporter

    @property
    def sampler(self) -> Sampler:
        return self._sampler

    def with_tag(self, key: str, value: Any) -> "TracerBuilder":
        """Add a tracer-level tag; a later value for the same key wins."""
        self.tags[key] = value
        return self

    def with_tags(self, tags: Mapping[str, Any]) -> "TracerBuilder":
        self.tags.update(tags)
        return self

    def register_propagator(self, propagator: TextMapPropagator) -> "TracerBuilder":
        """Add a header format, alongside the ones already registered."""
        self.propagators.append(propagator)
        return self

    def with_id_generator(self, id_generator: IdGenerator) -> "TracerBuilder":
        self.id_generator = id_generator
        return self

    def with_span_limits(self, span_limits: SpanLimits) -> "TracerBuilder":
        self.span_limits = span_limits
        return self

    def build(self) -> "Tracer":
        resource = Resource.create({**self.tags, SERVICE_NAME: self._service_name})

        provider = TracerProvider(
            sampler=ParentBased(root=self._sampler),
            resource=resource,
            id_generator=self.id_generator,
            span_limits=self.span_limits,
        )
        provider.add_span_processor(self._reporter)

        tracer = Tracer(
            service_name=self._service_name,
            sampler=self._sampler,
            reporter=self._reporter,
            provider=provider,
            propagator=CompositePropagator(list(self.propagators)),
            tags=MappingProxyType(dict(self.tags)),
        )
        logger.info(f"Tracer built for {self._service_name} with {self._sampler.get_description()}")
        return tracer


TracerCustomizer = Callable[[TracerBuilder], None]


@dataclass(frozen=True)
class Tracer:
    """Assembled tracer: fixed for the lifetime of the process."""

    service_name: str
    sampler: Sampler
    reporter: SpanProcessor
    provider: TracerProvider
    propagator: TextMapPropagator
    tags: Mapping[str, Any]

    def get_tracer(self, name: Optional[str] = None, version: Optional[str] = None) -> trace.Tracer:
        """OpenTelemetry tracer for an instrumentation scope (defaults to the service)."""
        return self.provider.get_tracer(name or self.service_name, version)

    def start_as_current_span(self, name: str, **kwargs):
        return self.get_tracer().start_as_current_span(name, **kwargs)

    def start_span(self, name: str, **kwargs) -> trace.Span:
        return self.get_tracer().start_span(name, **kwargs)

    def inject(self, carrier: MutableMapping[str, str], context: Optional[Context] = None) -> None:
        """Write the trace context of ``context`` (or the current one) into ``carrier``."""
        self.propagator.inject(carrier, context=context)

    def extract(self, carrier: Mapping[str, str], context: Optional[Context] = None) -> Context:
        return self.propagator.extract(carrier, context=context)

    def close(self):
        """Flush and stop the reporter; stop sampler polling if any."""
        self.provider.shutdown()
        close_sampler = getattr(self.sampler, "close", None)
        if close_sampler is not None:
            close_sampler()
