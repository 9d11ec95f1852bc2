"""
Component Assembler

Turns a configuration snapshot into a tracer:
- Sampler: first configured variant wins, sample-everything otherwise
- Reporter: HTTP, UDP and logging reporters in fixed order, always composite
- Metrics: in-memory or no-op counters behind the reporters
- Tracer: builder + ordered customizers, or an external resolver

Components already present in the registry are used as-is; the assembler
never builds a second instance of them. Misconfiguration degrades to
permissive defaults instead of failing: only the external resolver and
sender construction can raise.
"""

import logging
from typing import Any, List, Optional, Sequence

from opentelemetry.sdk.trace import SpanProcessor
from opentelemetry.sdk.trace.sampling import Sampler

from . import registry as names
from .config import TracingConfig
from .customizers import B3PropagationCustomizer
from .metrics import Metrics
from .registry import ComponentRegistry
from .reporters import CompositeReporter, LoggingReporter, RemoteReporter
from .resolver import TracerResolver, resolve_tracer
from .samplers import (
    HttpSamplingManager,
    RateLimitingSampler,
    RemoteControlledSampler,
    const_sampler,
    probabilistic_sampler,
)
from .senders import HttpSender, UdpSender
from .tracer import Tracer, TracerBuilder, TracerCustomizer

logger = logging.getLogger(__name__)


class ComponentAssembler:
    """Builds sampler, reporter, metrics and tracer from a TracingConfig."""

    def __init__(
        self,
        config: TracingConfig,
        registry: Optional[ComponentRegistry] = None,
        resolvers: Optional[Sequence[TracerResolver]] = None,
    ):
        self.config = config
        self.registry = registry if registry is not None else ComponentRegistry()
        # None = discover installed resolvers
        self.resolvers = resolvers

    # =========================================================================
    # Metrics
    # =========================================================================

    def resolve_metrics(self) -> Metrics:
        registered = self.registry.get(names.METRICS)
        if registered is not None:
            logger.debug("Using registered metrics")
            return registered

        meter_provider = self.registry.get(names.METER_PROVIDER)
        if meter_provider is not None:
            logger.debug("Using registered meter provider for metrics")
            return Metrics(meter_provider)

        if self.config.enable_metrics:
            return Metrics.in_memory()
        return Metrics.noop()

    # =========================================================================
    # Sampler
    # =========================================================================

    def resolve_sampler(self, metrics: Optional[Metrics] = None) -> Sampler:
        """
        Decide on the sampler from the sampler sections of the config.

        Const, probabilistic, rate limiting, remote-controlled: the first one
        configured wins. Falls back to sampling every trace.
        """
        registered = self.registry.get(names.SAMPLER)
        if registered is not None:
            logger.debug("Using registered sampler")
            return registered

        config = self.config

        if config.const_sampler.decision is not None:
            sampler = const_sampler(config.const_sampler.decision)
        elif config.probabilistic_sampler.sampling_rate is not None:
            sampler = probabilistic_sampler(config.probabilistic_sampler.sampling_rate)
        elif config.rate_limiting_sampler.max_traces_per_second is not None:
            sampler = RateLimitingSampler(config.rate_limiting_sampler.max_traces_per_second)
        elif config.remote_controlled_sampler.host_port:
            remote = config.remote_controlled_sampler
            sampler = RemoteControlledSampler(
                config.service_name,
                HttpSamplingManager(remote.host_port),
                initial_sampler=probabilistic_sampler(remote.sampling_rate),
                metrics=metrics,
            )
        else:
            # fallback to sampling every trace
            sampler = const_sampler(True)

        logger.info(f"Sampler: {sampler.get_description()}")
        return sampler

    # =========================================================================
    # Reporter
    # =========================================================================

    def resolve_reporter(self, metrics: Optional[Metrics] = None) -> SpanProcessor:
        """
        Compose the reporter: HTTP, then UDP, then logging, then any reporters
        added by registered appenders. The result is always a composite, which
        may be empty.
        """
        registered = self.registry.get(names.REPORTER)
        if registered is not None:
            logger.debug("Using registered reporter")
            return registered

        metrics = metrics or Metrics.noop()
        config = self.config
        remote = config.remote_reporter
        reporters: List[SpanProcessor] = []

        try:
            if config.http_sender.url:
                sender = HttpSender(config.http_sender.url, config.http_sender.max_payload)
                reporters.append(RemoteReporter(sender, remote.flush_interval, remote.max_queue_size, metrics))

            if config.udp_sender.host:
                sender = UdpSender(config.udp_sender.host, config.udp_sender.port, config.udp_sender.max_packet_size)
                reporters.append(RemoteReporter(sender, remote.flush_interval, remote.max_queue_size, metrics))

            if config.log_spans:
                reporters.append(LoggingReporter())

            for appender in self.registry.reporter_appenders:
                appender(reporters)
        except Exception:
            for built in reporters:
                built.shutdown()
            raise

        reporter = CompositeReporter(*reporters)
        if reporters:
            logger.info(f"Reporter: {reporter!r}")
        else:
            logger.info("Reporter: no reporters configured, spans will not be exported")
        return reporter

    # =========================================================================
    # Tracer
    # =========================================================================

    def customizers(self) -> List[TracerCustomizer]:
        """Built-in customizers first, then registered ones in registration order."""
        customizers: List[TracerCustomizer] = []
        if self.config.enable_b3_propagation:
            customizers.append(B3PropagationCustomizer())
        customizers.extend(self.registry.customizers)
        return customizers

    def build_tracer(
        self,
        sampler: Optional[Sampler],
        reporter: Optional[SpanProcessor],
        customizers: Sequence[TracerCustomizer] = (),
    ) -> Any:
        """
        Build the tracer from already-resolved components.

        With ``use_tracer_resolver`` the external resolver supplies the tracer
        and the given sampler, reporter and customizers are ignored.
        """
        if self.config.use_tracer_resolver:
            return self._resolve_external()

        builder = TracerBuilder(self.config.service_name, reporter, sampler)
        for customizer in customizers:
            customizer(builder)
        return builder.build()

    def assemble(self) -> Optional[Any]:
        """
        Resolve every component and return the tracer.

        Returns the registered tracer untouched if there is one, and None when
        tracing is disabled. Constructed components are registered once the
        tracer is built, so the host can look them up afterwards. If any step
        fails, what was already built is stopped and the error propagates.
        """
        registered = self.registry.get(names.TRACER)
        if registered is not None:
            logger.info("Tracer already registered, skipping auto-configuration")
            return registered

        if not self.config.enabled:
            logger.info("Tracing auto-configuration disabled")
            return None

        if self.config.use_tracer_resolver:
            tracer = self._resolve_external()
        else:
            metrics = self.resolve_metrics()
            sampler = reporter = None
            try:
                sampler = self.resolve_sampler(metrics)
                reporter = self.resolve_reporter(metrics)
                tracer = self.build_tracer(sampler, reporter, self.customizers())
            except Exception:
                self._discard(sampler, reporter)
                raise

            self.registry.register(names.METRICS, metrics)
            self.registry.register(names.SAMPLER, sampler)
            self.registry.register(names.REPORTER, reporter)

        return self.registry.register(names.TRACER, tracer)

    def _discard(self, sampler: Optional[Sampler], reporter: Optional[SpanProcessor]):
        """Stop components built by a failed assembly. Registered ones belong to the host."""
        if reporter is not None and reporter is not self.registry.get(names.REPORTER):
            reporter.shutdown()
        if sampler is not None and sampler is not self.registry.get(names.SAMPLER):
            close = getattr(sampler, "close", None)
            if close is not None:
                close()

    def _resolve_external(self) -> Any:
        logger.info("Delegating tracer construction to the tracer resolver")
        return resolve_tracer(self.resolvers)


def assemble_tracer(
    config: TracingConfig,
    registry: Optional[ComponentRegistry] = None,
) -> Optional[Tracer]:
    """Shortcut for ``ComponentAssembler(config, registry).assemble()``."""
    return ComponentAssembler(config, registry).assemble()
