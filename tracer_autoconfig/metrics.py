"""
Tracer client metrics.

Counters shared by remote reporters and the remote-controlled sampler. The
backing meter provider is either an in-memory SDK provider, whose values can
be read back with :meth:`Metrics.snapshot`, or the API's no-op provider.
"""

from typing import Dict, Optional

from opentelemetry.metrics import MeterProvider, NoOpMeterProvider
from opentelemetry.sdk.metrics import MeterProvider as SdkMeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader


METER_NAME = "tracer_autoconfig"


class Metrics:
    """Counters describing what the tracer client did."""

    def __init__(
        self,
        meter_provider: MeterProvider,
        reader: Optional[InMemoryMetricReader] = None,
    ):
        self.meter_provider = meter_provider
        self.reader = reader

        meter = meter_provider.get_meter(METER_NAME)

        self.reporter_success = meter.create_counter(
            "reporter.spans.success", unit="1", description="Spans successfully sent",
        )
        self.reporter_failure = meter.create_counter(
            "reporter.spans.failure", unit="1", description="Spans the sender failed to send",
        )
        self.sampler_retrieved = meter.create_counter(
            "sampler.queries", unit="1", description="Sampling strategies retrieved",
        )
        self.sampler_updated = meter.create_counter(
            "sampler.updates", unit="1", description="Sampler replacements after a poll",
        )
        self.sampler_query_failure = meter.create_counter(
            "sampler.query_failures", unit="1", description="Failed sampling strategy queries",
        )
        self.sampler_parsing_failure = meter.create_counter(
            "sampler.parsing_failures", unit="1", description="Unparseable sampling strategies",
        )

    @classmethod
    def in_memory(cls) -> "Metrics":
        """Metrics kept in process memory."""
        reader = InMemoryMetricReader()
        return cls(SdkMeterProvider(metric_readers=[reader]), reader=reader)

    @classmethod
    def noop(cls) -> "Metrics":
        """Metrics that record nothing."""
        return cls(NoOpMeterProvider())

    @property
    def enabled(self) -> bool:
        return not isinstance(self.meter_provider, NoOpMeterProvider)

    def snapshot(self) -> Dict[str, int]:
        """
        Current counter totals by name.

        Only available for in-memory metrics; returns an empty dict otherwise.
        """
        if self.reader is None:
            return {}

        data = self.reader.get_metrics_data()
        counts: Dict[str, int] = {}
        if data is None:
            return counts

        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    counts[metric.name] = sum(
                        point.value for point in metric.data.data_points
                    )
        return counts

    def __repr__(self) -> str:
        kind = "in-memory" if self.reader is not None else ("sdk" if self.enabled else "noop")
        return f"Metrics({kind})"
