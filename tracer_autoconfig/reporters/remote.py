"""
Remote reporter.

Buffers finished spans and hands them to a sender every ``flush_interval``
milliseconds, keeping at most ``max_queue_size`` spans in memory. Sender
outcomes are counted in :class:`~tracer_autoconfig.metrics.Metrics`.
"""

import logging
from typing import Optional, Sequence

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter, SpanExportResult

from ..metrics import Metrics

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL = 1000
DEFAULT_MAX_QUEUE_SIZE = 100
MAX_EXPORT_BATCH_SIZE = 512


class MeteredExporter(SpanExporter):
    """Wraps a sender and counts delivered / failed spans."""

    def __init__(self, sender: SpanExporter, metrics: Metrics):
        self.sender = sender
        self.metrics = metrics

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        try:
            result = self.sender.export(spans)
        except Exception as e:
            logger.warning(f"Sender {self.sender!r} raised while exporting {len(spans)} span(s): {e}")
            result = SpanExportResult.FAILURE

        if result == SpanExportResult.SUCCESS:
            self.metrics.reporter_success.add(len(spans))
        else:
            self.metrics.reporter_failure.add(len(spans))
        return result

    def shutdown(self) -> None:
        self.sender.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self.sender.force_flush(timeout_millis)


class RemoteReporter(BatchSpanProcessor):
    """Batching reporter in front of an HTTP or UDP sender."""

    def __init__(
        self,
        sender: SpanExporter,
        flush_interval: int = DEFAULT_FLUSH_INTERVAL,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        metrics: Optional[Metrics] = None,
    ):
        metrics = metrics or Metrics.noop()

        super().__init__(
            MeteredExporter(sender, metrics),
            max_queue_size=max_queue_size,
            schedule_delay_millis=flush_interval,
            max_export_batch_size=min(max_queue_size, MAX_EXPORT_BATCH_SIZE),
        )

        self.sender = sender
        self.flush_interval = flush_interval
        self.max_queue_size = max_queue_size
        self.metrics = metrics

    def __repr__(self) -> str:
        return (
            f"RemoteReporter(sender={self.sender!r}, flush_interval={self.flush_interval}, "
            f"max_queue_size={self.max_queue_size})"
        )
