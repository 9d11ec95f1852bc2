"""
HTTP sender.

Sends spans to a collector endpoint as OTLP/HTTP protobuf requests, each no
larger than ``max_payload`` bytes.
"""

import logging
from typing import Optional, Sequence

from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from .base import partition_spans

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAYLOAD = 1048576


class HttpSender(SpanExporter):
    """Span exporter posting size-bounded batches to ``url``."""

    def __init__(
        self,
        url: str,
        max_payload: int = DEFAULT_MAX_PAYLOAD,
        exporter: Optional[SpanExporter] = None,
    ):
        if max_payload <= 0:
            raise ValueError(f"max_payload must be positive, got {max_payload}")

        self.url = url
        self.max_payload = max_payload
        self._exporter = exporter or OTLPSpanExporter(endpoint=url)

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        batches, dropped = partition_spans(spans, self.max_payload)

        result = SpanExportResult.FAILURE if dropped else SpanExportResult.SUCCESS
        for batch in batches:
            if self._exporter.export(batch) != SpanExportResult.SUCCESS:
                logger.warning(f"HTTP sender failed to deliver {len(batch)} span(s) to {self.url}")
                result = SpanExportResult.FAILURE
        return result

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)

    def __repr__(self) -> str:
        return f"HttpSender(url={self.url!r}, max_payload={self.max_payload})"
