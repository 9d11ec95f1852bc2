"""
UDP sender.

Sends spans to an agent as serialized OTLP ``ExportTraceServiceRequest``
datagrams of at most ``max_packet_size`` bytes. The endpoint is resolved at
construction time, so an unresolvable host fails immediately.
"""

import logging
import socket
from typing import Sequence

from opentelemetry.exporter.otlp.proto.common.trace_encoder import encode_spans
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from .base import partition_spans

logger = logging.getLogger(__name__)

DEFAULT_AGENT_PORT = 6831
DEFAULT_MAX_PACKET_SIZE = 65000


class UdpSender(SpanExporter):
    """Span exporter writing one datagram per size-bounded batch."""

    def __init__(
        self,
        host: str,
        port: int = 0,
        max_packet_size: int = DEFAULT_MAX_PACKET_SIZE,
    ):
        if max_packet_size <= 0:
            raise ValueError(f"max_packet_size must be positive, got {max_packet_size}")

        self.host = host
        self.port = port or DEFAULT_AGENT_PORT
        self.max_packet_size = max_packet_size

        family, _, _, _, address = socket.getaddrinfo(
            self.host, self.port, type=socket.SOCK_DGRAM,
        )[0]
        self._address = address
        self._socket = socket.socket(family, socket.SOCK_DGRAM)

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        batches, dropped = partition_spans(spans, self.max_packet_size)

        result = SpanExportResult.FAILURE if dropped else SpanExportResult.SUCCESS
        for batch in batches:
            payload = encode_spans(batch).SerializeToString()
            try:
                self._socket.sendto(payload, self._address)
            except OSError as e:
                logger.warning(f"UDP sender failed to send {len(batch)} span(s) to {self.host}:{self.port}: {e}")
                result = SpanExportResult.FAILURE
        return result

    def shutdown(self) -> None:
        self._socket.close()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True

    def __repr__(self) -> str:
        return f"UdpSender(host={self.host!r}, port={self.port}, max_packet_size={self.max_packet_size})"
