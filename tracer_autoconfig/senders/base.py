"""Size-bounded batching shared by the senders."""

import logging
from typing import List, Sequence, Tuple

from opentelemetry.exporter.otlp.proto.common.trace_encoder import encode_spans
from opentelemetry.sdk.trace import ReadableSpan

logger = logging.getLogger(__name__)

# Upper bound on how much the enclosing length prefixes grow per added span
ENVELOPE_MARGIN = 8


def encoded_size(spans: Sequence[ReadableSpan]) -> int:
    """Size in bytes of the OTLP request carrying ``spans``."""
    return encode_spans(spans).ByteSize()


def _varint_size(value: int) -> int:
    return max(1, (value.bit_length() + 6) // 7)


def _measure(span: ReadableSpan) -> Tuple[int, int]:
    """
    Encode ``span`` alone once.

    Returns ``(request_size, field_size)``: the size of a request carrying
    only this span, and the size of its span field inside a request that
    already carries its resource and scope.
    """
    request = encode_spans([span])
    span_size = request.resource_spans[0].scope_spans[0].spans[0].ByteSize()
    return request.ByteSize(), 1 + _varint_size(span_size) + span_size


def _finish(
    entries: List[Tuple[ReadableSpan, int]],
    max_size: int,
) -> List[List[ReadableSpan]]:
    """Check the exact size of a batch, splitting it if the estimate was off."""
    batch = [span for span, _ in entries]
    if encoded_size(batch) <= max_size:
        return [batch]

    # Sums of single-span request sizes never underestimate
    batches: List[List[ReadableSpan]] = []
    current: List[ReadableSpan] = []
    total = 0
    for span, request_size in entries:
        if current and total + request_size > max_size:
            batches.append(current)
            current, total = [], 0
        current.append(span)
        total += request_size
    batches.append(current)
    return batches


def partition_spans(
    spans: Sequence[ReadableSpan],
    max_size: int,
) -> Tuple[List[List[ReadableSpan]], List[ReadableSpan]]:
    """
    Split spans into batches whose encoded request fits within ``max_size``.

    Returns ``(batches, dropped)``; a span is dropped when it does not fit
    even on its own. Span order is preserved.

    Each span is encoded once on its own and each finished batch once more,
    so the work grows linearly with the number of spans.
    """
    batches: List[List[ReadableSpan]] = []
    dropped: List[ReadableSpan] = []

    current: List[Tuple[ReadableSpan, int]] = []
    groups = set()
    estimate = 0

    for span in spans:
        request_size, field_size = _measure(span)
        if request_size > max_size:
            logger.warning(f"Dropping span '{span.name}': larger than {max_size} bytes once encoded")
            dropped.append(span)
            continue

        # Spans sharing resource and scope share the request envelope
        group = (span.resource, span.instrumentation_scope)
        added = field_size + ENVELOPE_MARGIN if group in groups else request_size

        if current and estimate + added > max_size:
            batches.extend(_finish(current, max_size))
            current, groups, estimate = [], set(), 0
            added = request_size

        current.append((span, request_size))
        groups.add(group)
        estimate += added

    if current:
        batches.extend(_finish(current, max_size))

    return batches, dropped
