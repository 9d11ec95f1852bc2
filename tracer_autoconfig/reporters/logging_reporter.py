"""Reporter that logs finished spans."""

import logging
from typing import Optional

from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor

REPORTER_LOGGER = "tracer_autoconfig.reporters"


class LoggingReporter(SpanProcessor):
    """Logs every finished span at INFO."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(REPORTER_LOGGER)

    def on_end(self, span: ReadableSpan) -> None:
        context = span.get_span_context()
        self.logger.info(
            f"Reporting span {context.trace_id:032x}:{context.span_id:016x} "
            f"'{span.name}' ({span.kind.name.lower()})"
        )

    def __repr__(self) -> str:
        return f"LoggingReporter(logger={self.logger.name!r})"
