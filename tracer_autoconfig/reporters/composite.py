"""Reporter fanning each span out to an ordered list of reporters."""

from typing import Tuple

from opentelemetry.sdk.trace import SpanProcessor, SynchronousMultiSpanProcessor


class CompositeReporter(SynchronousMultiSpanProcessor):
    """
    Forwards every span to each child reporter, in order.

    A composite without children is a valid reporter that exports nothing.
    """

    def __init__(self, *reporters: SpanProcessor):
        super().__init__()
        for reporter in reporters:
            self.add_span_processor(reporter)
        self._reporters = tuple(reporters)

    @property
    def reporters(self) -> Tuple[SpanProcessor, ...]:
        return self._reporters

    def __repr__(self) -> str:
        children = ", ".join(repr(r) for r in self._reporters)
        return f"CompositeReporter([{children}])"
