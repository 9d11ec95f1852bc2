"""Span reporters: logging, remote (batched sender) and composite."""

from .composite import CompositeReporter
from .logging_reporter import LoggingReporter
from .remote import MeteredExporter, RemoteReporter

__all__ = [
    "CompositeReporter",
    "LoggingReporter",
    "MeteredExporter",
    "RemoteReporter",
]
