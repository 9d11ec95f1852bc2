"""Span transports used by remote reporters."""

from .base import partition_spans
from .http import HttpSender
from .udp import UdpSender

__all__ = [
    "partition_spans",
    "HttpSender",
    "UdpSender",
]
