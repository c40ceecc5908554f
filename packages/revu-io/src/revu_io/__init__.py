"""revu-io: Transport and log sink adapters."""

from revu_io.http import HttpReviewTransport
from revu_io.log_sink import (
    CompositeLogSink,
    ConsoleLogSink,
    FileLogSink,
    InMemoryLogSink,
    NoopLogSink,
    build_log_sink,
)
from revu_io.memory import InMemoryReviewBackend

__version__ = "0.1.0"

__all__ = [
    "CompositeLogSink",
    "ConsoleLogSink",
    "FileLogSink",
    "HttpReviewTransport",
    "InMemoryLogSink",
    "InMemoryReviewBackend",
    "NoopLogSink",
    "build_log_sink",
]
