"""Ports (protocols) implemented by revu adapters."""

from revu_core.ports.sinks import LogSinkProtocol
from revu_core.ports.transport import (
    ApiErrorCode,
    ApiErrorDetails,
    ApiErrorInfo,
    CommitConflict,
    CommitFailed,
    CommitOk,
    CommitResult,
    ContentValidatorProtocol,
    JobTransportProtocol,
    ReviewApiError,
    ReviewTransportProtocol,
)

__all__ = [
    "ApiErrorCode",
    "ApiErrorDetails",
    "ApiErrorInfo",
    "CommitConflict",
    "CommitFailed",
    "CommitOk",
    "CommitResult",
    "ContentValidatorProtocol",
    "JobTransportProtocol",
    "LogSinkProtocol",
    "ReviewApiError",
    "ReviewTransportProtocol",
]
