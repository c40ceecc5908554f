"""Emit structured coordination telemetry to log sinks."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from revu_core.attempts import EditAttempt
from revu_core.ports.sinks import LogSinkProtocol
from revu_core.ports.transport import ApiErrorInfo
from revu_core.validation_gate import ValidationOutcome, ValidationVerdict
from revu_schemas.base import BaseSchema
from revu_schemas.events import (
    AttemptStartedData,
    CommitConflictData,
    CommitFailedData,
    CommitSucceededData,
    ConflictResolvedData,
    MutationEvent,
    PollAbortedData,
    PollCompletedData,
    PollEvent,
    PollRetryData,
    PollTimedOutData,
    ValidationHaltedData,
)
from revu_schemas.logs import LogEntry
from revu_schemas.primitives import (
    ConflictChoice,
    LogLevel,
    ResourceId,
    Timestamp,
)
from revu_schemas.resources import ConflictSnapshot, EditableResource


def now_timestamp() -> Timestamp:
    """Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    timestamp = datetime.now(UTC).isoformat()
    return timestamp.replace("+00:00", "Z")


class MutationTelemetry:
    """Emit edit-attempt lifecycle events to a log sink."""

    def __init__(
        self,
        *,
        log_sink: LogSinkProtocol | None,
        clock: Callable[[], Timestamp] = now_timestamp,
    ) -> None:
        """Initialize the telemetry emitter.

        Args:
            log_sink: Optional log sink; events are dropped when None.
            clock: Timestamp provider for log entries.
        """
        self._log_sink = log_sink
        self._clock = clock

    async def attempt_started(self, attempt: EditAttempt) -> None:
        """Record a new attempt."""
        await self._emit(
            attempt,
            MutationEvent.ATTEMPT_STARTED,
            LogLevel.INFO,
            "Edit attempt started",
            AttemptStartedData(
                kind=attempt.request.kind,
                expected_version_token=attempt.request.expected_version_token,
                override=attempt.request.override,
                validation_skipped=attempt.skip_validation,
            ),
        )

    async def attempt_superseded(self, attempt: EditAttempt) -> None:
        """Record a continuation discarded because a newer attempt exists."""
        await self._emit(
            attempt,
            MutationEvent.ATTEMPT_SUPERSEDED,
            LogLevel.DEBUG,
            "Discarded result of superseded attempt",
            None,
        )

    async def validation_halted(
        self, attempt: EditAttempt, outcome: ValidationOutcome
    ) -> None:
        """Record an attempt halted at a confirmation prompt."""
        inconclusive = outcome.verdict == ValidationVerdict.INCONCLUSIVE
        await self._emit(
            attempt,
            (
                MutationEvent.VALIDATION_INCONCLUSIVE
                if inconclusive
                else MutationEvent.VALIDATION_FAILED
            ),
            LogLevel.WARN,
            (
                "Integrity check could not run"
                if inconclusive
                else "Integrity check failed"
            ),
            ValidationHaltedData(
                detail=outcome.result.detail if outcome.result else None,
                error_message=outcome.error_message,
            ),
        )

    async def committed(self, attempt: EditAttempt, resource: EditableResource) -> None:
        """Record an accepted commit."""
        await self._emit(
            attempt,
            MutationEvent.COMMIT_SUCCEEDED,
            LogLevel.INFO,
            "Commit accepted",
            CommitSucceededData(version_token=resource.version_token),
        )

    async def conflict(self, attempt: EditAttempt, snapshot: ConflictSnapshot) -> None:
        """Record a commit rejected on a version mismatch."""
        await self._emit(
            attempt,
            MutationEvent.COMMIT_CONFLICT,
            LogLevel.WARN,
            "Commit rejected: resource changed since it was loaded",
            CommitConflictData(
                expected_version_token=attempt.request.expected_version_token,
                live_version_token=snapshot.version_token,
            ),
        )

    async def failed(self, attempt: EditAttempt, error: ApiErrorInfo) -> None:
        """Record a commit that failed with an API error."""
        await self._emit(
            attempt,
            MutationEvent.COMMIT_FAILED,
            LogLevel.ERROR,
            "Commit failed",
            CommitFailedData(
                error_code=str(error.code),
                error_message=error.message,
                status_code=error.status_code,
            ),
        )

    async def conflict_resolved(
        self,
        resource_id: ResourceId,
        choice: ConflictChoice,
        snapshot: ConflictSnapshot,
    ) -> None:
        """Record the reviewer's conflict resolution choice."""
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(
            LogEntry(
                timestamp=self._clock(),
                level=LogLevel.INFO,
                event=MutationEvent.CONFLICT_RESOLVED,
                resource_id=resource_id,
                message="Conflict resolved by reviewer",
                data=ConflictResolvedData(
                    choice=choice, live_version_token=snapshot.version_token
                ).model_dump(exclude_none=True),
            )
        )

    async def _emit(
        self,
        attempt: EditAttempt,
        event: MutationEvent,
        level: LogLevel,
        message: str,
        payload: BaseSchema | None,
    ) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(
            LogEntry(
                timestamp=self._clock(),
                level=level,
                event=event,
                resource_id=attempt.resource_id,
                attempt_id=attempt.attempt_id,
                message=message,
                data=payload.model_dump(exclude_none=True) if payload else None,
            )
        )


class PollTelemetry:
    """Poll listener that writes retries, stops, timeouts and aborts to a sink."""

    def __init__(
        self,
        operation: str,
        *,
        log_sink: LogSinkProtocol,
        clock: Callable[[], Timestamp] = now_timestamp,
    ) -> None:
        """Initialize the listener.

        Args:
            operation: Name of the polled operation, e.g. ``ai_translate``.
            log_sink: Sink receiving poll events.
            clock: Timestamp provider for log entries.
        """
        self._operation = operation
        self._log_sink = log_sink
        self._clock = clock

    async def on_retry(
        self, *, failures: int, delay_s: float, error: BaseException
    ) -> None:
        """Log a transient failure scheduled for retry."""
        await self._emit(
            PollEvent.RETRY_SCHEDULED,
            LogLevel.WARN,
            "Transient failure while polling; retrying",
            PollRetryData(
                operation=self._operation,
                failures=failures,
                delay_s=delay_s,
                error_message=str(error),
            ),
        )

    async def on_stop(self, *, calls: int, elapsed_s: float) -> None:
        """Log a completed poll."""
        await self._emit(
            PollEvent.COMPLETED,
            LogLevel.INFO,
            "Polled operation completed",
            PollCompletedData(
                operation=self._operation, calls=calls, elapsed_s=elapsed_s
            ),
        )

    async def on_timeout(self, *, elapsed_s: float, timeout_s: float) -> None:
        """Log a poll that exceeded its deadline."""
        await self._emit(
            PollEvent.TIMED_OUT,
            LogLevel.ERROR,
            "Polled operation timed out",
            PollTimedOutData(
                operation=self._operation, elapsed_s=elapsed_s, timeout_s=timeout_s
            ),
        )

    async def on_abort(self, *, error: BaseException) -> None:
        """Log a poll aborted by a terminal error."""
        await self._emit(
            PollEvent.ABORTED,
            LogLevel.ERROR,
            "Polled operation aborted",
            PollAbortedData(operation=self._operation, error_message=str(error)),
        )

    async def _emit(
        self, event: PollEvent, level: LogLevel, message: str, payload: BaseSchema
    ) -> None:
        await self._log_sink.emit_log(
            LogEntry(
                timestamp=self._clock(),
                level=level,
                event=event,
                message=message,
                data=payload.model_dump(exclude_none=True),
            )
        )
