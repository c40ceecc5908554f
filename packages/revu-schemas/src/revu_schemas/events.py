"""Event taxonomy and structured payloads for coordination observability."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from revu_schemas.base import BaseSchema
from revu_schemas.primitives import (
    CommitKind,
    ConflictChoice,
    JsonValue,
    VersionToken,
)


class MutationEvent(StrEnum):
    """Event names for edit attempts on the commit path."""

    ATTEMPT_STARTED = "mutation_attempt_started"
    ATTEMPT_SUPERSEDED = "mutation_attempt_superseded"
    VALIDATION_FAILED = "mutation_validation_failed"
    VALIDATION_INCONCLUSIVE = "mutation_validation_inconclusive"
    COMMIT_SUCCEEDED = "mutation_commit_succeeded"
    COMMIT_CONFLICT = "mutation_commit_conflict"
    COMMIT_FAILED = "mutation_commit_failed"
    CONFLICT_RESOLVED = "mutation_conflict_resolved"


class PollEvent(StrEnum):
    """Event names for polled long-running operations."""

    COMPLETED = "poll_completed"
    RETRY_SCHEDULED = "poll_retry_scheduled"
    TIMED_OUT = "poll_timed_out"
    ABORTED = "poll_aborted"


class CommandEvent(StrEnum):
    """Event names for CLI command lifecycle."""

    STARTED = "command_started"
    COMPLETED = "command_completed"
    FAILED = "command_failed"


class AttemptStartedData(BaseSchema):
    """Payload for attempt start events."""

    kind: CommitKind = Field(..., description="Mutation kind")
    expected_version_token: VersionToken | None = Field(
        None, description="Token the attempt was based on"
    )
    override: bool = Field(False, description="Whether the write is forced")
    validation_skipped: bool = Field(
        False, description="Whether the integrity check was skipped"
    )


class ValidationHaltedData(BaseSchema):
    """Payload for attempts halted at a confirmation prompt."""

    detail: str | None = Field(None, description="Integrity check failure detail")
    error_message: str | None = Field(
        None, description="Why the check could not run"
    )


class CommitSucceededData(BaseSchema):
    """Payload for accepted commits."""

    version_token: VersionToken = Field(..., description="Newly issued token")


class CommitConflictData(BaseSchema):
    """Payload for commits rejected on a version mismatch."""

    expected_version_token: VersionToken | None = Field(
        None, description="Token the attempt was based on"
    )
    live_version_token: VersionToken = Field(..., description="Live server token")


class CommitFailedData(BaseSchema):
    """Payload for commits that failed with an API error."""

    error_code: str = Field(..., min_length=1, description="Error code")
    error_message: str = Field(..., min_length=1, description="Error message")
    status_code: int | None = Field(None, description="HTTP status if any")


class ConflictResolvedData(BaseSchema):
    """Payload for reviewer conflict resolution choices."""

    choice: ConflictChoice = Field(..., description="Resolution chosen")
    live_version_token: VersionToken = Field(..., description="Snapshot token")


class PollCompletedData(BaseSchema):
    """Payload for polls that reached a stop condition."""

    operation: str = Field(..., min_length=1, description="Polled operation")
    calls: int = Field(..., ge=1, description="Status checks performed")
    elapsed_s: float = Field(..., ge=0, description="Seconds since poll start")


class PollRetryData(BaseSchema):
    """Payload for transient poll failures scheduled for retry."""

    operation: str = Field(..., min_length=1, description="Polled operation")
    failures: int = Field(..., ge=1, description="Consecutive transient failures")
    delay_s: float = Field(..., ge=0, description="Backoff delay before retry")
    error_message: str = Field(..., description="Transient error message")


class PollTimedOutData(BaseSchema):
    """Payload for polls that exceeded their deadline."""

    operation: str = Field(..., min_length=1, description="Polled operation")
    elapsed_s: float = Field(..., ge=0, description="Seconds since poll start")
    timeout_s: float = Field(..., gt=0, description="Configured deadline")


class PollAbortedData(BaseSchema):
    """Payload for polls aborted by a non-transient error."""

    operation: str = Field(..., min_length=1, description="Polled operation")
    error_message: str = Field(..., description="Terminal error message")


class CommandStartedData(BaseSchema):
    """Payload for CLI command start events."""

    command: str = Field(..., min_length=1, description="Command name")
    args: dict[str, JsonValue] | None = Field(None, description="Command arguments")


class CommandCompletedData(BaseSchema):
    """Payload for CLI command completion events."""

    command: str = Field(..., min_length=1, description="Command name")


class CommandFailedData(BaseSchema):
    """Payload for CLI command failure events."""

    command: str = Field(..., min_length=1, description="Command name")
    error_code: str = Field(..., min_length=1, description="Error code")
    error_message: str = Field(..., min_length=1, description="Error message")
