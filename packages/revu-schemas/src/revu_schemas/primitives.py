"""Primitive types and enums shared across revu schemas."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import Field

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"

type ResourceId = Annotated[int, Field(ge=0)]
type TaskId = Annotated[int, Field(ge=0)]
type AttemptId = Annotated[int, Field(ge=1)]
type VersionToken = Annotated[str, Field(min_length=1)]
type Timestamp = Annotated[str, Field(pattern=ISO_8601_PATTERN)]
type EventName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]


class TextUnitStatus(StrEnum):
    """Backend-defined status values for a translation variant."""

    APPROVED = "APPROVED"
    REVIEW_NEEDED = "REVIEW_NEEDED"
    TRANSLATION_NEEDED = "TRANSLATION_NEEDED"


class DecisionState(StrEnum):
    """Whether a reviewer has finalized judgement on a text unit."""

    PENDING = "PENDING"
    DECIDED = "DECIDED"


class AttemptState(StrEnum):
    """Lifecycle states of a single edit attempt."""

    CREATED = "created"
    VALIDATING = "validating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTING = "committing"
    COMMITTED = "committed"
    CONFLICT = "conflict"
    FAILED = "failed"
    SUPERSEDED = "superseded"


TERMINAL_ATTEMPT_STATES = frozenset(
    {
        AttemptState.COMMITTED,
        AttemptState.CONFLICT,
        AttemptState.FAILED,
        AttemptState.SUPERSEDED,
    }
)


class CommitKind(StrEnum):
    """Kind of mutation carried by a commit request."""

    SAVE_DECISION = "save_decision"
    DECISION_STATE = "decision_state"


class ConflictChoice(StrEnum):
    """Reviewer choices that resolve a commit conflict."""

    USE_EXTERNAL = "use_external"
    USE_MINE = "use_mine"


class LogLevel(StrEnum):
    """Log level values for JSONL logs."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"
