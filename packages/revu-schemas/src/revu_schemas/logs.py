"""JSONL log entry schema for coordination events."""

from __future__ import annotations

from pydantic import Field

from revu_schemas.base import BaseSchema
from revu_schemas.primitives import (
    AttemptId,
    EventName,
    JsonValue,
    LogLevel,
    ResourceId,
    Timestamp,
)


class LogEntry(BaseSchema):
    """Single log line in JSONL format."""

    timestamp: Timestamp = Field(
        ..., description="ISO-8601 timestamp for the log entry"
    )
    level: LogLevel = Field(..., description="Log level")
    event: EventName = Field(..., description="Event name")
    resource_id: ResourceId | None = Field(
        None, description="Resource the event concerns, if any"
    )
    attempt_id: AttemptId | None = Field(
        None, description="Edit attempt the event concerns, if any"
    )
    message: str = Field(..., min_length=1, description="Log message")
    data: dict[str, JsonValue] | None = Field(None, description="Structured event data")
