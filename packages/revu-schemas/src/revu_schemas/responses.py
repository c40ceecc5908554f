"""API response envelope schemas for CLI output."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from revu_schemas.base import BaseSchema
from revu_schemas.primitives import AttemptState, Timestamp
from revu_schemas.resources import ConflictSnapshot, EditableResource


class MetaInfo(BaseSchema):
    """Metadata for API responses."""

    timestamp: Timestamp = Field(..., description="ISO-8601 response timestamp")


class ErrorDetails(BaseSchema):
    """Detailed error context for responses."""

    field: str | None = Field(None, description="Field name if applicable")
    provided: str | None = Field(None, description="Provided value")
    valid_options: list[str] | None = Field(
        None, description="Valid options if applicable"
    )


class ErrorResponse(BaseSchema):
    """Error information in response."""

    code: str = Field(..., min_length=1, description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: ErrorDetails | None = Field(None, description="Optional error details")


class ApiResponse[ResponseData](BaseSchema):
    """Generic API response envelope."""

    data: ResponseData | None = Field(
        None, description="Success payload, null on error"
    )
    error: ErrorResponse | None = Field(
        None, description="Error information, null on success"
    )
    meta: MetaInfo = Field(..., description="Response metadata")


class CommitOutcomeResult(BaseSchema):
    """Result payload for CLI commit commands."""

    outcome: Literal["committed", "conflict"] = Field(
        ..., description="Discriminated commit outcome"
    )
    resource: EditableResource | None = Field(
        None, description="Committed resource when accepted"
    )
    snapshot: ConflictSnapshot | None = Field(
        None, description="Live server state when rejected"
    )


class DemoStepResult(BaseSchema):
    """One step of the scripted conflict scenario."""

    actor: str = Field(..., min_length=1, description="Reviewer performing the step")
    action: str = Field(..., min_length=1, description="What the reviewer did")
    attempt_state: AttemptState | None = Field(
        None, description="Final attempt state"
    )
    version_token: str | None = Field(None, description="Token after the step")
    content: str | None = Field(None, description="Content after the step")
