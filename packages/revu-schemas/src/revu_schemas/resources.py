"""Editable resource, commit and validation schemas for the review workflow."""

from __future__ import annotations

from pydantic import Field

from revu_schemas.base import BaseSchema
from revu_schemas.primitives import (
    CommitKind,
    DecisionState,
    ResourceId,
    TaskId,
    TextUnitStatus,
    VersionToken,
)


class EditableResource(BaseSchema):
    """Server-owned text unit under review, as cached by the client."""

    id: ResourceId = Field(..., description="Review text unit identifier")
    content: str = Field(..., description="Current translation content")
    status: TextUnitStatus = Field(..., description="Translation status")
    decision_state: DecisionState = Field(
        DecisionState.PENDING, description="Reviewer decision state"
    )
    version_token: VersionToken = Field(
        ..., description="Opaque token that changes on every accepted commit"
    )
    comment: str | None = Field(None, description="Translator comment")
    included_in_localized_file: bool = Field(
        True, description="Whether the variant ships in localized files"
    )
    decision_notes: str | None = Field(None, description="Reviewer decision notes")
    has_decision_variant: bool = Field(
        False, description="Whether a reviewer already saved a decision variant"
    )


class ConflictSnapshot(BaseSchema):
    """Live server state returned when a commit loses a version check."""

    resource_id: ResourceId = Field(..., description="Review text unit identifier")
    content: str = Field(..., description="Content currently stored server-side")
    version_token: VersionToken = Field(..., description="Live version token")
    status: TextUnitStatus = Field(..., description="Live translation status")
    decision_state: DecisionState = Field(..., description="Live decision state")
    comment: str | None = Field(None, description="Live translator comment")
    included_in_localized_file: bool = Field(
        True, description="Whether the live variant ships in localized files"
    )
    has_decision_variant: bool = Field(
        False, description="Whether a reviewer already saved a decision variant"
    )

    @property
    def is_decided(self) -> bool:
        """Whether another reviewer already finalized this text unit.

        A saved decision variant counts as finalized even while the decision
        state is still PENDING.
        """
        return (
            self.decision_state == DecisionState.DECIDED or self.has_decision_variant
        )

    def to_resource(self) -> EditableResource:
        """Build the cache entry that replaces the stale local copy.

        Returns:
            EditableResource: Resource reflecting the live server state.
        """
        return EditableResource(
            id=self.resource_id,
            content=self.content,
            status=self.status,
            decision_state=self.decision_state,
            version_token=self.version_token,
            comment=self.comment,
            included_in_localized_file=self.included_in_localized_file,
            has_decision_variant=self.has_decision_variant,
        )


class CommitRequest(BaseSchema):
    """Commit payload guarded by the expected version token.

    ``content`` and ``status`` are omitted for pure decision-state
    transitions; a combined edit-and-decide action sets all of them so the
    server applies it as one write.
    """

    content: str | None = Field(None, description="New translation content")
    status: TextUnitStatus | None = Field(None, description="New translation status")
    decision_state: DecisionState = Field(..., description="Target decision state")
    expected_version_token: VersionToken | None = Field(
        None, description="Token observed when the edit started"
    )
    override: bool = Field(
        False, description="Force the write even if the live token differs"
    )
    comment: str | None = Field(None, description="Translator comment")
    included_in_localized_file: bool | None = Field(
        None, description="Whether the variant ships in localized files"
    )
    decision_notes: str | None = Field(None, description="Reviewer decision notes")

    @property
    def kind(self) -> CommitKind:
        """Classify the request as a content save or a pure state change."""
        if self.content is None and self.status is None:
            return CommitKind.DECISION_STATE
        return CommitKind.SAVE_DECISION

    @property
    def changes_content(self) -> bool:
        """Whether the request carries translation content."""
        return self.content is not None


class ValidationResult(BaseSchema):
    """Result of the placeholder/integrity check for a candidate translation."""

    passed: bool | None = Field(
        None, description="Check verdict; null when the server has no opinion"
    )
    detail: str | None = Field(None, description="Human-readable failure detail")


class AsyncTask(BaseSchema):
    """Status of a long-running server-side operation."""

    id: TaskId = Field(..., description="Pollable task identifier")
    done: bool = Field(False, description="Whether every sub-task has finished")
    error_message: str | None = Field(None, description="Failure reason if any")
