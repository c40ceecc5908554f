"""Protocol definitions, errors and commit results for the review backend."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from revu_schemas.base import BaseSchema
from revu_schemas.jobs import (
    BatchTranslationRequest,
    ReviewProjectCreateRequest,
    ReviewProjectCreateResponse,
)
from revu_schemas.primitives import ResourceId, TaskId
from revu_schemas.resources import (
    AsyncTask,
    CommitRequest,
    ConflictSnapshot,
    EditableResource,
    ValidationResult,
)
from revu_schemas.responses import ErrorDetails, ErrorResponse
from revu_schemas.search import SearchResponse, TextUnitSearchRequest

DEFAULT_COMMIT_ERROR_MESSAGE = "Failed to save changes"


class ApiErrorCode(StrEnum):
    """Categorized error codes for review backend calls."""

    TERMINAL = "terminal"
    TRANSIENT = "transient"
    NETWORK = "network"
    INVALID_RESPONSE = "invalid_response"


class ApiErrorDetails(BaseSchema):
    """Detailed API error context."""

    operation: str | None = Field(None, description="Backend operation name")
    resource_id: ResourceId | None = Field(None, description="Resource identifier")
    url: str | None = Field(None, description="Request URL")
    reason: str | None = Field(None, description="Additional error context")


class ApiErrorInfo(BaseSchema):
    """Structured API error data."""

    code: ApiErrorCode = Field(..., description="API error code")
    message: str = Field(..., min_length=1, description="Error message")
    status_code: int | None = Field(None, description="HTTP status if any")
    is_transient: bool | None = Field(
        None, description="Explicit retry override; null defers to the status"
    )
    details: ApiErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert API error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None:
            details = ErrorDetails(
                field=self.details.operation,
                provided=self.details.url,
                valid_options=None,
            )
        return ErrorResponse(
            code=ApiErrorCode(self.code).value, message=self.message, details=details
        )


class ReviewApiError(Exception):
    """Review backend error with structured details."""

    def __init__(self, info: ApiErrorInfo) -> None:
        """Initialize the API error.

        Args:
            info: Structured API error information.
        """
        super().__init__(info.message)
        self.info = info

    @property
    def status_code(self) -> int | None:
        """HTTP status reported by the backend, if any."""
        return self.info.status_code

    @property
    def is_transient(self) -> bool | None:
        """Explicit retry override carried by the error."""
        return self.info.is_transient


@dataclass(frozen=True)
class CommitOk:
    """The write was applied; ``resource`` carries the new version token."""

    resource: EditableResource


@dataclass(frozen=True)
class CommitConflict:
    """The write was rejected unapplied; ``snapshot`` is the live state."""

    snapshot: ConflictSnapshot


@dataclass(frozen=True)
class CommitFailed:
    """The write failed with a non-conflict error."""

    error: ApiErrorInfo

    @property
    def message(self) -> str:
        """User-facing failure message."""
        return self.error.message or DEFAULT_COMMIT_ERROR_MESSAGE


type CommitResult = CommitOk | CommitConflict | CommitFailed


@runtime_checkable
class ContentValidatorProtocol(Protocol):
    """Protocol for the placeholder/integrity check endpoint."""

    async def validate_content(
        self, resource_id: ResourceId, content: str
    ) -> ValidationResult:
        """Check candidate content before it is committed."""
        raise NotImplementedError


@runtime_checkable
class ReviewTransportProtocol(ContentValidatorProtocol, Protocol):
    """Protocol for reading and committing review text units.

    ``commit_resource`` decodes the conflict signal at the transport
    boundary: a version mismatch returns ``CommitConflict`` and every other
    failure raises ``ReviewApiError``.
    """

    async def fetch_resource(self, resource_id: ResourceId) -> EditableResource:
        """Load the live state of a text unit."""
        raise NotImplementedError

    async def commit_resource(
        self, resource_id: ResourceId, request: CommitRequest
    ) -> CommitOk | CommitConflict:
        """Apply a version-guarded write."""
        raise NotImplementedError


@runtime_checkable
class JobTransportProtocol(Protocol):
    """Protocol for long-running backend operations exposed as pollable tasks."""

    async def fetch_task(self, task_id: TaskId) -> AsyncTask:
        """Load the status of a pollable task."""
        raise NotImplementedError

    async def start_batch_translation(
        self, request: BatchTranslationRequest
    ) -> AsyncTask:
        """Start an AI batch translation job."""
        raise NotImplementedError

    async def create_review_project(
        self, request: ReviewProjectCreateRequest
    ) -> ReviewProjectCreateResponse:
        """Submit a review project creation request."""
        raise NotImplementedError

    async def search_text_units(self, request: TextUnitSearchRequest) -> SearchResponse:
        """Start a text unit search that may complete in the background."""
        raise NotImplementedError

    async def fetch_search_results(self, request_id: str) -> SearchResponse:
        """Load the results of a deferred search."""
        raise NotImplementedError
