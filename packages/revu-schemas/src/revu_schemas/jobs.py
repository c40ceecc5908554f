"""Request and response schemas for long-running backend jobs."""

from __future__ import annotations

from pydantic import Field

from revu_schemas.base import BaseSchema
from revu_schemas.primitives import ResourceId, TextUnitStatus
from revu_schemas.resources import AsyncTask


class BatchTranslationRequest(BaseSchema):
    """Start an AI batch translation job for a repository."""

    repository_name: str = Field(..., min_length=1, description="Repository name")
    target_locales: list[str] | None = Field(
        None, description="BCP47 tags to translate; null means all locales"
    )
    tm_text_unit_ids: list[int] | None = Field(
        None, description="Restrict the job to these text units"
    )
    source_text_max_count_per_locale: int = Field(
        100, ge=1, description="Maximum source strings per locale"
    )
    use_batch: bool = Field(False, description="Use the provider batch API")
    use_model: str | None = Field(None, description="Model override")
    prompt_suffix: str | None = Field(None, description="Extra prompt instructions")
    status_filter: str | None = Field(None, description="Text unit status filter")
    import_status: TextUnitStatus = Field(
        TextUnitStatus.REVIEW_NEEDED, description="Status assigned to imports"
    )
    dry_run: bool = Field(False, description="Report without importing")
    timeout_seconds: int | None = Field(
        None, ge=1, description="Server-side job timeout"
    )


class ReviewProjectCreateRequest(BaseSchema):
    """Create review projects for a set of locales and text units."""

    name: str = Field(..., min_length=1, description="Review request name")
    locale_tags: list[str] = Field(..., min_length=1, description="Target locales")
    tm_text_unit_ids: list[int] = Field(
        default_factory=list, description="Text units to review"
    )
    notes: str | None = Field(None, description="Request notes")
    due_date: str | None = Field(None, description="ISO-8601 due date")
    type: str | None = Field(None, description="Review project type")


class ReviewProjectCreateResponse(BaseSchema):
    """Response to a review project creation request."""

    request_id: int | None = Field(None, description="Review request identifier")
    project_ids: list[ResourceId] = Field(
        default_factory=list, description="Projects created synchronously"
    )
    task: AsyncTask | None = Field(
        None, description="Pollable task when creation continues in the background"
    )
