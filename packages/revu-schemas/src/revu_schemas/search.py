"""Text unit search schemas, including the deferred (hybrid) search protocol."""

from __future__ import annotations

from pydantic import Field

from revu_schemas.base import BaseSchema
from revu_schemas.primitives import TextUnitStatus


class TextUnitSearchRequest(BaseSchema):
    """Search filter for text units across repositories and locales."""

    repository_ids: list[int] = Field(..., min_length=1, description="Repositories")
    locale_tags: list[str] = Field(..., min_length=1, description="Locales")
    name: str | None = Field(None, description="Text unit name filter")
    source: str | None = Field(None, description="Source text filter")
    target: str | None = Field(None, description="Target text filter")
    status_filter: str | None = Field(None, description="Status filter")
    limit: int = Field(50, ge=1, description="Page size")
    offset: int = Field(0, ge=0, description="Page offset")


class TextUnitSearchHit(BaseSchema):
    """Single text unit returned by a search."""

    tm_text_unit_id: int = Field(..., description="TM text unit identifier")
    name: str = Field(..., description="Text unit name")
    locale: str | None = Field(None, description="Locale tag")
    source: str | None = Field(None, description="Source text")
    target: str | None = Field(None, description="Translation; null if untranslated")
    status: TextUnitStatus | None = Field(None, description="Translation status")


class SearchPollingToken(BaseSchema):
    """Handle for a search that the server finishes in the background."""

    request_id: str = Field(..., min_length=1, description="Deferred request id")
    recommended_polling_duration_s: float | None = Field(
        None, gt=0, description="How long the server suggests polling for"
    )


class SearchResponse(BaseSchema):
    """Search response: results, a deferred polling token, or an error."""

    results: list[TextUnitSearchHit] | None = Field(None, description="Results")
    polling_token: SearchPollingToken | None = Field(
        None, description="Present when results are not ready yet"
    )
    error_message: str | None = Field(None, description="Search failure reason")
