"""JSON wire models and codecs for the review backend HTTP API.

The backend exposes a review text unit as nested variants. The editable
state is the decision variant when one exists, otherwise the current variant.
The version token is the id of the current variant: any accepted write
creates a new variant, so the id changes on every commit.
"""

from __future__ import annotations

import json

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from revu_schemas.jobs import (
    BatchTranslationRequest,
    ReviewProjectCreateRequest,
    ReviewProjectCreateResponse,
)
from revu_schemas.primitives import DecisionState, JsonValue, TextUnitStatus
from revu_schemas.resources import (
    AsyncTask,
    CommitRequest,
    ConflictSnapshot,
    EditableResource,
    ValidationResult,
)
from revu_schemas.search import (
    SearchPollingToken,
    SearchResponse,
    TextUnitSearchHit,
    TextUnitSearchRequest,
)

UNTRANSLATED_VERSION_TOKEN = "untranslated"
MILLIS_PER_SECOND = 1000.0


class WireModel(BaseModel):
    """Base for camelCase backend payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class WireVariant(WireModel):
    """A translation variant of a text unit."""

    id: int | None = None
    content: str | None = None
    status: TextUnitStatus | None = None
    included_in_localized_file: bool | None = None
    comment: str | None = None


class WireTmTextUnit(WireModel):
    """Source text unit referenced by a review text unit."""

    id: int
    name: str | int | None = None
    content: str | None = None
    comment: str | None = None


class WireDecision(WireModel):
    """Reviewer decision attached to a review text unit."""

    reviewed_tm_text_unit_variant_id: int | None = None
    notes: str | None = None
    decision_state: DecisionState | None = None
    decision_tm_text_unit_variant: WireVariant | None = None


class WireReviewTextUnit(WireModel):
    """Review project text unit as returned by the backend."""

    id: int
    tm_text_unit: WireTmTextUnit | None = None
    baseline_tm_text_unit_variant: WireVariant | None = None
    current_tm_text_unit_variant: WireVariant | None = None
    review_project_text_unit_decision: WireDecision | None = None


class WirePollableTask(WireModel):
    """Pollable task with both spellings of the finished flag."""

    id: int
    all_finished: bool = Field(
        False, validation_alias=AliasChoices("isAllFinished", "allFinished")
    )
    error_message: JsonValue = None


class WireCheckResult(WireModel):
    """Integrity check response."""

    check_result: bool | None = None
    failure_detail: str | None = None


class WireSearchError(WireModel):
    """Error member of a search response."""

    message: str | None = None


class WirePollingToken(WireModel):
    """Deferred search handle."""

    request_id: str
    recommended_polling_duration_millis: float | None = None


class WireSearchHit(WireModel):
    """Text unit returned by a search."""

    tm_text_unit_id: int
    name: str
    target_locale: str | None = None
    source: str | None = None
    target: str | None = None
    status: TextUnitStatus | None = None


class WireSearchResponse(WireModel):
    """Hybrid search response."""

    results: list[WireSearchHit] | None = None
    polling_token: WirePollingToken | None = None
    error: WireSearchError | None = None


class WireReviewProjectCreateResponse(WireModel):
    """Review project creation response."""

    request_id: int | None = None
    project_ids: list[int] = Field(default_factory=list)
    pollable_task: WirePollableTask | None = None


def decode_review_text_unit(payload: object) -> tuple[EditableResource, int | None]:
    """Decode a review text unit into the cached resource shape.

    Returns:
        tuple[EditableResource, int | None]: The resource and the id of the
        underlying TM text unit, when present.
    """
    wire = WireReviewTextUnit.model_validate(payload)
    decision = wire.review_project_text_unit_decision
    current = wire.current_tm_text_unit_variant
    shown = (decision.decision_tm_text_unit_variant if decision else None) or current
    shown = shown or WireVariant()
    version_token = (
        str(current.id)
        if current is not None and current.id is not None
        else UNTRANSLATED_VERSION_TOKEN
    )
    resource = EditableResource(
        id=wire.id,
        content=shown.content or "",
        status=shown.status or TextUnitStatus.TRANSLATION_NEEDED,
        decision_state=(
            decision.decision_state
            if decision and decision.decision_state
            else DecisionState.PENDING
        ),
        version_token=version_token,
        comment=shown.comment,
        included_in_localized_file=(
            shown.included_in_localized_file
            if shown.included_in_localized_file is not None
            else True
        ),
        decision_notes=decision.notes if decision else None,
        has_decision_variant=(
            decision is not None
            and decision.decision_tm_text_unit_variant is not None
            and decision.decision_tm_text_unit_variant.id is not None
        ),
    )
    tm_text_unit_id = wire.tm_text_unit.id if wire.tm_text_unit else None
    return resource, tm_text_unit_id


def decode_conflict_snapshot(payload: object) -> ConflictSnapshot:
    """Decode the live state carried by a 409 response.

    Returns:
        ConflictSnapshot: Live server state.
    """
    resource, _ = decode_review_text_unit(payload)
    return ConflictSnapshot(
        resource_id=resource.id,
        content=resource.content,
        version_token=resource.version_token,
        status=resource.status,
        decision_state=resource.decision_state,
        comment=resource.comment,
        included_in_localized_file=resource.included_in_localized_file,
        has_decision_variant=resource.has_decision_variant,
    )


def encode_version_token(token: str | None) -> int | str | None:
    """Encode an opaque version token as the backend's variant id."""
    if token is None or token == UNTRANSLATED_VERSION_TOKEN:
        return None
    if token.isdigit():
        return int(token)
    return token


def encode_commit_request(request: CommitRequest) -> dict[str, JsonValue]:
    """Encode a commit request as the decision endpoint body.

    Pure decision-state transitions send only the decision fields. A save
    replaces the target, comment, status and inclusion flag on the server,
    so a save without content or status is refused.

    Returns:
        dict[str, JsonValue]: JSON body.

    Raises:
        ValueError: If a save request leaves its target or status unset.
    """
    body: dict[str, JsonValue] = {
        "decisionState": DecisionState(request.decision_state).value,
        "expectedCurrentTmTextUnitVariantId": encode_version_token(
            request.expected_version_token
        ),
        "overrideChangedCurrent": request.override,
    }
    if request.content is not None or request.status is not None:
        if request.content is None or request.status is None:
            raise ValueError("A save request needs both target content and status")
        body.update(
            {
                "target": request.content,
                "comment": request.comment,
                "status": TextUnitStatus(request.status).value,
                "includedInLocalizedFile": (
                    request.included_in_localized_file
                    if request.included_in_localized_file is not None
                    else True
                ),
                "decisionNotes": request.decision_notes,
            }
        )
    return body


def encode_check_request(tm_text_unit_id: int, content: str) -> dict[str, JsonValue]:
    """Encode an integrity check request body."""
    return {"tmTextUnitId": tm_text_unit_id, "content": content}


def decode_check_result(payload: object) -> ValidationResult:
    """Decode an integrity check response."""
    wire = WireCheckResult.model_validate(payload)
    detail = wire.failure_detail.strip() if wire.failure_detail else None
    return ValidationResult(passed=wire.check_result, detail=detail or None)


def normalize_error_message(value: JsonValue) -> str | None:
    """Keep string error messages and JSON-encode anything else that is set."""
    if isinstance(value, str):
        return value
    if not value:
        return None
    return json.dumps(value)


def decode_pollable_task(payload: object) -> AsyncTask:
    """Decode a pollable task, accepting both finished-flag spellings."""
    wire = WirePollableTask.model_validate(payload)
    return AsyncTask(
        id=wire.id,
        done=wire.all_finished,
        error_message=normalize_error_message(wire.error_message),
    )


def decode_batch_translation_response(payload: object) -> AsyncTask:
    """Decode the pollable task returned when a batch translation starts."""
    if not isinstance(payload, dict) or "pollableTask" not in payload:
        raise ValueError("Batch translation response has no pollableTask")
    return decode_pollable_task(payload["pollableTask"])


def encode_batch_translation_request(
    request: BatchTranslationRequest,
) -> dict[str, JsonValue]:
    """Encode a batch translation request body."""
    return {
        "repositoryName": request.repository_name,
        "targetBcp47tags": list(request.target_locales)
        if request.target_locales is not None
        else None,
        "sourceTextMaxCountPerLocale": request.source_text_max_count_per_locale,
        "tmTextUnitIds": list(request.tm_text_unit_ids)
        if request.tm_text_unit_ids is not None
        else None,
        "useBatch": request.use_batch,
        "useModel": request.use_model,
        "promptSuffix": request.prompt_suffix,
        "statusFilter": request.status_filter,
        "importStatus": TextUnitStatus(request.import_status).value,
        "dryRun": request.dry_run,
        "timeoutSeconds": request.timeout_seconds,
    }


def encode_review_project_request(
    request: ReviewProjectCreateRequest,
) -> dict[str, JsonValue]:
    """Encode a review project creation request body."""
    body: dict[str, JsonValue] = {
        "name": request.name,
        "localeTags": list(request.locale_tags),
        "tmTextUnitIds": list(request.tm_text_unit_ids),
        "notes": request.notes,
        "dueDate": request.due_date,
    }
    if request.type is not None:
        body["type"] = request.type
    return body


def decode_review_project_response(payload: object) -> ReviewProjectCreateResponse:
    """Decode a review project creation response."""
    wire = WireReviewProjectCreateResponse.model_validate(payload)
    task = (
        AsyncTask(
            id=wire.pollable_task.id,
            done=wire.pollable_task.all_finished,
            error_message=normalize_error_message(wire.pollable_task.error_message),
        )
        if wire.pollable_task is not None
        else None
    )
    return ReviewProjectCreateResponse(
        request_id=wire.request_id, project_ids=wire.project_ids, task=task
    )


def encode_search_request(request: TextUnitSearchRequest) -> dict[str, JsonValue]:
    """Encode a hybrid search request body, omitting unset filters."""
    body: dict[str, JsonValue] = {
        "repositoryIds": list(request.repository_ids),
        "localeTags": list(request.locale_tags),
        "limit": request.limit,
        "offset": request.offset,
        "pluralFormFiltered": True,
        "pluralFormExcluded": False,
    }
    optional = {
        "name": request.name,
        "source": request.source,
        "target": request.target,
        "statusFilter": request.status_filter,
    }
    body.update({key: value for key, value in optional.items() if value is not None})
    return body


def decode_search_response(payload: object) -> SearchResponse:
    """Decode a hybrid search response, converting durations to seconds.

    Returns:
        SearchResponse: Results, a polling token, or an error message.
    """
    wire = WireSearchResponse.model_validate(payload)
    results = (
        [
            TextUnitSearchHit(
                tm_text_unit_id=hit.tm_text_unit_id,
                name=hit.name,
                locale=hit.target_locale,
                source=hit.source,
                target=hit.target,
                status=hit.status,
            )
            for hit in wire.results
        ]
        if wire.results is not None
        else None
    )
    token = None
    if wire.polling_token is not None:
        millis = wire.polling_token.recommended_polling_duration_millis
        token = SearchPollingToken(
            request_id=wire.polling_token.request_id,
            recommended_polling_duration_s=(
                millis / MILLIS_PER_SECOND if millis else None
            ),
        )
    error_message = None
    if wire.error is not None:
        error_message = wire.error.message or "Search failed"
    return SearchResponse(
        results=results, polling_token=token, error_message=error_message
    )
