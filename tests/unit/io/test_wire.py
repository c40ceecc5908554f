"""Unit tests for backend wire codecs."""

import pytest
from pydantic import ValidationError

from revu_core.decisions import DecisionStateMachine
from revu_io.wire import (
    UNTRANSLATED_VERSION_TOKEN,
    decode_batch_translation_response,
    decode_check_result,
    decode_conflict_snapshot,
    decode_pollable_task,
    decode_review_project_response,
    decode_review_text_unit,
    decode_search_response,
    encode_batch_translation_request,
    encode_commit_request,
    encode_search_request,
    encode_version_token,
)
from revu_schemas.jobs import BatchTranslationRequest
from revu_schemas.primitives import DecisionState, TextUnitStatus
from revu_schemas.resources import CommitRequest, EditableResource
from revu_schemas.search import TextUnitSearchRequest


def _review_text_unit(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": 7,
        "tmTextUnit": {"id": 301, "name": "home.title", "content": "Hello {name}"},
        "baselineTmTextUnitVariant": {"id": 40, "content": "Bonjour"},
        "currentTmTextUnitVariant": {
            "id": 41,
            "content": "Bonjour {name}",
            "status": "REVIEW_NEEDED",
            "includedInLocalizedFile": True,
            "comment": "mt",
        },
        "reviewProjectTextUnitDecision": None,
    }
    payload.update(overrides)
    return payload


def test_decode_uses_current_variant_id_as_token() -> None:
    """The current variant id is the version token."""
    resource, tm_text_unit_id = decode_review_text_unit(_review_text_unit())

    assert resource.id == 7
    assert resource.content == "Bonjour {name}"
    assert resource.version_token == "41"
    assert resource.status == TextUnitStatus.REVIEW_NEEDED
    assert resource.decision_state == DecisionState.PENDING
    assert resource.comment == "mt"
    assert tm_text_unit_id == 301


def test_decode_prefers_decision_variant() -> None:
    """A decision variant is what the reviewer sees."""
    payload = _review_text_unit(
        reviewProjectTextUnitDecision={
            "decisionState": "DECIDED",
            "notes": "checked glossary",
            "decisionTmTextUnitVariant": {
                "id": 42,
                "content": "Salut {name}",
                "status": "APPROVED",
            },
        }
    )

    resource, _ = decode_review_text_unit(payload)

    assert resource.content == "Salut {name}"
    assert resource.status == TextUnitStatus.APPROVED
    assert resource.decision_state == DecisionState.DECIDED
    assert resource.decision_notes == "checked glossary"
    assert resource.version_token == "41"
    assert resource.has_decision_variant is True


def test_saved_pending_decision_counts_as_decided() -> None:
    """A decision variant marks the unit decided even while PENDING."""
    payload = _review_text_unit(
        reviewProjectTextUnitDecision={
            "decisionState": "PENDING",
            "decisionTmTextUnitVariant": {"id": 12, "content": "Salut {name}"},
        }
    )

    snapshot = decode_conflict_snapshot(payload)

    assert snapshot.decision_state == DecisionState.PENDING
    assert snapshot.has_decision_variant is True
    assert snapshot.is_decided is True


def test_decode_untranslated_unit() -> None:
    """A unit without a current variant gets the untranslated token."""
    resource, _ = decode_review_text_unit(
        _review_text_unit(currentTmTextUnitVariant=None)
    )

    assert resource.version_token == UNTRANSLATED_VERSION_TOKEN
    assert resource.content == ""
    assert resource.status == TextUnitStatus.TRANSLATION_NEEDED


def test_decode_conflict_snapshot() -> None:
    """A 409 body decodes to the live snapshot."""
    snapshot = decode_conflict_snapshot(_review_text_unit())

    assert snapshot.resource_id == 7
    assert snapshot.version_token == "41"
    assert snapshot.content == "Bonjour {name}"
    assert snapshot.has_decision_variant is False
    assert snapshot.is_decided is False


def test_decode_rejects_missing_id() -> None:
    """Payloads without an id are invalid."""
    with pytest.raises(ValidationError):
        decode_review_text_unit({"currentTmTextUnitVariant": {"id": 1}})


def test_encode_version_token() -> None:
    """Numeric tokens become variant ids; untranslated becomes null."""
    assert encode_version_token("41") == 41
    assert encode_version_token(UNTRANSLATED_VERSION_TOKEN) is None
    assert encode_version_token(None) is None
    assert encode_version_token("v3") == "v3"


def test_encode_pure_transition_omits_content_fields() -> None:
    """Decision-state changes send only the decision fields."""
    body = encode_commit_request(
        CommitRequest(decision_state=DecisionState.DECIDED, expected_version_token="41")
    )

    assert body == {
        "decisionState": "DECIDED",
        "expectedCurrentTmTextUnitVariantId": 41,
        "overrideChangedCurrent": False,
    }


def test_encode_save_with_override() -> None:
    """Content saves carry target, status and the override flag."""
    body = encode_commit_request(
        CommitRequest(
            content="Hola {name}",
            status=TextUnitStatus.APPROVED,
            decision_state=DecisionState.DECIDED,
            expected_version_token="42",
            override=True,
        )
    )

    assert body["target"] == "Hola {name}"
    assert body["status"] == "APPROVED"
    assert body["overrideChangedCurrent"] is True
    assert body["expectedCurrentTmTextUnitVariantId"] == 42
    assert body["includedInLocalizedFile"] is True


def test_encode_status_change_keeps_cached_save_fields() -> None:
    """A status change on an excluded unit keeps its text, comment and flag."""
    resource = EditableResource(
        id=7,
        content="Hola",
        status=TextUnitStatus.REVIEW_NEEDED,
        version_token="41",
        comment="keep me",
        included_in_localized_file=False,
    )

    body = encode_commit_request(
        DecisionStateMachine().status_change(resource, TextUnitStatus.APPROVED)
    )

    assert body["target"] == "Hola"
    assert body["comment"] == "keep me"
    assert body["status"] == "APPROVED"
    assert body["includedInLocalizedFile"] is False
    assert body["expectedCurrentTmTextUnitVariantId"] == 41


def test_encode_refuses_save_without_target() -> None:
    """A save body without content would blank the translation."""
    request = CommitRequest(
        status=TextUnitStatus.APPROVED,
        decision_state=DecisionState.PENDING,
        expected_version_token="41",
    )

    with pytest.raises(ValueError, match="target content and status"):
        encode_commit_request(request)


def test_decode_check_result() -> None:
    """Failure detail is trimmed and blank detail dropped."""
    failed = decode_check_result(
        {"checkResult": False, "failureDetail": " Missing {name} "}
    )
    passed = decode_check_result({"checkResult": True, "failureDetail": "  "})

    assert failed.passed is False
    assert failed.detail == "Missing {name}"
    assert passed.detail is None


@pytest.mark.parametrize("flag", ["isAllFinished", "allFinished"])
def test_decode_pollable_task_accepts_both_flags(flag: str) -> None:
    """Both spellings of the finished flag are understood."""
    task = decode_pollable_task({"id": 9, flag: True})

    assert task.id == 9
    assert task.done is True


def test_decode_pollable_task_normalizes_error() -> None:
    """Structured error messages are kept as JSON text."""
    task = decode_pollable_task(
        {"id": 9, "isAllFinished": True, "errorMessage": {"reason": "quota"}}
    )

    assert task.error_message == '{"reason": "quota"}'


def test_batch_translation_response_requires_task() -> None:
    """A start response without a pollable task is invalid."""
    with pytest.raises(ValueError, match="pollableTask"):
        decode_batch_translation_response({"id": 1})


def test_encode_batch_translation_request() -> None:
    """Batch requests use the backend field names."""
    body = encode_batch_translation_request(
        BatchTranslationRequest(repository_name="web-app", target_locales=["fr-FR"])
    )

    assert body["repositoryName"] == "web-app"
    assert body["targetBcp47tags"] == ["fr-FR"]
    assert body["importStatus"] == "REVIEW_NEEDED"
    assert body["tmTextUnitIds"] is None


def test_decode_review_project_response_with_task() -> None:
    """Background creation exposes the pollable task."""
    response = decode_review_project_response(
        {"requestId": 5, "projectIds": [], "pollableTask": {"id": 17}}
    )

    assert response.request_id == 5
    assert response.task is not None
    assert response.task.done is False


def test_encode_search_request_omits_unset_filters() -> None:
    """Only provided filters are sent."""
    body = encode_search_request(
        TextUnitSearchRequest(repository_ids=[1], locale_tags=["ja-JP"], name="home")
    )

    assert body["name"] == "home"
    assert "source" not in body
    assert body["pluralFormFiltered"] is True


def test_decode_search_response_converts_millis() -> None:
    """Recommended polling durations become seconds."""
    response = decode_search_response(
        {
            "pollingToken": {
                "requestId": "abc",
                "recommendedPollingDurationMillis": 2500,
            }
        }
    )

    assert response.results is None
    assert response.polling_token is not None
    assert response.polling_token.recommended_polling_duration_s == 2.5


def test_decode_search_response_results_and_errors() -> None:
    """Hits are mapped and empty error messages get a default."""
    results = decode_search_response(
        {
            "results": [
                {
                    "tmTextUnitId": 3,
                    "name": "home.title",
                    "targetLocale": "fr-FR",
                    "target": "Accueil",
                }
            ]
        }
    )
    failed = decode_search_response({"error": {}})

    assert results.results is not None
    assert results.results[0].locale == "fr-FR"
    assert failed.error_message == "Search failed"
