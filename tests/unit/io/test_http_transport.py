"""Unit tests for the httpx review transport with mocked HTTP."""

import json

import httpx
import pytest
import respx

from revu_core.ports.transport import (
    DEFAULT_COMMIT_ERROR_MESSAGE,
    ApiErrorCode,
    CommitConflict,
    CommitOk,
    ReviewApiError,
)
from revu_core.retry import is_transient_error
from revu_io.http import HttpReviewTransport
from revu_schemas.config import EndpointConfig
from revu_schemas.primitives import DecisionState, TextUnitStatus
from revu_schemas.resources import CommitRequest
from revu_schemas.search import TextUnitSearchRequest

BASE_URL = "https://review.example.test"
UNIT_URL = f"{BASE_URL}/api/review-project-text-units/7"
DECISION_URL = f"{UNIT_URL}/decision"


def _unit_payload(variant_id: int, content: str) -> dict[str, object]:
    return {
        "id": 7,
        "tmTextUnit": {"id": 301, "name": "home.title"},
        "currentTmTextUnitVariant": {
            "id": variant_id,
            "content": content,
            "status": "REVIEW_NEEDED",
        },
    }


def _transport() -> HttpReviewTransport:
    return HttpReviewTransport(EndpointConfig(base_url=BASE_URL))


def _save_request() -> CommitRequest:
    return CommitRequest(
        content="Hola {name}",
        status=TextUnitStatus.APPROVED,
        decision_state=DecisionState.PENDING,
        expected_version_token="41",
    )


@pytest.mark.asyncio
@respx.mock
async def test_fetch_then_check_uses_tm_text_unit_id() -> None:
    """The integrity check is addressed by the underlying text unit id."""
    respx.get(UNIT_URL).mock(
        return_value=httpx.Response(200, json=_unit_payload(41, "Bonjour {name}"))
    )
    check = respx.post(f"{BASE_URL}/api/textunits/check").mock(
        return_value=httpx.Response(
            200, json={"checkResult": False, "failureDetail": "Missing {name}"}
        )
    )

    async with _transport() as transport:
        resource = await transport.fetch_resource(7)
        result = await transport.validate_content(7, "Hola")

    assert resource.version_token == "41"
    assert result.passed is False
    assert result.detail == "Missing {name}"
    body = json.loads(check.calls.last.request.content)
    assert body == {"tmTextUnitId": 301, "content": "Hola"}


@pytest.mark.asyncio
@respx.mock
async def test_commit_success_returns_new_token() -> None:
    """An accepted write returns the resource with its new variant id."""
    route = respx.post(DECISION_URL).mock(
        return_value=httpx.Response(200, json=_unit_payload(42, "Hola {name}"))
    )

    async with _transport() as transport:
        result = await transport.commit_resource(7, _save_request())

    assert isinstance(result, CommitOk)
    assert result.resource.version_token == "42"
    body = json.loads(route.calls.last.request.content)
    assert body["expectedCurrentTmTextUnitVariantId"] == 41
    assert body["target"] == "Hola {name}"


@pytest.mark.asyncio
@respx.mock
async def test_commit_conflict_is_decoded_once() -> None:
    """A 409 becomes a conflict outcome carrying the live state."""
    respx.post(DECISION_URL).mock(
        return_value=httpx.Response(409, json=_unit_payload(45, "Bonjour {name}"))
    )

    async with _transport() as transport:
        result = await transport.commit_resource(7, _save_request())

    assert isinstance(result, CommitConflict)
    assert result.snapshot.version_token == "45"
    assert result.snapshot.content == "Bonjour {name}"


@pytest.mark.asyncio
@respx.mock
async def test_conflict_without_live_state_is_invalid_response() -> None:
    """A 409 that cannot be decoded is not silently treated as success."""
    respx.post(DECISION_URL).mock(
        return_value=httpx.Response(409, json={"message": "changed"})
    )

    async with _transport() as transport:
        with pytest.raises(ReviewApiError) as exc_info:
            await transport.commit_resource(7, _save_request())

    assert exc_info.value.info.code == ApiErrorCode.INVALID_RESPONSE
    assert exc_info.value.info.details is not None
    assert (
        exc_info.value.info.details.reason
        == "Conflict response did not carry the live state"
    )


@pytest.mark.asyncio
@respx.mock
async def test_gateway_status_is_transient() -> None:
    """Gateway failures are classified as transient."""
    respx.post(DECISION_URL).mock(return_value=httpx.Response(503))

    async with _transport() as transport:
        with pytest.raises(ReviewApiError) as exc_info:
            await transport.commit_resource(7, _save_request())

    assert exc_info.value.info.code == ApiErrorCode.TRANSIENT
    assert exc_info.value.status_code == 503
    assert is_transient_error(exc_info.value) is True


@pytest.mark.asyncio
@respx.mock
async def test_client_error_is_terminal_with_server_text() -> None:
    """A 4xx keeps the server's message and is never retried."""
    respx.post(DECISION_URL).mock(
        return_value=httpx.Response(400, text="Text unit is locked")
    )

    async with _transport() as transport:
        with pytest.raises(ReviewApiError) as exc_info:
            await transport.commit_resource(7, _save_request())

    assert exc_info.value.info.code == ApiErrorCode.TERMINAL
    assert exc_info.value.info.message == "Text unit is locked"
    assert is_transient_error(exc_info.value) is False


@pytest.mark.asyncio
@respx.mock
async def test_empty_error_body_uses_default_commit_message() -> None:
    """Commit failures without a body get the generic save message."""
    respx.post(DECISION_URL).mock(return_value=httpx.Response(500))

    async with _transport() as transport:
        with pytest.raises(ReviewApiError) as exc_info:
            await transport.commit_resource(7, _save_request())

    assert exc_info.value.info.message == DEFAULT_COMMIT_ERROR_MESSAGE


@pytest.mark.asyncio
@respx.mock
async def test_connection_error_is_network_failure() -> None:
    """Transport errors become transient network failures."""
    respx.get(UNIT_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    async with _transport() as transport:
        with pytest.raises(ReviewApiError) as exc_info:
            await transport.fetch_resource(7)

    assert exc_info.value.info.code == ApiErrorCode.NETWORK
    assert exc_info.value.is_transient is True
    assert exc_info.value.info.message.startswith("Network error during fetch_resource")


@pytest.mark.asyncio
@respx.mock
async def test_non_json_body_is_invalid_response() -> None:
    """A success status with a non-JSON body is rejected."""
    respx.get(UNIT_URL).mock(return_value=httpx.Response(200, text="<html>"))

    async with _transport() as transport:
        with pytest.raises(ReviewApiError) as exc_info:
            await transport.fetch_resource(7)

    assert exc_info.value.info.code == ApiErrorCode.INVALID_RESPONSE
    assert exc_info.value.info.is_transient is False


@pytest.mark.asyncio
@respx.mock
async def test_fetch_task_accepts_all_finished_spelling() -> None:
    """Pollable tasks decode either finished-flag spelling."""
    respx.get(f"{BASE_URL}/api/pollableTasks/12").mock(
        return_value=httpx.Response(200, json={"id": 12, "allFinished": True})
    )

    async with _transport() as transport:
        task = await transport.fetch_task(12)

    assert task.done is True
    assert task.error_message is None


@pytest.mark.asyncio
@respx.mock
async def test_search_and_deferred_results() -> None:
    """Search tokens and deferred results use the hybrid endpoints."""
    respx.post(f"{BASE_URL}/api/textunits/search-hybrid").mock(
        return_value=httpx.Response(
            200,
            json={
                "pollingToken": {
                    "requestId": "r-1",
                    "recommendedPollingDurationMillis": 1500,
                }
            },
        )
    )
    respx.get(f"{BASE_URL}/api/textunits/search-hybrid/results/r-1").mock(
        return_value=httpx.Response(
            200, json={"results": [{"tmTextUnitId": 3, "name": "home.title"}]}
        )
    )

    async with _transport() as transport:
        started = await transport.search_text_units(
            TextUnitSearchRequest(repository_ids=[1], locale_tags=["fr-FR"])
        )
        finished = await transport.fetch_search_results("r-1")

    assert started.polling_token is not None
    assert started.polling_token.recommended_polling_duration_s == 1.5
    assert finished.results is not None
    assert finished.results[0].tm_text_unit_id == 3


@pytest.mark.asyncio
@respx.mock
async def test_bearer_token_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """The configured token variable is sent as a bearer token."""
    monkeypatch.setenv("REVU_TEST_TOKEN", "secret-token")
    route = respx.get(UNIT_URL).mock(
        return_value=httpx.Response(200, json=_unit_payload(41, "Bonjour"))
    )

    async with HttpReviewTransport(
        EndpointConfig(base_url=BASE_URL, api_token_env="REVU_TEST_TOKEN")
    ) as transport:
        await transport.fetch_resource(7)

    assert route.calls.last.request.headers["Authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
async def test_injected_client_is_not_closed() -> None:
    """Only clients created by the transport are closed by it."""
    client = httpx.AsyncClient(base_url=BASE_URL)
    transport = HttpReviewTransport(
        EndpointConfig(base_url=BASE_URL), http_client=client
    )

    await transport.aclose()

    assert client.is_closed is False
    await client.aclose()
