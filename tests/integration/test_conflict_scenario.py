"""Integration tests for two reviewers editing the same text unit."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import respx

from revu_core.coordinator import MutationCoordinator
from revu_core.tasks import TaskRunner
from revu_core.telemetry import MutationTelemetry
from revu_io.http import HttpReviewTransport
from revu_io.log_sink import InMemoryLogSink
from revu_io.memory import InMemoryReviewBackend
from revu_schemas.config import EndpointConfig, PollConfig, PollingConfig
from revu_schemas.events import MutationEvent
from revu_schemas.jobs import BatchTranslationRequest
from revu_schemas.primitives import AttemptState, DecisionState, TextUnitStatus
from revu_schemas.resources import EditableResource

pytestmark = pytest.mark.integration

BASE_URL = "https://review.example.test"


def _shared_backend() -> InMemoryReviewBackend:
    return InMemoryReviewBackend(
        [
            EditableResource(
                id=1,
                content="Bonjour {name}",
                status=TextUnitStatus.REVIEW_NEEDED,
                version_token="v1",
            )
        ]
    )


@pytest.mark.asyncio
async def test_stale_save_conflicts_then_use_mine_wins() -> None:
    """Reviewer A loses the race, then forces the edit through at v3."""
    backend = _shared_backend()
    sink = InMemoryLogSink()
    reviewer_a = MutationCoordinator(
        backend, telemetry=MutationTelemetry(log_sink=sink)
    )
    reviewer_b = MutationCoordinator(backend)
    await reviewer_a.load(1)
    await reviewer_b.load(1)

    saved_b = await reviewer_b.save_content(1, "Salut {name}")
    stale_a = await reviewer_a.save_content(
        1, "Coucou {name}", decision_state=DecisionState.DECIDED
    )

    assert saved_b is not None
    assert saved_b.state == AttemptState.COMMITTED
    assert stale_a is not None
    assert stale_a.state == AttemptState.CONFLICT
    conflict = reviewer_a.state(1).conflict
    assert conflict is not None
    assert conflict.snapshot.version_token == "v2"
    assert backend.get(1).content == "Salut {name}"

    forced = await reviewer_a.use_mine(1)

    assert forced is not None
    assert forced.state == AttemptState.COMMITTED
    live = backend.get(1)
    assert live.version_token == "v3"
    assert live.content == "Coucou {name}"
    assert live.decision_state == DecisionState.DECIDED
    assert sink.events() == [
        MutationEvent.ATTEMPT_STARTED,
        MutationEvent.COMMIT_CONFLICT,
        MutationEvent.CONFLICT_RESOLVED,
        MutationEvent.ATTEMPT_STARTED,
        MutationEvent.COMMIT_SUCCEEDED,
    ]


@pytest.mark.asyncio
async def test_stale_save_then_use_external_decides_translator_edit() -> None:
    """Reviewer A adopts an undecided translator edit and finalizes it."""
    backend = _shared_backend()
    reviewer_a = MutationCoordinator(backend)
    await reviewer_a.load(1)

    backend.external_edit(1, "Salut {name}")
    await reviewer_a.save_content(1, "Coucou {name}")
    decided = await reviewer_a.use_external(1)

    assert decided is not None
    assert decided.state == AttemptState.COMMITTED
    live = backend.get(1)
    assert live.content == "Salut {name}"
    assert live.decision_state == DecisionState.DECIDED
    assert live.version_token == "v3"
    cached = reviewer_a.cache.get(1)
    assert cached is not None
    assert cached.version_token == "v3"


@pytest.mark.asyncio
async def test_stale_save_then_use_external_keeps_other_reviewers_decision() -> None:
    """A saved PENDING decision from reviewer B is adopted without a write."""
    backend = _shared_backend()
    reviewer_a = MutationCoordinator(backend)
    reviewer_b = MutationCoordinator(backend)
    await reviewer_a.load(1)
    await reviewer_b.load(1)

    await reviewer_b.save_content(1, "Salut {name}")
    await reviewer_a.save_content(1, "Coucou {name}")
    commits_before = len(backend.commit_calls)
    adopted = await reviewer_a.use_external(1)

    assert adopted is None
    assert len(backend.commit_calls) == commits_before
    live = backend.get(1)
    assert live.content == "Salut {name}"
    assert live.decision_state == DecisionState.PENDING
    assert live.version_token == "v2"
    cached = reviewer_a.cache.get(1)
    assert cached is not None
    assert cached.content == "Salut {name}"
    assert cached.has_decision_variant is True


@pytest.mark.asyncio
async def test_interleaved_saves_keep_last_attempt() -> None:
    """Rapid saves from one reviewer settle on the last one."""
    backend = _shared_backend()
    gates = [asyncio.Event(), asyncio.Event()]
    order: list[int] = []

    async def _hold(resource_id: int) -> None:
        index = len(order)
        order.append(index)
        if index < len(gates):
            await gates[index].wait()

    backend.before_commit = _hold
    coordinator = MutationCoordinator(backend)
    await coordinator.load(1)

    first = coordinator.dispatch(coordinator.save_content(1, "one"))
    while len(order) < 1:
        await asyncio.sleep(0)
    second = coordinator.dispatch(coordinator.save_content(1, "two"))
    while len(order) < 2:
        await asyncio.sleep(0)
    gates[1].set()
    await second
    gates[0].set()
    await coordinator.drain()

    assert first.result() is not None
    assert first.result().state == AttemptState.SUPERSEDED
    state = coordinator.state(1)
    assert state.conflict is None
    assert state.error_message is None
    cached = coordinator.cache.get(1)
    assert cached is not None
    assert cached.content == "two"


def _http_unit(
    variant_id: int, content: str, decision: str = "PENDING"
) -> dict[str, object]:
    return {
        "id": 1,
        "tmTextUnit": {"id": 900},
        "currentTmTextUnitVariant": {
            "id": variant_id,
            "content": content,
            "status": "REVIEW_NEEDED",
        },
        "reviewProjectTextUnitDecision": {"decisionState": decision},
    }


@pytest.mark.asyncio
@respx.mock
async def test_http_conflict_and_override_round_trip() -> None:
    """A 409 from the backend surfaces as a conflict and use-mine overrides it."""
    respx.get(f"{BASE_URL}/api/review-project-text-units/1").mock(
        return_value=httpx.Response(200, json=_http_unit(10, "Bonjour {name}"))
    )
    respx.post(f"{BASE_URL}/api/textunits/check").mock(
        return_value=httpx.Response(200, json={"checkResult": True})
    )
    decision = respx.post(f"{BASE_URL}/api/review-project-text-units/1/decision")
    decision.side_effect = [
        httpx.Response(409, json=_http_unit(11, "Salut {name}")),
        httpx.Response(200, json=_http_unit(12, "Coucou {name}", "DECIDED")),
    ]

    async with HttpReviewTransport(EndpointConfig(base_url=BASE_URL)) as transport:
        coordinator = MutationCoordinator(transport)
        await coordinator.load(1)
        stale = await coordinator.save_content(
            1, "Coucou {name}", decision_state=DecisionState.DECIDED
        )
        forced = await coordinator.use_mine(1)

    assert stale is not None
    assert stale.state == AttemptState.CONFLICT
    assert forced is not None
    assert forced.state == AttemptState.COMMITTED
    bodies = [json.loads(call.request.content) for call in decision.calls]
    assert bodies[0]["expectedCurrentTmTextUnitVariantId"] == 10
    assert bodies[0]["overrideChangedCurrent"] is False
    assert bodies[1]["expectedCurrentTmTextUnitVariantId"] == 11
    assert bodies[1]["overrideChangedCurrent"] is True
    cached = coordinator.cache.get(1)
    assert cached is not None
    assert cached.version_token == "12"


@pytest.mark.asyncio
@respx.mock
async def test_http_batch_translation_survives_gateway_errors() -> None:
    """Gateway errors while polling are retried until the task finishes."""
    respx.post(f"{BASE_URL}/api/proto-ai-translate").mock(
        return_value=httpx.Response(200, json={"pollableTask": {"id": 55}})
    )
    respx.get(f"{BASE_URL}/api/pollableTasks/55").mock(
        side_effect=[
            httpx.Response(502),
            httpx.Response(200, json={"id": 55, "isAllFinished": False}),
            httpx.Response(200, json={"id": 55, "isAllFinished": True}),
        ]
    )
    polling = PollingConfig(task=PollConfig(interval_s=0.001, max_interval_s=0.002))

    async with HttpReviewTransport(EndpointConfig(base_url=BASE_URL)) as transport:
        task = await TaskRunner(transport, polling=polling).run_batch_translation(
            BatchTranslationRequest(repository_name="web-app")
        )

    assert task.id == 55
    assert task.done is True
