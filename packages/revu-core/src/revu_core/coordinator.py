"""Single entry point for saving content, status and decisions.

The coordinator ties the commit path together::

    action -> new attempt id -> (integrity check) -> guarded commit
           -> apply outcome only if the attempt is still current

Validation failures and conflicts are not exceptions. They land on the
per-resource ``ResourceMutationState`` so the UI can open a "save anyway"
prompt or a conflict resolution control instead of a generic error banner.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

from revu_core.attempts import AttemptSequencer, EditAttempt
from revu_core.cache import ResourceCache
from revu_core.concurrency import ConcurrencyGuard
from revu_core.decisions import DecisionStateMachine
from revu_core.ports.transport import (
    DEFAULT_COMMIT_ERROR_MESSAGE,
    ApiErrorCode,
    ApiErrorDetails,
    ApiErrorInfo,
    CommitConflict,
    CommitFailed,
    CommitOk,
    ReviewTransportProtocol,
)
from revu_core.telemetry import MutationTelemetry
from revu_core.validation_gate import (
    ValidationGate,
    ValidationOutcome,
    ValidationVerdict,
)
from revu_schemas.config import CommitConfig
from revu_schemas.primitives import (
    AttemptState,
    ConflictChoice,
    DecisionState,
    ResourceId,
    TextUnitStatus,
)
from revu_schemas.resources import CommitRequest, ConflictSnapshot, EditableResource


@dataclass(frozen=True)
class PendingValidation:
    """An attempt halted at a "save anyway" prompt."""

    attempt_id: int
    request: CommitRequest
    prompt: str
    inconclusive: bool


@dataclass(frozen=True)
class PendingConflict:
    """A rejected commit awaiting the reviewer's resolution choice."""

    attempt_id: int
    request: CommitRequest
    snapshot: ConflictSnapshot


@dataclass
class ResourceMutationState:
    """What the UI renders for one resource's commit path."""

    resource_id: ResourceId
    is_saving: bool = False
    error_message: str | None = None
    error: ApiErrorInfo | None = None
    conflict: PendingConflict | None = None
    pending_validation: PendingValidation | None = None

    def clear(self) -> None:
        """Drop any error, conflict or prompt from a previous attempt."""
        self.error_message = None
        self.error = None
        self.conflict = None
        self.pending_validation = None


class MutationCoordinator:
    """Coordinate edits to review resources shared with other reviewers."""

    def __init__(
        self,
        transport: ReviewTransportProtocol,
        *,
        config: CommitConfig | None = None,
        cache: ResourceCache | None = None,
        telemetry: MutationTelemetry | None = None,
        guard: ConcurrencyGuard | None = None,
        gate: ValidationGate | None = None,
        sequencer: AttemptSequencer | None = None,
        decisions: DecisionStateMachine | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            transport: Backend for fetch, validate and commit calls.
            config: Commit path settings.
            cache: Client cache of resources; a new one is created if omitted.
            telemetry: Optional event emitter.
            guard: Concurrency guard; built from ``transport`` if omitted.
            gate: Validation gate; built from ``transport`` if omitted.
            sequencer: Attempt sequencer; a new one is created if omitted.
            decisions: Decision state machine.
        """
        self._transport = transport
        self._config = config or CommitConfig()
        self._cache = cache if cache is not None else ResourceCache()
        self._telemetry = telemetry or MutationTelemetry(log_sink=None)
        self._guard = guard or ConcurrencyGuard(transport, config=self._config)
        self._gate = gate or ValidationGate(transport)
        self._sequencer = sequencer or AttemptSequencer()
        self._decisions = decisions or DecisionStateMachine()
        self._states: dict[ResourceId, ResourceMutationState] = {}
        self._tasks: set[asyncio.Task[EditAttempt | None]] = set()

    @property
    def cache(self) -> ResourceCache:
        """Client cache updated by this coordinator."""
        return self._cache

    @property
    def sequencer(self) -> AttemptSequencer:
        """Attempt sequencer owned by this coordinator."""
        return self._sequencer

    def state(self, resource_id: ResourceId) -> ResourceMutationState:
        """Return the observable commit state for a resource."""
        state = self._states.get(resource_id)
        if state is None:
            state = ResourceMutationState(resource_id=resource_id)
            self._states[resource_id] = state
        return state

    async def load(self, resource_id: ResourceId) -> EditableResource:
        """Fetch a resource and replace its cached copy.

        Returns:
            EditableResource: The live resource.
        """
        resource = await self._transport.fetch_resource(resource_id)
        self._cache.replace(resource)
        return resource

    async def save_content(
        self,
        resource_id: ResourceId,
        content: str,
        *,
        status: TextUnitStatus | None = None,
        decision_state: DecisionState | None = None,
        comment: str | None = None,
        included_in_localized_file: bool | None = None,
        decision_notes: str | None = None,
    ) -> EditAttempt | None:
        """Save translation content, optionally changing status and decision.

        Saving content identical to the cached copy, with no other field
        set, is a no-op.

        Returns:
            EditAttempt | None: The attempt, or None when nothing changed.
        """
        resource = await self._resolve(resource_id)
        if (
            content == resource.content
            and status is None
            and decision_state is None
            and comment is None
            and included_in_localized_file is None
            and decision_notes is None
        ):
            return None
        request = self._decisions.edit(
            resource,
            content,
            status=status,
            decision_state=decision_state,
            comment=comment,
            included_in_localized_file=included_in_localized_file,
            decision_notes=decision_notes,
        )
        return await self.submit(resource_id, request)

    async def change_status(
        self, resource_id: ResourceId, status: TextUnitStatus
    ) -> EditAttempt:
        """Change the translation status without touching content.

        Returns:
            EditAttempt: The finished or halted attempt.
        """
        resource = await self._resolve(resource_id)
        return await self.submit(
            resource_id, self._decisions.status_change(resource, status)
        )

    async def change_decision_state(
        self, resource_id: ResourceId, decision_state: DecisionState
    ) -> EditAttempt:
        """Move a resource between PENDING and DECIDED.

        Returns:
            EditAttempt: The finished attempt.
        """
        resource = await self._resolve(resource_id)
        return await self.submit(
            resource_id, self._decisions.transition(resource, decision_state)
        )

    async def submit(
        self,
        resource_id: ResourceId,
        request: CommitRequest,
        *,
        skip_validation: bool = False,
    ) -> EditAttempt:
        """Run one attempt through validation and the concurrency guard.

        Returns:
            EditAttempt: The attempt in its final (or halted) state. A
            superseded attempt is returned as-is without touching state.
        """
        attempt = self._sequencer.start(
            resource_id, request, skip_validation=skip_validation
        )
        state = self.state(resource_id)
        state.clear()
        state.is_saving = True
        await self._telemetry.attempt_started(attempt)

        if request.changes_content and not skip_validation:
            if self._config.validate_content:
                outcome = await self._validate(attempt)
                if outcome is None or not outcome.passed:
                    return attempt

        await self._commit(attempt)
        return attempt

    def dispatch(
        self, coro: Coroutine[Any, Any, EditAttempt | None]
    ) -> asyncio.Task[EditAttempt | None]:
        """Run a coordinator action in the background, UI fire-and-forget style.

        Returns:
            asyncio.Task: Task tracked until it finishes.
        """
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every dispatched action to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def confirm_validation(self, resource_id: ResourceId) -> EditAttempt | None:
        """Commit the halted payload anyway, without re-running the check.

        Returns:
            EditAttempt | None: The new attempt, or None if nothing was pending.
        """
        pending = self.state(resource_id).pending_validation
        if pending is None:
            return None
        return await self.submit(resource_id, pending.request, skip_validation=True)

    def dismiss_validation(self, resource_id: ResourceId) -> None:
        """Abandon the halted payload.

        The attempt is invalidated so a late response cannot resurrect it.
        """
        self._sequencer.invalidate(resource_id)
        state = self.state(resource_id)
        state.pending_validation = None
        state.is_saving = False

    async def use_external(self, resource_id: ResourceId) -> EditAttempt | None:
        """Resolve a conflict by adopting the live server state.

        Returns:
            EditAttempt | None: The decide attempt when the snapshot was still
            undecided, otherwise None.
        """
        state = self.state(resource_id)
        conflict = state.conflict
        if conflict is None:
            return None
        resolution = self._guard.resolve_use_external(conflict.snapshot)
        self._cache.replace(resolution.resource)
        state.clear()
        await self._telemetry.conflict_resolved(
            resource_id, ConflictChoice.USE_EXTERNAL, conflict.snapshot
        )
        if resolution.follow_up is None:
            return None
        return await self.submit(resource_id, resolution.follow_up)

    async def use_mine(self, resource_id: ResourceId) -> EditAttempt | None:
        """Resolve a conflict by forcing the pending edit through.

        Returns:
            EditAttempt | None: The override attempt, or None without a conflict.
        """
        state = self.state(resource_id)
        conflict = state.conflict
        if conflict is None:
            return None
        request = self._guard.resolve_use_mine(conflict.request, conflict.snapshot)
        await self._telemetry.conflict_resolved(
            resource_id, ConflictChoice.USE_MINE, conflict.snapshot
        )
        return await self.submit(resource_id, request)

    def reset(self) -> None:
        """Drop all in-flight attempts and UI state, e.g. on project change."""
        self._sequencer.invalidate_all()
        self._states.clear()

    async def _resolve(self, resource_id: ResourceId) -> EditableResource:
        cached = self._cache.get(resource_id)
        if cached is not None:
            return cached
        return await self.load(resource_id)

    async def _validate(self, attempt: EditAttempt) -> ValidationOutcome | None:
        content = attempt.request.content
        if content is None:
            raise ValueError("Only content-changing requests are validated")
        attempt.advance(AttemptState.VALIDATING)
        outcome = await self._gate.validate(attempt.resource_id, content)
        if not self._is_current(attempt):
            await self._telemetry.attempt_superseded(attempt)
            return None
        if outcome.passed:
            return outcome
        attempt.advance(AttemptState.AWAITING_CONFIRMATION)
        state = self.state(attempt.resource_id)
        state.is_saving = False
        state.pending_validation = PendingValidation(
            attempt_id=attempt.attempt_id,
            request=attempt.request,
            prompt=outcome.prompt or "",
            inconclusive=outcome.verdict == ValidationVerdict.INCONCLUSIVE,
        )
        await self._telemetry.validation_halted(attempt, outcome)
        return outcome

    async def _commit(self, attempt: EditAttempt) -> None:
        attempt.advance(AttemptState.COMMITTING)
        try:
            result = await self._guard.commit(attempt.resource_id, attempt.request)
        except Exception as exc:
            if self._is_current(attempt):
                await self._fail(attempt, _unexpected_error(attempt, exc))
            raise
        if not self._is_current(attempt):
            await self._telemetry.attempt_superseded(attempt)
            return
        state = self.state(attempt.resource_id)
        state.is_saving = False
        match result:
            case CommitOk(resource=resource):
                self._cache.replace(resource)
                state.clear()
                attempt.advance(AttemptState.COMMITTED)
                await self._telemetry.committed(attempt, resource)
            case CommitConflict(snapshot=snapshot):
                self._cache.replace(snapshot.to_resource())
                state.error_message = None
                state.conflict = PendingConflict(
                    attempt_id=attempt.attempt_id,
                    request=attempt.request,
                    snapshot=snapshot,
                )
                attempt.advance(AttemptState.CONFLICT)
                await self._telemetry.conflict(attempt, snapshot)
            case CommitFailed(error=error):
                await self._fail(attempt, error)

    async def _fail(self, attempt: EditAttempt, error: ApiErrorInfo) -> None:
        state = self.state(attempt.resource_id)
        state.is_saving = False
        state.conflict = None
        state.error_message = error.message or DEFAULT_COMMIT_ERROR_MESSAGE
        state.error = error
        attempt.advance(AttemptState.FAILED)
        await self._telemetry.failed(attempt, error)

    def _is_current(self, attempt: EditAttempt) -> bool:
        return self._sequencer.is_current(attempt.resource_id, attempt.attempt_id)


def _unexpected_error(attempt: EditAttempt, exc: Exception) -> ApiErrorInfo:
    return ApiErrorInfo(
        code=ApiErrorCode.TERMINAL,
        message=str(exc) or DEFAULT_COMMIT_ERROR_MESSAGE,
        details=ApiErrorDetails(
            operation="commit_resource",
            resource_id=attempt.resource_id,
            reason=type(exc).__name__,
        ),
    )
