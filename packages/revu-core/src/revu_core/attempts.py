"""Per-resource attempt sequencing for last-attempt-wins UI effects."""

from __future__ import annotations

from dataclasses import dataclass

from revu_schemas.primitives import (
    TERMINAL_ATTEMPT_STATES,
    AttemptState,
    ResourceId,
)
from revu_schemas.resources import CommitRequest

_ALLOWED_TRANSITIONS: dict[AttemptState, frozenset[AttemptState]] = {
    AttemptState.CREATED: frozenset(
        {AttemptState.VALIDATING, AttemptState.COMMITTING, AttemptState.SUPERSEDED}
    ),
    AttemptState.VALIDATING: frozenset(
        {
            AttemptState.COMMITTING,
            AttemptState.AWAITING_CONFIRMATION,
            AttemptState.SUPERSEDED,
        }
    ),
    AttemptState.AWAITING_CONFIRMATION: frozenset({AttemptState.SUPERSEDED}),
    AttemptState.COMMITTING: frozenset(
        {
            AttemptState.COMMITTED,
            AttemptState.CONFLICT,
            AttemptState.FAILED,
            AttemptState.SUPERSEDED,
        }
    ),
}


class InvalidAttemptTransitionError(ValueError):
    """Raised when an attempt is moved to a state its lifecycle forbids."""


@dataclass
class EditAttempt:
    """One user-triggered action on a resource. Never persisted."""

    attempt_id: int
    resource_id: ResourceId
    request: CommitRequest
    skip_validation: bool = False
    state: AttemptState = AttemptState.CREATED

    @property
    def is_terminal(self) -> bool:
        """Whether the attempt has reached a final state."""
        return self.state in TERMINAL_ATTEMPT_STATES

    def advance(self, state: AttemptState) -> None:
        """Move the attempt to the next lifecycle state.

        Raises:
            InvalidAttemptTransitionError: If the transition is not allowed.
        """
        allowed = _ALLOWED_TRANSITIONS.get(self.state, frozenset())
        if state not in allowed:
            raise InvalidAttemptTransitionError(
                f"Attempt {self.attempt_id} cannot move from {self.state} to {state}"
            )
        self.state = state


class AttemptSequencer:
    """Issue monotonically increasing attempt ids per resource.

    Every async continuation must call ``is_current`` before touching shared
    state. A stale continuation does nothing and raises nothing: a newer
    action on the same resource is an expected race, not a failure.
    """

    def __init__(self) -> None:
        """Initialize empty counters."""
        self._counters: dict[ResourceId, int] = {}
        self._current: dict[ResourceId, EditAttempt] = {}

    def begin(self, resource_id: ResourceId) -> int:
        """Issue the next attempt id for a resource, superseding older ones.

        Returns:
            int: The new current attempt id.
        """
        attempt_id = self._counters.get(resource_id, 0) + 1
        self._counters[resource_id] = attempt_id
        self._supersede(resource_id)
        return attempt_id

    def start(
        self,
        resource_id: ResourceId,
        request: CommitRequest,
        *,
        skip_validation: bool = False,
    ) -> EditAttempt:
        """Begin a new attempt and track it as the current one.

        Returns:
            EditAttempt: The new attempt in state CREATED.
        """
        attempt = EditAttempt(
            attempt_id=self.begin(resource_id),
            resource_id=resource_id,
            request=request,
            skip_validation=skip_validation,
        )
        self._current[resource_id] = attempt
        return attempt

    def is_current(self, resource_id: ResourceId, attempt_id: int) -> bool:
        """Whether ``attempt_id`` is still the latest attempt on the resource."""
        return self._counters.get(resource_id, 0) == attempt_id

    def current(self, resource_id: ResourceId) -> EditAttempt | None:
        """Return the current tracked attempt for a resource, if any."""
        attempt = self._current.get(resource_id)
        if attempt is None or not self.is_current(resource_id, attempt.attempt_id):
            return None
        return attempt

    def invalidate(self, resource_id: ResourceId) -> None:
        """Supersede the current attempt without starting a new one."""
        self.begin(resource_id)

    def invalidate_all(self) -> None:
        """Supersede every tracked attempt."""
        for resource_id in list(self._counters):
            self.invalidate(resource_id)

    def _supersede(self, resource_id: ResourceId) -> None:
        previous = self._current.pop(resource_id, None)
        if previous is not None and not previous.is_terminal:
            previous.advance(AttemptState.SUPERSEDED)
