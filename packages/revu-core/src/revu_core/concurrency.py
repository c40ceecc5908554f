"""Version-token conflict detection and the two reviewer resolution paths."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from revu_core.ports.transport import (
    CommitFailed,
    CommitResult,
    ReviewApiError,
    ReviewTransportProtocol,
)
from revu_core.retry import retry_transient
from revu_schemas.config import CommitConfig
from revu_schemas.primitives import DecisionState, ResourceId
from revu_schemas.resources import CommitRequest, ConflictSnapshot, EditableResource


@dataclass(frozen=True)
class ExternalResolution:
    """Result of adopting the other side of a conflict.

    ``follow_up`` is set when the snapshot had no decision yet: adopting the
    external content then also finalizes the decision, as a new guarded commit
    based on the snapshot token.
    """

    resource: EditableResource
    follow_up: CommitRequest | None


class ConcurrencyGuard:
    """Commit through the backend and classify the outcome.

    Never resolves a conflict by itself. A conflict is returned with the live
    snapshot so a reviewer can pick ``resolve_use_external`` or
    ``resolve_use_mine``.
    """

    def __init__(
        self,
        transport: ReviewTransportProtocol,
        *,
        config: CommitConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the guard.

        Args:
            transport: Backend used for commits.
            config: Retry settings for transient commit failures.
            sleep: Awaitable sleep used between retries.
        """
        self._transport = transport
        self._config = config or CommitConfig()
        self._sleep = sleep

    async def commit(
        self, resource_id: ResourceId, request: CommitRequest
    ) -> CommitResult:
        """Submit a version-guarded write.

        Transient failures are retried a bounded number of times; 4xx
        responses are never retried, and a conflict is an outcome rather than
        a failure.

        Returns:
            CommitResult: ``CommitOk``, ``CommitConflict`` or ``CommitFailed``.
        """
        try:
            return await retry_transient(
                lambda: self._transport.commit_resource(resource_id, request),
                max_retries=self._config.max_commit_retries,
                interval_s=self._config.retry_interval_s,
                max_interval_s=self._config.max_retry_interval_s,
                sleep=self._sleep,
            )
        except ReviewApiError as exc:
            return CommitFailed(error=exc.info)

    def resolve_use_mine(
        self, request: CommitRequest, snapshot: ConflictSnapshot
    ) -> CommitRequest:
        """Force the pending edit through on top of the live state.

        Returns:
            CommitRequest: Identical payload with ``override`` and the fresh token.
        """
        return request.model_copy(
            update={
                "expected_version_token": snapshot.version_token,
                "override": True,
            }
        )

    def resolve_use_external(self, snapshot: ConflictSnapshot) -> ExternalResolution:
        """Discard the pending edit and adopt the live state.

        Returns:
            ExternalResolution: Adopted resource and an optional decide request.
        """
        resource = snapshot.to_resource()
        if snapshot.is_decided:
            return ExternalResolution(resource=resource, follow_up=None)
        follow_up = CommitRequest(
            decision_state=DecisionState.DECIDED,
            expected_version_token=snapshot.version_token,
        )
        return ExternalResolution(resource=resource, follow_up=follow_up)
