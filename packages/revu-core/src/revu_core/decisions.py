"""PENDING/DECIDED transitions expressed as version-guarded commits."""

from __future__ import annotations

from revu_schemas.primitives import CommitKind, DecisionState, TextUnitStatus
from revu_schemas.resources import CommitRequest, EditableResource


class DecisionStateMachine:
    """Build commit requests for reviewer decision changes.

    Transitions never bypass the concurrency guard: every request carries the
    version token of the resource it was built from. A pure transition has no
    content and therefore skips the integrity check; an edit-and-decide action
    is a single request so the server applies it atomically.

    The decision endpoint replaces every save field, so save requests always
    carry the full target, comment, status and inclusion flag.
    """

    def transition(
        self, resource: EditableResource, target: DecisionState
    ) -> CommitRequest:
        """Request a pure decision-state change.

        Returns:
            CommitRequest: Request without content, guarded by the cached token.
        """
        return CommitRequest(
            decision_state=target,
            expected_version_token=resource.version_token,
        )

    def edit(
        self,
        resource: EditableResource,
        content: str,
        *,
        status: TextUnitStatus | None = None,
        decision_state: DecisionState | None = None,
        comment: str | None = None,
        included_in_localized_file: bool | None = None,
        decision_notes: str | None = None,
    ) -> CommitRequest:
        """Request a content change, optionally deciding in the same write.

        Returns:
            CommitRequest: Combined request guarded by the cached token.
        """
        request = CommitRequest(
            content=content,
            status=status,
            decision_state=decision_state or resource.decision_state,
            expected_version_token=resource.version_token,
            comment=comment,
            included_in_localized_file=included_in_localized_file,
            decision_notes=decision_notes,
        )
        return self.complete(resource, request)

    def status_change(
        self, resource: EditableResource, status: TextUnitStatus
    ) -> CommitRequest:
        """Request a status change that keeps content and the current decision.

        Returns:
            CommitRequest: Full save request guarded by the cached token.
        """
        return self.edit(resource, resource.content, status=status)

    def complete(
        self, resource: EditableResource, request: CommitRequest
    ) -> CommitRequest:
        """Fill the save fields a request leaves unset from ``resource``.

        Pure transitions are returned unchanged.

        Returns:
            CommitRequest: Request whose save fields are all set.
        """
        if request.kind != CommitKind.SAVE_DECISION:
            return request
        update: dict[str, object] = {}
        if request.content is None:
            update["content"] = resource.content
        if request.status is None:
            update["status"] = resource.status
        if request.comment is None:
            update["comment"] = resource.comment
        if request.included_in_localized_file is None:
            update["included_in_localized_file"] = resource.included_in_localized_file
        if request.decision_notes is None:
            update["decision_notes"] = resource.decision_notes
        if not update:
            return request
        return request.model_copy(update=update)
