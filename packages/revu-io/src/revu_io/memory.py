"""In-memory review backend honouring the server-side commit contract."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from revu_core.ports.transport import (
    ApiErrorCode,
    ApiErrorDetails,
    ApiErrorInfo,
    CommitConflict,
    CommitOk,
    JobTransportProtocol,
    ReviewApiError,
    ReviewTransportProtocol,
)
from revu_schemas.jobs import (
    BatchTranslationRequest,
    ReviewProjectCreateRequest,
    ReviewProjectCreateResponse,
)
from revu_schemas.primitives import DecisionState, ResourceId, TaskId
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

type ResourceHook = Callable[[ResourceId], Awaitable[None]]
type Validator = Callable[[ResourceId, str], ValidationResult]

_TOKEN_PATTERN = re.compile(r"v(\d+)")


@dataclass
class _ScriptedTask:
    task: AsyncTask
    finish_after: int
    polls: int = 0


@dataclass
class _ScriptedSearch:
    results: list[TextUnitSearchHit]
    pending_polls: int
    error_message: str | None


class InMemoryReviewBackend(ReviewTransportProtocol, JobTransportProtocol):
    """Reference backend for tests and demos.

    Accepted writes get a fresh ``v<n>`` token. A write whose expected token
    differs from the live one is rejected unapplied with the live snapshot,
    unless it carries ``override``. Errors can be queued per operation, and
    async hooks let tests hold a call open to stage races.
    """

    def __init__(
        self,
        resources: list[EditableResource] | None = None,
        *,
        validator: Validator | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            resources: Initial resources; their tokens are kept as given.
            validator: Integrity check; every content passes when omitted.
        """
        self._resources: dict[ResourceId, EditableResource] = {}
        self._validator = validator
        self._token_counter = 0
        self._task_counter = 0
        self._tasks: dict[TaskId, _ScriptedTask] = {}
        self._task_errors: dict[TaskId, str] = {}
        self._searches: dict[str, _ScriptedSearch] = {}
        self._next_search: str | None = None
        self._errors: dict[str, list[BaseException]] = {}
        self.commit_calls: list[tuple[ResourceId, CommitRequest]] = []
        self.validate_calls: list[tuple[ResourceId, str]] = []
        self.before_commit: ResourceHook | None = None
        self.before_validate: ResourceHook | None = None
        for resource in resources or []:
            self.add_resource(resource)

    async def aclose(self) -> None:
        """Release resources; nothing to close in memory."""
        return None

    def add_resource(self, resource: EditableResource) -> None:
        """Store a resource as the live server state."""
        self._resources[resource.id] = resource.model_copy(deep=True)
        match = _TOKEN_PATTERN.fullmatch(resource.version_token)
        if match is not None:
            self._token_counter = max(self._token_counter, int(match.group(1)))

    def get(self, resource_id: ResourceId) -> EditableResource:
        """Return a copy of the live server state."""
        return self._require(resource_id).model_copy(deep=True)

    def fail_next(self, operation: str, error: BaseException) -> None:
        """Queue an error for the next call to ``operation``.

        ``operation`` is a transport method name such as ``commit_resource``.
        """
        self._errors.setdefault(operation, []).append(error)

    def external_edit(
        self,
        resource_id: ResourceId,
        content: str,
        *,
        decision_state: DecisionState | None = None,
    ) -> EditableResource:
        """Apply a write from another reviewer, bypassing the token check.

        Returns:
            EditableResource: The new live state.
        """
        current = self._require(resource_id)
        updated = current.model_copy(
            update={
                "content": content,
                "decision_state": decision_state or current.decision_state,
                "version_token": self._next_token(),
            }
        )
        self._resources[resource_id] = updated
        return updated.model_copy(deep=True)

    def add_task(
        self,
        *,
        finish_after: int = 1,
        error_message: str | None = None,
    ) -> AsyncTask:
        """Register a task that finishes after ``finish_after`` status checks.

        Returns:
            AsyncTask: The task as first reported.
        """
        self._task_counter += 1
        task = AsyncTask(
            id=self._task_counter, done=finish_after <= 0, error_message=None
        )
        if error_message is not None:
            self._task_errors[task.id] = error_message
        self._tasks[task.id] = _ScriptedTask(task=task, finish_after=finish_after)
        return task.model_copy()

    def add_search(
        self,
        request_id: str,
        results: list[TextUnitSearchHit],
        *,
        pending_polls: int = 0,
        error_message: str | None = None,
    ) -> None:
        """Script the next search to return ``request_id``'s results.

        With ``pending_polls`` > 0 the search is deferred and completes on
        that many-th result fetch.
        """
        self._searches[request_id] = _ScriptedSearch(
            results=list(results),
            pending_polls=pending_polls,
            error_message=error_message,
        )
        self._next_search = request_id

    async def fetch_resource(self, resource_id: ResourceId) -> EditableResource:
        """Return the live state of a resource."""
        self._raise_queued("fetch_resource")
        return self.get(resource_id)

    async def commit_resource(
        self, resource_id: ResourceId, request: CommitRequest
    ) -> CommitOk | CommitConflict:
        """Apply a version-guarded write.

        Returns:
            CommitOk | CommitConflict: Applied resource or live snapshot.
        """
        self.commit_calls.append((resource_id, request.model_copy(deep=True)))
        if self.before_commit is not None:
            await self.before_commit(resource_id)
        self._raise_queued("commit_resource")
        current = self._require(resource_id)
        if (
            not request.override
            and request.expected_version_token != current.version_token
        ):
            return CommitConflict(snapshot=_snapshot(current))
        update: dict[str, object] = {
            "decision_state": request.decision_state,
            "version_token": self._next_token(),
        }
        if request.content is not None:
            update["content"] = request.content
            update["has_decision_variant"] = True
        if request.status is not None:
            update["status"] = request.status
        if request.comment is not None:
            update["comment"] = request.comment
        if request.included_in_localized_file is not None:
            update["included_in_localized_file"] = request.included_in_localized_file
        if request.decision_notes is not None:
            update["decision_notes"] = request.decision_notes
        updated = current.model_copy(update=update)
        self._resources[resource_id] = updated
        return CommitOk(resource=updated.model_copy(deep=True))

    async def validate_content(
        self, resource_id: ResourceId, content: str
    ) -> ValidationResult:
        """Run the scripted integrity check."""
        self.validate_calls.append((resource_id, content))
        if self.before_validate is not None:
            await self.before_validate(resource_id)
        self._raise_queued("validate_content")
        if self._validator is None:
            return ValidationResult(passed=True)
        return self._validator(resource_id, content)

    async def fetch_task(self, task_id: TaskId) -> AsyncTask:
        """Report task progress; each call counts as one status check."""
        self._raise_queued("fetch_task")
        scripted = self._tasks.get(task_id)
        if scripted is None:
            raise _not_found("fetch_task", f"Unknown task {task_id}")
        scripted.polls += 1
        if scripted.polls >= scripted.finish_after:
            scripted.task = scripted.task.model_copy(
                update={
                    "done": True,
                    "error_message": self._task_errors.get(task_id),
                }
            )
        return scripted.task.model_copy()

    async def start_batch_translation(
        self, request: BatchTranslationRequest
    ) -> AsyncTask:
        """Start a batch translation that finishes after two status checks."""
        self._raise_queued("start_batch_translation")
        return self.add_task(finish_after=2)

    async def create_review_project(
        self, request: ReviewProjectCreateRequest
    ) -> ReviewProjectCreateResponse:
        """Create a review project in the background."""
        self._raise_queued("create_review_project")
        task = self.add_task(finish_after=1)
        return ReviewProjectCreateResponse(request_id=task.id, task=task)

    async def search_text_units(self, request: TextUnitSearchRequest) -> SearchResponse:
        """Start the scripted search."""
        self._raise_queued("search_text_units")
        request_id = self._next_search
        if request_id is None:
            return SearchResponse(results=[])
        return self._search_response(request_id, deferred=True)

    async def fetch_search_results(self, request_id: str) -> SearchResponse:
        """Return the deferred part of a scripted search."""
        self._raise_queued("fetch_search_results")
        return self._search_response(request_id, deferred=False)

    def _search_response(self, request_id: str, *, deferred: bool) -> SearchResponse:
        search = self._searches.get(request_id)
        if search is None:
            raise _not_found("search", f"Unknown search {request_id}")
        if not deferred and search.pending_polls > 0:
            search.pending_polls -= 1
        if search.pending_polls > 0:
            return SearchResponse(
                polling_token=SearchPollingToken(request_id=request_id)
            )
        if search.error_message is not None:
            return SearchResponse(error_message=search.error_message)
        return SearchResponse(results=list(search.results))

    def _require(self, resource_id: ResourceId) -> EditableResource:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise _not_found("resource", f"Unknown resource {resource_id}")
        return resource

    def _next_token(self) -> str:
        self._token_counter += 1
        return f"v{self._token_counter}"

    def _raise_queued(self, operation: str) -> None:
        queued = self._errors.get(operation)
        if queued:
            raise queued.pop(0)


def _snapshot(resource: EditableResource) -> ConflictSnapshot:
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


def _not_found(operation: str, message: str) -> ReviewApiError:
    return ReviewApiError(
        ApiErrorInfo(
            code=ApiErrorCode.TERMINAL,
            message=message,
            status_code=404,
            details=ApiErrorDetails(operation=operation),
        )
    )
