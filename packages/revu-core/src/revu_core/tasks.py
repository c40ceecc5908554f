"""Long-running backend operations driven by the shared poll loop."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from revu_core.polling import PollListener, PollPolicy, poll
from revu_core.ports.transport import JobTransportProtocol
from revu_schemas.config import PollConfig, PollingConfig
from revu_schemas.jobs import (
    BatchTranslationRequest,
    ReviewProjectCreateRequest,
    ReviewProjectCreateResponse,
)
from revu_schemas.primitives import TaskId
from revu_schemas.resources import AsyncTask
from revu_schemas.search import SearchResponse, TextUnitSearchHit, TextUnitSearchRequest

AI_TRANSLATE_TIMEOUT_MESSAGE = "Timed out while waiting for AI translate to finish"
PROJECT_CREATION_TIMEOUT_MESSAGE = (
    "Timed out while waiting for review project creation to finish"
)
SEARCH_TIMEOUT_MESSAGE = "Timed out while waiting for search results"


class TaskFailedError(RuntimeError):
    """A polled operation finished but reported an error."""

    def __init__(self, message: str, *, task_id: TaskId | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message reported by the backend.
            task_id: Identifier of the failed task, if any.
        """
        super().__init__(message)
        self.task_id = task_id


def _task_finished(task: AsyncTask) -> bool:
    return task.done


def _search_finished(response: SearchResponse) -> bool:
    return response.results is not None or response.error_message is not None


class TaskRunner:
    """Start backend jobs and wait for them with the configured poll profiles."""

    def __init__(
        self,
        transport: JobTransportProtocol,
        *,
        polling: PollingConfig | None = None,
        listener_factory: Callable[[str], PollListener | None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the runner.

        Args:
            transport: Backend exposing pollable jobs.
            polling: Polling profiles per operation.
            listener_factory: Builds a poll listener for an operation name.
            clock: Monotonic clock in seconds.
            sleep: Awaitable sleep.
        """
        self._transport = transport
        self._polling = polling or PollingConfig()
        self._listener_factory = listener_factory
        self._clock = clock
        self._sleep = sleep

    async def wait_for_task(
        self,
        task_id: TaskId,
        *,
        timeout_s: float | None = None,
        timeout_message: str = AI_TRANSLATE_TIMEOUT_MESSAGE,
        operation: str = "ai_translate",
    ) -> AsyncTask:
        """Poll a task until it finishes.

        Args:
            task_id: Pollable task identifier.
            timeout_s: Deadline override; the task profile is used when None.
            timeout_message: Message for the timeout error.
            operation: Operation name reported to the poll listener.

        Returns:
            AsyncTask: The finished task.

        Raises:
            TaskFailedError: If the task finished with an error.
        """
        profile = self._polling.task
        if timeout_s is not None:
            profile = profile.model_copy(update={"timeout_s": timeout_s})
        task = await self._poll(
            lambda: self._transport.fetch_task(task_id),
            PollPolicy.from_config(
                profile, _task_finished, timeout_message=timeout_message
            ),
            operation,
        )
        if task.error_message:
            raise TaskFailedError(task.error_message, task_id=task.id)
        return task

    async def run_batch_translation(
        self, request: BatchTranslationRequest
    ) -> AsyncTask:
        """Start an AI batch translation and wait for it to finish.

        Returns:
            AsyncTask: The finished task.
        """
        task = await self._transport.start_batch_translation(request)
        if task.done:
            if task.error_message:
                raise TaskFailedError(task.error_message, task_id=task.id)
            return task
        return await self.wait_for_task(task.id)

    async def create_review_project(
        self, request: ReviewProjectCreateRequest
    ) -> ReviewProjectCreateResponse:
        """Create review projects, waiting for background creation if needed.

        Returns:
            ReviewProjectCreateResponse: The creation response.

        Raises:
            TaskFailedError: If background creation failed.
        """
        response = await self._transport.create_review_project(request)
        if response.task is None or response.task.done:
            if response.task is not None and response.task.error_message:
                raise TaskFailedError(
                    response.task.error_message, task_id=response.task.id
                )
            return response
        task_id = response.task.id
        task = await self._poll(
            lambda: self._transport.fetch_task(task_id),
            PollPolicy.from_config(
                self._polling.project_creation,
                _task_finished,
                timeout_message=PROJECT_CREATION_TIMEOUT_MESSAGE,
            ),
            "review_project_creation",
        )
        if task.error_message:
            raise TaskFailedError(task.error_message, task_id=task.id)
        return response.model_copy(update={"task": task})

    async def search_text_units(
        self, request: TextUnitSearchRequest
    ) -> list[TextUnitSearchHit]:
        """Run a search, polling for deferred results when the server asks to.

        The deadline is the server-recommended polling duration when given,
        otherwise the search profile timeout.

        Returns:
            list[TextUnitSearchHit]: Search results.

        Raises:
            TaskFailedError: If the search reported an error.
        """
        response = await self._transport.search_text_units(request)
        if not _search_finished(response) and response.polling_token is not None:
            token = response.polling_token
            profile = self._search_profile(token.recommended_polling_duration_s)
            response = await self._poll(
                lambda: self._transport.fetch_search_results(token.request_id),
                PollPolicy.from_config(
                    profile, _search_finished, timeout_message=SEARCH_TIMEOUT_MESSAGE
                ),
                "text_unit_search",
            )
        if response.error_message:
            raise TaskFailedError(response.error_message)
        if response.results is None:
            raise TaskFailedError("Search returned neither results nor a token")
        return response.results

    def _search_profile(self, recommended_s: float | None) -> PollConfig:
        profile = self._polling.search
        if recommended_s is None:
            return profile
        return profile.model_copy(update={"timeout_s": recommended_s})

    async def _poll[T](
        self,
        fetch_status: Callable[[], Awaitable[T]],
        policy: PollPolicy[T],
        operation: str,
    ) -> T:
        listener = (
            self._listener_factory(operation) if self._listener_factory else None
        )
        return await poll(
            fetch_status,
            policy,
            listener=listener,
            clock=self._clock,
            sleep=self._sleep,
        )
