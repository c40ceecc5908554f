"""httpx-backed review backend transport."""

from __future__ import annotations

import os
from collections.abc import Callable
from types import TracebackType
from typing import Self

import httpx
from pydantic import ValidationError

from revu_core.ports.transport import (
    DEFAULT_COMMIT_ERROR_MESSAGE,
    ApiErrorCode,
    ApiErrorDetails,
    ApiErrorInfo,
    CommitConflict,
    CommitOk,
    JobTransportProtocol,
    ReviewApiError,
    ReviewTransportProtocol,
)
from revu_core.retry import TRANSIENT_HTTP_STATUSES
from revu_io.wire import (
    decode_batch_translation_response,
    decode_check_result,
    decode_conflict_snapshot,
    decode_pollable_task,
    decode_review_project_response,
    decode_review_text_unit,
    decode_search_response,
    encode_batch_translation_request,
    encode_check_request,
    encode_commit_request,
    encode_review_project_request,
    encode_search_request,
)
from revu_schemas.config import EndpointConfig
from revu_schemas.jobs import (
    BatchTranslationRequest,
    ReviewProjectCreateRequest,
    ReviewProjectCreateResponse,
)
from revu_schemas.primitives import JsonValue, ResourceId, TaskId
from revu_schemas.resources import (
    AsyncTask,
    CommitRequest,
    EditableResource,
    ValidationResult,
)
from revu_schemas.search import SearchResponse, TextUnitSearchRequest

CONFLICT_STATUS = 409


class HttpReviewTransport(ReviewTransportProtocol, JobTransportProtocol):
    """Review and job transport over the backend's JSON HTTP API.

    The 409 conflict signal is decoded here, once, into ``CommitConflict``.
    Every other failure raises ``ReviewApiError``: gateway-class statuses are
    transient, other statuses terminal, and httpx transport errors are
    network failures.
    """

    def __init__(
        self,
        endpoint: EndpointConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            endpoint: Backend endpoint settings.
            http_client: Optional pre-configured HTTP client for dependency
                injection. If None, one is created from ``endpoint``.
        """
        self._endpoint = endpoint
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=endpoint.base_url,
            timeout=endpoint.timeout_s,
            headers=_auth_headers(endpoint),
        )
        self._tm_text_unit_ids: dict[ResourceId, int] = {}

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch_resource(self, resource_id: ResourceId) -> EditableResource:
        """Load the live state of a review text unit.

        Returns:
            EditableResource: The live resource.
        """
        operation = "fetch_resource"
        response = await self._request(
            "GET",
            f"/api/review-project-text-units/{resource_id}",
            operation=operation,
            resource_id=resource_id,
        )
        self._raise_for_status(response, operation, resource_id)
        return self._decode_resource(response, operation, resource_id)

    async def commit_resource(
        self, resource_id: ResourceId, request: CommitRequest
    ) -> CommitOk | CommitConflict:
        """Post a version-guarded decision write.

        Returns:
            CommitOk | CommitConflict: Applied resource or live snapshot.

        Raises:
            ReviewApiError: For any failure other than a version conflict.
        """
        operation = "commit_resource"
        response = await self._request(
            "POST",
            f"/api/review-project-text-units/{resource_id}/decision",
            operation=operation,
            resource_id=resource_id,
            json=encode_commit_request(request),
        )
        if response.status_code == CONFLICT_STATUS:
            payload = self._json(response, operation, resource_id)
            try:
                snapshot = decode_conflict_snapshot(payload)
            except ValidationError as exc:
                raise self._invalid_response(
                    response,
                    operation,
                    resource_id,
                    "Conflict response did not carry the live state",
                ) from exc
            return CommitConflict(snapshot=snapshot)
        self._raise_for_status(
            response, operation, resource_id, default=DEFAULT_COMMIT_ERROR_MESSAGE
        )
        resource = self._decode_resource(response, operation, resource_id)
        return CommitOk(resource=resource)

    async def validate_content(
        self, resource_id: ResourceId, content: str
    ) -> ValidationResult:
        """Run the placeholder/integrity check for candidate content.

        Returns:
            ValidationResult: Check verdict and detail.
        """
        operation = "validate_content"
        tm_text_unit_id = self._tm_text_unit_ids.get(resource_id, resource_id)
        response = await self._request(
            "POST",
            "/api/textunits/check",
            operation=operation,
            resource_id=resource_id,
            json=encode_check_request(tm_text_unit_id, content),
        )
        self._raise_for_status(response, operation, resource_id)
        payload = self._json(response, operation, resource_id)
        try:
            return decode_check_result(payload)
        except ValidationError as exc:
            raise self._invalid_response(
                response, operation, resource_id, str(exc)
            ) from exc

    async def fetch_task(self, task_id: TaskId) -> AsyncTask:
        """Load a pollable task.

        Returns:
            AsyncTask: Normalized task status.
        """
        operation = "fetch_task"
        response = await self._request(
            "GET", f"/api/pollableTasks/{task_id}", operation=operation
        )
        return self._decode(response, operation, decode_pollable_task)

    async def start_batch_translation(
        self, request: BatchTranslationRequest
    ) -> AsyncTask:
        """Start an AI batch translation job.

        Returns:
            AsyncTask: The job's pollable task.
        """
        operation = "start_batch_translation"
        response = await self._request(
            "POST",
            "/api/proto-ai-translate",
            operation=operation,
            json=encode_batch_translation_request(request),
        )
        return self._decode(response, operation, decode_batch_translation_response)

    async def create_review_project(
        self, request: ReviewProjectCreateRequest
    ) -> ReviewProjectCreateResponse:
        """Submit a review project creation request.

        Returns:
            ReviewProjectCreateResponse: Created projects or a pollable task.
        """
        operation = "create_review_project"
        response = await self._request(
            "POST",
            "/api/review-project-requests",
            operation=operation,
            json=encode_review_project_request(request),
        )
        return self._decode(response, operation, decode_review_project_response)

    async def search_text_units(self, request: TextUnitSearchRequest) -> SearchResponse:
        """Start a hybrid text unit search.

        Returns:
            SearchResponse: Results, a polling token, or an error.
        """
        operation = "search_text_units"
        response = await self._request(
            "POST",
            "/api/textunits/search-hybrid",
            operation=operation,
            json=encode_search_request(request),
        )
        return self._decode(response, operation, decode_search_response)

    async def fetch_search_results(self, request_id: str) -> SearchResponse:
        """Load the deferred part of a hybrid search.

        Returns:
            SearchResponse: Results, a polling token, or an error.
        """
        operation = "fetch_search_results"
        response = await self._request(
            "GET",
            f"/api/textunits/search-hybrid/results/{request_id}",
            operation=operation,
        )
        return self._decode(response, operation, decode_search_response)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        resource_id: ResourceId | None = None,
        json: dict[str, JsonValue] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise ReviewApiError(
                ApiErrorInfo(
                    code=ApiErrorCode.NETWORK,
                    message=f"Network error during {operation}: {exc}",
                    is_transient=True,
                    details=ApiErrorDetails(
                        operation=operation,
                        resource_id=resource_id,
                        url=path,
                        reason=type(exc).__name__,
                    ),
                )
            ) from exc

    def _raise_for_status(
        self,
        response: httpx.Response,
        operation: str,
        resource_id: ResourceId | None,
        *,
        default: str | None = None,
    ) -> None:
        if response.is_success:
            return
        status = response.status_code
        code = (
            ApiErrorCode.TRANSIENT
            if status in TRANSIENT_HTTP_STATUSES
            else ApiErrorCode.TERMINAL
        )
        message = response.text.strip() or default or f"{operation} failed"
        raise ReviewApiError(
            ApiErrorInfo(
                code=code,
                message=message,
                status_code=status,
                details=ApiErrorDetails(
                    operation=operation,
                    resource_id=resource_id,
                    url=str(response.request.url),
                    reason=response.reason_phrase or None,
                ),
            )
        )

    def _decode_resource(
        self,
        response: httpx.Response,
        operation: str,
        resource_id: ResourceId,
    ) -> EditableResource:
        payload = self._json(response, operation, resource_id)
        try:
            resource, tm_text_unit_id = decode_review_text_unit(payload)
        except ValidationError as exc:
            raise self._invalid_response(
                response, operation, resource_id, str(exc)
            ) from exc
        if tm_text_unit_id is not None:
            self._tm_text_unit_ids[resource.id] = tm_text_unit_id
        return resource

    def _decode[T](
        self,
        response: httpx.Response,
        operation: str,
        decoder: Callable[[object], T],
    ) -> T:
        self._raise_for_status(response, operation, None)
        payload = self._json(response, operation, None)
        try:
            return decoder(payload)
        except (ValidationError, ValueError) as exc:
            raise self._invalid_response(response, operation, None, str(exc)) from exc

    def _json(
        self,
        response: httpx.Response,
        operation: str,
        resource_id: ResourceId | None,
    ) -> object:
        try:
            return response.json()
        except ValueError as exc:
            raise self._invalid_response(
                response, operation, resource_id, "Response body is not JSON"
            ) from exc

    def _invalid_response(
        self,
        response: httpx.Response,
        operation: str,
        resource_id: ResourceId | None,
        reason: str,
    ) -> ReviewApiError:
        return ReviewApiError(
            ApiErrorInfo(
                code=ApiErrorCode.INVALID_RESPONSE,
                message=f"Unexpected response from {operation}",
                status_code=response.status_code,
                is_transient=False,
                details=ApiErrorDetails(
                    operation=operation,
                    resource_id=resource_id,
                    url=str(response.request.url),
                    reason=reason,
                ),
            )
        )


def _auth_headers(endpoint: EndpointConfig) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if endpoint.api_token_env:
        token = os.getenv(endpoint.api_token_env)
        if token:
            headers["Authorization"] = f"Bearer {token}"
    return headers
