"""CLI entry point - thin adapter over revu-core."""

from __future__ import annotations

import asyncio
import tomllib
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, NamedTuple

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from revu_core import VERSION
from revu_core.coordinator import MutationCoordinator
from revu_core.decisions import DecisionStateMachine
from revu_core.polling import PollTimeoutError
from revu_core.ports.sinks import LogSinkProtocol
from revu_core.ports.transport import ReviewApiError
from revu_core.tasks import TaskFailedError, TaskRunner
from revu_core.telemetry import MutationTelemetry, PollTelemetry, now_timestamp
from revu_io.http import HttpReviewTransport
from revu_io.log_sink import InMemoryLogSink, build_log_sink
from revu_io.memory import InMemoryReviewBackend
from revu_schemas.config import ClientConfig
from revu_schemas.events import (
    CommandCompletedData,
    CommandEvent,
    CommandFailedData,
    CommandStartedData,
)
from revu_schemas.exit_codes import ExitCode, resolve_exit_code
from revu_schemas.logs import LogEntry
from revu_schemas.primitives import (
    AttemptState,
    CommitKind,
    DecisionState,
    JsonValue,
    LogLevel,
    ResourceId,
    TextUnitStatus,
)
from revu_schemas.resources import AsyncTask, CommitRequest, EditableResource
from revu_schemas.responses import (
    ApiResponse,
    CommitOutcomeResult,
    DemoStepResult,
    ErrorResponse,
    MetaInfo,
)
from revu_schemas.validation import validate_client_config

CONFIG_OPTION = typer.Option(
    Path("revu.toml"),
    "--config",
    "-c",
    help="Path to revu TOML config",
)
CONTENT_OPTION = typer.Option(None, "--content", help="New translation content")
EXPECTED_TOKEN_OPTION = typer.Option(
    ..., "--expected-token", help="Version token observed when the edit started"
)
STATUS_OPTION = typer.Option(None, "--status", help="New translation status")
DECIDE_OPTION = typer.Option(
    False, "--decide", help="Mark the text unit DECIDED (otherwise PENDING)"
)
OVERRIDE_OPTION = typer.Option(
    False, "--override", help="Force the write even if the resource changed"
)
SKIP_CHECK_OPTION = typer.Option(
    False, "--skip-check", help="Commit without running the integrity check"
)
TIMEOUT_OPTION = typer.Option(
    None, "--timeout", help="Seconds to wait before giving up"
)
JSON_OPTION = typer.Option(False, "--json", help="Print the JSON response only")

app = typer.Typer(
    help="Concurrent review client for shared translation resources",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """Revu CLI."""


@app.command()
def version() -> None:
    """Display version information."""
    rprint(f"[bold]revu[/bold] v{VERSION}")


@app.command()
def show(
    resource_id: int = typer.Argument(..., help="Review text unit id"),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Fetch a review text unit and print its live state."""
    args: dict[str, JsonValue] = {
        "resource_id": resource_id,
        "config_path": str(config_path),
    }
    _run_command(
        "show", args, config_path, lambda config, sink: _show(config, resource_id)
    )


@app.command()
def commit(
    resource_id: int = typer.Argument(..., help="Review text unit id"),
    content: str | None = CONTENT_OPTION,
    expected_token: str = EXPECTED_TOKEN_OPTION,
    status: TextUnitStatus | None = STATUS_OPTION,
    decide: bool = DECIDE_OPTION,
    override: bool = OVERRIDE_OPTION,
    skip_check: bool = SKIP_CHECK_OPTION,
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Commit one version-guarded change and print the outcome."""
    args: dict[str, JsonValue] = {
        "resource_id": resource_id,
        "expected_token": expected_token,
        "decide": decide,
        "override": override,
        "skip_check": skip_check,
        "config_path": str(config_path),
    }

    def run(
        config: ClientConfig, sink: LogSinkProtocol
    ) -> Awaitable[_CommandOutcome]:
        try:
            request = CommitRequest(
                content=content,
                status=status,
                decision_state=(
                    DecisionState.DECIDED if decide else DecisionState.PENDING
                ),
                expected_version_token=expected_token,
                override=override,
            )
        except ValidationError as exc:
            first = exc.errors()[0]
            raise ValueError(f"Invalid commit request: {first['msg']}") from exc
        return _commit(config, sink, resource_id, request, skip_check)

    _run_command("commit", args, config_path, run)


@app.command("wait-task")
def wait_task(
    task_id: int = typer.Argument(..., help="Pollable task id"),
    timeout: float | None = TIMEOUT_OPTION,
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Poll a backend task until it finishes."""
    args: dict[str, JsonValue] = {
        "task_id": task_id,
        "timeout": timeout,
        "config_path": str(config_path),
    }
    _run_command(
        "wait-task",
        args,
        config_path,
        lambda config, sink: _wait_task(config, sink, task_id, timeout),
    )


@app.command()
def demo(json_output: bool = JSON_OPTION) -> None:
    """Replay a two-reviewer conflict against an in-memory backend."""
    steps = asyncio.run(_run_demo())
    response: ApiResponse[list[DemoStepResult]] = ApiResponse(
        data=steps,
        error=None,
        meta=MetaInfo(timestamp=now_timestamp()),
    )
    if json_output:
        print(response.model_dump_json())
        return
    Console().print(_build_demo_table(steps))


class _ConfigError(Exception):
    """Raised for CLI configuration issues."""


class _CommandOutcome(NamedTuple):
    response: ApiResponse[Any]
    exit_code: ExitCode


type _CommandBody = Callable[
    [ClientConfig, LogSinkProtocol], Awaitable[_CommandOutcome]
]


def _run_command(
    command: str,
    args: dict[str, JsonValue],
    config_path: Path,
    body: _CommandBody,
) -> None:
    log_sink: LogSinkProtocol | None = None
    try:
        config = _load_client_config(config_path)
        log_sink = build_log_sink(config.logging)
        _emit_command_log_sync(log_sink, _build_command_started_log(command, args))
        outcome = asyncio.run(body(config, log_sink))
        _emit_command_log_sync(log_sink, _build_command_completed_log(command))
    except Exception as exc:
        error, exit_code = _error_from_exception(exc)
        if log_sink is not None:
            _emit_command_log_sync(
                log_sink, _build_command_failed_log(command, error)
            )
        outcome = _CommandOutcome(_error_response(error), exit_code)
    print(outcome.response.model_dump_json())
    if outcome.exit_code != ExitCode.SUCCESS:
        raise typer.Exit(code=int(outcome.exit_code))


async def _show(config: ClientConfig, resource_id: ResourceId) -> _CommandOutcome:
    transport = _build_transport(config)
    try:
        resource = await transport.fetch_resource(resource_id)
    finally:
        await transport.aclose()
    response: ApiResponse[Any] = ApiResponse(
        data=resource, error=None, meta=MetaInfo(timestamp=now_timestamp())
    )
    return _CommandOutcome(response, ExitCode.SUCCESS)


async def _commit(
    config: ClientConfig,
    log_sink: LogSinkProtocol,
    resource_id: ResourceId,
    request: CommitRequest,
    skip_check: bool,
) -> _CommandOutcome:
    transport = _build_transport(config)
    coordinator = MutationCoordinator(
        transport,
        config=config.commit,
        telemetry=MutationTelemetry(log_sink=log_sink),
    )
    try:
        if request.kind == CommitKind.SAVE_DECISION:
            live = await coordinator.load(resource_id)
            request = DecisionStateMachine().complete(live, request)
        attempt = await coordinator.submit(
            resource_id, request, skip_validation=skip_check
        )
    finally:
        await transport.aclose()
    state = coordinator.state(resource_id)
    meta = MetaInfo(timestamp=now_timestamp())
    match attempt.state:
        case AttemptState.COMMITTED:
            result = CommitOutcomeResult(
                outcome="committed", resource=coordinator.cache.get(resource_id)
            )
            return _CommandOutcome(
                ApiResponse(data=result, error=None, meta=meta), ExitCode.SUCCESS
            )
        case AttemptState.CONFLICT if state.conflict is not None:
            result = CommitOutcomeResult(
                outcome="conflict", snapshot=state.conflict.snapshot
            )
            return _CommandOutcome(
                ApiResponse(data=result, error=None, meta=meta), ExitCode.CONFLICT
            )
        case AttemptState.AWAITING_CONFIRMATION if state.pending_validation:
            error = ErrorResponse(
                code="validation_error",
                message=state.pending_validation.prompt,
            )
            return _CommandOutcome(
                _error_response(error), ExitCode.VALIDATION_ERROR
            )
        case AttemptState.FAILED if state.error is not None:
            error = state.error.to_error_response()
            return _CommandOutcome(
                _error_response(error),
                resolve_exit_code(error.code, domain="api"),
            )
    error = ErrorResponse(
        code="runtime_error", message=state.error_message or "Commit did not finish"
    )
    return _CommandOutcome(_error_response(error), ExitCode.RUNTIME_ERROR)


async def _wait_task(
    config: ClientConfig,
    log_sink: LogSinkProtocol,
    task_id: int,
    timeout_s: float | None,
) -> _CommandOutcome:
    transport = _build_transport(config)
    runner = TaskRunner(
        transport,
        polling=config.polling,
        listener_factory=lambda operation: PollTelemetry(
            operation, log_sink=log_sink
        ),
    )
    try:
        task: AsyncTask = await runner.wait_for_task(task_id, timeout_s=timeout_s)
    finally:
        await transport.aclose()
    response: ApiResponse[Any] = ApiResponse(
        data=task, error=None, meta=MetaInfo(timestamp=now_timestamp())
    )
    return _CommandOutcome(response, ExitCode.SUCCESS)


async def _run_demo() -> list[DemoStepResult]:
    resource_id = 1
    backend = InMemoryReviewBackend(
        [
            EditableResource(
                id=resource_id,
                content="Bonjour {name}",
                status=TextUnitStatus.REVIEW_NEEDED,
                version_token="v1",
            )
        ]
    )
    sink = InMemoryLogSink()
    reviewer_a = MutationCoordinator(
        backend, telemetry=MutationTelemetry(log_sink=sink)
    )
    reviewer_b = MutationCoordinator(
        backend, telemetry=MutationTelemetry(log_sink=sink)
    )
    steps: list[DemoStepResult] = []

    loaded = await reviewer_a.load(resource_id)
    steps.append(_demo_step("A", "load", None, loaded))
    await reviewer_b.load(resource_id)
    attempt = await reviewer_b.save_content(resource_id, "Salut {name}")
    steps.append(
        _demo_step(
            "B",
            "save",
            attempt.state if attempt else None,
            backend.get(resource_id),
        )
    )
    attempt = await reviewer_a.save_content(resource_id, "Bonjour {name} !")
    conflict = reviewer_a.state(resource_id).conflict
    steps.append(
        DemoStepResult(
            actor="A",
            action="save (stale token)",
            attempt_state=attempt.state if attempt else None,
            version_token=conflict.snapshot.version_token if conflict else None,
            content=conflict.snapshot.content if conflict else None,
        )
    )
    attempt = await reviewer_a.use_mine(resource_id)
    steps.append(
        _demo_step(
            "A",
            "use mine (override)",
            attempt.state if attempt else None,
            backend.get(resource_id),
        )
    )
    return steps


def _demo_step(
    actor: str,
    action: str,
    attempt_state: AttemptState | None,
    resource: EditableResource,
) -> DemoStepResult:
    return DemoStepResult(
        actor=actor,
        action=action,
        attempt_state=attempt_state,
        version_token=resource.version_token,
        content=resource.content,
    )


def _build_demo_table(steps: list[DemoStepResult]) -> Table:
    table = Table(title="Concurrent review scenario")
    table.add_column("Reviewer", style="bold")
    table.add_column("Action")
    table.add_column("Attempt")
    table.add_column("Token", style="cyan")
    table.add_column("Content")
    for step in steps:
        table.add_row(
            step.actor,
            step.action,
            str(step.attempt_state or "-"),
            step.version_token or "-",
            step.content or "",
        )
    return table


def _build_transport(
    config: ClientConfig,
) -> HttpReviewTransport | InMemoryReviewBackend:
    return HttpReviewTransport(config.endpoint)


def _load_client_config(config_path: Path) -> ClientConfig:
    _load_dotenv(config_path)
    if not config_path.exists():
        raise _ConfigError(f"Config not found: {config_path}")
    try:
        with open(config_path, "rb") as handle:
            payload: dict[str, JsonValue] = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise _ConfigError(f"Failed to read config: {exc}") from exc
    return validate_client_config(payload)


def _load_dotenv(config_path: Path) -> None:
    env_path = config_path.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)


async def _emit_command_log(log_sink: LogSinkProtocol, entry: LogEntry) -> None:
    await log_sink.emit_log(entry)


def _emit_command_log_sync(log_sink: LogSinkProtocol, entry: LogEntry) -> None:
    asyncio.run(_emit_command_log(log_sink, entry))


def _build_command_started_log(
    command: str, args: dict[str, JsonValue] | None
) -> LogEntry:
    return LogEntry(
        timestamp=now_timestamp(),
        level=LogLevel.INFO,
        event=CommandEvent.STARTED,
        message="Command started",
        data=CommandStartedData(command=command, args=args).model_dump(
            exclude_none=True
        ),
    )


def _build_command_completed_log(command: str) -> LogEntry:
    return LogEntry(
        timestamp=now_timestamp(),
        level=LogLevel.INFO,
        event=CommandEvent.COMPLETED,
        message="Command completed",
        data=CommandCompletedData(command=command).model_dump(exclude_none=True),
    )


def _build_command_failed_log(command: str, error: ErrorResponse) -> LogEntry:
    return LogEntry(
        timestamp=now_timestamp(),
        level=LogLevel.ERROR,
        event=CommandEvent.FAILED,
        message="Command failed",
        data=CommandFailedData(
            command=command,
            error_code=error.code,
            error_message=error.message,
        ).model_dump(exclude_none=True),
    )


def _error_response(error: ErrorResponse) -> ApiResponse[Any]:
    return ApiResponse(
        data=None,
        error=error,
        meta=MetaInfo(timestamp=now_timestamp()),
    )


def _error_from_exception(exc: Exception) -> tuple[ErrorResponse, ExitCode]:
    if isinstance(exc, ReviewApiError):
        error = exc.info.to_error_response()
        return error, resolve_exit_code(error.code, domain="api")
    if isinstance(exc, PollTimeoutError):
        error = ErrorResponse(code="poll_timeout", message=str(exc))
        return error, resolve_exit_code(error.code)
    if isinstance(exc, TaskFailedError):
        error = ErrorResponse(code="task_failed", message=str(exc))
        return error, resolve_exit_code(error.code)
    if isinstance(exc, ValidationError):
        message = "Config validation failed"
        errors = exc.errors()
        if errors:
            first = errors[0]
            loc = first.get("loc", [])
            label = ".".join(str(part) for part in loc) if loc else ""
            detail = first.get("msg", "")
            if label and detail:
                message = f"Config validation failed: {label} - {detail}"
            elif detail:
                message = f"Config validation failed: {detail}"
        error = ErrorResponse(code="config_error", message=message)
        return error, resolve_exit_code(error.code)
    if isinstance(exc, _ConfigError):
        error = ErrorResponse(code="config_error", message=str(exc))
        return error, resolve_exit_code(error.code)
    if isinstance(exc, ValueError):
        error = ErrorResponse(code="validation_error", message=str(exc))
        return error, resolve_exit_code(error.code)
    message = str(exc) or type(exc).__name__
    error = ErrorResponse(code="runtime_error", message=message)
    return error, ExitCode.RUNTIME_ERROR


if __name__ == "__main__":
    app()
