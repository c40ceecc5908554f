"""Client configuration schemas loaded from revu.toml."""

from __future__ import annotations

from pydantic import Field, model_validator

from revu_schemas.base import BaseSchema
from revu_schemas.primitives import LogSinkType
from revu_schemas.version import VersionInfo

DEFAULT_POLL_INTERVAL_S = 0.5
DEFAULT_MAX_POLL_INTERVAL_S = 8.0
DEFAULT_SEARCH_TIMEOUT_S = 30.0
DEFAULT_PROJECT_CREATION_TIMEOUT_S = 120.0


class EndpointConfig(BaseSchema):
    """Review backend endpoint settings."""

    base_url: str = Field(..., min_length=1, description="Backend base URL")
    timeout_s: float = Field(30.0, gt=0, description="Request timeout in seconds")
    api_token_env: str | None = Field(
        None, description="Environment variable holding a bearer token"
    )


class PollConfig(BaseSchema):
    """Polling cadence for a long-running operation."""

    interval_s: float = Field(
        DEFAULT_POLL_INTERVAL_S, gt=0, description="Delay between status checks"
    )
    max_interval_s: float = Field(
        DEFAULT_MAX_POLL_INTERVAL_S,
        gt=0,
        description="Cap for the transient-failure backoff delay",
    )
    timeout_s: float | None = Field(
        None, gt=0, description="Overall deadline; null polls until done"
    )

    @model_validator(mode="after")
    def _check_interval_cap(self) -> PollConfig:
        if self.max_interval_s < self.interval_s:
            raise ValueError("max_interval_s must be >= interval_s")
        return self


class PollingConfig(BaseSchema):
    """Named polling profiles for each long-running backend operation."""

    task: PollConfig = Field(
        default_factory=PollConfig,
        description="Background job polling (unbounded unless configured)",
    )
    search: PollConfig = Field(
        default_factory=lambda: PollConfig(timeout_s=DEFAULT_SEARCH_TIMEOUT_S),
        description="Deferred search polling",
    )
    project_creation: PollConfig = Field(
        default_factory=lambda: PollConfig(
            timeout_s=DEFAULT_PROJECT_CREATION_TIMEOUT_S
        ),
        description="Review project creation polling",
    )


class CommitConfig(BaseSchema):
    """Commit path settings."""

    max_commit_retries: int = Field(
        2, ge=0, description="Extra attempts for transient commit failures"
    )
    retry_interval_s: float = Field(
        DEFAULT_POLL_INTERVAL_S, gt=0, description="Base delay between retries"
    )
    max_retry_interval_s: float = Field(
        DEFAULT_MAX_POLL_INTERVAL_S, gt=0, description="Retry delay cap"
    )
    validate_content: bool = Field(
        True, description="Run the integrity check before content commits"
    )


class LogSinkConfig(BaseSchema):
    """Log sink configuration."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")
    path: str | None = Field(None, description="JSONL path for file sinks")

    @model_validator(mode="after")
    def _require_path_for_file(self) -> LogSinkConfig:
        if self.type == LogSinkType.FILE and not self.path:
            raise ValueError("file log sinks require a path")
        return self


class LoggingConfig(BaseSchema):
    """Logging configuration."""

    sinks: list[LogSinkConfig] = Field(
        default_factory=lambda: [LogSinkConfig(type=LogSinkType.NOOP)],
        min_length=1,
        description="Configured log sinks",
    )


class ClientConfig(BaseSchema):
    """Root configuration for a revu client."""

    schema_version: VersionInfo = Field(..., description="Schema version for config")
    endpoint: EndpointConfig = Field(..., description="Backend endpoint")
    polling: PollingConfig = Field(
        default_factory=PollingConfig, description="Polling profiles"
    )
    commit: CommitConfig = Field(
        default_factory=CommitConfig, description="Commit settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    @model_validator(mode="after")
    def _check_schema_version(self) -> ClientConfig:
        if not self.schema_version.is_supported():
            raise ValueError(
                f"Unsupported config schema version: {self.schema_version}"
            )
        return self
