"""Validation entrypoints for config and log payloads."""

from __future__ import annotations

from revu_schemas.config import ClientConfig
from revu_schemas.logs import LogEntry
from revu_schemas.primitives import JsonValue


def validate_client_config(payload: dict[str, JsonValue]) -> ClientConfig:
    """Validate client configuration payload.

    Args:
        payload: Raw client configuration payload.

    Returns:
        ClientConfig: Validated client configuration.
    """
    return ClientConfig.model_validate(payload)


def validate_log_entry(payload: dict[str, JsonValue]) -> LogEntry:
    """Validate a JSONL log entry payload.

    Args:
        payload: Raw log entry payload.

    Returns:
        LogEntry: Validated log entry.
    """
    return LogEntry.model_validate(payload)
