"""CLI exit code taxonomy and error-to-exit-code registry.

Exit code ranges:
- 0: Success
- 10-19: Client/input errors (config, validation)
- 20-29: Review outcome errors (conflict, terminal API error, failed job)
- 30-39: External service errors (transient, timeout)
- 99: Unexpected runtime errors
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """CLI exit codes by failure category."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    VALIDATION_ERROR = 11
    CONFLICT = 20
    API_ERROR = 21
    TASK_FAILED = 22
    CONNECTION_ERROR = 30
    POLL_TIMEOUT = 31
    RUNTIME_ERROR = 99


# Domain error codes are qualified with a domain prefix to avoid collisions.
# CLI-level codes are stored without a prefix for direct lookup.
ERROR_CODE_TO_EXIT_CODE: dict[str, ExitCode] = {
    # --- CLI-level codes (no prefix) ---
    "config_error": ExitCode.CONFIG_ERROR,
    "validation_error": ExitCode.VALIDATION_ERROR,
    "runtime_error": ExitCode.RUNTIME_ERROR,
    "conflict": ExitCode.CONFLICT,
    "poll_timeout": ExitCode.POLL_TIMEOUT,
    "task_failed": ExitCode.TASK_FAILED,
    # --- API domain ---
    "api.terminal": ExitCode.API_ERROR,
    "api.invalid_response": ExitCode.API_ERROR,
    "api.transient": ExitCode.CONNECTION_ERROR,
    "api.network": ExitCode.CONNECTION_ERROR,
}


def resolve_exit_code(error_code: str, *, domain: str | None = None) -> ExitCode:
    """Resolve an error code string to its ExitCode.

    Args:
        error_code: The error code string (e.g. "config_error", "terminal").
        domain: Optional domain prefix (e.g. "api"). When provided, the lookup
            uses ``"{domain}.{error_code}"`` first, falling back to an
            unqualified lookup.

    Returns:
        The matching ExitCode, or RUNTIME_ERROR if no mapping is found.
    """
    if domain:
        qualified = f"{domain}.{error_code}"
        if qualified in ERROR_CODE_TO_EXIT_CODE:
            return ERROR_CODE_TO_EXIT_CODE[qualified]

    if error_code in ERROR_CODE_TO_EXIT_CODE:
        return ERROR_CODE_TO_EXIT_CODE[error_code]

    return ExitCode.RUNTIME_ERROR
