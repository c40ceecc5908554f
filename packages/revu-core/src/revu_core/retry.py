"""Transient error classification and bounded retry for backend calls.

Every poller and the commit path share ``is_transient_error`` so that retry
policy stays consistent across unrelated operations.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import httpx

TRANSIENT_HTTP_STATUSES = frozenset({502, 503, 504, *range(520, 530)})
_NETWORK_MESSAGE_MARKERS = ("failed to fetch", "network")


def is_transient_error(error: BaseException) -> bool:
    """Decide whether a failed backend call is worth retrying.

    Precedence: an explicit boolean ``is_transient`` attribute on the error
    wins; otherwise an HTTP status (``status_code`` or ``status``) is
    transient only for gateway-class failures; otherwise the error is
    transient if it looks like a network failure.

    Args:
        error: Exception raised by a backend call.

    Returns:
        bool: True if the call may succeed on retry.
    """
    override = getattr(error, "is_transient", None)
    if isinstance(override, bool):
        return override
    status = _status_code(error)
    if status is not None:
        return status in TRANSIENT_HTTP_STATUSES
    return _is_network_error(error)


def backoff_delay_s(failures: int, interval_s: float, max_interval_s: float) -> float:
    """Exponential backoff delay after ``failures`` consecutive failures.

    Returns:
        float: ``interval_s * 2**(failures - 1)`` capped at ``max_interval_s``.
    """
    safe_failures = max(1, failures)
    return min(interval_s * 2 ** (safe_failures - 1), max_interval_s)


async def retry_transient[T](
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    interval_s: float,
    max_interval_s: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run an operation, retrying transient failures a bounded number of times.

    Args:
        operation: Zero-argument coroutine factory to run.
        max_retries: Extra attempts allowed after the first failure.
        interval_s: Base backoff delay.
        max_interval_s: Backoff delay cap.
        sleep: Awaitable sleep used between attempts.

    Returns:
        T: The operation result.

    Raises:
        Exception: The last error, when it is terminal or retries ran out.
    """
    failures = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if failures >= max_retries or not is_transient_error(exc):
                raise
            failures += 1
            await sleep(backoff_delay_s(failures, interval_s, max_interval_s))


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def _is_network_error(error: BaseException) -> bool:
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return True
    message = str(error).lower()
    if any(marker in message for marker in _NETWORK_MESSAGE_MARKERS):
        return True
    cause = error.__cause__
    if cause is not None and cause is not error:
        return _is_network_error(cause)
    return False
