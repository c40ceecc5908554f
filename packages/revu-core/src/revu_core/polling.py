"""Generic poll-until-done loop with capped backoff and a deadline.

The loop is an explicit state machine::

    WAITING -> CALLING -> STOP
                       -> BACKOFF -> WAITING
                       -> ABORT

The deadline is checked on entry to CALLING, so a status check is never
started after the deadline has passed. Transient failures back off
exponentially (capped) and retry until the deadline; any other failure
aborts immediately.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, cast

from revu_core.retry import backoff_delay_s, is_transient_error
from revu_schemas.config import DEFAULT_MAX_POLL_INTERVAL_S, PollConfig

DEFAULT_TIMEOUT_MESSAGE = "Timed out while waiting for response"


class PollState(StrEnum):
    """States of the polling state machine."""

    WAITING = "waiting"
    CALLING = "calling"
    BACKOFF = "backoff"
    STOP = "stop"
    ABORT = "abort"


class PollTimeoutError(TimeoutError):
    """Raised when a poll exceeds its deadline.

    Distinct from transient-retry exhaustion: there is no retry count, only
    the deadline.
    """

    def __init__(self, message: str, *, elapsed_s: float, timeout_s: float) -> None:
        """Initialize the timeout error.

        Args:
            message: Caller-supplied timeout message.
            elapsed_s: Seconds since the poll started.
            timeout_s: Configured deadline.
        """
        super().__init__(message)
        self.elapsed_s = elapsed_s
        self.timeout_s = timeout_s


class PollListener(Protocol):
    """Observer notified of noteworthy poll transitions."""

    async def on_retry(
        self, *, failures: int, delay_s: float, error: BaseException
    ) -> None:
        """A transient failure was scheduled for retry."""
        raise NotImplementedError

    async def on_stop(self, *, calls: int, elapsed_s: float) -> None:
        """The stop condition was met."""
        raise NotImplementedError

    async def on_timeout(self, *, elapsed_s: float, timeout_s: float) -> None:
        """The deadline was exceeded."""
        raise NotImplementedError

    async def on_abort(self, *, error: BaseException) -> None:
        """A non-transient failure aborted polling."""
        raise NotImplementedError


@dataclass(frozen=True)
class PollPolicy[T]:
    """How often to poll, when to stop, and which failures to retry.

    A ``timeout_s`` of None (or a non-positive value) polls until the stop
    condition is met; callers cancel the surrounding task instead.
    """

    should_stop: Callable[[T], bool]
    interval_s: float
    max_interval_s: float = DEFAULT_MAX_POLL_INTERVAL_S
    timeout_s: float | None = None
    timeout_message: str | None = None
    is_transient_error: Callable[[BaseException], bool] = is_transient_error

    @classmethod
    def from_config(
        cls,
        config: PollConfig,
        should_stop: Callable[[T], bool],
        *,
        timeout_message: str | None = None,
    ) -> PollPolicy[T]:
        """Build a policy from a configured polling profile.

        Returns:
            PollPolicy[T]: Policy using the configured cadence and deadline.
        """
        return cls(
            should_stop=should_stop,
            interval_s=config.interval_s,
            max_interval_s=config.max_interval_s,
            timeout_s=config.timeout_s,
            timeout_message=timeout_message,
        )

    @property
    def has_deadline(self) -> bool:
        """Whether the policy bounds the total polling time."""
        return self.timeout_s is not None and self.timeout_s > 0


async def poll[T](
    fetch_status: Callable[[], Awaitable[T]],
    policy: PollPolicy[T],
    *,
    listener: PollListener | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fetch_status`` until ``policy.should_stop`` accepts a result.

    Args:
        fetch_status: Zero-argument coroutine factory returning a status.
        policy: Polling cadence, stop condition and retry classification.
        listener: Optional observer for retries, stops, timeouts and aborts.
        clock: Monotonic clock in seconds.
        sleep: Awaitable sleep.

    Returns:
        T: The first result accepted by the stop condition.

    Raises:
        PollTimeoutError: If the deadline passed before the task stopped.
    """
    started_at = clock()
    state = PollState.CALLING
    failures = 0
    calls = 0
    wait_s = 0.0
    result: T | None = None
    error: BaseException | None = None

    while True:
        match state:
            case PollState.WAITING:
                await sleep(wait_s)
                state = PollState.CALLING

            case PollState.CALLING:
                elapsed_s = clock() - started_at
                if policy.has_deadline and elapsed_s > cast(float, policy.timeout_s):
                    timeout_s = cast(float, policy.timeout_s)
                    if listener is not None:
                        await listener.on_timeout(
                            elapsed_s=elapsed_s, timeout_s=timeout_s
                        )
                    raise PollTimeoutError(
                        policy.timeout_message or DEFAULT_TIMEOUT_MESSAGE,
                        elapsed_s=elapsed_s,
                        timeout_s=timeout_s,
                    )
                calls += 1
                try:
                    result = await fetch_status()
                except Exception as exc:
                    error = exc
                    state = (
                        PollState.BACKOFF
                        if policy.is_transient_error(exc)
                        else PollState.ABORT
                    )
                    continue
                if policy.should_stop(result):
                    state = PollState.STOP
                else:
                    failures = 0
                    wait_s = policy.interval_s
                    state = PollState.WAITING

            case PollState.BACKOFF:
                failures += 1
                wait_s = backoff_delay_s(
                    failures, policy.interval_s, policy.max_interval_s
                )
                if listener is not None:
                    await listener.on_retry(
                        failures=failures,
                        delay_s=wait_s,
                        error=cast(BaseException, error),
                    )
                state = PollState.WAITING

            case PollState.STOP:
                if listener is not None:
                    await listener.on_stop(calls=calls, elapsed_s=clock() - started_at)
                return cast(T, result)

            case PollState.ABORT:
                aborted = cast(BaseException, error)
                if listener is not None:
                    await listener.on_abort(error=aborted)
                raise aborted
