"""Unit tests for the poll-until-done loop."""

import asyncio

import pytest

from revu_core.polling import (
    DEFAULT_TIMEOUT_MESSAGE,
    PollPolicy,
    PollTimeoutError,
    poll,
)
from revu_core.ports.transport import ApiErrorCode, ApiErrorInfo, ReviewApiError
from revu_schemas.config import PollConfig


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class _RecordingListener:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []

    async def on_retry(
        self, *, failures: int, delay_s: float, error: BaseException
    ) -> None:
        self.events.append(("retry", {"failures": failures, "delay_s": delay_s}))

    async def on_stop(self, *, calls: int, elapsed_s: float) -> None:
        self.events.append(("stop", {"calls": calls, "elapsed_s": elapsed_s}))

    async def on_timeout(self, *, elapsed_s: float, timeout_s: float) -> None:
        self.events.append(("timeout", {"elapsed_s": elapsed_s}))

    async def on_abort(self, *, error: BaseException) -> None:
        self.events.append(("abort", {"error": str(error)}))


def _transient() -> ReviewApiError:
    return ReviewApiError(
        ApiErrorInfo(code=ApiErrorCode.TRANSIENT, message="gateway", status_code=503)
    )


def _terminal() -> ReviewApiError:
    return ReviewApiError(
        ApiErrorInfo(code=ApiErrorCode.TERMINAL, message="bad", status_code=400)
    )


def test_first_check_is_immediate() -> None:
    """A task already done is returned without sleeping."""
    clock = _FakeClock()

    async def _fetch() -> str:
        return "done"

    result = asyncio.run(
        poll(
            _fetch,
            PollPolicy(should_stop=lambda value: value == "done", interval_s=1.0),
            clock=clock,
            sleep=clock.sleep,
        )
    )

    assert result == "done"
    assert clock.sleeps == []


def test_polls_at_interval_until_stop() -> None:
    """Unfinished results are polled again after the base interval."""
    clock = _FakeClock()
    results = iter([False, False, True])
    listener = _RecordingListener()

    async def _fetch() -> bool:
        return next(results)

    result = asyncio.run(
        poll(
            _fetch,
            PollPolicy(should_stop=bool, interval_s=0.5),
            listener=listener,
            clock=clock,
            sleep=clock.sleep,
        )
    )

    assert result is True
    assert clock.sleeps == [0.5, 0.5]
    assert listener.events == [("stop", {"calls": 3, "elapsed_s": 1.0})]


def test_timeout_fires_at_or_after_deadline_and_never_later_calls() -> None:
    """No status check starts after the deadline has passed."""
    clock = _FakeClock()
    call_times: list[float] = []

    async def _fetch() -> bool:
        call_times.append(clock.now)
        return False

    with pytest.raises(PollTimeoutError) as exc_info:
        asyncio.run(
            poll(
                _fetch,
                PollPolicy(
                    should_stop=bool,
                    interval_s=1.0,
                    timeout_s=3.0,
                    timeout_message="Timed out while waiting for AI translate",
                ),
                clock=clock,
                sleep=clock.sleep,
            )
        )

    assert str(exc_info.value) == "Timed out while waiting for AI translate"
    assert exc_info.value.elapsed_s >= 3.0
    assert exc_info.value.timeout_s == 3.0
    assert all(t <= 3.0 for t in call_times)


def test_timeout_uses_default_message() -> None:
    """Without a caller message the generic timeout text is used."""
    clock = _FakeClock()

    async def _fetch() -> bool:
        return False

    with pytest.raises(PollTimeoutError, match=DEFAULT_TIMEOUT_MESSAGE):
        asyncio.run(
            poll(
                _fetch,
                PollPolicy(should_stop=bool, interval_s=2.0, timeout_s=1.0),
                clock=clock,
                sleep=clock.sleep,
            )
        )


def test_transient_failures_back_off_with_capped_delays() -> None:
    """Retry delays never decrease and never exceed the cap."""
    clock = _FakeClock()
    listener = _RecordingListener()
    failures_left = 4

    async def _fetch() -> str:
        nonlocal failures_left
        if failures_left:
            failures_left -= 1
            raise _transient()
        return "done"

    result = asyncio.run(
        poll(
            _fetch,
            PollPolicy(
                should_stop=lambda value: value == "done",
                interval_s=1.0,
                max_interval_s=3.0,
            ),
            listener=listener,
            clock=clock,
            sleep=clock.sleep,
        )
    )

    assert result == "done"
    assert clock.sleeps == [1.0, 2.0, 3.0, 3.0]
    assert clock.sleeps == sorted(clock.sleeps)
    retries = [event for event in listener.events if event[0] == "retry"]
    assert [data["failures"] for _, data in retries] == [1, 2, 3, 4]


def test_terminal_failure_aborts_immediately() -> None:
    """A non-transient failure is raised without any retry."""
    clock = _FakeClock()
    listener = _RecordingListener()
    calls = 0

    async def _fetch() -> str:
        nonlocal calls
        calls += 1
        raise _terminal()

    with pytest.raises(ReviewApiError):
        asyncio.run(
            poll(
                _fetch,
                PollPolicy(should_stop=bool, interval_s=1.0, timeout_s=10.0),
                listener=listener,
                clock=clock,
                sleep=clock.sleep,
            )
        )

    assert calls == 1
    assert clock.sleeps == []
    assert listener.events == [("abort", {"error": "bad"})]


def test_transient_failures_stop_at_deadline() -> None:
    """Transient retries are bounded by the deadline, not a retry count."""
    clock = _FakeClock()

    async def _fetch() -> str:
        raise _transient()

    with pytest.raises(PollTimeoutError):
        asyncio.run(
            poll(
                _fetch,
                PollPolicy(
                    should_stop=bool,
                    interval_s=1.0,
                    max_interval_s=2.0,
                    timeout_s=5.0,
                ),
                clock=clock,
                sleep=clock.sleep,
            )
        )

    assert clock.now > 5.0


def test_policy_from_config_copies_profile() -> None:
    """Policies built from config keep cadence and deadline."""
    policy = PollPolicy.from_config(
        PollConfig(interval_s=0.25, max_interval_s=4.0, timeout_s=12.0),
        bool,
        timeout_message="slow",
    )

    assert policy.interval_s == 0.25
    assert policy.max_interval_s == 4.0
    assert policy.timeout_s == 12.0
    assert policy.timeout_message == "slow"
    assert policy.has_deadline is True


def test_non_positive_timeout_means_unbounded() -> None:
    """A zero timeout disables the deadline."""
    policy = PollPolicy(should_stop=bool, interval_s=1.0, timeout_s=0)

    assert policy.has_deadline is False
