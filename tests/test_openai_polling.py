"""Tests for the assistant run state machine and poller."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from cyclescope.core.exceptions import RunFailedError, RunTimeoutError
from cyclescope.services.openai import RunState, next_state, poll_run


def run(status: str, message: str | None = None) -> SimpleNamespace:
    last_error = SimpleNamespace(message=message) if message else None
    return SimpleNamespace(id="run_1", status=status, last_error=last_error)


class FakeClock:
    """Advances by ``step`` seconds per call."""

    def __init__(self, step: float):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


class TestNextState:
    """Pure status mapping."""

    @pytest.mark.parametrize(
        "remote,expected",
        [
            ("queued", RunState.SUBMITTED),
            ("in_progress", RunState.RUNNING),
            ("requires_action", RunState.RUNNING),
            ("cancelling", RunState.RUNNING),
            ("completed", RunState.SUCCEEDED),
            ("failed", RunState.FAILED),
            ("incomplete", RunState.FAILED),
            ("cancelled", RunState.CANCELLED),
            ("expired", RunState.EXPIRED),
        ],
    )
    def test_remote_status_mapping(self, remote, expected):
        assert next_state(remote, elapsed=0, timeout=300) is expected

    def test_unknown_status_counts_as_running(self):
        assert next_state("something_new", elapsed=1, timeout=300) is RunState.RUNNING

    def test_timeout_reached(self):
        assert next_state("in_progress", elapsed=300, timeout=300) is RunState.TIMED_OUT

    def test_terminal_status_wins_over_timeout(self):
        assert next_state("completed", elapsed=999, timeout=300) is RunState.SUCCEEDED

    def test_terminal_flags(self):
        assert not RunState.SUBMITTED.is_terminal
        assert not RunState.RUNNING.is_terminal
        assert all(
            s.is_terminal
            for s in (RunState.SUCCEEDED, RunState.FAILED, RunState.CANCELLED,
                      RunState.EXPIRED, RunState.TIMED_OUT)
        )


class TestPollRun:
    """IO loop around next_state."""

    @pytest.mark.asyncio
    async def test_polls_until_completed(self):
        retrieve = AsyncMock(side_effect=[run("in_progress"), run("completed")])
        sleep = AsyncMock()

        result = await poll_run(
            run("queued"), retrieve, interval=2.0, sleep=sleep, clock=FakeClock(0.1)
        )

        assert result.status == "completed"
        assert retrieve.await_count == 2
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_already_completed_does_not_sleep(self):
        sleep = AsyncMock()
        retrieve = AsyncMock()

        await poll_run(run("completed"), retrieve, sleep=sleep)

        sleep.assert_not_awaited()
        retrieve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_run_reports_last_error(self):
        retrieve = AsyncMock(return_value=run("failed", "rate limited"))

        with pytest.raises(RunFailedError, match="Assistant run failed: rate limited") as exc_info:
            await poll_run(run("queued"), retrieve, sleep=AsyncMock(), clock=FakeClock(0))

        assert exc_info.value.details["remoteStatus"] == "failed"

    @pytest.mark.asyncio
    async def test_failed_without_error_message(self):
        with pytest.raises(RunFailedError, match="Unknown error"):
            await poll_run(run("failed"), AsyncMock(), sleep=AsyncMock())

    @pytest.mark.asyncio
    async def test_cancelled(self):
        with pytest.raises(RunFailedError, match="cancelled"):
            await poll_run(run("cancelled"), AsyncMock(), sleep=AsyncMock())

    @pytest.mark.asyncio
    async def test_expired(self):
        with pytest.raises(RunFailedError, match="expired"):
            await poll_run(run("expired"), AsyncMock(), sleep=AsyncMock())

    @pytest.mark.asyncio
    async def test_timeout(self):
        retrieve = AsyncMock(return_value=run("in_progress"))

        with pytest.raises(RunTimeoutError, match=r"timeout \(10s\)"):
            await poll_run(
                run("in_progress"),
                retrieve,
                interval=2.0,
                timeout=10.0,
                sleep=AsyncMock(),
                clock=FakeClock(3.0),
            )

        assert retrieve.await_count >= 1
