"""
Assistant run polling.

The state transition is a pure function so it can be tested without
clocks or network; :func:`poll_run` does the IO around it.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable

from cyclescope.core.exceptions import RunFailedError, RunTimeoutError
from cyclescope.core.logging import get_logger

logger = get_logger("openai.polling")


class RunState(str, Enum):
    """Local view of an assistant run."""

    SUBMITTED = "submitted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self not in (RunState.SUBMITTED, RunState.RUNNING)


# Remote run statuses reported by the Assistants API
REMOTE_STATUS_MAP: dict[str, RunState] = {
    "queued": RunState.SUBMITTED,
    "in_progress": RunState.RUNNING,
    "requires_action": RunState.RUNNING,
    "cancelling": RunState.RUNNING,
    "completed": RunState.SUCCEEDED,
    "failed": RunState.FAILED,
    "incomplete": RunState.FAILED,
    "cancelled": RunState.CANCELLED,
    "expired": RunState.EXPIRED,
}


def next_state(remote_status: str | None, elapsed: float, timeout: float) -> RunState:
    """
    Map a polled remote status to the next local state.

    A terminal remote status wins over the timeout; otherwise the run is
    timed out once ``elapsed`` reaches ``timeout``. Unknown statuses count
    as still running.
    """
    state = REMOTE_STATUS_MAP.get(remote_status or "", RunState.RUNNING)
    if state.is_terminal:
        return state
    if elapsed >= timeout:
        return RunState.TIMED_OUT
    return state


def _failure_reason(run: Any) -> str:
    last_error = getattr(run, "last_error", None)
    message = getattr(last_error, "message", None) if last_error else None
    return message or "Unknown error"


async def poll_run(
    run: Any,
    retrieve: Callable[[], Awaitable[Any]],
    *,
    interval: float = 2.0,
    timeout: float = 300.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """
    Poll until the run reaches a terminal state.

    Args:
        run: The run object returned when the run was created
        retrieve: Coroutine factory fetching the current run
        interval: Seconds between polls
        timeout: Upper bound for the whole wait

    Returns:
        The completed run

    Raises:
        RunFailedError: Run failed, was cancelled or expired
        RunTimeoutError: No terminal state within ``timeout``
    """
    started = clock()

    while True:
        state = next_state(run.status, clock() - started, timeout)

        if state is RunState.SUCCEEDED:
            logger.info("Run completed successfully")
            return run
        if state is RunState.FAILED:
            raise RunFailedError(
                f"Assistant run failed: {_failure_reason(run)}", remote_status=run.status
            )
        if state is RunState.CANCELLED:
            raise RunFailedError("Assistant run was cancelled", remote_status=run.status)
        if state is RunState.EXPIRED:
            raise RunFailedError("Assistant run expired", remote_status=run.status)
        if state is RunState.TIMED_OUT:
            raise RunTimeoutError(
                f"Assistant run timeout ({timeout:.0f}s)", remote_status=run.status
            )

        logger.debug(f"Run status: {run.status}")
        await sleep(interval)
        run = await retrieve()
