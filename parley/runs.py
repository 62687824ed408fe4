"""
Run poller: drives an assistant run to a terminal state.

  queued → in_progress → completed | failed | cancelled | expired

requires_action (tool calls) is not implemented and fails immediately.
The poll interval is constant; there is no backoff and no retry. Clock and
sleep are injectable so tests can fake elapsed time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from parley.errors import RunTimeoutError, UnsupportedActionError
from parley.models import Run, RunStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_RUN_TIMEOUT = 30.0

FetchRun = Callable[[str, str], Awaitable[Run]]


class RunPoller:
    """
    Polls a run until it is terminal, needs action, or the budget runs out.
    One poller per run; callers must not overlap turns on one thread.
    """

    def __init__(
        self,
        fetch_run: FetchRun,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_RUN_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetch_run = fetch_run
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self.polls = 0

    async def wait(self, thread_id: str, run_id: str) -> Run:
        """Return the run once terminal. Raises RunTimeoutError / UnsupportedActionError."""
        start = self._clock()
        self.polls = 0

        while self._clock() - start < self.timeout:
            run = await self.fetch_run(thread_id, run_id)
            self.polls += 1

            if run.is_terminal:
                logger.debug(
                    "Run %s on thread %s finished as %s after %d polls",
                    run_id, thread_id, run.status.value, self.polls,
                )
                return run

            if run.status is RunStatus.REQUIRES_ACTION:
                logger.warning("Run %s requires action; tool calls are not supported", run_id)
                raise UnsupportedActionError(
                    f"Run {run_id} requires action - function calls are not implemented"
                )

            await self._sleep(self.interval)

        elapsed = self._clock() - start
        logger.warning(
            "Run %s on thread %s timed out after %.1fs (%d polls)",
            run_id, thread_id, elapsed, self.polls,
        )
        raise RunTimeoutError(f"Run {run_id} timed out after {self.timeout:.0f}s")
