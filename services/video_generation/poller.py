"""
Backoff Poller - drives a remote job to a terminal status.

State machine:
    QUEUED --tick--> QUEUED | RUNNING | SUCCEEDED | FAILED | EXPIRED
    RUNNING --tick--> RUNNING | SUCCEEDED | FAILED | EXPIRED
    any non-terminal --token--> CANCELLED
    any non-terminal --budget--> TIMED_OUT

The loop starts in QUEUED without polling. Each tick makes one status
query; a terminal status ends the loop, anything else sleeps for
``backoff_delay_ms(n)`` and ticks again. Both suspension points (the status
request and the sleep) race the cancellation token and the overall
deadline, so cancellation is noticed within the current wait and no
request is made after any exit.

Transient tick failures: up to ``max_consecutive_errors`` NetworkErrors in
a row are tolerated (each one still consumes a backoff slot and emits an
observation carrying the error); the next one is raised. Every other error
kind is raised immediately.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from core.cancellation import CancellationToken
from core.config import PollingConfig

from .errors import NetworkError
from .schemas import StatusSnapshot
from .types import STATUS_PROGRESS, JobHandle, JobStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[JobHandle], Awaitable[StatusSnapshot]]


def backoff_delay_ms(attempt: int, initial_ms: int = 2000, max_ms: int = 10000) -> int:
    """Delay before the next tick: min(initial * 2^attempt, max)."""
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    return min(initial_ms * (2 ** attempt), max_ms)


class PollExit(str, Enum):
    """Why the poll loop stopped."""
    TERMINAL = "terminal"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class StatusObservation:
    """A single non-terminal poll tick as seen by consumers."""

    job_id: str
    status: JobStatus
    attempt: int
    elapsed_ms: int
    snapshot: Optional[StatusSnapshot] = None

    # Set when the tick's status query failed and was tolerated
    error: Optional[str] = None

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def progress_percent(self) -> int:
        return STATUS_PROGRESS.get(self.status, 0)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "job_id": self.job_id,
            "status": self.status.value,
            "attempt": self.attempt,
            "elapsed_ms": self.elapsed_ms,
            "progress_percent": self.progress_percent,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class PollResult:
    """How a poll loop ended. ``snapshot`` is the terminal (or last seen) snapshot."""

    handle: JobHandle
    exit: PollExit
    last_status: JobStatus
    attempts: int
    elapsed_ms: int
    snapshot: Optional[StatusSnapshot] = None
    reason: Optional[str] = None

    @property
    def job_id(self) -> str:
        return self.handle.job_id


class _Race(Enum):
    DONE = "done"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class BackoffPoller:
    """
    Polls one job at a time per call; instances hold no per-job state, so a
    single poller can drive many concurrent jobs.

    Usage:
        poller = BackoffPoller(client.fetch_status, config.polling)
        result = await poller.poll(handle, token=token, tracker=tracker)
    """

    def __init__(
        self,
        fetch_status: StatusFetcher,
        policy: Optional[PollingConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetch_status = fetch_status
        self.policy = policy or PollingConfig()
        self._clock = clock

    def delay_ms(self, attempt: int) -> int:
        return backoff_delay_ms(attempt, self.policy.initial_delay_ms, self.policy.max_delay_ms)

    async def poll(
        self,
        handle: JobHandle,
        token: Optional[CancellationToken] = None,
        tracker: Optional[Any] = None,
        timeout_ms: Optional[int] = None,
    ) -> PollResult:
        """
        Poll until a terminal status, cancellation, or timeout.

        Args:
            handle: Job to poll
            token: Cancellation token, checked before every tick and raced
                against every request and sleep
            tracker: Receives ``observe(StatusObservation)`` per non-terminal
                tick and ``close()`` on exit (e.g. JobProgressTracker)
            timeout_ms: Overall budget override

        Raises:
            NetworkError: after too many consecutive failed status queries
            VideoGenerationError: any non-network failure from the fetcher
        """
        token = token or CancellationToken()
        budget_ms = timeout_ms if timeout_ms is not None else self.policy.timeout_ms

        started = self._clock()
        deadline = started + budget_ms / 1000

        state = JobStatus.QUEUED
        snapshot: Optional[StatusSnapshot] = None
        attempts = 0
        consecutive_errors = 0

        def _finish(exit: PollExit, reason: Optional[str] = None) -> PollResult:
            elapsed_ms = int((self._clock() - started) * 1000)
            return PollResult(
                handle=handle,
                exit=exit,
                last_status=state,
                attempts=attempts,
                elapsed_ms=elapsed_ms,
                snapshot=snapshot,
                reason=reason,
            )

        try:
            while True:
                if token.cancelled:
                    logger.info(f"Polling cancelled for task {handle.job_id}: {token.reason}")
                    return _finish(PollExit.CANCELLED, token.reason)
                if self._clock() >= deadline:
                    logger.warning(f"Polling timed out for task {handle.job_id} after {budget_ms}ms ({state.value})")
                    return _finish(PollExit.TIMED_OUT, f"No terminal status within {budget_ms}ms")

                attempts += 1
                race, work = await self._race(self.fetch_status(handle), token, deadline)
                if race is _Race.CANCELLED:
                    logger.info(f"Polling cancelled for task {handle.job_id} during status query")
                    return _finish(PollExit.CANCELLED, token.reason)
                if race is _Race.TIMED_OUT:
                    logger.warning(f"Polling timed out for task {handle.job_id} during status query")
                    return _finish(PollExit.TIMED_OUT, f"No terminal status within {budget_ms}ms")

                tick_error: Optional[str] = None
                try:
                    observed = work.result()
                except NetworkError as e:
                    consecutive_errors += 1
                    if consecutive_errors > self.policy.max_consecutive_errors:
                        logger.error(
                            f"Giving up on task {handle.job_id} after {consecutive_errors} failed status queries: {e}"
                        )
                        raise
                    logger.warning(
                        f"Status query failed for task {handle.job_id} "
                        f"({consecutive_errors}/{self.policy.max_consecutive_errors} tolerated): {e}"
                    )
                    tick_error = str(e)
                else:
                    consecutive_errors = 0
                    if observed.status.rank < state.rank:
                        logger.warning(
                            f"Ignoring stale status for task {handle.job_id}: "
                            f"{observed.status.value} after {state.value}"
                        )
                    else:
                        if observed.status is not state:
                            logger.info(f"Task {handle.job_id}: {state.value} -> {observed.status.value}")
                        state = observed.status
                        snapshot = observed

                if state.is_terminal:
                    return _finish(PollExit.TERMINAL)

                if tracker is not None:
                    self._emit(tracker, StatusObservation(
                        job_id=handle.job_id,
                        status=state,
                        attempt=attempts,
                        elapsed_ms=int((self._clock() - started) * 1000),
                        snapshot=snapshot,
                        error=tick_error,
                    ))

                delay = self.delay_ms(attempts - 1)
                race, _ = await self._race(asyncio.sleep(delay / 1000), token, deadline)
                if race is _Race.CANCELLED:
                    logger.info(f"Polling cancelled for task {handle.job_id} during backoff")
                    return _finish(PollExit.CANCELLED, token.reason)
                if race is _Race.TIMED_OUT:
                    logger.warning(f"Polling timed out for task {handle.job_id} after {budget_ms}ms ({state.value})")
                    return _finish(PollExit.TIMED_OUT, f"No terminal status within {budget_ms}ms")
        finally:
            if tracker is not None:
                tracker.close()

    def _emit(self, tracker: Any, observation: StatusObservation):
        try:
            tracker.observe(observation)
        except Exception as e:
            logger.error(f"Progress tracker error for task {observation.job_id}: {e}")

    async def _race(
        self,
        awaitable: Awaitable,
        token: CancellationToken,
        deadline: float,
    ) -> tuple[_Race, Optional[asyncio.Future]]:
        """
        Run ``awaitable`` against the token and the deadline.

        Whatever loses is cancelled and awaited before returning, so no
        timer, request or token waiter outlives the call.
        """
        remaining = deadline - self._clock()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return _Race.TIMED_OUT, None

        work = asyncio.ensure_future(awaitable)
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {work, cancelled},
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (work, cancelled):
                if not task.done():
                    task.cancel()
            await asyncio.gather(work, cancelled, return_exceptions=True)

        if cancelled in done:
            return _Race.CANCELLED, None
        if work in done:
            return _Race.DONE, work
        return _Race.TIMED_OUT, None
