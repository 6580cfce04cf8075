"""
Progress Tracker for Video Generation Jobs

The poller publishes one StatusObservation per non-terminal tick. Consumers
either iterate a subscription (async stream) or register a callback; both
are fire-and-forget from the poller's point of view, and a failing consumer
never interrupts polling.

Usage:
    tracker = JobProgressTracker()

    # Stream consumer
    async def show(stream):
        async for observation in stream:
            print(observation.status.value, observation.progress_percent)

    stream = tracker.subscribe()
    asyncio.create_task(show(stream))

    # Callback consumer
    tracker.on_event(lambda o: ui.set_status(o.status))

    result = await runner.generate(..., tracker=tracker)
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from services.video_generation.poller import StatusObservation
from services.video_generation.types import JobStatus

logger = logging.getLogger(__name__)

_CLOSED = object()


class ObservationStream:
    """Async iterator over observations for one subscriber."""

    def __init__(self, tracker: "JobProgressTracker"):
        self._tracker = tracker
        self._queue: asyncio.Queue = asyncio.Queue()
        self._done = False

    def _push(self, item):
        self._queue.put_nowait(item)

    def __aiter__(self) -> "ObservationStream":
        return self

    async def __anext__(self) -> StatusObservation:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._done = True
            raise StopAsyncIteration
        return item

    def close(self):
        """Stop receiving observations."""
        self._tracker._unsubscribe(self)
        if not self._done:
            self._push(_CLOSED)


class JobProgressTracker:
    """
    Fans out StatusObservations for a single job.

    Observations arrive in poll order, so per-job status never moves
    backwards. The poller closes the tracker when it exits for any reason,
    which ends every open stream.
    """

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id

        self._callbacks: list[Callable[[StatusObservation], Any]] = []
        self._streams: list[ObservationStream] = []
        self._history: list[StatusObservation] = []
        self._pending: set[asyncio.Future] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest(self) -> Optional[StatusObservation]:
        return self._history[-1] if self._history else None

    def on_event(self, callback: Callable[[StatusObservation], Any]):
        """Register a callback. Coroutine callbacks are scheduled, not awaited."""
        self._callbacks.append(callback)

    def subscribe(self, replay: bool = False) -> ObservationStream:
        """
        Open a stream of observations.

        Args:
            replay: Deliver observations already emitted before new ones
        """
        stream = ObservationStream(self)
        if replay:
            for observation in self._history:
                stream._push(observation)
        if self._closed:
            stream._push(_CLOSED)
        else:
            self._streams.append(stream)
        return stream

    def _unsubscribe(self, stream: ObservationStream):
        if stream in self._streams:
            self._streams.remove(stream)

    def observe(self, observation: StatusObservation):
        """Publish an observation to every subscriber and callback."""
        if self._closed:
            logger.warning(f"Dropping observation for closed tracker: {observation.job_id}")
            return

        self.job_id = observation.job_id
        self._history.append(observation)

        for stream in self._streams:
            stream._push(observation)

        for callback in self._callbacks:
            try:
                result = callback(observation)
                if inspect.isawaitable(result):
                    self._schedule(result)
            except Exception as e:
                logger.error(f"Progress callback error: {e}")

    def _schedule(self, awaitable):
        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)
        future.add_done_callback(self._callback_done)

    def _callback_done(self, future: asyncio.Future):
        self._pending.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Progress callback error: {error}")

    def close(self):
        """End all streams. Further observations are dropped."""
        if self._closed:
            return
        self._closed = True
        for stream in list(self._streams):
            stream._push(_CLOSED)
        self._streams.clear()

    async def aclose(self, timeout: Optional[float] = None):
        """
        Close, then wait for scheduled coroutine callbacks to finish.

        Callbacks still running after ``timeout`` seconds are cancelled.
        """
        self.close()
        pending = list(self._pending)
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for future in still_running:
            future.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()

    def get_history(self) -> list[StatusObservation]:
        """Get all observations emitted so far."""
        return self._history.copy()

    def get_summary(self) -> dict[str, Any]:
        """Get summary of current progress state."""
        latest = self.latest
        return {
            "job_id": self.job_id,
            "status": latest.status.value if latest else JobStatus.QUEUED.value,
            "progress_percent": latest.progress_percent if latest else 0,
            "polls": latest.attempt if latest else 0,
            "elapsed_ms": latest.elapsed_ms if latest else 0,
            "observation_count": len(self._history),
            "closed": self._closed,
        }
