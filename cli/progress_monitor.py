#!/usr/bin/env python3
"""
CLI Progress Monitor for Video Generation

Subscribes to a JobProgressTracker and renders each status observation
with a progress bar, elapsed time and poll count.

Usage:
    tracker = JobProgressTracker()
    monitor = ProgressMonitor(tracker)
    monitor_task = asyncio.create_task(monitor.run())

    result = await runner.generate(..., tracker=tracker)
    await monitor_task
"""

import sys
from typing import Optional, TextIO

from services.streaming import JobProgressTracker, StatusObservation
from services.video_generation.types import STATUS_PROGRESS, JobStatus


# ANSI color codes
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    # Clear line
    CLEAR_LINE = "\033[2K\r"


def paint(text: str, *styles: str) -> str:
    """Wrap text in one or more ANSI styles."""
    return "".join(styles) + text + Colors.RESET


STATUS_STYLE = {
    JobStatus.QUEUED: ("⏳", Colors.DIM, "Waiting in queue"),
    JobStatus.RUNNING: ("🎬", Colors.CYAN, "Generating video"),
    JobStatus.SUCCEEDED: ("✅", Colors.GREEN, "Video ready"),
    JobStatus.FAILED: ("❌", Colors.RED, "Generation failed"),
    JobStatus.EXPIRED: ("⌛", Colors.YELLOW, "Task expired"),
}

_UNKNOWN_STYLE = ("•", Colors.WHITE)


def status_bar(status: JobStatus, width: int = 24) -> str:
    """Bar filled to the status' STATUS_PROGRESS share, in the status colour."""
    percent = STATUS_PROGRESS.get(status, 0)
    filled = round(width * percent / 100)
    color = STATUS_STYLE.get(status, _UNKNOWN_STYLE)[1]
    return paint("▰" * filled, color) + paint("▱" * (width - filled), Colors.DIM) + f" {percent:3d}%"


def format_elapsed(elapsed_ms: int) -> str:
    """Elapsed milliseconds as MM:SS, or H:MM:SS past the hour."""
    if elapsed_ms < 0:
        return "--:--"
    total = int(elapsed_ms) // 1000
    hours = total // 3600
    clock = f"{total // 60 % 60:02d}:{total % 60:02d}"
    return f"{hours}:{clock}" if hours else clock


def format_observation(observation: StatusObservation) -> str:
    """Single status line for an observation."""
    style = STATUS_STYLE.get(observation.status)
    icon, color, label = style or (*_UNKNOWN_STYLE, observation.status.value)

    line = (
        f"{Colors.CLEAR_LINE}"
        f"{icon} {paint(label, Colors.BOLD, color)} "
        f"{status_bar(observation.status)} "
        f"{paint(f'{format_elapsed(observation.elapsed_ms)}  poll #{observation.attempt}', Colors.DIM)}"
    )
    if observation.error:
        line += paint(f" (retrying: {observation.error[:60]})", Colors.YELLOW)
    return line


class ProgressMonitor:
    """Prints a job's observations until its tracker closes."""

    def __init__(self, tracker: JobProgressTracker, stream: Optional[TextIO] = None):
        self.tracker = tracker
        self.out = stream or sys.stdout
        self._last_status: Optional[JobStatus] = None
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    async def run(self):
        """Consume the tracker's stream. Returns when polling ends."""
        async for observation in self.tracker.subscribe(replay=True):
            self._handle(observation)
        if self._count:
            print(file=self.out)

    def _handle(self, observation: StatusObservation):
        self._count += 1

        # New status on a new line, repeated status rewrites the current one
        if self._last_status is not None and observation.status is not self._last_status:
            print(file=self.out)
        self._last_status = observation.status

        print(format_observation(observation), end="", file=self.out, flush=True)
