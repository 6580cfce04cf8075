"""
Job Progress Streaming

Typed, ordered status observations for in-flight video jobs.

Usage:
    from services.streaming import JobProgressTracker

    tracker = JobProgressTracker()
    async for observation in tracker.subscribe():
        print(observation.status)
"""

from .progress_tracker import JobProgressTracker, ObservationStream, StatusObservation

__all__ = [
    "JobProgressTracker",
    "ObservationStream",
    "StatusObservation",
]
