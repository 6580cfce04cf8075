"""
Seedance Studio Services

Core services for the video generation lifecycle:
- video_generation: Request building, task API client, polling, classification
- streaming: Typed progress observations for in-flight jobs
"""

from .video_generation import (
    GenerationResult,
    SeedanceClient,
    VideoGenerationError,
    VideoJobRunner,
)

__all__ = [
    "GenerationResult",
    "SeedanceClient",
    "VideoGenerationError",
    "VideoJobRunner",
]
