"""
Video Generation Service

Asynchronous job lifecycle for Seedance 1.5 Pro video generation:
- Request building and validation (before any network call)
- Task submission and single status queries
- Exponential-backoff polling with cancellation and timeout
- Outcome classification and result assembly
"""

from .assembler import assemble_result
from .classifier import Outcome, OutcomeKind, classify
from .client import ClientRegistry, SeedanceClient
from .errors import ErrorKind, VideoGenerationError
from .poller import BackoffPoller, PollExit, PollResult, StatusObservation, backoff_delay_ms
from .request_builder import build_payload, build_request
from .runner import VideoJobRunner
from .schemas import StatusSnapshot
from .types import (
    GenerationRequest,
    GenerationResult,
    ImageInput,
    ImageRole,
    JobHandle,
    JobStatus,
    ServiceTier,
    VideoMode,
    VideoRatio,
    VideoResolution,
)

__all__ = [
    "BackoffPoller",
    "ClientRegistry",
    "ErrorKind",
    "GenerationRequest",
    "GenerationResult",
    "ImageInput",
    "ImageRole",
    "JobHandle",
    "JobStatus",
    "Outcome",
    "OutcomeKind",
    "PollExit",
    "PollResult",
    "SeedanceClient",
    "ServiceTier",
    "StatusObservation",
    "StatusSnapshot",
    "VideoGenerationError",
    "VideoJobRunner",
    "VideoMode",
    "VideoRatio",
    "VideoResolution",
    "assemble_result",
    "backoff_delay_ms",
    "build_payload",
    "build_request",
    "classify",
]
