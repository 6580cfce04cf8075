"""
Core value types for Seedance video generation.

Requests, handles and results are frozen dataclasses. The remote status
payload lives in ``schemas`` because it is parsed from JSON.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, Union


class VideoMode(str, Enum):
    """Generation modes, each with a fixed image arity."""
    TEXT_TO_VIDEO = "text-to-video"                  # prompt only
    IMAGE_TO_VIDEO_FIRST = "image-to-video-first"    # 1 image (first frame)
    IMAGE_TO_VIDEO_FRAMES = "image-to-video-frames"  # 2 images (first + last frame)
    IMAGE_TO_VIDEO_REF = "image-to-video-ref"        # 1-4 reference images


class ImageRole(str, Enum):
    """How the remote model should use an input image."""
    FIRST_FRAME = "first_frame"
    LAST_FRAME = "last_frame"
    REFERENCE_IMAGE = "reference_image"


class VideoResolution(str, Enum):
    # 1080p is not offered by Seedance 1.5 Pro
    P480 = "480p"
    P720 = "720p"


class VideoRatio(str, Enum):
    WIDE = "16:9"
    STANDARD = "4:3"
    SQUARE = "1:1"
    PORTRAIT = "3:4"
    VERTICAL = "9:16"
    ULTRAWIDE = "21:9"
    ADAPTIVE = "adaptive"  # model picks the ratio


class ServiceTier(str, Enum):
    """Latency/cost trade-off for a job."""
    DEFAULT = "default"  # online, interactive
    FLEX = "flex"        # offline, roughly half price, longer waits


class JobStatus(str, Enum):
    """Remote job states."""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.EXPIRED)

    @property
    def is_error(self) -> bool:
        return self in (JobStatus.FAILED, JobStatus.EXPIRED)

    @property
    def rank(self) -> int:
        """Position along queued -> running -> terminal."""
        if self is JobStatus.QUEUED:
            return 0
        if self is JobStatus.RUNNING:
            return 1
        return 2


# Sentinel duration meaning "let the service decide" (4-12s)
AUTO_DURATION = -1
MIN_DURATION = 4
MAX_DURATION = 12

MAX_PROMPT_LENGTH = 10000
FRAMES_PER_SECOND = 24

# Exact count, or (min, max) inclusive range
MODE_IMAGE_COUNTS: dict[VideoMode, Union[int, tuple[int, int]]] = {
    VideoMode.TEXT_TO_VIDEO: 0,
    VideoMode.IMAGE_TO_VIDEO_FIRST: 1,
    VideoMode.IMAGE_TO_VIDEO_FRAMES: 2,
    VideoMode.IMAGE_TO_VIDEO_REF: (1, 4),
}

IMAGE_FORMATS = ("jpeg", "jpg", "png", "webp", "bmp", "tiff", "tif", "gif")
MAX_IMAGE_BYTES = 10 * 1024 * 1024

# Progress shown to users for each observed status
STATUS_PROGRESS = {
    JobStatus.QUEUED: 10,
    JobStatus.RUNNING: 50,
    JobStatus.SUCCEEDED: 100,
}

VIDEO_PIXEL_MAP = {
    VideoResolution.P480: {
        VideoRatio.WIDE: "864x496",
        VideoRatio.STANDARD: "752x560",
        VideoRatio.SQUARE: "640x640",
        VideoRatio.PORTRAIT: "560x752",
        VideoRatio.VERTICAL: "496x864",
        VideoRatio.ULTRAWIDE: "992x432",
    },
    VideoResolution.P720: {
        VideoRatio.WIDE: "1280x720",
        VideoRatio.STANDARD: "1112x834",
        VideoRatio.SQUARE: "960x960",
        VideoRatio.PORTRAIT: "834x1112",
        VideoRatio.VERTICAL: "720x1280",
        VideoRatio.ULTRAWIDE: "1470x630",
    },
}


def is_valid_duration(duration: Any) -> bool:
    """-1 (auto) or an integer number of seconds in [4, 12]."""
    if isinstance(duration, bool) or not isinstance(duration, int):
        return False
    return duration == AUTO_DURATION or MIN_DURATION <= duration <= MAX_DURATION


def image_count_allowed(mode: VideoMode, count: int) -> bool:
    required = MODE_IMAGE_COUNTS[mode]
    if isinstance(required, int):
        return count == required
    low, high = required
    return low <= count <= high


def get_video_dimensions(resolution: VideoResolution, ratio: VideoRatio) -> Optional[str]:
    """Pixel size for a resolution/ratio pair, None when the model decides."""
    if ratio is VideoRatio.ADAPTIVE:
        return None
    return VIDEO_PIXEL_MAP[resolution].get(ratio)


@dataclass(frozen=True)
class ImageInput:
    """An input image: http(s) URL or base64 data URI, plus optional role."""
    url: str
    role: Optional[ImageRole] = None

    def to_content(self) -> dict[str, Any]:
        item: dict[str, Any] = {"type": "image_url", "image_url": {"url": self.url}}
        if self.role is not None:
            item["role"] = self.role.value
        return item


@dataclass(frozen=True)
class GenerationRequest:
    """Validated video generation parameters. Built by ``build_request``."""
    prompt: str
    mode: VideoMode
    images: tuple[ImageInput, ...] = ()
    duration: int = AUTO_DURATION
    resolution: VideoResolution = VideoResolution.P720
    ratio: VideoRatio = VideoRatio.ADAPTIVE
    generate_audio: bool = True
    service_tier: ServiceTier = ServiceTier.DEFAULT
    return_last_frame: bool = False
    camera_fixed: bool = False
    watermark: bool = False

    @property
    def image_urls(self) -> list[str]:
        return [image.url for image in self.images]

    def parameters(self) -> dict[str, Any]:
        """Structured parameters as plain values."""
        return {
            "duration": self.duration,
            "resolution": self.resolution.value,
            "ratio": self.ratio.value,
            "generate_audio": self.generate_audio,
            "service_tier": self.service_tier.value,
            "return_last_frame": self.return_last_frame,
            "camera_fixed": self.camera_fixed,
            "watermark": self.watermark,
        }


@dataclass(frozen=True)
class JobHandle:
    """Opaque remote job identifier returned by submission."""
    job_id: str
    model: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class GenerationResult:
    """Final record for a succeeded job. Created only by ``assemble_result``."""
    task_id: str
    video_url: str
    prompt: str
    mode: VideoMode
    parameters: GenerationRequest
    generation_time_ms: int
    timestamp: datetime
    url_expires_at: datetime

    last_frame_url: Optional[str] = None
    reference_image_urls: tuple[str, ...] = ()

    # Values reported by the service (may differ from the request when auto/adaptive)
    actual_duration: Optional[int] = None
    actual_ratio: Optional[str] = None
    resolution: Optional[str] = None
    seed: Optional[int] = None
    completion_tokens: int = 0
    total_tokens: int = 0

    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def dimensions(self) -> Optional[str]:
        ratio = self.actual_ratio or self.parameters.ratio.value
        try:
            return get_video_dimensions(self.parameters.resolution, VideoRatio(ratio))
        except ValueError:
            return None

    def is_url_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.url_expires_at

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        data["parameters"] = self.parameters.parameters()
        data["timestamp"] = self.timestamp.isoformat()
        data["url_expires_at"] = self.url_expires_at.isoformat()
        data["reference_image_urls"] = list(self.reference_image_urls)
        return data


def url_expiry(completed_at: datetime, ttl_hours: int = 24) -> datetime:
    return completed_at + timedelta(hours=ttl_hours)
