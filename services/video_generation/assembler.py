"""
Result Assembler - builds the GenerationResult for a succeeded job.
"""

from datetime import datetime, timezone
from typing import Optional

from .schemas import StatusSnapshot
from .types import GenerationRequest, GenerationResult, JobStatus, url_expiry


def assemble_result(
    request: GenerationRequest,
    snapshot: StatusSnapshot,
    generation_time_ms: int,
    completed_at: Optional[datetime] = None,
    url_ttl_hours: int = 24,
) -> GenerationResult:
    """
    Merge the request, the succeeded snapshot and the measured wall-clock time.

    Raises:
        ValueError: if the snapshot is not a succeeded snapshot with a video URL
    """
    if snapshot.status is not JobStatus.SUCCEEDED or not snapshot.video_url:
        raise ValueError(f"Cannot assemble a result from a {snapshot.status.value} snapshot")

    completed_at = completed_at or datetime.now(timezone.utc)
    if snapshot.created_at is not None:
        timestamp = datetime.fromtimestamp(snapshot.created_at, tz=timezone.utc)
    else:
        timestamp = completed_at

    usage = snapshot.usage
    return GenerationResult(
        task_id=snapshot.id,
        video_url=snapshot.video_url,
        last_frame_url=snapshot.last_frame_url,
        prompt=request.prompt,
        mode=request.mode,
        parameters=request,
        reference_image_urls=tuple(request.image_urls),
        actual_duration=snapshot.duration,
        actual_ratio=snapshot.ratio,
        resolution=snapshot.resolution or request.resolution.value,
        seed=snapshot.seed,
        completion_tokens=(usage.completion_tokens if usage else None) or 0,
        total_tokens=(usage.total_tokens if usage else None) or 0,
        generation_time_ms=generation_time_ms,
        timestamp=timestamp,
        url_expires_at=url_expiry(completed_at, url_ttl_hours),
    )
