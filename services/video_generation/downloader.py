"""
Video Downloader - persist generated videos before their URLs expire.

Seedance content URLs stay valid for 24 hours. Callers that need the file
longer must fetch the bytes themselves; this helper does that with retries
(a GET is safe to repeat, unlike task submission).
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import Config, get_config

from .errors import NetworkError
from .types import GenerationResult

logger = logging.getLogger(__name__)


CHUNK_SIZE = 64 * 1024


async def _stream_to_file(client: httpx.AsyncClient, url: str, path: Path, timeout: float) -> int:
    """Stream ``url`` into ``path`` through a temp file. Returns bytes written."""
    tmp_path = path.with_name(path.name + ".part")
    written = 0
    try:
        async with client.stream("GET", url, follow_redirects=True, timeout=timeout) as response:
            response.raise_for_status()
            async with aiofiles.open(tmp_path, "wb") as f:
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    await f.write(chunk)
                    written += len(chunk)
        await aiofiles.os.replace(tmp_path, path)
    except httpx.HTTPStatusError as e:
        raise NetworkError(
            f"Download failed with status {e.response.status_code}",
            code="download_failed",
            status_code=e.response.status_code,
        ) from e
    except httpx.RequestError as e:
        raise NetworkError(
            f"Download failed: {type(e).__name__}: {e}",
            code="download_failed",
        ) from e
    finally:
        if await aiofiles.os.path.exists(tmp_path):
            await aiofiles.os.remove(tmp_path)
    return written


async def download_video(
    result: GenerationResult,
    output_dir: Optional[str] = None,
    filename: Optional[str] = None,
    include_last_frame: bool = True,
    http_client: Optional[httpx.AsyncClient] = None,
    config: Optional[Config] = None,
) -> list[Path]:
    """
    Download a result's video (and last frame, if any) to local storage.

    Args:
        result: A succeeded GenerationResult
        output_dir: Target directory (defaults to VIDEO_OUTPUT_DIR)
        filename: Video filename (defaults to video_<task_id>.mp4)
        include_last_frame: Also save the last frame image when present
        http_client: Optional shared httpx client

    Returns:
        Paths written, video first

    Raises:
        NetworkError: if a download still fails after all attempts
        ValueError: if the URL has already expired
    """
    config = config or get_config()
    if result.is_url_expired():
        raise ValueError(f"Video URL for task {result.task_id} expired at {result.url_expires_at.isoformat()}")

    base_dir = Path(output_dir or config.downloads.output_dir)
    await aiofiles.os.makedirs(base_dir, exist_ok=True)

    fetch = retry(
        stop=stop_after_attempt(config.downloads.max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(NetworkError),
        reraise=True,
    )(_stream_to_file)

    targets = [(result.video_url, filename or f"video_{result.task_id or uuid.uuid4().hex[:8]}.mp4")]
    if include_last_frame and result.last_frame_url:
        stem = Path(targets[0][1]).stem
        targets.append((result.last_frame_url, f"{stem}_last_frame.png"))

    client = http_client or httpx.AsyncClient()
    written: list[Path] = []
    try:
        for url, name in targets:
            path = base_dir / name
            size = await fetch(client, url, path, config.downloads.timeout)
            logger.info(f"Downloaded {path} ({size / 1024 / 1024:.1f} MB)")
            written.append(path)
    finally:
        if http_client is None:
            await client.aclose()

    return written
