#!/usr/bin/env python3
"""
Seedance Studio - Main Entry Point

Generates videos with Seedance 1.5 Pro and streams job progress to the
terminal. Ctrl+C cancels polling cleanly.

Usage:
    # Text to video
    python main.py generate "A golden retriever running through a field" --ratio 16:9 --duration 8

    # First frame animation
    python main.py generate "The camera slowly pushes in" --mode image-to-video-first \\
        --image https://example.com/frame.png:first_frame

    # Check an existing task
    python main.py status cgt-20250101-abc123
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Optional

from core.cancellation import CancellationToken
from core.config import get_config
from services.video_generation.errors import ErrorKind, VideoGenerationError
from services.video_generation.types import (
    ImageInput,
    ImageRole,
    ServiceTier,
    VideoMode,
    VideoRatio,
    VideoResolution,
)

logger = logging.getLogger("seedance")


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    # Request lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_image(value: str) -> ImageInput:
    """Parse ``URL`` or ``URL:role`` (roles: first_frame, last_frame, reference_image)."""
    url, sep, suffix = value.rpartition(":")
    if sep and suffix in {role.value for role in ImageRole}:
        return ImageInput(url=url, role=ImageRole(suffix))
    return ImageInput(url=value)


async def generate_video(
    prompt: str,
    mode: str,
    images: list[ImageInput],
    duration: Optional[int],
    resolution: Optional[str],
    ratio: Optional[str],
    generate_audio: bool,
    service_tier: Optional[str],
    return_last_frame: bool,
    camera_fixed: bool,
    watermark: bool,
    timeout_ms: Optional[int],
    download: bool,
    output_dir: Optional[str],
    api_key: Optional[str],
    model: Optional[str],
) -> int:
    """Run one generation job. Returns the process exit code."""
    from cli.progress_monitor import ProgressMonitor
    from services.streaming import JobProgressTracker
    from services.video_generation import SeedanceClient, VideoJobRunner
    from services.video_generation.downloader import download_video

    config = get_config()
    token = CancellationToken()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, token.cancel, f"Interrupted by {sig.name}")

    tracker = JobProgressTracker()
    monitor = ProgressMonitor(tracker)
    monitor_task = asyncio.create_task(monitor.run())

    try:
        async with SeedanceClient(api_key=api_key, model=model, config=config) as client:
            runner = VideoJobRunner(client, config=config)
            result = await runner.generate(
                prompt=prompt,
                mode=mode,
                images=images,
                duration=duration,
                resolution=resolution,
                ratio=ratio,
                generate_audio=generate_audio,
                service_tier=service_tier,
                return_last_frame=return_last_frame or None,
                camera_fixed=camera_fixed or None,
                watermark=watermark or None,
                token=token,
                tracker=tracker,
                timeout_ms=timeout_ms,
            )
            await monitor_task

            print(json.dumps(result.to_dict(), indent=2, default=str))

            if download:
                paths = await download_video(result, output_dir=output_dir, config=config)
                for path in paths:
                    logger.info(f"Saved {path}")
        return 0

    except VideoGenerationError as e:
        # Builder errors happen before polling starts, so close the stream here
        tracker.close()
        await monitor_task
        logger.debug(f"Generation failed: {e!r}")
        print(e.user_message, file=sys.stderr)
        if e.job_id:
            print(f"Task: {e.job_id}", file=sys.stderr)
        return 130 if e.kind is ErrorKind.CANCELLED else 1

    finally:
        await tracker.aclose(timeout=5)
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)


async def check_status(task_id: str, api_key: Optional[str], model: Optional[str]) -> int:
    """Query one task once and print the snapshot."""
    from services.video_generation import SeedanceClient
    from services.video_generation.classifier import classify_snapshot

    async with SeedanceClient(api_key=api_key, model=model) as client:
        try:
            snapshot = await client.fetch_status(task_id)
        except VideoGenerationError as e:
            print(e.user_message, file=sys.stderr)
            return 1

    print(json.dumps(snapshot.model_dump(exclude_none=True), indent=2))
    if snapshot.is_terminal:
        outcome = classify_snapshot(snapshot)
        if outcome.error is not None:
            print(outcome.error.user_message, file=sys.stderr)
            return 1
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Seedance Studio - Seedance 1.5 Pro video generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Generate an 8 second widescreen clip
    python main.py generate "A paper boat drifting down a rainy street" --ratio 16:9 --duration 8

    # Interpolate between two frames and download the result
    python main.py generate "Day turns to night" --mode image-to-video-frames \\
        --image https://example.com/day.png:first_frame \\
        --image https://example.com/night.png:last_frame --download

    # Check a task
    python main.py status cgt-20250101-abc123
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Generate command
    gen_parser = subparsers.add_parser("generate", help="Generate a video")
    gen_parser.add_argument("prompt", help="Text prompt (may include --rt/--dur style directives)")
    gen_parser.add_argument(
        "--mode",
        "-m",
        choices=[m.value for m in VideoMode],
        default=VideoMode.TEXT_TO_VIDEO.value,
        help="Generation mode",
    )
    gen_parser.add_argument(
        "--image",
        "-i",
        action="append",
        default=[],
        type=parse_image,
        help="Image URL or data URI, optionally suffixed with :role (repeatable)",
    )
    gen_parser.add_argument("--duration", "-d", type=int, help="Seconds (4-12, or -1 for auto)")
    gen_parser.add_argument("--resolution", choices=[r.value for r in VideoResolution])
    gen_parser.add_argument("--ratio", "-r", choices=[r.value for r in VideoRatio])
    gen_parser.add_argument("--no-audio", action="store_true", help="Generate without audio")
    gen_parser.add_argument("--tier", choices=[t.value for t in ServiceTier], help="Service tier")
    gen_parser.add_argument("--last-frame", action="store_true", help="Also return the last frame image")
    gen_parser.add_argument("--camera-fixed", action="store_true", help="Keep the camera still")
    gen_parser.add_argument("--watermark", action="store_true", help="Add a watermark")
    gen_parser.add_argument("--timeout", type=int, help="Polling budget in seconds")
    gen_parser.add_argument("--download", action="store_true", help="Save the video locally")
    gen_parser.add_argument("--output-dir", "-o", help="Download directory")
    gen_parser.add_argument("--model", help="Model id (e.g. seedance-1-5-pro-251215)")
    gen_parser.add_argument("--api-key", help="API key (defaults to SEEDANCE_API_KEY)")

    # Status command
    status_parser = subparsers.add_parser("status", help="Check a task's status")
    status_parser.add_argument("task_id", help="Task ID returned by generate")
    status_parser.add_argument("--model", help="Model id")
    status_parser.add_argument("--api-key", help="API key (defaults to SEEDANCE_API_KEY)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.verbose)

    if args.command == "generate":
        code = asyncio.run(
            generate_video(
                prompt=args.prompt,
                mode=args.mode,
                images=args.image,
                duration=args.duration,
                resolution=args.resolution,
                ratio=args.ratio,
                generate_audio=not args.no_audio,
                service_tier=args.tier,
                return_last_frame=args.last_frame,
                camera_fixed=args.camera_fixed,
                watermark=args.watermark,
                timeout_ms=args.timeout * 1000 if args.timeout else None,
                download=args.download,
                output_dir=args.output_dir,
                api_key=args.api_key,
                model=args.model,
            )
        )
        sys.exit(code)

    elif args.command == "status":
        sys.exit(asyncio.run(check_status(args.task_id, args.api_key, args.model)))


if __name__ == "__main__":
    main()
