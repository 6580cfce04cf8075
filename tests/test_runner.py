"""
Video Job Runner Tests

End-to-end lifecycle against a mocked Seedance API:
    build_request -> submit -> poll -> classify -> assemble_result

Covers:
1. Successful round trip and result assembly
2. Validation failures make no network calls
3. Failed, expired and cancelled jobs produce no result

Run with:
    python -m pytest tests/test_runner.py -v
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

import httpx
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.cancellation import CancellationToken
from core.config import APIConfig, Config, PollingConfig
from services.streaming import JobProgressTracker
from services.video_generation import SeedanceClient, VideoJobRunner
from services.video_generation.assembler import assemble_result
from services.video_generation.errors import (
    ContentPolicyError,
    GenerationCancelled,
    GenerationTimedOut,
    JobExpired,
    QuotaError,
    ValidationError,
)
from services.video_generation.request_builder import build_request
from services.video_generation.schemas import StatusSnapshot
from services.video_generation.types import JobStatus, VideoMode, VideoRatio

BASE_URL = "https://ark.example.com/api/v3"


class FakeSeedance:
    """Scripted task API: POST returns ``job_id``, each GET plays the next status body."""

    def __init__(self, *statuses: dict, job_id: str = "job-1", submit_response: httpx.Response = None):
        self.job_id = job_id
        self.statuses = list(statuses)
        self.submit_response = submit_response
        self.requests: list[httpx.Request] = []

    @property
    def gets(self) -> int:
        return sum(1 for r in self.requests if r.method == "GET")

    @property
    def posts(self) -> int:
        return sum(1 for r in self.requests if r.method == "POST")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            return self.submit_response or httpx.Response(200, json={"id": self.job_id})
        body = self.statuses[min(self.gets, len(self.statuses)) - 1]
        return httpx.Response(200, json={"id": self.job_id, **body})


def make_runner(api: FakeSeedance, timeout_ms: int = 5000) -> VideoJobRunner:
    config = Config(
        api=APIConfig(seedance_api_key="test-key", seedance_api_base=BASE_URL),
        polling=PollingConfig(initial_delay_ms=1, max_delay_ms=2, timeout_ms=timeout_ms),
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    client = SeedanceClient(config=config, http_client=http_client)
    return VideoJobRunner(client, config=config)


SUCCEEDED = {
    "status": "succeeded",
    "content": {"video_url": "https://x/video.mp4"},
    "duration": 5,
    "ratio": "16:9",
    "resolution": "720p",
    "seed": 7,
    "usage": {"completion_tokens": 100, "total_tokens": 100},
}


class TestRoundTrip:
    """Submit, poll to success, assemble."""

    @pytest.mark.asyncio
    async def test_text_to_video(self):
        api = FakeSeedance({"status": "queued"}, {"status": "running"}, SUCCEEDED)
        runner = make_runner(api)
        tracker = JobProgressTracker()

        result = await runner.generate(prompt="A cat surfing", duration=5, ratio="16:9", tracker=tracker)

        assert result.task_id == "job-1"
        assert result.video_url == "https://x/video.mp4"
        assert result.prompt == "A cat surfing"
        assert result.mode is VideoMode.TEXT_TO_VIDEO
        assert result.parameters.ratio is VideoRatio.WIDE
        assert result.actual_duration == 5
        assert result.seed == 7
        assert result.total_tokens == 100
        assert result.dimensions == "1280x720"
        assert result.generation_time_ms >= 0
        assert not result.is_url_expired()

        assert api.posts == 1
        assert api.gets == 3
        assert [o.status for o in tracker.get_history()] == [JobStatus.QUEUED, JobStatus.RUNNING]
        assert tracker.closed

    @pytest.mark.asyncio
    async def test_reference_images_kept_in_result(self):
        api = FakeSeedance(SUCCEEDED)
        runner = make_runner(api)
        images = [{"url": f"https://img.example.com/{n}.png", "role": "reference_image"} for n in range(3)]

        result = await runner.generate(prompt="Same character", mode="image-to-video-ref", images=images)

        assert result.reference_image_urls == tuple(image["url"] for image in images)
        assert api.gets == 1

    @pytest.mark.asyncio
    async def test_wait_on_existing_handle(self):
        api = FakeSeedance({"status": "running"}, SUCCEEDED)
        runner = make_runner(api)
        handle = await runner.client.submit(build_request("A cat"))

        outcome = await runner.wait(handle)

        assert outcome.is_success
        assert outcome.snapshot.video_url == "https://x/video.mp4"


class TestFailures:
    """Every non-success ends in a typed error and no result."""

    @pytest.mark.asyncio
    async def test_validation_makes_no_requests(self):
        api = FakeSeedance(SUCCEEDED)
        runner = make_runner(api)

        with pytest.raises(ValidationError):
            await runner.generate(prompt="A cat", duration=30)
        with pytest.raises(ValidationError):
            await runner.generate(prompt="A cat", mode="image-to-video-first")

        assert api.requests == []

    @pytest.mark.asyncio
    async def test_content_policy_failure(self):
        api = FakeSeedance(
            {"status": "running"},
            {"status": "failed", "error": {"code": "content_policy", "message": "blocked"}},
        )
        runner = make_runner(api)

        with pytest.raises(ContentPolicyError) as exc:
            await runner.generate(prompt="Something questionable")
        assert exc.value.job_id == "job-1"

    @pytest.mark.asyncio
    async def test_expired(self):
        api = FakeSeedance({"status": "queued"}, {"status": "expired"})

        with pytest.raises(JobExpired):
            await make_runner(api).generate(prompt="A cat")

    @pytest.mark.asyncio
    async def test_rejected_submission_is_not_polled(self):
        api = FakeSeedance(
            SUCCEEDED,
            submit_response=httpx.Response(429, json={"error": {"code": "RateLimitExceeded", "message": "busy"}}),
        )

        with pytest.raises(QuotaError):
            await make_runner(api).generate(prompt="A cat")
        assert api.posts == 1
        assert api.gets == 0

    @pytest.mark.asyncio
    async def test_cancelled(self):
        api = FakeSeedance({"status": "running"})
        token = CancellationToken()
        token.cancel("changed my mind")

        with pytest.raises(GenerationCancelled) as exc:
            await make_runner(api).generate(prompt="A cat", token=token)

        assert exc.value.message == "changed my mind"
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_cancelled_while_submitting(self):
        requests = []

        async def slow_submit(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            await asyncio.sleep(60)
            return httpx.Response(200, json={"id": "job-1"})

        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.02, token.cancel, "stopped during submit")

        with pytest.raises(GenerationCancelled) as exc:
            await make_runner(slow_submit).generate(prompt="A cat", token=token)

        assert exc.value.message == "stopped during submit"
        assert [r.method for r in requests] == ["POST"]

    @pytest.mark.asyncio
    async def test_timed_out(self):
        api = FakeSeedance({"status": "running"})

        with pytest.raises(GenerationTimedOut):
            await make_runner(api).generate(prompt="A cat", timeout_ms=30)


class TestAssembler:
    """assemble_result merges request, snapshot and timing."""

    def test_url_expiry_and_timestamp(self):
        request = build_request("A cat")
        snapshot = StatusSnapshot.model_validate({"id": "job-1", "created_at": 1735689600, **SUCCEEDED})
        completed = datetime(2025, 1, 1, 0, 5, tzinfo=timezone.utc)

        result = assemble_result(request, snapshot, generation_time_ms=300000, completed_at=completed)

        assert result.timestamp == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert result.url_expires_at == completed + timedelta(hours=24)
        assert result.is_url_expired(completed + timedelta(hours=25))
        assert result.to_dict()["parameters"]["ratio"] == "adaptive"

    def test_rejects_unfinished_snapshot(self):
        snapshot = StatusSnapshot.model_validate({"id": "job-1", "status": "running"})
        with pytest.raises(ValueError):
            assemble_result(build_request("A cat"), snapshot, generation_time_ms=0)

    def test_result_ids_are_unique(self):
        request = build_request("A cat")
        snapshot = StatusSnapshot.model_validate({"id": "job-1", **SUCCEEDED})
        first = assemble_result(request, snapshot, generation_time_ms=1)
        second = assemble_result(request, snapshot, generation_time_ms=1)
        assert first.id != second.id
