"""
Video Job Runner - the full generation lifecycle in one call.

    build_request -> client.submit -> poller.poll -> classify -> assemble_result

Usage:
    client = SeedanceClient(api_key="...")
    runner = VideoJobRunner(client)

    token = CancellationToken()
    tracker = JobProgressTracker()

    result = await runner.generate(
        prompt="A golden retriever running through a field",
        mode="text-to-video",
        duration=8,
        ratio="16:9",
        token=token,
        tracker=tracker,
    )
    print(result.video_url)
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from core.cancellation import CancellationToken
from core.config import Config

from .assembler import assemble_result
from .classifier import Outcome, classify
from .client import SeedanceClient
from .errors import GenerationCancelled
from .poller import BackoffPoller, PollResult
from .request_builder import build_request
from .types import GenerationRequest, GenerationResult, JobHandle

logger = logging.getLogger(__name__)


class VideoJobRunner:
    """Runs generation jobs against one SeedanceClient. Holds no per-job state."""

    def __init__(
        self,
        client: SeedanceClient,
        config: Optional[Config] = None,
        poller: Optional[BackoffPoller] = None,
    ):
        self.client = client
        self.config = config or client.config
        self.poller = poller or BackoffPoller(client.fetch_status, self.config.polling)

    async def generate(
        self,
        token: Optional[CancellationToken] = None,
        tracker: Optional[Any] = None,
        timeout_ms: Optional[int] = None,
        **params,
    ) -> GenerationResult:
        """
        Validate parameters, then run the job.

        ``params`` are the keyword arguments of ``build_request``. Invalid
        parameters raise ValidationError before any request is made.
        """
        request = build_request(**params)
        return await self.run(request, token=token, tracker=tracker, timeout_ms=timeout_ms)

    async def run(
        self,
        request: GenerationRequest,
        token: Optional[CancellationToken] = None,
        tracker: Optional[Any] = None,
        timeout_ms: Optional[int] = None,
    ) -> GenerationResult:
        """
        Submit a validated request and wait for its result.

        Raises:
            VideoGenerationError subclass for every non-success outcome
        """
        started = time.monotonic()

        handle = await self._submit(request, token)
        outcome = await self.wait(handle, token=token, tracker=tracker, timeout_ms=timeout_ms)
        outcome.raise_for_failure()

        generation_time_ms = int((time.monotonic() - started) * 1000)
        result = assemble_result(
            request,
            outcome.snapshot,
            generation_time_ms=generation_time_ms,
            completed_at=datetime.now(timezone.utc),
            url_ttl_hours=self.config.jobs.content_url_ttl_hours,
        )

        logger.info(
            f"Task {handle.job_id} succeeded in {generation_time_ms / 1000:.1f}s: {result.video_url}"
        )
        return result

    async def _submit(self, request: GenerationRequest, token: Optional[CancellationToken]) -> JobHandle:
        """
        Submit unless the token is cancelled; the POST itself races the token.

        Raises:
            GenerationCancelled: before the request, or while it is in flight
        """
        if token is None:
            return await self.client.submit(request)
        if token.cancelled:
            raise GenerationCancelled(token.reason or "Video generation cancelled by user", code="cancelled")

        submit = asyncio.ensure_future(self.client.submit(request))
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({submit, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (submit, cancelled):
                if not task.done():
                    task.cancel()
            await asyncio.gather(submit, cancelled, return_exceptions=True)

        if cancelled in done:
            if submit.done() and not submit.cancelled() and submit.exception() is None:
                logger.warning(f"Task {submit.result().job_id} was created but cancelled before polling")
            raise GenerationCancelled(token.reason or "Video generation cancelled by user", code="cancelled")
        return submit.result()

    async def wait(
        self,
        handle: JobHandle,
        token: Optional[CancellationToken] = None,
        tracker: Optional[Any] = None,
        timeout_ms: Optional[int] = None,
    ) -> Outcome:
        """Poll an existing job and classify how it ended."""
        poll_result: PollResult = await self.poller.poll(
            handle,
            token=token,
            tracker=tracker,
            timeout_ms=timeout_ms,
        )
        return classify(poll_result)
