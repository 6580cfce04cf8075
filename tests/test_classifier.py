"""
Outcome Classifier Tests

Covers:
1. Terminal snapshots (succeeded, failed, expired)
2. Structured error codes vs. text heuristics
3. Cancelled and timed out poll results
4. Error taxonomy helpers (user messages, retryability)

Run with:
    python -m pytest tests/test_classifier.py -v
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.video_generation.classifier import (
    OutcomeKind,
    classify,
    classify_snapshot,
    error_class_for_code,
)
from services.video_generation.errors import (
    ERROR_CLASSES,
    AuthenticationError,
    ContentPolicyError,
    ErrorKind,
    GenerationCancelled,
    GenerationTimedOut,
    JobExpired,
    QuotaError,
    RemoteFailureError,
    RemoteValidationError,
)
from services.video_generation.poller import PollExit, PollResult
from services.video_generation.schemas import StatusSnapshot
from services.video_generation.types import JobHandle, JobStatus

HANDLE = JobHandle(job_id="job-1", model="seedance-1-5-pro")


def snapshot(status: str, **extra) -> StatusSnapshot:
    return StatusSnapshot.model_validate({"id": "job-1", "status": status, **extra})


def failed(code: str = "", message: str = "") -> StatusSnapshot:
    return snapshot("failed", error={"code": code, "message": message})


class TestTerminalSnapshots:
    """classify_snapshot on each terminal status."""

    def test_succeeded(self):
        outcome = classify_snapshot(snapshot("succeeded", content={"video_url": "https://x/video.mp4"}))

        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.is_success
        assert outcome.error is None
        outcome.raise_for_failure()

    def test_succeeded_without_video(self):
        outcome = classify_snapshot(snapshot("succeeded", content={}))

        assert outcome.kind is OutcomeKind.REMOTE_FAILURE
        assert isinstance(outcome.error, RemoteFailureError)
        assert outcome.error.code == "missing_content"

    def test_expired(self):
        outcome = classify_snapshot(snapshot("expired"))

        assert outcome.kind is OutcomeKind.EXPIRED
        assert isinstance(outcome.error, JobExpired)
        assert outcome.error.job_id == "job-1"
        with pytest.raises(JobExpired):
            outcome.raise_for_failure()

    def test_failed_content_policy_code(self):
        outcome = classify_snapshot(failed("content_policy", "The request was blocked"))

        assert outcome.kind is OutcomeKind.REMOTE_FAILURE
        assert type(outcome.error) is ContentPolicyError
        assert outcome.error.kind is ErrorKind.CONTENT_POLICY
        assert outcome.error.code == "content_policy"
        assert outcome.error.message == "The request was blocked"

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("OutputVideoSensitiveContentDetected", ContentPolicyError),
            ("InputImageSensitiveContentDetected", ContentPolicyError),
            ("QuotaExceeded", QuotaError),
            ("RateLimitExceeded", QuotaError),
            ("invalid_api_key", AuthenticationError),
            ("InvalidParameter", RemoteValidationError),
        ],
    )
    def test_failed_known_codes(self, code, expected):
        assert type(classify_snapshot(failed(code, "x")).error) is expected

    def test_failed_unknown_code(self):
        outcome = classify_snapshot(failed("InternalServiceError", "worker crashed"))

        assert type(outcome.error) is RemoteFailureError
        assert outcome.error.code == "InternalServiceError"
        assert outcome.error.message == "worker crashed"

    def test_failed_with_null_code(self):
        outcome = classify_snapshot(
            StatusSnapshot.model_validate(
                {"id": "job-1", "status": "failed", "error": {"code": None, "message": "content blocked by filter"}}
            )
        )

        assert type(outcome.error) is ContentPolicyError
        assert outcome.error.code is None
        assert outcome.error.message == "content blocked by filter"

    def test_failed_without_error_details(self):
        outcome = classify_snapshot(snapshot("failed"))

        assert type(outcome.error) is RemoteFailureError
        assert outcome.error.code is None
        assert outcome.error.message == "Video generation failed"

    def test_non_terminal_rejected(self):
        with pytest.raises(ValueError):
            classify_snapshot(snapshot("running"))


class TestHeuristics:
    """Fallback text matching for undocumented codes."""

    def test_table_beats_text(self):
        assert error_class_for_code("InvalidParameter", "quota exceeded") is RemoteValidationError

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Input text may contain sensitive information", ContentPolicyError),
            ("Content blocked by safety filter", ContentPolicyError),
            ("Monthly quota used up", QuotaError),
            ("rate limit reached", QuotaError),
            ("Unauthorized", AuthenticationError),
        ],
    )
    def test_message_heuristics(self, message, expected):
        assert error_class_for_code("SomethingNew", message) is expected

    def test_unrecognised(self):
        assert error_class_for_code("SomethingNew", "worker crashed") is None
        assert error_class_for_code(None) is None

    def test_limit_alone_is_not_quota(self):
        assert error_class_for_code(None, "prompt exceeds length limit") is None


class TestPollResults:
    """classify on how the poll loop ended."""

    def test_cancelled(self):
        result = PollResult(
            handle=HANDLE,
            exit=PollExit.CANCELLED,
            last_status=JobStatus.RUNNING,
            attempts=2,
            elapsed_ms=2500,
            reason="user pressed stop",
        )
        outcome = classify(result)

        assert outcome.kind is OutcomeKind.CANCELLED
        assert type(outcome.error) is GenerationCancelled
        assert outcome.error.message == "user pressed stop"
        assert outcome.error.job_id == "job-1"

    def test_timed_out(self):
        result = PollResult(
            handle=HANDLE,
            exit=PollExit.TIMED_OUT,
            last_status=JobStatus.RUNNING,
            attempts=60,
            elapsed_ms=600000,
        )
        outcome = classify(result)

        assert outcome.kind is OutcomeKind.TIMED_OUT
        assert type(outcome.error) is GenerationTimedOut
        assert outcome.error.retryable

    def test_terminal_delegates_to_snapshot(self):
        result = PollResult(
            handle=HANDLE,
            exit=PollExit.TERMINAL,
            last_status=JobStatus.FAILED,
            attempts=3,
            elapsed_ms=9000,
            snapshot=failed("content_policy", "blocked"),
        )
        assert type(classify(result).error) is ContentPolicyError

    def test_terminal_without_snapshot(self):
        result = PollResult(
            handle=HANDLE,
            exit=PollExit.TERMINAL,
            last_status=JobStatus.SUCCEEDED,
            attempts=1,
            elapsed_ms=0,
        )
        with pytest.raises(ValueError):
            classify(result)


class TestErrorTaxonomy:
    """Closed set of kinds with user-facing messages."""

    def test_every_kind_has_a_class(self):
        assert set(ERROR_CLASSES) == set(ErrorKind)

    def test_user_messages(self):
        assert "safety filters" in ContentPolicyError("x").user_message
        assert "flex" in GenerationTimedOut("x").user_message
        assert RemoteFailureError("worker crashed").user_message == "Video generation failed: worker crashed"

    def test_to_dict(self):
        data = QuotaError("slow down", code="RateLimitExceeded", status_code=429, job_id="job-1").to_dict()
        assert data == {
            "kind": "quota",
            "message": "slow down",
            "code": "RateLimitExceeded",
            "status_code": 429,
            "job_id": "job-1",
            "retryable": True,
        }
