"""
Outcome Classifier - maps how polling ended to a typed outcome.

Pure functions, no I/O. Failed jobs are classified from the service's
structured error code using CODE_TABLE. Only when the code is unknown do
the substring heuristics in ``_guess_from_text`` run; they are best-effort
and may misclassify unfamiliar errors, which then fall back to the generic
RemoteFailureError.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import (
    AuthenticationError,
    ContentPolicyError,
    GenerationCancelled,
    GenerationTimedOut,
    JobExpired,
    QuotaError,
    RemoteFailureError,
    RemoteValidationError,
    VideoGenerationError,
)
from .poller import PollExit, PollResult
from .schemas import StatusSnapshot
from .types import JobStatus

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    REMOTE_FAILURE = "remote_failure"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


# Service error codes (compared case-insensitively)
CODE_TABLE: dict[str, type[VideoGenerationError]] = {
    # Safety filters
    "content_policy": ContentPolicyError,
    "contentpolicyviolation": ContentPolicyError,
    "sensitivecontentdetected": ContentPolicyError,
    "inputtextsensitivecontentdetected": ContentPolicyError,
    "inputimagesensitivecontentdetected": ContentPolicyError,
    "outputvideosensitivecontentdetected": ContentPolicyError,
    "outputimagesensitivecontentdetected": ContentPolicyError,
    "inputvideosensitivecontentdetected": ContentPolicyError,
    # Rate and usage limits
    "quota_exceeded": QuotaError,
    "quotaexceeded": QuotaError,
    "ratelimitexceeded": QuotaError,
    "rate_limit_exceeded": QuotaError,
    "accountoverdueerror": QuotaError,
    "serveroverloaded": QuotaError,
    # Credentials
    "invalid_api_key": AuthenticationError,
    "authenticationerror": AuthenticationError,
    "accessdenied": AuthenticationError,
    "unauthorized": AuthenticationError,
    # Request problems the local builder cannot see
    "invalid_request": RemoteValidationError,
    "invalidparameter": RemoteValidationError,
    "missingparameter": RemoteValidationError,
    "invalidimageurl": RemoteValidationError,
}


def _guess_from_text(text: str) -> Optional[type[VideoGenerationError]]:
    """Best-effort fallback for undocumented codes. Not exhaustive."""
    text = text.lower()
    if "unauthorized" in text or "invalid api key" in text or "authentication" in text:
        return AuthenticationError
    if ("content" in text and ("filter" in text or "blocked" in text)) or "sensitive" in text:
        return ContentPolicyError
    if "quota" in text or "rate limit" in text or "ratelimit" in text:
        return QuotaError
    return None


def error_class_for_code(code: Optional[str], message: str = "") -> Optional[type[VideoGenerationError]]:
    """
    Error class for a service error code, or None if unrecognised.

    The table decides when it knows the code; otherwise the code and message
    text are matched heuristically.
    """
    if code:
        known = CODE_TABLE.get(code.strip().lower())
        if known is not None:
            return known
    guessed = _guess_from_text(f"{code or ''} {message}")
    if guessed is not None:
        logger.debug(f"Classified unknown error code {code!r} heuristically as {guessed.__name__}")
    return guessed


@dataclass(frozen=True)
class Outcome:
    """Classified end of a job. ``error`` is set for every non-success kind."""

    kind: OutcomeKind
    job_id: str
    snapshot: Optional[StatusSnapshot] = None
    error: Optional[VideoGenerationError] = None

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def raise_for_failure(self):
        """Raise the outcome's error unless it is a success."""
        if self.error is not None:
            raise self.error


def classify_snapshot(snapshot: StatusSnapshot) -> Outcome:
    """Classify a terminal snapshot."""
    job_id = snapshot.id

    if snapshot.status is JobStatus.SUCCEEDED:
        if not snapshot.video_url:
            return Outcome(
                kind=OutcomeKind.REMOTE_FAILURE,
                job_id=job_id,
                snapshot=snapshot,
                error=RemoteFailureError(
                    "Task succeeded but returned no video URL",
                    code="missing_content",
                    job_id=job_id,
                ),
            )
        return Outcome(kind=OutcomeKind.SUCCESS, job_id=job_id, snapshot=snapshot)

    if snapshot.status is JobStatus.EXPIRED:
        return Outcome(
            kind=OutcomeKind.EXPIRED,
            job_id=job_id,
            snapshot=snapshot,
            error=JobExpired("Video generation task expired", code="expired", job_id=job_id),
        )

    if snapshot.status is JobStatus.FAILED:
        code = snapshot.error.code if snapshot.error else None
        message = (snapshot.error.message if snapshot.error else "") or "Video generation failed"
        error_class = error_class_for_code(code, message) or RemoteFailureError
        return Outcome(
            kind=OutcomeKind.REMOTE_FAILURE,
            job_id=job_id,
            snapshot=snapshot,
            error=error_class(message, code=code or None, job_id=job_id),
        )

    raise ValueError(f"Cannot classify non-terminal status: {snapshot.status.value}")


def classify(result: PollResult) -> Outcome:
    """Classify a finished poll loop."""
    job_id = result.job_id

    if result.exit is PollExit.CANCELLED:
        return Outcome(
            kind=OutcomeKind.CANCELLED,
            job_id=job_id,
            snapshot=result.snapshot,
            error=GenerationCancelled(
                result.reason or "Video generation cancelled by user",
                code="cancelled",
                job_id=job_id,
            ),
        )

    if result.exit is PollExit.TIMED_OUT:
        return Outcome(
            kind=OutcomeKind.TIMED_OUT,
            job_id=job_id,
            snapshot=result.snapshot,
            error=GenerationTimedOut(
                result.reason or "Video generation timed out",
                code="timed_out",
                job_id=job_id,
            ),
        )

    if result.snapshot is None:
        raise ValueError("Terminal poll result without a snapshot")

    outcome = classify_snapshot(result.snapshot)
    if not outcome.is_success:
        logger.error(f"Task {job_id} ended as {outcome.kind.value}: {outcome.error.message}")
    return outcome
