"""
Error taxonomy for video generation.

Every failure the core can produce is a ``VideoGenerationError`` subclass
with a closed ``ErrorKind``. Callers branch on ``kind`` (or the class) and
show ``user_message``; ``code`` carries the service's own error code when
there is one.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    REMOTE_VALIDATION = "remote_validation"
    CONTENT_POLICY = "content_policy"
    QUOTA = "quota"
    NETWORK = "network"
    REMOTE_FAILURE = "remote_failure"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    EXPIRED = "expired"


USER_MESSAGES = {
    ErrorKind.VALIDATION: "Invalid generation parameters: {message}",
    ErrorKind.AUTHENTICATION: "Invalid API key for Seedance 1.5 Pro. Please check your API key.",
    ErrorKind.REMOTE_VALIDATION: "The service rejected the request: {message}",
    ErrorKind.CONTENT_POLICY: "Content was blocked by safety filters. Try modifying your prompt.",
    ErrorKind.QUOTA: "API quota exceeded. Please check your account limits.",
    ErrorKind.NETWORK: "Network error. Please check your connection and try again.",
    ErrorKind.REMOTE_FAILURE: "Video generation failed: {message}",
    ErrorKind.CANCELLED: "Video generation cancelled.",
    ErrorKind.TIMED_OUT: "Video generation timed out. Try using flex service tier for complex videos.",
    ErrorKind.EXPIRED: "The video task expired before it finished. Please submit it again.",
}


class VideoGenerationError(Exception):
    """Base class for all video generation failures."""

    kind: ErrorKind = ErrorKind.REMOTE_FAILURE
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        job_id: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.job_id = job_id
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind].format(message=self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "job_id": self.job_id,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r}, code={self.code!r})"


class ValidationError(VideoGenerationError):
    """Local input problem, raised before any network call."""
    kind = ErrorKind.VALIDATION


class AuthenticationError(VideoGenerationError):
    """Missing or rejected API key."""
    kind = ErrorKind.AUTHENTICATION


class RemoteValidationError(VideoGenerationError):
    """Request rejected by the service for a reason not caught locally."""
    kind = ErrorKind.REMOTE_VALIDATION


class ContentPolicyError(VideoGenerationError):
    """Prompt or media blocked by the service's safety filters."""
    kind = ErrorKind.CONTENT_POLICY


class QuotaError(VideoGenerationError):
    """Rate or usage limit exceeded."""
    kind = ErrorKind.QUOTA
    retryable = True


class NetworkError(VideoGenerationError):
    """Transport failure on a single call."""
    kind = ErrorKind.NETWORK
    retryable = True


class RemoteFailureError(VideoGenerationError):
    """Job reported ``failed`` with an unclassified error."""
    kind = ErrorKind.REMOTE_FAILURE


class GenerationCancelled(VideoGenerationError):
    """Polling aborted by the caller's cancellation token."""
    kind = ErrorKind.CANCELLED


class GenerationTimedOut(VideoGenerationError):
    """Polling budget exhausted without a terminal status."""
    kind = ErrorKind.TIMED_OUT
    retryable = True


class JobExpired(VideoGenerationError):
    """Remote job aged out before completing."""
    kind = ErrorKind.EXPIRED
    retryable = True


ERROR_CLASSES: dict[ErrorKind, type[VideoGenerationError]] = {
    cls.kind: cls
    for cls in (
        ValidationError,
        AuthenticationError,
        RemoteValidationError,
        ContentPolicyError,
        QuotaError,
        NetworkError,
        RemoteFailureError,
        GenerationCancelled,
        GenerationTimedOut,
        JobExpired,
    )
}
