"""
Wire models for the Seedance task API.

Create:  POST /contents/generations/tasks       -> CreateTaskResponse
Status:  GET  /contents/generations/tasks/{id}  -> StatusSnapshot
Errors:  any non-2xx                             -> ApiErrorBody
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .types import JobStatus


class TaskError(BaseModel):
    """Error reported by the service for a failed task."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None


class TaskContent(BaseModel):
    """Output URLs, valid for 24 hours after generation."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    video_url: Optional[str] = None
    last_frame_url: Optional[str] = None


class TaskUsage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class StatusSnapshot(BaseModel):
    """One observation of a remote job."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    status: JobStatus
    model: Optional[str] = None
    error: Optional[TaskError] = None
    content: Optional[TaskContent] = None

    # Reported once the service has started processing
    seed: Optional[int] = None
    resolution: Optional[str] = None
    ratio: Optional[str] = None
    duration: Optional[int] = None
    framespersecond: Optional[int] = None
    generate_audio: Optional[bool] = None
    service_tier: Optional[str] = None
    execution_expires_after: Optional[int] = None
    usage: Optional[TaskUsage] = None

    # Unix timestamps (seconds)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def video_url(self) -> Optional[str]:
        return self.content.video_url if self.content else None

    @property
    def last_frame_url(self) -> Optional[str]:
        return self.content.last_frame_url if self.content else None


class CreateTaskResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str


class ApiErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None
    type: Optional[str] = None


class ApiErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: ApiErrorDetail = Field(default_factory=ApiErrorDetail)
