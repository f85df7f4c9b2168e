from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..utils import parse_iso, to_iso


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_advance_to(self, new: "JobStatus") -> bool:
        """Status only moves forward: queued -> processing -> completed|failed."""
        if self.is_terminal:
            return False
        return _STATUS_RANK[new] > _STATUS_RANK[self]


_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


class JobErrorCode(str, Enum):
    TIMEOUT = "TIMEOUT"
    REMOTE_ERROR = "REMOTE_ERROR"
    REMOTE_PROCESSING_ERROR = "REMOTE_PROCESSING_ERROR"
    SUBMIT_ERROR = "SUBMIT_ERROR"


@dataclass(frozen=True)
class AIGenerationJob:
    """One enhancement request. Server-authoritative record of the remote job."""
    id: str
    user_id: str
    feature_key: str
    status: JobStatus
    input_image_url: str
    created_at: datetime
    remote_request_id: str | None = None  # fal.ai queue request id
    model_id: str | None = None
    slot_id: str | None = None
    project_id: str | None = None
    credits_charged: int = 0
    output_url: str | None = None
    error_message: str | None = None
    error_code: str | None = None
    processing_time_ms: int | None = None
    completed_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the ai_generations table."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "feature_key": self.feature_key,
            "status": self.status.value,
            "fal_request_id": self.remote_request_id,
            "model_id": self.model_id,
            "input_image_url": self.input_image_url,
            "slot_id": self.slot_id,
            "project_id": self.project_id,
            "credits_charged": self.credits_charged,
            "output_image_url": self.output_url,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "processing_time_ms": self.processing_time_ms,
            "created_at": to_iso(self.created_at),
            "completed_at": to_iso(self.completed_at),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AIGenerationJob":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            feature_key=row["feature_key"],
            status=JobStatus(row["status"]),
            remote_request_id=row.get("fal_request_id"),
            model_id=row.get("model_id"),
            input_image_url=row["input_image_url"],
            slot_id=row.get("slot_id"),
            project_id=row.get("project_id"),
            credits_charged=row.get("credits_charged") or 0,
            output_url=row.get("output_image_url"),
            error_message=row.get("error_message"),
            error_code=row.get("error_code"),
            processing_time_ms=row.get("processing_time_ms"),
            created_at=parse_iso(row["created_at"]),
            completed_at=parse_iso(row.get("completed_at")),
        )


@dataclass(frozen=True)
class JobView:
    """What a poll returns to the caller."""
    status: JobStatus
    output_url: str | None = None
    error: str | None = None
    processing_time_ms: int | None = None

    @classmethod
    def of(cls, job: AIGenerationJob) -> "JobView":
        return cls(
            status=job.status,
            output_url=job.output_url,
            error=job.error_message,
            processing_time_ms=job.processing_time_ms,
        )

    def to_wire(self) -> dict[str, Any]:
        """camelCase wire shape: {status, outputUrl?, error?, processingTimeMs?}."""
        data: dict[str, Any] = {"status": self.status.value}
        if self.output_url is not None:
            data["outputUrl"] = self.output_url
        if self.error is not None:
            data["error"] = self.error
        if self.processing_time_ms is not None:
            data["processingTimeMs"] = self.processing_time_ms
        return data
