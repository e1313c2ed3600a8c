"""Job record: one end-to-end request for questions, audio and video.

Status lifecycle (monotonic, each timestamp assigned once):

    pending → processing → completed
                         ↘ failed

Records are persisted as self-contained JSON documents by ``JobService``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class QualityMode(str, Enum):
    TEMPLATE = "template"
    LIPSYNC = "lipsync"
    AUDIO_ONLY = "audio_only"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

CUSTOM_TEMPLATE_ID = "custom"


class InvalidStatusTransitionError(ValueError):
    """Raised on any status change that is not allowed by the lifecycle."""

    def __init__(self, job_id: str, current: JobStatus, requested: JobStatus):
        super().__init__(f"Job {job_id}: cannot move from {current.value} to {requested.value}")
        self.job_id = job_id
        self.current = current
        self.requested = requested


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Question(BaseModel):
    template_id: str
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return bool(self.text) and not self.error


class AudioArtifact(BaseModel):
    index: int
    template_id: str
    text: str
    path: str
    url: str
    voice: str
    provider: str


class VideoArtifact(BaseModel):
    index: int
    template_id: str
    text: str
    audio_url: str
    mode: QualityMode
    # None together with ``error`` marks a per-item failure
    video_file: Optional[str] = None
    video_path: Optional[str] = None
    video_url: Optional[str] = None
    lipsync_request_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


class FailedItem(BaseModel):
    index: int
    template_id: str
    error: str
    error_kind: Optional[str] = None


class JobOutputs(BaseModel):
    video_files: list[dict[str, Any]] = Field(default_factory=list)
    audio_files: list[dict[str, Any]] = Field(default_factory=list)
    total_videos: int = 0
    total_audio: int = 0
    voice: Optional[str] = None
    quality_mode: QualityMode = QualityMode.TEMPLATE


class Job(BaseModel):
    # --- Identity / lifecycle ---
    job_id: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None

    # --- Input parameters (immutable after creation) ---
    job_description: Optional[str] = None
    script: Optional[str] = None
    speaker_name: Optional[str] = None
    language: str = "en"
    accent: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[int] = None
    quality_mode: QualityMode = QualityMode.TEMPLATE
    locale: Optional[str] = None
    video_url: Optional[str] = None
    video_path: Optional[str] = None
    audio_url: Optional[str] = None
    # OpenAI voice name
    voice: Optional[str] = None
    # Catalog (ElevenLabs) voice id
    voice_id: Optional[str] = None
    prompt_template_id: Optional[str] = None
    template_ids: Optional[list[str]] = None
    job_input_dir: Optional[str] = None

    # --- Derived / progressive state ---
    questions: list[Question] = Field(default_factory=list)
    generated_script: Optional[str] = None
    selected_voice: Optional[dict[str, Any]] = None
    voice_used: Optional[str] = None
    audio_files: list[AudioArtifact] = Field(default_factory=list)
    video_files: list[VideoArtifact] = Field(default_factory=list)
    outputs: Optional[JobOutputs] = None
    failed_items: list[FailedItem] = Field(default_factory=list)
    note: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, new_status: JobStatus) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransitionError(self.job_id, self.status, new_status)
        self.status = new_status

    def mark_processing(self, now: Optional[datetime] = None) -> None:
        self._transition(JobStatus.PROCESSING)
        self.started_at = now or utcnow()

    def mark_completed(self, now: Optional[datetime] = None) -> None:
        self._transition(JobStatus.COMPLETED)
        self.completed_at = now or utcnow()

    def mark_failed(self, error: str, error_kind: Optional[str] = None, now: Optional[datetime] = None) -> None:
        self._transition(JobStatus.FAILED)
        self.error = error
        self.error_kind = error_kind
        self.failed_at = now or utcnow()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def usable_questions(self) -> list[Question]:
        return [q for q in self.questions if q.usable]

    def resolved_locale(self) -> str:
        return self.locale or self.language or "en"

    def requested_templates(self, default: list[str]) -> list[str]:
        if self.template_ids:
            return list(self.template_ids)
        if self.prompt_template_id:
            return [self.prompt_template_id]
        return list(default)

    def to_public(self) -> dict[str, Any]:
        """The subset of the record exposed by the status API."""
        return self.model_dump(mode="json", include=PUBLIC_FIELDS, exclude_none=True)


PUBLIC_FIELDS = {
    "job_id",
    "status",
    "created_at",
    "started_at",
    "completed_at",
    "failed_at",
    "speaker_name",
    "language",
    "quality_mode",
    "questions",
    "generated_script",
    "selected_voice",
    "voice_used",
    "outputs",
    "failed_items",
    "note",
    "error",
    "error_kind",
}
