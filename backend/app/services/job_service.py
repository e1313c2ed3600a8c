"""Job service: the flat-file job store.

Each job is one JSON document at ``{jobs_dir}/{job_id}.json``. Writes go to
a temporary sibling and are moved into place with ``os.replace`` so readers
never see a half-written record. Route handlers only create and read; the
worker is the single writer for a job once it is claimed.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from interview_video_agent.input_dir import derive_locale, detect_gender_from_name, load_job_input
from interview_video_agent.prompt_loader import PromptStore

from app.config import settings
from app.models.job import Job, JobStatus

logger = logging.getLogger(__name__)


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:8]}"


class JobService:
    """Create, save, load and list job records."""

    def __init__(self, jobs_dir: str | Path | None = None) -> None:
        self.jobs_dir = Path(jobs_dir) if jobs_dir is not None else settings.jobs_dir

    def _path(self, job_id: str) -> Path:
        return self.jobs_dir / f"{job_id}.json"

    # ------------------------------------------------------------------
    # Create / save
    # ------------------------------------------------------------------

    def create_job(self, **fields: Any) -> Job:
        """Create a new job in PENDING state, persist it and return it."""
        job = Job(job_id=new_job_id(), status=JobStatus.PENDING, **fields)
        self.save(job)
        logger.info("Created job %s", job.job_id, extra={"quality_mode": job.quality_mode.value})
        return job

    def save(self, job: Job) -> Job:
        """Overwrite the stored record with ``job``."""
        self.jobs_dir.mkdir(parents=True, exist_ok=True)
        dest = self._path(job.job_id)
        tmp = dest.with_suffix(".json.tmp")
        tmp.write_text(job.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, dest)
        return job

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_job_id(self, job_id: str) -> Job | None:
        path = self._path(job_id)
        if not path.is_file():
            return None
        return Job.model_validate_json(path.read_text(encoding="utf-8"))

    def _load_all(self) -> list[Job]:
        if not self.jobs_dir.is_dir():
            return []
        jobs: list[Job] = []
        for path in self.jobs_dir.glob("*.json"):
            try:
                jobs.append(Job.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, ValidationError) as e:
                logger.warning("Skipping unreadable job file %s: %s", path.name, e)
        return jobs

    def list_pending(self) -> list[Job]:
        """Pending jobs, oldest first."""
        pending = [j for j in self._load_all() if j.status == JobStatus.PENDING]
        return sorted(pending, key=lambda j: j.created_at)

    def list_jobs(self, limit: int | None = None) -> list[Job]:
        """All jobs, newest first."""
        jobs = sorted(self._load_all(), key=lambda j: j.created_at, reverse=True)
        return jobs[:limit] if limit is not None else jobs


class JobInputError(ValueError):
    """A job creation request is missing or has invalid inputs."""

    def __init__(self, message: str, available: list[str] | None = None) -> None:
        super().__init__(message)
        self.available = available


def _fill_from_input_dir(fields: dict[str, Any], input_root: str | Path) -> None:
    try:
        loaded = load_job_input(input_root, fields["job_input_dir"])
    except (FileNotFoundError, ValueError) as e:
        raise JobInputError(str(e)) from e

    if not fields.get("job_description") and loaded["job_description"]:
        fields["job_description"] = loaded["job_description"]

    speaker = loaded["speaker"] or {}
    for field, key in (
        ("speaker_name", "name"),
        ("language", "language"),
        ("accent", "accent"),
        ("gender", "gender"),
        ("age", "age"),
    ):
        if fields.get(field) is None and speaker.get(key) is not None:
            fields[field] = speaker[key]


def prepare_job_fields(fields: dict[str, Any], prompts: PromptStore) -> dict[str, Any]:
    """Validate creation input and fill derived defaults.

    Missing fields are taken from the job input directory, the gender is
    guessed from the speaker's first name, and the locale is derived from the
    language.

    Raises:
        JobInputError: No script or job description can be found, the input
            directory is invalid, or ``prompt_template_id`` is unknown
    """
    fields = {k: v for k, v in fields.items() if v is not None}

    if not (fields.get("script") or fields.get("job_description") or fields.get("job_input_dir")):
        raise JobInputError("One of script, job_description or job_input_dir is required")

    if fields.get("job_input_dir"):
        _fill_from_input_dir(fields, settings.input_examples_dir)
        if not (fields.get("script") or fields.get("job_description")):
            raise JobInputError("job_input_dir has no job-description.md and no script was given")

    template_id = fields.get("prompt_template_id")
    if template_id and not prompts.exists(template_id):
        raise JobInputError(f"Unknown prompt template: {template_id}", available=prompts.list_templates())

    fields["language"] = fields.get("language") or settings.default_language
    fields["gender"] = fields.get("gender") or detect_gender_from_name(fields.get("speaker_name"))
    fields["locale"] = fields.get("locale") or derive_locale(fields["language"])
    return fields
