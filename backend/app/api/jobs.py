"""Jobs API: create and inspect interview video jobs.

Implements:
  POST /api/jobs                 : create a pending job
  GET  /api/jobs                 : list jobs, newest first
  GET  /api/jobs/meta/templates  : prompt templates and the default set
  GET  /api/jobs/meta/voices     : OpenAI voices and the voice catalog
  GET  /api/jobs/{job_id}        : public view of one job

Handlers only create and read records; processing belongs to the worker.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from interview_video_agent.prompt_loader import PromptStore
from interview_video_agent.tts import get_available_voices
from interview_video_agent.voice_selector import VOICE_LIBRARY

from app.config import settings
from app.models.job import JobStatus, QualityMode
from app.services.job_service import JobInputError, JobService, prepare_job_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def get_job_service() -> JobService:
    return JobService(settings.jobs_dir)


def get_prompt_store() -> PromptStore:
    return PromptStore(settings.prompts_dir)


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class JobCreateRequest(BaseModel):
    job_description: Optional[str] = None
    script: Optional[str] = None
    speaker_name: Optional[str] = None
    language: Optional[str] = None
    accent: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=120)
    quality_mode: QualityMode = QualityMode.TEMPLATE
    locale: Optional[str] = None
    video_url: Optional[str] = None
    video_path: Optional[str] = None
    audio_url: Optional[str] = None
    voice: Optional[str] = None
    voice_id: Optional[str] = None
    prompt_template_id: Optional[str] = None
    template_ids: Optional[list[str]] = None
    job_input_dir: Optional[str] = None


class JobCreatedResponse(BaseModel):
    job_id: str
    status: JobStatus
    created_at: datetime


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=JobCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_job(
    body: JobCreateRequest,
    job_service: JobService = Depends(get_job_service),
    prompts: PromptStore = Depends(get_prompt_store),
) -> JobCreatedResponse:
    """Validate the request and store a pending job.

    Returns 400 when neither script, job_description nor job_input_dir is
    given, or when ``prompt_template_id`` is not a registered template.
    """
    try:
        fields = prepare_job_fields(body.model_dump(), prompts)
    except JobInputError as e:
        detail = {"error": str(e), "available": e.available} if e.available is not None else str(e)
        raise HTTPException(status_code=400, detail=detail)

    job = job_service.create_job(**fields)
    return JobCreatedResponse(job_id=job.job_id, status=job.status, created_at=job.created_at)


@router.get("")
def list_jobs(
    limit: int = Query(default=50, ge=1, le=500, description="Maximum number of jobs"),
    job_service: JobService = Depends(get_job_service),
) -> dict:
    """List jobs newest first."""
    jobs = job_service.list_jobs(limit=limit)
    return {
        "jobs": [
            {
                "job_id": j.job_id,
                "status": j.status.value,
                "quality_mode": j.quality_mode.value,
                "speaker_name": j.speaker_name,
                "created_at": j.created_at.isoformat(),
                "completed_at": j.completed_at.isoformat() if j.completed_at else None,
            }
            for j in jobs
        ],
        "total": len(jobs),
    }


@router.get("/meta/templates")
def list_templates(prompts: PromptStore = Depends(get_prompt_store)) -> dict:
    return {
        "templates": [prompts.metadata(t) for t in prompts.list_templates()],
        "default_templates": settings.default_templates,
    }


@router.get("/meta/voices")
def list_voices() -> dict:
    return {
        "openai": get_available_voices(),
        "catalog": [v.to_dict() for v in VOICE_LIBRARY],
        "default_voice": settings.default_voice,
    }


@router.get("/{job_id}")
def get_job(job_id: str, job_service: JobService = Depends(get_job_service)) -> dict:
    """Return the public view of one job."""
    job = job_service.get_by_job_id(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_public()
