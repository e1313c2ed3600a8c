"""Job orchestrator: runs one job through the whole pipeline.

Flow for ``JobProcessor.process_job``:
    1. Mark the job processing and persist.
    2. Resolve questions: a literal ``script`` becomes one ``custom`` question;
       otherwise questions are generated from the job description.
    3. Persist the questions.
    4. Best-effort automatic voice selection (only with an ElevenLabs key
       and no explicit voice).
    5. Synthesize one MP3 per usable question, in order. A synthesis error
       fails the whole job.
    6. Render videos for the quality mode: template overlay, lip-sync, or
       nothing for audio_only. Missing prerequisites downgrade the job to
       audio-only with a ``note``; per-item render errors are recorded on the
       item and never stop its siblings.
    7. Build the ``outputs`` summary and note, mark completed, persist.

Any error escaping steps 1-7 marks the job failed, persists it and is
re-raised to the caller.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from openai import AsyncOpenAI

from interview_video_agent.client import get_openai_client
from interview_video_agent.elevenlabs_tts import ElevenLabsClient
from interview_video_agent.errors import (
    ErrorKind,
    MissingInputError,
    NoQuestionsGeneratedError,
    PipelineError,
    SynthesisError,
    error_kind_of,
)
from interview_video_agent.input_dir import DEFAULT_INPUT_DIR, find_video_file, resolve_job_input_dir
from interview_video_agent.lip_sync import FalLipSyncClient, PollPolicy, render_lipsync
from interview_video_agent.prompt_loader import PromptStore
from interview_video_agent.question_generator import combine_questions_to_script, generate_questions
from interview_video_agent.tts import generate_speech
from interview_video_agent.video_overlay import find_template_video, missing_templates, overlay_audio
from interview_video_agent.voice_selector import auto_select_voice

from app.config import Settings, settings
from app.logging_config import job_context
from app.models.job import (
    CUSTOM_TEMPLATE_ID,
    AudioArtifact,
    FailedItem,
    Job,
    JobOutputs,
    QualityMode,
    Question,
    VideoArtifact,
)
from app.services.job_service import JobService
from app.services.storage import StorageService

logger = logging.getLogger(__name__)

NOTE_NO_TEMPLATES = "Template videos not found. Audio files generated only."
NOTE_NO_SOURCE_VIDEO = "No video source found for lip-sync. Audio files generated only."
NOTE_NO_PUBLIC_URL = "Set PUBLIC_BASE_URL for lip-sync. Audio files generated only."
NOTE_NO_FAL_KEY = "Set FAL_API_KEY for lip-sync. Audio files generated only."

OverlayFn = Callable[[Path, Path, Path], Awaitable[Any]]


class JobProcessor:
    """Runs jobs against explicitly supplied collaborators.

    Every remote client is optional: a missing client means the matching
    provider is not configured, and the pipeline degrades as described in
    the module docstring.
    """

    def __init__(
        self,
        job_service: JobService,
        storage: StorageService,
        prompts: PromptStore,
        *,
        openai_client: Optional[AsyncOpenAI] = None,
        elevenlabs: Optional[ElevenLabsClient] = None,
        lipsync: Optional[FalLipSyncClient] = None,
        config: Settings = settings,
        overlay: OverlayFn = overlay_audio,
        poll_sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        poll_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.job_service = job_service
        self.storage = storage
        self.prompts = prompts
        self.openai_client = openai_client
        self.elevenlabs = elevenlabs
        self.lipsync = lipsync
        self.config = config
        self.overlay = overlay
        self.poll_policy = PollPolicy.from_millis(config.lipsync_poll_interval_ms, config.lipsync_timeout_ms)
        self._poll_sleep = poll_sleep
        self._poll_clock = poll_clock

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process_job(self, job: Job) -> Job:
        """Run ``job`` to a terminal state, persisting after every stage."""
        with job_context(job.job_id):
            logger.info("Starting job processing (mode: %s)", job.quality_mode.value)
            job.mark_processing()
            stage = ErrorKind.GENERATION_FAILED
            try:
                self.job_service.save(job)

                await self._resolve_questions(job)
                self.job_service.save(job)

                auto_voice_id = await self._select_voice(job)

                stage = ErrorKind.SYNTHESIS_FAILED
                await self._synthesize_audio(job, auto_voice_id)
                self.job_service.save(job)
                logger.info("Generated %d audio files", len(job.audio_files))

                stage = ErrorKind.RENDER_FAILED
                job.video_files = await self._render_videos(job)

                self._summarize(job)
                job.mark_completed()
                self.job_service.save(job)
            except Exception as e:
                if job.is_terminal:
                    raise
                kind = error_kind_of(e, stage)
                logger.exception("Job failed: %s", e, extra={"error_kind": kind.value})
                job.mark_failed(str(e), kind.value)
                self.job_service.save(job)
                raise

            logger.info(
                "Job completed: %d videos, %d audio files",
                job.outputs.total_videos,
                job.outputs.total_audio,
            )
            return job

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _resolve_questions(self, job: Job) -> None:
        # A blank script counts as absent
        if job.script and job.script.strip():
            logger.info("Using provided script")
            job.questions = [Question(template_id=CUSTOM_TEMPLATE_ID, text=job.script.strip())]
            return
        if job.script:
            logger.warning("Ignoring blank script, falling back to job description")

        if not job.job_description or not job.job_description.strip():
            raise MissingInputError(
                "Either script or job_description is required",
                {"job_id": job.job_id},
            )
        if self.openai_client is None:
            raise MissingInputError("OPENAI_API_KEY is required to generate questions", {"job_id": job.job_id})

        logger.info("Generating questions from job description")
        results = await generate_questions(
            job.job_description,
            client=self.openai_client,
            prompts=self.prompts,
            language=job.language,
            speaker_name=job.speaker_name,
            template_ids=job.requested_templates(self.config.default_templates),
            model=self.config.llm_model,
        )
        job.questions = [Question(**r) for r in results]

        usable = job.usable_questions()
        if not usable:
            errors = [q.error for q in job.questions if q.error]
            raise NoQuestionsGeneratedError(
                "No questions generated",
                {"requested": len(results), "errors": errors},
            )
        job.generated_script = combine_questions_to_script([q.model_dump() for q in usable])
        logger.info("Generated %d questions", len(usable))

    async def _select_voice(self, job: Job) -> Optional[str]:
        """Return an auto-selected catalog voice id, or None. Never raises."""
        if job.voice or job.voice_id or self.elevenlabs is None:
            return None
        try:
            selection = await auto_select_voice(
                job.job_description or job.script or "",
                job.speaker_name,
                job.language,
                client=self.openai_client,
                model=self.config.voice_analysis_model,
            )
        except Exception as e:
            logger.warning("Voice auto-selection failed, continuing without it: %s", e)
            return None
        job.selected_voice = dict(selection)
        self.job_service.save(job)
        return selection["voiceId"]

    async def _synthesize_audio(self, job: Job, auto_voice_id: Optional[str]) -> None:
        """One MP3 per usable question; voice choice is fixed for the whole job."""
        artifacts: list[AudioArtifact] = []
        pinned_voice: Optional[str] = None

        for index, question in enumerate(job.usable_questions(), start=1):
            filename = self.storage.artifact_name(job.job_id, index, question.template_id, "mp3")
            path = self.storage.output_path(filename)

            # Profile hints resolve unknown OpenAI voices
            voice_args: dict[str, Any] = {"gender": job.gender, "accent": job.accent, "age": job.age}
            if job.voice_id:
                voice_args["voice_id"] = job.voice_id
            elif job.voice:
                voice_args["voice"] = job.voice
            elif auto_voice_id:
                voice_args["voice_id"] = auto_voice_id
            elif pinned_voice:
                voice_args["voice"] = pinned_voice

            logger.info("Synthesizing audio %d: %s", index, question.template_id)
            try:
                result = await generate_speech(
                    question.text,
                    path,
                    openai_client=self.openai_client,
                    elevenlabs=self.elevenlabs,
                    model=self.config.tts_model,
                    default_voice=self.config.default_voice,
                    **voice_args,
                )
            except Exception as e:
                raise SynthesisError(
                    f"Speech synthesis failed for item {index} ({question.template_id}): {e}",
                    {"index": index, "template_id": question.template_id},
                ) from e

            pinned_voice = pinned_voice or result["voice"]
            artifacts.append(
                AudioArtifact(
                    index=index,
                    template_id=question.template_id,
                    text=question.text,
                    path=result["audio_path"],
                    url=self.storage.output_url(filename),
                    voice=result["voice"],
                    provider=result["provider"],
                )
            )

        job.audio_files = artifacts
        job.voice_used = pinned_voice

    async def _render_videos(self, job: Job) -> list[VideoArtifact]:
        if job.quality_mode == QualityMode.AUDIO_ONLY:
            logger.info("Audio-only mode, skipping video generation")
            return []
        if job.quality_mode == QualityMode.TEMPLATE:
            return await self._render_with_templates(job)
        return await self._render_with_lipsync(job)

    async def _render_with_templates(self, job: Job) -> list[VideoArtifact]:
        locale = job.resolved_locale()
        templates_dir = self.config.templates_dir
        missing = missing_templates(templates_dir, [a.template_id for a in job.audio_files], locale)
        if missing:
            logger.info("Templates not found (%s), falling back to audio-only", ", ".join(missing))
            job.note = NOTE_NO_TEMPLATES
            return []

        videos: list[VideoArtifact] = []
        for audio in job.audio_files:
            template_path = find_template_video(templates_dir, audio.template_id, locale)
            filename = self.storage.artifact_name(job.job_id, audio.index, audio.template_id, "mp4")
            item = _video_item(audio, QualityMode.TEMPLATE)
            try:
                if template_path is None:
                    raise FileNotFoundError(f"No template video found for {audio.template_id}")
                output_path = self.storage.output_path(filename)
                await self.overlay(template_path, Path(audio.path), output_path)
            except Exception as e:
                _record_failure(item, e)
            else:
                _record_success(item, filename, output_path, self.storage.output_url(filename))
                logger.info("Overlay %d done: %s", audio.index, filename)
            videos.append(item)
        return videos

    async def _render_with_lipsync(self, job: Job) -> list[VideoArtifact]:
        source = self.find_source_video(job)
        if source is None:
            job.note = NOTE_NO_SOURCE_VIDEO
            logger.info("No video source for lip-sync, falling back to audio-only")
            return []
        if not self.storage.has_public_url:
            job.note = NOTE_NO_PUBLIC_URL
            logger.info("PUBLIC_BASE_URL not set, cannot use lip-sync")
            return []
        if self.lipsync is None:
            job.note = NOTE_NO_FAL_KEY
            logger.info("FAL_API_KEY not set, cannot use lip-sync")
            return []

        if isinstance(source, Path):
            video_url = self.storage.public_url(self.storage.expose_local_file(source))
        else:
            video_url = source
        logger.info("Using lip-sync mode, video: %s", video_url)

        videos: list[VideoArtifact] = []
        total = len(job.audio_files)
        for audio in job.audio_files:
            filename = self.storage.artifact_name(job.job_id, audio.index, audio.template_id, "mp4")
            item = _video_item(audio, QualityMode.LIPSYNC)
            logger.info("Lip-sync %d/%d: %s", audio.index, total, audio.template_id)
            try:
                output_path = self.storage.output_path(filename)
                result = await render_lipsync(
                    self.lipsync,
                    video_url,
                    self.storage.public_url(audio.url),
                    output_path,
                    self.poll_policy,
                    sleep=self._poll_sleep,
                    clock=self._poll_clock,
                )
            except Exception as e:
                if isinstance(e, PipelineError):
                    item.lipsync_request_id = e.context.get("request_id")
                _record_failure(item, e)
            else:
                item.lipsync_request_id = result["request_id"]
                _record_success(item, filename, output_path, self.storage.output_url(filename))
                logger.info("Lip-sync %d done: %s", audio.index, filename)
            videos.append(item)
        return videos

    def find_source_video(self, job: Job) -> Path | str | None:
        """Local path or URL of the face video for lip-sync, or None.

        Order: local ``video_path``, ``video_url``, a video in the job input
        directory, a video in ``default-input/``.
        """
        if job.video_path and Path(job.video_path).is_file():
            return Path(job.video_path)
        if job.video_url:
            return job.video_url

        input_root = Path(self.config.input_examples_dir)
        if job.job_input_dir:
            try:
                found = find_video_file(resolve_job_input_dir(input_root, job.job_input_dir))
            except ValueError as e:
                logger.warning("Ignoring job input dir: %s", e)
                found = None
            if found:
                return found
        return find_video_file(input_root / DEFAULT_INPUT_DIR)

    # ------------------------------------------------------------------
    # Completion summary
    # ------------------------------------------------------------------

    def _summarize(self, job: Job) -> None:
        successful = [v for v in job.video_files if v.video_file]
        failed = [v for v in job.video_files if not v.video_file]

        job.outputs = JobOutputs(
            video_files=[
                {
                    "index": v.index,
                    "template_id": v.template_id,
                    "video_url": v.video_url,
                    "audio_url": v.audio_url,
                    "mode": v.mode.value,
                }
                for v in successful
            ],
            audio_files=[{"index": a.index, "template_id": a.template_id, "url": a.url} for a in job.audio_files],
            total_videos=len(successful),
            total_audio=len(job.audio_files),
            voice=job.voice_used,
            quality_mode=job.quality_mode,
        )
        job.failed_items = [
            FailedItem(index=v.index, template_id=v.template_id, error=v.error or "", error_kind=v.error_kind)
            for v in failed
        ]

        if failed and successful:
            job.note = f"Generated {len(successful)}/{len(job.video_files)} videos. {len(failed)} failed."
        elif successful:
            job.note = f"Successfully generated {len(successful)} videos ({job.quality_mode.value} mode)."
        elif not job.note:
            job.note = f"Generated {len(job.audio_files)} audio files."


def _video_item(audio: AudioArtifact, mode: QualityMode) -> VideoArtifact:
    return VideoArtifact(
        index=audio.index,
        template_id=audio.template_id,
        text=audio.text,
        audio_url=audio.url,
        mode=mode,
    )


def _record_success(item: VideoArtifact, filename: str, path: Path, url: str) -> None:
    item.video_file = filename
    item.video_path = str(path)
    item.video_url = url


def _record_failure(item: VideoArtifact, exc: Exception) -> None:
    item.error = str(exc)
    item.error_kind = error_kind_of(exc, ErrorKind.RENDER_FAILED).value
    logger.error("Video %d (%s) failed: %s", item.index, item.template_id, exc)


# ---------------------------------------------------------------------------
# Process-wide wiring
# ---------------------------------------------------------------------------


def build_job_processor(config: Settings = settings, job_service: Optional[JobService] = None) -> JobProcessor:
    """Construct the processor and its provider clients from settings."""
    return JobProcessor(
        job_service or JobService(config.jobs_dir),
        StorageService(
            outputs_dir=config.outputs_dir,
            uploads_dir=config.uploads_dir,
            inputs_dir=config.input_examples_dir,
            public_base_url=config.public_base_url,
        ),
        PromptStore(config.prompts_dir),
        openai_client=get_openai_client(config.openai_api_key) if config.openai_api_key else None,
        elevenlabs=ElevenLabsClient(config.elevenlabs_api_key) if config.elevenlabs_api_key else None,
        lipsync=(
            FalLipSyncClient(
                config.fal_api_key,
                model=config.lipsync_model,
                sync_mode=config.lipsync_sync_mode,
            )
            if config.fal_api_key
            else None
        ),
        config=config,
    )
