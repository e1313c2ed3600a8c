# Pipeline error taxonomy
# Closed set of error kinds raised by the generation tasks and the job orchestrator

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Kinds of failure the orchestrator distinguishes between."""

    MISSING_INPUT = "missing_input"
    GENERATION_FAILED = "generation_failed"
    SYNTHESIS_FAILED = "synthesis_failed"
    RENDER_FAILED = "render_failed"
    TIMEOUT = "timeout"


class PipelineError(Exception):
    """Base class for every error raised by a pipeline stage.

    Args:
        message: Human-readable message (stored verbatim on the job record)
        context: Structured details about where the failure happened
    """

    kind: ErrorKind = ErrorKind.GENERATION_FAILED

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})


class MissingInputError(PipelineError):
    """Job has neither a script nor a job description."""

    kind = ErrorKind.MISSING_INPUT


class PromptTemplateNotFoundError(PipelineError, LookupError):
    """Requested prompt template id is not registered."""

    kind = ErrorKind.MISSING_INPUT


class NoQuestionsGeneratedError(PipelineError):
    """Question generation finished without a single usable question."""

    kind = ErrorKind.GENERATION_FAILED


class EmptyTextError(PipelineError, ValueError):
    """Speech synthesis was asked to speak a blank string."""

    kind = ErrorKind.SYNTHESIS_FAILED


class SynthesisError(PipelineError):
    """TTS provider failed for one question."""

    kind = ErrorKind.SYNTHESIS_FAILED


class RenderFailedError(PipelineError):
    """Video rendering failed for one item (muxing or remote render)."""

    kind = ErrorKind.RENDER_FAILED


class LipSyncFailedError(RenderFailedError):
    """Remote lip-sync job reported FAILED."""

    def __init__(self, request_id: str, payload: Any = None):
        super().__init__(
            f"Lip-sync job failed: {payload}",
            {"request_id": request_id, "payload": payload},
        )
        self.request_id = request_id
        self.payload = payload


class DownloadFailedError(RenderFailedError):
    """Fetching a rendered file ended with a non-200 response."""

    def __init__(self, url: str, status_code: Optional[int] = None, message: Optional[str] = None):
        super().__init__(
            message or f"Download failed: {status_code}",
            {"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class LipSyncTimeoutError(PipelineError, TimeoutError):
    """Remote lip-sync job did not reach a terminal state in time."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, request_id: str, max_wait_seconds: float):
        super().__init__(
            f"Lip-sync job timed out after {int(max_wait_seconds * 1000)}ms",
            {"request_id": request_id, "max_wait_seconds": max_wait_seconds},
        )
        self.request_id = request_id


def error_kind_of(exc: BaseException, default: ErrorKind) -> ErrorKind:
    """Return the kind carried by a pipeline error, or ``default`` for anything else."""
    if isinstance(exc, PipelineError):
        return exc.kind
    return default
