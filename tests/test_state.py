# Tests for shared types and the error taxonomy

from interview_video_agent.errors import (
    DownloadFailedError,
    EmptyTextError,
    ErrorKind,
    LipSyncFailedError,
    LipSyncTimeoutError,
    MissingInputError,
    NoQuestionsGeneratedError,
    PipelineError,
    RenderFailedError,
    SynthesisError,
    error_kind_of,
)
from interview_video_agent.state import VALID_ACCENTS, VALID_AGE_BRACKETS, VALID_GENDERS, is_usable_question


def test_usable_question_requires_text_and_no_error():
    assert is_usable_question({"template_id": "a", "text": "Why us?"})
    assert not is_usable_question({"template_id": "a", "text": ""})
    assert not is_usable_question({"template_id": "a", "error": "boom"})
    assert not is_usable_question({"template_id": "a", "text": "Why us?", "error": "boom"})


def test_enumerations():
    assert "latam" in VALID_ACCENTS and "neutral" in VALID_ACCENTS
    assert VALID_GENDERS == ("male", "female", "neutral")
    assert VALID_AGE_BRACKETS == ("young", "middle", "mature")


def test_error_kinds():
    assert MissingInputError("x").kind == ErrorKind.MISSING_INPUT
    assert NoQuestionsGeneratedError("x").kind == ErrorKind.GENERATION_FAILED
    assert EmptyTextError("x").kind == ErrorKind.SYNTHESIS_FAILED
    assert SynthesisError("x").kind == ErrorKind.SYNTHESIS_FAILED
    assert RenderFailedError("x").kind == ErrorKind.RENDER_FAILED
    assert LipSyncFailedError("r", {"msg": "bad"}).kind == ErrorKind.RENDER_FAILED
    assert DownloadFailedError("u", 500).kind == ErrorKind.RENDER_FAILED
    assert LipSyncTimeoutError("r", 600).kind == ErrorKind.TIMEOUT


def test_errors_carry_context():
    err = SynthesisError("failed", {"index": 2})
    assert err.message == "failed"
    assert err.context == {"index": 2}
    assert isinstance(LipSyncTimeoutError("r", 1.5), TimeoutError)
    assert str(LipSyncTimeoutError("r", 1.5)) == "Lip-sync job timed out after 1500ms"
    assert isinstance(EmptyTextError("x"), ValueError)


def test_error_kind_of():
    assert error_kind_of(PipelineError("x"), ErrorKind.TIMEOUT) == ErrorKind.GENERATION_FAILED
    assert error_kind_of(RuntimeError("x"), ErrorKind.RENDER_FAILED) == ErrorKind.RENDER_FAILED
