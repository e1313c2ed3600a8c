"""Shared fixtures for the service tests.

Environment variables are pointed at a throwaway directory before ``app``
is imported so the settings singleton and the static mounts never touch the
working tree.
"""

import os
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="interview-video-tests-"))
os.environ["DATA_DIR"] = str(_TEST_ROOT / "data")
os.environ["PROMPTS_DIR"] = str(_TEST_ROOT / "prompts")
os.environ["INPUT_EXAMPLES_DIR"] = str(_TEST_ROOT / "input-examples")
os.environ["TEMPLATES_DIR"] = str(_TEST_ROOT / "templates")
os.environ["EMBEDDED_WORKER"] = "false"
for _key in ("OPENAI_API_KEY", "ELEVENLABS_API_KEY", "FAL_API_KEY", "PUBLIC_BASE_URL"):
    os.environ[_key] = ""

import pytest  # noqa: E402

from fakes import FakeOpenAI  # noqa: E402
from interview_video_agent.prompt_loader import PromptStore  # noqa: E402

from app.config import Settings  # noqa: E402
from app.services.job_service import JobService  # noqa: E402
from app.services.job_worker import JobProcessor  # noqa: E402
from app.services.storage import StorageService  # noqa: E402

TEST_TEMPLATES = ["alpha", "beta", "gamma"]


@pytest.fixture
def config(tmp_path) -> Settings:
    prompts_dir = tmp_path / "prompts"
    prompts_dir.mkdir()
    for template_id in TEST_TEMPLATES:
        (prompts_dir / f"{template_id}.prompt").write_text(
            f"[{template_id}] {{job_description}} by {{speaker_name}} in {{language}}",
            encoding="utf-8",
        )
    (tmp_path / "input-examples").mkdir()
    (tmp_path / "templates").mkdir()
    return Settings(
        _env_file=None,
        openai_api_key="",
        elevenlabs_api_key="",
        fal_api_key="",
        public_base_url="",
        data_dir=str(tmp_path / "data"),
        prompts_dir=str(prompts_dir),
        input_examples_dir=str(tmp_path / "input-examples"),
        templates_dir=str(tmp_path / "templates"),
        default_templates=list(TEST_TEMPLATES),
        lipsync_poll_interval_ms=5000,
        lipsync_timeout_ms=600000,
    )


@pytest.fixture
def job_service(config) -> JobService:
    return JobService(config.jobs_dir)


@pytest.fixture
def make_processor(config, job_service):
    """Factory: ``make_processor(openai_client=..., public_base_url=..., ...)``."""

    def _make(public_base_url: str = "", **kwargs) -> JobProcessor:
        storage = StorageService(
            outputs_dir=config.outputs_dir,
            uploads_dir=config.uploads_dir,
            inputs_dir=config.input_examples_dir,
            public_base_url=public_base_url,
        )
        kwargs.setdefault("openai_client", FakeOpenAI())
        kwargs.setdefault("config", config)
        return JobProcessor(job_service, storage, PromptStore(config.prompts_dir), **kwargs)

    return _make
