from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from interview_video_agent.question_generator import DEFAULT_TEMPLATES


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Provider API keys
    openai_api_key: str = ""
    # Also gates automatic voice selection
    elevenlabs_api_key: str = ""
    fal_api_key: str = ""

    # Base URL the lip-sync provider uses to fetch /outputs, /inputs and /uploads
    public_base_url: str = ""

    # Filesystem layout
    data_dir: str = "./data"
    prompts_dir: str = "./prompts"
    input_examples_dir: str = "./input-examples"
    templates_dir: str = "./templates"

    # Worker and lip-sync polling
    worker_poll_interval_ms: int = 2000
    lipsync_poll_interval_ms: int = 5000
    lipsync_timeout_ms: int = 600000

    # Generation defaults
    default_voice: str = "nova"
    default_language: str = "en"
    default_templates: list[str] = Field(default_factory=lambda: list(DEFAULT_TEMPLATES))
    llm_model: str = "gpt-4o"
    voice_analysis_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1-hd"
    lipsync_model: str = "lipsync-2"
    lipsync_sync_mode: str = "cut_off"

    # Run the poll loop inside the API process
    embedded_worker: bool = False

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def jobs_dir(self) -> Path:
        return Path(self.data_dir) / "jobs"

    @property
    def outputs_dir(self) -> Path:
        return Path(self.data_dir) / "outputs"

    @property
    def uploads_dir(self) -> Path:
        return Path(self.data_dir) / "uploads"


settings = Settings()
