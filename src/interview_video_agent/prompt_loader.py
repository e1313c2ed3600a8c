"""Prompt template store.

Templates are plain ``{template_id}.prompt`` files in a prompts directory.
Placeholders use single braces (``{job_description}``) and are substituted by
name; unknown placeholders are left untouched so templates may contain other
brace-delimited text.
"""

import logging
import re
from pathlib import Path
from typing import Any

from interview_video_agent.errors import PromptTemplateNotFoundError

logger = logging.getLogger(__name__)

PROMPT_SUFFIX = ".prompt"

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


class PromptStore:
    """Loads and renders named prompt templates from a directory."""

    def __init__(self, prompts_dir: str | Path) -> None:
        self.prompts_dir = Path(prompts_dir)

    def _path(self, template_id: str) -> Path:
        return self.prompts_dir / f"{template_id}{PROMPT_SUFFIX}"

    def load(self, template_id: str) -> str:
        """Return the raw template text.

        Raises:
            PromptTemplateNotFoundError: If no such template exists.
        """
        path = self._path(template_id)
        if not path.is_file():
            raise PromptTemplateNotFoundError(
                f"Prompt template not found: {template_id}",
                {"template_id": template_id, "prompts_dir": str(self.prompts_dir)},
            )
        return path.read_text(encoding="utf-8")

    def render(self, template_id: str, variables: dict[str, Any]) -> str:
        """Load a template and substitute ``{name}`` for every supplied variable.

        ``None`` values render as empty strings.
        """
        template = self.load(template_id)
        for key, value in variables.items():
            template = template.replace(f"{{{key}}}", "" if value is None else str(value))
        return template

    def list_templates(self) -> list[str]:
        """Return the ids of all registered templates, sorted."""
        if not self.prompts_dir.is_dir():
            logger.warning("Prompts directory does not exist: %s", self.prompts_dir)
            return []
        return sorted(
            p.name[: -len(PROMPT_SUFFIX)]
            for p in self.prompts_dir.iterdir()
            if p.is_file() and p.name.endswith(PROMPT_SUFFIX)
        )

    def exists(self, template_id: str) -> bool:
        return self._path(template_id).is_file()

    def metadata(self, template_id: str) -> dict[str, Any]:
        """Describe a template's placeholders (unique, in order of first use)."""
        template = self.load(template_id)
        placeholders = list(dict.fromkeys(_PLACEHOLDER_RE.findall(template)))
        return {
            "id": template_id,
            "placeholders": placeholders,
            "requires_job_description": "job_description" in placeholders,
            "requires_speaker_name": "speaker_name" in placeholders,
        }
