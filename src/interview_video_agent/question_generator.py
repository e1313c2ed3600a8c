# Question generation
# Renders each prompt template and asks the LLM for one question per template

import logging
from typing import Optional

from openai import AsyncOpenAI

from interview_video_agent.client import DEFAULT_MODEL, call_openai
from interview_video_agent.prompt_loader import PromptStore
from interview_video_agent.state import QuestionResult, is_usable_question

logger = logging.getLogger(__name__)

# Canonical question set, in the order questions are asked
DEFAULT_TEMPLATES: list[str] = [
    "intro-video",
    "must-have-requirements-check",
    "tell-about-relevant-experience",
    "key-frameworks-in-use",
    "failed-plan-fix",
]

GENERATION_TEMPERATURE = 0.7
GENERATION_MAX_TOKENS = 500
DEFAULT_SPEAKER_NAME = "our team"


async def generate_from_template(
    template_id: str,
    variables: dict,
    *,
    client: AsyncOpenAI,
    prompts: PromptStore,
    model: str = DEFAULT_MODEL,
) -> str:
    """Render one template and return the model's completion text."""
    prompt = prompts.render(template_id, variables)
    result = await call_openai(
        prompt,
        client=client,
        model=model,
        temperature=GENERATION_TEMPERATURE,
        max_tokens=GENERATION_MAX_TOKENS,
        trace_name=f"Question: {template_id}",
    )
    return result["text"].strip()


async def generate_questions(
    job_description: str,
    *,
    client: AsyncOpenAI,
    prompts: PromptStore,
    language: str = "en",
    speaker_name: Optional[str] = None,
    template_ids: Optional[list[str]] = None,
    model: str = DEFAULT_MODEL,
) -> list[QuestionResult]:
    """Generate one question per template, in template order.

    Unregistered template ids are skipped. A failing template produces a
    ``{"template_id", "error"}`` entry and does not stop the others.
    """
    templates_to_use = template_ids or DEFAULT_TEMPLATES
    available = set(prompts.list_templates())

    variables = {
        "language": language,
        "job_description": job_description,
        "speaker_name": speaker_name or DEFAULT_SPEAKER_NAME,
    }

    results: list[QuestionResult] = []
    for template_id in templates_to_use:
        if template_id not in available:
            logger.warning("Template not found, skipping: %s", template_id)
            continue

        try:
            text = await generate_from_template(
                template_id,
                variables,
                client=client,
                prompts=prompts,
                model=model,
            )
            results.append(QuestionResult(template_id=template_id, text=text))
        except Exception as e:
            logger.error("Error generating from template %s: %s", template_id, e)
            results.append(QuestionResult(template_id=template_id, error=str(e)))

    return results


def combine_questions_to_script(questions: list[QuestionResult]) -> str:
    """Join usable question texts into one script, separated by blank lines."""
    return "\n\n".join(q["text"] for q in questions if is_usable_question(q))
