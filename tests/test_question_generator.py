# Tests for question generation

from unittest.mock import AsyncMock, MagicMock

import pytest

from interview_video_agent.prompt_loader import PromptStore
from interview_video_agent.question_generator import (
    DEFAULT_TEMPLATES,
    combine_questions_to_script,
    generate_questions,
)


def make_response(text: str):
    choice = MagicMock()
    choice.message.content = text
    choice.finish_reason = "stop"
    response = MagicMock()
    response.choices = [choice]
    response.usage = None
    return response


@pytest.fixture
def prompts(tmp_path):
    for template_id in ("alpha", "beta", "gamma"):
        (tmp_path / f"{template_id}.prompt").write_text(
            f"[{template_id}] {{job_description}} / {{speaker_name}} / {{language}}",
            encoding="utf-8",
        )
    return PromptStore(tmp_path)


def echo_client():
    """LLM fake that answers with the rendered prompt."""

    async def create(**kwargs):
        return make_response(kwargs["messages"][0]["content"])

    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=create)
    return client


@pytest.mark.asyncio
async def test_one_question_per_template_in_order(prompts):
    results = await generate_questions(
        "Data engineer",
        client=echo_client(),
        prompts=prompts,
        language="German",
        speaker_name="Olga",
        template_ids=["gamma", "alpha"],
    )

    assert [r["template_id"] for r in results] == ["gamma", "alpha"]
    assert results[0]["text"] == "[gamma] Data engineer / Olga / German"


@pytest.mark.asyncio
async def test_unregistered_templates_are_skipped(prompts):
    requested = ["alpha", "missing-1", "beta", "missing-2", "gamma"]

    results = await generate_questions("JD", client=echo_client(), prompts=prompts, template_ids=requested)

    # N requested, M unregistered -> N - M results
    assert len(results) == 5 - 2
    assert [r["template_id"] for r in results] == ["alpha", "beta", "gamma"]


@pytest.mark.asyncio
async def test_failing_template_is_recorded_and_siblings_continue(prompts):
    async def create(**kwargs):
        if kwargs["messages"][0]["content"].startswith("[beta]"):
            raise RuntimeError("rate limited")
        return make_response("A question?")

    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=create)

    results = await generate_questions(
        "JD", client=client, prompts=prompts, template_ids=["alpha", "beta", "gamma"]
    )

    assert len(results) == 3
    assert results[1] == {"template_id": "beta", "error": "rate limited"}
    assert results[0]["text"] == "A question?"
    assert results[2]["text"] == "A question?"


@pytest.mark.asyncio
async def test_default_speaker_name_and_temperature(prompts):
    client = echo_client()

    results = await generate_questions("JD", client=client, prompts=prompts, template_ids=["alpha"])

    assert "our team" in results[0]["text"]
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["temperature"] == 0.7
    assert kwargs["max_tokens"] == 500


@pytest.mark.asyncio
async def test_defaults_to_canonical_templates(tmp_path):
    for template_id in DEFAULT_TEMPLATES:
        (tmp_path / f"{template_id}.prompt").write_text("{job_description}", encoding="utf-8")

    results = await generate_questions("JD", client=echo_client(), prompts=PromptStore(tmp_path))

    assert [r["template_id"] for r in results] == DEFAULT_TEMPLATES


def test_combine_questions_skips_unusable():
    script = combine_questions_to_script(
        [
            {"template_id": "a", "text": "First?"},
            {"template_id": "b", "error": "boom"},
            {"template_id": "c", "text": ""},
            {"template_id": "d", "text": "Second?"},
        ]
    )
    assert script == "First?\n\nSecond?"
