# Tests for automatic voice selection

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from interview_video_agent.voice_selector import (
    VOICE_LIBRARY,
    VoiceDescriptor,
    analyze_job_context,
    auto_select_voice,
    detect_from_name,
    find_voice,
    score_voice,
    select_voice_from_library,
)


def llm_returning(payload):
    choice = MagicMock()
    choice.message.content = payload if isinstance(payload, str) else json.dumps(payload)
    choice.finish_reason = "stop"
    response = MagicMock()
    response.choices = [choice]
    response.usage = None
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


def criteria(accent="neutral", gender="neutral", age="middle"):
    return {"accent": accent, "gender": gender, "age": age, "reasoning": ""}


class TestDetectFromName:
    def test_indian_name(self):
        result = detect_from_name("Priya Sharma")
        assert result["accent"] == "indian"
        assert result["gender"] == "neutral"
        assert result["age"] == "middle"

    def test_arabic_name(self):
        assert detect_from_name("Ahmed Hassan")["accent"] == "arabic"

    def test_case_insensitive(self):
        assert detect_from_name("PIERRE")["accent"] == "french"

    def test_unknown_name_is_neutral(self):
        result = detect_from_name("Zorg")
        assert (result["accent"], result["gender"], result["age"]) == ("neutral", "neutral", "middle")

    def test_missing_name_is_neutral(self):
        assert detect_from_name(None)["reasoning"] == "No name provided, using neutral voice"


class TestScoring:
    def test_exact_match_wins(self):
        voice = select_voice_from_library(criteria("british", "female", "young"))
        assert voice.name == "Dorothy"

    def test_accent_gender_age_combination(self):
        voice = select_voice_from_library(criteria("russian", "male", "young"))
        assert voice.name == "Dmitry"

    def test_ties_resolve_to_catalog_order(self):
        # Serena and Brian both score 140; Serena comes first in the catalog
        voice = select_voice_from_library(criteria())
        assert voice.name == "Serena"

    def test_score_components(self):
        voice = VoiceDescriptor("id", "X", "neutral", "female", "young", "")
        # neutral-accented candidate +30, gender match +50, age mismatch with middle request +10
        assert score_voice(voice, criteria("british", "female", "middle")) == 30 + 50 + 10
        # neutral target accent +50, neutral gender +20, exact age +20
        other = VoiceDescriptor("id2", "Y", "german", "male", "young", "")
        assert score_voice(other, criteria("neutral", "neutral", "young")) == 50 + 20 + 20

    def test_selection_is_deterministic(self):
        wanted = criteria("latam", "female", "young")
        assert select_voice_from_library(wanted).id == select_voice_from_library(wanted).id

    def test_empty_library_raises(self):
        with pytest.raises(ValueError):
            select_voice_from_library(criteria(), library=())

    def test_catalog_ids_are_unique(self):
        ids = [v.id for v in VOICE_LIBRARY]
        assert len(ids) == len(set(ids))
        assert find_voice(ids[0]) is VOICE_LIBRARY[0]
        assert find_voice("nope") is None


class TestAnalyzeJobContext:
    @pytest.mark.asyncio
    async def test_uses_llm_classification(self):
        client = llm_returning({"accent": "German", "gender": "male", "age": "mature", "reasoning": "Berlin"})

        result = await analyze_job_context("CTO in Berlin", "Klaus", "English", client=client)

        assert result == {"accent": "german", "gender": "male", "age": "mature", "reasoning": "Berlin"}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_out_of_range_values_are_coerced(self):
        client = llm_returning({"accent": "klingon", "gender": "robot", "age": "ancient"})

        result = await analyze_job_context("JD", None, None, client=client)

        assert (result["accent"], result["gender"], result["age"]) == ("neutral", "neutral", "middle")

    @pytest.mark.asyncio
    async def test_llm_error_falls_back_to_name(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("down"))

        result = await analyze_job_context("JD", "Vikram", "English", client=client)

        assert result["accent"] == "indian"

    @pytest.mark.asyncio
    async def test_unparseable_json_falls_back_to_name(self):
        result = await analyze_job_context("JD", "Marco", "English", client=llm_returning("sorry, no"))

        assert result["accent"] == "italian"

    @pytest.mark.asyncio
    async def test_no_client_falls_back_to_name(self):
        result = await analyze_job_context("JD", "Hans", "English", client=None)

        assert result["accent"] == "german"


@pytest.mark.asyncio
async def test_auto_select_voice_returns_catalog_entry():
    client = llm_returning({"accent": "british", "gender": "female", "age": "young", "reasoning": "London office"})

    selection = await auto_select_voice("Designer in London", "Emma", "English", client=client)

    assert selection["voiceId"] == "ThT5KcBeYPX3keUQqHPh"
    assert selection["voiceName"] == "Dorothy"
    assert selection["analysis"]["reasoning"] == "London office"
