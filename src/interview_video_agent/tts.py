"""Speech synthesis.

``generate_speech`` writes one MP3 per call. A catalog voice id routes the
request to ElevenLabs; otherwise OpenAI TTS is used with one of its six named
voices, resolved as: explicit voice, then the local profile heuristic, then
the default voice. No retries: provider errors propagate to the caller.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from langsmith import traceable
from openai import AsyncOpenAI

from interview_video_agent.elevenlabs_tts import ELEVENLABS_MODEL, ElevenLabsClient
from interview_video_agent.errors import EmptyTextError
from interview_video_agent.state import SpeechResult

logger = logging.getLogger(__name__)

OPENAI_TTS_MODEL = "tts-1-hd"
DEFAULT_VOICE = "nova"

VOICE_PROFILES: dict[str, dict[str, str]] = {
    "nova": {"gender": "female", "style": "warm", "age": "young"},
    "shimmer": {"gender": "female", "style": "soft", "age": "young"},
    "alloy": {"gender": "neutral", "style": "balanced", "age": "middle"},
    "echo": {"gender": "male", "style": "neutral", "age": "middle"},
    "onyx": {"gender": "male", "style": "deep", "age": "mature"},
    "fable": {"gender": "male", "style": "british", "age": "middle"},
}

AVAILABLE_VOICES: tuple[str, ...] = tuple(VOICE_PROFILES)


def age_bracket(age: Union[int, str, None]) -> Optional[str]:
    """Map a numeric age (or an existing bracket name) to young/middle/mature."""
    if age is None or age == "":
        return None
    if isinstance(age, str):
        if age in ("young", "middle", "mature"):
            return age
        try:
            age = int(age)
        except ValueError:
            return None
    if age < 35:
        return "young"
    if age < 50:
        return "middle"
    return "mature"


def select_voice(
    gender: Optional[str] = None,
    age: Union[int, str, None] = None,
    accent: Optional[str] = None,
    default: str = DEFAULT_VOICE,
) -> str:
    """Pick the OpenAI voice that best matches the speaker profile."""
    if not gender and age in (None, "") and not accent:
        return default

    gender = (gender or "").lower() or None
    # Only a binary gender narrows the pool; anything else is scored on age and accent
    binary = gender in ("male", "female")
    if binary:
        candidates = [name for name, p in VOICE_PROFILES.items() if p["gender"] in (gender, "neutral")]
    else:
        candidates = list(VOICE_PROFILES)

    bracket = age_bracket(age)
    accent_lower = (accent or "").lower()

    def score(name: str) -> int:
        profile = VOICE_PROFILES[name]
        points = 0
        if binary and profile["gender"] == gender:
            points += 10
        if bracket and profile["age"] == bracket:
            points += 5
        if "british" in accent_lower and profile["style"] == "british":
            points += 3
        if ("deep" in accent_lower or "author" in accent_lower) and name == "onyx":
            points += 3
        return points

    # max() keeps the first of equal scores, i.e. profile order
    return max(candidates, key=score)


@traceable(run_type="tool", name="Speech Synthesis")
async def generate_speech(
    text: str,
    output_path: Union[str, Path],
    *,
    voice: Optional[str] = None,
    voice_id: Optional[str] = None,
    provider: Optional[str] = None,
    gender: Optional[str] = None,
    accent: Optional[str] = None,
    age: Union[int, str, None] = None,
    openai_client: Optional[AsyncOpenAI] = None,
    elevenlabs: Optional[ElevenLabsClient] = None,
    model: str = OPENAI_TTS_MODEL,
    default_voice: str = DEFAULT_VOICE,
) -> SpeechResult:
    """Synthesize ``text`` to ``output_path`` (overwritten if present).

    Raises:
        EmptyTextError: If ``text`` is blank
        ValueError: If the provider needed for the request is not configured
    """
    if not text or not text.strip():
        raise EmptyTextError("Text is required for speech synthesis", {"output_path": str(output_path)})

    dest = Path(output_path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    if voice_id or provider == "elevenlabs":
        if not voice_id:
            raise ValueError("ElevenLabs synthesis requires a voice_id")
        if elevenlabs is None:
            raise ValueError("ElevenLabs client not configured")
        logger.info("Generating speech with ElevenLabs voice %s", voice_id)
        await elevenlabs.synthesize_to_file(text, voice_id, dest)
        return SpeechResult(
            audio_path=str(dest),
            voice=voice_id,
            provider="elevenlabs",
            model=ELEVENLABS_MODEL,
            text_length=len(text),
            voice_profile=None,
        )

    if openai_client is None:
        raise ValueError("OpenAI client not configured")

    if voice in VOICE_PROFILES:
        selected = voice
    else:
        if voice:
            logger.warning("Unknown OpenAI voice %r, selecting from profile", voice)
        selected = select_voice(gender=gender, age=age, accent=accent, default=default_voice)

    logger.info("Generating speech with OpenAI voice %s", selected)
    response = await openai_client.audio.speech.create(
        model=model,
        voice=selected,
        input=text,
        response_format="mp3",
    )
    dest.write_bytes(response.content)

    return SpeechResult(
        audio_path=str(dest),
        voice=selected,
        provider="openai",
        model=model,
        text_length=len(text),
        voice_profile=VOICE_PROFILES.get(selected),
    )


def get_available_voices() -> list[dict]:
    return [{"id": name, **profile} for name, profile in VOICE_PROFILES.items()]
