# Shared result types
# Plain dict shapes returned by the engine tasks and stored on job records

from typing import Literal, Optional, TypedDict

AccentType = Literal[
    "american",
    "british",
    "australian",
    "indian",
    "arabic",
    "russian",
    "chinese",
    "latam",
    "spanish",
    "german",
    "french",
    "italian",
    "neutral",
]

GenderType = Literal["male", "female", "neutral"]
AgeBracket = Literal["young", "middle", "mature"]
TTSProvider = Literal["openai", "elevenlabs"]

VALID_ACCENTS: tuple[str, ...] = AccentType.__args__
VALID_GENDERS: tuple[str, ...] = GenderType.__args__
VALID_AGE_BRACKETS: tuple[str, ...] = AgeBracket.__args__


class QuestionResult(TypedDict, total=False):
    """One generated question: ``text`` on success, ``error`` on failure"""

    template_id: str
    text: str
    error: str


class VoiceCriteria(TypedDict):
    """Voice characteristics inferred from the job context"""

    accent: str
    gender: str
    age: str
    reasoning: str


class VoiceSelection(TypedDict):
    """Result of automatic voice selection"""

    voiceId: str
    voiceName: str
    voiceDescription: str
    analysis: VoiceCriteria


class SpeechResult(TypedDict, total=False):
    """Result of one TTS call"""

    audio_path: str
    voice: str
    provider: TTSProvider
    model: str
    text_length: int
    voice_profile: Optional[dict]


def is_usable_question(question: dict) -> bool:
    """A question is usable iff it has non-empty text and no error."""
    return bool(question.get("text")) and not question.get("error")
