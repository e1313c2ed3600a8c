"""Automatic voice selection.

Two stages:

1. ``analyze_job_context`` asks the LLM to classify the accent, gender and
   age bracket that suit the job posting and speaker. If the call or the JSON
   parse fails it falls back to ``detect_from_name``.
2. ``select_voice_from_library`` scores every catalog voice against those
   criteria and returns the best one. Ties keep catalog order.

Selection is advisory: callers decide what to do when it raises.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from openai import AsyncOpenAI

from interview_video_agent.client import CLASSIFIER_MODEL, call_openai_json
from interview_video_agent.state import (
    VALID_ACCENTS,
    VALID_AGE_BRACKETS,
    VALID_GENDERS,
    VoiceCriteria,
    VoiceSelection,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceDescriptor:
    """One entry of the ElevenLabs voice catalog."""

    id: str
    name: str
    accent: str
    gender: str
    age: str
    description: str

    def to_dict(self) -> dict:
        return asdict(self)


# Curated ElevenLabs voices suited to a professional interview context
VOICE_LIBRARY: tuple[VoiceDescriptor, ...] = (
    # British English
    VoiceDescriptor("JBFqnCBsd6RMkjVDRZzb", "George", "british", "male", "middle", "warm, professional British male"),
    VoiceDescriptor("onwK4e9ZLuTAKqWW03F9", "Daniel", "british", "male", "middle", "deep British male"),
    VoiceDescriptor("ThT5KcBeYPX3keUQqHPh", "Dorothy", "british", "female", "young", "pleasant British female"),
    VoiceDescriptor("Xb7hH8MSUJpSbSDYk0k2", "Alice", "british", "female", "middle", "confident British female"),
    # American English
    VoiceDescriptor("21m00Tcm4TlvDq8ikWAM", "Rachel", "american", "female", "young", "calm American female"),
    VoiceDescriptor("XrExE9yKIg1WjnnlVkGX", "Matilda", "american", "female", "young", "warm American female"),
    VoiceDescriptor("LcfcDJNUP1GQjkzn1xUU", "Emily", "american", "female", "young", "calm American female"),
    VoiceDescriptor("ErXwobaYiN019PkySvjV", "Antoni", "american", "male", "young", "professional American male"),
    VoiceDescriptor("TxGEqnHWrfWFTfGW9XjX", "Josh", "american", "male", "young", "deep American male"),
    VoiceDescriptor("pNInz6obpgDQGcFmaJgB", "Adam", "american", "male", "middle", "deep American male"),
    VoiceDescriptor("VR6AewLTigWG4xSOukaG", "Arnold", "american", "male", "mature", "authoritative American male"),
    # Australian English
    VoiceDescriptor("ZQe5CZNOzWyzPSCn5a3c", "James", "australian", "male", "mature", "calm Australian male"),
    VoiceDescriptor("IKne3meq5aSn9XLyUdCD", "Charlie", "australian", "male", "middle", "casual Australian male"),
    # Indian English
    VoiceDescriptor("N2al4jd45e882svx17SU", "Aakash", "indian", "male", "middle", "professional Indian male"),
    VoiceDescriptor("k7nOSUCadIEwB6fdJmbw", "Ahmed", "indian", "male", "middle", "warm professional Indian male"),
    VoiceDescriptor("mfMM3ijQgz8QtMeKifko", "Riya", "indian", "female", "young", "professional Indian female"),
    VoiceDescriptor("pGYsZruQzo8cpdFVZyJc", "Smriti", "indian", "female", "middle", "warm Indian female"),
    # Arabic / Gulf
    VoiceDescriptor("G1HOkzin3NMwRHSq60UI", "Chaouki", "arabic", "male", "middle", "deep professional Arabic male"),
    VoiceDescriptor("5Spsi3mCH9e7futpnGE5", "Fares", "arabic", "male", "middle", "warm Gulf Arabic male"),
    VoiceDescriptor("qi4PkV9c01kb869Vh7Su", "Asmaa", "arabic", "female", "young", "gentle Arabic female"),
    VoiceDescriptor("a1KZUXKFVFDOb33I1uqr", "Salma", "arabic", "female", "young", "young talented Arabic female"),
    # Russian
    VoiceDescriptor("1qd9R09Ljlx9V1Ok0t5S", "Ivan", "russian", "male", "middle", "deep velvety Russian male"),
    VoiceDescriptor("kwajW3Xh5svCeKU5ky2S", "Dmitry", "russian", "male", "young", "cheerful Russian male"),
    VoiceDescriptor("8M81RK3MD7u4DOJpu2G5", "Viktoriia", "russian", "female", "young", "clear resonant Russian female"),
    VoiceDescriptor("C3FusDjPequ6qFchqpzu", "Ekaterina", "russian", "female", "middle", "warm engaging Russian female"),
    # Chinese / Mandarin
    VoiceDescriptor("4VZIsMPtgggwNg7OXbPY", "James Gao", "chinese", "male", "middle", "calm friendly Chinese male"),
    VoiceDescriptor("Ixmp8zKRajBp10jLtsrq", "Lazarus", "chinese", "male", "young", "neutral Mandarin male"),
    VoiceDescriptor("bhJUNIXWQQ94l8eI2VUf", "Amy", "chinese", "female", "young", "natural friendly Chinese female"),
    VoiceDescriptor("ByhETIclHirOlWnWKhHc", "ShanShan", "chinese", "female", "young", "youthful lively Chinese female"),
    # Latin American Spanish
    VoiceDescriptor("wSFJ1H2XywFI0wLdTylp", "Karim", "latam", "male", "young", "neutral Mexican male"),
    VoiceDescriptor("W6Z2FAa578IKOGSVo2sA", "Eduardo", "latam", "male", "middle", "authentic Mexican male"),
    VoiceDescriptor("J4vZAFDEcpenkMp3f3R9", "Valentina", "latam", "female", "young", "conversational Colombian female"),
    VoiceDescriptor("VmejBeYhbrcTPwDniox7", "Lina", "latam", "female", "young", "warm friendly Colombian female"),
    # Castilian Spanish
    VoiceDescriptor("usTmJvQOCyW3nRcZ8OEo", "Dante", "spanish", "male", "middle", "dynamic Castilian Spanish male"),
    VoiceDescriptor("1vLlJCWRhRcfmTewn4cm", "Javier", "spanish", "male", "middle", "expressive Spanish male"),
    VoiceDescriptor("dHdIIFZMLzs6XfsGtmIP", "Sheila", "spanish", "female", "middle", "dynamic Spanish female"),
    # German / French / Italian
    VoiceDescriptor("ODq5zmih8GrVes37Dizd", "Patrick", "german", "male", "middle", "clear German male"),
    VoiceDescriptor("XB0fDUnXU5powFXDhCwa", "Charlotte", "french", "female", "young", "elegant French female"),
    VoiceDescriptor("zcAOhNBS3c14rBihAFp1", "Giovanni", "italian", "male", "young", "Italian-English male"),
    # Neutral / international
    VoiceDescriptor("EXAVITQu4vr4xnSDxMaL", "Sarah", "neutral", "female", "young", "soft neutral female"),
    VoiceDescriptor("pMsXgVXv3BLzUgSXRplE", "Serena", "neutral", "female", "middle", "pleasant neutral female"),
    VoiceDescriptor("nPczCjzI2devNBz1zQrb", "Brian", "neutral", "male", "middle", "deep neutral male"),
)

# Lower-case name fragments that hint at an accent; checked in this order
NAME_ACCENT_MAP: dict[str, tuple[str, ...]] = {
    "indian": ("raj", "priya", "amit", "neha", "vikram", "ananya", "arjun", "deepa", "krishna", "lakshmi",
               "ravi", "sunita", "arun", "kavita", "sanjay", "meera", "aakash", "riya", "smriti", "rahul",
               "pooja", "aditya", "shreya"),
    "arabic": ("ahmed", "fatima", "mohammed", "aisha", "omar", "layla", "hassan", "sara", "mahmoud", "nour",
               "khalid", "yasmin", "ali", "hana", "youssef", "amira", "fares", "salma", "asmaa", "rashid",
               "maryam", "sultan", "noura"),
    "british": ("william", "elizabeth", "james", "victoria", "george", "charlotte", "harry", "emma", "oliver",
                "sophia", "edward", "alice", "henry", "margaret"),
    "german": ("hans", "greta", "klaus", "ingrid", "wolfgang", "helga", "fritz", "ursula", "dieter", "brigitte",
               "heinrich", "anna", "stefan", "katrin"),
    "latam": ("carlos", "maria", "jose", "ana", "miguel", "carmen", "antonio", "isabel", "juan", "pablo",
              "lucia", "diego", "elena", "valentina", "santiago", "camila", "alejandro", "gabriela", "fernando",
              "adriana", "ricardo", "natalia"),
    "spanish": ("javier", "sofia", "alvaro", "marta", "ines", "gonzalo", "pilar", "rafael", "rocio"),
    "french": ("pierre", "marie", "jean", "claire", "louis", "sophie", "michel", "camille", "francois",
               "aurelie", "antoine", "juliette", "laurent", "celine"),
    "russian": ("ivan", "natasha", "dmitry", "olga", "sergey", "alexei", "elena", "nikolai", "tatiana",
                "vladimir", "andrei", "ekaterina", "viktor", "anastasia", "mikhail", "irina"),
    "chinese": ("wei", "ming", "li", "wang", "chen", "zhang", "liu", "yang", "huang", "zhao", "xiao", "jing",
                "ying", "mei", "hong", "jun", "hui", "lin", "yu", "fang"),
    "italian": ("marco", "giulia", "luca", "francesca", "matteo", "chiara", "lorenzo", "valentina", "andrea",
                "alessia", "giovanni", "sofia"),
}

CONTEXT_PROMPT = """Analyze this job posting and speaker information to determine the best voice characteristics for a video interview.

Job Description:
{job_description}

Speaker Name: {speaker_name}
Language: {language}

Based on the job location, company context, speaker name origin, and overall tone, determine:

1. **accent**: The most appropriate accent. Choose from: american, british, australian, indian, arabic, russian, chinese, latam, spanish, german, french, italian, neutral
   - Consider job location:
     * UK/London -> british
     * US/California/New York -> american
     * Dubai/UAE/Saudi/Middle East -> arabic
     * India/Bangalore/Mumbai -> indian
     * Russia/Moscow -> russian
     * China/Beijing/Shanghai/Hong Kong -> chinese
     * Mexico/Colombia/Argentina/Latin America -> latam
     * Spain/Madrid/Barcelona -> spanish
     * Germany/Berlin/Munich -> german
     * France/Paris -> french
     * Italy/Milan/Rome -> italian
     * Australia/Sydney -> australian
   - Consider speaker name origin (Indian name -> indian, Arabic name -> arabic, Chinese name -> chinese, etc.)
   - If unclear, use "neutral" or "american"

2. **gender**: male, female or neutral
   - If speaker name clearly indicates gender, use that
   - Otherwise default to "neutral"

3. **age**: young (20-35), middle (35-50), or mature (50+)
   - Senior/executive roles -> mature
   - Entry-level -> young
   - Default -> middle

4. **reasoning**: Brief explanation of your choice (1-2 sentences)

Respond in JSON format:
{{"accent": "...", "gender": "...", "age": "...", "reasoning": "..."}}"""


def _neutral_criteria(reasoning: str) -> VoiceCriteria:
    return VoiceCriteria(accent="neutral", gender="neutral", age="middle", reasoning=reasoning)


def _coerce(value: object, allowed: tuple[str, ...], default: str) -> str:
    text = str(value or "").strip().lower()
    return text if text in allowed else default


def detect_from_name(speaker_name: Optional[str]) -> VoiceCriteria:
    """Deterministic fallback: infer an accent from fragments of the speaker's name."""
    if not speaker_name:
        return _neutral_criteria("No name provided, using neutral voice")

    name_lower = speaker_name.lower().strip()
    for accent, names in NAME_ACCENT_MAP.items():
        if any(n in name_lower for n in names):
            return VoiceCriteria(
                accent=accent,
                gender="neutral",
                age="middle",
                reasoning=f'Name "{speaker_name}" suggests {accent} origin',
            )

    return _neutral_criteria("Could not determine accent from name")


async def analyze_job_context(
    job_description: str,
    speaker_name: Optional[str],
    language: Optional[str],
    *,
    client: Optional[AsyncOpenAI],
    model: str = CLASSIFIER_MODEL,
) -> VoiceCriteria:
    """Classify {accent, gender, age} for a job with the LLM, or fall back to the name heuristic."""
    prompt = CONTEXT_PROMPT.format(
        job_description=job_description,
        speaker_name=speaker_name or "Not specified",
        language=language or "English",
    )
    try:
        if client is None:
            raise ValueError("No LLM client configured for voice analysis")
        result = await call_openai_json(
            prompt,
            client=client,
            model=model,
            temperature=0.3,
            trace_name="Voice Context Analysis",
        )
    except Exception as e:
        logger.error("Error analyzing job context: %s", e)
        return detect_from_name(speaker_name)

    return VoiceCriteria(
        accent=_coerce(result.get("accent"), VALID_ACCENTS, "neutral"),
        gender=_coerce(result.get("gender"), VALID_GENDERS, "neutral"),
        age=_coerce(result.get("age"), VALID_AGE_BRACKETS, "middle"),
        reasoning=str(result.get("reasoning") or ""),
    )


def score_voice(voice: VoiceDescriptor, criteria: VoiceCriteria) -> int:
    """Score one catalog voice against the requested criteria."""
    accent = criteria.get("accent")
    gender = criteria.get("gender")
    age = criteria.get("age")
    score = 0

    # Accent match dominates
    if voice.accent == accent:
        score += 100
    elif voice.accent == "neutral":
        score += 30
    elif accent == "neutral":
        score += 50

    if gender == "neutral":
        score += 20
    elif voice.gender == gender:
        score += 50

    if voice.age == age:
        score += 20
    elif age == "middle":
        score += 10

    return score


def select_voice_from_library(
    criteria: VoiceCriteria,
    library: tuple[VoiceDescriptor, ...] = VOICE_LIBRARY,
) -> VoiceDescriptor:
    """Return the highest-scoring voice; ties resolve to the earliest catalog entry."""
    if not library:
        raise ValueError("Voice library is empty")
    # sorted() is stable, so equal scores keep catalog order
    ranked = sorted(library, key=lambda v: score_voice(v, criteria), reverse=True)
    return ranked[0]


def find_voice(voice_id: str, library: tuple[VoiceDescriptor, ...] = VOICE_LIBRARY) -> Optional[VoiceDescriptor]:
    return next((v for v in library if v.id == voice_id), None)


async def auto_select_voice(
    job_description: str,
    speaker_name: Optional[str],
    language: Optional[str],
    *,
    client: Optional[AsyncOpenAI],
    model: str = CLASSIFIER_MODEL,
) -> VoiceSelection:
    """Pick a catalog voice that fits the job context."""
    logger.info("Analyzing voice context for speaker: %s", speaker_name or "unknown")

    criteria = await analyze_job_context(
        job_description,
        speaker_name,
        language,
        client=client,
        model=model,
    )
    logger.info(
        "Voice analysis: accent=%s gender=%s age=%s (%s)",
        criteria["accent"],
        criteria["gender"],
        criteria["age"],
        criteria["reasoning"],
    )

    voice = select_voice_from_library(criteria)
    logger.info("Selected voice %s (%s): %s", voice.name, voice.id, voice.description)

    return VoiceSelection(
        voiceId=voice.id,
        voiceName=voice.name,
        voiceDescription=voice.description,
        analysis=criteria,
    )
