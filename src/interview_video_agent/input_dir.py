"""Per-job input directories.

A job input directory may hold:

- ``job-description.md``: the posting text
- ``hiring-manager-info.md``: ``key: value`` lines (name, language, accent,
  gender, age) describing the speaker
- a source video (``.mp4``/``.mov``/``.webm``) for lip-sync

``default-input/`` under the same root supplies a fallback source video.
"""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

JOB_DESCRIPTION_FILE = "job-description.md"
HIRING_MANAGER_FILE = "hiring-manager-info.md"
DEFAULT_INPUT_DIR = "default-input"
VIDEO_SUFFIXES = (".mp4", ".mov", ".webm")

_MALE_VALUES = {"male", "m", "мужской"}
_FEMALE_VALUES = {"female", "f", "женский"}

FEMALE_NAMES = frozenset({
    "anna", "maria", "elena", "olga", "natasha", "kate", "sarah", "emma", "lisa", "julia",
    "sofia", "victoria", "alexandra", "marina", "irina", "svetlana", "tatiana", "ekaterina",
    "anastasia", "daria",
})
MALE_NAMES = frozenset({
    "john", "mike", "david", "alex", "nikita", "dmitry", "sergey", "ivan", "andrey", "pavel",
    "maxim", "vladimir", "oleg", "igor", "roman", "artem", "denis", "konstantin", "emre", "ahmed",
})


def normalize_gender(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    lower = value.strip().lower()
    if lower in _MALE_VALUES:
        return "male"
    if lower in _FEMALE_VALUES:
        return "female"
    return None


def detect_gender_from_name(name: Optional[str]) -> Optional[str]:
    """Guess gender from the first name; None when the name is not in either list."""
    if not name or not name.strip():
        return None
    first = name.strip().split()[0].lower()
    if first in FEMALE_NAMES:
        return "female"
    if first in MALE_NAMES:
        return "male"
    return None


def parse_hiring_manager_info(content: str) -> dict:
    """Parse ``key: value`` lines into a speaker profile.

    Keys are case-insensitive; lines without a colon or with an empty value
    are ignored. Language defaults to English.
    """
    info: dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if ":" not in stripped:
            continue
        key, _, value = stripped.partition(":")
        key, value = key.strip().lower(), value.strip()
        if key and value:
            info[key] = value

    age: Optional[int] = None
    if info.get("age"):
        digits = "".join(ch for ch in info["age"].split()[0] if ch.isdigit())
        age = int(digits) if digits else None

    return {
        "name": info.get("name"),
        "language": info.get("language") or "English",
        "accent": info.get("accent"),
        "gender": normalize_gender(info.get("gender")),
        "age": age,
    }


def derive_locale(language: Optional[str]) -> str:
    """Template-video locale for a language name or code."""
    if not language:
        return "en"
    lower = language.strip().lower()
    if lower in ("russian", "ru", "русский"):
        return "ru"
    if len(lower) == 2 and lower.isalpha():
        return lower
    return "en"


def find_video_file(directory: str | Path) -> Optional[Path]:
    """First video file in ``directory`` by name, or None."""
    path = Path(directory)
    if not path.is_dir():
        return None
    videos = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() in VIDEO_SUFFIXES)
    return videos[0] if videos else None


def resolve_job_input_dir(input_root: str | Path, job_input_dir: str) -> Path:
    """Resolve ``job_input_dir`` under ``input_root``, refusing paths that escape it."""
    root = Path(input_root).resolve()
    candidate = (root / job_input_dir).resolve()
    if candidate != root and root not in candidate.parents:
        raise ValueError(f"job_input_dir escapes the input directory: {job_input_dir}")
    return candidate


def load_job_input(input_root: str | Path, job_input_dir: str) -> dict:
    """Read whatever the job input directory provides.

    Returns:
        dict with job_description (str or None), speaker (dict or None),
        video_path (str or None) and the resolved directory
    """
    directory = resolve_job_input_dir(input_root, job_input_dir)
    if not directory.is_dir():
        raise FileNotFoundError(f"Job input directory not found: {directory}")

    job_description = None
    jd_path = directory / JOB_DESCRIPTION_FILE
    if jd_path.is_file():
        job_description = jd_path.read_text(encoding="utf-8").strip() or None

    speaker = None
    hm_path = directory / HIRING_MANAGER_FILE
    if hm_path.is_file():
        speaker = parse_hiring_manager_info(hm_path.read_text(encoding="utf-8"))

    video = find_video_file(directory)
    logger.info(
        "Loaded job input %s (description=%s, speaker=%s, video=%s)",
        directory.name,
        job_description is not None,
        speaker is not None,
        video.name if video else None,
    )
    return {
        "directory": str(directory),
        "job_description": job_description,
        "speaker": speaker,
        "video_path": str(video) if video else None,
    }
