# Template overlay rendering
# Replaces a pre-recorded template clip's audio track with synthesized speech (ffmpeg)

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from interview_video_agent.errors import RenderFailedError

logger = logging.getLogger(__name__)

FFMPEG_BIN = "ffmpeg"
DEFAULT_LOCALE = "default"
TEMPLATE_SUFFIX = ".mp4"


def ffmpeg_overlay_args(video_path: str | Path, audio_path: str | Path, output_path: str | Path) -> list[str]:
    """Copy the video stream, take audio from the speech file, stop at the shorter stream."""
    return [
        "-y",
        "-i", str(video_path),
        "-i", str(audio_path),
        "-c:v", "copy",
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-shortest",
        str(output_path),
    ]


def find_template_video(templates_dir: str | Path, template_id: str, locale: Optional[str]) -> Optional[Path]:
    """Locate ``{locale}/{template_id}.mp4``, falling back to the default bucket."""
    root = Path(templates_dir)
    buckets = [locale] if locale and locale != DEFAULT_LOCALE else []
    buckets.append(DEFAULT_LOCALE)
    for bucket in buckets:
        candidate = root / bucket / f"{template_id}{TEMPLATE_SUFFIX}"
        if candidate.is_file():
            return candidate
    return None


def missing_templates(templates_dir: str | Path, template_ids: Iterable[str], locale: Optional[str]) -> list[str]:
    """Distinct template ids (first-seen order) with no video for ``locale``."""
    missing = []
    for template_id in dict.fromkeys(template_ids):
        if find_template_video(templates_dir, template_id, locale) is None:
            missing.append(template_id)
    return missing


def has_all_templates(templates_dir: str | Path, template_ids: Iterable[str], locale: Optional[str]) -> bool:
    return not missing_templates(templates_dir, template_ids, locale)


async def overlay_audio(
    video_path: str | Path,
    audio_path: str | Path,
    output_path: str | Path,
    ffmpeg: str = FFMPEG_BIN,
) -> Path:
    """Mux ``audio_path`` onto ``video_path`` and write ``output_path``.

    Raises:
        RenderFailedError: Missing input, ffmpeg not spawnable, or non-zero exit
    """
    video_path, audio_path, output_path = Path(video_path), Path(audio_path), Path(output_path)
    for label, path in (("Video", video_path), ("Audio", audio_path)):
        if not path.is_file():
            raise RenderFailedError(f"{label} file not found: {path}", {"path": str(path)})

    output_path.parent.mkdir(parents=True, exist_ok=True)
    args = ffmpeg_overlay_args(video_path, audio_path, output_path)
    logger.debug("Running %s %s", ffmpeg, " ".join(args))

    try:
        proc = await asyncio.create_subprocess_exec(
            ffmpeg,
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise RenderFailedError(f"Failed to start ffmpeg: {e}", {"ffmpeg": ffmpeg}) from e

    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        tail = stderr.decode(errors="replace")[-500:]
        raise RenderFailedError(
            f"ffmpeg exited with code {proc.returncode}",
            {"returncode": proc.returncode, "stderr": tail, "output_path": str(output_path)},
        )

    logger.info("Overlay rendered: %s", output_path)
    return output_path
