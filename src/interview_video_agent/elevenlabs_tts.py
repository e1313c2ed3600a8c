import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
ELEVENLABS_MODEL = "eleven_multilingual_v2"

# Tuned for a calm, consistent interviewer delivery
DEFAULT_VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.0,
    "use_speaker_boost": True,
}

logger = logging.getLogger(__name__)


class ElevenLabsClient:
    """ElevenLabs text-to-speech API wrapper.

    Pass ``http`` to share one ``httpx.AsyncClient`` across calls (tests pass
    one built on ``httpx.MockTransport``). Without it each call opens its own.
    """

    def __init__(
        self,
        api_key: str,
        http: Optional[httpx.AsyncClient] = None,
        base_url: str = ELEVENLABS_API_BASE,
        timeout: float = 120.0,
    ) -> None:
        if not api_key:
            raise ValueError("ELEVENLABS_API_KEY not set")
        self.base_url = base_url.rstrip("/")
        self._http = http
        self._timeout = timeout
        self._headers = {"xi-api-key": api_key}

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        model_id: str = ELEVENLABS_MODEL,
        voice_settings: Optional[dict] = None,
    ) -> bytes:
        """Return MP3 bytes for ``text`` spoken by ``voice_id``."""
        url = f"{self.base_url}/text-to-speech/{voice_id}"
        body = {
            "text": text,
            "model_id": model_id,
            "voice_settings": voice_settings or DEFAULT_VOICE_SETTINGS,
        }
        logger.debug("ElevenLabs TTS voice=%s chars=%d", voice_id, len(text))
        async with self._session() as client:
            resp = await client.post(
                url,
                json=body,
                headers={**self._headers, "Accept": "audio/mpeg"},
            )
            if not resp.is_success:
                logger.error(
                    "ElevenLabs API error %s for voice %s: %s",
                    resp.status_code,
                    voice_id,
                    resp.text[:500],
                )
            resp.raise_for_status()
            return resp.content

    async def synthesize_to_file(self, text: str, voice_id: str, output_path: str | Path, **kwargs) -> Path:
        dest = Path(output_path)
        audio = await self.synthesize(text, voice_id, **kwargs)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(audio)
        return dest

    async def list_voices(self) -> list[dict]:
        """List the voices available to the API key's account."""
        async with self._session() as client:
            resp = await client.get(f"{self.base_url}/voices", headers=self._headers)
            resp.raise_for_status()
            return resp.json().get("voices", [])
