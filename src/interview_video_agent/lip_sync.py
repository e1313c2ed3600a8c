"""Remote lip-sync rendering via the fal.ai queue API.

One render is submit -> poll status -> fetch result -> download:

    client = FalLipSyncClient(api_key)
    output_url = await render_lipsync(client, video_url, audio_url, dest)

Polling is driven by a ``PollPolicy`` and takes injectable ``sleep`` and
``clock`` callables so it can run against a fake clock.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional
from urllib.parse import urljoin

import httpx

from interview_video_agent.errors import (
    DownloadFailedError,
    LipSyncFailedError,
    LipSyncTimeoutError,
    PipelineError,
    RenderFailedError,
)

logger = logging.getLogger(__name__)

FAL_QUEUE_BASE = "https://queue.fal.run/fal-ai/sync-lipsync/v2"
LIPSYNC_MODEL = "lipsync-2"
SYNC_MODE = "cut_off"

STATUS_IN_QUEUE = "IN_QUEUE"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"

REDIRECT_CODES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 5
# Per-request timeout for rendered video downloads
DOWNLOAD_TIMEOUT_SECONDS = 300.0


@dataclass(frozen=True)
class PollPolicy:
    interval_seconds: float = 5.0
    max_wait_seconds: float = 600.0

    @classmethod
    def from_millis(cls, interval_ms: int, max_wait_ms: int) -> "PollPolicy":
        return cls(interval_seconds=interval_ms / 1000, max_wait_seconds=max_wait_ms / 1000)


@dataclass
class LipSyncStatus:
    request_id: str
    status: str
    payload: dict

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == STATUS_FAILED


class FalLipSyncClient:
    """fal.ai queue client for the sync-lipsync model."""

    def __init__(
        self,
        api_key: str,
        http: Optional[httpx.AsyncClient] = None,
        base_url: str = FAL_QUEUE_BASE,
        model: str = LIPSYNC_MODEL,
        sync_mode: str = SYNC_MODE,
        timeout: float = 60.0,
    ) -> None:
        if not api_key:
            raise ValueError("FAL_API_KEY not set")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.sync_mode = sync_mode
        self._http = http
        self._timeout = timeout
        self._headers = {"Authorization": f"Key {api_key}"}

    @asynccontextmanager
    async def session(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared HTTP client, or a short-lived one when none was injected."""
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def _request(self, method: str, url: str, json: Optional[dict] = None) -> dict:
        async with self.session() as client:
            resp = await client.request(method, url, json=json, headers=self._headers)
            if not resp.is_success:
                logger.error("fal.ai %s %s -> %s: %s", method, url, resp.status_code, resp.text[:500])
            resp.raise_for_status()
            return resp.json()

    async def submit(self, video_url: str, audio_url: str) -> LipSyncStatus:
        data = await self._request(
            "POST",
            self.base_url,
            json={
                "video_url": video_url,
                "audio_url": audio_url,
                "model": self.model,
                "sync_mode": self.sync_mode,
            },
        )
        request_id = data.get("request_id")
        if not request_id:
            raise RenderFailedError("Lip-sync submit returned no request_id", {"response": data})
        logger.info("Lip-sync job submitted: %s", request_id)
        return LipSyncStatus(request_id, data.get("status") or STATUS_IN_QUEUE, data)

    async def get_status(self, request_id: str) -> LipSyncStatus:
        data = await self._request("GET", f"{self.base_url}/requests/{request_id}/status")
        return LipSyncStatus(request_id, data.get("status", ""), data)

    async def get_result(self, request_id: str) -> str:
        """Return the rendered video URL for a completed request."""
        data = await self._request("GET", f"{self.base_url}/requests/{request_id}")
        url = (data.get("video") or {}).get("url")
        if not url:
            raise RenderFailedError("Lip-sync result has no video url", {"request_id": request_id, "response": data})
        return url


async def wait_for_completion(
    client: FalLipSyncClient,
    request_id: str,
    policy: PollPolicy = PollPolicy(),
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """Poll until the request is terminal and return the output video URL.

    Raises:
        LipSyncFailedError: Remote status is FAILED
        LipSyncTimeoutError: No terminal status within ``policy.max_wait_seconds``
    """
    start = clock()
    polls = 0
    while clock() - start < policy.max_wait_seconds:
        status = await client.get_status(request_id)
        polls += 1
        logger.debug("Lip-sync %s status=%s (poll %d)", request_id, status.status, polls)

        if status.is_completed:
            return await client.get_result(request_id)
        if status.is_failed:
            raise LipSyncFailedError(request_id, status.payload.get("error") or status.payload)

        await sleep(policy.interval_seconds)

    raise LipSyncTimeoutError(request_id, policy.max_wait_seconds)


async def download_output(
    url: str,
    dest: str | Path,
    http: Optional[httpx.AsyncClient] = None,
    *,
    max_redirects: int = MAX_REDIRECTS,
    timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
) -> Path:
    """Stream ``url`` to ``dest``, following redirects by hand.

    ``timeout`` applies per request, also on an injected client. A partially
    written file is removed before any error propagates.

    Raises:
        DownloadFailedError: Non-200 final response or too many redirects
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)

    async def _fetch(client: httpx.AsyncClient) -> None:
        current = url
        for _ in range(max_redirects + 1):
            async with client.stream("GET", current, follow_redirects=False, timeout=timeout) as resp:
                if resp.status_code in REDIRECT_CODES:
                    location = resp.headers.get("location")
                    if not location:
                        raise DownloadFailedError(current, resp.status_code, "Redirect without location header")
                    current = urljoin(current, location)
                    continue
                if resp.status_code != 200:
                    raise DownloadFailedError(current, resp.status_code)
                with dest.open("wb") as fh:
                    async for chunk in resp.aiter_bytes():
                        fh.write(chunk)
                return
        raise DownloadFailedError(url, None, f"Too many redirects (>{max_redirects})")

    try:
        if http is not None:
            await _fetch(http)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                await _fetch(client)
    except BaseException:
        dest.unlink(missing_ok=True)
        raise

    logger.info("Downloaded %s -> %s", url, dest)
    return dest


async def render_lipsync(
    client: FalLipSyncClient,
    video_url: str,
    audio_url: str,
    dest: str | Path,
    policy: PollPolicy = PollPolicy(),
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> dict:
    """Submit, wait for and download one lip-sync render.

    Returns:
        dict with request_id, output_url, video_path
    """
    submitted = await client.submit(video_url, audio_url)
    try:
        output_url = await wait_for_completion(client, submitted.request_id, policy, sleep=sleep, clock=clock)
        async with client.session() as http:
            path = await download_output(output_url, dest, http)
    except PipelineError as e:
        e.context.setdefault("request_id", submitted.request_id)
        raise
    except Exception as e:
        raise RenderFailedError(
            f"Lip-sync render failed: {e}",
            {"request_id": submitted.request_id},
        ) from e
    return {"request_id": submitted.request_id, "output_url": output_url, "video_path": str(path)}
