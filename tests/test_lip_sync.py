# Tests for the fal.ai lip-sync client, poll loop and downloads

import json

import httpx
import pytest

from interview_video_agent.errors import (
    DownloadFailedError,
    ErrorKind,
    LipSyncFailedError,
    LipSyncTimeoutError,
    RenderFailedError,
)
from interview_video_agent.lip_sync import (
    DOWNLOAD_TIMEOUT_SECONDS,
    FAL_QUEUE_BASE,
    FalLipSyncClient,
    PollPolicy,
    download_output,
    render_lipsync,
    wait_for_completion,
)

RESULT_URL = "https://cdn.example.com/render/out.mp4"


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeFal:
    """MockTransport handler replaying a scripted status sequence."""

    def __init__(self, statuses, status_payload=None):
        self.statuses = list(statuses)
        self.status_payload = status_payload or {}
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.method == "POST" and url == FAL_QUEUE_BASE:
            self.calls.append("submit")
            self.submitted = json.loads(request.content)
            self.auth = request.headers.get("authorization")
            return httpx.Response(200, json={"request_id": "req-1", "status": "IN_QUEUE"})
        if url.endswith("/requests/req-1/status"):
            self.calls.append("status")
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json={"status": status, **self.status_payload})
        if url.endswith("/requests/req-1"):
            self.calls.append("result")
            return httpx.Response(200, json={"video": {"url": RESULT_URL}})
        if url == RESULT_URL:
            self.calls.append("download")
            return httpx.Response(200, content=b"rendered-video")
        return httpx.Response(404)


@pytest.fixture
def clock():
    return FakeClock()


class TestWaitForCompletion:
    @pytest.mark.asyncio
    async def test_polls_until_completed_then_fetches_result(self, clock):
        fal = FakeFal(["IN_QUEUE", "IN_QUEUE", "COMPLETED"])
        async with httpx.AsyncClient(transport=httpx.MockTransport(fal)) as http:
            client = FalLipSyncClient("fal-key", http=http)
            url = await wait_for_completion(
                client, "req-1", PollPolicy(5, 600), sleep=clock.sleep, clock=clock
            )

        assert url == RESULT_URL
        assert fal.calls == ["status", "status", "status", "result"]
        assert clock.sleeps == [5, 5]

    @pytest.mark.asyncio
    async def test_in_progress_is_treated_as_running(self, clock):
        fal = FakeFal(["IN_QUEUE", "IN_PROGRESS", "COMPLETED"])
        async with httpx.AsyncClient(transport=httpx.MockTransport(fal)) as http:
            client = FalLipSyncClient("fal-key", http=http)
            await wait_for_completion(client, "req-1", PollPolicy(5, 600), sleep=clock.sleep, clock=clock)

        assert fal.calls.count("status") == 3

    @pytest.mark.asyncio
    async def test_never_terminal_times_out(self, clock):
        fal = FakeFal(["IN_PROGRESS"])
        async with httpx.AsyncClient(transport=httpx.MockTransport(fal)) as http:
            client = FalLipSyncClient("fal-key", http=http)
            with pytest.raises(LipSyncTimeoutError) as exc_info:
                await wait_for_completion(client, "req-1", PollPolicy(5, 12), sleep=clock.sleep, clock=clock)

        assert exc_info.value.kind == ErrorKind.TIMEOUT
        assert "12000ms" in str(exc_info.value)
        assert fal.calls == ["status", "status", "status"]
        assert "result" not in fal.calls

    @pytest.mark.asyncio
    async def test_failed_status_raises_with_payload(self, clock):
        fal = FakeFal(["FAILED"], status_payload={"error": "no face detected"})
        async with httpx.AsyncClient(transport=httpx.MockTransport(fal)) as http:
            client = FalLipSyncClient("fal-key", http=http)
            with pytest.raises(LipSyncFailedError) as exc_info:
                await wait_for_completion(client, "req-1", PollPolicy(5, 600), sleep=clock.sleep, clock=clock)

        assert exc_info.value.payload == "no face detected"
        assert exc_info.value.kind == ErrorKind.RENDER_FAILED
        assert str(exc_info.value) == "Lip-sync job failed: no face detected"


class TestRenderLipsync:
    @pytest.mark.asyncio
    async def test_submit_poll_download(self, tmp_path, clock):
        fal = FakeFal(["IN_QUEUE", "IN_QUEUE", "COMPLETED"])
        dest = tmp_path / "out" / "job_01_intro.mp4"
        async with httpx.AsyncClient(transport=httpx.MockTransport(fal)) as http:
            client = FalLipSyncClient("fal-key", http=http)
            result = await render_lipsync(
                client,
                "https://host/inputs/face.mp4",
                "https://host/outputs/a.mp3",
                dest,
                PollPolicy(5, 600),
                sleep=clock.sleep,
                clock=clock,
            )

        assert fal.calls == ["submit", "status", "status", "status", "result", "download"]
        assert fal.submitted == {
            "video_url": "https://host/inputs/face.mp4",
            "audio_url": "https://host/outputs/a.mp3",
            "model": "lipsync-2",
            "sync_mode": "cut_off",
        }
        assert fal.auth == "Key fal-key"
        assert result["request_id"] == "req-1"
        assert dest.read_bytes() == b"rendered-video"

    @pytest.mark.asyncio
    async def test_failure_after_submit_carries_request_id(self, tmp_path, clock):
        fal = FakeFal(["FAILED"])
        async with httpx.AsyncClient(transport=httpx.MockTransport(fal)) as http:
            client = FalLipSyncClient("fal-key", http=http)
            with pytest.raises(LipSyncFailedError) as exc_info:
                await render_lipsync(client, "v", "a", tmp_path / "o.mp4", sleep=clock.sleep, clock=clock)

        assert exc_info.value.context["request_id"] == "req-1"
        assert not (tmp_path / "o.mp4").exists()

    @pytest.mark.asyncio
    async def test_http_error_while_polling_keeps_request_id(self, tmp_path, clock):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"request_id": "req-9"})
            return httpx.Response(502, text="bad gateway")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = FalLipSyncClient("fal-key", http=http)
            with pytest.raises(RenderFailedError) as exc_info:
                await render_lipsync(client, "v", "a", tmp_path / "o.mp4", sleep=clock.sleep, clock=clock)

        assert exc_info.value.context["request_id"] == "req-9"
        assert exc_info.value.kind == ErrorKind.RENDER_FAILED
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_submit_http_error_propagates(self, tmp_path):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="upstream"))
        async with httpx.AsyncClient(transport=transport) as http:
            client = FalLipSyncClient("fal-key", http=http)
            with pytest.raises(httpx.HTTPStatusError):
                await render_lipsync(client, "v", "a", tmp_path / "o.mp4")


class TestDownloadOutput:
    @pytest.mark.asyncio
    async def test_follows_redirect_and_writes_final_content(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/start":
                return httpx.Response(302, headers={"location": "/final"})
            if request.url.path == "/final":
                return httpx.Response(200, content=b"final-bytes")
            return httpx.Response(404)

        dest = tmp_path / "video.mp4"
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await download_output("https://cdn.example.com/start", dest, http)

        assert dest.read_bytes() == b"final-bytes"
        assert [p.name for p in tmp_path.iterdir()] == ["video.mp4"]

    @pytest.mark.asyncio
    async def test_non_200_removes_partial_file(self, tmp_path):
        dest = tmp_path / "video.mp4"
        dest.write_bytes(b"stale partial")
        transport = httpx.MockTransport(lambda request: httpx.Response(403))

        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(DownloadFailedError) as exc_info:
                await download_output("https://cdn.example.com/x", dest, http)

        assert exc_info.value.status_code == 403
        assert str(exc_info.value) == "Download failed: 403"
        assert not dest.exists()

    @pytest.mark.asyncio
    async def test_redirect_loop_is_bounded(self, tmp_path):
        transport = httpx.MockTransport(lambda request: httpx.Response(301, headers={"location": "/again"}))
        dest = tmp_path / "video.mp4"

        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(DownloadFailedError, match="Too many redirects"):
                await download_output("https://cdn.example.com/loop", dest, http, max_redirects=3)

        assert not dest.exists()


def test_poll_policy_from_millis():
    policy = PollPolicy.from_millis(5000, 600000)
    assert policy.interval_seconds == 5
    assert policy.max_wait_seconds == 600


@pytest.mark.asyncio
async def test_download_uses_long_timeout_on_shared_client(tmp_path):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["timeout"] = request.extensions["timeout"]
        return httpx.Response(200, content=b"v")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=5.0) as http:
        await download_output("https://cdn.example.com/v.mp4", tmp_path / "v.mp4", http)

    assert seen["timeout"]["read"] == DOWNLOAD_TIMEOUT_SECONDS == 300.0
