"""
Unit tests for the OpenRouter relay.

The real client runs against FakeOpenRouter (an httpx.MockTransport),
so payload building, status mapping and streaming are all exercised
without a network.
"""

import asyncio
import base64

import httpx
import pytest

from videolens.core.analysis.errors import (
    EmptyUpstreamResult,
    ServerMisconfigured,
    StreamInterrupted,
    UpstreamError,
)
from videolens.core.analysis.models import AnalysisRequest, EmbeddedMedia, RemoteMedia
from videolens.infrastructure.openrouter.client import (
    CompletionResponse,
    OpenRouterConfig,
    StreamState,
)


VIDEO_URL = "https://example.com/match.mp4"


@pytest.fixture
def remote_request() -> AnalysisRequest:
    return AnalysisRequest(media=RemoteMedia(VIDEO_URL), focus="analyze footwork")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class TestOpenRouterConfig:

    @pytest.mark.parametrize("key", ["", "   "])
    def test_missing_key_is_misconfiguration(self, key):
        with pytest.raises(ServerMisconfigured):
            OpenRouterConfig(api_key=key)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError, match="timeout"):
            OpenRouterConfig(api_key="k", timeout_seconds=0)

    def test_completions_url_tolerates_trailing_slash(self):
        config = OpenRouterConfig(api_key="k", base_url="https://openrouter.ai/api/v1/")
        assert config.completions_url == "https://openrouter.ai/api/v1/chat/completions"


# ---------------------------------------------------------------------------
# Request Construction
# ---------------------------------------------------------------------------

class TestBuildPayload:

    def test_single_user_message_text_then_video(self, openrouter_client, remote_request):
        payload = openrouter_client.build_payload(remote_request)

        assert payload["model"] == "test/video-model"
        assert payload["stream"] is False
        assert len(payload["messages"]) == 1

        message = payload["messages"][0]
        assert message["role"] == "user"
        text_part, video_part = message["content"]
        assert text_part == {"type": "text", "text": remote_request.prompt}
        assert video_part == {"type": "input_video", "video_url": {"url": VIDEO_URL}}

    def test_embedded_media_rendered_as_data_url(self, openrouter_client):
        request = AnalysisRequest(media=EmbeddedMedia("video/webm", b"\x1a\x45\xdf\xa3"))

        payload = openrouter_client.build_payload(request)

        url = payload["messages"][0]["content"][1]["video_url"]["url"]
        assert url == "data:video/webm;base64," + base64.b64encode(b"\x1a\x45\xdf\xa3").decode()

    def test_headers_carry_bearer_token_and_title(self, openrouter_client):
        headers = openrouter_client.build_headers(referer="https://app.example")

        assert headers["Authorization"] == "Bearer test-key"
        assert headers["Content-Type"] == "application/json"
        assert headers["X-Title"] == "VideoLens Tests"
        assert headers["HTTP-Referer"] == "https://app.example"

    def test_referer_omitted_when_unknown(self, openrouter_client):
        assert "HTTP-Referer" not in openrouter_client.build_headers()


# ---------------------------------------------------------------------------
# Non-streaming Path
# ---------------------------------------------------------------------------

class TestAnalyze:

    @pytest.mark.asyncio
    async def test_splits_first_choice_text(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_text("Line one\nLine two\nLine three")

        result = await openrouter_client.analyze(remote_request)

        assert result.summary == "Line one"
        assert result.details == "Line two\nLine three"

    @pytest.mark.asyncio
    async def test_sends_expected_request(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_text("Summary")

        await openrouter_client.analyze(remote_request)

        sent = fake_openrouter.requests[-1]
        assert sent.method == "POST"
        assert str(sent.url) == "https://openrouter.test/api/v1/chat/completions"
        assert sent.headers["authorization"] == "Bearer test-key"
        assert fake_openrouter.last_payload["stream"] is False
        assert '"analyze footwork"' in fake_openrouter.last_payload["messages"][0]["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_single_line_output(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_text("Just one line")

        result = await openrouter_client.analyze(remote_request)

        assert result.summary == "Just one line"
        assert result.details == "Just one line"

    @pytest.mark.asyncio
    async def test_error_status_becomes_upstream_error(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_status(503, "<html>not json</html>")

        with pytest.raises(UpstreamError) as exc_info:
            await openrouter_client.analyze(remote_request)

        assert exc_info.value.upstream_status == 503
        assert exc_info.value.body_text == "<html>not json</html>"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_error_status_with_empty_body(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_status(429)

        with pytest.raises(UpstreamError) as exc_info:
            await openrouter_client.analyze(remote_request)

        assert exc_info.value.details == "Status 429"

    @pytest.mark.asyncio
    async def test_connection_failure_becomes_upstream_error(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.fail_connect("connection refused")

        with pytest.raises(UpstreamError) as exc_info:
            await openrouter_client.analyze(remote_request)

        assert exc_info.value.upstream_status is None
        assert "connection refused" in exc_info.value.details

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"choices": []},
        {"choices": [{}]},
        {"choices": [{"message": {"content": None}}]},
        {"choices": [{"message": {"content": "   "}}]},
        {"choices": [{"message": {"content": [{"type": "text", "text": None}]}}]},
        {"choices": [{"message": {"content": [{"type": "text", "text": 42}, {"type": "text"}]}}]},
        ["unexpected"],
    ])
    async def test_no_usable_text_is_empty_result(self, openrouter_client, fake_openrouter, remote_request, body):
        fake_openrouter.respond_json(body)

        with pytest.raises(EmptyUpstreamResult):
            await openrouter_client.analyze(remote_request)


class TestCompletionResponse:

    def test_first_choice_text(self):
        completion = CompletionResponse.model_validate(
            {"choices": [{"message": {"content": "A"}}, {"message": {"content": "B"}}]}
        )
        assert completion.first_choice_text() == "A"

    def test_content_parts_are_joined(self):
        completion = CompletionResponse.model_validate({
            "choices": [{"message": {"content": [
                {"type": "text", "text": "Part one. "},
                {"type": "image_url", "image_url": {"url": "x"}},
                {"type": "text", "text": "Part two."},
            ]}}]
        })
        assert completion.first_choice_text() == "Part one. Part two."

    def test_text_parts_without_string_text_are_skipped(self):
        completion = CompletionResponse.model_validate({
            "choices": [{"message": {"content": [
                {"type": "text", "text": None},
                {"type": "text", "text": "Kept."},
                {"type": "text", "text": {"nested": True}},
            ]}}]
        })
        assert completion.first_choice_text() == "Kept."

    def test_unknown_fields_ignored(self):
        completion = CompletionResponse.model_validate(
            {"id": "gen-1", "usage": {"total_tokens": 10}, "choices": [{"message": {"content": "x"}}]}
        )
        assert completion.first_choice_text() == "x"


# ---------------------------------------------------------------------------
# Streaming Path
# ---------------------------------------------------------------------------

class TestOpenStream:

    @pytest.mark.asyncio
    async def test_forwards_chunks_in_order_then_ends(self, openrouter_client, fake_openrouter, remote_request):
        chunks = [b"data: one\n\n", b"data: tw", b"o\n\ndata: [DONE]\n\n"]
        fake_openrouter.respond_stream(chunks)

        upstream = await openrouter_client.open_stream(remote_request)
        received = [chunk async for chunk in upstream]

        assert received == chunks
        assert upstream.state is StreamState.COMPLETED
        assert upstream.closed
        assert fake_openrouter.last_stream.closed

    @pytest.mark.asyncio
    async def test_requests_streaming(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_stream([b"data: [DONE]\n\n"])

        async with await openrouter_client.open_stream(remote_request) as upstream:
            assert upstream.state is StreamState.READY

        assert fake_openrouter.last_payload["stream"] is True

    @pytest.mark.asyncio
    async def test_mid_stream_failure_is_observable(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_stream(
            [b"data: one\n\n", b"data: two\n\n"],
            error=httpx.ReadError("connection reset by peer"),
        )

        upstream = await openrouter_client.open_stream(remote_request)
        received = []
        with pytest.raises(StreamInterrupted):
            async for chunk in upstream:
                received.append(chunk)

        assert received == [b"data: one\n\n", b"data: two\n\n"]
        assert upstream.state is StreamState.STREAM_ERROR
        assert upstream.closed

    @pytest.mark.asyncio
    async def test_error_status_raised_before_any_frame(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_status(503, "overloaded")

        with pytest.raises(UpstreamError) as exc_info:
            await openrouter_client.open_stream(remote_request)

        assert exc_info.value.upstream_status == 503
        assert exc_info.value.body_text == "overloaded"

    @pytest.mark.asyncio
    async def test_connection_failure_raised_before_any_frame(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.fail_connect()

        with pytest.raises(UpstreamError):
            await openrouter_client.open_stream(remote_request)

    @pytest.mark.asyncio
    async def test_stream_is_single_use(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_stream([b"data: one\n\n"])

        upstream = await openrouter_client.open_stream(remote_request)
        [chunk async for chunk in upstream]

        with pytest.raises(RuntimeError, match="once"):
            [chunk async for chunk in upstream]

    @pytest.mark.asyncio
    async def test_consumer_cancel_closes_upstream(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_stream([b"data: one\n\n", b"data: two\n\n", b"data: three\n\n"])

        upstream = await openrouter_client.open_stream(remote_request)
        async for chunk in upstream:
            break
        await upstream.aclose()

        assert upstream.state is StreamState.CANCELLED
        assert upstream.closed
        assert fake_openrouter.last_stream.closed

    @pytest.mark.asyncio
    async def test_close_before_iterating(self, openrouter_client, fake_openrouter, remote_request):
        fake_openrouter.respond_stream([b"data: one\n\n"])

        upstream = await openrouter_client.open_stream(remote_request)
        await upstream.aclose()
        await upstream.aclose()

        assert upstream.state is StreamState.CANCELLED
        with pytest.raises(RuntimeError):
            [chunk async for chunk in upstream]

    @pytest.mark.asyncio
    async def test_cancelled_close_still_releases_upstream(self, openrouter_client, fake_openrouter, remote_request):
        """A close interrupted by cancellation finishes, and a later aclose() waits for it."""
        fake_openrouter.respond_stream([b"data: one\n\n"], slow_close=True)

        upstream = await openrouter_client.open_stream(remote_request)
        closing = asyncio.create_task(upstream.aclose())
        await asyncio.sleep(0)
        closing.cancel()
        with pytest.raises(asyncio.CancelledError):
            await closing

        await upstream.aclose()

        assert upstream.closed
        assert fake_openrouter.last_stream.closed
