"""
Shared test fixtures.

The fake inference backend is an httpx.MockTransport: the real
OpenRouterClient runs unchanged, only the network is replaced.
"""

import asyncio
import json
from typing import Callable, Optional

import httpx
import pytest

from videolens.config.settings import Settings
from videolens.infrastructure.openrouter.client import OpenRouterClient, OpenRouterConfig


class ChunkStream(httpx.AsyncByteStream):
    """
    Response body that yields fixed chunks, then optionally fails.

    hang=True blocks forever after the last chunk, like a model that
    stopped producing output; slow_close=True makes aclose() suspend.
    """

    def __init__(
        self,
        chunks: list[bytes],
        error: Optional[Exception] = None,
        hang: bool = False,
        slow_close: bool = False,
    ) -> None:
        self._chunks = chunks
        self._error = error
        self._hang = hang
        self._slow_close = slow_close
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error
        if self._hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        if self._slow_close:
            await asyncio.sleep(0.01)
        self.closed = True


class FakeOpenRouter:
    """
    Scriptable stand-in for the OpenRouter API.

    Configure one response with the respond_* helpers; every request
    received is recorded for inspection.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.last_stream: Optional[ChunkStream] = None
        self._responder: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(500, text="no response configured")
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    def respond_text(self, text: str) -> None:
        """Non-streaming completion whose first choice carries text."""
        body = {"choices": [{"message": {"role": "assistant", "content": text}}]}
        self._responder = lambda request: httpx.Response(200, json=body)

    def respond_json(self, body: object, status_code: int = 200) -> None:
        self._responder = lambda request: httpx.Response(status_code, json=body)

    def respond_status(self, status_code: int, text: str = "") -> None:
        self._responder = lambda request: httpx.Response(status_code, text=text)

    def respond_stream(
        self,
        chunks: list[bytes],
        error: Optional[Exception] = None,
        hang: bool = False,
        slow_close: bool = False,
    ) -> None:
        def responder(request: httpx.Request) -> httpx.Response:
            self.last_stream = ChunkStream(chunks, error, hang=hang, slow_close=slow_close)
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                stream=self.last_stream,
            )
        self._responder = responder

    def fail_connect(self, message: str = "connection refused") -> None:
        def responder(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError(message, request=request)
        self._responder = responder


def make_sse_event(content: str) -> bytes:
    """One OpenAI-style streaming delta event."""
    payload = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


@pytest.fixture
def sse_event() -> Callable[[str], bytes]:
    return make_sse_event


@pytest.fixture
def fake_openrouter() -> FakeOpenRouter:
    return FakeOpenRouter()


@pytest.fixture
def openrouter_config() -> OpenRouterConfig:
    return OpenRouterConfig(
        api_key="test-key",
        model="test/video-model",
        base_url="https://openrouter.test/api/v1",
        app_title="VideoLens Tests",
    )


@pytest.fixture
def openrouter_client(openrouter_config, fake_openrouter) -> OpenRouterClient:
    return OpenRouterClient(openrouter_config, transport=fake_openrouter.transport)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openrouter_api_key="test-key",
        openrouter_model="test/video-model",
        openrouter_base_url="https://openrouter.test/api/v1",
    )
