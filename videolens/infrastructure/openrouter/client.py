"""
OpenRouter chat-completions client.

This module is the analysis relay: it turns an AnalysisRequest into a
provider request, runs it, and hands back either a complete
AnalysisResult or a live UpstreamStream of raw bytes.

The wrapper is intentionally thin:
1. Builds the multimodal payload (one user message: text part, then video part)
2. Owns one httpx connection per call, closed on every exit path
3. Maps transport and status failures onto our error taxonomy
4. Forwards streamed bytes untouched; it never parses event lines

Anything that wants the text deltas out of a stream uses
core.analysis.stream_parser on the consuming side.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from videolens.core.analysis.errors import (
    EmptyUpstreamResult,
    ServerMisconfigured,
    StreamInterrupted,
    UpstreamError,
)
from videolens.core.analysis.models import AnalysisRequest, AnalysisResult


logger = logging.getLogger(__name__)


DEFAULT_MODEL = "google/gemini-2.5-flash-lite"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_APP_TITLE = "VideoLens AI Video Analysis"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"


@dataclass
class OpenRouterConfig:
    """
    Configuration for the OpenRouter client.

    Built once from Settings and passed in explicitly, so tests can
    substitute a fake key without touching the environment.
    """
    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    app_title: str = DEFAULT_APP_TITLE
    referer: str = ""
    timeout_seconds: float = 300.0

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_key.strip():
            raise ServerMisconfigured()
        if not self.model:
            raise ValueError("model is required")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


# ---------------------------------------------------------------------------
# Response Shape
# ---------------------------------------------------------------------------

class CompletionMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: Optional[Union[str, list[Any]]] = None

    def text(self) -> Optional[str]:
        """Content as plain text; list-of-parts content keeps the text parts."""
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, list):
            parts = [
                part["text"]
                for part in self.content
                if isinstance(part, dict)
                and part.get("type") == "text"
                and isinstance(part.get("text"), str)
            ]
            return "".join(parts)
        return None


class CompletionChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[CompletionMessage] = None


class CompletionResponse(BaseModel):
    """
    The subset of a chat completion we read.

    Every level is optional so that any missing piece collapses into a
    single outcome: first_choice_text() returns None.
    """
    model_config = ConfigDict(extra="ignore")

    choices: Optional[list[CompletionChoice]] = None

    def first_choice_text(self) -> Optional[str]:
        if not self.choices:
            return None
        message = self.choices[0].message
        if message is None:
            return None
        text = message.text()
        if not text or not text.strip():
            return None
        return text


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

class StreamState(Enum):
    """Lifecycle of one UpstreamStream. Only moves forward."""
    READY = "ready"              # headers received, nothing read yet
    STREAMING = "streaming"
    COMPLETED = "completed"
    STREAM_ERROR = "stream_error"
    CANCELLED = "cancelled"


class UpstreamStream:
    """
    Single-pass async iterator over the provider's response bytes.

    Chunks come out in arrival order, exactly as the transport delivers
    them. A transport failure mid-stream surfaces as StreamInterrupted
    rather than a quiet end. Closing (explicitly, on completion, on
    error, or when the consumer stops iterating) releases the upstream
    connection; aclose() is safe to call more than once.
    """

    def __init__(
        self,
        response: httpx.Response,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self._response = response
        self._on_close = on_close
        self._state = StreamState.READY
        self._closed = False
        self._iterator: Optional[AsyncGenerator[bytes, None]] = None
        self._release_task: Optional[asyncio.Future] = None
        self.bytes_forwarded = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._state is not StreamState.READY or self._closed:
            raise RuntimeError("UpstreamStream can only be iterated once")
        self._state = StreamState.STREAMING
        self._iterator = self._iterate()
        return self._iterator

    async def _iterate(self) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in self._response.aiter_bytes():
                if not chunk:
                    continue
                self.bytes_forwarded += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            self._state = StreamState.STREAM_ERROR
            logger.warning(
                "Upstream stream failed mid-flight",
                extra={"error": str(e), "bytes_forwarded": self.bytes_forwarded}
            )
            raise StreamInterrupted(details=str(e) or e.__class__.__name__) from e
        except BaseException:
            # consumer went away (GeneratorExit / CancelledError)
            if self._state is StreamState.STREAMING:
                self._state = StreamState.CANCELLED
            raise
        else:
            self._state = StreamState.COMPLETED
            logger.info(
                "Upstream stream completed",
                extra={"bytes_forwarded": self.bytes_forwarded}
            )
        finally:
            await self._release()

    async def aclose(self) -> None:
        """Stop iteration (if started) and release the connection."""
        if self._iterator is not None and not self._iterator.ag_running:
            await self._iterator.aclose()
        await self._release()

    async def _release(self) -> None:
        if self._closed:
            return
        if self._state in (StreamState.READY, StreamState.STREAMING):
            self._state = StreamState.CANCELLED
        # one close runs to the end even if the awaiting task is cancelled;
        # later calls wait on the same close
        if self._release_task is None:
            self._release_task = asyncio.ensure_future(self._close_upstream())
        await asyncio.shield(self._release_task)

    async def _close_upstream(self) -> None:
        try:
            await self._response.aclose()
        finally:
            if self._on_close is not None:
                await self._on_close()
        self._closed = True

    async def __aenter__(self) -> "UpstreamStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class OpenRouterClient:
    """
    Relay between our AnalysisRequest and OpenRouter.

    Knows the OpenRouter wire format but nothing about HTTP forms or
    how results are shown. Every call opens its own httpx client, so
    concurrent requests never share a connection.
    """

    def __init__(
        self,
        config: OpenRouterConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def config(self) -> OpenRouterConfig:
        return self._config

    def build_payload(self, request: AnalysisRequest) -> dict[str, Any]:
        """
        Build the chat-completions body.

        OpenRouter expects the content parts in this order:
        [
            {"type": "text", "text": "..."},
            {"type": "input_video", "video_url": {"url": "https://... or data:..."}}
        ]
        """
        return {
            "model": self._config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": request.prompt},
                        {"type": "input_video", "video_url": {"url": request.media.to_url()}},
                    ],
                }
            ],
            "stream": request.stream,
        }

    def build_headers(self, referer: Optional[str] = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
            "X-Title": self._config.app_title,
        }
        referer = referer or self._config.referer
        if referer:
            headers["HTTP-Referer"] = referer
        return headers

    async def analyze(
        self,
        request: AnalysisRequest,
        referer: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Run a non-streaming analysis and wait for the full answer.

        Raises UpstreamError for transport failures and non-success
        statuses, EmptyUpstreamResult when the provider answers without
        usable text.
        """
        if request.stream:
            request = AnalysisRequest(media=request.media, focus=request.focus, stream=False)

        payload = self.build_payload(request)

        async with self._new_http_client(read_timeout=self._config.timeout_seconds) as http:
            try:
                response = await http.post(
                    self._config.completions_url,
                    json=payload,
                    headers=self.build_headers(referer),
                )
            except httpx.HTTPError as e:
                logger.error("OpenRouter request failed", extra={"error": str(e)})
                raise UpstreamError(None, str(e) or e.__class__.__name__) from e

            if not response.is_success:
                body_text = self._body_text(response)
                logger.error(
                    "OpenRouter returned an error status",
                    extra={"status": response.status_code, "body": body_text[:500]}
                )
                raise UpstreamError(response.status_code, body_text)

            try:
                completion = CompletionResponse.model_validate_json(response.content)
            except ValidationError as e:
                logger.error("Unparseable completion body", extra={"error": str(e)})
                raise EmptyUpstreamResult() from e

        text = completion.first_choice_text()
        if text is None:
            raise EmptyUpstreamResult()

        logger.info("Analysis received", extra={"chars": len(text)})
        return AnalysisResult.from_text(text)

    async def open_stream(
        self,
        request: AnalysisRequest,
        referer: Optional[str] = None,
    ) -> UpstreamStream:
        """
        Start a streaming analysis and return once headers are in.

        A failure before the first byte is raised here as UpstreamError,
        so the caller can still answer with a clean JSON error. The
        returned stream owns the connection from then on.
        """
        if not request.stream:
            request = AnalysisRequest(media=request.media, focus=request.focus, stream=True)

        payload = self.build_payload(request)
        http = self._new_http_client(read_timeout=None)
        upstream_request = http.build_request(
            "POST",
            self._config.completions_url,
            json=payload,
            headers=self.build_headers(referer),
        )

        try:
            response = await http.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            await http.aclose()
            logger.error("OpenRouter stream request failed", extra={"error": str(e)})
            raise UpstreamError(None, str(e) or e.__class__.__name__) from e
        except BaseException:
            await http.aclose()
            raise

        if not response.is_success:
            try:
                body_text = await self._read_body_text(response)
            finally:
                await response.aclose()
                await http.aclose()
            logger.error(
                "OpenRouter stream returned an error status",
                extra={"status": response.status_code, "body": body_text[:500]}
            )
            raise UpstreamError(response.status_code, body_text)

        logger.info("OpenRouter stream opened", extra={"status": response.status_code})
        return UpstreamStream(response, on_close=http.aclose)

    def _new_http_client(self, read_timeout: Optional[float]) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self._config.timeout_seconds, read=read_timeout)
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    @staticmethod
    def _body_text(response: httpx.Response) -> str:
        try:
            return response.text
        except (httpx.HTTPError, UnicodeDecodeError, LookupError):
            return ""

    @classmethod
    async def _read_body_text(cls, response: httpx.Response) -> str:
        """Best-effort error body; absence is fine."""
        try:
            await response.aread()
        except httpx.HTTPError:
            return ""
        return cls._body_text(response)

