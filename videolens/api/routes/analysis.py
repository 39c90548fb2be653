"""
Video analysis API endpoint.

Handles the whole request in one call:
1. Client posts a video file or a video URL, plus an optional focus
2. Server normalizes the input into a single media reference
3. Server relays the request to OpenRouter
4. Client receives either the complete analysis (JSON) or the
   provider's event stream, forwarded byte for byte

Validation failures are answered before any provider call is made.
Once a stream has started, failures can only end the stream.
"""

import logging
from typing import Annotated, Optional, Union

from fastapi import APIRouter, File, Form, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from starlette.background import BackgroundTask

from ...core.analysis.errors import TooLarge
from ...core.analysis.models import AnalysisRequest
from ...core.analysis.normalizer import UploadedVideo, normalize, normalize_focus
from ...infrastructure.openrouter.client import EVENT_STREAM_MEDIA_TYPE
from ..dependencies import OpenRouterClientDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class AnalysisResponse(BaseModel):
    """Complete (non-streaming) analysis."""
    summary: str = Field(description="First line of the analysis")
    details: str = Field(description="Remainder of the analysis, Markdown")


class ErrorResponse(BaseModel):
    """Body of every failed request."""
    error: str = Field(description="Short human-readable message")
    details: Optional[str] = Field(default=None, description="Immediate cause, if known")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def read_upload(upload: Optional[UploadFile], max_bytes: int) -> Optional[UploadedVideo]:
    """
    Read a multipart upload fully into memory.

    Uploads whose declared size already reaches the ceiling are rejected
    without being read. The spooled file is closed on every path.
    """
    if upload is None:
        return None

    try:
        if upload.size is not None and upload.size >= max_bytes:
            raise TooLarge(max_bytes=max_bytes, size_bytes=upload.size)

        data = await upload.read()
    finally:
        await upload.close()

    return UploadedVideo(
        data=data,
        content_type=upload.content_type,
        filename=upload.filename,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/analyze-video",
    response_model=AnalysisResponse,
    status_code=status.HTTP_200_OK,
    summary="Analyze a video",
    description="Analyze an uploaded video or a video URL, optionally streaming the result",
    responses={
        200: {"content": {EVENT_STREAM_MEDIA_TYPE: {}}},
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def analyze_video(
    request: Request,
    client: OpenRouterClientDep,
    settings: SettingsDep,
    video: Annotated[Optional[UploadFile], File(description="Video file (preferred over videoUrl)")] = None,
    video_url: Annotated[Optional[str], Form(alias="videoUrl")] = None,
    focus_prompt: Annotated[Optional[str], Form(alias="focusPrompt")] = None,
    stream: Annotated[bool, Form()] = True,
) -> Union[AnalysisResponse, StreamingResponse]:
    """
    Analyze a video with the configured multimodal model.

    With stream=true (the default) the provider's event stream is
    forwarded as text/event-stream; the caller parses the events.
    With stream=false the full answer is split into summary/details.
    """
    upload = await read_upload(video, settings.max_video_size_bytes)
    media = normalize(
        file=upload,
        url=video_url,
        max_bytes=settings.max_video_size_bytes,
        default_mime_type=settings.default_video_mime_type,
    )
    analysis_request = AnalysisRequest(
        media=media,
        focus=normalize_focus(focus_prompt),
        stream=stream,
    )

    logger.info(
        "Starting video analysis",
        extra={
            "media_kind": type(media).__name__,
            "has_focus": analysis_request.focus is not None,
            "stream": stream,
        }
    )

    referer = request.headers.get("referer")

    if not stream:
        result = await client.analyze(analysis_request, referer=referer)
        return AnalysisResponse(summary=result.summary, details=result.details)

    upstream = await client.open_stream(analysis_request, referer=referer)

    return StreamingResponse(
        upstream,
        media_type=EVENT_STREAM_MEDIA_TYPE,
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
        background=BackgroundTask(upstream.aclose),
    )
