"""
Video analysis logic.

Contains the domain models, input normalization, prompt assembly,
the error taxonomy, and the consumer-side stream parser.
"""

from .errors import (
    EmptyFile,
    EmptyUpstreamResult,
    InvalidUrl,
    MissingInput,
    ServerMisconfigured,
    StreamInterrupted,
    TooLarge,
    UnexpectedInternalError,
    UpstreamError,
    ValidationError,
    VideoAnalysisError,
)
from .models import (
    AnalysisRequest,
    AnalysisResult,
    EmbeddedMedia,
    MediaReference,
    RemoteMedia,
)
from .normalizer import UploadedVideo, normalize, normalize_focus
from .prompts import build_prompt
from .stream_parser import SSEDeltaParser, StreamingAnalysis, iter_text_deltas

__all__ = [
    "EmptyFile",
    "EmptyUpstreamResult",
    "InvalidUrl",
    "MissingInput",
    "ServerMisconfigured",
    "StreamInterrupted",
    "TooLarge",
    "UnexpectedInternalError",
    "UpstreamError",
    "ValidationError",
    "VideoAnalysisError",
    "AnalysisRequest",
    "AnalysisResult",
    "EmbeddedMedia",
    "MediaReference",
    "RemoteMedia",
    "UploadedVideo",
    "normalize",
    "normalize_focus",
    "build_prompt",
    "SSEDeltaParser",
    "StreamingAnalysis",
    "iter_text_deltas",
]
