"""
Error taxonomy for video analysis requests.

Each error carries the HTTP status it maps to and a short human-readable
message. The API layer turns these into `{"error": ..., "details": ...}`
bodies; nothing here knows about FastAPI.
"""

from typing import Any, Optional


class VideoAnalysisError(Exception):
    """Base class for every failure a caller can see."""

    status_code: int = 500
    default_message: str = "Video analysis failed."

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ServerMisconfigured(VideoAnalysisError):
    """The provider API key is not configured."""
    status_code = 500
    default_message = "Server misconfigured: OPENROUTER_API_KEY is missing."


class ValidationError(VideoAnalysisError):
    """Input was rejected before any outbound call."""
    status_code = 400


class MissingInput(ValidationError):
    default_message = "Provide a video file or a video URL."


class InvalidUrl(ValidationError):
    default_message = "Invalid video URL provided."


class EmptyFile(ValidationError):
    default_message = "Uploaded video file is empty."


class TooLarge(ValidationError):
    status_code = 413

    def __init__(self, max_bytes: int, size_bytes: Optional[int] = None) -> None:
        self.max_bytes = max_bytes
        self.size_bytes = size_bytes
        limit_mb = max_bytes // (1024 * 1024)
        super().__init__(
            f"Video too large. Please compress or trim below {limit_mb}MB before uploading."
        )


class UpstreamError(VideoAnalysisError):
    """
    The provider call failed or answered with a non-success status.

    status_code on the instance stays 502 (what our caller sees);
    upstream_status is what the provider actually returned, or None
    when the connection never produced a response.
    """
    status_code = 502
    default_message = "OpenRouter request failed. Check model/video compatibility and limits."

    def __init__(self, upstream_status: Optional[int], body_text: str = "") -> None:
        self.upstream_status = upstream_status
        self.body_text = body_text
        details = body_text or (f"Status {upstream_status}" if upstream_status else None)
        super().__init__(details=details)


class EmptyUpstreamResult(VideoAnalysisError):
    status_code = 502
    default_message = "OpenRouter returned no analysis text."


class UnexpectedInternalError(VideoAnalysisError):
    status_code = 500
    default_message = "Unexpected server error while analyzing video."


class StreamInterrupted(Exception):
    """
    The upstream connection failed after streaming had started.

    By then the response is committed, so this can only end the stream
    in an error state. Not a VideoAnalysisError: it never becomes a
    JSON body.
    """

    def __init__(self, details: Optional[str] = None) -> None:
        self.message = "Upstream stream ended abnormally."
        self.details = details
        super().__init__(f"{self.message} {details}" if details else self.message)
