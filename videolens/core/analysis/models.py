"""
Domain models for video analysis.

These models represent the core business concepts. They have no dependencies
on external frameworks or APIs. Everything here is request-scoped: built
once per request, consumed, and dropped.
"""

import base64
from dataclasses import dataclass, field
from typing import Optional, Union

from .prompts import build_prompt


SUMMARY_FALLBACK = "Analysis complete."


@dataclass(frozen=True)
class RemoteMedia:
    """A video the provider fetches itself."""
    url: str

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("Remote media requires a URL")

    def to_url(self) -> str:
        return self.url


@dataclass(frozen=True)
class EmbeddedMedia:
    """
    An uploaded video carried inline in the request.

    Frozen because the payload is a value: the same bytes and MIME type
    always render the same data URL.
    """
    mime_type: str
    payload: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if not self.mime_type:
            raise ValueError("Embedded media requires a MIME type")
        if not self.payload:
            raise ValueError("Embedded media payload cannot be empty")

    def to_url(self) -> str:
        """Render as data:{mime};base64,{payload}. No partial variant."""
        encoded = base64.b64encode(self.payload).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


MediaReference = Union[RemoteMedia, EmbeddedMedia]


@dataclass
class AnalysisRequest:
    """A normalized video plus the caller's optional focus."""
    media: MediaReference
    focus: Optional[str] = None
    stream: bool = False

    def __post_init__(self) -> None:
        if self.focus is not None:
            self.focus = self.focus.strip() or None

    @property
    def prompt(self) -> str:
        return build_prompt(self.focus)


@dataclass(frozen=True)
class AnalysisResult:
    """
    The complete, non-streaming analysis.

    summary is the headline (first line of the model output), details
    is everything after it.
    """
    summary: str
    details: str

    @classmethod
    def from_text(cls, raw: str) -> "AnalysisResult":
        """Split raw model output on the first newline."""
        first_line, _, rest = raw.partition("\n")
        summary = first_line.strip() or SUMMARY_FALLBACK
        details = rest.strip() or raw
        return cls(summary=summary, details=details)
