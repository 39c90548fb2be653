"""
Consumer-side parsing of a forwarded completion event stream.

The relay forwards provider bytes untouched. Anything that wants the
actual text (the CLI, a test, a UI) runs those bytes through this
module. Keeping it separate means the relay never depends on the
provider's event framing, and this parser can be swapped without
touching the transport.

Framing handled here (OpenAI-compatible server-sent events):
    data: {"choices":[{"delta":{"content":"..."}}]}
    data: [DONE]
    : comment / keep-alive lines
"""

import codecs
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Optional

from .models import SUMMARY_FALLBACK

logger = logging.getLogger(__name__)


DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def extract_delta_text(event: object) -> Optional[str]:
    """Pull choices[0].delta.content out of one decoded event, if present."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class SSEDeltaParser:
    """
    Incremental parser for `data:` lines.

    Chunks may split lines (and multi-byte characters) anywhere, so
    partial input is buffered until a newline arrives.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return any complete text deltas."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._parse_lines(lines)

    def flush(self) -> list[str]:
        """Parse whatever is left once the stream has ended."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return self._parse_lines([remainder]) if remainder else []

    def _parse_lines(self, lines: list[str]) -> list[str]:
        deltas = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue

            data = line[len(DATA_PREFIX):].strip()
            if not data:
                continue
            if data == DONE_MARKER:
                self.done = True
                continue

            try:
                event = json.loads(data)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed event line", extra={"line": data[:200]})
                continue

            text = extract_delta_text(event)
            if text:
                deltas.append(text)
        return deltas


async def iter_text_deltas(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield text deltas from an async byte stream, in order."""
    parser = SSEDeltaParser()
    async for chunk in chunks:
        for text in parser.feed(chunk):
            yield text
    for text in parser.flush():
        yield text


@dataclass
class StreamingAnalysis:
    """
    Running summary/details view of a streamed analysis.

    Mirrors AnalysisResult.from_text, but tolerates an incomplete
    first line while text is still arriving.
    """
    text: str = ""

    def append(self, delta: str) -> None:
        self.text += delta

    @property
    def summary(self) -> str:
        return self.text.partition("\n")[0].strip() or SUMMARY_FALLBACK

    @property
    def details(self) -> str:
        return self.text.partition("\n")[2].strip()
