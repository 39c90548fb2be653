"""
Input normalization.

Turns whatever the caller sent (an uploaded file, a URL, or both) into
exactly one MediaReference. All checks run before any outbound call,
so a rejected request leaves nothing behind.

Rules:
- An uploaded file always wins over a URL; the URL is not even checked.
- Files must be non-empty and below the size ceiling.
- URLs are validated syntactically only. Whether the provider can
  actually fetch them is the provider's problem.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from .errors import EmptyFile, InvalidUrl, MissingInput, TooLarge
from .models import EmbeddedMedia, MediaReference, RemoteMedia

logger = logging.getLogger(__name__)


DEFAULT_MAX_BYTES = 100 * 1024 * 1024
DEFAULT_MIME_TYPE = "video/mp4"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
# schemes that are meaningless without a host
_HOST_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp"})


@dataclass
class UploadedVideo:
    """A file already read from the inbound request."""
    data: bytes = field(repr=False)
    content_type: Optional[str] = None
    filename: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def is_absolute_url(value: str) -> bool:
    """
    Syntactic check for an absolute URL.

    Requires a scheme and no whitespace; web schemes also need a host.
    No DNS lookup, no scheme allow-list.
    """
    if not value or any(ch.isspace() for ch in value):
        return False

    try:
        parsed = urlparse(value)
        # accessing port validates it
        parsed.port
    except ValueError:
        return False

    if not parsed.scheme or not _SCHEME_RE.match(parsed.scheme):
        return False

    if parsed.scheme.lower() not in _HOST_SCHEMES:
        # opaque or empty remainder is fine, e.g. "foo:" or "urn:isbn:123"
        return True

    if value[len(parsed.scheme) + 1:].startswith("//"):
        return bool(parsed.hostname)

    return bool(parsed.path)


def normalize_focus(focus: Optional[str]) -> Optional[str]:
    """Trim the focus instruction; blank means no focus."""
    if focus is None:
        return None
    return focus.strip() or None


def normalize(
    file: Optional[UploadedVideo] = None,
    url: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    default_mime_type: str = DEFAULT_MIME_TYPE,
) -> MediaReference:
    """
    Resolve the request input to a single MediaReference.

    Raises MissingInput, EmptyFile, TooLarge or InvalidUrl.
    """
    url = (url or "").strip()

    if file is None and not url:
        raise MissingInput()

    if file is not None:
        size = file.size_bytes
        if size == 0:
            raise EmptyFile()
        if size >= max_bytes:
            logger.info(
                "Rejected oversized upload",
                extra={"size_bytes": size, "max_bytes": max_bytes, "upload_filename": file.filename}
            )
            raise TooLarge(max_bytes=max_bytes, size_bytes=size)

        mime_type = (file.content_type or "").strip() or default_mime_type
        if url:
            logger.debug("Both file and URL supplied; using the file")

        return EmbeddedMedia(mime_type=mime_type, payload=file.data)

    if not is_absolute_url(url):
        raise InvalidUrl()

    return RemoteMedia(url=url)
