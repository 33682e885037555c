"""Loading media references into raw bytes."""

import base64
import logging
import mimetypes
from pathlib import Path

import requests

from ..models import MediaRef

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def load_media(ref: MediaRef, timeout: float = DEFAULT_TIMEOUT) -> tuple[bytes, str]:
    """Return ``(bytes, mime_type)`` for a media reference.

    Args:
        ref: Media reference (data URI, URL or local path).
        timeout: Timeout in seconds for remote fetches.

    Raises:
        requests.HTTPError: If a remote image cannot be fetched.
        FileNotFoundError: If a local path does not exist.
    """
    inline = ref.inline_payload()
    if inline is not None:
        data, mime_type = inline
        return base64.b64decode(data), mime_type

    if ref.is_remote:
        logger.debug(f"Fetching remote media: {ref.uri[:80]}")
        response = requests.get(ref.uri, timeout=timeout)
        response.raise_for_status()
        mime_type = response.headers.get("Content-Type", ref.mime_type).split(";")[0]
        return response.content, mime_type or ref.mime_type

    path = Path(ref.uri)
    guessed, _ = mimetypes.guess_type(path.name)
    return path.read_bytes(), guessed or ref.mime_type


def load_media_base64(ref: MediaRef, timeout: float = DEFAULT_TIMEOUT) -> tuple[str, str]:
    """Like :func:`load_media` but returns base64 text."""
    inline = ref.inline_payload()
    if inline is not None:
        return inline
    data, mime_type = load_media(ref, timeout=timeout)
    return base64.b64encode(data).decode("ascii"), mime_type
