"""Media reference model."""

import base64
import re
from typing import Optional
from pydantic import BaseModel, Field

_DATA_URI = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)


class MediaRef(BaseModel):
    """A generated or uploaded image/video.

    ``uri`` is a ``data:`` URI, an http(s) URL or a local file path.
    """

    uri: str = Field(..., description="Data URI, URL or local path")
    mime_type: str = Field(default="image/jpeg", description="MIME type")
    media_id: Optional[str] = Field(None, description="Provider media handle for reuse")

    @classmethod
    def from_bytes(
        cls, data: bytes, mime_type: str = "image/png", media_id: Optional[str] = None
    ) -> "MediaRef":
        """Wrap raw bytes as an inline data URI."""
        encoded = base64.b64encode(data).decode("ascii")
        return cls(uri=f"data:{mime_type};base64,{encoded}", mime_type=mime_type, media_id=media_id)

    @property
    def is_inline(self) -> bool:
        return self.uri.startswith("data:")

    @property
    def is_remote(self) -> bool:
        return self.uri.startswith(("http://", "https://"))

    def inline_payload(self) -> Optional[tuple[str, str]]:
        """Return ``(base64_data, mime_type)`` for inline URIs, else None."""
        match = _DATA_URI.match(self.uri)
        if not match:
            return None
        return match.group("data"), match.group("mime") or self.mime_type
