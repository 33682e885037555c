"""Provider boundary: request/response types and capability interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..models import MediaRef


@dataclass
class ReferenceImage:
    """A labeled conditioning image attached to a request."""

    label: str
    image: MediaRef
    instruction: str = ""
    kind: str = "reference"


@dataclass
class GenerationRequest:
    """A provider-agnostic synthesis request."""

    instruction_text: str
    reference_images: list[ReferenceImage] = field(default_factory=list)
    aspect_ratio: str = "16:9"
    target_model: Optional[str] = None
    base_image: Optional[MediaRef] = None
    end_image: Optional[MediaRef] = None
    media_id: Optional[str] = None
    scene_id: Optional[str] = None

    @property
    def is_refinement(self) -> bool:
        return self.base_image is not None

    def all_images(self) -> list[ReferenceImage]:
        """Return attachments with the refinement base first."""
        images = list(self.reference_images)
        if self.base_image is not None:
            images.insert(
                0,
                ReferenceImage(
                    label="BASE IMAGE",
                    image=self.base_image,
                    instruction="The image to modify.",
                    kind="base",
                ),
            )
        return images


@dataclass
class Artifact:
    """Output of a synchronous generation."""

    data: Optional[bytes] = None
    mime_type: str = "image/png"
    url: Optional[str] = None
    media_id: Optional[str] = None

    def to_media(self) -> MediaRef:
        """Convert to a storable media reference."""
        if self.data is not None:
            return MediaRef.from_bytes(self.data, self.mime_type, media_id=self.media_id)
        if self.url:
            return MediaRef(uri=self.url, mime_type=self.mime_type, media_id=self.media_id)
        raise ValueError("Artifact carries neither data nor url")


@dataclass(frozen=True)
class OperationHandle:
    """Handle to a deferred (video) operation."""

    name: str
    scene_id: str


class PollStatus(str, Enum):
    """Status reported for a deferred operation."""

    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PollResult:
    """One entry of a batched status response."""

    scene_id: str
    status: PollStatus
    artifact: Optional[MediaRef] = None
    error_message: Optional[str] = None


class ImageProvider(ABC):
    """Synchronous image capability: one round trip per request."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider's name."""
        ...

    @abstractmethod
    async def generate_image(self, request: GenerationRequest) -> Artifact:
        """Generate one image.

        Raises:
            google.api_core.exceptions.GoogleAPICallError: On provider errors.
            MalformedResponseError: If no artifact is found in the response.
        """
        ...


class VideoProvider(ABC):
    """Deferred video capability: submit, then poll."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider's name."""
        ...

    @abstractmethod
    async def submit_video(self, request: GenerationRequest) -> OperationHandle:
        """Submit a video job and return its handle."""
        ...

    @abstractmethod
    async def poll_videos(self, handles: list[OperationHandle]) -> list[PollResult]:
        """Check status for many operations in one call.

        The response may omit handles; callers treat omission as "no status yet".
        """
        ...
