"""External service integrations."""

from .base import (
    Artifact,
    GenerationRequest,
    ImageProvider,
    OperationHandle,
    PollResult,
    PollStatus,
    ReferenceImage,
    VideoProvider,
)
from .gemini import GeminiImageClient
from .labs import LabsClient
from .registry import Credentials, ProviderRegistry

__all__ = [
    "Artifact",
    "GenerationRequest",
    "ImageProvider",
    "OperationHandle",
    "PollResult",
    "PollStatus",
    "ReferenceImage",
    "VideoProvider",
    "GeminiImageClient",
    "LabsClient",
    "Credentials",
    "ProviderRegistry",
]
