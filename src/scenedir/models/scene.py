"""Scene data model."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from .media import MediaRef


class VideoStatus(str, Enum):
    """Status of a scene's video operation."""

    STARTING = "starting"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_pending(self) -> bool:
        return self in (VideoStatus.STARTING, VideoStatus.ACTIVE)


class SceneGroup(BaseModel):
    """Shared environment for a contiguous run of scenes."""

    id: str = Field(..., description="Unique group identifier")
    name: str = Field(default="", description="Location name")
    description: str = Field(default="", description="Environment description")
    anchor_image: Optional[MediaRef] = Field(None, description="Environment moodboard image")
    style_preset: Optional[str] = Field(None, description="Group style overriding the project style")
    custom_style: Optional[str] = Field(None, description="Custom style text for the group")


class Scene(BaseModel):
    """Represents a single storyboard scene."""

    id: str = Field(..., description="Unique scene identifier")
    order: int = Field(default=0, description="Ordinal position in the storyboard")
    context_description: str = Field(default="", description="Free-text visual description")
    character_ids: List[str] = Field(default_factory=list, description="Referenced characters")
    product_ids: List[str] = Field(default_factory=list, description="Referenced products")
    group_id: Optional[str] = Field(None, description="Environment group")

    # Cinematography overrides
    camera_angle_override: Optional[str] = Field(None, description="Shot scale / camera angle")
    custom_camera_angle: Optional[str] = Field(None, description="Custom angle text")
    lens_override: Optional[str] = Field(None, description="Lens selection")
    custom_lens_override: Optional[str] = Field(None, description="Custom lens text")
    transition_type: Optional[str] = Field(None, description="Transition into the next scene")
    custom_transition_type: Optional[str] = Field(None, description="Custom transition text")

    # Generation outputs
    image: Optional[MediaRef] = Field(None, description="Generated keyframe")
    end_frame_image: Optional[MediaRef] = Field(None, description="End frame for two-frame video")
    media_id: Optional[str] = Field(None, description="Provider media handle of the keyframe")

    # Video
    video_prompt: Optional[str] = Field(None, description="Motion prompt for video generation")
    video: Optional[MediaRef] = Field(None, description="Generated video")
    video_operation_handle: Optional[str] = Field(None, description="Pending video operation")
    video_status: Optional[VideoStatus] = Field(None, description="Video generation status")

    # Transient UI state
    is_generating: bool = Field(default=False, description="A job is in flight")
    last_error: Optional[str] = Field(None, description="Last failure message")

    def needs_image(self) -> bool:
        """Return True if the scene can be generated and has no keyframe yet."""
        return self.image is None and bool(self.context_description.strip())
