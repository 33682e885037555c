"""Project snapshot model."""

from typing import List, Optional
from pathlib import Path
from pydantic import BaseModel, Field
import yaml

from .catalog import Character, Product
from .scene import Scene, SceneGroup


class Project(BaseModel):
    """Storyboard project: scenes plus the reference catalog and global look."""

    name: str = Field(default="Untitled", description="Project name")
    scenes: List[Scene] = Field(default_factory=list, description="Scenes in storyboard order")
    scene_groups: List[SceneGroup] = Field(default_factory=list, description="Environment groups")
    characters: List[Character] = Field(default_factory=list, description="Character catalog")
    products: List[Product] = Field(default_factory=list, description="Product catalog")

    # Look
    style_preset: Optional[str] = Field(None, description="Global style preset or 'custom'")
    custom_style: Optional[str] = Field(None, description="Custom style instruction")
    camera_model: Optional[str] = Field(None, description="Camera body preset or 'custom'")
    custom_camera_model: Optional[str] = Field(None, description="Custom camera body")
    default_lens: Optional[str] = Field(None, description="Default lens preset or 'custom'")
    custom_default_lens: Optional[str] = Field(None, description="Custom default lens")
    default_camera_angle: Optional[str] = Field(None, description="Default camera angle")
    script_category: Optional[str] = Field(None, description="film, documentary, commercial, ...")
    meta_tokens: Optional[str] = Field(None, description="Custom style tokens")
    outfit_lock: bool = Field(default=False, description="Force exact outfits from references")

    # Output
    aspect_ratio: str = Field(default="16:9", description="Output aspect ratio")
    image_model: Optional[str] = Field(None, description="Image model override")

    @classmethod
    def from_yaml(cls, path: Path) -> "Project":
        """Load project from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save project to YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    def ordered_scenes(self) -> List[Scene]:
        """Return scenes sorted by ordinal position, stable for ties."""
        return sorted(self.scenes, key=lambda s: s.order)

    def get_scene(self, scene_id: str) -> Optional[Scene]:
        return next((s for s in self.scenes if s.id == scene_id), None)

    def get_group(self, group_id: Optional[str]) -> Optional[SceneGroup]:
        if not group_id:
            return None
        return next((g for g in self.scene_groups if g.id == group_id), None)
