"""Data models for storyboard generation."""

from .media import MediaRef
from .scene import Scene, SceneGroup, VideoStatus
from .catalog import Character, Product, ProductViews
from .project import Project

__all__ = [
    "MediaRef",
    "Scene",
    "SceneGroup",
    "VideoStatus",
    "Character",
    "Product",
    "ProductViews",
    "Project",
]
