"""Reference entity models (characters and products)."""

from typing import Optional
from pydantic import BaseModel, Field

from .media import MediaRef


class Character(BaseModel):
    """A recurring character with identity reference images."""

    id: str = Field(..., description="Unique character identifier")
    name: str = Field(default="", description="Display name used in prompts")
    description: str = Field(default="", description="Appearance description")
    master_image: Optional[MediaRef] = Field(None, description="Overall reference image")
    face_image: Optional[MediaRef] = Field(None, description="Face ID view")
    body_image: Optional[MediaRef] = Field(None, description="Full body / outfit view")
    side_image: Optional[MediaRef] = Field(None, description="Side profile view")
    back_image: Optional[MediaRef] = Field(None, description="Back view")


class ProductViews(BaseModel):
    """Labeled product turnaround views."""

    front: Optional[MediaRef] = None
    back: Optional[MediaRef] = None
    left: Optional[MediaRef] = None
    right: Optional[MediaRef] = None
    top: Optional[MediaRef] = None


class Product(BaseModel):
    """A product or prop that must look the same in every scene."""

    id: str = Field(..., description="Unique product identifier")
    name: str = Field(default="", description="Display name used in prompts")
    description: str = Field(default="", description="Design description")
    master_image: Optional[MediaRef] = Field(None, description="Master reference image")
    views: ProductViews = Field(default_factory=ProductViews, description="Labeled views")
