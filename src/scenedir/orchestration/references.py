"""Reference resolution: which conditioning images and notes apply to a scene."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..models import Character, Product, Project, Scene, SceneGroup
from ..services.base import ReferenceImage

logger = logging.getLogger(__name__)

NO_PEOPLE_INSTRUCTION = (
    "STRICT NEGATIVE: NO PEOPLE, NO CHARACTERS, NO HUMANS, NO FACES, NO BODY PARTS. "
    "EXPLICITLY REMOVE ALL HUMAN ELEMENTS."
)

ENV_SOURCE_SCENE = "scene"
ENV_SOURCE_ANCHOR = "anchor"
ENV_SOURCE_PREVIOUS = "previous"


@dataclass
class ResolvedReferences:
    """Everything the resolver found for one scene."""

    images: list[ReferenceImage] = field(default_factory=list)
    characters: list[Character] = field(default_factory=list)
    excluded_characters: list[Character] = field(default_factory=list)
    products: list[Product] = field(default_factory=list)
    group: Optional[SceneGroup] = None
    previous_scene: Optional[Scene] = None
    environment_source: Optional[str] = None
    negative_instruction: Optional[str] = None

    @property
    def continuity_notes(self) -> list[str]:
        """Short notes naming each attached image, in attachment order."""
        return [f"(Match [{ref.label}])" for ref in self.images]


def _character_images(character: Character) -> list[ReferenceImage]:
    views = [
        ("FACE ID", character.face_image),
        ("FULL BODY", character.body_image),
        ("SIDE VIEW", character.side_image),
        ("BACK VIEW", character.back_image),
    ]
    found = [(view, image) for view, image in views if image is not None]
    if not found and character.master_image is not None:
        found = [("PRIMARY", character.master_image)]

    name = character.name.upper() or character.id
    return [
        ReferenceImage(
            label=f"{name} {view}",
            image=image,
            instruction=(
                f"Identity anchor for {character.name or character.id}. "
                f"Match these exact features. {character.description}".strip()
            ),
            kind="character",
        )
        for view, image in found
    ]


def _product_images(product: Product) -> list[ReferenceImage]:
    if product.master_image is not None:
        found = [("MASTER", product.master_image)]
    else:
        views = product.views
        found = [
            (view, image)
            for view, image in (
                ("FRONT VIEW", views.front),
                ("SIDE VIEW", views.left or views.right),
                ("BACK VIEW", views.back),
                ("TOP VIEW", views.top),
            )
            if image is not None
        ]

    name = product.name.upper() or product.id
    return [
        ReferenceImage(
            label=f"{name} {view}",
            image=image,
            instruction=(
                f"Visual anchor for {product.name or product.id}. "
                "Match the design, colors and branding exactly."
            ),
            kind="product",
        )
        for view, image in found
    ]


def preceding_scenes(scene: Scene, project: Project) -> list[Scene]:
    """Return the scenes before ``scene`` in storyboard order."""
    ordered = project.ordered_scenes()
    for i, candidate in enumerate(ordered):
        if candidate.id == scene.id:
            return ordered[:i]
    return []


def resolve_references(
    scene: Scene,
    project: Project,
    continuity: bool = False,
) -> ResolvedReferences:
    """Resolve the ordered conditioning images for a scene.

    Order: character views, product images, the group environment reference
    (latest preceding same-group output, else the group anchor), then the
    previous scene's output when ``continuity`` is on and no group reference
    applied.

    Args:
        scene: Scene being generated.
        project: Read-only project snapshot.
        continuity: Whether continuity mode is active.

    Returns:
        ResolvedReferences with images, selected entities and notes.
    """
    resolved = ResolvedReferences()

    selected = set(scene.character_ids)
    resolved.characters = [c for c in project.characters if c.id in selected]
    resolved.excluded_characters = [c for c in project.characters if c.id not in selected]
    for character in resolved.characters:
        resolved.images.extend(_character_images(character))

    if not resolved.characters:
        resolved.negative_instruction = NO_PEOPLE_INSTRUCTION

    product_ids = set(scene.product_ids)
    resolved.products = [p for p in project.products if p.id in product_ids]
    for product in resolved.products:
        resolved.images.extend(_product_images(product))

    earlier = preceding_scenes(scene, project)
    resolved.previous_scene = earlier[-1] if earlier else None

    group = project.get_group(scene.group_id)
    resolved.group = group
    if group is not None:
        same_group = [s for s in earlier if s.group_id == group.id and s.image is not None]
        if same_group:
            source = same_group[-1]
            resolved.images.append(
                ReferenceImage(
                    label="ENV REFERENCE (Previous Scene)",
                    image=source.image,
                    instruction="Match environment only. Vary the camera angle.",
                    kind="environment",
                )
            )
            resolved.environment_source = ENV_SOURCE_SCENE
        elif group.anchor_image is not None:
            resolved.images.append(
                ReferenceImage(
                    label="ENV REFERENCE (Moodboard)",
                    image=group.anchor_image,
                    instruction="Match environment and lighting only.",
                    kind="environment",
                )
            )
            resolved.environment_source = ENV_SOURCE_ANCHOR

    previous = resolved.previous_scene
    if (
        continuity
        and resolved.environment_source is None
        and previous is not None
        and previous.image is not None
    ):
        resolved.images.append(
            ReferenceImage(
                label="PREVIOUS SHOT",
                image=previous.image,
                instruction="Continue from this shot. Keep clothing, lighting and props consistent.",
                kind="continuity",
            )
        )
        resolved.environment_source = ENV_SOURCE_PREVIOUS

    logger.debug(
        f"Scene {scene.id}: {len(resolved.images)} reference image(s), "
        f"environment={resolved.environment_source or 'none'}"
    )
    return resolved
