"""Prompt assembly: one synthesis request from scattered scene configuration.

Segments are emitted in priority order (highest first):

1. shot-scale override
2. scene context
3. style preset or custom style
4. cinematography (camera body, lens, angle)
5. group environment anchor
6. continuity note for the preceding scene's transition

Names of characters that are not selected for the scene are removed from
the final text; the provider follows exact phrasing.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from .. import presets
from ..errors import EmptyPromptError
from ..models import Project, Scene, SceneGroup
from ..services.base import GenerationRequest, ReferenceImage
from .references import ResolvedReferences, resolve_references

logger = logging.getLogger(__name__)

_META_NOTE = re.compile(
    r"Referencing environment from.*?(?:consistency|logic|group|refgroup)\.?",
    re.IGNORECASE,
)
_TIMESTAMP = re.compile(r"\[\d{2}:\d{2}-\d{2}:\d{2}\]")
_SFX = re.compile(r"SFX:.*?(?:\.|$)", re.IGNORECASE | re.MULTILINE)
_EMOTION = re.compile(r"Emotion:.*?(?:\.|$)", re.IGNORECASE | re.MULTILINE)
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,;:!?])")
_REPEATED_PUNCT = re.compile(r"([.,])(?:\s*[.,])+")

REALISM_NEGATIVE = (
    "STRICT NEGATIVE: NO ANIME, NO CARTOON, NO 2D, NO DRAWING, NO ILLUSTRATION, "
    "NO PAINTING, NO CGI-LOOK."
)
OUTFIT_LOCK = "(STRICT OUTFIT LOCK: Use EXACT clothes and colors from reference images.)"


@dataclass
class AssemblyOverrides:
    """Per-call options for :func:`assemble`."""

    refinement: Optional[str] = None
    continuity: bool = False
    end_frame: bool = False
    target_model: Optional[str] = None


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"\s+", " ", text)
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = _REPEATED_PUNCT.sub(r"\1", text)
    return text.strip()


def clean_context(text: str) -> str:
    """Strip stale meta-notes and video-only tokens from a scene description."""
    text = _META_NOTE.sub("", text or "")
    text = _TIMESTAMP.sub("", text)
    text = _SFX.sub("", text)
    text = _EMOTION.sub("", text)
    return normalize_whitespace(text)


def strip_names(text: str, remove: Iterable[str], keep: Iterable[str] = ()) -> str:
    """Remove whole-word, case-insensitive occurrences of ``remove`` names.

    All names are matched in one pass, longest first, so each occurrence is
    attributed to the longest name it spells: removing "Mary" leaves a
    selected "Mary Jane" intact, and keeping "Jane" still removes an
    unselected "Jane Doe". A name in both lists is kept.
    """
    remove = {n.strip().lower() for n in remove if n and n.strip()}
    if not remove:
        return text
    keep = {n.strip().lower() for n in keep if n and n.strip()}

    names = sorted(remove | keep, key=len, reverse=True)
    pattern = re.compile(
        rf"(?<!\w)({'|'.join(re.escape(n) for n in names)})(?:['’]s)?(?!\w)",
        re.IGNORECASE,
    )

    def _replace(match: re.Match) -> str:
        return match.group(0) if match.group(1).lower() in keep else ""

    return normalize_whitespace(pattern.sub(_replace, text))


def _scrub_instructions(
    images: list[ReferenceImage], remove: list[str], keep: list[str]
) -> list[ReferenceImage]:
    return [replace(ref, instruction=strip_names(ref.instruction, remove, keep)) for ref in images]


def resolve_style(scene: Scene, project: Project) -> tuple[str, Optional[str]]:
    """Return ``(style_text, style_key)``; a group style overrides the project's."""
    group = project.get_group(scene.group_id)
    if group is not None and group.style_preset:
        key = group.style_preset
        custom = group.custom_style or project.custom_style
    else:
        key = project.style_preset
        custom = project.custom_style

    if not key and custom:
        return custom.strip(), presets.CUSTOM
    return presets.resolve_text(presets.STYLES, key, custom), key


def resolve_shot_scale(scene: Scene) -> str:
    """Return the per-scene shot-scale override label, or an empty string."""
    return presets.resolve_text(
        presets.CAMERA_ANGLES,
        scene.camera_angle_override,
        scene.custom_camera_angle,
        use_label=True,
    )


def resolve_cinematography(scene: Scene, project: Project) -> str:
    """Camera body, lens and angle: scene override, else project default."""
    custom_camera = (
        f"Shot on {project.custom_camera_model}" if project.custom_camera_model else None
    )
    camera = presets.resolve_text(presets.CAMERA_MODELS, project.camera_model, custom_camera)

    lens = presets.resolve_text(
        presets.LENSES,
        scene.lens_override or project.default_lens,
        scene.custom_lens_override or project.custom_default_lens,
    )

    angle = presets.resolve_text(
        presets.CAMERA_ANGLES,
        scene.camera_angle_override or project.default_camera_angle,
        scene.custom_camera_angle,
        use_label=True,
    )
    return ", ".join(part for part in (camera, lens, angle) if part)


def transition_note(previous: Optional[Scene]) -> str:
    """Describe how the preceding scene hands over to this one."""
    if previous is None or not previous.transition_type:
        return ""
    if previous.transition_type == presets.CUSTOM:
        text = (previous.custom_transition_type or "").strip()
        return f"CONTINUITY: This shot follows the previous scene via {text}." if text else ""

    preset = presets.lookup(presets.TRANSITIONS, previous.transition_type)
    if preset is None:
        return ""
    return (
        f"CONTINUITY: This shot follows the previous scene via a {preset.label.upper()} "
        f"({preset.hint})."
    )


def group_anchor_text(group: Optional[SceneGroup]) -> str:
    if group is None or not group.description.strip():
        return ""
    return f"GLOBAL SETTING: {group.description.strip().upper()}."


def _character_text(refs: ResolvedReferences, context: str, outfit_lock: bool) -> str:
    if refs.characters:
        described = " ".join(
            f"[{c.name}: {c.description}]" if c.description else f"[{c.name}]"
            for c in refs.characters
        )
        lock = f" {OUTFIT_LOCK}" if outfit_lock else ""
        return f"Appearing Characters: {described}{lock}"
    focus = context.upper() or "ENVIRONMENT"
    return f"{refs.negative_instruction} FOCUS ONLY ON {focus}."


def _product_text(refs: ResolvedReferences) -> str:
    if not refs.products:
        return ""
    described = " ".join(
        f"[{p.name}: {p.description}]" if p.description else f"[{p.name}]"
        for p in refs.products
    )
    return f"Featured Products: {described}"


def _core_action(context: str) -> str:
    if "->" not in context:
        return ""
    action = context.split("->")[-1].strip()
    return f"CORE ACTION: {action.upper()}." if action else ""


def _build_fresh_text(
    scene: Scene,
    project: Project,
    refs: ResolvedReferences,
    context: str,
) -> str:
    shot_scale = resolve_shot_scale(scene)
    style_text, style_key = resolve_style(scene, project)
    meta = project.meta_tokens or presets.meta_tokens_for(project.script_category)
    cinematography = resolve_cinematography(scene, project)

    style_segment = ""
    if style_text:
        style_segment = f"AUTHORITATIVE STYLE: {style_text}."
        if style_key in presets.REALISTIC_STYLES:
            style_segment = f"{style_segment} {REALISM_NEGATIVE}"

    segments = [
        f"SHOT SCALE: {shot_scale.upper()}." if shot_scale else "CINEMATIC WIDE SHOT.",
        f"SCENE: {context.rstrip('.')}." if context else "",
        _core_action(context),
        _character_text(refs, context, project.outfit_lock),
        _product_text(refs),
        style_segment,
        f"STYLE DETAILS: {meta}." if meta else "",
        f"TECHNICAL: (STRICT CAMERA: {cinematography or 'High Quality'}).",
        group_anchor_text(refs.group),
        transition_note(refs.previous_scene),
    ]
    if refs.images:
        segments.append("REFERENCES: " + " ".join(refs.continuity_notes))
    return " ".join(s for s in segments if s)


def assemble(
    scene: Scene,
    project: Project,
    overrides: Optional[AssemblyOverrides] = None,
) -> GenerationRequest:
    """Build the synthesis request for one scene image.

    Args:
        scene: Scene to generate (from the job's snapshot).
        project: Read-only project snapshot.
        overrides: Refinement, continuity and end-frame options.

    Returns:
        GenerationRequest with instruction text and ordered references.

    Raises:
        EmptyPromptError: If there is nothing to describe.
    """
    overrides = overrides or AssemblyOverrides()
    refinement = (overrides.refinement or "").strip().rstrip(".")
    context = clean_context(scene.context_description)
    refs = resolve_references(scene, project, continuity=overrides.continuity)

    keep = [c.name for c in refs.characters]
    remove = [c.name for c in refs.excluded_characters]
    context = strip_names(context, remove, keep)

    target = scene.end_frame_image if overrides.end_frame else scene.image
    model = overrides.target_model or project.image_model

    if refinement and target is not None:
        identity_refs = [r for r in refs.images if r.kind in ("character", "product")]
        identity_refs = _scrub_instructions(identity_refs, remove, keep)
        text = (
            f"Apply the following change to the attached image: {refinement}. "
            "Keep everything else unchanged: composition, characters, environment and style."
        )
        if identity_refs:
            text += " Identity references: " + " ".join(
                f"(Match [{r.label}])" for r in identity_refs
            )
        return GenerationRequest(
            instruction_text=normalize_whitespace(strip_names(text, remove, keep)),
            reference_images=identity_refs,
            aspect_ratio=project.aspect_ratio,
            target_model=model,
            base_image=target,
            media_id=scene.media_id,
            scene_id=scene.id,
        )

    if not context and not refinement:
        raise EmptyPromptError(scene.id)

    text = _build_fresh_text(scene, project, refs, context)
    images = _scrub_instructions(refs.images, remove, keep)

    if overrides.end_frame:
        text = f"END FRAME: depict the closing moment of this shot. {text}"
        if scene.image is not None:
            images.insert(
                0,
                ReferenceImage(
                    label="START FRAME",
                    image=scene.image,
                    instruction="Opening frame of the same shot. Keep set, lighting and characters.",
                    kind="continuity",
                ),
            )

    if refinement:
        text = f"REFINEMENT: {refinement}. {text}"

    instruction = normalize_whitespace(strip_names(text, remove, keep))
    logger.debug(f"Scene {scene.id} prompt: {instruction[:100]}...")

    return GenerationRequest(
        instruction_text=instruction,
        reference_images=images,
        aspect_ratio=project.aspect_ratio,
        target_model=model,
        scene_id=scene.id,
    )


def assemble_video(scene: Scene, project: Project) -> GenerationRequest:
    """Build the deferred video request for a scene with a keyframe.

    Raises:
        EmptyPromptError: If the scene has neither a motion prompt nor a description.
        ValueError: If the scene has no keyframe to animate.
    """
    if scene.image is None and not scene.media_id:
        raise ValueError(f"Scene {scene.id} has no keyframe to animate")

    prompt = (scene.video_prompt or "").strip() or clean_context(scene.context_description)
    if not prompt:
        raise EmptyPromptError(scene.id)

    selected = set(scene.character_ids)
    keep = [c.name for c in project.characters if c.id in selected]
    remove = [c.name for c in project.characters if c.id not in selected]

    return GenerationRequest(
        instruction_text=strip_names(prompt, remove, keep),
        aspect_ratio=project.aspect_ratio,
        base_image=scene.image,
        end_image=scene.end_frame_image,
        media_id=scene.media_id,
        scene_id=scene.id,
    )


def assemble_group_concept(group: SceneGroup, project: Project) -> GenerationRequest:
    """Build a people-free environment concept request for a scene group.

    Raises:
        EmptyPromptError: If the group has no name or description.
    """
    if not (group.name.strip() or group.description.strip()):
        raise EmptyPromptError(group.id)

    if group.style_preset:
        style = presets.resolve_text(
            presets.STYLES, group.style_preset, group.custom_style or project.custom_style
        )
    else:
        style = presets.resolve_text(presets.STYLES, project.style_preset, project.custom_style)
    meta = project.meta_tokens or presets.meta_tokens_for(project.script_category)

    text = (
        f'STRICT ENVIRONMENT CONCEPT ART: Location "{group.name}". '
        f"DESCRIPTION: {group.description}. STYLE: {style} {meta}. "
        "MANDATORY: Cinematic landscape or interior, architectural focus, atmospheric lighting. "
        "ABSOLUTELY NO PEOPLE, NO HUMANS, NO CHARACTERS, NO FACES. Focus purely on set design."
    )
    return GenerationRequest(
        instruction_text=normalize_whitespace(text),
        aspect_ratio=project.aspect_ratio,
        target_model=project.image_model,
    )
