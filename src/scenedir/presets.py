"""Style and cinematography presets used when assembling prompts."""

from dataclasses import dataclass
from typing import Optional

CUSTOM = "custom"


@dataclass(frozen=True)
class Preset:
    """A selectable option that contributes text to a prompt."""

    label: str
    prompt: str = ""
    hint: str = ""


# Global visual styles
STYLES = {
    "cinematic-realistic": Preset(
        label="Cinematic Realistic",
        prompt=(
            "Cinematic movie screengrab, shot on Arri Alexa, photorealistic, 8k, "
            "highly detailed texture, dramatic lighting, shallow depth of field, "
            "color graded, film grain, sharp focus"
        ),
    ),
    "3d-pixar": Preset(
        label="3D Animation",
        prompt=(
            "3D render style, Pixar animation style, octane render, vibrant lighting, "
            "soft smooth textures, expressive, volumetric lighting, high fidelity, 8k"
        ),
    ),
    "anime-makoto": Preset(
        label="Anime (Makoto Shinkai)",
        prompt=(
            "Anime style, Makoto Shinkai art style, high quality 2D animation, "
            "beautiful sky, detailed background, vibrant colors, cell shading"
        ),
    ),
    "vintage-film": Preset(
        label="Vintage 1980s Film",
        prompt=(
            "1980s vintage movie look, film grain, retro aesthetic, warm tones, "
            "soft focus, kodak portra 400, analog photography"
        ),
    ),
    "cyberpunk": Preset(
        label="Cyberpunk / Sci-Fi",
        prompt=(
            "Cyberpunk aesthetic, neon lighting, dark atmosphere, futuristic, "
            "high contrast, wet streets, glowing neon, intricate details"
        ),
    ),
    "watercolor": Preset(
        label="Watercolor",
        prompt=(
            "Watercolor painting style, soft edges, painterly, dreamy atmosphere, "
            "paper texture, pastel colors, wet on wet"
        ),
    ),
    "dark-fantasy": Preset(
        label="Dark Fantasy",
        prompt=(
            "Dark fantasy art, gritty, atmospheric, ominous lighting, detailed armor "
            "and textures, epic scale, oil painting aesthetic"
        ),
    ),
}

# Styles that must not drift into illustration
REALISTIC_STYLES = frozenset({"cinematic-realistic", "vintage-film"})

CAMERA_MODELS = {
    "arri-alexa-35": Preset(
        label="ARRI Alexa 35",
        prompt="Shot on ARRI Alexa 35, rich cinematic colors, natural skin tones, wide dynamic range",
    ),
    "red-v-raptor": Preset(
        label="RED V-Raptor",
        prompt="Shot on RED V-Raptor 8K, high contrast, razor sharp details, vivid colors",
    ),
    "sony-venice-2": Preset(
        label="Sony Venice 2",
        prompt="Shot on Sony Venice 2, natural color science, beautiful skin tones, filmic look",
    ),
    "blackmagic-ursa": Preset(
        label="Blackmagic URSA",
        prompt="Shot on Blackmagic URSA, organic film-like texture",
    ),
    "canon-c70": Preset(
        label="Canon C70",
        prompt="Shot on Canon C70, documentary style, natural colors",
    ),
}

LENSES = {
    "16mm": Preset(label="16mm Ultra Wide", prompt="16mm ultra wide angle lens, expansive field of view, dramatic perspective"),
    "24mm": Preset(label="24mm Wide", prompt="24mm wide angle lens, environmental context, slight distortion"),
    "35mm": Preset(label="35mm Standard Wide", prompt="35mm lens, natural perspective, slight wide angle"),
    "50mm": Preset(label="50mm Standard", prompt="50mm lens, natural human perspective, minimal distortion"),
    "85mm": Preset(label="85mm Portrait", prompt="85mm portrait lens, shallow depth of field, beautiful bokeh"),
    "135mm": Preset(label="135mm Telephoto", prompt="135mm telephoto lens, compressed background, creamy bokeh"),
    "anamorphic": Preset(label="Anamorphic", prompt="anamorphic lens, horizontal lens flares, oval bokeh, cinematic widescreen"),
    "macro": Preset(label="Macro", prompt="macro lens, extreme close-up, sharp details, shallow depth of field"),
}

CAMERA_ANGLES = {
    "wide-shot": Preset(label="Wide Shot (WS)"),
    "medium-shot": Preset(label="Medium Shot (MS)"),
    "close-up": Preset(label="Close-Up (CU)"),
    "extreme-cu": Preset(label="Extreme Close-Up (ECU)"),
    "ots": Preset(label="Over-the-Shoulder (OTS)"),
    "low-angle": Preset(label="Low Angle (Hero Shot)"),
    "high-angle": Preset(label="High Angle"),
    "dutch-angle": Preset(label="Dutch Angle"),
    "pov": Preset(label="POV (First Person)"),
    "establishing": Preset(label="Establishing Shot"),
    "two-shot": Preset(label="Two Shot"),
    "insert": Preset(label="Insert / Detail Shot"),
}

TRANSITIONS = {
    "cut": Preset(label="Cut", hint="Direct cut, instant change"),
    "match-cut": Preset(label="Match Cut", hint="Visual similarity between scenes"),
    "dissolve": Preset(label="Dissolve", hint="Gradual blend between scenes"),
    "fade-black": Preset(label="Fade to Black", hint="Scene ends with black"),
    "fade-white": Preset(label="Fade to White", hint="Scene ends with white"),
    "wipe": Preset(label="Wipe", hint="Directional reveal"),
    "jump-cut": Preset(label="Jump Cut", hint="Jarring time skip"),
    "smash-cut": Preset(label="Smash Cut", hint="Sudden dramatic contrast"),
    "l-cut": Preset(label="L-Cut", hint="Audio continues over next scene"),
    "j-cut": Preset(label="J-Cut", hint="Audio precedes visual"),
}

META_TOKENS = {
    "film": "cinematic lighting, depth of field, film grain, anamorphic lens flare, color graded, atmospheric haze",
    "documentary": "natural light, handheld camera feel, raw authentic look, observational style",
    "commercial": "product hero lighting, clean studio aesthetics, vibrant colors, high production value",
    "music-video": "dramatic lighting, high contrast, stylized color palette, dynamic angles",
    CUSTOM: "professional photography, detailed textures, balanced composition, thoughtful lighting",
}


def lookup(table: dict[str, Preset], key: Optional[str]) -> Optional[Preset]:
    """Return the preset for ``key``, or None for empty or unknown keys."""
    if not key:
        return None
    return table.get(key)


def resolve_text(
    table: dict[str, Preset],
    key: Optional[str],
    custom_text: Optional[str] = None,
    use_label: bool = False,
) -> str:
    """Resolve a preset selection to prompt text.

    Args:
        table: Preset table to look in.
        key: Selected value. ``"custom"`` selects ``custom_text``.
        custom_text: Free text used for the custom option.
        use_label: Return the preset label instead of its prompt.

    Returns:
        The text to inject, or an empty string.
    """
    if key == CUSTOM:
        return (custom_text or "").strip()
    preset = lookup(table, key)
    if preset is None:
        return ""
    return preset.label if use_label else preset.prompt


def meta_tokens_for(category: Optional[str]) -> str:
    """Return the default style tokens for a script category."""
    return META_TOKENS.get(category or CUSTOM, META_TOKENS[CUSTOM])


def register_style(name: str, style: Preset) -> None:
    """Register a custom global style.

    Args:
        name: Value used to select the style.
        style: Preset carrying the style prompt.
    """
    STYLES[name] = style
