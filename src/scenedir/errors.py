"""Error taxonomy for generation jobs.

Transient and permission failures reported by a provider are raised as
``google.api_core.exceptions`` types (see ``orchestration.retry``). The
classes here cover what the engine itself detects.
"""


class SceneDirectorError(Exception):
    """Base class for engine errors."""


class PreconditionError(SceneDirectorError):
    """Raised before any provider call when a job cannot possibly succeed."""


class MissingCredentialError(PreconditionError):
    """No usable credential for the requested capability.

    Callers should prompt the user for an API key or session token.
    """

    def __init__(self, capability: str = "generation") -> None:
        super().__init__(
            f"Missing credentials for {capability}: provide an API key or session token"
        )
        self.capability = capability


class EmptyPromptError(PreconditionError):
    """The scene has nothing to describe."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f"Scene {scene_id} has no context description")
        self.scene_id = scene_id


class SceneBusyError(PreconditionError):
    """A job of the same kind is already in flight for the scene."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f"Scene {scene_id} already has a generation in flight")
        self.scene_id = scene_id


class UnknownSceneError(SceneDirectorError, KeyError):
    """No scene (or scene group) with the given id."""

    def __init__(self, scene_id: str, kind: str = "scene") -> None:
        super().__init__(scene_id)
        self.scene_id = scene_id
        self.kind = kind

    def __str__(self) -> str:
        return f"Unknown {self.kind}: {self.scene_id}"


class MalformedResponseError(SceneDirectorError):
    """The provider answered but returned no usable artifact."""
