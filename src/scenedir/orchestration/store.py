"""Scene state store: the authoritative record of generation status."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..errors import UnknownSceneError
from ..models import MediaRef, Project, Scene, SceneGroup, VideoStatus

logger = logging.getLogger(__name__)

Listener = Callable[[str, dict[str, Any]], None]

_SCENE_FIELDS = frozenset(Scene.model_fields)
_GROUP_FIELDS = frozenset(SceneGroup.model_fields)


@dataclass(frozen=True)
class SceneStatus:
    """Read model for UI binding."""

    is_generating: bool
    image: Optional[MediaRef]
    end_frame_image: Optional[MediaRef]
    video_status: Optional[VideoStatus]
    last_error: Optional[str]


class SceneStateStore:
    """Holds the live project and applies settlement patches.

    Jobs read an immutable snapshot taken at admission time and write back
    only through :meth:`settle`. Listeners are called after every write with
    ``(scene_id, patch)``.
    """

    def __init__(self, project: Project) -> None:
        self._project = project.model_copy(deep=True)
        self._listeners: list[Listener] = []

    @property
    def project(self) -> Project:
        """Return the live project. Treat as read-only."""
        return self._project

    def snapshot(self) -> Project:
        """Return a deep copy of the project for request construction."""
        return self._project.model_copy(deep=True)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _index(self, scene_id: str) -> int:
        for i, scene in enumerate(self._project.scenes):
            if scene.id == scene_id:
                return i
        raise UnknownSceneError(scene_id)

    def get(self, scene_id: str) -> Scene:
        return self._project.scenes[self._index(scene_id)]

    def status(self, scene_id: str) -> SceneStatus:
        scene = self.get(scene_id)
        return SceneStatus(
            is_generating=scene.is_generating,
            image=scene.image,
            end_frame_image=scene.end_frame_image,
            video_status=scene.video_status,
            last_error=scene.last_error,
        )

    def generating_count(self) -> int:
        return sum(1 for scene in self._project.scenes if scene.is_generating)

    def settle(self, scene_id: str, patch: dict[str, Any]) -> Scene:
        """Apply a patch to one scene.

        Clears ``video_operation_handle`` whenever the resulting video status
        is not pending.

        Raises:
            UnknownSceneError: If the scene does not exist.
            ValueError: If the patch names unknown fields.
        """
        unknown = set(patch) - _SCENE_FIELDS
        if unknown:
            raise ValueError(f"Unknown scene fields: {sorted(unknown)}")

        index = self._index(scene_id)
        current = self._project.scenes[index]
        data = current.model_dump()
        data.update(patch)

        status = data.get("video_status")
        if data.get("video_operation_handle") and not (
            status is not None and VideoStatus(status).is_pending
        ):
            data["video_operation_handle"] = None
            patch = {**patch, "video_operation_handle": None}

        updated = Scene.model_validate(data)
        self._project.scenes[index] = updated
        self._notify(scene_id, patch)
        return updated

    def update_group(self, group_id: str, patch: dict[str, Any]) -> SceneGroup:
        """Apply a patch to a scene group (e.g. a generated anchor image)."""
        unknown = set(patch) - _GROUP_FIELDS
        if unknown:
            raise ValueError(f"Unknown group fields: {sorted(unknown)}")

        for i, group in enumerate(self._project.scene_groups):
            if group.id == group_id:
                updated = group.model_copy(update=patch)
                self._project.scene_groups[i] = updated
                return updated
        raise UnknownSceneError(group_id, kind="scene group")

    def _notify(self, scene_id: str, patch: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(scene_id, patch)
            except Exception as e:
                logger.warning(f"Store listener failed for {scene_id}: {e}")
