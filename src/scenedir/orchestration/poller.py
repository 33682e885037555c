"""Operation poller: drives deferred video operations to a terminal state."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..errors import UnknownSceneError
from ..models import VideoStatus
from ..services.base import OperationHandle, PollResult, PollStatus, VideoProvider
from .store import SceneStateStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0  # seconds
DEFAULT_MAX_ATTEMPTS = 40

MISSING_ARTIFACT_MESSAGE = "Video reported as succeeded but no video URL was returned"


def exhausted_message(attempts: int, last_error: Optional[str] = None) -> str:
    """Diagnostic for a scene that never reached a final status."""
    message = f"Video polling gave up after {attempts} status checks without a final result"
    if last_error:
        message += f" (last status error: {last_error})"
    return message


@dataclass
class PollEntry:
    """A tracked operation and how many intervals it has waited."""

    handle: OperationHandle
    attempts: int = 0
    last_error: Optional[str] = None

    @property
    def scene_id(self) -> str:
        return self.handle.scene_id


class OperationPoller:
    """Tracks pending video operations and writes their outcome to the store.

    One background task sleeps ``interval`` seconds, then checks every
    operation that was tracked when the sleep began in a single batched
    status call, so each operation waits at least one full interval after
    submission. The task exits when nothing is tracked and is restarted by
    the next :meth:`track`.
    """

    def __init__(
        self,
        store: SceneStateStore,
        provider: VideoProvider,
        interval: float = DEFAULT_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._provider = provider
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep or asyncio.sleep
        self._entries: dict[str, PollEntry] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> list[str]:
        """Scene ids still being tracked."""
        return list(self._entries)

    def is_tracking(self, scene_id: str) -> bool:
        return scene_id in self._entries

    def track(self, handle: OperationHandle) -> None:
        """Start tracking an operation. Must be called from a running event loop."""
        self._entries[handle.scene_id] = PollEntry(handle=handle)
        logger.debug(f"Tracking {handle.name} for scene {handle.scene_id}")
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def join(self) -> None:
        """Wait until every tracked operation has settled."""
        while self._task is not None and not self._task.done():
            await self._task

    def close(self) -> None:
        """Cancel the polling task. Tracked scenes are left as they are."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        while self._entries:
            # Scenes tracked during this sleep wait for the next full interval
            due = list(self._entries.values())
            await self._sleep(self.interval)
            await self.check_once(due)

    async def check_once(self, entries: Optional[list[PollEntry]] = None) -> None:
        """Run one polling interval.

        Args:
            entries: Entries to check; all tracked entries when omitted.
                Entries that settled or were replaced since are skipped.
        """
        if entries is None:
            entries = list(self._entries.values())
        entries = [e for e in entries if self._entries.get(e.scene_id) is e]
        if not entries:
            return

        for entry in entries:
            entry.attempts += 1

        results: list[PollResult] = []
        try:
            results = await self._provider.poll_videos([entry.handle for entry in entries])
            for entry in entries:
                entry.last_error = None
        except Exception as e:
            logger.warning(f"Video status check failed for {len(entries)} operation(s): {e}")
            for entry in entries:
                entry.last_error = str(e)

        by_scene = {result.scene_id: result for result in results}
        for entry in entries:
            result = by_scene.get(entry.scene_id)
            try:
                self._apply(entry, result)
            except UnknownSceneError:
                logger.warning(f"Scene {entry.scene_id} no longer exists; dropping its operation")
                self._untrack(entry)

    def _apply(self, entry: PollEntry, result: Optional[PollResult]) -> None:
        scene_id = entry.scene_id

        if result is not None and result.status is PollStatus.SUCCEEDED:
            if result.artifact is None:
                self._fail(entry, MISSING_ARTIFACT_MESSAGE)
                return
            self._store.settle(
                scene_id,
                {
                    "video": result.artifact,
                    "video_status": VideoStatus.SUCCEEDED,
                    "is_generating": False,
                    "last_error": None,
                },
            )
            logger.info(f"Video ready for scene {scene_id}")
            self._untrack(entry)
            return

        if result is not None and result.status is PollStatus.FAILED:
            self._fail(entry, result.error_message or "Video generation failed")
            return

        if result is not None:
            self._store.settle(scene_id, {"video_status": VideoStatus.ACTIVE})

        if entry.attempts >= self.max_attempts:
            self._fail(entry, exhausted_message(entry.attempts, entry.last_error))

    def _fail(self, entry: PollEntry, message: str) -> None:
        self._store.settle(
            entry.scene_id,
            {
                "video_status": VideoStatus.FAILED,
                "is_generating": False,
                "last_error": message,
            },
        )
        logger.error(f"Video failed for scene {entry.scene_id}: {message}")
        self._untrack(entry)

    def _untrack(self, entry: PollEntry) -> None:
        if self._entries.get(entry.scene_id) is entry:
            del self._entries[entry.scene_id]
