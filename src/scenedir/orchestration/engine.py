"""Generation engine: the commands a storyboard UI issues.

The engine ties together the prompt assembler, provider registry, retry
policy, batch controller and operation poller. All state changes go through
the :class:`SceneStateStore`; callers observe progress by reading it or by
subscribing to it.
"""

import logging
from typing import Awaitable, Callable, Optional

from ..config import config
from ..errors import PreconditionError, SceneBusyError, UnknownSceneError
from ..models import MediaRef, SceneGroup, VideoStatus
from ..services.base import Artifact, GenerationRequest, ImageProvider, OperationHandle
from ..services.registry import ProviderRegistry
from .poller import OperationPoller
from .prompts import AssemblyOverrides, assemble, assemble_group_concept, assemble_video
from .retry import with_retry
from .scheduler import BatchController, BatchReport
from .store import SceneStateStore

logger = logging.getLogger(__name__)


class GenerationEngine:
    """Schedules image and video jobs for the scenes of one project.

    Example:
        store = SceneStateStore(project)
        engine = GenerationEngine(store, ProviderRegistry.from_credentials(creds))
        await engine.generate_all()
        await engine.generate_all_videos()
        await engine.wait_for_videos()
    """

    def __init__(
        self,
        store: SceneStateStore,
        registry: ProviderRegistry,
        max_concurrency: Optional[int] = None,
        continuity_delay: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_initial_delay: Optional[float] = None,
        poll_interval: Optional[float] = None,
        poll_max_attempts: Optional[int] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Store holding the live project.
            registry: Available provider variants.
            max_concurrency: Batch concurrency bound. Defaults to config.
            continuity_delay: Seconds between continuity jobs. Defaults to config.
            retry_attempts: Attempts per provider call. Defaults to config.
            retry_initial_delay: First backoff delay. Defaults to config.
            poll_interval: Seconds between video status checks. Defaults to config.
            poll_max_attempts: Status checks before a video is force-failed.
            sleep: Awaitable sleep shared by retry, batch and poller (tests).
        """
        self.store = store
        self.registry = registry
        self.max_concurrency = max_concurrency or config.max_concurrency
        self.continuity_delay = (
            config.continuity_delay if continuity_delay is None else continuity_delay
        )
        self.retry_attempts = retry_attempts or config.retry_attempts
        self.retry_initial_delay = (
            config.retry_initial_delay if retry_initial_delay is None else retry_initial_delay
        )
        self.poll_interval = config.poll_interval if poll_interval is None else poll_interval
        self.poll_max_attempts = poll_max_attempts or config.poll_max_attempts
        self._sleep = sleep

        self._batch: Optional[BatchController] = None
        self._poller: Optional[OperationPoller] = None

    # Batch flags

    @property
    def is_running(self) -> bool:
        return self._batch is not None and self._batch.is_running

    @property
    def is_stopping(self) -> bool:
        return self._batch is not None and self._batch.is_stopping

    def stop(self) -> None:
        """Stop the running batch after in-flight jobs settle."""
        if self._batch is not None:
            self._batch.stop()

    # Images

    async def generate_one(
        self,
        scene_id: str,
        refinement: Optional[str] = None,
        end_frame: bool = False,
    ) -> bool:
        """Generate (or refine) the keyframe of one scene.

        Args:
            scene_id: Scene to generate.
            refinement: Change to apply to the existing image.
            end_frame: Write the result to ``end_frame_image`` instead of ``image``.

        Returns:
            True if the scene settled with a new image.

        Raises:
            UnknownSceneError: If the scene does not exist.
            MissingCredentialError: If no image provider is configured.
            SceneBusyError: If the scene already has a job in flight.
            EmptyPromptError: If the scene has nothing to describe.
        """
        scene = self.store.get(scene_id)
        if scene.is_generating:
            raise SceneBusyError(scene_id)
        provider = self.registry.image_provider()

        snapshot = self.store.snapshot()
        request = assemble(
            snapshot.get_scene(scene_id),
            snapshot,
            AssemblyOverrides(refinement=refinement, end_frame=end_frame),
        )
        return await self._run_image_job(scene_id, provider, request, end_frame=end_frame)

    async def generate_all(
        self,
        continuity: bool = False,
        concurrency: Optional[int] = None,
    ) -> BatchReport:
        """Generate keyframes for every scene that lacks one.

        Args:
            continuity: Run strictly in order, conditioning on the previous shot.
            concurrency: Override for the concurrency bound.

        Returns:
            BatchReport for the run.

        Raises:
            MissingCredentialError: If no image provider is configured.
            RuntimeError: If a batch is already running.
        """
        if self.is_running:
            raise RuntimeError("A batch is already running")
        self.registry.image_provider()

        scene_ids = [
            scene.id
            for scene in self.store.project.ordered_scenes()
            if scene.needs_image() and not scene.is_generating
        ]

        async def job(scene_id: str) -> Optional[bool]:
            return await self._batch_image_job(scene_id, continuity)

        self._batch = BatchController(
            concurrency=concurrency or self.max_concurrency,
            continuity=continuity,
            continuity_delay=self.continuity_delay,
            sleep=self._sleep,
        )
        return await self._batch.run(scene_ids, job)

    async def _batch_image_job(self, scene_id: str, continuity: bool) -> Optional[bool]:
        try:
            scene = self.store.get(scene_id)
        except UnknownSceneError:
            logger.warning(f"Skipping scene {scene_id}: removed before its job started")
            return None
        if scene.is_generating:
            logger.info(f"Skipping scene {scene_id}: already generating")
            return None

        # Snapshot taken at admission, after earlier continuity jobs settled
        snapshot = self.store.snapshot()
        try:
            provider = self.registry.image_provider()
            request = assemble(
                snapshot.get_scene(scene_id),
                snapshot,
                AssemblyOverrides(continuity=continuity),
            )
        except PreconditionError as e:
            self.store.settle(scene_id, {"last_error": str(e)})
            logger.error(f"Scene {scene_id} rejected: {e}")
            return False

        return await self._run_image_job(scene_id, provider, request)

    async def _run_image_job(
        self,
        scene_id: str,
        provider: ImageProvider,
        request: GenerationRequest,
        end_frame: bool = False,
    ) -> bool:
        self.store.settle(scene_id, {"is_generating": True, "last_error": None})
        logger.info(f"Generating image for scene {scene_id} with {provider.name}")

        try:
            artifact: Artifact = await with_retry(
                lambda: provider.generate_image(request),
                max_attempts=self.retry_attempts,
                initial_delay=self.retry_initial_delay,
                operation=f"image for scene {scene_id}",
                sleep=self._sleep,
            )
            media = artifact.to_media()
        except Exception as e:
            self.store.settle(scene_id, {"is_generating": False, "last_error": str(e)})
            logger.error(f"Image failed for scene {scene_id}: {e}")
            return False

        patch = {"is_generating": False, "last_error": None}
        if end_frame:
            patch["end_frame_image"] = media
        else:
            patch["image"] = media
            patch["media_id"] = artifact.media_id
        self.store.settle(scene_id, patch)
        logger.info(f"Image ready for scene {scene_id}")
        return True

    # Group concept art

    async def generate_group_concept(self, group_id: str) -> MediaRef:
        """Generate a people-free environment anchor image for a scene group.

        Raises:
            UnknownSceneError: If the group does not exist.
            MissingCredentialError: If no image provider is configured.
            EmptyPromptError: If the group has no name or description.
        """
        snapshot = self.store.snapshot()
        group: Optional[SceneGroup] = snapshot.get_group(group_id)
        if group is None:
            raise UnknownSceneError(group_id, kind="scene group")

        provider = self.registry.image_provider()
        request = assemble_group_concept(group, snapshot)

        logger.info(f"Generating concept art for group {group.name or group_id}")
        artifact = await with_retry(
            lambda: provider.generate_image(request),
            max_attempts=self.retry_attempts,
            initial_delay=self.retry_initial_delay,
            operation=f"concept for group {group_id}",
            sleep=self._sleep,
        )
        media = artifact.to_media()
        self.store.update_group(group_id, {"anchor_image": media})
        return media

    # Videos

    def _get_poller(self) -> OperationPoller:
        if self._poller is None:
            self._poller = OperationPoller(
                self.store,
                self.registry.video_provider(),
                interval=self.poll_interval,
                max_attempts=self.poll_max_attempts,
                sleep=self._sleep,
            )
        return self._poller

    async def generate_video(self, scene_id: str) -> bool:
        """Submit a video job for one scene; the poller drives it to completion.

        Returns:
            True if the job was submitted and is now tracked.

        Raises:
            UnknownSceneError: If the scene does not exist.
            MissingCredentialError: If no video provider is configured.
            SceneBusyError: If a video for the scene is already pending.
            EmptyPromptError: If the scene has no motion prompt or description.
            ValueError: If the scene has no keyframe yet.
        """
        scene = self.store.get(scene_id)
        if scene.is_generating or (scene.video_status is not None and scene.video_status.is_pending):
            raise SceneBusyError(scene_id)

        provider = self.registry.video_provider()
        snapshot = self.store.snapshot()
        request = assemble_video(snapshot.get_scene(scene_id), snapshot)
        poller = self._get_poller()

        self.store.settle(
            scene_id,
            {"is_generating": True, "video_status": VideoStatus.STARTING, "last_error": None},
        )
        logger.info(f"Submitting video for scene {scene_id}")

        try:
            handle: OperationHandle = await with_retry(
                lambda: provider.submit_video(request),
                max_attempts=self.retry_attempts,
                initial_delay=self.retry_initial_delay,
                operation=f"video submission for scene {scene_id}",
                sleep=self._sleep,
            )
        except Exception as e:
            self.store.settle(
                scene_id,
                {"is_generating": False, "video_status": VideoStatus.FAILED, "last_error": str(e)},
            )
            logger.error(f"Video submission failed for scene {scene_id}: {e}")
            return False

        self.store.settle(scene_id, {"video_operation_handle": handle.name})
        poller.track(handle)
        return True

    async def generate_all_videos(self) -> BatchReport:
        """Submit videos for every scene with a keyframe and no video.

        Submissions share the batch controller; polling continues in the
        background until :meth:`wait_for_videos` drains it.

        Raises:
            MissingCredentialError: If no video provider is configured.
            RuntimeError: If a batch is already running.
        """
        if self.is_running:
            raise RuntimeError("A batch is already running")
        self.registry.video_provider()

        scene_ids = [
            scene.id
            for scene in self.store.project.ordered_scenes()
            if (scene.image is not None or scene.media_id)
            and scene.video is None
            and not scene.is_generating
            and not (scene.video_status is not None and scene.video_status.is_pending)
        ]

        async def job(scene_id: str) -> Optional[bool]:
            try:
                return await self.generate_video(scene_id)
            except (SceneBusyError, UnknownSceneError) as e:
                logger.info(f"Skipping scene {scene_id}: {e}")
                return None
            except (PreconditionError, ValueError) as e:
                self.store.settle(scene_id, {"last_error": str(e)})
                logger.error(f"Scene {scene_id} video rejected: {e}")
                return False

        self._batch = BatchController(
            concurrency=self.max_concurrency,
            continuity_delay=self.continuity_delay,
            sleep=self._sleep,
        )
        return await self._batch.run(scene_ids, job)

    async def wait_for_videos(self) -> None:
        """Wait until every tracked video operation has settled."""
        if self._poller is not None:
            await self._poller.join()

    @property
    def pending_videos(self) -> list[str]:
        return self._poller.pending if self._poller is not None else []

    def close(self) -> None:
        """Cancel background polling."""
        if self._poller is not None:
            self._poller.close()

