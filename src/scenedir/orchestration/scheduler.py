"""Batch controller: bounded, stoppable execution of per-scene jobs."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

# True: succeeded, False: failed, None: skipped without doing any work
Job = Callable[[str], Awaitable[Optional[bool]]]


class BatchState(str, Enum):
    """Lifecycle of one batch run."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"


@dataclass
class BatchReport:
    """Outcome of a batch run."""

    state: BatchState = BatchState.IDLE
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    not_started: list[str] = field(default_factory=list)

    @property
    def admitted(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.skipped)


class BatchController:
    """Runs jobs with a sliding window of at most ``concurrency`` in flight.

    With ``continuity`` on, jobs run strictly one after another with
    ``continuity_delay`` seconds between them, so each job sees the
    previous job's settled output.
    """

    def __init__(
        self,
        concurrency: int = 3,
        continuity: bool = False,
        continuity_delay: float = 0.5,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = 1 if continuity else concurrency
        self.continuity = continuity
        self.continuity_delay = continuity_delay
        self._sleep = sleep or asyncio.sleep
        self._state = BatchState.IDLE
        self._stop_requested = False

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is BatchState.RUNNING

    @property
    def is_stopping(self) -> bool:
        return self.is_running and self._stop_requested

    def stop(self) -> None:
        """Stop admitting jobs. In-flight jobs are left to settle."""
        if self.is_running and not self._stop_requested:
            logger.info("Stop requested: no new jobs will start")
            self._stop_requested = True

    async def run(self, scene_ids: Iterable[str], job: Job) -> BatchReport:
        """Run ``job`` for every scene id.

        Args:
            scene_ids: Scenes to process, in order.
            job: Coroutine function settling one scene. Returns True on
                success, False on failure, or None when it skipped the scene.

        Returns:
            BatchReport with the final state and per-scene outcomes.

        Raises:
            RuntimeError: If this controller is already running a batch.
        """
        if self.is_running:
            raise RuntimeError("A batch is already running")

        queue = list(scene_ids)
        report = BatchReport()
        self._state = BatchState.RUNNING
        self._stop_requested = False
        slots = asyncio.Semaphore(self.concurrency)
        tasks: list[asyncio.Task] = []

        logger.info(
            f"Batch started: {len(queue)} scene(s), "
            f"{'continuity' if self.continuity else f'concurrency {self.concurrency}'}"
        )

        async def _run_one(scene_id: str) -> None:
            try:
                ok = await job(scene_id)
            except Exception as e:
                logger.error(f"Job for scene {scene_id} raised: {e}")
                ok = False
            finally:
                slots.release()
            if ok is None:
                report.skipped.append(scene_id)
            else:
                (report.succeeded if ok else report.failed).append(scene_id)

        try:
            for index, scene_id in enumerate(queue):
                await slots.acquire()
                if self.continuity and index > 0 and self.continuity_delay > 0:
                    await self._sleep(self.continuity_delay)
                if self._stop_requested:
                    slots.release()
                    report.not_started = queue[index:]
                    break
                tasks.append(asyncio.create_task(_run_one(scene_id)))

            if tasks:
                await asyncio.gather(*tasks)
        finally:
            self._state = BatchState.STOPPED if self._stop_requested else BatchState.COMPLETED
            report.state = self._state

        logger.info(
            f"Batch {self._state.value}: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped, "
            f"{len(report.not_started)} not started"
        )
        return report
