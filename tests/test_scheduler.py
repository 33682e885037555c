"""
Tests for the Batch Controller

Tests for scenedir/orchestration/scheduler.py
"""

import asyncio

import pytest

from scenedir.orchestration.scheduler import BatchController, BatchState


class JobLog:
    """Fake job: records start/finish order and peak concurrency."""

    def __init__(self, ticks=None, fail=()):
        self.ticks = ticks or {}
        self.fail = set(fail)
        self.events = []
        self.in_flight = 0
        self.peak = 0

    async def __call__(self, scene_id):
        self.events.append(("start", scene_id))
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            for _ in range(self.ticks.get(scene_id, 2)):
                await asyncio.sleep(0)
            if scene_id in self.fail:
                raise RuntimeError(f"{scene_id} failed")
            return True
        finally:
            self.in_flight -= 1
            self.events.append(("end", scene_id))


class SleepLog:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


SCENES = ["s1", "s2", "s3", "s4", "s5"]


class TestSlidingWindow:
    """Concurrency-bounded runs."""

    @pytest.mark.asyncio
    async def test_bound_respected(self):
        job = JobLog()
        controller = BatchController(concurrency=2)

        report = await controller.run(SCENES, job)

        assert job.peak == 2
        assert report.state is BatchState.COMPLETED
        assert sorted(report.succeeded) == SCENES

    @pytest.mark.asyncio
    async def test_slot_refilled_as_soon_as_one_settles(self):
        """A slow first job must not hold back the rest of the queue."""
        job = JobLog(ticks={"s1": 50, "s2": 1, "s3": 1})
        controller = BatchController(concurrency=2)

        await controller.run(["s1", "s2", "s3"], job)

        assert job.events.index(("start", "s3")) < job.events.index(("end", "s1"))

    @pytest.mark.asyncio
    async def test_failures_isolated(self):
        job = JobLog(fail={"s2", "s4"})
        controller = BatchController(concurrency=3)

        report = await controller.run(SCENES, job)

        assert sorted(report.failed) == ["s2", "s4"]
        assert sorted(report.succeeded) == ["s1", "s3", "s5"]
        assert report.state is BatchState.COMPLETED

    @pytest.mark.asyncio
    async def test_skipped_jobs_reported_apart_from_failures(self):
        async def job(scene_id):
            await asyncio.sleep(0)
            return None if scene_id == "s3" else True

        report = await BatchController(concurrency=2).run(SCENES, job)

        assert report.skipped == ["s3"]
        assert report.failed == []
        assert sorted(report.succeeded) == ["s1", "s2", "s4", "s5"]
        assert report.admitted == 5

    @pytest.mark.asyncio
    async def test_empty_queue(self):
        controller = BatchController()

        report = await controller.run([], JobLog())

        assert report.state is BatchState.COMPLETED
        assert report.admitted == 0

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            BatchController(concurrency=0)


class TestContinuity:
    """Strictly serial runs."""

    @pytest.mark.asyncio
    async def test_serial_in_order_with_delay(self):
        job = JobLog()
        sleep = SleepLog()
        controller = BatchController(concurrency=4, continuity=True, continuity_delay=0.5, sleep=sleep)

        await controller.run(SCENES, job)

        assert job.peak == 1
        starts = [scene for kind, scene in job.events if kind == "start"]
        assert starts == SCENES
        for previous, current in zip(SCENES, SCENES[1:]):
            assert job.events.index(("end", previous)) < job.events.index(("start", current))
        assert sleep.delays == [0.5] * 4


class TestStop:
    """Advisory stop."""

    @pytest.mark.asyncio
    async def test_stop_lets_admitted_jobs_settle(self):
        controller = BatchController(concurrency=2)
        job = JobLog()
        flags = []

        async def stopping_job(scene_id):
            if scene_id == "s1":
                controller.stop()
                flags.append((controller.is_running, controller.is_stopping))
            return await job(scene_id)

        report = await controller.run(SCENES, stopping_job)

        assert flags == [(True, True)]
        assert sorted(report.succeeded) == ["s1", "s2"]
        assert report.not_started == ["s3", "s4", "s5"]
        assert report.state is BatchState.STOPPED
        assert not controller.is_running
        assert not controller.is_stopping

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self):
        controller = BatchController()

        controller.stop()
        report = await controller.run(["s1"], JobLog())

        assert report.state is BatchState.COMPLETED

    @pytest.mark.asyncio
    async def test_state_transitions(self):
        controller = BatchController()
        seen = []

        async def job(scene_id):
            seen.append(controller.state)
            return True

        assert controller.state is BatchState.IDLE
        await controller.run(["s1"], job)

        assert seen == [BatchState.RUNNING]
        assert controller.state is BatchState.COMPLETED

    @pytest.mark.asyncio
    async def test_second_run_rejected_while_running(self):
        controller = BatchController()
        errors = []

        async def job(scene_id):
            try:
                await controller.run(["x"], JobLog())
            except RuntimeError as e:
                errors.append(e)
            return True

        await controller.run(["s1"], job)

        assert len(errors) == 1
