"""
Tests for the Generation Engine

Tests for scenedir/orchestration/engine.py
"""

import pytest
from google.api_core import exceptions as google_exceptions

from conftest import FakeImageProvider, active, no_sleep, succeeded
from scenedir.errors import EmptyPromptError, MalformedResponseError, MissingCredentialError, SceneBusyError
from scenedir.models import MediaRef, VideoStatus
from scenedir.orchestration import GenerationEngine, SceneStateStore
from scenedir.orchestration.scheduler import BatchState
from scenedir.services import ProviderRegistry


def _sample_generating(store):
    samples = []
    store.subscribe(lambda scene_id, patch: samples.append(store.generating_count()))
    return samples


class TestGenerateAll:
    """Batch image generation."""

    @pytest.mark.asyncio
    async def test_five_scenes_bound_two(self, engine, store, image_provider):
        samples = _sample_generating(store)

        report = await engine.generate_all()

        assert report.state is BatchState.COMPLETED
        assert max(samples) <= 2
        assert image_provider.max_in_flight <= 2
        for scene in store.project.scenes:
            assert scene.image is not None
            assert not scene.is_generating
            assert scene.media_id == f"m-{scene.id}"
        assert not engine.is_running

    @pytest.mark.asyncio
    async def test_only_scenes_lacking_output(self, engine, store, image_provider):
        store.settle("s2", {"image": MediaRef(uri="https://cdn.example.com/s2.jpg")})
        store.settle("s4", {"context_description": ""})

        report = await engine.generate_all()

        assert sorted(report.succeeded) == ["s1", "s3", "s5"]
        assert "s2" not in image_provider.calls
        assert "s4" not in image_provider.calls

    @pytest.mark.asyncio
    async def test_continuity_serializes_and_chains(self, engine, store, image_provider):
        report = await engine.generate_all(continuity=True)

        assert image_provider.max_in_flight == 1
        assert [r.scene_id for r in image_provider.requests] == ["s1", "s2", "s3", "s4", "s5"]
        second = image_provider.requests[1]
        previous = [r for r in second.reference_images if r.label == "PREVIOUS SHOT"]
        assert previous and previous[0].image == store.get("s1").image
        assert len(report.succeeded) == 5

    @pytest.mark.asyncio
    async def test_missing_credentials_abort_before_any_job(self, store):
        engine = GenerationEngine(store, ProviderRegistry(), sleep=no_sleep)

        with pytest.raises(MissingCredentialError):
            await engine.generate_all()

        assert store.generating_count() == 0
        assert all(scene.last_error is None for scene in store.project.scenes)

    @pytest.mark.asyncio
    async def test_permission_failure_isolated(self, engine, store, image_provider):
        image_provider.fail("s2", google_exceptions.Forbidden("key revoked"))

        report = await engine.generate_all()

        assert report.failed == ["s2"]
        assert image_provider.calls["s2"] == 1
        assert "key revoked" in store.get("s2").last_error
        assert not store.get("s2").is_generating
        assert store.get("s2").image is None
        assert len(report.succeeded) == 4

    @pytest.mark.asyncio
    async def test_transient_failures_retried(self, engine, store, image_provider):
        image_provider.fail(
            "s3",
            google_exceptions.TooManyRequests("429"),
            google_exceptions.ServiceUnavailable("503"),
        )
        image_writes = []
        store.subscribe(
            lambda scene_id, patch: image_writes.append(scene_id)
            if scene_id == "s3" and "image" in patch
            else None
        )

        report = await engine.generate_all()

        assert image_provider.calls["s3"] == 3
        assert "s3" in report.succeeded
        assert store.get("s3").last_error is None
        assert image_writes == ["s3"]

    @pytest.mark.asyncio
    async def test_scene_busy_at_admission_is_skipped(self, engine, store, image_provider):
        def start_elsewhere(request):
            # A single-scene command picks up s4 while the batch is running
            if request.scene_id == "s1":
                store.settle("s4", {"is_generating": True})

        image_provider.on_call = start_elsewhere

        report = await engine.generate_all()

        assert report.skipped == ["s4"]
        assert report.failed == []
        assert sorted(report.succeeded) == ["s1", "s2", "s3", "s5"]
        assert "s4" not in image_provider.calls
        assert store.get("s4").last_error is None

    @pytest.mark.asyncio
    async def test_malformed_response_marks_scene_failed(self, engine, store, image_provider):
        image_provider.fail("s1", *[MalformedResponseError("No image data in response")] * 3)

        report = await engine.generate_all()

        assert "s1" in report.failed
        assert store.get("s1").last_error == "No image data in response"
        assert len(report.succeeded) == 4

    @pytest.mark.asyncio
    async def test_stop_mid_batch(self, engine, store, image_provider):
        def stop_on_first(request):
            if request.scene_id == "s1":
                engine.stop()
                assert engine.is_stopping

        image_provider.on_call = stop_on_first

        report = await engine.generate_all()

        assert report.state is BatchState.STOPPED
        assert sorted(report.succeeded) == ["s1", "s2"]
        assert report.not_started == ["s3", "s4", "s5"]
        assert store.generating_count() == 0
        assert store.get("s3").image is None
        assert not engine.is_running
        assert not engine.is_stopping


class TestGenerateOne:
    """Single-scene commands."""

    @pytest.mark.asyncio
    async def test_generates_image(self, engine, store):
        assert await engine.generate_one("s1")

        assert store.get("s1").image.is_inline
        assert not store.get("s1").is_generating

    @pytest.mark.asyncio
    async def test_refinement(self, engine, store, image_provider):
        original = MediaRef(uri="https://cdn.example.com/s1.jpg")
        store.settle("s1", {"image": original})

        assert await engine.generate_one("s1", refinement="add rain")

        request = image_provider.requests[-1]
        assert request.base_image == original
        assert "add rain" in request.instruction_text
        assert store.get("s1").image != original

    @pytest.mark.asyncio
    async def test_end_frame(self, engine, store):
        original = MediaRef(uri="https://cdn.example.com/s1.jpg")
        store.settle("s1", {"image": original})

        assert await engine.generate_one("s1", end_frame=True)

        assert store.get("s1").image == original
        assert store.get("s1").end_frame_image is not None

    @pytest.mark.asyncio
    async def test_empty_prompt_rejected_before_provider(self, engine, store, image_provider):
        store.settle("s1", {"context_description": ""})

        with pytest.raises(EmptyPromptError):
            await engine.generate_one("s1")

        assert image_provider.requests == []

    @pytest.mark.asyncio
    async def test_busy_scene_rejected(self, engine, store, image_provider):
        store.settle("s1", {"is_generating": True})

        with pytest.raises(SceneBusyError):
            await engine.generate_one("s1")

        assert image_provider.requests == []

    @pytest.mark.asyncio
    async def test_unknown_scene(self, engine):
        with pytest.raises(KeyError):
            await engine.generate_one("missing")

    @pytest.mark.asyncio
    async def test_token_client_used_without_api_key(self, store):
        token_client = FakeImageProvider()
        engine = GenerationEngine(store, ProviderRegistry(token_client=token_client), sleep=no_sleep)

        assert await engine.generate_one("s1")

        assert len(token_client.requests) == 1


class TestGroupConcept:
    """Environment concept art."""

    @pytest.mark.asyncio
    async def test_updates_anchor(self, engine, store, image_provider):
        media = await engine.generate_group_concept("g-warehouse")

        assert store.project.get_group("g-warehouse").anchor_image == media
        assert "NO PEOPLE" in image_provider.requests[-1].instruction_text

    @pytest.mark.asyncio
    async def test_unknown_group(self, engine):
        with pytest.raises(KeyError):
            await engine.generate_group_concept("missing")


class TestVideos:
    """Video submission and polling through the engine."""

    @pytest.mark.asyncio
    async def test_all_videos(self, engine, store, video_provider):
        for scene_id in ("s1", "s2", "s3"):
            store.settle(scene_id, {"image": MediaRef(uri=f"https://cdn.example.com/{scene_id}.jpg")})
            video_provider.script[scene_id] = [active(scene_id), succeeded(scene_id)]

        report = await engine.generate_all_videos()
        await engine.wait_for_videos()

        assert sorted(report.succeeded) == ["s1", "s2", "s3"]
        for scene_id in ("s1", "s2", "s3"):
            scene = store.get(scene_id)
            assert scene.video_status is VideoStatus.SUCCEEDED
            assert scene.video is not None
            assert scene.video_operation_handle is None
            assert not scene.is_generating
        assert store.get("s4").video_status is None
        assert engine.pending_videos == []

    @pytest.mark.asyncio
    async def test_submission_tracks_handle(self, engine, store, video_provider):
        store.settle("s1", {"media_id": "m-1"})

        assert await engine.generate_video("s1")

        scene = store.get("s1")
        assert scene.video_status is VideoStatus.STARTING
        assert scene.video_operation_handle == "operations/s1"
        assert scene.is_generating
        assert video_provider.submitted[0].media_id == "m-1"
        assert engine.pending_videos == ["s1"]

        with pytest.raises(SceneBusyError):
            await engine.generate_video("s1")

        video_provider.script["s1"] = [succeeded("s1")]
        await engine.wait_for_videos()
        assert store.get("s1").video_status is VideoStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_submission_failure(self, engine, store, video_provider):
        store.settle("s1", {"media_id": "m-1"})
        video_provider.submit_errors["s1"] = [google_exceptions.Forbidden("bad token")]

        assert not await engine.generate_video("s1")

        scene = store.get("s1")
        assert scene.video_status is VideoStatus.FAILED
        assert "bad token" in scene.last_error
        assert not scene.is_generating

    @pytest.mark.asyncio
    async def test_video_requires_token_variant(self, store, image_provider):
        engine = GenerationEngine(store, ProviderRegistry(image_client=image_provider), sleep=no_sleep)

        with pytest.raises(MissingCredentialError):
            await engine.generate_all_videos()
