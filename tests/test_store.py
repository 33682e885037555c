"""
Tests for the Scene State Store

Tests for scenedir/orchestration/store.py
"""

import pytest

from scenedir.errors import UnknownSceneError
from scenedir.models import MediaRef, VideoStatus
from scenedir.orchestration.store import SceneStateStore


class TestSettle:
    """Tests for SceneStateStore.settle."""

    def test_merges_patch_and_notifies(self, store):
        events = []
        store.subscribe(lambda scene_id, patch: events.append((scene_id, patch)))

        store.settle("s1", {"is_generating": True})

        assert store.get("s1").is_generating
        assert store.get("s1").context_description == "Mary walks through aisle 1"
        assert events == [("s1", {"is_generating": True})]

    def test_status_read_model(self, store):
        image = MediaRef(uri="https://cdn.example.com/s2.jpg")
        store.settle("s2", {"image": image, "last_error": None})

        status = store.status("s2")

        assert status.image == image
        assert not status.is_generating
        assert status.video_status is None

    def test_handle_kept_while_pending(self, store):
        store.settle("s1", {"video_status": VideoStatus.STARTING})
        store.settle("s1", {"video_operation_handle": "operations/1"})
        store.settle("s1", {"video_status": VideoStatus.ACTIVE})

        assert store.get("s1").video_operation_handle == "operations/1"

    @pytest.mark.parametrize("terminal", [VideoStatus.SUCCEEDED, VideoStatus.FAILED])
    def test_handle_cleared_on_terminal_status(self, store, terminal):
        events = []
        store.settle("s1", {"video_status": VideoStatus.ACTIVE, "video_operation_handle": "op"})
        store.subscribe(lambda scene_id, patch: events.append(patch))

        store.settle("s1", {"video_status": terminal})

        assert store.get("s1").video_operation_handle is None
        assert events[-1]["video_operation_handle"] is None

    def test_handle_without_pending_status_is_dropped(self, store):
        store.settle("s1", {"video_operation_handle": "op"})

        assert store.get("s1").video_operation_handle is None

    def test_unknown_field(self, store):
        with pytest.raises(ValueError):
            store.settle("s1", {"colour": "red"})

    def test_unknown_scene(self, store):
        with pytest.raises(UnknownSceneError):
            store.settle("nope", {"is_generating": True})

    def test_listener_failure_does_not_break_write(self, store):
        def broken(scene_id, patch):
            raise RuntimeError("ui gone")

        store.subscribe(broken)
        store.settle("s1", {"last_error": "x"})

        assert store.get("s1").last_error == "x"

    def test_unsubscribe(self, store):
        events = []
        unsubscribe = store.subscribe(lambda scene_id, patch: events.append(scene_id))

        unsubscribe()
        store.settle("s1", {"last_error": None})

        assert events == []


class TestSnapshots:
    """The store owns its copy; snapshots are independent."""

    def test_store_copies_project(self, project):
        store = SceneStateStore(project)
        store.settle("s1", {"is_generating": True})

        assert not project.get_scene("s1").is_generating

    def test_snapshot_is_independent(self, store):
        snapshot = store.snapshot()
        store.settle("s1", {"last_error": "late"})

        assert snapshot.get_scene("s1").last_error is None
        assert store.generating_count() == 0

    def test_update_group(self, store):
        anchor = MediaRef(uri="https://cdn.example.com/new.jpg")

        store.update_group("g-warehouse", {"anchor_image": anchor})

        assert store.project.get_group("g-warehouse").anchor_image == anchor
        with pytest.raises(UnknownSceneError):
            store.update_group("missing", {"anchor_image": anchor})
