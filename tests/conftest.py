"""
Pytest Configuration and Fixtures

Fake providers and a small storyboard shared by all tests.
"""

import asyncio
from typing import Callable, Optional

import pytest

from scenedir.models import Character, MediaRef, Product, Project, Scene, SceneGroup
from scenedir.orchestration import GenerationEngine, SceneStateStore
from scenedir.services import (
    Artifact,
    GenerationRequest,
    ImageProvider,
    OperationHandle,
    PollResult,
    PollStatus,
    ProviderRegistry,
    VideoProvider,
)


async def no_sleep(_delay: float) -> None:
    """Yield to the loop without waiting."""
    await asyncio.sleep(0)


class FakeImageProvider(ImageProvider):
    """Records requests and in-flight concurrency; failures are scripted per scene."""

    def __init__(self, delay_ticks: int = 3):
        self.requests: list[GenerationRequest] = []
        self.calls: dict[str, int] = {}
        self.failures: dict[str, list[Exception]] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.delay_ticks = delay_ticks
        self.on_call: Optional[Callable[[GenerationRequest], None]] = None

    @property
    def name(self) -> str:
        return "fake-image"

    def fail(self, scene_id: str, *errors: Exception) -> None:
        self.failures.setdefault(scene_id, []).extend(errors)

    async def generate_image(self, request: GenerationRequest) -> Artifact:
        self.requests.append(request)
        key = request.scene_id or "concept"
        self.calls[key] = self.calls.get(key, 0) + 1
        if self.on_call is not None:
            self.on_call(request)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            for _ in range(self.delay_ticks):
                await asyncio.sleep(0)
            scripted = self.failures.get(key)
            if scripted:
                raise scripted.pop(0)
            return Artifact(data=f"png-{key}".encode(), mime_type="image/png", media_id=f"m-{key}")
        finally:
            self.in_flight -= 1


class FakeVideoProvider(VideoProvider):
    """Scripted video provider: ``script[scene_id]`` lists poll outcomes in order."""

    def __init__(self):
        self.submitted: list[GenerationRequest] = []
        self.poll_calls: list[list[str]] = []
        self.script: dict[str, list[Optional[PollResult]]] = {}
        self.poll_errors: list[Exception] = []
        self.submit_errors: dict[str, list[Exception]] = {}

    @property
    def name(self) -> str:
        return "fake-video"

    async def submit_video(self, request: GenerationRequest) -> OperationHandle:
        self.submitted.append(request)
        errors = self.submit_errors.get(request.scene_id)
        if errors:
            raise errors.pop(0)
        return OperationHandle(name=f"operations/{request.scene_id}", scene_id=request.scene_id)

    async def poll_videos(self, handles: list[OperationHandle]) -> list[PollResult]:
        self.poll_calls.append([h.scene_id for h in handles])
        if self.poll_errors:
            raise self.poll_errors.pop(0)

        results = []
        for handle in handles:
            queue = self.script.get(handle.scene_id)
            outcome = queue.pop(0) if queue else None
            if outcome is not None:
                results.append(outcome)
        return results


def active(scene_id: str) -> PollResult:
    return PollResult(scene_id=scene_id, status=PollStatus.ACTIVE)


def succeeded(scene_id: str, url: Optional[str] = None) -> PollResult:
    url = url or f"https://cdn.example.com/{scene_id}.mp4"
    return PollResult(
        scene_id=scene_id,
        status=PollStatus.SUCCEEDED,
        artifact=MediaRef(uri=url, mime_type="video/mp4"),
    )


def failed(scene_id: str, message: str = "blocked") -> PollResult:
    return PollResult(scene_id=scene_id, status=PollStatus.FAILED, error_message=message)


@pytest.fixture
def image_provider() -> FakeImageProvider:
    return FakeImageProvider()


@pytest.fixture
def video_provider() -> FakeVideoProvider:
    return FakeVideoProvider()


@pytest.fixture
def project() -> Project:
    """Five scenes, two characters, one product and one environment group."""
    anchor = MediaRef(uri="https://cdn.example.com/warehouse.jpg")
    return Project(
        name="Night Shift",
        style_preset="cinematic-realistic",
        camera_model="arri-alexa-35",
        default_lens="35mm",
        script_category="film",
        characters=[
            Character(
                id="c-mary",
                name="Mary",
                description="a tired courier in a yellow raincoat",
                face_image=MediaRef(uri="https://cdn.example.com/mary-face.jpg"),
                body_image=MediaRef(uri="https://cdn.example.com/mary-body.jpg"),
            ),
            Character(
                id="c-tom",
                name="Tom",
                description="the night guard",
                master_image=MediaRef(uri="https://cdn.example.com/tom.jpg"),
            ),
        ],
        products=[
            Product(
                id="p-box",
                name="Parcel",
                description="a brown box with a red logo",
                master_image=MediaRef(uri="https://cdn.example.com/parcel.jpg"),
            ),
        ],
        scene_groups=[
            SceneGroup(
                id="g-warehouse",
                name="Warehouse",
                description="a dim warehouse with tall metal shelves",
                anchor_image=anchor,
            ),
        ],
        scenes=[
            Scene(
                id=f"s{i}",
                order=i,
                context_description=f"Mary walks through aisle {i}",
                character_ids=["c-mary"],
            )
            for i in range(1, 6)
        ],
    )


@pytest.fixture
def store(project: Project) -> SceneStateStore:
    return SceneStateStore(project)


@pytest.fixture
def engine(store, image_provider, video_provider) -> GenerationEngine:
    registry = ProviderRegistry(image_client=image_provider, video_client=video_provider)
    return GenerationEngine(
        store,
        registry,
        max_concurrency=2,
        continuity_delay=0.0,
        retry_attempts=3,
        retry_initial_delay=0.0,
        poll_interval=0.0,
        poll_max_attempts=40,
        sleep=no_sleep,
    )
