"""Labs client (session token via the companion proxy).

Provides image generation that returns a reusable media id, and deferred
video generation: submit a job, then poll the batched status endpoint.
"""

import asyncio
import logging
from typing import Any, Optional

import requests
from google.api_core import exceptions as google_exceptions

from ..config import config
from ..errors import MalformedResponseError, MissingCredentialError
from ..models import MediaRef
from .base import (
    Artifact,
    GenerationRequest,
    ImageProvider,
    OperationHandle,
    PollResult,
    PollStatus,
    VideoProvider,
)
from .media import load_media_base64

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "MEDIA_GENERATION_STATUS_ACTIVE"
STATUS_SUCCEEDED = "MEDIA_GENERATION_STATUS_SUCCEEDED"
STATUS_FAILED = "MEDIA_GENERATION_STATUS_FAILED"

_PORTRAIT_RATIOS = ("9:16", "3:4")


def image_aspect(aspect_ratio: str) -> str:
    """Map an aspect ratio to the Labs image enum."""
    if aspect_ratio in _PORTRAIT_RATIOS:
        return "IMAGE_ASPECT_RATIO_PORTRAIT"
    if aspect_ratio == "1:1":
        return "IMAGE_ASPECT_RATIO_SQUARE"
    return "IMAGE_ASPECT_RATIO_LANDSCAPE"


def video_aspect(aspect_ratio: str) -> str:
    """Map an aspect ratio to the Labs video enum."""
    if aspect_ratio in _PORTRAIT_RATIOS:
        return "VIDEO_ASPECT_RATIO_PORTRAIT"
    return "VIDEO_ASPECT_RATIO_LANDSCAPE"


def clean_token(token: str) -> str:
    """Strip whitespace, quotes and a leading ``Bearer`` from a pasted token."""
    token = token.strip().strip('"').strip("'")
    if token.lower().startswith("bearer "):
        token = token[7:]
    return token.strip()


def _raise_for_status(response: requests.Response) -> None:
    """Raise the matching ``google_exceptions`` type for an error response."""
    if response.status_code < 400:
        return

    message = response.text[:500] or "unknown error"
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message") or message
        elif error:
            message = str(error)

    raise google_exceptions.from_http_status(
        response.status_code,
        f"{response.request.method if response.request else 'POST'} {response.url}: {message}",
        response=response,
    )


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class LabsClient(ImageProvider, VideoProvider):
    """Client wrapper for Labs image and video generation through the proxy.

    This client handles:
    - Image generation (returns a media id that video jobs can reuse)
    - Submitting image-to-video jobs
    - Batched status checks for pending video operations
    """

    DEFAULT_TIMEOUT = 60.0  # seconds

    def __init__(
        self,
        token: Optional[str] = None,
        proxy_url: Optional[str] = None,
        recaptcha_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the Labs client.

        Args:
            token: Session token. Defaults to LABS_SESSION_TOKEN env var.
            proxy_url: Proxy base URL. Defaults to SCENEDIR_PROXY_URL.
            recaptcha_token: Optional reCAPTCHA token forwarded with submissions.
            timeout: Request timeout in seconds.
            session: Optional requests session.
        """
        self._token = clean_token(token or config.labs_session_token or "")
        if not self._token:
            raise MissingCredentialError("Labs generation (session token)")

        self._proxy_url = (proxy_url or config.proxy_url).rstrip("/")
        self._recaptcha_token = recaptcha_token or config.recaptcha_token or None
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return "labs"

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self._proxy_url}{path}"
        response = self._session.post(url, json=payload, timeout=self._timeout)
        _raise_for_status(response)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON from {path}: {e}") from e

    # Image

    async def generate_image(self, request: GenerationRequest) -> Artifact:
        """Generate an image; the artifact carries the provider media id."""
        return await asyncio.to_thread(self._generate_image_sync, request)

    def _generate_image_sync(self, request: GenerationRequest) -> Artifact:
        if request.reference_images or request.base_image:
            logger.info(
                f"Dropping {len(request.all_images())} reference image(s): "
                "Labs image generation is text-only"
            )

        payload: dict[str, Any] = {
            "token": self._token,
            "prompt": request.instruction_text,
            "aspect": image_aspect(request.aspect_ratio),
        }
        if self._recaptcha_token:
            payload["recaptchaToken"] = self._recaptcha_token

        logger.info(f"Generating image with Labs: {request.instruction_text[:50]}...")
        data = self._post("/api/proxy/genyu/image", payload)
        return self._parse_image_response(data)

    @staticmethod
    def _parse_image_response(data: dict) -> Artifact:
        url = None
        media_id = None

        submissions = data.get("submissionResults") or []
        media = data.get("media") or []
        if submissions:
            first = submissions[0] or {}
            result = _dig(first, "submission", "result") or first.get("result") or {}
            url = result.get("fifeUrl") or _dig(result, "media", "fifeUrl")
            media_id = result.get("mediaGenerationId") or _dig(result, "media", "mediaGenerationId")
        elif media:
            item = media[0] or {}
            url = item.get("fifeUrl") or item.get("url")
            media_id = item.get("id") or item.get("mediaId") or item.get("mediaGenerationId")

        url = url or data.get("url") or data.get("imageUrl") or _dig(data, "data", "url")
        if not url:
            raise MalformedResponseError("Cannot find image URL in Labs response")

        return Artifact(url=url, mime_type="image/jpeg", media_id=media_id)

    # Video

    async def submit_video(self, request: GenerationRequest) -> OperationHandle:
        """Submit an image-to-video job.

        Args:
            request: Motion prompt with the start frame as ``base_image``
                (or ``media_id`` to reuse an uploaded keyframe).

        Returns:
            Handle naming the operation.

        Raises:
            google_exceptions.GoogleAPICallError: If the proxy returns an error status.
            MalformedResponseError: If no operation name is returned.
        """
        return await asyncio.to_thread(self._submit_video_sync, request)

    def _submit_video_sync(self, request: GenerationRequest) -> OperationHandle:
        if not request.scene_id:
            raise ValueError("Video requests must carry a scene_id")

        payload: dict[str, Any] = {
            "token": self._token,
            "recaptchaToken": self._recaptcha_token,
            "prompt": request.instruction_text,
            "mediaId": request.media_id,
            "imageBase64": None,
            "aspectRatio": video_aspect(request.aspect_ratio),
        }
        if not request.media_id and request.base_image is not None:
            payload["imageBase64"], _ = load_media_base64(request.base_image)
        if request.end_image is not None:
            payload["endImageBase64"], _ = load_media_base64(request.end_image)

        logger.info(f"Submitting video for scene {request.scene_id}")
        data = self._post("/api/proxy/google/video/start", payload)

        name = _dig((data.get("requests") or [{}])[0], "operation", "name")
        if not name:
            details = (
                _dig(data, "details", "error", "message")
                or _dig(data, "error", "message")
                or "Unknown error"
            )
            raise MalformedResponseError(f"Video submission returned no operation: {details}")

        logger.debug(f"Scene {request.scene_id} operation: {name}")
        return OperationHandle(name=name, scene_id=request.scene_id)

    async def poll_videos(self, handles: list[OperationHandle]) -> list[PollResult]:
        """Check status for every handle in one proxy call."""
        if not handles:
            return []
        return await asyncio.to_thread(self._poll_videos_sync, handles)

    def _poll_videos_sync(self, handles: list[OperationHandle]) -> list[PollResult]:
        payload = {
            "token": self._token,
            "operations": [
                {
                    "operation": {"name": handle.name},
                    "sceneId": handle.scene_id,
                    "status": STATUS_ACTIVE,
                }
                for handle in handles
            ],
        }
        data = self._post("/api/proxy/google/video/status", payload)

        updates = data.get("operations")
        if not isinstance(updates, list):
            logger.debug("Status response carried no operations list")
            return []

        results: list[PollResult] = []
        for update in updates:
            scene_id = update.get("sceneId") if isinstance(update, dict) else None
            if not scene_id:
                continue
            results.append(self._parse_status(scene_id, update))
        return results

    @staticmethod
    def _parse_status(scene_id: str, update: dict) -> PollResult:
        status = update.get("status")
        if status == STATUS_SUCCEEDED:
            result = update.get("result") or {}
            url = (
                _dig(result, "video", "video", "url")
                or _dig(result, "video", "url")
                or result.get("url")
            )
            artifact = MediaRef(uri=url, mime_type="video/mp4") if url else None
            return PollResult(scene_id=scene_id, status=PollStatus.SUCCEEDED, artifact=artifact)

        if status == STATUS_FAILED:
            message = _dig(update, "error", "message") or "Video generation failed"
            return PollResult(scene_id=scene_id, status=PollStatus.FAILED, error_message=message)

        return PollResult(scene_id=scene_id, status=PollStatus.ACTIVE)
