"""Gemini image generation client (API key, synchronous capability)."""

import asyncio
import base64
import logging
from typing import Optional

import requests
from google.api_core import exceptions as google_exceptions

from ..config import config
from ..errors import MalformedResponseError, MissingCredentialError
from .base import Artifact, GenerationRequest, ImageProvider
from .media import load_media_base64

logger = logging.getLogger(__name__)


class GeminiImageClient(ImageProvider):
    """Client wrapper for Gemini image generation over the REST API.

    Reference images are sent as inline parts, each preceded by a text part
    carrying its label and instruction, followed by the instruction text.
    """

    DEFAULT_MODEL = "gemini-3-pro-image-preview"
    DEFAULT_TIMEOUT = 120.0  # seconds

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the Gemini client.

        Args:
            api_key: Gemini API key. Defaults to GEMINI_API_KEY env var.
            model: Image model name. Defaults to config.image_model.
            endpoint: REST endpoint root.
            timeout: Request timeout in seconds.
            session: Optional requests session (for connection reuse).
        """
        self._api_key = (api_key or config.gemini_api_key or "").strip()
        if not self._api_key:
            raise MissingCredentialError("image generation (Gemini API key)")

        self._model = model or config.image_model or self.DEFAULT_MODEL
        self._endpoint = (endpoint or config.gemini_endpoint).rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def model(self) -> str:
        return self._model

    async def generate_image(self, request: GenerationRequest) -> Artifact:
        """Generate an image from an assembled request.

        Args:
            request: Instruction text plus labeled reference images.

        Returns:
            Artifact with the image bytes.

        Raises:
            google_exceptions.GoogleAPICallError: If the API returns an error status.
            MalformedResponseError: If the response contains no image.
        """
        return await asyncio.to_thread(self._generate_sync, request)

    def _generate_sync(self, request: GenerationRequest) -> Artifact:
        model = request.target_model or self._model
        url = f"{self._endpoint}/models/{model}:generateContent"
        body = self._build_body(request)
        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }

        logger.info(f"Generating image with {model}: {request.instruction_text[:50]}...")
        response = self._session.post(url, json=body, headers=headers, timeout=self._timeout)

        if response.status_code != 200:
            error = google_exceptions.from_http_response(response)
            logger.error(f"Gemini API error: {error}")
            raise error

        return self._parse_response(response.json())

    def _build_body(self, request: GenerationRequest) -> dict:
        """Build the generateContent request body."""
        parts: list[dict] = []
        for ref in request.all_images():
            data, mime_type = load_media_base64(ref.image)
            label = f"[{ref.label}]"
            parts.append({"text": f"{label}: {ref.instruction}" if ref.instruction else label})
            parts.append({"inline_data": {"mime_type": mime_type, "data": data}})

        parts.append({"text": request.instruction_text})

        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": request.aspect_ratio or "16:9"},
            },
        }

    @staticmethod
    def _parse_response(data: dict) -> Artifact:
        """Extract the first inline image from a generateContent response.

        Raises:
            MalformedResponseError: If no image part is present.
        """
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            detail = f" (blocked: {reason})" if reason else ""
            raise MalformedResponseError(f"No candidates in response{detail}")

        content = candidates[0].get("content") or {}
        for part in content.get("parts") or []:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return Artifact(data=base64.b64decode(inline["data"]), mime_type=mime_type)

        finish = candidates[0].get("finishReason")
        detail = f" (finish reason: {finish})" if finish else ""
        raise MalformedResponseError(f"No image data in response{detail}")
