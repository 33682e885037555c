"""Provider selection from available credentials."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Config, config as default_config
from ..errors import MissingCredentialError
from .base import ImageProvider, VideoProvider
from .gemini import GeminiImageClient
from .labs import LabsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Credentials available at call time. Either may be absent."""

    api_key: Optional[str] = None
    session_token: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: Config) -> "Credentials":
        return cls(
            api_key=cfg.gemini_api_key.strip() or None,
            session_token=cfg.labs_session_token.strip() or None,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.api_key or self.session_token)


class ProviderRegistry:
    """Holds the configured provider variants and picks one per job.

    The API-key variant is preferred for images; the token variant is the
    only path for video.
    """

    def __init__(
        self,
        image_client: Optional[ImageProvider] = None,
        token_client: Optional[ImageProvider] = None,
        video_client: Optional[VideoProvider] = None,
    ) -> None:
        self._image_client = image_client
        self._token_client = token_client
        self._video_client = video_client

    @classmethod
    def from_credentials(
        cls, credentials: Credentials, cfg: Optional[Config] = None
    ) -> "ProviderRegistry":
        """Build the concrete clients the credentials allow."""
        cfg = cfg or default_config
        image_client = None
        labs_client = None

        if credentials.api_key:
            image_client = GeminiImageClient(api_key=credentials.api_key, model=cfg.image_model)
        if credentials.session_token:
            labs_client = LabsClient(
                token=credentials.session_token,
                proxy_url=cfg.proxy_url,
                recaptcha_token=cfg.recaptcha_token or None,
            )

        logger.debug(
            f"Providers: image={'gemini' if image_client else '-'} "
            f"labs={'yes' if labs_client else '-'}"
        )
        return cls(image_client=image_client, token_client=labs_client, video_client=labs_client)

    @property
    def has_any(self) -> bool:
        return any((self._image_client, self._token_client, self._video_client))

    @property
    def has_video(self) -> bool:
        return self._video_client is not None

    def image_provider(self) -> ImageProvider:
        """Return the provider for an image job.

        Raises:
            MissingCredentialError: If no image-capable provider is configured.
        """
        provider = self._image_client or self._token_client
        if provider is None:
            raise MissingCredentialError("image generation")
        return provider

    def video_provider(self) -> VideoProvider:
        """Return the provider for a video job.

        Raises:
            MissingCredentialError: If no session token is configured.
        """
        if self._video_client is None:
            raise MissingCredentialError("video generation")
        return self._video_client
