"""Configuration management."""

import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class Config(BaseModel):
    """Application configuration."""

    # Credentials
    gemini_api_key: str = Field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY", ""),
        description="Gemini API key (synchronous image generation)"
    )
    labs_session_token: str = Field(
        default_factory=lambda: os.getenv("LABS_SESSION_TOKEN", ""),
        description="Labs session token (image + deferred video generation)"
    )
    recaptcha_token: str = Field(
        default_factory=lambda: os.getenv("RECAPTCHA_TOKEN", ""),
        description="Optional reCAPTCHA token forwarded by the proxy"
    )

    # Endpoints
    proxy_url: str = Field(
        default_factory=lambda: os.getenv("SCENEDIR_PROXY_URL", "http://localhost:3001"),
        description="Base URL of the companion proxy server"
    )
    gemini_endpoint: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST endpoint"
    )

    # Model settings
    image_model: str = Field(
        default_factory=lambda: os.getenv("SCENEDIR_IMAGE_MODEL", "gemini-3-pro-image-preview"),
        description="Default image model"
    )

    # Scheduling
    max_concurrency: int = Field(
        default_factory=lambda: _env_int("SCENEDIR_MAX_CONCURRENCY", 3),
        description="Concurrent in-flight jobs when continuity is off",
        ge=1,
    )
    continuity_delay: float = Field(
        default=0.5,
        description="Seconds between jobs in continuity mode",
        ge=0,
    )

    # Retry policy
    retry_attempts: int = Field(default=3, description="Maximum provider attempts", ge=1)
    retry_initial_delay: float = Field(
        default=2.0,
        description="First backoff delay in seconds, doubled per attempt",
        ge=0,
    )

    # Operation polling
    poll_interval: float = Field(
        default_factory=lambda: _env_float("SCENEDIR_POLL_INTERVAL", 5.0),
        description="Seconds between video status checks",
        ge=0,
    )
    poll_max_attempts: int = Field(
        default_factory=lambda: _env_int("SCENEDIR_POLL_MAX_ATTEMPTS", 40),
        description="Status checks before a video is force-failed",
        ge=1,
    )

    def has_credentials(self) -> bool:
        """Return True if any provider credential is configured."""
        return bool(self.gemini_api_key or self.labs_session_token)

    def validate_required(self) -> None:
        """Validate that at least one provider credential is set."""
        if not self.has_credentials():
            raise ValueError(
                "Missing provider credentials: set GEMINI_API_KEY or LABS_SESSION_TOKEN."
            )

    def validate_video_required(self) -> None:
        """Validate that the deferred (video) capability is usable.

        Raises:
            ValueError: If the session token or proxy URL is missing.
        """
        missing: list[str] = []

        if not self.labs_session_token:
            missing.append("LABS_SESSION_TOKEN")
        if not self.proxy_url:
            missing.append("SCENEDIR_PROXY_URL")

        if missing:
            raise ValueError(
                f"Missing required video configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables."
            )

        if not self.proxy_url.startswith(("http://", "https://")):
            raise ValueError(
                f"SCENEDIR_PROXY_URL must be an http(s) URL. Got: {self.proxy_url}"
            )


# Global config instance
config = Config()
