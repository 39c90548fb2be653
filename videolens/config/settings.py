"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

A missing provider key does not stop the process from starting. Every
analysis request fails with a "server misconfigured" error instead.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "VideoLens API"
    api_version: str = "v1"

    # OpenRouter Configuration
    openrouter_api_key: str = Field(
        default="",
        description="OpenRouter API key. Requests fail with a 500 until it is set."
    )
    openrouter_model: str = Field(
        default="google/gemini-2.5-flash-lite",
        description="Multimodal model identifier. Must accept input_video content parts."
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Base URL of the OpenRouter API. /chat/completions is appended."
    )
    openrouter_app_title: str = Field(
        default="VideoLens AI Video Analysis",
        description="Sent as X-Title so requests show up under this name on OpenRouter."
    )
    openrouter_referer: str = Field(
        default="",
        description="Fallback HTTP-Referer when the caller does not send one."
    )
    request_timeout_seconds: float = Field(
        default=300.0,
        description="Connect/write timeout for the provider call. Streaming reads never time out."
    )

    # Upload Limits
    max_video_size_mb: int = Field(
        default=100,
        description="Maximum upload size in MB. Uploads are base64-encoded in memory."
    )
    default_video_mime_type: str = Field(
        default="video/mp4",
        description="MIME type used when the upload does not declare one."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_video_size_bytes(self) -> int:
        return self.max_video_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Return the names of required settings that are missing.

        Kept separate from Pydantic validation so that a missing key
        degrades requests instead of crashing the process at import time.
        """
        missing = []

        if not self.openrouter_api_key.strip():
            missing.append("OPENROUTER_API_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
