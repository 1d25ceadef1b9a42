"""Configuration for the classifier gateway."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """Gateway settings loaded from ``GATEWAY_``-prefixed environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream vision model
    upstream_url: str = Field(
        default="https://ai.gateway.lovable.dev",
        description="Base URL of the OpenAI-compatible chat completions API",
    )
    upstream_api_key: Optional[str] = Field(default=None, description="Upstream API key")
    upstream_timeout: float = Field(default=60.0, description="Upstream timeout in seconds")
    upstream_max_retries: int = Field(default=3, ge=1, description="Attempts per image")
    upstream_retry_base_delay: float = Field(
        default=2.0, ge=0.0, description="First backoff delay in seconds"
    )

    model: str = Field(default="google/gemini-2.5-flash", description="Default model")
    economic_model: str = Field(
        default="google/gemini-2.5-flash-lite",
        description="Cheaper model used in economic mode or with OCR hints",
    )
    max_tokens: int = Field(default=800, description="Completion budget per image")
    economic_max_tokens: int = Field(
        default=500, description="Completion budget in economic mode"
    )
    ocr_hint_max_tokens: int = Field(
        default=300, description="Completion budget when local OCR data is supplied"
    )

    # Batch handling
    max_batch_size: int = Field(default=10, ge=1, description="Max images per request")
    inter_image_delay: float = Field(
        default=1.0, ge=0.0, description="Seconds between upstream calls in a batch"
    )

    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_gateway_settings() -> GatewaySettings:
    """Get cached gateway settings."""
    return GatewaySettings()
