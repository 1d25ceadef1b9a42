"""Configuration management for the photo processing queue."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = Field(default="obra-photo-queue", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Remote Classifier Configuration
    classifier_url: str = Field(
        default="http://localhost:8001",
        description="Base URL of the batch classification endpoint",
    )
    classifier_api_key: Optional[str] = Field(
        default=None,
        description="Bearer token sent to the classification endpoint",
    )
    classifier_timeout: float = Field(
        default=120.0,
        description="Classifier request timeout in seconds",
    )
    classifier_max_retries: int = Field(
        default=3,
        ge=1,
        description="Max attempts per batch request",
    )
    classifier_retry_base_delay: float = Field(
        default=2.0,
        ge=0.0,
        description="First backoff delay in seconds, doubled per attempt",
    )

    # Queue Pacing
    batch_size: int = Field(default=5, ge=1, description="Photos per batch request")
    pacing_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Delay between batch submissions",
    )
    fallback_delay_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Pacing multiplier used between per-item fallback calls",
    )
    group_size: int = Field(
        default=20,
        ge=1,
        description="Submitted photos per group before a cooldown",
    )
    cooldown_seconds: int = Field(
        default=120,
        ge=0,
        description="Cooldown length between groups in seconds",
    )

    # Local OCR Configuration
    ocr_engine: Literal["tesseract", "mock"] = Field(
        default="tesseract", description="OCR engine to use"
    )
    ocr_language: str = Field(default="por", description="Tesseract language pack")
    ocr_concurrency: int = Field(
        default=2,
        ge=1,
        description="Max images recognized at the same time",
    )
    use_local_ocr: bool = Field(
        default=True,
        description="Run local OCR before remote classification",
    )

    # Result Cache
    cache_backend: Literal["memory", "json"] = Field(
        default="memory", description="Persistence backend for cached results"
    )
    cache_path: str = Field(
        default=".cache/obra_photo",
        description="Directory used by the json cache backend",
    )
    hash_length: int = Field(
        default=16,
        ge=1,
        le=64,
        description="Hex characters kept from the SHA-256 content hash",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
