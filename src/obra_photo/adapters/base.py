"""Base OCR engine interface."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from obra_photo.exceptions import ObraPhotoError


class OCRText(BaseModel):
    """Raw text recognized by an OCR engine."""

    text: str
    """Recognized text, lines separated by newlines."""

    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    """Mean word confidence reported by the engine, 0..100."""


class BaseOCREngine(ABC):
    """Abstract base class for OCR engines."""

    def __init__(self, config: dict[str, Any]) -> None:
        """
        Initialize the OCR engine.

        Args:
            config: Configuration dictionary for the engine.
        """
        self.config = config

    @abstractmethod
    async def recognize(self, image_data: bytes) -> OCRText:
        """
        Recognize the text printed in a photo.

        Args:
            image_data: Raw encoded image bytes.

        Returns:
            OCRText with the recognized text and its confidence.

        Raises:
            OCRError: If recognition fails.
        """
        pass

    async def cleanup(self) -> None:
        """
        Clean up resources used by the engine.

        Override this method if your engine holds workers or connections.
        """
        pass

    async def __aenter__(self) -> "BaseOCREngine":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.cleanup()


class OCRError(ObraPhotoError):
    """Raised when an OCR engine cannot recognize an image."""
