"""Tesseract OCR engine backed by pytesseract."""

import asyncio
import io
from typing import Any

import pytesseract
import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from obra_photo.adapters.base import BaseOCREngine, OCRError, OCRText

logger = structlog.get_logger(__name__)


class TesseractOCREngine(BaseOCREngine):
    """
    Local OCR through the Tesseract binary.

    Recognition is CPU bound, so each call runs in a worker thread to keep
    the event loop responsive while batches are being prepared.
    """

    def __init__(self, config: dict[str, Any]) -> None:
        """
        Initialize the Tesseract engine.

        Args:
            config: Configuration dictionary. Supports:
                - language: Tesseract language pack (default: por)
                - psm: Page segmentation mode (default: 6)
                - max_dimension: Longest side images are scaled down to
                  before recognition (default: 2000)
        """
        super().__init__(config)
        self.language = config.get("language", "por")
        self.psm = config.get("psm", 6)
        self.max_dimension = config.get("max_dimension", 2000)

        logger.info(
            "tesseract_engine_initialized",
            language=self.language,
            psm=self.psm,
        )

    async def recognize(self, image_data: bytes) -> OCRText:
        """
        Recognize text with Tesseract.

        Args:
            image_data: Raw encoded image bytes.

        Returns:
            OCRText with text and mean word confidence.

        Raises:
            OCRError: If the image cannot be decoded or Tesseract fails.
        """
        try:
            return await asyncio.to_thread(self._recognize_sync, image_data)
        except OCRError:
            raise
        except (pytesseract.TesseractError, OSError) as e:
            logger.error(
                "tesseract_recognition_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OCRError(f"Tesseract failed: {e}", original_error=e) from e

    def _recognize_sync(self, image_data: bytes) -> OCRText:
        image = self._prepare(image_data)
        config = f"--psm {self.psm}"

        text = pytesseract.image_to_string(image, lang=self.language, config=config)
        data = pytesseract.image_to_data(
            image,
            lang=self.language,
            config=config,
            output_type=pytesseract.Output.DICT,
        )

        return OCRText(text=text.strip(), confidence=self._mean_confidence(data))

    def _prepare(self, image_data: bytes) -> Image.Image:
        """Decode, grayscale and downscale an image for recognition."""
        try:
            image = Image.open(io.BytesIO(image_data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise OCRError("Image could not be decoded", original_error=e) from e

        image = ImageOps.exif_transpose(image)
        if max(image.size) > self.max_dimension:
            image.thumbnail((self.max_dimension, self.max_dimension))
        return ImageOps.autocontrast(image.convert("L"))

    @staticmethod
    def _mean_confidence(data: dict[str, list[Any]]) -> float:
        # Tesseract reports -1 for layout boxes that carry no word
        scores = []
        for raw in data.get("conf", []):
            try:
                score = float(raw)
            except (TypeError, ValueError):
                continue
            if score >= 0:
                scores.append(score)
        if not scores:
            return 0.0
        return min(sum(scores) / len(scores), 100.0)
