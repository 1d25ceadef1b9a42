"""Local OCR pre-processing of photos before remote classification."""

from typing import Optional

import structlog

from obra_photo.adapters.base import BaseOCREngine, OCRError
from obra_photo.adapters.factory import OCREngineFactory
from obra_photo.config import Settings
from obra_photo.models.result import InputImage, PreProcessedOCR
from obra_photo.parsing.fields import extract_structured_data

logger = structlog.get_logger(__name__)


class LocalOCRExtractor:
    """
    Runs an OCR engine over a photo and parses the site-sign fields.

    Local OCR only trims the work left to the remote classifier, so every
    failure is logged and reported as ``None`` rather than raised.
    """

    def __init__(self, engine: BaseOCREngine) -> None:
        """
        Initialize the extractor.

        Args:
            engine: OCR engine, reused across calls.
        """
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalOCRExtractor":
        return cls(OCREngineFactory.create_from_settings(settings))

    async def extract(self, image: InputImage) -> Optional[PreProcessedOCR]:
        """
        Recognize and parse the text of one photo.

        Args:
            image: Photo to read.

        Returns:
            Parsed fields, or None when recognition failed or found no text.
        """
        try:
            recognized = await self.engine.recognize(image.data)
        except OCRError as e:
            logger.warning(
                "local_ocr_failed",
                filename=image.filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        except Exception as e:
            logger.warning(
                "local_ocr_unexpected_error",
                filename=image.filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if not recognized.text.strip():
            logger.debug("local_ocr_no_text", filename=image.filename)
            return None

        try:
            parsed = extract_structured_data(
                recognized.text, confidence=recognized.confidence / 100.0
            )
        except Exception as e:
            logger.warning(
                "local_ocr_parse_failed",
                filename=image.filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        logger.debug(
            "local_ocr_extracted",
            filename=image.filename,
            frente_servico=parsed.frente_servico,
            rodovia=parsed.rodovia,
            has_placa=parsed.has_placa,
        )
        return parsed

    async def aclose(self) -> None:
        """Release the engine."""
        await self.engine.cleanup()
