"""Mock OCR engine for testing and development."""

import asyncio
import random
from typing import Any

from obra_photo.adapters.base import BaseOCREngine, OCRError, OCRText

DEFAULT_MOCK_TEXT = (
    "SP-280 KM 94+050 SENTIDO LESTE\n"
    "BSO 04 - CONTRATO 123/2024\n"
    "24/11/2025 14:32"
)


class MockOCREngine(BaseOCREngine):
    """Mock OCR engine that returns canned text without decoding the image."""

    def __init__(self, config: dict[str, Any]) -> None:
        """
        Initialize the mock OCR engine.

        Args:
            config: Configuration dictionary. Supports:
                - text: Text returned for every image (default: a sample
                  site sign)
                - confidence: Reported confidence 0..100 (default: 85.0)
                - delay_ms: Simulated processing delay in milliseconds (default: 0)
                - fail_rate: Probability of simulated failure 0.0-1.0 (default: 0.0)
        """
        super().__init__(config)
        self.text = config.get("text", DEFAULT_MOCK_TEXT)
        self.confidence = config.get("confidence", 85.0)
        self.delay_ms = config.get("delay_ms", 0)
        self.fail_rate = config.get("fail_rate", 0.0)
        self.process_count = 0

    async def recognize(self, image_data: bytes) -> OCRText:
        """
        Return the configured text.

        Args:
            image_data: Raw encoded image bytes (only counted).

        Returns:
            OCRText with the canned text.

        Raises:
            OCRError: If a simulated failure occurs.
        """
        await self._simulate_processing()
        self.process_count += 1
        return OCRText(text=self.text, confidence=self.confidence)

    async def _simulate_processing(self) -> None:
        """Simulate processing delay and potential failures."""
        if self.delay_ms > 0:
            await asyncio.sleep(self.delay_ms / 1000.0)

        if self.fail_rate > 0 and random.random() < self.fail_rate:
            raise OCRError(f"Mock OCR simulated failure (fail_rate={self.fail_rate})")
