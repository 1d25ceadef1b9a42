"""Grouping of pending photos into submission batches."""

import asyncio
import base64
from typing import Optional, Sequence, TypeVar

import structlog

from obra_photo.models.batch import Batch, BatchItem
from obra_photo.models.result import InputImage
from obra_photo.services.ocr_extractor import LocalOCRExtractor

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def partition(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """
    Split ``items`` into consecutive groups of ``batch_size``.

    The last group holds the remainder. Input order is kept.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def encode_image(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class BatchAssembler:
    """Builds submission-ready batches with base64 payloads and local OCR."""

    def __init__(self, batch_size: int = 5, ocr_concurrency: int = 2) -> None:
        """
        Initialize the assembler.

        Args:
            batch_size: Items per batch.
            ocr_concurrency: Max photos going through local OCR at once.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size
        self.ocr_concurrency = max(1, ocr_concurrency)

    def plan(self, pending: Sequence[tuple[InputImage, str]]) -> list[list[tuple[InputImage, str]]]:
        """Group ``(image, hash)`` pairs without enriching them."""
        return partition(pending, self.batch_size)

    async def enrich(
        self,
        index: int,
        group: Sequence[tuple[InputImage, str]],
        ocr_extractor: Optional[LocalOCRExtractor] = None,
    ) -> Batch:
        """
        Turn one planned group into a Batch.

        Base64 is computed for every item. When an extractor is given, OCR
        runs with at most ``ocr_concurrency`` photos in flight and finishes
        before the batch is returned.

        Args:
            index: Zero-based batch position.
            group: ``(image, hash)`` pairs of the batch.
            ocr_extractor: Optional local OCR collaborator.

        Returns:
            Batch with items in the same order as ``group``.
        """
        semaphore = asyncio.Semaphore(self.ocr_concurrency)

        async def build(image: InputImage, content_hash: str) -> BatchItem:
            ocr = None
            if ocr_extractor is not None:
                async with semaphore:
                    ocr = await ocr_extractor.extract(image)
            return BatchItem(
                image=image,
                hash=content_hash,
                base64=encode_image(image.data),
                ocr=ocr,
            )

        items = await asyncio.gather(*(build(image, h) for image, h in group))
        logger.debug(
            "batch_enriched",
            batch_index=index,
            items=len(items),
            with_ocr=sum(1 for item in items if item.ocr is not None),
        )
        return Batch(index=index, items=list(items))

    async def assemble(
        self,
        pending: Sequence[tuple[InputImage, str]],
        ocr_extractor: Optional[LocalOCRExtractor] = None,
    ) -> list[Batch]:
        """
        Partition and enrich every pending photo.

        Args:
            pending: ``(image, hash)`` pairs not found in the cache.
            ocr_extractor: Optional local OCR collaborator.

        Returns:
            Batches in input order.
        """
        return [
            await self.enrich(index, group, ocr_extractor)
            for index, group in enumerate(self.plan(pending))
        ]
