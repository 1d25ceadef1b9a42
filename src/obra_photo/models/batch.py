"""Batch models exchanged between the assembler, client and queue."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from obra_photo.models.result import ClassificationResult, InputImage, PreProcessedOCR


class BatchItem(BaseModel):
    """One image ready for submission."""

    model_config = ConfigDict(frozen=True)

    image: InputImage
    hash: str
    base64: str
    ocr: Optional[PreProcessedOCR] = None

    @property
    def filename(self) -> str:
        return self.image.filename


class Batch(BaseModel):
    """A fixed-size group of items submitted in one request."""

    index: int = Field(..., description="Zero-based position in the run")
    items: list[BatchItem] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)


class ItemErrorKind(str, Enum):
    """Classification of a per-item failure message."""

    RATE_LIMITED = "rate_limited"
    CREDIT_EXHAUSTED = "credit_exhausted"
    FAILED = "failed"


class ItemFailure(BaseModel):
    """A per-item error reported inside an otherwise successful batch."""

    hash: str
    filename: str
    error: str
    kind: ItemErrorKind = ItemErrorKind.FAILED


class BatchOutcome(BaseModel):
    """Normalized result of one batch submission."""

    results: list[ClassificationResult] = Field(default_factory=list)
    errors: list[ItemFailure] = Field(default_factory=list)

    @property
    def credit_exhausted(self) -> bool:
        return any(e.kind == ItemErrorKind.CREDIT_EXHAUSTED for e in self.errors)
