"""Wire format of the batch classification endpoint."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from obra_photo.models.result import ExifData, PreProcessedOCR


class ImagePayload(BaseModel):
    """One image inside a batch request."""

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64")
    filename: str
    hash: str
    exif_data: Optional[ExifData] = Field(None, alias="exifData")
    ocr_data: Optional[PreProcessedOCR] = Field(None, alias="ocrData")


class BatchRequest(BaseModel):
    """Request body of ``POST /v1/analyze-batch``."""

    model_config = ConfigDict(populate_by_name=True)

    images: list[ImagePayload]
    default_portico: Optional[str] = Field(None, alias="defaultPortico")
    empresa: Optional[str] = None
    economic_mode: bool = Field(default=False, alias="economicMode")


class ItemResult(BaseModel):
    """A successful per-image entry of a batch response."""

    hash: str
    result: Any = None


class ItemError(BaseModel):
    """A failed per-image entry of a batch response."""

    hash: str
    error: str


class BatchResponse(BaseModel):
    """Response body of ``POST /v1/analyze-batch``."""

    results: list[ItemResult] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)
    partial: bool = False
    remaining: list[str] = Field(default_factory=list)
