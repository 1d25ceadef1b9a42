"""Data models for the photo processing core."""

from obra_photo.models.batch import (
    Batch,
    BatchItem,
    BatchOutcome,
    ItemErrorKind,
    ItemFailure,
)
from obra_photo.models.queue import ProcessingConfig, QueueState, QueueStats, RunSummary
from obra_photo.models.result import (
    ERROR_PREFIX,
    SKIPPED_CREDIT_LIMIT,
    SKIPPED_PREFIX,
    STATUS_SUCCESS,
    CacheEntry,
    ClassificationAlerts,
    ClassificationMethod,
    ClassificationResult,
    ExifData,
    GPSCoordinates,
    InputImage,
    PreProcessedOCR,
)

__all__ = [
    "Batch",
    "BatchItem",
    "BatchOutcome",
    "CacheEntry",
    "ClassificationAlerts",
    "ClassificationMethod",
    "ClassificationResult",
    "ERROR_PREFIX",
    "ExifData",
    "GPSCoordinates",
    "InputImage",
    "ItemErrorKind",
    "ItemFailure",
    "PreProcessedOCR",
    "ProcessingConfig",
    "QueueState",
    "QueueStats",
    "RunSummary",
    "SKIPPED_CREDIT_LIMIT",
    "SKIPPED_PREFIX",
    "STATUS_SUCCESS",
]
