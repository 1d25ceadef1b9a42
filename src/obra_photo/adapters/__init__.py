"""Adapters for OCR engines, the remote classifier and cache persistence."""

from obra_photo.adapters.base import BaseOCREngine, OCRError, OCRText
from obra_photo.adapters.cache_store import (
    BaseCacheStore,
    InMemoryCacheStore,
    JsonFileCacheStore,
    create_cache_store,
)
from obra_photo.adapters.classifier_client import RemoteClassifierClient
from obra_photo.adapters.factory import OCREngineFactory
from obra_photo.adapters.mock_engine import MockOCREngine
from obra_photo.adapters.tesseract_engine import TesseractOCREngine

__all__ = [
    "BaseCacheStore",
    "BaseOCREngine",
    "InMemoryCacheStore",
    "JsonFileCacheStore",
    "MockOCREngine",
    "OCREngineFactory",
    "OCRError",
    "OCRText",
    "RemoteClassifierClient",
    "TesseractOCREngine",
    "create_cache_store",
]
