"""Pytest configuration and shared fixtures."""

import io
import json
from typing import Any, Callable, Optional

import httpx
import pytest
from PIL import Image

from obra_photo.adapters.classifier_client import RemoteClassifierClient
from obra_photo.config import get_settings
from obra_photo.models import ExifData, GPSCoordinates, InputImage

Responder = Callable[[dict[str, Any]], httpx.Response]


async def no_sleep(seconds: float) -> None:
    """Sleep replacement that returns immediately."""
    return None


def success_item(
    portico: str = "BSO_04",
    disciplina: str = "CONTENCAO",
    servico: str = "TIRANTE",
    data: Optional[str] = "24/11/2025",
    confidence: Any = 0.9,
) -> dict[str, Any]:
    return {
        "portico": portico,
        "disciplina": disciplina,
        "servico": servico,
        "data": data,
        "confidence": confidence,
        "analise_tecnica": "Tirantes em execução",
        "alertas": {"sem_placa": False, "texto_ilegivel": False, "evidencia_fraca": False},
    }


class ClassifierStub:
    """Scriptable stand-in for the ``analyze-batch`` endpoint."""

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.responders: list[Responder] = []
        self.default: Optional[Responder] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.responders:
            return self.responders.pop(0)(body)
        if self.default is not None:
            return self.default(body)
        return httpx.Response(200, json=self.success_payload(body))

    @staticmethod
    def success_payload(body: dict[str, Any]) -> dict[str, Any]:
        return {
            "results": [
                {"hash": image["hash"], "result": success_item()} for image in body["images"]
            ],
            "errors": [],
            "partial": False,
        }

    @property
    def call_count(self) -> int:
        return len(self.requests)

    @property
    def submitted_filenames(self) -> list[list[str]]:
        return [[image["filename"] for image in body["images"]] for body in self.requests]


@pytest.fixture
def classifier_stub() -> ClassifierStub:
    return ClassifierStub()


@pytest.fixture
def classifier_client(classifier_stub: ClassifierStub) -> RemoteClassifierClient:
    """Classifier client wired to the stub with instant backoff."""
    return RemoteClassifierClient(
        base_url="http://classifier.test",
        transport=httpx.MockTransport(classifier_stub.handler),
        max_retries=3,
        retry_base_delay=2.0,
        sleep=no_sleep,
    )


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Create sample JPEG bytes for testing."""
    img = Image.new("RGB", (320, 240), color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def make_image() -> Callable[..., InputImage]:
    """Factory for input images with distinct content per name."""

    def _make(
        filename: str,
        content: Optional[bytes] = None,
        exif: Optional[ExifData] = None,
    ) -> InputImage:
        data = content if content is not None else f"photo:{filename}".encode()
        return InputImage(filename=filename, data=data, exif=exif)

    return _make


@pytest.fixture
def gps_exif() -> ExifData:
    return ExifData(date="2025:11:24 10:15:00", gps=GPSCoordinates(lat=-22.9056, lon=-47.0608))


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set up test environment variables."""
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("OCR_ENGINE", "mock")
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    get_settings.cache_clear()
