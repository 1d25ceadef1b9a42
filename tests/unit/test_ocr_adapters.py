"""Unit tests for OCR adapters and the local OCR extractor."""

from unittest.mock import patch

import pytesseract
import pytest

from obra_photo.adapters import (
    BaseOCREngine,
    MockOCREngine,
    OCREngineFactory,
    OCRError,
    OCRText,
    TesseractOCREngine,
)
from obra_photo.adapters.mock_engine import DEFAULT_MOCK_TEXT
from obra_photo.config import Settings
from obra_photo.models import InputImage
from obra_photo.services.ocr_extractor import LocalOCRExtractor


class TestMockOCREngine:
    """Tests for MockOCREngine."""

    @pytest.fixture
    def mock_engine(self) -> MockOCREngine:
        """Create a mock OCR engine instance."""
        return MockOCREngine(config={"delay_ms": 0, "fail_rate": 0.0})

    @pytest.mark.asyncio
    async def test_recognize_returns_sample_sign(
        self, mock_engine: MockOCREngine, jpeg_bytes: bytes
    ) -> None:
        """Test that the default text is a readable site sign."""
        result = await mock_engine.recognize(jpeg_bytes)

        assert isinstance(result, OCRText)
        assert result.text == DEFAULT_MOCK_TEXT
        assert result.confidence == 85.0

    @pytest.mark.asyncio
    async def test_recognize_configured_text(self) -> None:
        """Test that configured text and confidence are returned."""
        engine = MockOCREngine(config={"text": "PORTICO 07", "confidence": 60.0})

        result = await engine.recognize(b"fake image data")

        assert result.text == "PORTICO 07"
        assert result.confidence == 60.0

    @pytest.mark.asyncio
    async def test_recognize_with_simulated_failure(self) -> None:
        """Test simulated failure."""
        failing_engine = MockOCREngine(config={"delay_ms": 0, "fail_rate": 1.0})

        with pytest.raises(OCRError) as exc_info:
            await failing_engine.recognize(b"fake image data")

        assert "simulated failure" in str(exc_info.value).lower()

    @pytest.mark.asyncio
    async def test_process_count_increments(
        self, mock_engine: MockOCREngine, jpeg_bytes: bytes
    ) -> None:
        """Test that process count increments."""
        assert mock_engine.process_count == 0

        await mock_engine.recognize(jpeg_bytes)
        assert mock_engine.process_count == 1

        await mock_engine.recognize(jpeg_bytes)
        assert mock_engine.process_count == 2


class TestTesseractOCREngine:
    """Tests for TesseractOCREngine (without the Tesseract binary)."""

    @pytest.fixture
    def engine(self) -> TesseractOCREngine:
        """Create a Tesseract engine instance."""
        return TesseractOCREngine(config={"language": "por", "max_dimension": 100})

    def test_engine_initialization(self, engine: TesseractOCREngine) -> None:
        """Test Tesseract engine initialization."""
        assert engine.language == "por"
        assert engine.psm == 6
        assert engine.max_dimension == 100

    def test_prepare_downscales_and_grayscales(
        self, engine: TesseractOCREngine, jpeg_bytes: bytes
    ) -> None:
        """Test that images are converted before recognition."""
        image = engine._prepare(jpeg_bytes)

        assert image.mode == "L"
        assert max(image.size) <= 100

    def test_prepare_invalid_data_raises_error(self, engine: TesseractOCREngine) -> None:
        """Test that undecodable data raises OCRError."""
        with pytest.raises(OCRError) as exc_info:
            engine._prepare(b"not an image")

        assert "could not be decoded" in str(exc_info.value)

    def test_mean_confidence_ignores_layout_boxes(self) -> None:
        """Test that -1 scores are left out of the mean."""
        data = {"conf": ["-1", "90", 80, "-1", "bad"]}

        assert TesseractOCREngine._mean_confidence(data) == pytest.approx(85.0)
        assert TesseractOCREngine._mean_confidence({"conf": ["-1"]}) == 0.0

    @pytest.mark.asyncio
    async def test_recognize(self, engine: TesseractOCREngine, jpeg_bytes: bytes) -> None:
        """Test recognition through pytesseract."""
        with patch.object(
            pytesseract, "image_to_string", return_value="  BSO 04\n"
        ), patch.object(
            pytesseract, "image_to_data", return_value={"conf": ["-1", "70", "90"]}
        ):
            result = await engine.recognize(jpeg_bytes)

        assert result.text == "BSO 04"
        assert result.confidence == pytest.approx(80.0)

    @pytest.mark.asyncio
    async def test_tesseract_failure_raises_ocr_error(
        self, engine: TesseractOCREngine, jpeg_bytes: bytes
    ) -> None:
        """Test that Tesseract errors are wrapped."""
        failure = pytesseract.TesseractError(1, "missing language data")

        with patch.object(pytesseract, "image_to_string", side_effect=failure):
            with pytest.raises(OCRError) as exc_info:
                await engine.recognize(jpeg_bytes)

        assert "Tesseract failed" in str(exc_info.value)
        assert exc_info.value.original_error is failure


class TestOCREngineFactory:
    """Tests for OCREngineFactory."""

    def test_create_mock_engine(self) -> None:
        """Test creating a mock engine."""
        engine = OCREngineFactory.create("mock", {"delay_ms": 0})

        assert isinstance(engine, MockOCREngine)
        assert isinstance(engine, BaseOCREngine)

    def test_create_tesseract_engine(self) -> None:
        """Test creating a Tesseract engine."""
        engine = OCREngineFactory.create("Tesseract", {"language": "eng"})

        assert isinstance(engine, TesseractOCREngine)
        assert engine.language == "eng"

    def test_create_unknown_engine_raises_error(self) -> None:
        """Test that creating an unknown engine raises ValueError."""
        with pytest.raises(ValueError) as exc_info:
            OCREngineFactory.create("nonexistent", {})

        assert "Unknown OCR engine type" in str(exc_info.value)
        assert "nonexistent" in str(exc_info.value)

    def test_create_from_settings_mock(self) -> None:
        """Test creating engine from settings with mock engine."""
        settings = Settings(ocr_engine="mock")
        engine = OCREngineFactory.create_from_settings(settings)

        assert isinstance(engine, MockOCREngine)

    def test_create_from_settings_tesseract(self) -> None:
        """Test creating engine from settings with Tesseract engine."""
        settings = Settings(ocr_engine="tesseract", ocr_language="eng")
        engine = OCREngineFactory.create_from_settings(settings)

        assert isinstance(engine, TesseractOCREngine)
        assert engine.language == "eng"

    def test_list_engines(self) -> None:
        """Test listing available engines."""
        engines = OCREngineFactory.list_engines()

        assert "mock" in engines
        assert "tesseract" in engines
        assert isinstance(engines, list)

    def test_register_custom_engine(self) -> None:
        """Test registering a custom engine."""

        class CustomEngine(BaseOCREngine):
            async def recognize(self, image_data):
                return OCRText(text="custom", confidence=50.0)

        OCREngineFactory.register_engine("custom", CustomEngine)

        assert "custom" in OCREngineFactory.list_engines()

        engine = OCREngineFactory.create("custom", {})
        assert isinstance(engine, CustomEngine)

    def test_register_invalid_engine_raises_error(self) -> None:
        """Test that registering non-OCR engine class raises TypeError."""

        class NotAnEngine:
            pass

        with pytest.raises(TypeError) as exc_info:
            OCREngineFactory.register_engine("invalid", NotAnEngine)

        assert "must inherit from BaseOCREngine" in str(exc_info.value)


class TestOCRError:
    """Tests for OCRError exception."""

    def test_ocr_error_creation(self) -> None:
        """Test creating an OCRError."""
        error = OCRError("Test error")

        assert str(error) == "Test error"
        assert error.original_error is None

    def test_ocr_error_with_original(self) -> None:
        """Test OCRError with original exception."""
        original = ValueError("original error")
        error = OCRError("Wrapped error", original_error=original)

        assert str(error) == "Wrapped error"
        assert error.original_error is original


class TestBaseOCREngine:
    """Tests for BaseOCREngine abstract class."""

    def test_cannot_instantiate_base_engine(self) -> None:
        """Test that BaseOCREngine cannot be instantiated directly."""
        with pytest.raises(TypeError):
            BaseOCREngine({})  # type: ignore

    @pytest.mark.asyncio
    async def test_cleanup_called_on_exit(self) -> None:
        """Test that cleanup is called on async context manager exit."""
        mock_engine = MockOCREngine(config={})
        cleanup_called = False

        async def mock_cleanup() -> None:
            nonlocal cleanup_called
            cleanup_called = True

        mock_engine.cleanup = mock_cleanup

        async with mock_engine as engine:
            assert engine is mock_engine

        assert cleanup_called


class TestLocalOCRExtractor:
    """Tests for LocalOCRExtractor."""

    @pytest.fixture
    def image(self) -> InputImage:
        return InputImage(filename="placa.jpg", data=b"fake image data")

    @pytest.mark.asyncio
    async def test_extract_parses_sign(self, image: InputImage) -> None:
        """Test that recognized text is parsed into sign fields."""
        extractor = LocalOCRExtractor(MockOCREngine(config={}))

        parsed = await extractor.extract(image)

        assert parsed is not None
        assert parsed.frente_servico == "BSO_04"
        assert parsed.rodovia == "SP-280"
        assert parsed.confidence == pytest.approx(0.85)

    @pytest.mark.asyncio
    async def test_engine_failure_returns_none(self, image: InputImage) -> None:
        """Test that OCR failures never reach the caller."""
        extractor = LocalOCRExtractor(MockOCREngine(config={"fail_rate": 1.0}))

        assert await extractor.extract(image) is None

    @pytest.mark.asyncio
    async def test_blank_text_returns_none(self, image: InputImage) -> None:
        """Test that an image without text yields no fields."""
        extractor = LocalOCRExtractor(MockOCREngine(config={"text": "  \n "}))

        assert await extractor.extract(image) is None

    @pytest.mark.asyncio
    async def test_from_settings_uses_configured_engine(self) -> None:
        """Test building the extractor from settings."""
        extractor = LocalOCRExtractor.from_settings(Settings(ocr_engine="mock"))

        assert isinstance(extractor.engine, MockOCREngine)
        await extractor.aclose()
