"""Unit tests for the remote classifier client."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from obra_photo.adapters.classifier_client import (
    MISSING_ITEM_MESSAGE,
    RATE_LIMIT_MESSAGE,
    RemoteClassifierClient,
    classify_item_error,
    result_from_payload,
)
from obra_photo.exceptions import (
    ClassifierError,
    CreditExhaustedError,
    MalformedRemoteResponseError,
    TransientRemoteError,
)
from obra_photo.models import (
    Batch,
    BatchItem,
    ClassificationMethod,
    ExifData,
    GPSCoordinates,
    InputImage,
    ItemErrorKind,
    PreProcessedOCR,
    ProcessingConfig,
)
from obra_photo.parsing.normalize import PLACEHOLDER_CONFIDENCE

Handler = Callable[[httpx.Request], httpx.Response]


class SleepRecorder:
    """Records requested sleeps instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _item(
    filename: str,
    hash: str,
    ocr: Optional[PreProcessedOCR] = None,
    exif: Optional[ExifData] = None,
) -> BatchItem:
    return BatchItem(
        image=InputImage(filename=filename, data=filename.encode(), exif=exif),
        hash=hash,
        base64="ZmFrZQ==",
        ocr=ocr,
    )


def _payload(
    data: Optional[str] = "24/11/2025", confidence: Any = 0.9
) -> dict[str, Any]:
    return {
        "portico": "BSO_04",
        "disciplina": "CONTENCAO",
        "servico": "TIRANTE",
        "data": data,
        "confidence": confidence,
        "analise_tecnica": "Tirantes em execução",
    }


def _ok(body: dict[str, Any]) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "results": [{"hash": img["hash"], "result": _payload()} for img in body["images"]],
            "errors": [],
            "partial": False,
        },
    )


def _scripted(*responders: Callable[[dict[str, Any]], httpx.Response]):
    """Handler answering each call with the next responder; the last one repeats."""
    calls: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body)
        responder = responders[min(len(calls) - 1, len(responders) - 1)]
        return responder(body)

    return handler, calls


def _client(
    handler: Handler, sleep: Optional[SleepRecorder] = None, **kwargs: Any
) -> RemoteClassifierClient:
    return RemoteClassifierClient(
        base_url="http://classifier.test",
        transport=httpx.MockTransport(handler),
        sleep=sleep or SleepRecorder(),
        **kwargs,
    )


class TestClassifyBatch:
    """Tests for RemoteClassifierClient.classify_batch."""

    @pytest.fixture
    def config(self) -> ProcessingConfig:
        return ProcessingConfig()

    @pytest.mark.asyncio
    async def test_success_in_item_order(self, config: ProcessingConfig) -> None:
        """Test that every item gets a normalized result."""
        handler, calls = _scripted(_ok)
        client = _client(handler)
        batch = Batch(index=0, items=[_item("a.jpg", "h1"), _item("b.jpg", "h2")])

        outcome = await client.classify_batch(batch, config)

        assert [r.filename for r in outcome.results] == ["a.jpg", "b.jpg"]
        assert outcome.errors == []
        first = outcome.results[0]
        assert first.hash == "h1"
        assert first.portico == "BSO_04"
        assert first.disciplina == "CONTENCAO"
        assert first.servico == "TIRANTE"
        assert first.data_detectada == "24/11/2025"
        assert first.confidence == pytest.approx(0.9)
        assert first.method == ClassificationMethod.FORCED_AI
        assert first.dest == "organized_photos/BSO_04/CONTENCAO/TIRANTE/11_NOVEMBRO/24_11"
        assert client.request_count == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_request_uses_wire_names(self) -> None:
        """Test the request body and headers."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _ok(json.loads(request.content))

        client = _client(handler, api_key="secret")
        config = ProcessingConfig(default_portico="BSO_04", economic_mode=True)

        await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        request = seen[0]
        body = json.loads(request.content)
        assert request.url.path == "/v1/analyze-batch"
        assert request.headers["authorization"] == "Bearer secret"
        assert body["defaultPortico"] == "BSO_04"
        assert body["economicMode"] is True
        assert body["images"][0]["imageBase64"] == "ZmFrZQ=="
        assert body["images"][0]["filename"] == "a.jpg"
        assert "ocrData" not in body["images"][0]

    @pytest.mark.asyncio
    async def test_duplicate_hashes_sent_once(self, config: ProcessingConfig) -> None:
        """Test that identical photos share one classification."""
        handler, calls = _scripted(_ok)
        client = _client(handler)
        batch = Batch(index=0, items=[_item("a.jpg", "same"), _item("copy.jpg", "same")])

        outcome = await client.classify_batch(batch, config)

        assert len(calls[0]["images"]) == 1
        assert [r.filename for r in outcome.results] == ["a.jpg", "copy.jpg"]

    @pytest.mark.asyncio
    async def test_credit_exhausted_is_not_retried(self, config: ProcessingConfig) -> None:
        """Test that HTTP 402 raises immediately."""
        handler, calls = _scripted(
            lambda body: httpx.Response(402, json={"error": "Limite de créditos atingido."})
        )
        client = _client(handler)

        with pytest.raises(CreditExhaustedError) as exc_info:
            await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        assert "402" in str(exc_info.value)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self, config: ProcessingConfig) -> None:
        """Test that 429 is retried after at least the advertised delay."""
        sleep = SleepRecorder()
        handler, calls = _scripted(
            lambda body: httpx.Response(
                429, headers={"Retry-After": "5"}, json={"error": "Rate limit"}
            ),
            _ok,
        )
        client = _client(handler, sleep=sleep, retry_base_delay=2.0)

        outcome = await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        assert len(outcome.results) == 1
        assert len(calls) == 2
        assert sleep.delays == [5.0]

    @pytest.mark.asyncio
    async def test_server_error_retried_with_backoff(self, config: ProcessingConfig) -> None:
        """Test that 5xx responses are retried with doubling delays."""
        sleep = SleepRecorder()
        handler, calls = _scripted(
            lambda body: httpx.Response(503, text="unavailable"),
            lambda body: httpx.Response(502, text="bad gateway"),
            _ok,
        )
        client = _client(handler, sleep=sleep, retry_base_delay=2.0)

        outcome = await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        assert len(outcome.results) == 1
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_server_error_exhausts_attempts(self, config: ProcessingConfig) -> None:
        """Test that a persistent outage surfaces as TransientRemoteError."""
        handler, calls = _scripted(lambda body: httpx.Response(500, json={"error": "boom"}))
        client = _client(handler, max_retries=2)

        with pytest.raises(TransientRemoteError) as exc_info:
            await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        assert "500: boom" in str(exc_info.value)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, config: ProcessingConfig) -> None:
        """Test that timeouts are retried and then raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client = _client(handler, max_retries=2)

        with pytest.raises(TransientRemoteError):
            await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        assert client.request_count == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, config: ProcessingConfig) -> None:
        """Test that a 400 fails the batch without retries."""
        handler, calls = _scripted(
            lambda body: httpx.Response(400, json={"error": "Maximum 10 images per batch"})
        )
        client = _client(handler)

        with pytest.raises(ClassifierError) as exc_info:
            await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        assert not isinstance(exc_info.value, TransientRemoteError)
        assert "Maximum 10 images" in str(exc_info.value)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_malformed_body(self, config: ProcessingConfig) -> None:
        """Test that a non-JSON body raises MalformedRemoteResponseError."""
        handler, _ = _scripted(lambda body: httpx.Response(200, text="<html>oops</html>"))
        client = _client(handler)

        with pytest.raises(MalformedRemoteResponseError):
            await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

    @pytest.mark.asyncio
    async def test_partial_response_resubmits_remaining(self, config: ProcessingConfig) -> None:
        """Test that remaining items are sent again after a backoff."""
        sleep = SleepRecorder()

        def partial(body: dict[str, Any]) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "results": [{"hash": "h1", "result": _payload()}],
                    "errors": [{"hash": "h2", "error": "Rate limit"}],
                    "partial": True,
                    "remaining": ["h2"],
                },
            )

        handler, calls = _scripted(partial, _ok)
        client = _client(handler, sleep=sleep, retry_base_delay=2.0)
        batch = Batch(index=0, items=[_item("a.jpg", "h1"), _item("b.jpg", "h2")])

        outcome = await client.classify_batch(batch, config)

        assert [r.filename for r in outcome.results] == ["a.jpg", "b.jpg"]
        assert outcome.errors == []
        assert [img["hash"] for img in calls[1]["images"]] == ["h2"]
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_partial_response_gives_up_after_max_rounds(
        self, config: ProcessingConfig
    ) -> None:
        """Test that items still remaining become rate-limit errors."""

        def always_partial(body: dict[str, Any]) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "results": [],
                    "errors": [],
                    "partial": True,
                    "remaining": [img["hash"] for img in body["images"]],
                },
            )

        handler, calls = _scripted(always_partial)
        client = _client(handler, max_retries=3)

        outcome = await client.classify_batch(Batch(index=0, items=[_item("a.jpg", "h1")]), config)

        assert len(calls) == 3
        assert outcome.results == []
        assert outcome.errors[0].error == RATE_LIMIT_MESSAGE
        assert outcome.errors[0].kind == ItemErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_item_errors_and_missing_items(self, config: ProcessingConfig) -> None:
        """Test per-item failures and items the service never answered."""

        def mixed(body: dict[str, Any]) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "results": [{"hash": "h1", "result": _payload()}],
                    "errors": [{"hash": "h2", "error": "402: Limite de créditos atingido."}],
                    "partial": False,
                },
            )

        handler, _ = _scripted(mixed)
        client = _client(handler)
        batch = Batch(
            index=0,
            items=[_item("a.jpg", "h1"), _item("b.jpg", "h2"), _item("c.jpg", "h3")],
        )

        outcome = await client.classify_batch(batch, config)

        assert [r.filename for r in outcome.results] == ["a.jpg"]
        assert [(e.filename, e.kind) for e in outcome.errors] == [
            ("b.jpg", ItemErrorKind.CREDIT_EXHAUSTED),
            ("c.jpg", ItemErrorKind.FAILED),
        ]
        assert outcome.errors[1].error == MISSING_ITEM_MESSAGE
        assert outcome.credit_exhausted is True

    @pytest.mark.asyncio
    async def test_classify_item(self, config: ProcessingConfig) -> None:
        """Test classifying a single item."""
        handler, calls = _scripted(_ok)
        client = _client(handler)

        async with client:
            outcome = await client.classify_item(_item("a.jpg", "h1"), config, index=4)

        assert len(calls[0]["images"]) == 1
        assert outcome.results[0].filename == "a.jpg"


class TestResultFromPayload:
    """Tests for result_from_payload."""

    def test_placeholder_for_free_text(self) -> None:
        """Test that an answer without JSON becomes a low-confidence placeholder."""
        config = ProcessingConfig(default_portico="bso 04")

        result = result_from_payload(_item("a.jpg", "h1"), "não consegui analisar", config)

        assert result.is_success
        assert result.portico == "BSO_04"
        assert result.disciplina == "OUTROS"
        assert result.servico == "NAO_IDENTIFICADO"
        assert result.confidence == PLACEHOLDER_CONFIDENCE
        assert result.tecnico == "não consegui analisar"

    def test_json_embedded_in_text(self) -> None:
        """Test that a JSON object inside text is recovered."""
        raw = (
            'Resultado: {"portico": "Pórtico 07", '
            '"disciplina": "rodoviária", "servico": "portico"}'
        )

        result = result_from_payload(_item("a.jpg", "h1"), raw, ProcessingConfig())

        assert result.portico == "PORTICO_07"
        assert result.disciplina == "RODOVIARIA"
        assert result.confidence == pytest.approx(0.7)

    def test_date_falls_back_to_ocr_then_exif(self) -> None:
        """Test the date fallback chain."""
        ocr = PreProcessedOCR(
            raw_text="BSO 04", data="01/02/2025", rodovia="SP-280", has_placa=True
        )
        exif = ExifData(date="2025:03:04 10:00:00", gps=GPSCoordinates(lat=-22.9, lon=-47.06))
        payload = _payload(data=None)
        config = ProcessingConfig()

        with_ocr = result_from_payload(_item("a.jpg", "h1", ocr=ocr, exif=exif), payload, config)
        exif_only = result_from_payload(_item("b.jpg", "h2", exif=exif), payload, config)

        assert with_ocr.data_detectada == "01/02/2025"
        assert with_ocr.method == ClassificationMethod.OCR_ASSISTED_AI
        assert with_ocr.rodovia == "SP-280"
        assert with_ocr.ocr_text == "BSO 04"
        assert exif_only.data_detectada == "04/03/2025"
        assert exif_only.latitude == pytest.approx(-22.9)
        assert exif_only.longitude == pytest.approx(-47.06)

    def test_iso_exif_date_used(self) -> None:
        """Test that an ISO EXIF date fills a missing date."""
        exif = ExifData(date="2025-03-04")

        result = result_from_payload(
            _item("a.jpg", "h1", exif=exif), _payload(data=None), ProcessingConfig()
        )

        assert result.data_detectada == "04/03/2025"

    def test_server_dest_truncated_when_flat(self) -> None:
        """Test that date folders are dropped from a provided destination."""
        dest = "organized_photos/BSO_04/CONTENCAO/TIRANTE/11_NOVEMBRO/24_11"
        payload = dict(_payload(), dest=dest)
        item = _item("a.jpg", "h1")

        flat = result_from_payload(item, payload, ProcessingConfig(organize_by_date=False))
        dated = result_from_payload(item, payload, ProcessingConfig())

        assert flat.dest == "organized_photos/BSO_04/CONTENCAO/TIRANTE"
        assert dated.dest.endswith("/11_NOVEMBRO/24_11")

    def test_knowledge_base_method_kept(self) -> None:
        """Test that a knowledge-base answer keeps its provenance."""
        payload = dict(_payload(), method="base_conhecimento")

        result = result_from_payload(_item("a.jpg", "h1"), payload, ProcessingConfig())

        assert result.method == ClassificationMethod.KNOWLEDGE_BASE

    def test_percentage_confidence(self) -> None:
        result = result_from_payload(
            _item("a.jpg", "h1"), _payload(confidence=92), ProcessingConfig()
        )

        assert result.confidence == pytest.approx(0.92)


class TestClassifyItemError:
    """Tests for classify_item_error."""

    @pytest.mark.parametrize(
        "message,kind",
        [
            ("402: Limite de créditos atingido.", ItemErrorKind.CREDIT_EXHAUSTED),
            ("Limite de créditos atingido.", ItemErrorKind.CREDIT_EXHAUSTED),
            ("Rate limit", ItemErrorKind.RATE_LIMITED),
            ("429: Too Many Requests", ItemErrorKind.RATE_LIMITED),
            ("Upstream error: 500", ItemErrorKind.FAILED),
            ("Upstream error: 4020 bytes rejected", ItemErrorKind.FAILED),
            ("Credit card visible, image blurred", ItemErrorKind.FAILED),
        ],
    )
    def test_kinds(self, message: str, kind: ItemErrorKind) -> None:
        assert classify_item_error(message) == kind
