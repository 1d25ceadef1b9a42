"""HTTP client for the remote batch classification endpoint."""

import asyncio
import json
import re
from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from obra_photo.config import Settings
from obra_photo.exceptions import (
    ClassifierError,
    CreditExhaustedError,
    MalformedRemoteResponseError,
    RateLimitedError,
    TransientRemoteError,
)
from obra_photo.models.batch import Batch, BatchItem, BatchOutcome, ItemErrorKind, ItemFailure
from obra_photo.models.queue import ProcessingConfig
from obra_photo.models.result import (
    ClassificationAlerts,
    ClassificationMethod,
    ClassificationResult,
)
from obra_photo.models.wire import BatchRequest, BatchResponse, ImagePayload
from obra_photo.parsing.normalize import (
    PLACEHOLDER_CONFIDENCE,
    build_dest_path,
    normalize_confidence,
    normalize_date,
    normalize_field,
    truncate_dest,
)
from obra_photo.services.retry import SleepFunc, backoff_delay, retry_with_backoff

logger = structlog.get_logger(__name__)

ANALYZE_BATCH_PATH = "/v1/analyze-batch"
UNIDENTIFIED = "NAO_IDENTIFICADO"
DEFAULT_DISCIPLINE = "OUTROS"
RATE_LIMIT_MESSAGE = "Rate limit"
MISSING_ITEM_MESSAGE = "No result returned by classifier"

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def classify_item_error(message: str) -> ItemErrorKind:
    """Tell credit exhaustion and rate limiting apart from ordinary failures."""
    lowered = message.strip().lower()
    if lowered.startswith("402") or "crédito" in lowered or "credito" in lowered:
        return ItemErrorKind.CREDIT_EXHAUSTED
    if lowered.startswith("429") or "rate limit" in lowered:
        return ItemErrorKind.RATE_LIMITED
    return ItemErrorKind.FAILED


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return response.reason_phrase


def _coerce_payload(raw: Any) -> Optional[dict[str, Any]]:
    """Return the per-item payload as a dict, or None when it is unusable."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        match = _JSON_OBJECT_RE.search(raw)
        if match:
            try:
                parsed = json.loads(match.group(0))
            except ValueError:
                return None
            return parsed if isinstance(parsed, dict) else None
    return None


def _optional_field(value: Any) -> Optional[str]:
    normalized = normalize_field(value, "")
    return normalized or None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def result_from_payload(
    item: BatchItem, raw: Any, config: ProcessingConfig
) -> ClassificationResult:
    """
    Turn one per-item payload from the classifier into a ClassificationResult.

    Missing values fall back to the local OCR fields and then to the photo
    metadata. A payload that is not an object becomes a low-confidence
    placeholder instead of failing the item.

    Args:
        item: The submitted batch item.
        raw: The ``result`` value returned for the item's hash.
        config: Options of the current run.

    Returns:
        Normalized result bound to the item's filename.
    """
    default_portico = normalize_field(config.default_portico, UNIDENTIFIED)
    payload = _coerce_payload(raw)
    if payload is None:
        logger.warning(
            "malformed_item_result",
            filename=item.filename,
            hash=item.hash,
            payload_type=type(raw).__name__,
        )
        payload = {
            "portico": default_portico,
            "disciplina": DEFAULT_DISCIPLINE,
            "servico": UNIDENTIFIED,
            "confidence": PLACEHOLDER_CONFIDENCE,
            "analise_tecnica": raw if isinstance(raw, str) else None,
        }

    ocr = item.ocr
    exif = item.image.exif

    portico = normalize_field(payload.get("portico"), default_portico)
    disciplina = normalize_field(payload.get("disciplina"), DEFAULT_DISCIPLINE)
    servico = normalize_field(payload.get("servico"), UNIDENTIFIED)

    data = normalize_date(payload.get("data") or payload.get("data_detectada"))
    if data is None and ocr is not None:
        data = ocr.data
    if data is None and exif is not None:
        data = normalize_date(exif.date)

    method = (
        ClassificationMethod.OCR_ASSISTED_AI if ocr is not None
        else ClassificationMethod.FORCED_AI
    )
    if payload.get("method") in (
        ClassificationMethod.KNOWLEDGE_BASE.value,
        ClassificationMethod.HEURISTIC.value,
    ):
        method = ClassificationMethod(payload["method"])

    dest = payload.get("dest")
    if isinstance(dest, str) and dest:
        if not config.organize_by_date:
            dest = truncate_dest(dest)
    else:
        dest = build_dest_path(portico, disciplina, servico, data, config.organize_by_date)

    alerts = payload.get("alertas") if isinstance(payload.get("alertas"), dict) else {}

    return ClassificationResult(
        filename=item.filename,
        hash=item.hash,
        portico=portico,
        disciplina=disciplina,
        servico=servico,
        confidence=normalize_confidence(payload.get("confidence")),
        data_detectada=data,
        tecnico=_optional_text(payload.get("analise_tecnica") or payload.get("tecnico")),
        method=method,
        rodovia=_optional_field(payload.get("rodovia")) or (ocr.rodovia if ocr else None),
        km_inicio=_optional_text(payload.get("km_inicio")) or (ocr.km_inicio if ocr else None),
        km_fim=_optional_text(payload.get("km_fim")) or (ocr.km_fim if ocr else None),
        sentido=_optional_field(payload.get("sentido")) or (ocr.sentido if ocr else None),
        latitude=exif.gps.lat if exif and exif.gps else None,
        longitude=exif.gps.lon if exif and exif.gps else None,
        dest=dest,
        ocr_text=_optional_text(payload.get("ocr_text")) or (ocr.raw_text if ocr else None),
        alertas=ClassificationAlerts(
            sem_placa=bool(alerts.get("sem_placa", False)),
            texto_ilegivel=bool(alerts.get("texto_ilegivel", False)),
            evidencia_fraca=bool(alerts.get("evidencia_fraca", False)),
        ),
    )


class RemoteClassifierClient:
    """Client for the ``analyze-batch`` classification endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        max_retries: int = 3,
        retry_base_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the classifier client.

        Args:
            base_url: Base URL of the classification service.
            api_key: Optional bearer token.
            timeout: Request timeout in seconds.
            max_retries: Attempts per request, and rounds for partial responses.
            retry_base_delay: First backoff delay in seconds.
            transport: Custom httpx transport, used by tests.
            sleep: Awaitable sleep used between retries.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._sleep = sleep

        self._client: Optional[httpx.AsyncClient] = None
        self.request_count = 0

        logger.info(
            "classifier_client_initialized",
            base_url=self.base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteClassifierClient":
        return cls(
            base_url=settings.classifier_url,
            api_key=settings.classifier_api_key,
            timeout=settings.classifier_timeout,
            max_retries=settings.classifier_max_retries,
            retry_base_delay=settings.classifier_retry_base_delay,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def classify_batch(
        self, batch: Batch, config: ProcessingConfig
    ) -> BatchOutcome:
        """
        Classify every item of a batch.

        Items sharing a content hash are sent once and share the result.
        When the service answers with a partial response, the remaining
        items are resubmitted after a backoff, bounded by ``max_retries``.

        Args:
            batch: Items to classify.
            config: Options of the current run.

        Returns:
            BatchOutcome whose results and errors both follow item order.

        Raises:
            CreditExhaustedError: If the service reports no credits left.
            TransientRemoteError: If the service stays unreachable.
            MalformedRemoteResponseError: If the body is not a batch payload.
            ClassifierError: For any other rejected request.
        """
        unique: dict[str, BatchItem] = {}
        for item in batch.items:
            unique.setdefault(item.hash, item)

        raw_results: dict[str, Any] = {}
        raw_errors: dict[str, str] = {}
        pending = list(unique.values())

        logger.info(
            "classifying_batch",
            batch_index=batch.index,
            items=len(batch.items),
            unique_items=len(pending),
        )

        for round_number in range(self.max_retries):
            response = await self._submit(pending, config)

            for entry in response.results:
                raw_results[entry.hash] = entry.result

            remaining = set(response.remaining) if response.partial else set()
            for entry in response.errors:
                if entry.hash not in remaining:
                    raw_errors[entry.hash] = entry.error

            pending = [
                item for item in pending
                if item.hash in remaining and item.hash not in raw_results
            ]
            if not pending:
                break

            if round_number < self.max_retries - 1:
                delay = backoff_delay(round_number, self.retry_base_delay)
                logger.info(
                    "resubmitting_partial_batch",
                    batch_index=batch.index,
                    remaining=len(pending),
                    delay_seconds=delay,
                )
                await self._sleep(delay)

        for item in pending:
            raw_errors.setdefault(item.hash, RATE_LIMIT_MESSAGE)

        outcome = BatchOutcome()
        for item in batch.items:
            if item.hash in raw_results:
                outcome.results.append(
                    result_from_payload(item, raw_results[item.hash], config)
                )
                continue
            message = raw_errors.get(item.hash, MISSING_ITEM_MESSAGE)
            outcome.errors.append(
                ItemFailure(
                    hash=item.hash,
                    filename=item.filename,
                    error=message,
                    kind=classify_item_error(message),
                )
            )

        logger.info(
            "batch_classified",
            batch_index=batch.index,
            results=len(outcome.results),
            errors=len(outcome.errors),
        )
        return outcome

    async def classify_item(
        self, item: BatchItem, config: ProcessingConfig, index: int = 0
    ) -> BatchOutcome:
        """Classify a single item as a batch of one."""
        return await self.classify_batch(Batch(index=index, items=[item]), config)

    async def _submit(
        self, items: list[BatchItem], config: ProcessingConfig
    ) -> BatchResponse:
        request = BatchRequest(
            images=[
                ImagePayload(
                    image_base64=item.base64,
                    filename=item.filename,
                    hash=item.hash,
                    exif_data=item.image.exif,
                    ocr_data=item.ocr,
                )
                for item in items
            ],
            default_portico=config.default_portico,
            empresa=config.empresa,
            economic_mode=config.economic_mode,
        )
        body = request.model_dump(mode="json", by_alias=True, exclude_none=True)

        return await retry_with_backoff(
            lambda: self._post(body),
            max_attempts=self.max_retries,
            base_delay=self.retry_base_delay,
            retry_on=(TransientRemoteError,),
            sleep=self._sleep,
        )

    async def _post(self, body: dict[str, Any]) -> BatchResponse:
        client = await self._get_client()
        url = f"{self.base_url}{ANALYZE_BATCH_PATH}"
        self.request_count += 1

        try:
            response = await client.post(url, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._map_status_error(e.response) from e
        except httpx.TimeoutException as e:
            logger.error("classifier_request_timeout", url=url, error=str(e))
            raise TransientRemoteError("Classifier request timed out", original_error=e) from e
        except httpx.HTTPError as e:
            logger.error(
                "classifier_request_failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransientRemoteError(f"Classifier unreachable: {e}", original_error=e) from e

        try:
            return BatchResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("classifier_response_malformed", url=url, error=str(e))
            raise MalformedRemoteResponseError(
                "Classifier returned an unexpected payload", original_error=e
            ) from e

    def _map_status_error(self, response: httpx.Response) -> ClassifierError:
        status = response.status_code
        message = _error_message(response)
        logger.error("classifier_http_error", status_code=status, error=message)

        if status == 402:
            return CreditExhaustedError(f"402: {message}")
        if status == 429:
            return RateLimitedError(
                f"429: {message}",
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
            )
        if status >= 500:
            return TransientRemoteError(f"{status}: {message}")
        return ClassifierError(f"{status}: {message}")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("classifier_client_closed")

    async def __aenter__(self) -> "RemoteClassifierClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
