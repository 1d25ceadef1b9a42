"""FastAPI service that classifies batches of construction-site photos."""

import asyncio
import json
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classifier_gateway import __version__
from classifier_gateway.config import GatewaySettings, get_gateway_settings
from classifier_gateway.prompts import UNIDENTIFIED, build_prompt, has_ocr_hints
from classifier_gateway.schemas import HealthResponse
from classifier_gateway.upstream import UpstreamClient
from obra_photo.exceptions import ClassifierError, CreditExhaustedError, RateLimitedError
from obra_photo.models.wire import BatchRequest, BatchResponse, ImagePayload, ItemError, ItemResult
from obra_photo.parsing.normalize import (
    PLACEHOLDER_CONFIDENCE,
    normalize_confidence,
    normalize_date,
    normalize_field,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CREDIT_LIMIT_MESSAGE = "Limite de créditos atingido."

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_model_content(content: str, default_portico: Optional[str]) -> dict[str, Any]:
    """
    Pull the JSON object out of a model answer.

    Answers without a parseable object become a low-confidence
    placeholder that keeps the raw text as the technical note.
    """
    match = _JSON_OBJECT_RE.search(content or "")
    if match:
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed

    logger.warning("Model answer carried no JSON object, using placeholder")
    return {
        "portico": default_portico or UNIDENTIFIED,
        "disciplina": "OUTROS",
        "servico": UNIDENTIFIED,
        "data": None,
        "analise_tecnica": content,
        "confidence": PLACEHOLDER_CONFIDENCE,
        "ocr_text": "",
    }


def normalize_result(
    raw: dict[str, Any], image: ImagePayload, default_portico: Optional[str]
) -> dict[str, Any]:
    """Normalize a model answer, preferring client OCR fields where present."""
    ocr = image.ocr_data
    exif = image.exif_data
    alerts = raw.get("alertas") if isinstance(raw.get("alertas"), dict) else {}

    date = normalize_date(ocr.data if ocr and ocr.data else raw.get("data"))
    if date is None and exif is not None:
        date = normalize_date(exif.date)

    return {
        "portico": normalize_field(raw.get("portico"), default_portico or UNIDENTIFIED),
        "disciplina": normalize_field(raw.get("disciplina"), "OUTROS"),
        "servico": normalize_field(raw.get("servico"), UNIDENTIFIED),
        "data": date,
        "rodovia": normalize_field((ocr.rodovia if ocr else None) or raw.get("rodovia"), ""),
        "km_inicio": (ocr.km_inicio if ocr else None) or raw.get("km_inicio") or None,
        "km_fim": (ocr.km_fim if ocr else None) or raw.get("km_fim") or None,
        "sentido": normalize_field((ocr.sentido if ocr else None) or raw.get("sentido"), ""),
        "analise_tecnica": raw.get("analise_tecnica") or "",
        "confidence": normalize_confidence(raw.get("confidence")),
        "ocr_text": (ocr.raw_text if ocr else None) or raw.get("ocr_text") or "",
        "method": "ia_ocr" if has_ocr_hints(ocr) else "ia_forcada",
        "alertas": {
            "sem_placa": (ocr is not None and not ocr.has_placa) or bool(alerts.get("sem_placa")),
            "texto_ilegivel": bool(alerts.get("texto_ilegivel")),
            "evidencia_fraca": bool(alerts.get("evidencia_fraca")),
        },
    }


async def analyze_image(
    image: ImagePayload, batch: BatchRequest, upstream: UpstreamClient
) -> dict[str, Any]:
    """Classify one image of a batch."""
    prompt = build_prompt(batch.default_portico, image.exif_data, image.ocr_data, batch.empresa)
    logger.info(f"Analyzing image: {image.filename}")
    content = await upstream.complete(
        prompt,
        image.image_base64,
        economic_mode=batch.economic_mode,
        has_ocr_hints=has_ocr_hints(image.ocr_data),
    )
    raw = parse_model_content(content, batch.default_portico)
    return normalize_result(raw, image, batch.default_portico)


def get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


def get_settings(request: Request) -> GatewaySettings:
    return request.app.state.settings


def create_app(
    settings: Optional[GatewaySettings] = None,
    upstream: Optional[UpstreamClient] = None,
) -> FastAPI:
    """Create and configure the gateway application."""
    settings = settings or get_gateway_settings()
    upstream = upstream or UpstreamClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Close the upstream client on shutdown."""
        logger.info(f"Classifier gateway {__version__} starting (upstream: {settings.upstream_url})")
        try:
            yield
        finally:
            logger.info("Shutting down classifier gateway...")
            await upstream.close()

    app = FastAPI(
        title="Classifier Gateway",
        description="Batch classification of construction-site photos",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.upstream = upstream
    app.state.sleep = asyncio.sleep

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            upstream_configured=upstream.configured,
        )

    @app.post("/v1/analyze-batch")
    async def analyze_batch(
        batch: BatchRequest,
        request: Request,
        client: UpstreamClient = Depends(get_upstream),
        gateway_settings: GatewaySettings = Depends(get_settings),
    ) -> Any:
        """Classify up to ``max_batch_size`` images, one after the other.

        A rate limit stops the batch early and answers with the results so
        far plus the hashes still to be classified.
        """
        if not batch.images:
            return JSONResponse(status_code=400, content={"error": "Images array is required"})
        if len(batch.images) > gateway_settings.max_batch_size:
            return JSONResponse(
                status_code=400,
                content={"error": f"Maximum {gateway_settings.max_batch_size} images per batch"},
            )
        if not client.configured:
            return JSONResponse(
                status_code=500, content={"error": "Upstream API key is not configured"}
            )

        logger.info(
            f"Processing batch of {len(batch.images)} images (economic: {batch.economic_mode})"
        )
        sleep = request.app.state.sleep
        results: list[ItemResult] = []
        errors: list[ItemError] = []

        for index, image in enumerate(batch.images):
            try:
                result = await analyze_image(image, batch, client)
            except RateLimitedError:
                logger.warning(f"Rate limited at {image.filename}, returning partial batch")
                errors.append(ItemError(hash=image.hash, error="Rate limit"))
                return BatchResponse(
                    results=results,
                    errors=errors,
                    partial=True,
                    remaining=[img.hash for img in batch.images[index:]],
                ).model_dump()
            except CreditExhaustedError:
                logger.error("Upstream credits exhausted")
                return JSONResponse(status_code=402, content={"error": CREDIT_LIMIT_MESSAGE})
            except ClassifierError as e:
                logger.error(f"Error processing {image.filename}: {e}")
                errors.append(ItemError(hash=image.hash, error=str(e)))
                continue

            results.append(ItemResult(hash=image.hash, result=result))
            if index < len(batch.images) - 1 and gateway_settings.inter_image_delay > 0:
                await sleep(gateway_settings.inter_image_delay)

        logger.info(f"Batch complete: {len(results)} success, {len(errors)} errors")
        return BatchResponse(results=results, errors=errors, partial=False).model_dump()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc), "type": type(exc).__name__},
        )

    return app


app = create_app()
