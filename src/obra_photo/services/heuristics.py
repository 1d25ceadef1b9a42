"""Classification from local OCR alone, without the remote classifier."""

from typing import Optional

from obra_photo.models.queue import ProcessingConfig
from obra_photo.models.result import (
    ClassificationMethod,
    ClassificationResult,
    InputImage,
    PreProcessedOCR,
)
from obra_photo.parsing.normalize import build_dest_path, normalize_date, normalize_field
from obra_photo.parsing.service_fronts import identify_service_front

NO_FRONT_REASON = "no service front identified"


def classify_from_ocr(
    image: InputImage,
    content_hash: str,
    ocr: Optional[PreProcessedOCR],
    config: ProcessingConfig,
) -> ClassificationResult:
    """
    Build a result from the service front found on a photo's site sign.

    The identified front becomes the portico, its catalog category the
    discipline and its catalog id the service. Photos without a
    recognizable front become errors.

    Args:
        image: The photo.
        content_hash: Its content hash.
        ocr: Local OCR fields, if recognition succeeded.
        config: Options of the current run.

    Returns:
        A ``heuristica`` result or an ``Error:`` record.
    """
    match = identify_service_front(ocr.raw_text) if ocr is not None else None
    if ocr is None or match is None:
        return ClassificationResult.error(
            image.filename,
            NO_FRONT_REASON,
            hash=content_hash,
            method=ClassificationMethod.HEURISTIC,
        )

    portico = normalize_field(ocr.frente_servico or match.identifier, "NAO_IDENTIFICADO")
    disciplina = normalize_field(match.front.category, "OUTROS")
    servico = normalize_field(match.front.id, "NAO_IDENTIFICADO")

    data = ocr.data
    if data is None and image.exif is not None:
        data = normalize_date(image.exif.date)

    gps = image.exif.gps if image.exif is not None else None

    return ClassificationResult(
        filename=image.filename,
        hash=content_hash,
        portico=portico,
        disciplina=disciplina,
        servico=servico,
        confidence=ocr.confidence,
        data_detectada=data,
        method=ClassificationMethod.HEURISTIC,
        rodovia=ocr.rodovia,
        km_inicio=ocr.km_inicio,
        km_fim=ocr.km_fim,
        sentido=ocr.sentido,
        latitude=gps.lat if gps else None,
        longitude=gps.lon if gps else None,
        dest=build_dest_path(portico, disciplina, servico, data, config.organize_by_date),
        ocr_text=ocr.raw_text or None,
    )
