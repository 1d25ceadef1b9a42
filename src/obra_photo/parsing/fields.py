"""Pattern matchers that pull structured fields out of OCR text."""

import re
from typing import Optional

from obra_photo.models.result import PreProcessedOCR
from obra_photo.parsing.normalize import month_from_name, strip_accents
from obra_photo.parsing.service_fronts import identify_service_front

HIGHWAY_PREFIXES = (
    "SP|BR|MT|PR|MG|RJ|BA|GO|RS|SC|PE|CE|PA|MA|PI|RN|PB|SE|AL|ES|DF|TO|RO|AC|AM|RR|AP"
)

HIGHWAY_RE = re.compile(rf"\b({HIGHWAY_PREFIXES})[\s\-_]*(\d{{2,3}})\b")
KM_RE = re.compile(r"\bKM[\s_]*(\d{1,4})(?:\s*[+._]\s*(\d{1,3}))?\b")
DIRECTION_RE = re.compile(
    r"\b(?:SENTIDO[\s:]*)?"
    r"(LESTE|OESTE|NORTE|SUL|CAPITAL|INTERIOR|CRESCENTE|DECRESCENTE|L\s?/\s?O|N\s?/\s?S)\b"
)
NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})\b")
LONG_DATE_RE = re.compile(
    r"\b(\d{1,2})\s+(?:de\s+)?"
    r"(jan(?:eiro)?|fev(?:ereiro)?|mar(?:co)?|abr(?:il)?|mai(?:o)?|jun(?:ho)?|"
    r"jul(?:ho)?|ago(?:sto)?|set(?:embro)?|out(?:ubro)?|nov(?:embro)?|dez(?:embro)?)"
    r"\.?\s+(?:de\s+)?(\d{4})\b"
)
TIME_RE = re.compile(r"\b([01]?\d|2[0-3])\s?[:hH]\s?([0-5]\d)(?::[0-5]\d)?\b")
CONTRACT_RE = re.compile(
    r"\b(?:CONTRATO|CONTR|CT)[\s.\-:]*(?:N[°º.]?\s*)?(\d+(?:[\-/]\d+)?)\b"
)


def extract_highway(text: str) -> Optional[str]:
    match = HIGHWAY_RE.search(text)
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}"


def extract_km_markers(text: str) -> list[str]:
    """
    Find every kilometer marker in order of appearance.

    ``KM 94+050`` and ``km94.050`` become ``94+050``; a bare ``KM 57``
    stays ``57``.
    """
    markers: list[str] = []
    for match in KM_RE.finditer(text):
        km, meters = match.group(1), match.group(2)
        markers.append(f"{km}+{meters.zfill(3)}" if meters else km)
    return markers


def extract_km_range(text: str) -> tuple[Optional[str], Optional[str]]:
    """First marker is the start; the last one is the end when it differs."""
    markers = extract_km_markers(text)
    if not markers:
        return None, None
    start, end = markers[0], markers[-1]
    return start, (end if end != start else None)


def extract_direction(text: str) -> Optional[str]:
    match = DIRECTION_RE.search(text)
    if not match:
        return None
    direction = re.sub(r"\s", "", match.group(1))
    if direction == "L/O":
        return "LESTE/OESTE"
    if direction == "N/S":
        return "NORTE/SUL"
    return direction


def extract_numeric_date(text: str) -> Optional[str]:
    match = NUMERIC_DATE_RE.search(text)
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    if not (1 <= day <= 31 and 1 <= month <= 12):
        return None
    if year < 100:
        year += 2000
    return f"{day:02d}/{month:02d}/{year}"


def extract_long_date(text: str) -> Optional[str]:
    """Match Portuguese long-form dates such as ``24 de novembro de 2025``."""
    match = LONG_DATE_RE.search(strip_accents(text).lower())
    if not match:
        return None
    day, month_name, year = match.groups()
    month = month_from_name(month_name)
    if month is None or not 1 <= int(day) <= 31:
        return None
    return f"{int(day):02d}/{month:02d}/{year}"


def extract_time(text: str) -> Optional[str]:
    match = TIME_RE.search(text)
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def extract_contract(text: str) -> Optional[str]:
    match = CONTRACT_RE.search(text)
    return match.group(1) if match else None


def extract_structured_data(text: str, confidence: float = 0.0) -> PreProcessedOCR:
    """
    Run the full battery of matchers over OCR text.

    Args:
        text: Raw OCR text.
        confidence: Engine confidence already normalized to 0..1.

    Returns:
        PreProcessedOCR holding every field that could be found.
    """
    upper = text.upper()
    has_placa = False

    front = identify_service_front(text)
    if front is not None:
        has_placa = True

    date = extract_numeric_date(text)
    if date is None:
        date = extract_long_date(text)
        if date is not None:
            has_placa = True

    km_inicio, km_fim = extract_km_range(upper)

    return PreProcessedOCR(
        raw_text=text,
        rodovia=extract_highway(upper),
        km_inicio=km_inicio,
        km_fim=km_fim,
        sentido=extract_direction(upper),
        frente_servico=front.identifier if front else None,
        data=date,
        hora=extract_time(text),
        contrato=extract_contract(upper),
        confidence=min(max(confidence, 0.0), 1.0),
        has_placa=has_placa,
    )
