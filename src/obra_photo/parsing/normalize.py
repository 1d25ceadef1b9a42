"""Normalization of classifier output into path-safe canonical values."""

import math
import re
import unicodedata
from typing import Any, Optional

DEFAULT_CONFIDENCE = 0.7
PLACEHOLDER_CONFIDENCE = 0.3
DEST_ROOT = "organized_photos"

MONTH_NAMES: dict[int, str] = {
    1: "01_JANEIRO",
    2: "02_FEVEREIRO",
    3: "03_MARCO",
    4: "04_ABRIL",
    5: "05_MAIO",
    6: "06_JUNHO",
    7: "07_JULHO",
    8: "08_AGOSTO",
    9: "09_SETEMBRO",
    10: "10_OUTUBRO",
    11: "11_NOVEMBRO",
    12: "12_DEZEMBRO",
}

# Portuguese month names and abbreviations, accent-free
PT_MONTHS: dict[str, int] = {
    "jan": 1, "janeiro": 1,
    "fev": 2, "fevereiro": 2,
    "mar": 3, "marco": 3,
    "abr": 4, "abril": 4,
    "mai": 5, "maio": 5,
    "jun": 6, "junho": 6,
    "jul": 7, "julho": 7,
    "ago": 8, "agosto": 8,
    "set": 9, "setembro": 9,
    "out": 10, "outubro": 10,
    "nov": 11, "novembro": 11,
    "dez": 12, "dezembro": 12,
}

_DMY_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_ISO_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_EXIF_RE = re.compile(r"\b(\d{4}):(\d{2}):(\d{2})\b")
_LONG_FORM_RE = re.compile(
    r"\b(\d{1,2})\s+(?:de\s+)?([a-z]{3,9})\.?\s+(?:de\s+)?(\d{4})\b",
    re.IGNORECASE,
)


def strip_accents(value: str) -> str:
    """Remove diacritics, keeping the base letters."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_field(value: Any, default: str = "") -> str:
    """
    Upper-case a free-text field and make it safe for use in a path.

    Whitespace runs become underscores, accents are stripped and anything
    outside ``[A-Z0-9_]`` is dropped.

    Args:
        value: Raw value from the classifier.
        default: Value returned when the input is missing or not a string.

    Returns:
        Normalized field.
    """
    if not value or not isinstance(value, str):
        return default
    text = strip_accents(value).upper()
    text = re.sub(r"\s+", "_", text.strip())
    text = re.sub(r"[^A-Z0-9_]", "", text)
    return text or default


def _format_date(day: int, month: int, year: int) -> Optional[str]:
    if not (1 <= day <= 31 and 1 <= month <= 12):
        return None
    return f"{day:02d}/{month:02d}/{year:04d}"


def month_from_name(name: str) -> Optional[int]:
    """Resolve a Portuguese month name or abbreviation to its number."""
    key = strip_accents(name).lower().rstrip(".")
    if key in PT_MONTHS:
        return PT_MONTHS[key]
    return PT_MONTHS.get(key[:3])


def normalize_date(value: Any) -> Optional[str]:
    """
    Parse a date in one of the accepted formats into ``DD/MM/YYYY``.

    Accepted: ``DD/MM/YYYY``, ``YYYY-MM-DD``, the EXIF ``YYYY:MM:DD`` stamp
    and the Portuguese long form (``24 de nov. de 2025``).

    Args:
        value: Raw date value.

    Returns:
        Canonical date string, or None when the value cannot be parsed.
    """
    if not value or not isinstance(value, str):
        return None

    match = _DMY_RE.search(value)
    if match:
        day, month, year = match.groups()
        return _format_date(int(day), int(month), int(year))

    for pattern in (_ISO_RE, _EXIF_RE):
        match = pattern.search(value)
        if match:
            year, month, day = match.groups()
            return _format_date(int(day), int(month), int(year))

    match = _LONG_FORM_RE.search(strip_accents(value))
    if match:
        day, month_name, year = match.groups()
        month = month_from_name(month_name)
        if month is not None:
            return _format_date(int(day), month, int(year))

    return None


def normalize_confidence(value: Any) -> float:
    """
    Coerce a confidence value into ``[0, 1]``.

    Values above 1 are read as percentages. Missing or unparseable values
    fall back to ``DEFAULT_CONFIDENCE``.

    Args:
        value: Number or numeric string.

    Returns:
        Confidence between 0 and 1.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(number):
        return DEFAULT_CONFIDENCE
    if number > 1:
        number = number / 100
    return min(max(number, 0.0), 1.0)


def build_dest_path(
    portico: str,
    disciplina: str,
    servico: str,
    data: Optional[str] = None,
    organize_by_date: bool = True,
) -> str:
    """
    Build the destination folder for a classified photo.

    Args:
        portico: Normalized service front.
        disciplina: Normalized discipline.
        servico: Normalized specific service.
        data: Canonical ``DD/MM/YYYY`` date, if detected.
        organize_by_date: Whether month/day folders are appended.

    Returns:
        Slash-separated destination path.
    """
    base = f"{DEST_ROOT}/{portico}/{disciplina}/{servico}"
    if not organize_by_date or not data:
        return base

    match = _DMY_RE.search(data)
    if not match:
        return base

    day, month, _ = match.groups()
    month_num = int(month)
    month_folder = MONTH_NAMES.get(month_num, f"{month_num:02d}_MES")
    return f"{base}/{month_folder}/{int(day):02d}_{month_num:02d}"


def truncate_dest(dest: str, segments: int = 4) -> str:
    """Keep only the first ``segments`` path components of a destination."""
    return "/".join(dest.split("/")[:segments])
