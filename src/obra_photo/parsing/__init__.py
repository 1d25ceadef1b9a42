"""Text parsing and normalization helpers."""

from obra_photo.parsing.fields import extract_km_range, extract_structured_data
from obra_photo.parsing.normalize import (
    build_dest_path,
    normalize_confidence,
    normalize_date,
    normalize_field,
)
from obra_photo.parsing.service_fronts import (
    ServiceFront,
    ServiceFrontMatch,
    identify_service_front,
    match_priority,
)

__all__ = [
    "ServiceFront",
    "ServiceFrontMatch",
    "build_dest_path",
    "extract_km_range",
    "extract_structured_data",
    "identify_service_front",
    "match_priority",
    "normalize_confidence",
    "normalize_date",
    "normalize_field",
]
