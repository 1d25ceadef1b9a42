"""Classification result and input image models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

STATUS_SUCCESS = "Success"
ERROR_PREFIX = "Error: "
SKIPPED_PREFIX = "Skipped: "
SKIPPED_CREDIT_LIMIT = f"{SKIPPED_PREFIX}credit limit"


class ClassificationMethod(str, Enum):
    """Provenance of a classification."""

    HEURISTIC = "heuristica"
    OCR_ASSISTED_AI = "ia_ocr"
    FORCED_AI = "ia_forcada"
    KNOWLEDGE_BASE = "base_conhecimento"


class GPSCoordinates(BaseModel):
    """Latitude/longitude pair taken from photo metadata."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float


class ExifData(BaseModel):
    """Caller-supplied photo metadata forwarded to the classifier."""

    model_config = ConfigDict(frozen=True)

    date: Optional[str] = Field(None, description="Capture date as read from EXIF")
    gps: Optional[GPSCoordinates] = Field(None, description="Capture location")


class InputImage(BaseModel):
    """An image file handed to the queue by the caller."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="Original file name")
    data: bytes = Field(..., description="Raw image bytes")
    mime_type: str = Field(default="image/jpeg", description="MIME type of the image")
    exif: Optional[ExifData] = Field(None, description="Optional photo metadata")

    @property
    def size_bytes(self) -> int:
        """Size of the raw image in bytes."""
        return len(self.data)


class PreProcessedOCR(BaseModel):
    """Structured fields extracted locally before remote classification."""

    model_config = ConfigDict(frozen=True)

    raw_text: str = ""
    rodovia: Optional[str] = None
    km_inicio: Optional[str] = None
    km_fim: Optional[str] = None
    sentido: Optional[str] = None
    frente_servico: Optional[str] = None
    data: Optional[str] = None
    hora: Optional[str] = None
    contrato: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    has_placa: bool = False


class ClassificationAlerts(BaseModel):
    """Quality flags reported by the classifier."""

    model_config = ConfigDict(frozen=True)

    sem_placa: bool = False
    texto_ilegivel: bool = False
    evidencia_fraca: bool = False


class ClassificationResult(BaseModel):
    """Canonical output record for one processed file."""

    model_config = ConfigDict(frozen=True)

    filename: str
    hash: Optional[str] = None
    status: str = STATUS_SUCCESS

    portico: Optional[str] = None
    disciplina: Optional[str] = None
    servico: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    data_detectada: Optional[str] = None
    tecnico: Optional[str] = None
    method: ClassificationMethod = ClassificationMethod.FORCED_AI

    rodovia: Optional[str] = None
    km_inicio: Optional[str] = None
    km_fim: Optional[str] = None
    sentido: Optional[str] = None

    latitude: Optional[float] = None
    longitude: Optional[float] = None

    dest: Optional[str] = None
    ocr_text: Optional[str] = None
    alertas: ClassificationAlerts = Field(default_factory=ClassificationAlerts)

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status.startswith(ERROR_PREFIX)

    @property
    def is_skipped(self) -> bool:
        return self.status.startswith(SKIPPED_PREFIX)

    @property
    def is_incomplete(self) -> bool:
        """A successful result that is missing one of the path components."""
        if not self.is_success:
            return False
        return any(
            not value or value == "-"
            for value in (self.portico, self.disciplina, self.servico)
        )

    def rebind(self, filename: str) -> "ClassificationResult":
        """Return a copy of this result attached to another file name."""
        return self.model_copy(update={"filename": filename})

    @classmethod
    def error(
        cls,
        filename: str,
        reason: str,
        hash: Optional[str] = None,
        method: ClassificationMethod = ClassificationMethod.FORCED_AI,
    ) -> "ClassificationResult":
        """Build an ``Error:`` record for a file."""
        return cls(
            filename=filename,
            hash=hash,
            status=f"{ERROR_PREFIX}{reason}",
            method=method,
            confidence=0.0,
        )

    @classmethod
    def skipped(
        cls,
        filename: str,
        hash: Optional[str] = None,
        status: str = SKIPPED_CREDIT_LIMIT,
    ) -> "ClassificationResult":
        """Build a ``Skipped:`` record for a file that was never submitted."""
        return cls(
            filename=filename,
            hash=hash,
            status=status,
            method=ClassificationMethod.FORCED_AI,
            confidence=0.0,
        )


class CacheEntry(BaseModel):
    """A cached classification keyed by content hash."""

    hash: str
    result: ClassificationResult
    cached_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
