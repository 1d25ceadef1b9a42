"""Processing queue state models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from obra_photo.models.result import ClassificationResult


class QueueState(str, Enum):
    """Lifecycle states of a queue run."""

    IDLE = "idle"
    HASHING = "hashing"
    CACHE_LOOKUP = "cache_lookup"
    BATCHING = "batching"
    SUBMITTING = "submitting"
    DELAYING = "delaying"
    RETRYING = "retrying"
    COOLDOWN = "cooldown"
    COMPLETED = "completed"
    ABORTED = "aborted"


class ProcessingConfig(BaseModel):
    """Per-run options chosen by the user."""

    default_portico: Optional[str] = Field(
        None, description="Service front used when none is identified"
    )
    empresa: Optional[str] = Field(None, description="Contractor name sent as context")
    organize_by_date: bool = Field(
        default=True, description="Append month/day folders to destination paths"
    )
    use_local_ocr: bool = Field(
        default=True, description="Run local OCR before remote classification"
    )
    economic_mode: bool = Field(
        default=False, description="Ask the classifier for its cheaper model"
    )
    heuristic_only: bool = Field(
        default=False, description="Classify from local OCR only, without remote calls"
    )


class QueueStats(BaseModel):
    """Point-in-time snapshot of a queue run."""

    total: int = 0
    processed: int = 0
    queued: int = 0
    current_batch: int = 0
    total_batches: int = 0
    is_processing: bool = False
    current_file: str = ""
    start_time: Optional[float] = None
    state: QueueState = QueueState.IDLE

    is_cooldown: bool = False
    cooldown_seconds: int = 0
    next_group_size: int = 0


class RunSummary(BaseModel):
    """Outcome of a finished (or aborted) queue run."""

    state: QueueState
    results: list[ClassificationResult] = Field(default_factory=list)
    incomplete: bool = False
    cached_count: int = 0
    submitted_count: int = 0
    credit_exhausted: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.is_success)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if r.is_error)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.is_skipped)

    @property
    def needs_review_count(self) -> int:
        """Successful results missing a portico, discipline or service."""
        return sum(1 for r in self.results if r.is_incomplete)
