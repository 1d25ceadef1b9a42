"""Progress percentage and remaining-time estimates for a queue run."""

import math
import time
from typing import Optional

from pydantic import BaseModel


class ProgressSnapshot(BaseModel):
    """Derived view of a run's progress."""

    processed: int
    total: int
    percent: float
    elapsed_seconds: float
    eta_seconds: Optional[float] = None
    current_batch: int = 0
    total_batches: int = 0

    @property
    def eta_text(self) -> Optional[str]:
        if self.eta_seconds is None:
            return None
        return format_eta(self.eta_seconds)


def compute_progress(
    processed: int,
    total: int,
    start_time: Optional[float],
    current_batch: int = 0,
    total_batches: int = 0,
    now: Optional[float] = None,
) -> ProgressSnapshot:
    """
    Compute completion and ETA from the observed per-item pace.

    Args:
        processed: Files with a result so far.
        total: Files in the run.
        start_time: Epoch seconds when the run started, if it has.
        current_batch: One-based batch being worked on.
        total_batches: Batches in the run.
        now: Current epoch seconds, defaults to ``time.time()``.

    Returns:
        ProgressSnapshot; ``eta_seconds`` is None until an item is done.
    """
    now = time.time() if now is None else now
    elapsed = max(now - start_time, 0.0) if start_time is not None else 0.0
    percent = min(processed / total * 100.0, 100.0) if total > 0 else 0.0

    eta = None
    if processed > 0 and start_time is not None:
        remaining = max(total - processed, 0)
        eta = elapsed / processed * remaining

    return ProgressSnapshot(
        processed=processed,
        total=total,
        percent=percent,
        elapsed_seconds=elapsed,
        eta_seconds=eta,
        current_batch=current_batch,
        total_batches=total_batches,
    )


def format_eta(seconds: float) -> str:
    """Render remaining time the way the progress overlay shows it."""
    if seconds < 1:
        return "Finalizando..."
    if seconds < 60:
        return f"~{math.ceil(seconds)}s restantes"
    return f"~{math.ceil(seconds / 60)}min restantes"
