"""Processing queue that drives a run from file list to classified results."""

import asyncio
import inspect
import math
import time
from collections import deque
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence, Union

import structlog

from obra_photo.adapters.cache_store import create_cache_store
from obra_photo.adapters.classifier_client import (
    MISSING_ITEM_MESSAGE,
    RemoteClassifierClient,
)
from obra_photo.config import Settings
from obra_photo.exceptions import AlreadyRunningError, CreditExhaustedError, HashingError
from obra_photo.models.batch import Batch, BatchItem, BatchOutcome, ItemErrorKind
from obra_photo.models.queue import ProcessingConfig, QueueState, QueueStats, RunSummary
from obra_photo.models.result import ClassificationResult, InputImage
from obra_photo.services.batching import BatchAssembler
from obra_photo.services.hasher import DEFAULT_HASH_LENGTH, hash_image
from obra_photo.services.heuristics import classify_from_ocr
from obra_photo.services.ocr_extractor import LocalOCRExtractor
from obra_photo.services.progress import ProgressSnapshot, compute_progress
from obra_photo.services.result_cache import ResultCache

logger = structlog.get_logger(__name__)

ResultsCallback = Callable[[list[ClassificationResult]], Union[Awaitable[Any], Any]]

_STREAM_DONE = object()


async def _invoke(callback: Optional[ResultsCallback], results: list[ClassificationResult]) -> None:
    if callback is None:
        return
    outcome = callback(list(results))
    if inspect.isawaitable(outcome):
        await outcome


async def _wait_event(event: asyncio.Event, timeout: float) -> bool:
    """Wait up to ``timeout`` seconds; True when the event fired."""
    try:
        await asyncio.wait_for(event.wait(), timeout)
        return True
    except TimeoutError:
        return False


class ProcessingQueue:
    """
    Orchestrates hashing, cache lookup, local OCR and batched classification.

    One run at a time per instance. Results are delivered batch by batch
    through ``on_batch_complete`` (or :meth:`stream`), cached results
    first, then network batches in file order. ``stats`` can be polled
    at any time for live progress.
    """

    def __init__(
        self,
        classifier: RemoteClassifierClient,
        cache: Optional[ResultCache] = None,
        ocr_extractor: Optional[LocalOCRExtractor] = None,
        batch_size: int = 5,
        pacing_delay: float = 2.0,
        fallback_delay_multiplier: float = 2.0,
        group_size: int = 20,
        cooldown_seconds: int = 120,
        ocr_concurrency: int = 2,
        hash_length: int = DEFAULT_HASH_LENGTH,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the queue.

        Args:
            classifier: Remote classifier client.
            cache: Result cache; a fresh in-memory cache when omitted.
            ocr_extractor: Optional local OCR collaborator.
            batch_size: Photos per batch request.
            pacing_delay: Seconds between batch submissions.
            fallback_delay_multiplier: Pacing multiplier between per-item
                fallback calls after a failed batch.
            group_size: Submitted photos between cooldowns.
            cooldown_seconds: Cooldown length between groups.
            ocr_concurrency: Max photos in local OCR at once.
            hash_length: Hex characters kept from the content hash.
            clock: Time source for stats, replaceable in tests.
        """
        self.classifier = classifier
        self.cache = cache if cache is not None else ResultCache()
        self.ocr_extractor = ocr_extractor
        self.assembler = BatchAssembler(batch_size=batch_size, ocr_concurrency=ocr_concurrency)
        self.pacing_delay = pacing_delay
        self.fallback_delay_multiplier = fallback_delay_multiplier
        self.group_size = group_size
        self.cooldown_seconds = cooldown_seconds
        self.hash_length = hash_length
        self._clock = clock

        self._running = False
        self._abort = asyncio.Event()
        self._cooldown_done = asyncio.Event()
        self._stats = QueueStats()

        logger.info(
            "processing_queue_initialized",
            batch_size=batch_size,
            pacing_delay=pacing_delay,
            group_size=group_size,
            cooldown_seconds=cooldown_seconds,
            local_ocr=ocr_extractor is not None,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProcessingQueue":
        """Build a queue and its collaborators from application settings."""
        ocr_extractor = None
        if settings.use_local_ocr:
            ocr_extractor = LocalOCRExtractor.from_settings(settings)

        return cls(
            classifier=RemoteClassifierClient.from_settings(settings),
            cache=ResultCache(create_cache_store(settings)),
            ocr_extractor=ocr_extractor,
            batch_size=settings.batch_size,
            pacing_delay=settings.pacing_delay_seconds,
            fallback_delay_multiplier=settings.fallback_delay_multiplier,
            group_size=settings.group_size,
            cooldown_seconds=settings.cooldown_seconds,
            ocr_concurrency=settings.ocr_concurrency,
            hash_length=settings.hash_length,
        )

    @property
    def stats(self) -> QueueStats:
        """Snapshot of the current run; a copy, never the live object."""
        return self._stats.model_copy()

    @property
    def is_processing(self) -> bool:
        return self._running

    def progress(self) -> ProgressSnapshot:
        stats = self._stats
        return compute_progress(
            processed=stats.processed,
            total=stats.total,
            start_time=stats.start_time,
            current_batch=stats.current_batch,
            total_batches=stats.total_batches,
            now=self._clock(),
        )

    def abort(self) -> None:
        """Stop submitting new work; results obtained so far are kept."""
        if self._running:
            logger.info("abort_requested", processed=self._stats.processed)
        self._abort.set()
        self._cooldown_done.set()

    def skip_cooldown(self) -> None:
        """End the current cooldown early."""
        if self._stats.is_cooldown:
            logger.info("cooldown_skipped", seconds_left=self._stats.cooldown_seconds)
        self._cooldown_done.set()

    def reset(self) -> None:
        """
        Return stats to idle.

        Raises:
            AlreadyRunningError: If a run is in flight.
        """
        if self._running:
            raise AlreadyRunningError("Cannot reset while a run is in progress")
        self._stats = QueueStats()

    def _update(self, **changes: Any) -> None:
        self._stats = self._stats.model_copy(update=changes)

    @property
    def _aborted(self) -> bool:
        return self._abort.is_set()

    async def process(
        self,
        images: Sequence[InputImage],
        config: Optional[ProcessingConfig] = None,
        on_batch_complete: Optional[ResultsCallback] = None,
        on_complete: Optional[ResultsCallback] = None,
    ) -> RunSummary:
        """
        Classify a list of photos.

        Pipeline steps:
        1. Hash every file
        2. Split cache hits from misses and emit the hits
        3. Enrich each batch with base64 and local OCR
        4. Submit batches in order, pacing and cooling down between them
        5. Report completion

        Args:
            images: Photos in the order results should be delivered.
            config: Options of this run.
            on_batch_complete: Called with each batch's results, in order.
            on_complete: Called once with every result of the run.

        Returns:
            RunSummary with every result produced.

        Raises:
            AlreadyRunningError: If this queue is already processing.
        """
        if self._running:
            logger.warning("queue_already_running")
            raise AlreadyRunningError("Processing already in progress")

        self._running = True
        self._abort.clear()
        self._cooldown_done.clear()
        config = config or ProcessingConfig()

        try:
            return await self._run(list(images), config, on_batch_complete, on_complete)
        finally:
            self._running = False

    async def stream(
        self,
        images: Sequence[InputImage],
        config: Optional[ProcessingConfig] = None,
    ) -> AsyncIterator[list[ClassificationResult]]:
        """
        Run the queue and yield each batch's results as they arrive.

        Closing the generator early aborts the run.

        Raises:
            AlreadyRunningError: If this queue is already processing.
        """
        channel: asyncio.Queue[Any] = asyncio.Queue()

        async def push(results: list[ClassificationResult]) -> None:
            await channel.put(results)

        task = asyncio.create_task(
            self.process(images, config, on_batch_complete=push)
        )
        task.add_done_callback(lambda _: channel.put_nowait(_STREAM_DONE))

        try:
            while True:
                item = await channel.get()
                if item is _STREAM_DONE:
                    break
                yield item
            await task
        finally:
            if not task.done():
                self.abort()
                await asyncio.gather(task, return_exceptions=True)

    async def _run(
        self,
        images: list[InputImage],
        config: ProcessingConfig,
        on_batch_complete: Optional[ResultsCallback],
        on_complete: Optional[ResultsCallback],
    ) -> RunSummary:
        total = len(images)
        results: list[ClassificationResult] = []

        async def emit(batch_results: list[ClassificationResult]) -> None:
            if not batch_results:
                return
            results.extend(batch_results)
            self._update(processed=len(results), queued=max(total - len(results), 0))
            await _invoke(on_batch_complete, batch_results)

        self._stats = QueueStats(
            total=total,
            queued=total,
            is_processing=True,
            current_file="Preparing...",
            start_time=self._clock(),
            state=QueueState.HASHING,
        )
        logger.info(
            "queue_run_started",
            total=total,
            heuristic_only=config.heuristic_only,
            economic_mode=config.economic_mode,
        )

        # Step 1: hash
        hashed: list[tuple[InputImage, str]] = []
        unreadable: list[ClassificationResult] = []
        for image in images:
            if self._aborted:
                break
            self._update(current_file=image.filename)
            try:
                content_hash = await hash_image(image, self.hash_length)
            except HashingError as e:
                logger.warning("hashing_failed", filename=image.filename, error=str(e))
                unreadable.append(ClassificationResult.error(image.filename, str(e)))
                continue
            hashed.append((image, content_hash))

        # Step 2: cache split
        self._update(state=QueueState.CACHE_LOOKUP, current_file="Checking cache...")
        cached: list[ClassificationResult] = []
        pending: list[tuple[InputImage, str]] = []
        for image, content_hash in hashed:
            if self._aborted:
                break
            hit = await self.cache.get(content_hash)
            if hit is not None:
                cached.append(hit.rebind(image.filename))
            else:
                pending.append((image, content_hash))

        logger.info(
            "cache_split",
            cached=len(cached),
            pending=len(pending),
            unreadable=len(unreadable),
        )
        await emit(cached)
        await emit(unreadable)

        credit_exhausted = False
        submitted = 0
        if pending and not self._aborted:
            if config.heuristic_only:
                await self._run_heuristic(pending, config, emit)
            else:
                submitted, credit_exhausted = await self._run_batches(pending, config, emit)

        return await self._finish(
            images, results, len(cached), submitted, credit_exhausted, on_complete
        )

    async def _run_batches(
        self,
        pending: list[tuple[InputImage, str]],
        config: ProcessingConfig,
        emit: Callable[[list[ClassificationResult]], Awaitable[None]],
    ) -> tuple[int, bool]:
        groups = self.assembler.plan(pending)
        total_batches = len(groups)
        ocr_extractor = self.ocr_extractor if config.use_local_ocr else None
        self._update(total_batches=total_batches)

        submitted = 0
        in_current_group = 0
        for index, group in enumerate(groups):
            if self._aborted:
                logger.info("queue_run_aborted", batch_index=index, total_batches=total_batches)
                break

            self._update(
                state=QueueState.BATCHING,
                current_batch=index + 1,
                current_file=f"Batch {index + 1}/{total_batches}: preparing",
            )
            batch = await self.assembler.enrich(index, group, ocr_extractor)

            self._update(
                state=QueueState.SUBMITTING,
                current_file=f"Batch {index + 1}/{total_batches}: classifying",
            )
            batch_results, credit_hit = await self._submit(batch, config)
            submitted += len(batch)
            in_current_group += len(batch)
            await emit(batch_results)

            if credit_hit:
                skipped = [
                    ClassificationResult.skipped(image.filename, hash=content_hash)
                    for later in groups[index + 1:]
                    for image, content_hash in later
                ]
                logger.warning(
                    "credit_exhausted_stopping",
                    batch_index=index,
                    skipped=len(skipped),
                )
                await emit(skipped)
                return submitted, True

            remaining = sum(len(later) for later in groups[index + 1:])
            if remaining == 0 or self._aborted:
                continue

            if in_current_group >= self.group_size:
                await self._cooldown(remaining)
                in_current_group = 0
            else:
                await self._pause(
                    self.pacing_delay, QueueState.DELAYING, "Waiting for next batch..."
                )

        return submitted, False

    async def _run_heuristic(
        self,
        pending: list[tuple[InputImage, str]],
        config: ProcessingConfig,
        emit: Callable[[list[ClassificationResult]], Awaitable[None]],
    ) -> None:
        groups = self.assembler.plan(pending)
        self._update(total_batches=len(groups))

        for index, group in enumerate(groups):
            if self._aborted:
                break
            self._update(
                state=QueueState.BATCHING,
                current_batch=index + 1,
                current_file=f"Batch {index + 1}/{len(groups)}: local OCR",
            )
            batch = await self.assembler.enrich(index, group, self.ocr_extractor)
            await emit(
                [
                    classify_from_ocr(item.image, item.hash, item.ocr, config)
                    for item in batch.items
                ]
            )

    async def _submit(
        self, batch: Batch, config: ProcessingConfig
    ) -> tuple[list[ClassificationResult], bool]:
        """Submit one batch; returns its ordered results and the credit flag."""
        try:
            outcome = await self.classifier.classify_batch(batch, config)
        except CreditExhaustedError as e:
            logger.warning("batch_credit_exhausted", batch_index=batch.index, error=str(e))
            return [
                ClassificationResult.skipped(item.filename, hash=item.hash)
                for item in batch.items
            ], True
        except Exception as e:
            logger.error(
                "batch_failed_falling_back",
                batch_index=batch.index,
                error=str(e),
                error_type=type(e).__name__,
            )
            return await self._fallback(batch, config)

        return await self._merge(batch.items, outcome)

    async def _fallback(
        self, batch: Batch, config: ProcessingConfig
    ) -> tuple[list[ClassificationResult], bool]:
        """Resubmit a failed batch one item at a time with a longer delay."""
        delay = self.pacing_delay * self.fallback_delay_multiplier
        results: list[ClassificationResult] = []

        for position, item in enumerate(batch.items):
            await self._pause(
                delay,
                QueueState.RETRYING,
                f"Retrying {item.filename} ({position + 1}/{len(batch.items)})",
            )
            if self._aborted:
                break
            self._update(state=QueueState.RETRYING, current_file=item.filename)

            try:
                outcome = await self.classifier.classify_item(item, config, index=batch.index)
            except CreditExhaustedError as e:
                logger.warning("item_credit_exhausted", filename=item.filename, error=str(e))
                results.extend(
                    ClassificationResult.skipped(rest.filename, hash=rest.hash)
                    for rest in batch.items[position:]
                )
                return results, True
            except Exception as e:
                logger.error(
                    "item_fallback_failed",
                    filename=item.filename,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                results.append(ClassificationResult.error(item.filename, str(e), hash=item.hash))
                continue

            merged, credit_hit = await self._merge([item], outcome)
            results.extend(merged)
            if credit_hit:
                results.extend(
                    ClassificationResult.skipped(rest.filename, hash=rest.hash)
                    for rest in batch.items[position + 1:]
                )
                return results, True

        return results, False

    async def _merge(
        self, items: list[BatchItem], outcome: BatchOutcome
    ) -> tuple[list[ClassificationResult], bool]:
        """
        Interleave successes and failures back into item order.

        Successes go into the cache. A failure that reports credit
        exhaustion turns into a skip, as does every failure after it.
        """
        successes = deque(outcome.results)
        failures = deque(outcome.errors)
        merged: list[ClassificationResult] = []
        credit_hit = False

        for item in items:
            if successes and (successes[0].hash, successes[0].filename) == (item.hash, item.filename):
                result = successes.popleft()
                await self.cache.put(item.hash, result)
                merged.append(result)
                continue

            if failures and (failures[0].hash, failures[0].filename) == (item.hash, item.filename):
                failure = failures.popleft()
                if failure.kind == ItemErrorKind.CREDIT_EXHAUSTED:
                    credit_hit = True
                if credit_hit:
                    merged.append(ClassificationResult.skipped(item.filename, hash=item.hash))
                else:
                    merged.append(
                        ClassificationResult.error(item.filename, failure.error, hash=item.hash)
                    )
                continue

            merged.append(
                ClassificationResult.error(item.filename, MISSING_ITEM_MESSAGE, hash=item.hash)
            )

        if credit_hit:
            logger.warning("item_credit_exhausted_in_batch")
        return merged, credit_hit

    async def _pause(self, seconds: float, state: QueueState, message: str) -> None:
        if seconds <= 0 or self._aborted:
            return
        self._update(state=state, current_file=message)
        await _wait_event(self._abort, seconds)

    async def _cooldown(self, remaining: int) -> None:
        """Wait between groups; ends early on ``skip_cooldown`` or ``abort``."""
        if self.cooldown_seconds <= 0:
            return

        self._cooldown_done.clear()
        if self._aborted:
            return

        self._update(
            state=QueueState.COOLDOWN,
            is_cooldown=True,
            cooldown_seconds=self.cooldown_seconds,
            next_group_size=min(self.group_size, remaining),
            queued=remaining,
            current_file="Cooling down between groups...",
        )
        logger.info(
            "cooldown_started",
            seconds=self.cooldown_seconds,
            next_group_size=min(self.group_size, remaining),
        )

        left = float(self.cooldown_seconds)
        while left > 0:
            if await _wait_event(self._cooldown_done, min(1.0, left)):
                break
            left -= 1.0
            self._update(cooldown_seconds=max(math.ceil(left), 0))

        self._update(is_cooldown=False, cooldown_seconds=0, next_group_size=0)
        logger.info("cooldown_finished")

    async def _finish(
        self,
        images: list[InputImage],
        results: list[ClassificationResult],
        cached_count: int,
        submitted_count: int,
        credit_exhausted: bool,
        on_complete: Optional[ResultsCallback],
    ) -> RunSummary:
        incomplete = len(results) < len(images)
        state = QueueState.ABORTED if self._aborted and incomplete else QueueState.COMPLETED

        if credit_exhausted:
            current_file = "Stopped (credit limit)"
        elif state == QueueState.ABORTED:
            current_file = "Aborted"
        else:
            current_file = "Done"

        self._update(
            state=state,
            is_processing=False,
            is_cooldown=False,
            cooldown_seconds=0,
            current_file=current_file,
            processed=len(results),
            queued=len(images) - len(results),
        )

        summary = RunSummary(
            state=state,
            results=results,
            incomplete=incomplete,
            cached_count=cached_count,
            submitted_count=submitted_count,
            credit_exhausted=credit_exhausted,
        )
        logger.info(
            "queue_run_finished",
            state=state.value,
            results=len(results),
            success=summary.success_count,
            errors=summary.error_count,
            skipped=summary.skipped_count,
            cached=cached_count,
            incomplete=incomplete,
        )

        await _invoke(on_complete, results)
        return summary

    async def close(self) -> None:
        """Release the classifier client and OCR engine."""
        logger.info("closing_processing_queue")
        await self.classifier.close()
        if self.ocr_extractor is not None:
            await self.ocr_extractor.aclose()

    async def __aenter__(self) -> "ProcessingQueue":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
