"""Command-line entry point for classifying photo folders."""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog

from obra_photo import __version__
from obra_photo.config import Settings, get_settings
from obra_photo.exceptions import AlreadyRunningError
from obra_photo.models.queue import ProcessingConfig, RunSummary
from obra_photo.models.result import ClassificationResult, InputImage
from obra_photo.services.queue import ProcessingQueue

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"}


def configure_logging(log_level: str) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    log_level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }

    level = log_level_map.get(log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        # Results go to stdout, logs to stderr
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def collect_images(paths: Sequence[str]) -> list[InputImage]:
    """
    Load image files, expanding directories in name order.

    Unreadable files are loaded as empty images so the queue records an
    error for them instead of dropping them.
    """
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(
                sorted(p for p in path.rglob("*") if p.suffix.lower() in IMAGE_SUFFIXES)
            )
        else:
            files.append(path)

    images = []
    for path in files:
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.warning("image_read_failed", path=str(path), error=str(e))
            data = b""
        mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        images.append(InputImage(filename=path.name, data=data, mime_type=mime_type))
    return images


def _print_results(results: list[ClassificationResult]) -> None:
    for result in results:
        print(result.model_dump_json(), flush=True)


async def run_classification(
    paths: Sequence[str], config: ProcessingConfig, settings: Settings
) -> RunSummary:
    """Classify the given files and print one JSON line per result."""
    images = collect_images(paths)
    async with ProcessingQueue.from_settings(settings) as queue:
        return await queue.process(images, config, on_batch_complete=_print_results)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="obra-photo",
        description="Classify construction-site photos in rate-limited batches",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    classify = subparsers.add_parser("classify", help="Classify image files or folders")
    classify.add_argument("paths", nargs="+", help="Image files or directories")
    classify.add_argument("--default-portico", help="Service front used when none is found")
    classify.add_argument("--empresa", help="Contractor name sent as context")
    classify.add_argument("--economic", action="store_true", help="Use the cheaper model")
    classify.add_argument(
        "--heuristic-only",
        action="store_true",
        help="Classify from local OCR only, without remote calls",
    )
    classify.add_argument("--no-ocr", action="store_true", help="Skip local OCR")
    classify.add_argument(
        "--flat", action="store_true", help="Do not add month/day folders to destinations"
    )
    classify.add_argument("--log-level", help="Override the configured log level")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    config = ProcessingConfig(
        default_portico=args.default_portico,
        empresa=args.empresa,
        organize_by_date=not args.flat,
        use_local_ocr=settings.use_local_ocr and not args.no_ocr,
        economic_mode=args.economic,
        heuristic_only=args.heuristic_only,
    )

    logger.info("starting_classification", version=__version__, paths=len(args.paths))
    try:
        summary = asyncio.run(run_classification(args.paths, config, settings))
    except AlreadyRunningError as e:
        logger.error("classification_rejected", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("classification_interrupted")
        return 130

    logger.info(
        "classification_finished",
        state=summary.state.value,
        success=summary.success_count,
        errors=summary.error_count,
        skipped=summary.skipped_count,
        needs_review=summary.needs_review_count,
    )
    return 0 if not summary.credit_exhausted else 2


if __name__ == "__main__":
    sys.exit(main())
