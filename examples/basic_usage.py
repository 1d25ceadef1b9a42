"""Basic usage examples for the processing queue."""

import asyncio
import io
import json

import httpx
from PIL import Image

from classifier_gateway.config import GatewaySettings
from classifier_gateway.server import create_app
from classifier_gateway.upstream import UpstreamClient
from obra_photo.adapters import OCREngineFactory
from obra_photo.adapters.classifier_client import RemoteClassifierClient
from obra_photo.models.queue import ProcessingConfig
from obra_photo.models.result import ClassificationResult, ExifData, InputImage
from obra_photo.services.ocr_extractor import LocalOCRExtractor
from obra_photo.services.queue import ProcessingQueue
from obra_photo.services.result_cache import ResultCache


def fake_upstream(request: httpx.Request) -> httpx.Response:
    """Answer every chat completion with the same classification."""
    answer = {
        "portico": "BSO_04",
        "disciplina": "CONTENCAO",
        "servico": "TIRANTE",
        "data": "24/11/2025",
        "confidence": 0.9,
        "analise_tecnica": "Perfuração para tirantes",
    }
    return httpx.Response(
        200, json={"choices": [{"message": {"role": "assistant", "content": json.dumps(answer)}}]}
    )


def make_photos(count: int) -> list[InputImage]:
    photos = []
    for i in range(count):
        img = Image.new("RGB", (320, 240), color=(i * 40 % 255, 120, 80))
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG")
        photos.append(
            InputImage(
                filename=f"IMG_{i:04d}.jpg",
                data=buffer.getvalue(),
                exif=ExifData(date="2025:11:24 10:15:00"),
            )
        )
    return photos


def make_client() -> RemoteClassifierClient:
    """A classifier client talking to an in-process gateway."""
    settings = GatewaySettings(upstream_api_key="demo", inter_image_delay=0.0)
    upstream = UpstreamClient(settings, transport=httpx.MockTransport(fake_upstream))
    app = create_app(settings=settings, upstream=upstream)
    return RemoteClassifierClient(
        base_url="http://gateway.local", transport=httpx.ASGITransport(app=app)
    )


async def example_batch_run() -> None:
    """Example classifying photos in batches, with a cache re-run."""
    print("=" * 60)
    print("Example 1: Batched classification")
    print("=" * 60)

    async def on_batch(results: list[ClassificationResult]) -> None:
        for result in results:
            print(f"  {result.filename}: {result.status} -> {result.dest}")

    cache = ResultCache()
    queue = ProcessingQueue(make_client(), cache=cache, batch_size=2, pacing_delay=0.5)
    photos = make_photos(5)

    summary = await queue.process(photos, on_batch_complete=on_batch)
    print(f"State: {summary.state.value}, submitted: {summary.submitted_count}")

    # Second run is served from the cache
    summary = await queue.process(photos, on_batch_complete=on_batch)
    print(f"State: {summary.state.value}, cached: {summary.cached_count}")
    print(f"Cache: {cache.stats().count} entries, {cache.stats().approx_size}")
    print()


async def example_heuristic_mode() -> None:
    """Example classifying from the site sign alone."""
    print("=" * 60)
    print("Example 2: Heuristic-only mode")
    print("=" * 60)

    engine = OCREngineFactory.create("mock", {})
    queue = ProcessingQueue(make_client(), ocr_extractor=LocalOCRExtractor(engine))
    config = ProcessingConfig(heuristic_only=True)

    summary = await queue.process(make_photos(2), config)
    for result in summary.results:
        print(f"  {result.filename}: {result.method.value} {result.portico} -> {result.dest}")
    print()


async def example_stream() -> None:
    """Example consuming batches as an async iterator."""
    print("=" * 60)
    print("Example 3: Streaming results")
    print("=" * 60)

    queue = ProcessingQueue(make_client(), batch_size=3, pacing_delay=0.0)
    async for results in queue.stream(make_photos(6)):
        print(f"  batch of {len(results)}; progress: {queue.progress().percent:.0f}%")
    print()


async def main() -> None:
    """Run all examples."""
    await example_batch_run()
    await example_heuristic_mode()
    await example_stream()


if __name__ == "__main__":
    asyncio.run(main())
