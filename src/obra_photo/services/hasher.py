"""Content hashing used as the cache key of a photo."""

import asyncio
import hashlib

from obra_photo.exceptions import HashingError
from obra_photo.models.result import InputImage

DEFAULT_HASH_LENGTH = 16


def hash_content(data: bytes, length: int = DEFAULT_HASH_LENGTH) -> str:
    """
    Hex SHA-256 of ``data`` truncated to ``length`` characters.

    Args:
        data: Raw bytes.
        length: Hex characters to keep, 1..64.

    Returns:
        Lower-case hex digest prefix.
    """
    if not 1 <= length <= 64:
        raise ValueError(f"hash length must be between 1 and 64, got {length}")
    return hashlib.sha256(data).hexdigest()[:length]


async def hash_image(image: InputImage, length: int = DEFAULT_HASH_LENGTH) -> str:
    """
    Hash an image's bytes in a worker thread.

    Raises:
        HashingError: If the image holds no readable content.
    """
    if not isinstance(image.data, bytes) or not image.data:
        raise HashingError(f"{image.filename}: no image content to hash")
    try:
        return await asyncio.to_thread(hash_content, image.data, length)
    except (MemoryError, ValueError) as e:
        raise HashingError(f"{image.filename}: {e}", original_error=e) from e
