import asyncio
import hashlib
import logging
import os

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def hash_content(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _sha256_file(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


async def sha256_file(path: str) -> str:
    """SHA-256 of a local file, hex encoded, computed off the event loop."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File not found: {path}")

    value = await asyncio.to_thread(_sha256_file, path)
    logger.debug("Computed SHA-256 for %s: %s", path, value)
    return value
