import re
from typing import Tuple
from urllib.parse import urlsplit

from proofmark.schemas.provenance_schemas import Platform
from .errors import InvalidInput


# ---------- Platform patterns (checked in order) ----------
YOUTUBE_VIDEO = re.compile(
    r"(?:youtube\.com/watch\?v=|youtu\.be/)([a-z0-9_-]{11})",
    re.IGNORECASE,
)

TIKTOK_VIDEO = re.compile(
    r"tiktok\.com/@([^/]+)/video/(\d+)",
    re.IGNORECASE,
)


def canonicalize(url: str) -> Tuple[Platform, str]:
    """
    Reduce a URL to the (platform, canonical_id) pair used for dedup.

    Platform patterns are tried before the generic fallback since any
    platform URL would also parse as a plain URI.
    """
    if url is None or not url.strip():
        raise InvalidInput("URL cannot be empty")

    normalized = url.strip().lower()

    match = YOUTUBE_VIDEO.search(normalized)
    if match:
        return Platform.youtube, f"yt:{match.group(1)}"

    match = TIKTOK_VIDEO.search(normalized)
    if match:
        username, video_id = match.groups()
        return Platform.tiktok, f"tt:{username}:{video_id}"

    try:
        parts = urlsplit(normalized)
        host = parts.hostname
    except ValueError as e:
        raise InvalidInput(f"Invalid URL format: {url}") from e

    if not parts.scheme or not host:
        raise InvalidInput(f"Invalid URL format: {url}")

    path = parts.path or "/"
    return Platform.generic, f"{parts.scheme}://{host}{path}"
