import json
import logging
import os
from typing import Optional

from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from proofmark.schemas.provenance_schemas import MediaInfo
from .errors import ProvenanceError
from .tool_runner import ToolRunner

logger = logging.getLogger(__name__)


class MediaInfoProbe:
    """Optional enrichment: any failure yields None, never an error."""

    def __init__(self, runner: ToolRunner, binary: str = "ffprobe", timeout: float = 20.0):
        self.runner = runner
        self.binary = binary
        self.timeout = timeout

    async def extract(self, file_path: str) -> Optional[MediaInfo]:
        if not os.path.isfile(file_path):
            logger.warning("File not found: %s", file_path)
            return None

        try:
            result = await self.runner.run(
                self.binary,
                [
                    "-v", "quiet",
                    "-print_format", "json",
                    "-show_format",
                    "-show_streams",
                    file_path,
                ],
                self.timeout,
            )
        except ProvenanceError as e:
            logger.warning("ffprobe unavailable for %s: %s", file_path, e)
            return probe_image(file_path)

        if result.exit_code != 0:
            logger.warning("ffprobe failed with exit code %s", result.exit_code)
            return probe_image(file_path)

        return parse_ffprobe(result.stdout) or probe_image(file_path)


def parse_ffprobe(output: str) -> Optional[MediaInfo]:
    try:
        doc = json.loads(output)
    except ValueError:
        logger.warning("ffprobe returned invalid JSON")
        return None

    if not isinstance(doc, dict):
        return None

    fmt = doc.get("format")
    if not isinstance(fmt, dict):
        fmt = {}
    streams = doc.get("streams")
    if not isinstance(streams, list):
        streams = []

    video = next(
        (s for s in streams if isinstance(s, dict) and s.get("codec_type") == "video"),
        None,
    )
    if video is None:
        logger.info("No video stream found in media file")
        return None

    duration = None
    try:
        if fmt.get("duration") is not None:
            duration = round(float(fmt["duration"]))
    except (TypeError, ValueError, OverflowError):
        duration = None

    try:
        return MediaInfo(
            duration=duration,
            width=video.get("width") or None,
            height=video.get("height") or None,
            codec=video.get("codec_name"),
            bitrate=str(fmt["bit_rate"]) if fmt.get("bit_rate") is not None else None,
            frame_rate=video.get("r_frame_rate"),
        )
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning("Unusable ffprobe stream fields: %s", e)
        return None


def probe_image(file_path: str) -> Optional[MediaInfo]:
    try:
        with Image.open(file_path) as img:
            width, height = img.size
            codec = (img.format or "").lower() or None
    except (UnidentifiedImageError, OSError):
        return None

    return MediaInfo(width=width, height=height, codec=codec)
