import glob
import logging
import os
import uuid
from typing import Optional

from .errors import DownloadFailed, NotFound, TooLarge
from .tool_runner import ToolRunner

logger = logging.getLogger(__name__)


class MediaDownloader:
    """Fetches remote media into the shared temp dir via yt-dlp."""

    def __init__(
        self,
        runner: ToolRunner,
        binary: str,
        temp_dir: str,
        timeout: float,
        max_bytes: int,
    ):
        self.runner = runner
        self.binary = binary
        self.temp_dir = temp_dir
        self.timeout = timeout
        self.max_bytes = max_bytes

    def build_args(self, url: str, output_template: str) -> list[str]:
        return [
            "--no-playlist",
            "-f", "bv*+ba/b",
            "--merge-output-format", "mp4",
            "-o", output_template,
            url,
        ]

    async def download(self, url: str) -> str:
        """
        Download `url` and return the local file path.

        Every other file the run left under its base name is removed, on
        success and failure alike. An oversized file is reported through
        TooLarge with its path; the caller owns deleting it.
        """
        os.makedirs(self.temp_dir, exist_ok=True)

        # random base name keeps concurrent runs apart in the shared dir
        base = uuid.uuid4().hex
        template = os.path.join(self.temp_dir, f"{base}.%(ext)s")

        path = None
        try:
            logger.info("Downloading %s", url)
            result = await self.runner.run(
                self.binary, self.build_args(url, template), self.timeout
            )

            if result.exit_code != 0:
                logger.error(
                    "%s failed with exit code %s: %s",
                    self.binary, result.exit_code, result.stderr.strip(),
                )
                raise DownloadFailed(
                    result.stderr.strip() or f"exit code {result.exit_code}",
                    exit_code=result.exit_code,
                    stderr=result.stderr,
                )

            matches = sorted(
                p for p in self._outputs(base)
                if not p.endswith((".part", ".ytdl"))
            )
            if not matches:
                raise NotFound(f"Download output not found for {base}")
            merged = os.path.join(self.temp_dir, f"{base}.mp4")
            path = merged if merged in matches else matches[0]
        finally:
            self._discard(base, keep=path)

        size = os.path.getsize(path)
        if size > self.max_bytes:
            logger.error("Downloaded file too large: %s bytes (max %s)", size, self.max_bytes)
            raise TooLarge(size, self.max_bytes, path=path)

        logger.info("Downloaded %s (%s bytes)", path, size)
        return path

    def _outputs(self, base: str) -> list[str]:
        return glob.glob(os.path.join(self.temp_dir, f"{base}.*"))

    def _discard(self, base: str, keep: Optional[str] = None) -> None:
        # partial, fragment and per-format leftovers of this run
        for leftover in self._outputs(base):
            if leftover == keep:
                continue
            try:
                os.remove(leftover)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to remove download leftover %s: %s", leftover, e)
