import json
import logging
import os
from dataclasses import dataclass
from typing import Literal, Optional

from .errors import ExternalToolFailure, ToolTimeout
from .tool_runner import ToolRunner

logger = logging.getLogger(__name__)


ToolOutcomeKind = Literal["ok", "failed", "timeout", "missing_file"]


@dataclass(frozen=True)
class ToolOutcome:
    kind: ToolOutcomeKind
    raw_json: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind == "ok"


class ManifestToolRunner:
    """Runs c2patool against a local file and returns its JSON report."""

    def __init__(self, runner: ToolRunner, binary: str, timeout: float):
        self.runner = runner
        self.binary = binary
        self.timeout = timeout

    async def inspect(self, media_path: str) -> ToolOutcome:
        if not os.path.isfile(media_path):
            logger.error("Media file not found: %s", media_path)
            return ToolOutcome("missing_file", detail=f"File not found: {media_path}")

        try:
            result = await self.runner.run(
                self.binary, [media_path, "--info", "--json"], self.timeout
            )
        except ToolTimeout as e:
            return ToolOutcome("timeout", detail=str(e))
        except ExternalToolFailure as e:
            logger.warning("%s could not run: %s", self.binary, e)
            return ToolOutcome("failed", detail=str(e))

        if result.exit_code != 0:
            logger.warning(
                "%s failed with exit code %s: %s",
                self.binary, result.exit_code, result.stderr.strip(),
            )
            return ToolOutcome(
                "failed",
                detail=result.stderr.strip() or f"exit code {result.exit_code}",
            )

        try:
            json.loads(result.stdout)
        except ValueError as e:
            logger.error("%s returned invalid JSON for %s", self.binary, media_path)
            return ToolOutcome("failed", raw_json=result.stdout, detail=f"Invalid JSON output: {e}")

        return ToolOutcome("ok", raw_json=result.stdout)
