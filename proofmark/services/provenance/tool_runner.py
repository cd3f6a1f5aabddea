import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from .errors import ExternalToolFailure, ToolTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    exit_code: int
    stdout: str
    stderr: str


class ToolRunner:
    """
    Runs an external binary with captured output and a hard timeout.

    The child is killed on every non-normal exit (timeout, caller
    cancellation, unexpected error) so no process outlives its run.
    """

    async def run(self, binary: str, args: Sequence[str], timeout: float) -> ToolResult:
        logger.debug("Running %s %s", binary, " ".join(args))

        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalToolFailure(f"Could not start {binary}: {e}") from e

        try:
            async with asyncio.timeout(timeout):
                stdout, stderr = await proc.communicate()
        except TimeoutError:
            logger.warning("%s timed out after %ss", binary, timeout)
            raise ToolTimeout(binary, timeout) from None
        finally:
            if proc.returncode is None:
                await _kill(proc)

        result = ToolResult(
            exit_code=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        logger.debug("%s exited with %s", binary, result.exit_code)
        return result


async def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        return
    # reap so the child does not linger as a zombie
    await asyncio.shield(proc.wait())
