import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Tuple

from proofmark.schemas.provenance_schemas import (
    ManifestAssertion,
    ManifestCheckResult,
    ManifestSource,
    Platform,
    VerificationStatus,
    VerificationStep,
)
from . import manifest_parser
from .canonicalizer import canonicalize
from .downloader import MediaDownloader
from .errors import TooLarge
from .hasher import hash_content, sha256_file
from .hosted_verifier import UNAVAILABLE, HostedVerifierClient
from .manifest_tool import ManifestToolRunner, ToolOutcome
from .status_tracker import StatusTracker

logger = logging.getLogger(__name__)


# step labels shown to pollers
PLATFORM_DETECTION = "Platform Detection"
HOSTED_VERIFICATION = "Hosted Verification"
MEDIA_DOWNLOAD = "Media Download"
LOCAL_VERIFICATION = "Local Verification"
HASH_COMPUTATION = "Hash Computation"

SIMULATED_CLAIM_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class VerificationOrchestrator:
    """
    Provenance pipeline for a single URL.

    Starting -> PlatformDetected -> HostedAttempted
      -> HostedVerified                                   (terminal)
      -> LocalFallback -> MediaDownloaded -> LocalManifestChecked
           -> ManifestVerified                            (terminal)
           -> HashFallback -> HashComputed                (terminal)
    Any stage may end in Error, which is recorded and re-raised.

    Stages run strictly in this order; the first manifest found wins.
    """

    def __init__(
        self,
        hosted: HostedVerifierClient,
        downloader: MediaDownloader,
        manifest_tool: ManifestToolRunner,
        status: StatusTracker,
        hasher: Callable[[str], Awaitable[str]] = sha256_file,
        hosted_enabled: bool = True,
        mock_mode: bool = False,
        mock_step_delay: float = 1.0,
    ):
        self.hosted = hosted
        self.downloader = downloader
        self.manifest_tool = manifest_tool
        self.status = status
        self.hasher = hasher
        self.hosted_enabled = hosted_enabled
        self.mock_mode = mock_mode
        self.mock_step_delay = mock_step_delay

    def get_status(self, run_id: str) -> VerificationStatus:
        return self.status.get(run_id)

    async def verify_from_url(self, url: str, run_id: Optional[str] = None) -> ManifestCheckResult:
        run_id = self.status.start(url, run_id)

        try:
            platform, _ = canonicalize(url)
            self.status.update(
                run_id,
                VerificationStep.platform_detected,
                f"Detected platform: {platform.value}",
                completed=PLATFORM_DETECTION,
            )
            logger.info("Starting C2PA verification for %s URL: %s", platform.value, url)

            if self.mock_mode:
                logger.info("Mock mode enabled - simulating verification for %s", url)
                return await self._simulate(run_id, url, platform)

            result, terminal = await self._run(run_id, url)
            self.status.complete(run_id, terminal, result)
            return result

        except asyncio.CancelledError:
            self.status.fail(run_id, "Verification cancelled")
            raise
        except Exception as e:
            logger.exception("Error during C2PA verification for %s", url)
            self.status.fail(run_id, str(e) or type(e).__name__)
            raise

    # -------------------------
    # Real pipeline
    # -------------------------

    async def _run(self, run_id: str, url: str) -> Tuple[ManifestCheckResult, VerificationStep]:
        self.status.update(
            run_id,
            VerificationStep.hosted_attempted,
            "Attempting hosted verification...",
        )

        outcome = await self.hosted.try_verify(url) if self.hosted_enabled else UNAVAILABLE
        self.status.update(
            run_id,
            VerificationStep.hosted_attempted,
            "Hosted verification finished",
            completed=HOSTED_VERIFICATION,
        )

        if outcome.ok and outcome.result is not None and outcome.result.manifest_found:
            logger.info("C2PA manifest found via hosted verifier for %s", url)
            return outcome.result, VerificationStep.hosted_verified

        logger.info("Hosted verifier had no manifest for %s, falling back to local check", url)
        return await self._local_fallback(run_id, url)

    async def _local_fallback(
        self, run_id: str, url: str
    ) -> Tuple[ManifestCheckResult, VerificationStep]:
        media_path = None
        try:
            self.status.update(
                run_id,
                VerificationStep.local_fallback,
                "Downloading media for local verification...",
            )

            try:
                media_path = await self.downloader.download(url)
            except TooLarge as e:
                media_path = e.path
                raise

            size = os.path.getsize(media_path)
            self.status.update(
                run_id,
                VerificationStep.media_downloaded,
                f"Media downloaded successfully ({size:,} bytes)",
                completed=MEDIA_DOWNLOAD,
                media_path=media_path,
                file_size_bytes=size,
            )

            self.status.update(
                run_id,
                VerificationStep.media_downloaded,
                "Running local C2PA verification...",
            )
            tool = await self.manifest_tool.inspect(media_path)
            self.status.update(
                run_id,
                VerificationStep.local_manifest_checked,
                "Local C2PA verification finished",
                completed=LOCAL_VERIFICATION,
            )

            parsed = None
            if tool.ok:
                parsed = manifest_parser.parse(tool.raw_json, ManifestSource.local_tool)
                if parsed.manifest_found:
                    logger.info("C2PA manifest found via local verification for %s", url)
                    return parsed, VerificationStep.manifest_verified

            self.status.update(
                run_id,
                VerificationStep.hash_fallback,
                "Computing content hash as provenance fallback...",
            )
            sha256 = await self.hasher(media_path)
            self.status.update(
                run_id,
                VerificationStep.hash_computed,
                "Content hash computed",
                completed=HASH_COMPUTATION,
            )

            logger.info("No C2PA manifest for %s, using SHA-256 fallback %s", url, sha256)
            return fallback_result(sha256, tool, parsed), VerificationStep.hash_computed

        finally:
            self._cleanup(media_path)

    def _cleanup(self, media_path: Optional[str]) -> None:
        if not media_path:
            return
        try:
            os.remove(media_path)
            logger.debug("Cleaned up downloaded file %s", media_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to clean up downloaded file %s: %s", media_path, e)

    # -------------------------
    # Simulation (no network, no processes)
    # -------------------------

    async def _simulate(self, run_id: str, url: str, platform: Platform) -> ManifestCheckResult:
        found = platform == Platform.tiktok

        steps = [
            (VerificationStep.hosted_attempted, "Attempting hosted verification...", HOSTED_VERIFICATION),
            (VerificationStep.local_fallback, "Downloading media for local verification...", None),
            (VerificationStep.media_downloaded, "Media downloaded (simulated)", MEDIA_DOWNLOAD),
            (VerificationStep.local_manifest_checked, "Running local C2PA verification...", LOCAL_VERIFICATION),
        ]
        if found:
            terminal = VerificationStep.manifest_verified
        else:
            steps += [
                (VerificationStep.hash_fallback, "Computing content hash as provenance fallback...", None),
                (VerificationStep.hash_computed, "Content hash computed", HASH_COMPUTATION),
            ]
            terminal = VerificationStep.hash_computed

        for step, message, completed in steps:
            self.status.update(run_id, step, message, completed=completed)
            await asyncio.sleep(self.mock_step_delay)

        result = simulated_result(url, platform)
        self.status.complete(run_id, terminal, result)
        logger.info(
            "Mock verification completed for %s: manifest_found=%s",
            url, result.manifest_found,
        )
        return result


# -------------------------
# Result builders
# -------------------------

def fallback_result(
    sha256: str,
    tool: ToolOutcome,
    parsed: Optional[ManifestCheckResult],
) -> ManifestCheckResult:
    if tool.ok:
        notes = "No C2PA manifest detected; using SHA-256 fingerprint"
        if parsed is not None and parsed.status in ("error", "invalid"):
            notes = f"Unreadable c2patool report ({parsed.notes}); using SHA-256 fingerprint"
    else:
        notes = f"Local manifest check {tool.kind}: {tool.detail}; using SHA-256 fingerprint"

    return ManifestCheckResult(
        manifest_found=False,
        status="not_found",
        raw_json=tool.raw_json if tool.ok else None,
        media_sha256=sha256,
        notes=notes,
    )


def simulated_result(url: str, platform: Platform) -> ManifestCheckResult:
    fingerprint = f"mock-{hash_content(url.encode())}"

    if platform != Platform.tiktok:
        return ManifestCheckResult(
            manifest_found=False,
            status="not_found",
            raw_json='{"mock":"simulated_result"}',
            media_sha256=fingerprint,
            notes=f"Mock verification for {platform.value} - simulated result",
        )

    claimed = SIMULATED_CLAIM_TIME
    return ManifestCheckResult(
        manifest_found=True,
        status="verified",
        claim_generator="TikTok-C2PA-Client",
        claim_timestamp=claimed,
        assertions=[
            ManifestAssertion(label="c2pa.claim.generator", value='"TikTok-C2PA-Client"'),
            ManifestAssertion(
                label="c2pa.claim.claim_generator_info",
                value='{"name":"TikTok-C2PA-Client","version":"1.0.0"}',
            ),
        ],
        signing_issuer="TikTok Inc.",
        raw_json='{"mock":"simulated_result"}',
        media_sha256=fingerprint,
        notes=f"Mock verification for {platform.value} - simulated result",
    )
