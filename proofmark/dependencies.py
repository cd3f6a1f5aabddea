from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from proofmark.config import Settings, get_settings
from proofmark.database.database import get_db
from proofmark.services.provenance.downloader import MediaDownloader
from proofmark.services.provenance.hosted_verifier import HostedVerifierClient
from proofmark.services.provenance.manifest_tool import ManifestToolRunner
from proofmark.services.provenance.media_probe import MediaInfoProbe
from proofmark.services.provenance.orchestrator import VerificationOrchestrator
from proofmark.services.provenance.proof_service import ProofService
from proofmark.services.provenance.receipt_signer import ReceiptSigner
from proofmark.services.provenance.status_tracker import StatusTracker
from proofmark.services.provenance.tool_runner import ToolRunner


# ---------- Process-wide state ----------
def get_status_tracker(request: Request) -> StatusTracker:
    return request.app.state.status_tracker


@lru_cache
def _signer_for(key_path: str) -> ReceiptSigner:
    return ReceiptSigner(key_path)


def get_receipt_signer(settings: Settings = Depends(get_settings)) -> ReceiptSigner:
    return _signer_for(settings.signing_key_path)


def get_tool_runner() -> ToolRunner:
    return ToolRunner()


# ---------- Pipeline collaborators ----------
def get_downloader(
    settings: Settings = Depends(get_settings),
    runner: ToolRunner = Depends(get_tool_runner),
) -> MediaDownloader:
    return MediaDownloader(
        runner,
        binary=settings.downloader_bin,
        temp_dir=settings.downloader_temp_dir,
        timeout=settings.downloader_timeout,
        max_bytes=settings.downloader_max_bytes,
    )


def get_manifest_tool(
    settings: Settings = Depends(get_settings),
    runner: ToolRunner = Depends(get_tool_runner),
) -> ManifestToolRunner:
    return ManifestToolRunner(runner, settings.c2patool_bin, settings.c2patool_timeout)


def get_media_probe(
    settings: Settings = Depends(get_settings),
    runner: ToolRunner = Depends(get_tool_runner),
) -> MediaInfoProbe:
    return MediaInfoProbe(runner, settings.ffprobe_bin, settings.c2patool_timeout)


def get_hosted_verifier(settings: Settings = Depends(get_settings)) -> HostedVerifierClient:
    return HostedVerifierClient(
        settings.hosted_verifier_url,
        timeout=settings.hosted_verifier_timeout,
        max_retries=settings.hosted_verifier_max_retries,
    )


def get_orchestrator(
    settings: Settings = Depends(get_settings),
    hosted: HostedVerifierClient = Depends(get_hosted_verifier),
    downloader: MediaDownloader = Depends(get_downloader),
    manifest_tool: ManifestToolRunner = Depends(get_manifest_tool),
    tracker: StatusTracker = Depends(get_status_tracker),
) -> VerificationOrchestrator:
    return VerificationOrchestrator(
        hosted,
        downloader,
        manifest_tool,
        tracker,
        hosted_enabled=settings.hosted_verifier_enabled,
        mock_mode=settings.mock_mode,
        mock_step_delay=settings.mock_step_delay,
    )


def get_proof_service(
    db: Session = Depends(get_db),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
    downloader: MediaDownloader = Depends(get_downloader),
    manifest_tool: ManifestToolRunner = Depends(get_manifest_tool),
    media_probe: MediaInfoProbe = Depends(get_media_probe),
    signer: ReceiptSigner = Depends(get_receipt_signer),
) -> ProofService:
    return ProofService(db, orchestrator, downloader, manifest_tool, media_probe, signer)
