from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, Response, Form, Header
from sqlalchemy.orm import Session
from typing import Optional
import logging
import os
import tempfile
import uuid

from proofmark.auth import get_current_operator
from proofmark.config import Settings, get_settings
from proofmark.crud import proof_crud
from proofmark.database.database import get_db
from proofmark.dependencies import get_orchestrator, get_proof_service, get_status_tracker
from proofmark.schemas.proof_schemas import (
    CreateProofFromFileResponse,
    CreateProofFromUrlRequest,
    CreateProofFromUrlResponse,
    ProofSummary,
    ReceiptValidationResponse,
    VerificationRunResponse,
    VerifyProofResponse,
    VerifyUrlRequest,
)
from proofmark.schemas.provenance_schemas import VerificationStatus
from proofmark.services.provenance.errors import (
    DownloadFailed,
    ExternalToolFailure,
    InvalidInput,
    NotFound,
    ProvenanceError,
    TooLarge,
    ToolTimeout,
)
from proofmark.services.provenance.orchestrator import VerificationOrchestrator
from proofmark.services.provenance.proof_service import ProofService
from proofmark.services.provenance.status_tracker import StatusTracker

logger = logging.getLogger(__name__)

proofrouter = APIRouter(prefix="/v1", tags=["Proofs"])

UPLOAD_CHUNK = 1024 * 1024


def http_error(e: ProvenanceError) -> HTTPException:
    if isinstance(e, InvalidInput):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, TooLarge):
        return HTTPException(status_code=413, detail=str(e))
    if isinstance(e, ToolTimeout):
        return HTTPException(status_code=504, detail=str(e))
    if isinstance(e, (DownloadFailed, ExternalToolFailure)):
        return HTTPException(status_code=502, detail=str(e))

    logger.error("Unhandled provenance error: %s", e)
    return HTTPException(status_code=500, detail="Internal server error")


# ---------- URL proofs ----------
@proofrouter.post("/proofs/url", response_model=CreateProofFromUrlResponse)
async def create_proof_from_url(
    request: CreateProofFromUrlRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    service: ProofService = Depends(get_proof_service),
):
    try:
        body = await service.create_from_url(request.url, idempotency_key=idempotency_key)
    except ProvenanceError as e:
        raise http_error(e)

    # raw body so idempotent replays are byte-identical
    return Response(content=body, media_type="application/json")


# ---------- File proofs ----------
@proofrouter.post("/proofs/file-upload", response_model=CreateProofFromFileResponse)
async def create_proof_from_file(
    file: UploadFile = File(...),
    likeness_owner_name: Optional[str] = Form(default=None),
    consent_evidence_url: Optional[str] = Form(default=None),
    service: ProofService = Depends(get_proof_service),
    settings: Settings = Depends(get_settings),
):
    os.makedirs(settings.downloader_temp_dir, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix="upload_", dir=settings.downloader_temp_dir)

    try:
        written = 0
        with os.fdopen(fd, "wb") as out:
            while chunk := await file.read(UPLOAD_CHUNK):
                written += len(chunk)
                if written > settings.downloader_max_bytes:
                    raise TooLarge(written, settings.downloader_max_bytes)
                out.write(chunk)

        if written == 0:
            raise InvalidInput("File is required")

        response = await service.create_from_file(
            temp_path,
            file_name=file.filename,
            content_type=file.content_type,
            likeness_owner_name=likeness_owner_name,
            consent_evidence_url=consent_evidence_url,
        )
    except ProvenanceError as e:
        raise http_error(e)
    finally:
        try:
            os.remove(temp_path)
        except OSError as e:
            logger.warning("Failed to remove upload temp file %s: %s", temp_path, e)

    return response


# ---------- Direct pipeline run / progress ----------
@proofrouter.post("/verifications", response_model=VerificationRunResponse)
async def run_verification(
    request: VerifyUrlRequest,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
):
    run_id = request.run_id
    if run_id:
        try:
            orchestrator.get_status(run_id)
        except NotFound:
            pass
        else:
            raise HTTPException(status_code=409, detail=f"Run id already in use: {run_id}")
    else:
        run_id = uuid.uuid4().hex

    try:
        result = await orchestrator.verify_from_url(request.url, run_id=run_id)
    except ProvenanceError as e:
        raise http_error(e)

    return VerificationRunResponse(run_id=run_id, result=result)


@proofrouter.get("/verification-status/{run_id}", response_model=VerificationStatus)
def get_verification_status(
    run_id: str,
    tracker: StatusTracker = Depends(get_status_tracker),
):
    try:
        return tracker.get(run_id)
    except NotFound as e:
        raise http_error(e)


# ---------- Public verification ----------
@proofrouter.get("/verify-trustmark/{trustmark_id}", response_model=VerifyProofResponse)
def verify_trustmark(
    trustmark_id: str,
    service: ProofService = Depends(get_proof_service),
):
    try:
        return service.get_public_verification(trustmark_id)
    except NotFound as e:
        raise http_error(e)


@proofrouter.get("/verify-trustmark/{trustmark_id}/valid", response_model=ReceiptValidationResponse)
def validate_trustmark_receipt(
    trustmark_id: str,
    service: ProofService = Depends(get_proof_service),
):
    try:
        valid = service.validate_receipt(trustmark_id)
    except NotFound as e:
        raise http_error(e)

    return ReceiptValidationResponse(trustmark_id=trustmark_id, valid=valid)


# ---------- Operator ----------
@proofrouter.get("/proofs", response_model=list[ProofSummary])
def list_proofs(
    limit: int = 100,
    db: Session = Depends(get_db),
    operator: dict = Depends(get_current_operator),
):
    proofs = proof_crud.list_proofs(db, limit=max(1, min(limit, 1000)))
    return [
        ProofSummary(
            proof_id=p.id,
            trustmark_id=p.trustmark_id,
            c2pa_present=p.c2pa_present,
            origin_status=p.origin_status,
            policy_result=p.policy_result,
            created_at=p.created_at,
        )
        for p in proofs
    ]


@proofrouter.get("/proofs/stats")
def proof_stats(
    db: Session = Depends(get_db),
    operator: dict = Depends(get_current_operator),
    settings: Settings = Depends(get_settings),
):
    return {
        "total_proofs": proof_crud.count_proofs(db),
        "database": settings.database_url.split(":", 1)[0],
        "requested_by": operator["operator_id"],
    }
