import json
import logging
import os
import secrets
import string
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from proofmark.crud import asset_crud, idempotency_crud, link_crud, proof_crud
from proofmark.models.models import Proof, new_id
from proofmark.schemas.proof_schemas import (
    CreateProofFromFileResponse,
    CreateProofFromUrlResponse,
    OriginInfo,
    PolicyInfo,
    ReceiptInfo,
    VerifyProofResponse,
)
from proofmark.schemas.provenance_schemas import ManifestSource
from . import manifest_parser
from .canonicalizer import canonicalize
from .downloader import MediaDownloader
from .errors import NotFound, TooLarge
from .hasher import hash_content, sha256_file
from .manifest_tool import ManifestToolRunner
from .media_probe import MediaInfoProbe
from .orchestrator import VerificationOrchestrator
from .receipt_signer import ReceiptSigner, canonical_json

logger = logging.getLogger(__name__)


TRUSTMARK_ALPHABET = string.ascii_letters + string.digits
TRUSTMARK_LENGTH = 8

DOWNLOADED_MEDIA_TYPE = "video/mp4"

# policy evaluation is not implemented; every proof passes
POLICY_RESULT = "pass"
POLICY_JSON = "{}"


def verify_path(trustmark_id: str) -> str:
    return f"/t/{trustmark_id}"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _remove_quietly(path: Optional[str]) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove temp file %s: %s", path, e)


class ProofService:
    """Creates signed proofs and answers public lookups."""

    def __init__(
        self,
        db: Session,
        orchestrator: VerificationOrchestrator,
        downloader: MediaDownloader,
        manifest_tool: ManifestToolRunner,
        media_probe: MediaInfoProbe,
        signer: ReceiptSigner,
    ):
        self.db = db
        self.orchestrator = orchestrator
        self.downloader = downloader
        self.manifest_tool = manifest_tool
        self.media_probe = media_probe
        self.signer = signer

    # -------------------------
    # Identifiers
    # -------------------------

    def generate_trustmark_id(self) -> str:
        while True:
            candidate = "".join(
                secrets.choice(TRUSTMARK_ALPHABET) for _ in range(TRUSTMARK_LENGTH)
            )
            if not proof_crud.trustmark_exists(self.db, candidate):
                return candidate

    # -------------------------
    # URL proofs
    # -------------------------

    async def create_from_url(self, url: str, idempotency_key: Optional[str] = None) -> str:
        """
        Create (or reuse) the proof for `url` and return the JSON response body.

        A replayed idempotency key returns the stored body untouched.
        """
        if idempotency_key:
            record = idempotency_crud.get_idempotency(self.db, idempotency_key)
            if record and record.response_json:
                logger.info("Returning cached response for idempotency key %s", idempotency_key)
                return record.response_json
            idempotency_crud.reserve_idempotency_key(self.db, idempotency_key)

        platform, canonical_id = canonicalize(url)
        logger.info("Canonicalized %s to %s / %s", url, platform.value, canonical_id)

        linked_id = link_crud.get_linked_proof_id(self.db, platform.value, canonical_id)
        if linked_id:
            existing = proof_crud.get_proof(self.db, linked_id)
            if existing:
                logger.info("Found existing proof %s for %s", existing.id, url)
                return self._finish_url(existing, True, idempotency_key)

        proof_id = new_id()
        trustmark_id = self.generate_trustmark_id()

        asset = await self._ingest_url(url)

        result = await self.orchestrator.verify_from_url(url)
        logger.info(
            "C2PA verification finished for %s: manifest_found=%s status=%s",
            url, result.manifest_found, result.status,
        )

        proof = proof_crud.insert_proof(
            self.db,
            proof_id=proof_id,
            trustmark_id=trustmark_id,
            asset_id=asset.asset_id,
            c2pa_present=result.manifest_found,
            c2pa_raw_json=result.raw_json,
            origin_status=result.status,
            policy_result=POLICY_RESULT,
            policy_json=POLICY_JSON,
        )

        self._issue_receipt(proof, {
            "proofId": proof.id,
            "trustmarkId": proof.trustmark_id,
            "url": url,
            "platform": platform.value,
            "canonicalId": canonical_id,
            "c2paPresent": result.manifest_found,
            "originStatus": result.status,
            "policyResult": POLICY_RESULT,
            "timestamp": _utc_now_iso(),
        })

        owner_id = link_crud.insert_or_get_link(self.db, platform.value, canonical_id, proof.id)
        if owner_id != proof.id:
            winner = proof_crud.get_proof(self.db, owner_id)
            if winner:
                logger.info("Proof %s lost the link race to %s", proof.id, owner_id)
                return self._finish_url(winner, True, idempotency_key)

        return self._finish_url(proof, False, idempotency_key)

    async def _ingest_url(self, url: str):
        if self.orchestrator.mock_mode:
            # simulated runs never touch the network; key the asset on the URL
            asset, _ = asset_crud.insert_or_get_asset(
                self.db,
                sha256=hash_content(url.encode("utf-8")),
                media_type=DOWNLOADED_MEDIA_TYPE,
                size_bytes=0,
            )
            return asset

        path = None
        try:
            try:
                path = await self.downloader.download(url)
            except TooLarge as e:
                path = e.path
                raise

            sha256 = await sha256_file(path)
            info = await self.media_probe.extract(path)
            asset, _ = asset_crud.insert_or_get_asset(
                self.db,
                sha256=sha256,
                media_type=DOWNLOADED_MEDIA_TYPE,
                size_bytes=os.path.getsize(path),
                duration_sec=info.duration if info else None,
                width=info.width if info else None,
                height=info.height if info else None,
            )
            return asset
        finally:
            _remove_quietly(path)

    def _finish_url(self, proof: Proof, deduped: bool, idempotency_key: Optional[str]) -> str:
        body = CreateProofFromUrlResponse(
            proof_id=proof.id,
            trustmark_id=proof.trustmark_id,
            verify_url=verify_path(proof.trustmark_id),
            deduped=deduped,
        ).model_dump_json(by_alias=True)

        if idempotency_key:
            idempotency_crud.store_idempotent_response(self.db, idempotency_key, proof.id, body)
        return body

    # -------------------------
    # File proofs
    # -------------------------

    async def create_from_file(
        self,
        file_path: str,
        file_name: Optional[str],
        content_type: Optional[str],
        likeness_owner_name: Optional[str] = None,
        consent_evidence_url: Optional[str] = None,
    ) -> CreateProofFromFileResponse:
        sha256 = await sha256_file(file_path)
        size = os.path.getsize(file_path)
        media_type = asset_crud.normalize_media_type(content_type)

        existing = asset_crud.get_asset_by_sha256(self.db, sha256)
        if existing:
            asset, reused = existing, True
        else:
            info = await self.media_probe.extract(file_path)
            asset, reused = asset_crud.insert_or_get_asset(
                self.db,
                sha256=sha256,
                media_type=media_type,
                size_bytes=size,
                duration_sec=info.duration if info else None,
                width=info.width if info else None,
                height=info.height if info else None,
            )

        tool = await self.manifest_tool.inspect(file_path)
        if tool.ok:
            result = manifest_parser.parse(tool.raw_json, ManifestSource.local_tool)
        else:
            logger.warning("Manifest check %s for upload %s: %s", tool.kind, file_name, tool.detail)
            result = None

        found = bool(result and result.manifest_found)
        origin_status = result.status if found else "not_found"
        logger.info("C2PA parsing completed for %s: manifest_found=%s", file_name, found)

        proof = proof_crud.insert_proof(
            self.db,
            proof_id=new_id(),
            trustmark_id=self.generate_trustmark_id(),
            asset_id=asset.asset_id,
            c2pa_present=found,
            c2pa_raw_json=result.raw_json if result else None,
            origin_status=origin_status,
            policy_result=POLICY_RESULT,
            policy_json=POLICY_JSON,
        )

        self._issue_receipt(proof, {
            "proofId": proof.id,
            "trustmarkId": proof.trustmark_id,
            "assetId": asset.asset_id,
            "sha256": sha256,
            "fileName": file_name,
            "contentType": media_type,
            "fileSize": size,
            "likenessOwnerName": likeness_owner_name,
            "consentEvidenceUrl": consent_evidence_url,
            "timestamp": _utc_now_iso(),
        })

        origin = None
        if found:
            origin = OriginInfo(
                c2pa=True,
                status=origin_status,
                claim_generator=result.claim_generator,
                issuer=result.signing_issuer,
                timestamp=result.claim_timestamp,
                sha256=sha256,
            )

        return CreateProofFromFileResponse(
            proof_id=proof.id,
            trustmark_id=proof.trustmark_id,
            verify_url=verify_path(proof.trustmark_id),
            asset_id=asset.asset_id,
            asset_reused=reused,
            c2pa=found,
            origin=origin,
        )

    # -------------------------
    # Receipts
    # -------------------------

    def _issue_receipt(self, proof: Proof, payload: dict) -> None:
        signature, public_key = self.signer.sign(payload)
        json_text = canonical_json(payload)

        receipt = proof_crud.insert_receipt(
            self.db,
            proof_id=proof.id,
            json_text=json_text,
            receipt_hash=hash_content(json_text.encode("utf-8")),
            signature=signature,
            signer_pub_key=public_key,
        )
        proof_crud.set_proof_receipt(self.db, proof, receipt.id)

    def validate_receipt(self, trustmark_id: str) -> bool:
        proof = self._require_proof(trustmark_id)
        receipt = proof_crud.get_receipt_for_proof(self.db, proof.id)
        if receipt is None:
            return False

        try:
            payload = json.loads(receipt.json)
        except ValueError:
            return False
        return ReceiptSigner.verify(payload, receipt.signature, receipt.signer_pub_key)

    # -------------------------
    # Public lookup
    # -------------------------

    def _require_proof(self, trustmark_id: str) -> Proof:
        proof = proof_crud.get_proof_by_trustmark(self.db, trustmark_id)
        if proof is None:
            raise NotFound(f"Unknown trustmark: {trustmark_id}")
        return proof

    def get_public_verification(self, trustmark_id: str) -> VerifyProofResponse:
        proof = self._require_proof(trustmark_id)
        receipt = proof_crud.get_receipt_for_proof(self.db, proof.id)
        asset = asset_crud.get_asset(self.db, proof.asset_id) if proof.asset_id else None

        manifest = manifest_parser.parse_any(proof.c2pa_raw_json) if proof.c2pa_raw_json else None

        try:
            policy_details = json.loads(proof.policy_json or "{}")
        except ValueError:
            policy_details = {}

        receipt_payload = None
        signature_valid = None
        if receipt:
            try:
                receipt_payload = json.loads(receipt.json)
            except ValueError:
                receipt_payload = None
            signature_valid = receipt_payload is not None and ReceiptSigner.verify(
                receipt_payload, receipt.signature, receipt.signer_pub_key
            )

        return VerifyProofResponse(
            trustmark_id=proof.trustmark_id,
            origin=OriginInfo(
                c2pa=proof.c2pa_present,
                status=proof.origin_status,
                claim_generator=manifest.claim_generator if manifest else None,
                issuer=manifest.signing_issuer if manifest else None,
                timestamp=manifest.claim_timestamp if manifest else None,
                sha256=asset.sha256 if asset else None,
            ),
            policy=PolicyInfo(
                result=proof.policy_result,
                details=policy_details if isinstance(policy_details, dict) else {},
            ),
            receipt=ReceiptInfo(
                pdf_url=f"/receipts/{receipt.pdf_path}" if receipt and receipt.pdf_path else None,
                json_payload=receipt_payload,
                signature=receipt.signature if receipt else None,
                signer_pub_key=receipt.signer_pub_key if receipt else None,
                signature_valid=signature_valid,
            ),
            created_at=proof.created_at,
        )
