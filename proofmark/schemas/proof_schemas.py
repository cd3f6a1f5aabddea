from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, Optional

from proofmark.schemas.provenance_schemas import ManifestCheckResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- Requests ----------
class CreateProofFromUrlRequest(BaseModel):
    url: str = Field(..., min_length=1)


class VerifyUrlRequest(BaseModel):
    url: str = Field(..., min_length=1)
    # caller-chosen id so progress can be polled while the run is in flight
    run_id: Optional[str] = Field(default=None, pattern=r"^[A-Za-z0-9_-]{8,64}$")


# ---------- Proof creation ----------
class CreateProofFromUrlResponse(CamelModel):
    proof_id: str
    trustmark_id: str
    verify_url: str
    deduped: bool


class OriginInfo(CamelModel):
    c2pa: bool
    status: str
    claim_generator: Optional[str] = None
    issuer: Optional[str] = None
    timestamp: Optional[datetime] = None
    sha256: Optional[str] = None


class CreateProofFromFileResponse(CamelModel):
    proof_id: str
    trustmark_id: str
    verify_url: str
    asset_id: str
    asset_reused: bool
    c2pa: bool
    origin: Optional[OriginInfo] = None


# ---------- Public verification ----------
class PolicyInfo(CamelModel):
    result: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ReceiptInfo(CamelModel):
    pdf_url: Optional[str] = None
    json_payload: Optional[Dict[str, Any]] = Field(default=None, alias="json")
    signature: Optional[str] = None
    signer_pub_key: Optional[str] = None
    signature_valid: Optional[bool] = None


class VerifyProofResponse(CamelModel):
    trustmark_id: str
    origin: OriginInfo
    policy: PolicyInfo
    receipt: ReceiptInfo
    created_at: Optional[datetime] = None


# ---------- Direct pipeline run ----------
class VerificationRunResponse(CamelModel):
    run_id: str
    result: ManifestCheckResult


# ---------- Badges / operator ----------
class BadgeEmbedResponse(BaseModel):
    html: str
    markdown: str
    url: str


class ProofSummary(CamelModel):
    proof_id: str
    trustmark_id: str
    c2pa_present: bool
    origin_status: str
    policy_result: str
    created_at: Optional[datetime] = None


class ReceiptValidationResponse(CamelModel):
    trustmark_id: str
    valid: bool
