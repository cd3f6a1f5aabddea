from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional


ManifestStatus = Literal["verified", "not_found", "invalid", "error"]


class Platform(str, Enum):
    youtube = "YouTube"
    tiktok = "TikTok"
    generic = "Generic"


class ManifestSource(str, Enum):
    local_tool = "local_tool"
    hosted_service = "hosted_service"


# ---------- Manifest check ----------
class ManifestAssertion(BaseModel):
    label: str
    value: Optional[str] = None  # raw JSON text of the assertion body


class ManifestCheckResult(BaseModel):
    manifest_found: bool
    status: ManifestStatus

    claim_generator: Optional[str] = None
    claim_timestamp: Optional[datetime] = None
    assertions: List[ManifestAssertion] = Field(default_factory=list)
    signing_issuer: Optional[str] = None

    raw_json: Optional[str] = None      # archived verbatim for audit
    media_sha256: Optional[str] = None  # fallback fingerprint
    notes: Optional[str] = None


# ---------- Live progress ----------
class VerificationStep(str, Enum):
    starting = "Starting"
    platform_detected = "PlatformDetected"
    hosted_attempted = "HostedAttempted"
    hosted_verified = "HostedVerified"
    local_fallback = "LocalFallback"
    media_downloaded = "MediaDownloaded"
    local_manifest_checked = "LocalManifestChecked"
    manifest_verified = "ManifestVerified"
    hash_fallback = "HashFallback"
    hash_computed = "HashComputed"
    completed = "Completed"
    error = "Error"


class VerificationStatus(BaseModel):
    current_step: VerificationStep
    message: str
    is_completed: bool = False
    has_error: bool = False
    error_message: Optional[str] = None
    completed_steps: Dict[str, bool] = Field(default_factory=dict)
    result: Optional[ManifestCheckResult] = None
    media_path: Optional[str] = None
    file_size_bytes: Optional[int] = None

    updated_at: datetime


# ---------- Media probe ----------
class MediaInfo(BaseModel):
    duration: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    codec: Optional[str] = None
    bitrate: Optional[str] = None
    frame_rate: Optional[str] = None
