import os
import tempfile
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =========================
# Settings
# =========================

class Settings(BaseSettings):
    """Every field can be set through a PROOFMARK_<FIELD> environment variable."""

    model_config = SettingsConfigDict(env_prefix="PROOFMARK_", case_sensitive=False, extra="ignore")

    database_url: str = "sqlite:///./proofmark.db"
    log_level: str = "INFO"

    # hosted verifier (fast path)
    hosted_verifier_enabled: bool = True
    hosted_verifier_url: str = "https://verify.contentcredentials.org/api"
    hosted_verifier_timeout: float = 20.0
    hosted_verifier_max_retries: int = 1

    # media downloader
    downloader_bin: str = "yt-dlp"
    downloader_temp_dir: str = os.path.join(tempfile.gettempdir(), "proofmark_dl")
    downloader_timeout: float = 90.0
    downloader_max_bytes: int = 524_288_000  # 500MB

    # local tools
    c2patool_bin: str = "c2patool"
    c2patool_timeout: float = 20.0
    ffprobe_bin: str = "ffprobe"

    # simulation
    mock_mode: bool = False
    mock_step_delay: float = 1.0

    signing_key_path: str = "./signing.key"
    status_ttl: float = 3600.0

    public_base_url: str = "https://proofmark.example"
    api_base_url: str = "https://api.proofmark.example"

    jwt_secret_key: Optional[str] = None
    jwt_issuer: Optional[str] = None

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("public_base_url", "api_base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("jwt_secret_key", "jwt_issuer", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
