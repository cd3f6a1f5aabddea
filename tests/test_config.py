import pytest
from pydantic import ValidationError

from proofmark.config import Settings


def test_defaults(monkeypatch):
    for name in ("MOCK_MODE", "HOSTED_VERIFIER_ENABLED", "DOWNLOADER_MAX_BYTES",
                 "JWT_SECRET_KEY", "JWT_ISSUER"):
        monkeypatch.delenv(f"PROOFMARK_{name}", raising=False)

    settings = Settings()

    assert settings.mock_mode is False
    assert settings.hosted_verifier_enabled is True
    assert settings.downloader_max_bytes == 524_288_000
    assert settings.jwt_secret_key is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PROOFMARK_MOCK_MODE", "yes")
    monkeypatch.setenv("PROOFMARK_HOSTED_VERIFIER_ENABLED", "0")
    monkeypatch.setenv("PROOFMARK_DOWNLOADER_MAX_BYTES", "1024")
    monkeypatch.setenv("PROOFMARK_C2PATOOL_TIMEOUT", "5.5")
    monkeypatch.setenv("PROOFMARK_PUBLIC_BASE_URL", "https://pm.test/")
    monkeypatch.setenv("PROOFMARK_LOG_LEVEL", "debug")
    monkeypatch.setenv("PROOFMARK_JWT_SECRET_KEY", "")

    settings = Settings()

    assert settings.mock_mode is True
    assert settings.hosted_verifier_enabled is False
    assert settings.downloader_max_bytes == 1024
    assert settings.c2patool_timeout == 5.5
    assert settings.public_base_url == "https://pm.test"
    assert settings.log_level == "DEBUG"
    assert settings.jwt_secret_key is None


def test_bad_value_names_the_field(monkeypatch):
    monkeypatch.setenv("PROOFMARK_DOWNLOADER_TIMEOUT", "abc")

    with pytest.raises(ValidationError) as exc:
        Settings()

    assert "downloader_timeout" in str(exc.value)
