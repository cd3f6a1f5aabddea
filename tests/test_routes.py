import json
import os
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conftest import FakeProbe
from proofmark.config import Settings, get_settings
from proofmark.crud import proof_crud
from proofmark.database.database import get_db
from proofmark.dependencies import (
    get_downloader,
    get_manifest_tool,
    get_media_probe,
    get_orchestrator,
    get_receipt_signer,
)
from proofmark.main import app
from proofmark.services.provenance.errors import DownloadFailed, NotFound, ToolTimeout
from proofmark.services.provenance.receipt_signer import ReceiptSigner


URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        downloader_temp_dir=str(tmp_path / "uploads"),
        signing_key_path=str(tmp_path / "keys" / "signing.key"),
        public_base_url="https://proofmark.test",
        api_base_url="https://api.proofmark.test",
    )


@pytest.fixture
def client(db_session, pipeline, tracker, settings):
    orchestrator = pipeline.build()
    signer = ReceiptSigner(settings.signing_key_path)

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_downloader] = lambda: pipeline.downloader
    app.dependency_overrides[get_manifest_tool] = lambda: pipeline.manifest_tool
    app.dependency_overrides[get_media_probe] = lambda: FakeProbe()
    app.dependency_overrides[get_receipt_signer] = lambda: signer

    previous_tracker = app.state.status_tracker
    app.state.status_tracker = tracker
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.state.status_tracker = previous_tracker
        app.dependency_overrides.clear()


def create_url_proof(client, url=URL, **headers):
    r = client.post("/v1/proofs/url", json={"url": url}, headers=headers)
    assert r.status_code == 200, r.text
    return r


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


# ---------- URL proofs ----------
def test_create_and_dedup_url_proof(client, pipeline):
    first = create_url_proof(client).json()
    downloads = pipeline.downloader.calls
    second = create_url_proof(client, "https://youtu.be/dQw4w9WgXcQ").json()

    assert set(first) == {"proofId", "trustmarkId", "verifyUrl", "deduped"}
    assert first["deduped"] is False
    assert second["deduped"] is True
    assert second["trustmarkId"] == first["trustmarkId"]
    assert pipeline.downloader.calls == downloads


def test_idempotency_key_replays_exact_bytes(client):
    first = create_url_proof(client, **{"Idempotency-Key": "req-42"})
    replay = create_url_proof(client, "https://example.com/else", **{"Idempotency-Key": "req-42"})

    assert replay.content == first.content


def test_empty_url_is_unprocessable(client):
    assert client.post("/v1/proofs/url", json={"url": ""}).status_code == 422


def test_bad_url_is_bad_request(client):
    r = client.post("/v1/proofs/url", json={"url": "not a url"})

    assert r.status_code == 400
    assert "Invalid URL" in r.json()["detail"]


def test_download_failure_is_bad_gateway(client, pipeline):
    pipeline.downloader.error = DownloadFailed("HTTP Error 403")

    r = client.post("/v1/proofs/url", json={"url": URL})

    assert r.status_code == 502


# ---------- File proofs ----------
def test_file_upload_reuses_asset(client, settings):
    files = {"file": ("photo.jpg", b"jpeg bytes", "image/jpeg")}

    first = client.post("/v1/proofs/file-upload", files=files, data={"likeness_owner_name": "Sam"})
    second = client.post("/v1/proofs/file-upload", files=files)

    assert first.status_code == 200, first.text
    assert first.json()["assetReused"] is False
    assert second.json()["assetReused"] is True
    assert second.json()["assetId"] == first.json()["assetId"]

    assert os.listdir(settings.downloader_temp_dir) == []


def test_empty_upload_is_rejected(client):
    r = client.post("/v1/proofs/file-upload", files={"file": ("empty.bin", b"", "application/octet-stream")})

    assert r.status_code == 400


def test_oversized_upload_is_rejected(client, settings):
    settings.downloader_max_bytes = 8

    r = client.post("/v1/proofs/file-upload", files={"file": ("big.bin", b"x" * 64, "application/octet-stream")})

    assert r.status_code == 413


# ---------- Public verification / badges ----------
def test_verify_trustmark(client):
    trustmark = create_url_proof(client).json()["trustmarkId"]

    body = client.get(f"/v1/verify-trustmark/{trustmark}").json()

    assert body["trustmarkId"] == trustmark
    assert body["origin"]["c2pa"] is False
    assert body["origin"]["status"] == "not_found"
    assert body["policy"] == {"result": "pass", "details": {}}
    assert body["receipt"]["signatureValid"] is True
    assert body["receipt"]["json"]["trustmarkId"] == trustmark


def test_unknown_trustmark_is_404(client):
    assert client.get("/v1/verify-trustmark/nope1234").status_code == 404


def test_badge_svg_and_embed(client):
    trustmark = create_url_proof(client).json()["trustmarkId"]

    svg = client.get(f"/v1/badge/{trustmark}.svg")
    assert svg.status_code == 200
    assert svg.headers["content-type"].startswith("image/svg+xml")
    assert svg.headers["cache-control"] == "public, max-age=3600"
    assert trustmark in svg.text

    embed = client.get(f"/v1/badge/{trustmark}/embed").json()
    assert embed["url"] == f"/v1/badge/{trustmark}.svg"
    assert f"https://proofmark.test/t/{trustmark}" in embed["html"]
    assert f"https://api.proofmark.test/v1/badge/{trustmark}.svg" in embed["markdown"]


def test_badge_for_unknown_trustmark_is_404(client):
    assert client.get("/v1/badge/nope1234.svg").status_code == 404
    assert client.get("/v1/badge/nope1234/embed").status_code == 404


# ---------- Verification runs ----------
def test_run_then_poll_status(client):
    r = client.post("/v1/verifications", json={"url": URL, "run_id": "run-abcdef12"})

    assert r.status_code == 200, r.text
    assert r.json()["runId"] == "run-abcdef12"
    assert r.json()["result"]["status"] == "not_found"

    status = client.get("/v1/verification-status/run-abcdef12").json()
    assert status["is_completed"] is True
    assert status["current_step"] == "HashComputed"

    again = client.post("/v1/verifications", json={"url": URL, "run_id": "run-abcdef12"})
    assert again.status_code == 409


def test_run_without_id_gets_one(client):
    r = client.post("/v1/verifications", json={"url": URL})

    run_id = r.json()["runId"]
    assert client.get(f"/v1/verification-status/{run_id}").status_code == 200


def test_unknown_status_is_404(client):
    assert client.get("/v1/verification-status/missing").status_code == 404


# ---------- Operator endpoints ----------
def test_operator_routes_unconfigured(client):
    assert client.get("/v1/proofs").status_code == 503


def test_operator_routes_require_valid_token(client, settings):
    settings.jwt_secret_key = "test-secret"
    settings.jwt_issuer = "proofmark-tests"
    create_url_proof(client)

    assert client.get("/v1/proofs").status_code == 401

    forged = jwt.encode({"sub": "op-1", "iss": "proofmark-tests"}, "wrong-secret", algorithm="HS256")
    assert client.get("/v1/proofs", headers={"Authorization": f"Bearer {forged}"}).status_code == 401

    token = jwt.encode({"sub": "op-1", "iss": "proofmark-tests"}, "test-secret", algorithm="HS256")
    auth = {"Authorization": f"Bearer {token}"}

    listing = client.get("/v1/proofs", headers=auth)
    assert listing.status_code == 200
    assert len(listing.json()) == 1
    assert set(listing.json()[0]) >= {"proofId", "trustmarkId", "originStatus"}

    stats = client.get("/v1/proofs/stats", headers=auth).json()
    assert stats == {"total_proofs": 1, "database": "sqlite", "requested_by": "op-1"}


def test_tool_timeout_is_gateway_timeout(client):
    orchestrator = MagicMock()
    orchestrator.get_status.side_effect = NotFound("unknown")
    orchestrator.verify_from_url = AsyncMock(side_effect=ToolTimeout("yt-dlp", 90))
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    r = client.post("/v1/verifications", json={"url": URL, "run_id": "run-timeout-1"})

    assert r.status_code == 504
    orchestrator.verify_from_url.assert_awaited_once_with(URL, run_id="run-timeout-1")


def test_receipt_validity_endpoint(client, db_session):
    created = create_url_proof(client).json()
    trustmark = created["trustmarkId"]

    assert client.get(f"/v1/verify-trustmark/{trustmark}/valid").json() == {
        "trustmarkId": trustmark,
        "valid": True,
    }

    receipt = proof_crud.get_receipt_for_proof(db_session, created["proofId"])
    payload = json.loads(receipt.json)
    payload["originStatus"] = "verified"
    receipt.json = json.dumps(payload)
    db_session.commit()

    assert client.get(f"/v1/verify-trustmark/{trustmark}/valid").json()["valid"] is False
    assert client.get("/v1/verify-trustmark/nope1234/valid").status_code == 404
