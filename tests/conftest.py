import os
import tempfile

# must be set before proofmark is imported anywhere
os.environ.setdefault("PROOFMARK_DATABASE_URL", "sqlite://")
os.environ.setdefault(
    "PROOFMARK_SIGNING_KEY_PATH",
    os.path.join(tempfile.mkdtemp(prefix="proofmark_keys_"), "signing.key"),
)

import asyncio

import pytest

from proofmark.database.database import Base, SessionLocal, engine
from proofmark.models import models  # noqa: F401
from proofmark.schemas.provenance_schemas import ManifestCheckResult
from proofmark.services.provenance.errors import TooLarge
from proofmark.services.provenance.hosted_verifier import UNAVAILABLE, HostedOutcome
from proofmark.services.provenance.manifest_tool import ToolOutcome
from proofmark.services.provenance.orchestrator import VerificationOrchestrator
from proofmark.services.provenance.status_tracker import StatusTracker


LOCAL_MANIFEST = """{
  "manifests": [{
    "claim_generator": "Adobe Photoshop 25.0",
    "claimed_at": "2024-03-01T12:00:00+00:00",
    "signature": {"issuer": "Adobe Inc."},
    "assertions": [{"label": "c2pa.actions", "data": {"actions": [{"action": "c2pa.created"}]}}]
  }]
}"""

EMPTY_MANIFESTS = '{"manifests": []}'

HOSTED_MANIFEST = """{
  "verified": true,
  "signing": {"issuer": "TikTok Inc."},
  "claims": [{"label": "c2pa.claim", "value": {"v": 1},
              "generator": "TikTok-C2PA-Client", "timestamp": "2024-02-01T08:30:00Z"}]
}"""


# ---------- Test doubles ----------
class FakeHosted:
    def __init__(self, log, outcome=UNAVAILABLE):
        self.log = log
        self.outcome = outcome
        self.calls = 0

    async def try_verify(self, url):
        self.calls += 1
        self.log.append("hosted")
        return self.outcome


class FakeDownloader:
    def __init__(self, log, directory, content=b"fake media bytes", error=None):
        self.log = log
        self.directory = directory
        self.content = content
        self.error = error
        self.calls = 0
        self.paths = []

    async def download(self, url):
        self.calls += 1
        self.log.append("download")

        path = os.path.join(str(self.directory), f"dl_{self.calls}.mp4")
        with open(path, "wb") as fh:
            fh.write(self.content)
        self.paths.append(path)

        if isinstance(self.error, TooLarge):
            raise TooLarge(len(self.content), 1, path=path)
        if self.error is not None:
            os.remove(path)
            raise self.error
        return path


class FakeManifestTool:
    def __init__(self, log, outcome=None, block=False):
        self.log = log
        self.outcome = outcome or ToolOutcome("ok", raw_json=EMPTY_MANIFESTS)
        self.block = block
        self.calls = 0
        self.seen_paths = []

    async def inspect(self, media_path):
        self.calls += 1
        self.log.append("manifest_tool")
        self.seen_paths.append(media_path)
        if self.block:
            await asyncio.Event().wait()
        return self.outcome


class FakeProbe:
    async def extract(self, file_path):
        return None


def recording_hasher(log, value="ab" * 32, error=None):
    async def _hash(path):
        log.append("hash")
        assert os.path.exists(path)
        if error is not None:
            raise error
        return value
    return _hash


# ---------- Fixtures ----------
@pytest.fixture
def call_log():
    return []


@pytest.fixture
def tracker():
    return StatusTracker(ttl=60)


@pytest.fixture
def pipeline(call_log, tracker, tmp_path):
    """Orchestrator wired to fakes; tweak the parts before calling."""

    class Pipeline:
        def __init__(self):
            self.hosted = FakeHosted(call_log)
            self.downloader = FakeDownloader(call_log, tmp_path)
            self.manifest_tool = FakeManifestTool(call_log)
            self.hasher = recording_hasher(call_log)
            self.mock_mode = False

        def build(self):
            return VerificationOrchestrator(
                self.hosted,
                self.downloader,
                self.manifest_tool,
                tracker,
                hasher=self.hasher,
                mock_mode=self.mock_mode,
                mock_step_delay=0,
            )

    return Pipeline()


@pytest.fixture
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def hosted_found():
    return HostedOutcome(
        ok=True,
        result=ManifestCheckResult(
            manifest_found=True,
            status="verified",
            claim_generator="TikTok-C2PA-Client",
            signing_issuer="TikTok Inc.",
            raw_json=HOSTED_MANIFEST,
        ),
    )
