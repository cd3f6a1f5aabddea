import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from proofmark.schemas.provenance_schemas import ManifestCheckResult, ManifestSource
from . import manifest_parser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostedOutcome:
    """ok=False means the fast path is unavailable, never a verdict."""

    ok: bool
    result: Optional[ManifestCheckResult] = None


UNAVAILABLE = HostedOutcome(ok=False)


class HostedVerifierClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 20.0,
        max_retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.transport = transport

    async def try_verify(self, url: str) -> HostedOutcome:
        endpoint = f"{self.base_url}/verify"
        attempts = 1 + self.max_retries

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout), transport=self.transport
        ) as client:
            for attempt in range(1, attempts + 1):
                try:
                    r = await client.post(endpoint, json={"url": url})
                except httpx.TimeoutException:
                    logger.warning("Hosted verification timed out for %s (attempt %s)", url, attempt)
                    continue
                except httpx.HTTPError as e:
                    logger.warning("Hosted verifier network error for %s: %s", url, e)
                    continue

                if r.status_code >= 500:
                    logger.warning("Hosted verifier returned %s for %s", r.status_code, url)
                    continue

                if not r.is_success:
                    logger.warning("Hosted verifier returned %s for %s", r.status_code, url)
                    return UNAVAILABLE

                result = manifest_parser.parse(r.content, ManifestSource.hosted_service)
                if result.status in ("error", "invalid"):
                    logger.warning("Hosted verifier returned unusable JSON for %s", url)
                    return UNAVAILABLE

                logger.info(
                    "Hosted verifier answered for %s: manifest_found=%s",
                    url, result.manifest_found,
                )
                return HostedOutcome(ok=True, result=result)

        return UNAVAILABLE
