import json
import logging
from datetime import datetime
from typing import Any, List, Optional, Union

from proofmark.schemas.provenance_schemas import (
    ManifestAssertion,
    ManifestCheckResult,
    ManifestSource,
)

logger = logging.getLogger(__name__)


# -----------------------------
# Field helpers
# -----------------------------

def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _first(value: Any) -> Optional[dict]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return None


def _nested(node: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Best-effort ISO-8601 parse; anything unparsable is dropped."""
    text = _text(value)
    if text is None:
        return None
    try:
        return datetime.fromisoformat(text.strip())
    except ValueError:
        return None


def _raw_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _assertions(items: Any, value_key: str) -> List[ManifestAssertion]:
    if not isinstance(items, list):
        return []

    out = []
    for item in items:
        if not isinstance(item, dict):
            continue
        label = _text(item.get("label"))
        if label is None:
            continue
        out.append(ManifestAssertion(label=label, value=_raw_value(item.get(value_key))))
    return out


# -----------------------------
# Shape adapters
# -----------------------------

def _from_local_tool(doc: dict, raw: str) -> ManifestCheckResult:
    """
    c2patool report:
      {"manifests": [{"claim_generator", "claimed_at",
                      "signature": {"issuer"}, "assertions": [{"label", "data"}]}]}
    Older builds nest generator/timestamp under claims[0] and the issuer
    under signing; both layouts are accepted.
    """
    manifests = doc.get("manifests")
    if manifests is not None and not isinstance(manifests, list):
        return ManifestCheckResult(
            manifest_found=False,
            status="invalid",
            raw_json=raw,
            notes="'manifests' is not an array",
        )

    if not manifests:
        return ManifestCheckResult(
            manifest_found=False,
            status="not_found",
            raw_json=raw,
            notes="No manifests found",
        )

    manifest = manifests[0] if isinstance(manifests[0], dict) else {}
    claim = _first(manifest.get("claims")) or {}

    generator = _text(manifest.get("claim_generator")) or _text(claim.get("generator"))
    timestamp = manifest.get("claimed_at") or claim.get("timestamp")
    issuer = (
        _text(_nested(manifest, "signature", "issuer"))
        or _text(_nested(manifest, "signature_info", "issuer"))
        or _text(_nested(manifest, "signing", "issuer"))
    )

    return ManifestCheckResult(
        manifest_found=True,
        status="verified",
        claim_generator=generator,
        claim_timestamp=parse_timestamp(timestamp),
        assertions=_assertions(manifest.get("assertions"), "data"),
        signing_issuer=issuer,
        raw_json=raw,
        notes="c2patool verification",
    )


def _from_hosted_service(doc: dict, raw: str) -> ManifestCheckResult:
    """
    Hosted verifier response:
      {"verified": bool, "signing": {"issuer"},
       "claims": [{"label", "value", "generator", "timestamp"}]}
    """
    claims = doc.get("claims")
    if claims is not None and not isinstance(claims, list):
        return ManifestCheckResult(
            manifest_found=False,
            status="invalid",
            raw_json=raw,
            notes="'claims' is not an array",
        )

    if not claims or doc.get("verified") is False:
        return ManifestCheckResult(
            manifest_found=False,
            status="not_found",
            raw_json=raw,
            notes="Hosted verifier - no manifest found",
        )

    claim = _first(claims) or {}

    return ManifestCheckResult(
        manifest_found=True,
        status="verified",
        claim_generator=_text(claim.get("generator")),
        claim_timestamp=parse_timestamp(claim.get("timestamp")),
        assertions=_assertions(claims, "value"),
        signing_issuer=_text(_nested(doc, "signing", "issuer")),
        raw_json=raw,
        notes="Hosted verifier - manifest verified",
    )


_ADAPTERS = {
    ManifestSource.local_tool: _from_local_tool,
    ManifestSource.hosted_service: _from_hosted_service,
}


# -----------------------------
# Entry point
# -----------------------------

def parse(raw_json: Union[bytes, str, None], source: ManifestSource) -> ManifestCheckResult:
    """Normalize a tool or service report. Never raises."""
    if isinstance(raw_json, bytes):
        raw = raw_json.decode("utf-8", errors="replace")
    else:
        raw = raw_json or ""

    try:
        doc = json.loads(raw)
    except ValueError as e:
        logger.warning("Failed to parse %s manifest JSON: %s", source.value, e)
        return ManifestCheckResult(
            manifest_found=False,
            status="error",
            raw_json=raw,
            notes=f"Parse error: {e}",
        )

    if not isinstance(doc, dict):
        return ManifestCheckResult(
            manifest_found=False,
            status="invalid",
            raw_json=raw,
            notes="Expected a JSON object",
        )

    try:
        return _ADAPTERS[source](doc, raw)
    except Exception as e:
        logger.exception("Unexpected %s manifest shape", source.value)
        return ManifestCheckResult(
            manifest_found=False,
            status="error",
            raw_json=raw,
            notes=f"Parse error: {e}",
        )


def parse_any(raw_json: Optional[str]) -> ManifestCheckResult:
    """Parse a stored report whose source is unknown (tool shape first)."""
    local = parse(raw_json, ManifestSource.local_tool)
    if local.manifest_found:
        return local

    hosted = parse(raw_json, ManifestSource.hosted_service)
    if hosted.manifest_found:
        return hosted
    return local
