import base64
import binascii
import json
import logging
import os
import threading
from datetime import date, datetime
from typing import Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from .errors import SignatureError

logger = logging.getLogger(__name__)


# --------------------------------
# Canonical serialization
# --------------------------------

def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def canonical_json(payload: dict) -> str:
    """Sorted keys, no whitespace. Same logical payload -> same text."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def canonical_bytes(payload: dict) -> bytes:
    return canonical_json(payload).encode("utf-8")


# --------------------------------
# Signer
# --------------------------------

class ReceiptSigner:
    """
    Ed25519 receipt signing.

    The private key lives as 32 raw bytes at `key_path`; it is created on
    first use when missing and reused from then on.
    """

    def __init__(self, key_path: str):
        self.key_path = key_path
        self._key: Optional[ed25519.Ed25519PrivateKey] = None
        self._lock = threading.Lock()

    def _load_or_generate(self) -> ed25519.Ed25519PrivateKey:
        if os.path.exists(self.key_path):
            logger.info("Loading signing key from %s", self.key_path)
            with open(self.key_path, "rb") as fh:
                raw = fh.read()
            try:
                return ed25519.Ed25519PrivateKey.from_private_bytes(raw)
            except ValueError as e:
                raise SignatureError(f"Corrupt signing key at {self.key_path}") from e

        logger.info("Generating new Ed25519 signing key")
        key = ed25519.Ed25519PrivateKey.generate()
        raw = key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

        directory = os.path.dirname(os.path.abspath(self.key_path))
        os.makedirs(directory, exist_ok=True)
        fd = os.open(self.key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as fh:
            fh.write(raw)

        logger.warning("New signing key saved to %s. Keep this file secure!", self.key_path)
        return key

    @property
    def key(self) -> ed25519.Ed25519PrivateKey:
        with self._lock:
            if self._key is None:
                self._key = self._load_or_generate()
            return self._key

    def public_key_b64(self) -> str:
        raw = self.key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return base64.b64encode(raw).decode()

    def sign(self, payload: dict) -> Tuple[str, str]:
        """Return (signature, public_key), both base64."""
        try:
            message = canonical_bytes(payload)
            signature = self.key.sign(message)
        except (TypeError, ValueError) as e:
            raise SignatureError(f"Could not sign receipt: {e}") from e

        return base64.b64encode(signature).decode(), self.public_key_b64()

    @staticmethod
    def verify(payload: dict, signature: str, public_key: str) -> bool:
        try:
            key = ed25519.Ed25519PublicKey.from_public_bytes(
                base64.b64decode(public_key, validate=True)
            )
            key.verify(base64.b64decode(signature, validate=True), canonical_bytes(payload))
        except (InvalidSignature, ValueError, TypeError, binascii.Error):
            return False
        return True
