"""
PhonePe X-VERIFY checksum: sha256(payload + endpoint + salt_key) + "###" + salt_index.

Payloads travel base64-encoded; the checksum is always computed over the
encoded string, never over the decoded JSON.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any, Optional


CHECKSUM_SEPARATOR = "###"


def encode_payload(document: dict[str, Any]) -> str:
    """Serialize to compact JSON and base64-encode it."""
    raw = json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_payload(encoded: str) -> dict[str, Any]:
    """Reverse of `encode_payload`. Raises ValueError on malformed input."""
    try:
        raw = base64.b64decode(encoded, validate=True)
        document = json.loads(raw.decode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise ValueError(f"malformed payload: {exc}") from exc
    if not isinstance(document, dict):
        raise ValueError("payload is not a JSON object")
    return document


class ChecksumSigner:
    def __init__(self, salt_key: str, salt_index: int | str) -> None:
        if not salt_key:
            raise ValueError("salt_key is required")
        self._salt_key = salt_key
        self.salt_index = str(salt_index)

    def sign(self, payload: str, endpoint: str) -> str:
        digest = hashlib.sha256(f"{payload}{endpoint}{self._salt_key}".encode("utf-8")).hexdigest()
        return f"{digest}{CHECKSUM_SEPARATOR}{self.salt_index}"

    def verify(self, payload: str, endpoint: str, received: Optional[str]) -> bool:
        if not received:
            return False
        expected = self.sign(payload, endpoint)
        # constant time over the whole tag, salt index included
        return hmac.compare_digest(expected.encode("utf-8"), received.strip().encode("utf-8"))
