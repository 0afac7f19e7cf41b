"""
Transaction identifier generator.

Ids look like ``TXN1718000000000K3J9QX0PZ``: a strictly increasing
millisecond clock followed by a random base36 suffix. Collisions are
unlikely but possible; the store is the final arbiter.
"""
from __future__ import annotations

import secrets
import string
import threading
import time


_ALPHABET = string.digits + string.ascii_uppercase


class TransactionIdGenerator:
    def __init__(self, prefix: str = "TXN", suffix_length: int = 9) -> None:
        self.prefix = prefix
        self.suffix_length = suffix_length
        self._last_ms = 0
        self._lock = threading.Lock()

    def _tick(self) -> int:
        now = time.time_ns() // 1_000_000
        with self._lock:
            if now <= self._last_ms:
                now = self._last_ms + 1
            self._last_ms = now
            return now

    def next_id(self) -> str:
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(self.suffix_length))
        return f"{self.prefix}{self._tick()}{suffix}"
