"""
已处理回调登记簿：内存版（默认）与 Redis 版（配置 REDIS__URL 时启用）。
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Dict

from domain.payment.repository import CallbackLedger


class InMemoryCallbackLedger(CallbackLedger):
    """单进程登记簿，按 TTL 惰性淘汰"""

    def __init__(self, ttl_seconds: int = 86400) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _purge(self, now: float) -> None:
        expired = [k for k, exp in self._entries.items() if exp <= now]
        for k in expired:
            del self._entries[k]

    async def seen(self, key: str) -> bool:  # type: ignore[override]
        async with self._lock:
            now = time.monotonic()
            self._purge(now)
            return key in self._entries

    async def mark(self, key: str) -> None:  # type: ignore[override]
        async with self._lock:
            self._entries[key] = time.monotonic() + self.ttl_seconds


class RedisCallbackLedger(CallbackLedger):
    """基于 redis.asyncio 的登记簿，多进程部署共享"""

    def __init__(self, client: Any, *, ttl_seconds: int = 86400, namespace: str = "phonepe-bridge") -> None:
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:callback:{key}"

    async def seen(self, key: str) -> bool:  # type: ignore[override]
        return bool(await self._client.exists(self._key(key)))

    async def mark(self, key: str) -> None:  # type: ignore[override]
        await self._client.set(self._key(key), 1, ex=self.ttl_seconds)

    async def aclose(self) -> None:
        close = getattr(self._client, "aclose", None)
        if callable(close):
            await close()
