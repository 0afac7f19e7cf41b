import pytest

from infrastructure.repositories.callback_ledger import InMemoryCallbackLedger, RedisCallbackLedger


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}
        self.closed = False

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_inmemory_marks_and_sees():
    ledger = InMemoryCallbackLedger(ttl_seconds=60)
    assert await ledger.seen("k1") is False
    await ledger.mark("k1")
    assert await ledger.seen("k1") is True
    assert await ledger.seen("k2") is False


@pytest.mark.asyncio
async def test_inmemory_entries_expire():
    ledger = InMemoryCallbackLedger(ttl_seconds=0)
    await ledger.mark("k1")
    assert await ledger.seen("k1") is False


@pytest.mark.asyncio
async def test_redis_ledger_namespaces_keys_and_sets_ttl():
    client = FakeRedis()
    ledger = RedisCallbackLedger(client, ttl_seconds=120, namespace="bridge-test")

    assert await ledger.seen("abc") is False
    await ledger.mark("abc")

    assert await ledger.seen("abc") is True
    assert client.store == {"bridge-test:callback:abc": 1}
    assert client.expiry["bridge-test:callback:abc"] == 120


@pytest.mark.asyncio
async def test_redis_ledger_closes_client():
    client = FakeRedis()
    await RedisCallbackLedger(client).aclose()
    assert client.closed is True
