import gc
from contextlib import AsyncExitStack

import pytest

from drivesync.errors import ConfigurationMissing
from drivesync.objectstorage.s3client import S3ClientPool, S3Credentials, _PooledClient
from tests.tools import MemoryObjectStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


async def credentials(owner: str) -> S3Credentials | None:
    if owner == "nobody":
        return None
    return S3Credentials(endpoint="http://localhost:9000", access_key="key", secret_key="secret", bucket="drivesync")


class MemoryClientPool(S3ClientPool):
    """Hands out in-memory stores, and records which connections (numbered from 1) were closed"""

    def __init__(self, **kargs):
        super().__init__(credentials, **kargs)
        self.connected: list[S3Credentials] = []
        self.closed: list[int] = []

    async def _connect(self, credentials: S3Credentials) -> _PooledClient:
        self.connected.append(credentials)
        stack = AsyncExitStack()
        stack.push_async_callback(self._closed, len(self.connected))
        return _PooledClient(MemoryObjectStore(), stack, self._clock() + self.ttl)

    async def _closed(self, n: int):
        self.closed.append(n)


@pytest.mark.anyio
async def test_client_reuse():
    clock = FakeClock()
    pool = MemoryClientPool(ttl=300, clock=clock)
    first = await pool.get("u1")
    assert await pool.get("u1") is first
    other = await pool.get("u2")
    assert other is not first
    assert len(pool) == 2
    assert len(pool.connected) == 2

    clock.now = 299
    assert await pool.get("u1") is first
    clock.now = 300
    renewed = await pool.get("u1")
    assert renewed is not first
    assert len(pool.connected) == 3
    assert pool.closed == []

    # the expired client is closed once nobody uses it anymore
    del first
    gc.collect()
    assert await pool.get("u1") is renewed
    assert pool.closed == [1]

    await pool.close_owner("u2")
    assert pool.closed == [1, 2]
    await pool.close()
    assert len(pool) == 0
    assert pool.closed == [1, 2, 3]


@pytest.mark.anyio
async def test_expired_client_in_use():
    clock = FakeClock()
    pool = MemoryClientPool(ttl=300, clock=clock)
    in_use = await pool.get("u1")
    in_use.add("u1/a.txt", b"data")
    clock.now = 301
    renewed = await pool.get("u1")
    assert renewed is not in_use
    await pool.get("u2")
    assert pool.closed == []
    assert in_use.keys("u1/") == ["u1/a.txt"]

    # closing the pool also closes expired clients that are still held
    await pool.close()
    assert sorted(pool.closed) == [1, 2, 3]
    assert len(pool) == 0


@pytest.mark.anyio
async def test_missing_credentials():
    pool = MemoryClientPool()
    with pytest.raises(ConfigurationMissing):
        await pool.get("nobody")
    assert len(pool) == 0
