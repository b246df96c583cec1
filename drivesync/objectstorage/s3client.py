"""
Per-owner S3 clients.

Credentials are resolved per owner by a provider function (by default from the settings,
where every owner shares one bucket under their own key prefix). Clients are reused for
the same owner until their time-to-live runs out, and an expired client is closed once no
caller holds its store anymore. The pool is owned by the application
root and closed on shutdown.
"""

import asyncio
import logging
import time
import weakref
from contextlib import AsyncExitStack
from typing import Awaitable, Callable

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from pydantic import BaseModel

from drivesync.config import get_settings, s3_enabled
from drivesync.errors import ConfigurationMissing
from drivesync.objectstorage.s3bucket import S3ObjectStore, create_or_get_bucket
from drivesync.objectstorage.store import ObjectStore


class S3Credentials(BaseModel):
    endpoint: str | None
    access_key: str
    secret_key: str
    region: str = "us-east-1"
    bucket: str


CredentialsProvider = Callable[[str], Awaitable[S3Credentials | None]]


async def settings_credentials(owner: str) -> S3Credentials | None:
    if not s3_enabled():
        return None
    settings = get_settings()
    return S3Credentials(
        endpoint=settings.s3_host,
        access_key=settings.s3_access_key or "",
        secret_key=settings.s3_secret_key or "",
        region=settings.s3_region,
        bucket=settings.s3_bucket,
    )


class _PooledClient:
    def __init__(self, store: ObjectStore, context_stack: AsyncExitStack, expires: float):
        self.store = store
        self.context_stack = context_stack
        self.expires = expires


class S3ClientPool:
    def __init__(
        self,
        credentials: CredentialsProvider = settings_credentials,
        ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credentials = credentials
        self.ttl = ttl
        self._clock = clock
        self._clients: dict[str, _PooledClient] = {}
        self._retired: list[tuple[weakref.ref, AsyncExitStack]] = []
        self._lock = asyncio.Lock()

    async def get(self, owner: str) -> ObjectStore:
        """Get the object store of an owner, raises ConfigurationMissing if the owner has no credentials"""
        async with self._lock:
            await self._close_idle()
            pooled = self._clients.get(owner)
            if pooled is not None and self._clock() < pooled.expires:
                return pooled.store
            if pooled is not None:
                self._retire(owner)

            credentials = await self.credentials(owner)
            if credentials is None:
                raise ConfigurationMissing("S3 configuration not found. Please configure your storage settings.")

            pooled = await self._connect(credentials)
            self._clients[owner] = pooled
            logging.debug(f"Created S3 client for {owner} (bucket {credentials.bucket}, endpoint {credentials.endpoint})")
            return pooled.store

    async def _connect(self, credentials: S3Credentials) -> _PooledClient:
        session = get_session()
        client = session.create_client(
            service_name="s3",
            endpoint_url=credentials.endpoint,
            region_name=credentials.region,
            aws_access_key_id=credentials.access_key,
            aws_secret_access_key=credentials.secret_key,
            config=AioConfig(signature_version="s3v4"),
        )

        # client is an async context manager, so we use an AsyncExitStack to manage its lifetime
        context_stack = AsyncExitStack()
        s3 = await context_stack.enter_async_context(client)
        try:
            await create_or_get_bucket(s3, credentials.bucket)
        except Exception:
            await context_stack.aclose()
            raise
        return _PooledClient(S3ObjectStore(s3, credentials.bucket), context_stack, self._clock() + self.ttl)

    def _retire(self, owner: str) -> None:
        """
        Stop handing out the client of owner. Callers may still hold its store (e.g. a long sync),
        so it is only closed by _close_idle once nothing references the store anymore.
        """
        pooled = self._clients.pop(owner, None)
        if pooled is not None:
            self._retired.append((weakref.ref(pooled.store), pooled.context_stack))

    async def _close_idle(self) -> None:
        idle, held = [], []
        for ref, stack in self._retired:
            if ref() is None:
                idle.append(stack)
            else:
                held.append((ref, stack))
        self._retired = held
        for stack in idle:
            await stack.aclose()

    async def _close(self, owner: str) -> None:
        pooled = self._clients.pop(owner, None)
        if pooled is not None:
            await pooled.context_stack.aclose()

    async def close_owner(self, owner: str) -> None:
        async with self._lock:
            await self._close(owner)

    async def close(self) -> None:
        async with self._lock:
            for owner in list(self._clients):
                await self._close(owner)
            retired, self._retired = self._retired, []
            for _, stack in retired:
                await stack.aclose()

    def __len__(self) -> int:
        return len(self._clients)
