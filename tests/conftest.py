import pytest
from httpx import ASGITransport, AsyncClient

from drivesync import api
from drivesync.api.dependencies import get_services
from drivesync.config import Settings
from drivesync.services import DriveServices
from tests.tools import MemoryMetadataStore, MemoryObjectStore, MemoryStorePool

OWNER = "u1"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture()
def metadata() -> MemoryMetadataStore:
    return MemoryMetadataStore()


@pytest.fixture()
def stores(store) -> MemoryStorePool:
    return MemoryStorePool({OWNER: store})


@pytest.fixture()
def settings() -> Settings:
    return Settings(delete_verify_attempts=3, delete_verify_delay=0, sync_concurrency=4, sync_interval=3600)


@pytest.fixture()
def services(stores, metadata, settings) -> DriveServices:
    return DriveServices(stores, metadata, settings)


@pytest.fixture()
async def client(services):
    api.app.dependency_overrides[get_services] = lambda: services
    try:
        async with AsyncClient(transport=ASGITransport(app=api.app), base_url="http://test") as client:
            yield client
    finally:
        api.app.dependency_overrides.clear()
