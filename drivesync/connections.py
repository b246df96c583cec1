import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from drivesync.config import get_settings
from drivesync.elastic.connection import setup_elastic
from drivesync.metadata.elastic import ElasticMetadataStore
from drivesync.objectstorage.s3client import S3ClientPool
from drivesync.services import DriveServices


@asynccontextmanager
async def drivesync_connections() -> AsyncGenerator[DriveServices, None]:
    """
    The main context manager to start and stop the connections used by drivesync.
    Use it once per process:
        - For running the server: in the FastAPI lifespan
        - For CLI commands: within the CLI command
    Tests build DriveServices around in-memory stores instead.
    """
    settings = get_settings()
    elastic = await setup_elastic()
    pool = S3ClientPool(ttl=settings.client_ttl)
    services: DriveServices | None = None
    try:
        metadata = ElasticMetadataStore(elastic, settings.system_index)
        await metadata.create_indices()
        services = DriveServices(pool, metadata, settings)
        yield services
    finally:
        if services is not None:
            await services.scheduler.stop_all()
        logging.debug("Closing S3 clients and elasticsearch connection")
        await pool.close()
        await elastic.close()
