"""
Sets up the connection to the Elastic server that holds the metadata database.
The connection is created once by the application root (see drivesync.connections)
and handed to the ElasticMetadataStore.
"""

import logging

from elasticsearch import AsyncElasticsearch

from drivesync.config import get_settings


async def setup_elastic() -> AsyncElasticsearch:
    """
    Check whether we can connect with elastic
    """
    settings = get_settings()
    logging.debug(
        f"Connecting with elasticsearch at {settings.elastic_host}, password? {'yes' if settings.elastic_password else 'no'} "
    )
    elastic = connect_elastic()
    if not await elastic.ping():
        await elastic.close()
        raise ConnectionError(f"Cannot connect to elasticsearch server {settings.elastic_host}")
    return elastic


def connect_elastic() -> AsyncElasticsearch:
    """
    Connect to the elastic server using the system settings
    """
    settings = get_settings()
    if not settings.elastic_host:
        raise ValueError("elastic_host not specified")
    if settings.elastic_password:
        return AsyncElasticsearch(
            settings.elastic_host,
            basic_auth=("elastic", settings.elastic_password),
            verify_certs=bool(settings.elastic_verify_ssl),
        )
    else:
        return AsyncElasticsearch(settings.elastic_host)
