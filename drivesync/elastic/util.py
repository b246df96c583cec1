from typing import AsyncIterable

import elasticsearch.helpers
from elasticsearch import AsyncElasticsearch
from elasticsearch.helpers import BulkIndexError

from drivesync.errors import DatabaseError

ElasticMapping = dict[str, dict]


async def index_scan(
    elastic: AsyncElasticsearch,
    index: str,
    batchsize: int = 1000,
    query: dict | None = None,
    scroll: str = "5m",
) -> AsyncIterable[tuple[str, dict]]:
    """
    Scan an index in batches of the given size. Yields documents one by one (batching behind the scenes).
    """
    query_body = {}
    if query is not None:
        query_body["query"] = query
    async for hit in elasticsearch.helpers.async_scan(
        elastic,
        index=index,
        query=query_body,
        scroll=scroll,
        size=batchsize,
    ):
        yield hit["_id"], hit["_source"]


async def bulk_helper_with_errors(elastic: AsyncElasticsearch, actions: list[dict], **kwargs) -> None:
    """
    elastic bulk but raising the reason for the first error if any
    """
    if not actions:
        return
    try:
        await elasticsearch.helpers.async_bulk(elastic, actions, **kwargs)
    except BulkIndexError as e:
        reason = None
        if e.errors:
            _, error = list(e.errors[0].items())[0]
            reason = error.get("error", {}).get("reason", error)
        raise DatabaseError(f"Bulk update failed: {len(e.errors)} errors. First error: {reason}") from e
