"""API Endpoints to browse and search the files of an owner."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from drivesync.api.dependencies import get_services, owner_id, respond
from drivesync.models import ListResult, OperationResult, SearchResult
from drivesync.services import DriveServices

app_files = APIRouter(prefix="", tags=["files"])


@app_files.get("/files", response_model=ListResult)
async def list_files(
    path: Annotated[str, Query(description="Folder to list")] = "/",
    max_keys: Annotated[int, Query(ge=1, le=1000, description="Maximum number of items to return")] = 1000,
    continuation_token: Annotated[str | None, Query(description="Token to continue a previous listing")] = None,
    use_cache: Annotated[bool, Query(description="Allow a cached listing")] = True,
    include_metadata: Annotated[bool, Query(description="Read the original name and type of every file")] = False,
    owner: str = Depends(owner_id),
    services: DriveServices = Depends(get_services),
):
    """List the files and folders directly in a folder."""
    result = await services.listing.list_files(
        owner,
        path,
        max_keys=max_keys,
        continuation_token=continuation_token,
        use_cache=use_cache,
        include_metadata=include_metadata,
    )
    return respond(result)


@app_files.get("/search", response_model=SearchResult)
async def search_files(
    q: Annotated[str, Query(min_length=1, description="Text to search for in file names")],
    max_results: Annotated[int, Query(ge=1, le=1000)] = 100,
    mime_type: Annotated[str | None, Query(description="Only return files whose type contains this")] = None,
    owner: str = Depends(owner_id),
    services: DriveServices = Depends(get_services),
):
    result = await services.listing.search_files(owner, q, max_results=max_results, mime_type_filter=mime_type)
    return respond(result)


@app_files.get("/stats", response_model=OperationResult)
async def storage_stats(owner: str = Depends(owner_id), services: DriveServices = Depends(get_services)):
    """Number of files and folders, total size, and number of files per type."""
    return respond(await services.listing.storage_stats(owner))
