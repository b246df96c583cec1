"""API Endpoints to reconcile the metadata database with the object store."""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from drivesync.api.dependencies import get_services, owner_id, respond
from drivesync.models import OperationResult
from drivesync.services import DriveServices

app_sync = APIRouter(prefix="", tags=["sync"])

SyncAction = Literal[
    "sync", "import", "folders-to-store", "folders-from-store", "orphaned", "full", "check", "resume-renames"
]
AdminSyncAction = Literal["start-all", "stop-all", "sync-all-now", "status"]


class SyncBody(BaseModel):
    action: SyncAction = Field(default="full", description="Which sync operation to run")


class AdminSyncBody(BaseModel):
    action: AdminSyncAction = Field(description="What to do with the periodic syncs of all owners")


@app_sync.post("/sync", response_model=OperationResult)
async def sync(body: SyncBody, owner: str = Depends(owner_id), services: DriveServices = Depends(get_services)):
    """
    Run a sync operation for the current owner:

    - sync: remove records of files that are no longer in the store
    - import: create records for files and folders that are only in the store
    - folders-to-store / folders-from-store: reconcile folder markers in one direction
    - orphaned: list store objects without records (read only)
    - full: all of the above
    - check: sync and orphaned, without importing
    - resume-renames: finish folder renames that were interrupted
    """
    operation = services.sync_operations()[body.action]
    return respond(await operation(owner))


@app_sync.post("/admin/sync", response_model=OperationResult)
async def admin_sync(body: AdminSyncBody, services: DriveServices = Depends(get_services)):
    """Manage the periodic syncs of all owners. Access to this endpoint should be limited by the proxy."""
    scheduler = services.scheduler
    if body.action == "start-all":
        owners = await scheduler.start_all()
        result = OperationResult(success=True, message=f"Started periodic sync for {len(owners)} owners")
    elif body.action == "stop-all":
        await scheduler.stop_all()
        result = OperationResult(success=True, message="Stopped all periodic syncs")
    elif body.action == "sync-all-now":
        result = await scheduler.sync_all_now()
    else:
        status = scheduler.status()
        result = OperationResult(
            success=True,
            message=f"{sum(s.is_active for s in status)} periodic syncs active",
            stats=dict(owners=[s.model_dump(mode="json") for s in status]),
        )
    return respond(result)
