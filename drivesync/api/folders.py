"""API Endpoints to create, delete and rename folders."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path
from pydantic import BaseModel, Field

from drivesync.api.dependencies import get_services, owner_id, respond
from drivesync.models import DeleteFolderResult, FolderResult
from drivesync.services import DriveServices

app_folders = APIRouter(prefix="/folders", tags=["folders"])


class CreateFolderBody(BaseModel):
    name: str = Field(description="Name of the new folder. Slashes are replaced by underscores")
    parent_path: str = Field(default="/", description="Path of the folder to create the new folder in")


class RenameFolderBody(BaseModel):
    name: str = Field(description="New name of the folder (the folder stays in the same parent)")


@app_folders.post("", response_model=FolderResult, status_code=201)
async def create_folder(
    body: CreateFolderBody,
    owner: str = Depends(owner_id),
    services: DriveServices = Depends(get_services),
):
    """Create a folder by writing its marker object."""
    result = await services.folders.create_folder(owner, body.name, body.parent_path)
    return respond(result, status_code=201)


@app_folders.delete("/{path:path}", response_model=DeleteFolderResult)
async def delete_folder(
    path: Annotated[str, Path(description="Path of the folder to delete")],
    owner: str = Depends(owner_id),
    services: DriveServices = Depends(get_services),
):
    """Delete a folder and everything in it."""
    return respond(await services.folders.delete_folder(owner, path))


@app_folders.patch("/{path:path}", response_model=FolderResult)
async def rename_folder(
    path: Annotated[str, Path(description="Path of the folder to rename")],
    body: Annotated[RenameFolderBody, Body()],
    owner: str = Depends(owner_id),
    services: DriveServices = Depends(get_services),
):
    """
    Rename a folder. All objects in it are copied to the new location and then deleted,
    which can take a while for large folders.
    """
    return respond(await services.folders.rename_folder(owner, path, body.name))
