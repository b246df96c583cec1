"""drivesync API: folders, listings and reconciliation of S3-backed file trees."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from drivesync.api.dependencies import ERROR_STATUS
from drivesync.api.files import app_files
from drivesync.api.folders import app_folders
from drivesync.api.sync import app_sync
from drivesync.config import get_settings
from drivesync.connections import drivesync_connections
from drivesync.errors import DriveError


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Connecting to the metadata database and object storage...")
    async with drivesync_connections() as services:
        app.state.services = services
        if get_settings().periodic_sync:
            await services.scheduler.start_all()
        yield
        app.state.services = None


app = FastAPI(
    title="drivesync",
    description=__doc__ if __doc__ else "",
    openapi_tags=[
        dict(name="folders", description="Endpoints to create, delete and rename folders"),
        dict(name="files", description="Endpoints to list and search files, and get storage statistics"),
        dict(name="sync", description="Endpoints to reconcile the metadata database with the object store"),
    ],
    lifespan=lifespan,
)
app.include_router(app_folders)
app.include_router(app_files)
app.include_router(app_sync)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.exception_handler(DriveError)
async def drive_error_exception_handler(request: Request, exc: DriveError):
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.error, 500),
        content={"success": False, "message": str(exc), "error": exc.error},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=422, content={"message": "There was an issue with the data you sent.", "fields_invalid": exc.errors()}
    )
