"""Dependencies and response helpers shared by the API routers."""

from typing import Annotated

from fastapi import Header, Request
from fastapi.responses import JSONResponse

from drivesync.errors import (
    AccessDenied,
    AlreadyExists,
    ConfigurationMissing,
    FolderNotFound,
    NameInvalid,
    NotFound,
)
from drivesync.models import OperationResult
from drivesync.services import DriveServices

ERROR_STATUS = {
    NameInvalid.error: 400,
    AccessDenied.error: 403,
    NotFound.error: 404,
    FolderNotFound.error: 404,
    AlreadyExists.error: 409,
    ConfigurationMissing.error: 412,
}


def get_services(request: Request) -> DriveServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise ConfigurationMissing("drivesync is not connected to its object store and metadata database")
    return services


def owner_id(
    x_owner_id: Annotated[
        str,
        Header(
            pattern=r"^[A-Za-z0-9_.-]+$",
            description="The owner whose files are accessed, set by the authenticating proxy",
        ),
    ],
) -> str:
    return x_owner_id


def respond(result: OperationResult, status_code: int = 200):
    """Return a successful result as is, and render a failed one with the status code matching its error"""
    if result.success:
        return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))
    return JSONResponse(status_code=ERROR_STATUS.get(result.error or "", 500), content=result.model_dump(mode="json"))
