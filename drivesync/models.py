from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, Field

OwnerId = Annotated[str, Field(pattern=r"^[A-Za-z0-9_.-]+$", title="Owner ID")]


def utcnow() -> datetime:
    return datetime.now(UTC)


######################## METADATA RECORDS #########################


class FileRecord(BaseModel):
    id: str
    owner_id: OwnerId
    name: str
    original_name: str
    size: int = 0
    mime_type: str = "application/octet-stream"
    storage_key: str
    parent_folder_id: str | None = None
    path: str
    tags: list[str] = Field(default_factory=list)
    download_count: int = 0
    last_accessed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)


class FolderRecord(BaseModel):
    """
    A folder in the metadata database. The counters only cover direct children,
    so a file in /a/b counts for /a/b but not for /a.
    Every owner has one root record (path "/", empty name) holding the counters
    of root-level items; it never has a marker object in the store.
    """

    id: str
    owner_id: OwnerId
    name: str
    parent_folder_id: str | None = None
    path: str
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: str | None = Field(default=None, max_length=500)
    file_count: int = 0
    folder_count: int = 0
    total_size: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_root(self) -> bool:
        return self.path == "/"


class RenameIntent(BaseModel):
    """Written before a folder rename starts copying, removed when it has finished"""

    id: str
    owner_id: OwnerId
    old_path: str
    new_path: str
    created_at: datetime = Field(default_factory=utcnow)


######################## OPERATION RESULTS #########################


class Breadcrumb(BaseModel):
    name: str
    path: str


class FileItem(BaseModel):
    key: str
    name: str
    path: str
    is_folder: bool
    size: int = 0
    last_modified: datetime | None = None
    mime_type: str | None = None
    metadata: dict[str, str] | None = None


class OperationResult(BaseModel):
    success: bool
    message: str
    error: str | None = Field(default=None, description="Error code if the operation failed")
    stats: dict[str, Any] | None = None


class FolderResult(OperationResult):
    folder: FileItem | None = None


class DeleteFolderResult(OperationResult):
    deleted_count: int = 0
    errors: list[str] = Field(default_factory=list)


class ListResult(OperationResult):
    files: list[FileItem] = Field(default_factory=list)
    folders: list[FileItem] = Field(default_factory=list)
    current_path: str = "/"
    breadcrumbs: list[Breadcrumb] = Field(default_factory=list)
    total_size: int = 0
    total_files: int = 0
    total_folders: int = 0
    has_more: bool = False
    next_token: str | None = None


class SearchResult(OperationResult):
    files: list[FileItem] = Field(default_factory=list)
    total_results: int = 0
    query: str = ""


class SyncResult(OperationResult):
    """Result of a sync phase or of a full pass. stats holds the per-phase counts."""

    orphaned_keys: list[str] | None = None


######################## SYNC STATISTICS #########################


class PhaseStats(BaseModel):
    errors: int = 0
    error_details: list[str] = Field(default_factory=list)

    def fail(self, detail: str) -> None:
        self.errors += 1
        self.error_details.append(detail)


class VerifyStats(PhaseStats):
    verified_files: int = 0
    removed_files: int = 0


class ImportStats(PhaseStats):
    imported_files: int = 0
    created_folders: int = 0
    skipped: int = 0


class MarkerStats(PhaseStats):
    checked_folders: int = 0
    created_markers: int = 0


class OrphanStats(PhaseStats):
    orphaned_files: int = 0


class StorageStats(BaseModel):
    total_files: int = 0
    total_folders: int = 0
    total_size: int = 0
    categories: dict[str, int] = Field(default_factory=dict)


class SyncStatus(BaseModel):
    owner_id: OwnerId
    is_active: bool = Field(description="Periodic sync is scheduled for this owner")
    running: bool = Field(default=False, description="A sync pass is running right now")
    interval: float | None = None
    last_run: datetime | None = None
    last_success: bool | None = None
    last_message: str | None = None
