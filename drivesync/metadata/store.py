"""
The interface of the metadata database holding file, folder and rename records.

Record ids are derived from what makes a record unique (the storage key of a file, the
owner and path of a folder), so creating a record twice, e.g. from two concurrent sync
passes, finds the existing record instead of making a duplicate.
"""

import uuid
from abc import ABC, abstractmethod
from typing import AsyncIterable

from drivesync.models import FileRecord, FolderRecord, RenameIntent
from drivesync.paths import folder_prefix, normalize_path, parent_path, path_name


def file_record_id(storage_key: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"file:{storage_key}"))


def folder_record_id(owner: str, path: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"folder:{owner}:{normalize_path(path)}"))


def rename_intent_id(owner: str, old_path: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"rename:{owner}:{normalize_path(old_path)}"))


def parent_folder_id(owner: str, path: str) -> str | None:
    """Id of the folder containing path, None for items at the root"""
    parent = parent_path(path)
    return None if parent == "/" else folder_record_id(owner, parent)


def _move(path: str, old_path: str, new_path: str) -> str:
    return normalize_path(new_path + path[len(old_path) :])


def moved_file(record: FileRecord, old_path: str, new_path: str) -> FileRecord:
    """The file record as it is after its folder moved from old_path to new_path"""
    old_prefix = folder_prefix(record.owner_id, old_path)
    new_prefix = folder_prefix(record.owner_id, new_path)
    key = record.storage_key
    if key.startswith(old_prefix):
        key = new_prefix + key[len(old_prefix) :]
    path = _move(record.path, old_path, new_path)
    return record.model_copy(
        update=dict(
            id=file_record_id(key),
            storage_key=key,
            path=path,
            parent_folder_id=parent_folder_id(record.owner_id, path),
        )
    )


def moved_folder(record: FolderRecord, old_path: str, new_path: str) -> FolderRecord:
    path = _move(record.path, old_path, new_path)
    return record.model_copy(
        update=dict(
            id=folder_record_id(record.owner_id, path),
            path=path,
            name=path_name(path),
            parent_folder_id=parent_folder_id(record.owner_id, path),
        )
    )


class MetadataStore(ABC):
    # FILES

    @abstractmethod
    def list_files(self, owner: str) -> AsyncIterable[FileRecord]: ...

    @abstractmethod
    async def create_file(self, record: FileRecord) -> tuple[FileRecord, bool]:
        """Create the record unless one with the same id exists. Returns the stored record and whether it was created"""

    @abstractmethod
    async def delete_file(self, record_id: str) -> bool:
        """Delete a file record, returns False if it did not exist"""

    # FOLDERS

    @abstractmethod
    def list_folders(self, owner: str) -> AsyncIterable[FolderRecord]: ...

    @abstractmethod
    async def get_folder(self, folder_id: str) -> FolderRecord | None: ...

    @abstractmethod
    async def create_folder(self, record: FolderRecord) -> tuple[FolderRecord, bool]:
        """Create the record unless one with the same id exists. Returns the stored record and whether it was created"""

    @abstractmethod
    async def increment_folder(self, folder_id: str, file_count: int = 0, folder_count: int = 0, total_size: int = 0) -> None:
        """Atomically add to the counters of a folder (negative values subtract, counters never drop below 0)"""

    # BULK

    @abstractmethod
    async def delete_path_prefix(self, owner: str, path: str) -> tuple[int, int]:
        """Delete all file and folder records at or below path. Returns (files, folders) deleted"""

    @abstractmethod
    async def rewrite_path_prefix(self, owner: str, old_path: str, new_path: str) -> tuple[int, int]:
        """
        Move all records at or below old_path to new_path: folder paths (and the name of the folder
        at old_path), file paths and file storage keys. Since ids derive from paths and keys,
        records are stored under their new id and the old ones removed. Returns (files, folders) moved
        """

    # RENAME INTENTS

    @abstractmethod
    async def save_rename_intent(self, intent: RenameIntent) -> None: ...

    @abstractmethod
    def list_rename_intents(self, owner: str) -> AsyncIterable[RenameIntent]: ...

    @abstractmethod
    async def delete_rename_intent(self, intent_id: str) -> None: ...

    # OWNERS

    @abstractmethod
    async def list_owners(self) -> list[str]:
        """All owners with at least one folder record"""

    async def get_folder_by_path(self, owner: str, path: str) -> FolderRecord | None:
        return await self.get_folder(folder_record_id(owner, path))
