"""
Keeping the folder records of an owner in shape: making sure a folder and all its
ancestors have a record, and keeping the counters of the containing folder up to date.
"""

import logging

from drivesync.metadata.store import MetadataStore, folder_record_id, parent_folder_id
from drivesync.models import FileRecord, FolderRecord
from drivesync.paths import normalize_path, parent_path, path_name


def containing_folder_id(owner: str, path: str) -> str:
    """Id of the folder record whose counters an item at path counts towards (the root record at top level)"""
    return folder_record_id(owner, parent_path(path))


class FolderTree:
    """
    Ensures folder records exist for the folders touched in one pass.

    Records seen or created are remembered, so the shared ancestors of many imported
    files are only looked up once. Only records actually created by this tree (not the
    ones found to exist, e.g. because a concurrent pass created them) increment the
    folder_count of their parent.
    """

    def __init__(self, metadata: MetadataStore, owner: str):
        self.metadata = metadata
        self.owner = owner
        self.created: list[str] = []
        self._known: dict[str, FolderRecord] = {}

    def remember(self, record: FolderRecord) -> None:
        self._known[record.path] = record

    async def preload(self) -> None:
        async for record in self.metadata.list_folders(self.owner):
            self.remember(record)

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._known

    async def ensure(self, path: str) -> FolderRecord:
        """Return the record of the folder at path, creating it and any missing ancestors"""
        path = normalize_path(path)
        known = self._known.get(path)
        if known is not None:
            return known
        existing = await self.metadata.get_folder_by_path(self.owner, path)
        if existing is not None:
            self.remember(existing)
            return existing

        if path != "/":
            await self.ensure(parent_path(path))
        record = FolderRecord(
            id=folder_record_id(self.owner, path),
            owner_id=self.owner,
            name=path_name(path),
            parent_folder_id=parent_folder_id(self.owner, path),
            path=path,
        )
        stored, created = await self.metadata.create_folder(record)
        if created and path != "/":
            self.created.append(path)
            await self.metadata.increment_folder(containing_folder_id(self.owner, path), folder_count=1)
            logging.debug(f"Created folder record {path} for {self.owner}")
        self.remember(stored)
        return stored


async def add_file_record(metadata: MetadataStore, tree: FolderTree, record: FileRecord) -> bool:
    """
    Store a file record, making sure its folder chain exists.
    Returns False if a record for the same storage key was already there.
    """
    await tree.ensure(parent_path(record.path))
    _, created = await metadata.create_file(record)
    if created:
        await metadata.increment_folder(
            containing_folder_id(record.owner_id, record.path), file_count=1, total_size=record.size
        )
    return created


async def remove_file_record(metadata: MetadataStore, record: FileRecord) -> bool:
    """Delete a file record and subtract it from the counters of its folder"""
    deleted = await metadata.delete_file(record.id)
    if deleted:
        await metadata.increment_folder(
            containing_folder_id(record.owner_id, record.path), file_count=-1, total_size=-record.size
        )
    return deleted
