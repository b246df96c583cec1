"""
Reconciling the metadata database with what is actually in the object store.

Every pass is stateless and can be repeated: records are created if absent under ids derived
from their key or path, so running a pass twice (or two passes at once) converges on the
same state. Failures of single items are counted in the phase statistics and never stop
the other items; only a missing store configuration or an unreadable source fails a pass.
"""

import asyncio
import logging

from drivesync.cache import TTLCache
from drivesync.errors import DriveError, NotFound
from drivesync.folders import put_marker
from drivesync.hierarchy import FolderTree, add_file_record, remove_file_record
from drivesync.listing import ListingEngine
from drivesync.metadata.store import MetadataStore, file_record_id, parent_folder_id
from drivesync.models import (
    FileRecord,
    ImportStats,
    MarkerStats,
    OrphanStats,
    PhaseStats,
    SyncResult,
    VerifyStats,
    utcnow,
)
from drivesync.naming import DEFAULT_CONTENT_TYPE, infer_mime_type, recover_name
from drivesync.objectstorage.store import ObjectStore, StoreObject, StorePool
from drivesync.paths import folder_prefix, is_marker, join_path, key_to_path, owner_prefix, parent_path, path_name


def total_errors(*phases: PhaseStats) -> int:
    return sum(phase.errors for phase in phases)


class Reconciler:
    def __init__(
        self,
        stores: StorePool,
        metadata: MetadataStore,
        listing: ListingEngine,
        cache: TTLCache | None = None,
        concurrency: int = 16,
    ):
        self.stores = stores
        self.metadata = metadata
        self.listing = listing
        self.cache = cache
        self.concurrency = concurrency

    def _invalidate(self, owner: str) -> None:
        if self.cache is not None:
            self.cache.invalidate(f"list:{owner}:")
            self.cache.invalidate(f"search:{owner}:")

    ######################## PHASES #########################

    async def _verify_files(self, store: ObjectStore, owner: str) -> VerifyStats:
        """Remove file records whose object is gone from the store"""
        stats = VerifyStats()
        semaphore = asyncio.Semaphore(self.concurrency)
        records = [record async for record in self.metadata.list_files(owner)]

        async def verify(record: FileRecord):
            async with semaphore:
                try:
                    if await store.exists(record.storage_key):
                        stats.verified_files += 1
                    elif await remove_file_record(self.metadata, record):
                        stats.removed_files += 1
                        logging.info(f"Removed orphaned file record {record.name} ({record.storage_key})")
                except DriveError as e:
                    stats.fail(f"Error checking file {record.name}: {e}")

        await asyncio.gather(*[verify(record) for record in records])
        return stats

    async def _file_record(self, store: ObjectStore, owner: str, obj: StoreObject) -> FileRecord:
        key = obj["key"]
        stored_path = key_to_path(owner, key)
        head = await store.head_object(key)
        name = recover_name(path_name(stored_path), head["metadata"])
        content_type = head["content_type"]
        if not content_type or content_type == DEFAULT_CONTENT_TYPE:
            content_type = infer_mime_type(name)
        path = join_path(parent_path(stored_path), name)
        return FileRecord(
            id=file_record_id(key),
            owner_id=owner,
            name=name,
            original_name=name,
            size=obj["size"],
            mime_type=content_type,
            storage_key=key,
            parent_folder_id=parent_folder_id(owner, path),
            path=path,
            created_at=obj["last_modified"] or utcnow(),
        )

    async def _import(
        self, store: ObjectStore, owner: str, objects: list[StoreObject], markers: bool = True, files: bool = True
    ) -> ImportStats:
        """Create records for markers and/or files that have none, including the folders they imply"""
        stats = ImportStats()
        tree = FolderTree(self.metadata, owner)
        await tree.preload()
        root = owner_prefix(owner)

        if markers:
            for obj in objects:
                if not is_marker(obj["key"]) or obj["key"] == root:
                    continue
                path = key_to_path(owner, obj["key"])
                if path in tree:
                    stats.skipped += 1
                    continue
                try:
                    await tree.ensure(path)
                except DriveError as e:
                    stats.fail(f"Error importing folder {path}: {e}")

        if files:
            known = {record.storage_key async for record in self.metadata.list_files(owner)}
            semaphore = asyncio.Semaphore(self.concurrency)

            async def import_file(obj: StoreObject):
                async with semaphore:
                    try:
                        record = await self._file_record(store, owner, obj)
                        if await add_file_record(self.metadata, tree, record):
                            stats.imported_files += 1
                            logging.info(f"Imported file {record.path} ({record.storage_key})")
                        else:
                            stats.skipped += 1
                    except NotFound:
                        # deleted since it was listed
                        stats.skipped += 1
                    except DriveError as e:
                        stats.fail(f"Error importing file {obj['key']}: {e}")

            pending = []
            for obj in objects:
                if is_marker(obj["key"]):
                    continue
                if obj["key"] in known:
                    stats.skipped += 1
                else:
                    pending.append(obj)
            await asyncio.gather(*[import_file(obj) for obj in pending])

        stats.created_folders = len(tree.created)
        return stats

    async def _push_markers(self, store: ObjectStore, owner: str) -> MarkerStats:
        """Create the missing marker of every folder record"""
        stats = MarkerStats()
        semaphore = asyncio.Semaphore(self.concurrency)
        records = [record async for record in self.metadata.list_folders(owner) if not record.is_root]

        async def push(path: str):
            async with semaphore:
                try:
                    if not await store.exists(folder_prefix(owner, path)):
                        await put_marker(store, owner, path)
                        stats.created_markers += 1
                        logging.info(f"Created missing folder marker for {path}")
                except DriveError as e:
                    stats.fail(f"Error checking folder {path}: {e}")

        stats.checked_folders = len(records)
        await asyncio.gather(*[push(record.path) for record in records])
        return stats

    async def _find_orphans(self, owner: str, objects: list[StoreObject]) -> tuple[OrphanStats, list[str]]:
        """Keys in the store without a file or folder record"""
        files = {record.storage_key async for record in self.metadata.list_files(owner)}
        folders = {record.path async for record in self.metadata.list_folders(owner)}
        root = owner_prefix(owner)
        orphaned = []
        for obj in objects:
            key = obj["key"]
            if key == root:
                continue
            if is_marker(key):
                if key_to_path(owner, key) not in folders:
                    orphaned.append(key)
            elif key not in files:
                orphaned.append(key)
        return OrphanStats(orphaned_files=len(orphaned)), orphaned

    ######################## OPERATIONS #########################

    async def sync_user_files(self, owner: str) -> SyncResult:
        """Forward verification: drop the records of files that were removed from the store"""
        try:
            store = await self.stores.get(owner)
            stats = await self._verify_files(store, owner)
        except DriveError as e:
            return SyncResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Syncing files of {owner} failed")
            return SyncResult(success=False, message=f"Failed to sync files: {e}", error=DriveError.error)
        return SyncResult(
            success=True,
            message=f"Sync completed. Verified {stats.verified_files} files, removed {stats.removed_files} orphaned entries.",
            stats=stats.model_dump(),
        )

    async def import_orphaned_s3_files(self, owner: str) -> SyncResult:
        """Reverse import: create records for every folder marker and file that has none"""
        try:
            store = await self.stores.get(owner)
            objects = await self.listing.list_all_files(owner)
            stats = await self._import(store, owner, objects)
        except DriveError as e:
            return SyncResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Importing files of {owner} failed")
            return SyncResult(success=False, message=f"Failed to import files: {e}", error=DriveError.error)
        return SyncResult(
            success=True,
            message=f"Imported {stats.imported_files} files and created {stats.created_folders} folders",
            stats=stats.model_dump(),
        )

    async def sync_folders_to_store(self, owner: str) -> SyncResult:
        try:
            store = await self.stores.get(owner)
            stats = await self._push_markers(store, owner)
        except DriveError as e:
            return SyncResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Syncing folders of {owner} to the store failed")
            return SyncResult(success=False, message=f"Failed to sync folders: {e}", error=DriveError.error)
        if stats.created_markers:
            self._invalidate(owner)
        return SyncResult(
            success=True,
            message=f"Checked {stats.checked_folders} folders, created {stats.created_markers} missing markers",
            stats=stats.model_dump(),
        )

    async def sync_folders_from_store(self, owner: str) -> SyncResult:
        try:
            store = await self.stores.get(owner)
            objects = await self.listing.list_all_files(owner)
            stats = await self._import(store, owner, objects, files=False)
        except DriveError as e:
            return SyncResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Syncing folders of {owner} from the store failed")
            return SyncResult(success=False, message=f"Failed to sync folders: {e}", error=DriveError.error)
        return SyncResult(
            success=True,
            message=f"Created {stats.created_folders} folders from store markers",
            stats=stats.model_dump(),
        )

    async def find_orphaned_s3_files(self, owner: str) -> SyncResult:
        """Report store keys without metadata, without changing anything"""
        try:
            objects = await self.listing.list_all_files(owner)
            stats, orphaned = await self._find_orphans(owner, objects)
        except DriveError as e:
            return SyncResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Finding orphaned files of {owner} failed")
            return SyncResult(success=False, message=f"Failed to check for orphaned files: {e}", error=DriveError.error)
        return SyncResult(
            success=True,
            message=f"Found {len(orphaned)} files in the store that are not in the database",
            stats=stats.model_dump(),
            orphaned_keys=orphaned,
        )

    async def perform_full_sync(self, owner: str) -> SyncResult:
        """
        Reconcile both ways:

        1. verify file records, import unknown files and import unknown folder markers (concurrently)
        2. create markers for folders that lack one, including folders inferred in step 1
        3. report what is still orphaned

        Succeeds if no phase counted an error; the statistics of all phases are always returned.
        """
        try:
            store = await self.stores.get(owner)
            objects = await self.listing.list_all_files(owner)
            verify, imported, pulled = await asyncio.gather(
                self._verify_files(store, owner),
                self._import(store, owner, objects, markers=False),
                self._import(store, owner, objects, files=False),
            )
            pushed = await self._push_markers(store, owner)
            orphans, orphaned = await self._find_orphans(owner, await self.listing.list_all_files(owner))
        except DriveError as e:
            return SyncResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Full sync of {owner} failed")
            return SyncResult(success=False, message=f"Failed to perform full sync: {e}", error=DriveError.error)

        self._invalidate(owner)
        errors = total_errors(verify, imported, pulled, pushed, orphans)
        summary = (
            f"removed {verify.removed_files} records, imported {imported.imported_files} files, "
            f"created {imported.created_folders + pulled.created_folders} folders and {pushed.created_markers} markers, "
            f"{orphans.orphaned_files} orphaned"
        )
        logging.info(f"Full sync of {owner}: {summary}, {errors} errors")
        return SyncResult(
            success=errors == 0,
            message=f"Full sync completed: {summary}" if errors == 0 else f"Full sync completed with {errors} errors: {summary}",
            error=None if errors == 0 else DriveError.error,
            stats=dict(
                sync_user_files=verify.model_dump(),
                import_files=imported.model_dump(),
                folders_from_store=pulled.model_dump(),
                folders_to_store=pushed.model_dump(),
                orphaned=orphans.model_dump(),
                total_errors=errors,
            ),
            orphaned_keys=orphaned,
        )

    async def perform_consistency_check(self, owner: str) -> SyncResult:
        """Forward verification and an orphan report, without importing anything"""
        try:
            store = await self.stores.get(owner)
            objects = await self.listing.list_all_files(owner)
            verify, (orphans, orphaned) = await asyncio.gather(
                self._verify_files(store, owner),
                self._find_orphans(owner, objects),
            )
        except DriveError as e:
            return SyncResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Consistency check of {owner} failed")
            return SyncResult(success=False, message=f"Failed to perform consistency check: {e}", error=DriveError.error)

        errors = total_errors(verify, orphans)
        return SyncResult(
            success=errors == 0,
            message="Consistency check completed" if errors == 0 else f"Consistency check completed with {errors} errors",
            error=None if errors == 0 else DriveError.error,
            stats=dict(
                sync_user_files=verify.model_dump(),
                orphaned=orphans.model_dump(),
                total_errors=errors,
                checked_at=utcnow().isoformat(),
            ),
            orphaned_keys=orphaned,
        )
