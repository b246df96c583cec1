"""
Folders on a flat object store.

A folder is a zero-byte "marker" object whose key is the folder prefix, e.g. "u1/docs/".
Object stores have no rename, so renaming a folder copies every object below it to the new
prefix and deletes the originals. That is not atomic: a RenameIntent is written before the
copy starts and removed when everything is done, so an interrupted rename can be resumed.
"""

import asyncio
import logging

from drivesync import paths
from drivesync.cache import TTLCache
from drivesync.errors import (
    AlreadyExists,
    ConsistencyTimeout,
    DriveError,
    FolderNotFound,
    NameInvalid,
    StoreError,
)
from drivesync.hierarchy import FolderTree, containing_folder_id
from drivesync.metadata.store import MetadataStore, rename_intent_id
from drivesync.models import (
    DeleteFolderResult,
    FileItem,
    FolderResult,
    OperationResult,
    RenameIntent,
    utcnow,
)
from drivesync.naming import FOLDER_CONTENT_TYPE, sanitize_name
from drivesync.objectstorage.store import ObjectStore, StorePool


def marker_metadata(owner: str, name: str) -> dict[str, str]:
    return {"folder-name": name, "user-id": owner, "created-at": utcnow().isoformat()}


async def put_marker(store: ObjectStore, owner: str, path: str) -> str:
    key = paths.folder_prefix(owner, path)
    await store.put_object(
        key, b"", content_type=FOLDER_CONTENT_TYPE, metadata=marker_metadata(owner, paths.path_name(path))
    )
    return key


async def delete_keys(store: ObjectStore, keys: list[str]) -> tuple[int, list[str]]:
    """
    Delete keys in batches of at most store.max_delete_batch.
    A failing key or batch does not stop the remaining batches.
    Returns the number of deleted keys and a description of every failure.
    """
    deleted = 0
    errors: list[str] = []
    for i in range(0, len(keys), store.max_delete_batch):
        batch = keys[i : i + store.max_delete_batch]
        try:
            failures = await store.delete_objects(batch)
        except DriveError as e:
            errors.append(f"Deleting {len(batch)} objects starting at {batch[0]} failed: {e}")
            continue
        deleted += len(batch) - len(failures)
        errors += [f"{failure['key']}: {failure['code']} {failure['message']}" for failure in failures]
    return deleted, errors


class FolderEmulator:
    def __init__(
        self,
        stores: StorePool,
        metadata: MetadataStore,
        cache: TTLCache,
        verify_attempts: int = 3,
        verify_delay: float = 1.0,
    ):
        self.stores = stores
        self.metadata = metadata
        self.cache = cache
        self.verify_attempts = verify_attempts
        self.verify_delay = verify_delay

    def invalidate(self, owner: str, exact: list[str], below: list[str] | None = None) -> None:
        """Drop cached listings of the exact paths and of everything below the other paths, and all searches"""
        for path in exact:
            self.cache.invalidate(f"list:{owner}:{path}|")
        for path in below or []:
            self.cache.invalidate(f"list:{owner}:{path}/")
        self.cache.invalidate(f"search:{owner}:")

    async def create_folder(self, owner: str, name: str, parent_path: str = "/") -> FolderResult:
        parent = paths.normalize_path(parent_path)
        try:
            store = await self.stores.get(owner)
            name = sanitize_name(name)
            path = paths.join_path(parent, name)
            key = paths.folder_prefix(owner, path)
            existing = await store.list_objects(key, max_keys=1)
            if existing["items"]:
                raise AlreadyExists("A folder with this name already exists")
            await put_marker(store, owner, path)
        except DriveError as e:
            return FolderResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Creating folder {name!r} in {parent} for {owner} failed")
            return FolderResult(success=False, message=f"Failed to create folder: {e}", error=DriveError.error)

        try:
            await FolderTree(self.metadata, owner).ensure(path)
        except DriveError as e:
            logging.warning(f"Folder {path} of {owner} exists in the store but could not be recorded: {e}")

        self.invalidate(owner, [parent])
        logging.info(f"Created folder {path} for {owner}")
        return FolderResult(
            success=True,
            message="Folder created successfully",
            folder=FileItem(key=key, name=name, path=path, is_folder=True),
        )

    async def delete_folder(self, owner: str, path: str) -> DeleteFolderResult:
        """
        Delete a folder with everything below it, from the store and from the metadata database.

        List-after-delete can lag behind, so the deletion is verified a few times. If the folder is
        still visible after that, its marker is deleted once more and a warning is logged; the call
        itself still succeeds.
        """
        path = paths.normalize_path(path)
        deleted = 0
        errors: list[str] = []
        try:
            if path == "/":
                raise NameInvalid("The root folder cannot be deleted")
            store = await self.stores.get(owner)
            keys = [obj["key"] async for obj in store.scan_objects(paths.folder_prefix(owner, path))]
            deleted, errors = await delete_keys(store, keys)
            if keys:
                await self._verify_deleted(store, owner, path)

            record = await self.metadata.get_folder_by_path(owner, path)
            files, folders = await self.metadata.delete_path_prefix(owner, path)
            if record is not None:
                await self.metadata.increment_folder(containing_folder_id(owner, path), folder_count=-1)
            if not keys and not files and not folders:
                raise FolderNotFound("Folder not found or already empty")
        except DriveError as e:
            return DeleteFolderResult(success=False, message=str(e), error=e.error, deleted_count=deleted, errors=errors)
        except Exception as e:
            logging.exception(f"Deleting folder {path} for {owner} failed")
            return DeleteFolderResult(
                success=False,
                message=f"Failed to delete folder: {e}",
                error=DriveError.error,
                deleted_count=deleted,
                errors=errors,
            )

        self.invalidate(owner, [path, paths.parent_path(path)], below=[path])
        if errors:
            logging.warning(f"Deleting folder {path} of {owner}: {len(errors)} objects could not be deleted")
            return DeleteFolderResult(
                success=False,
                message=f"Deleted {deleted} item(s), {len(errors)} could not be deleted",
                error=StoreError.error,
                deleted_count=deleted,
                errors=errors,
            )
        logging.info(f"Deleted folder {path} of {owner} ({deleted} objects)")
        return DeleteFolderResult(
            success=True,
            message=f"Folder and {deleted} item(s) deleted successfully",
            deleted_count=deleted,
        )

    async def _listed_in_parent(self, store: ObjectStore, owner: str, path: str) -> bool:
        parent = paths.folder_prefix(owner, paths.parent_path(path))
        prefix = paths.folder_prefix(owner, path)
        token = None
        while True:
            page = await store.list_objects(parent, delimiter=paths.DELIMITER, continuation_token=token)
            if prefix in page["prefixes"]:
                return True
            token = page["next_page_token"]
            if page["is_last_page"] or not token:
                return False

    async def _verify_deleted(self, store: ObjectStore, owner: str, path: str) -> bool:
        prefix = paths.folder_prefix(owner, path)
        for attempt in range(1, self.verify_attempts + 1):
            if not await store.has_prefix(prefix) and not await self._listed_in_parent(store, owner, path):
                return True
            logging.debug(f"Folder {path} of {owner} still listed after deletion (check {attempt}/{self.verify_attempts})")
            if attempt < self.verify_attempts:
                await asyncio.sleep(self.verify_delay)

        try:
            await store.delete_object(prefix)
        except DriveError as e:
            logging.warning(f"Forced deletion of marker {prefix} failed: {e}")
        timeout = ConsistencyTimeout(
            f"Folder {path} of {owner} still visible after {self.verify_attempts} checks, forced deletion of its marker"
        )
        logging.warning(f"{timeout.error}: {timeout}")
        return False

    async def rename_folder(self, owner: str, old_path: str, new_name: str) -> FolderResult:
        old_path = paths.normalize_path(old_path)
        try:
            if old_path == "/":
                raise NameInvalid("The root folder cannot be renamed")
            store = await self.stores.get(owner)
            name = sanitize_name(new_name)
            new_path = paths.join_path(paths.parent_path(old_path), name)
            key = paths.folder_prefix(owner, new_path)
            if new_path == old_path:
                return FolderResult(
                    success=True,
                    message="Folder already has this name",
                    folder=FileItem(key=key, name=name, path=new_path, is_folder=True),
                )
            if await store.has_prefix(key) or await self.metadata.get_folder_by_path(owner, new_path) is not None:
                raise AlreadyExists("A folder with this name already exists")
            if not await store.has_prefix(paths.folder_prefix(owner, old_path)):
                raise FolderNotFound("Folder not found or is empty")

            intent = RenameIntent(
                id=rename_intent_id(owner, old_path), owner_id=owner, old_path=old_path, new_path=new_path
            )
            await self.metadata.save_rename_intent(intent)
            moved = await self._complete_rename(store, intent)
        except DriveError as e:
            return FolderResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Renaming folder {old_path} for {owner} failed")
            return FolderResult(success=False, message=f"Failed to rename folder: {e}", error=DriveError.error)

        return FolderResult(
            success=True,
            message=f"Folder renamed successfully. {moved} items moved.",
            folder=FileItem(key=key, name=name, path=new_path, is_folder=True),
        )

    async def _complete_rename(self, store: ObjectStore, intent: RenameIntent) -> int:
        """
        Move everything from intent.old_path to intent.new_path and remove the intent.
        Every step can be repeated, so this both runs and resumes a rename.
        """
        owner = intent.owner_id
        old_prefix = paths.folder_prefix(owner, intent.old_path)
        new_prefix = paths.folder_prefix(owner, intent.new_path)

        keys = [obj["key"] async for obj in store.scan_objects(old_prefix)]
        results = await asyncio.gather(
            *[store.copy_object(key, new_prefix + key[len(old_prefix) :]) for key in keys], return_exceptions=True
        )
        failed = [(key, result) for key, result in zip(keys, results) if isinstance(result, BaseException)]
        if failed:
            key, error = failed[0]
            raise StoreError(
                f"Copying {len(failed)} of {len(keys)} objects failed (first: {key}: {error}), nothing was deleted"
            )

        _, errors = await delete_keys(store, keys)
        if errors:
            raise StoreError(f"Copied {len(keys)} objects but {len(errors)} originals could not be deleted: {errors[0]}")
        await put_marker(store, owner, intent.new_path)

        files, folders = await self.metadata.rewrite_path_prefix(owner, intent.old_path, intent.new_path)
        await self.metadata.delete_rename_intent(intent.id)
        parent = paths.parent_path(intent.old_path)
        self.invalidate(owner, [parent, intent.old_path, intent.new_path], below=[intent.old_path, intent.new_path])
        logging.info(
            f"Renamed {intent.old_path} to {intent.new_path} for {owner}: "
            f"{len(keys)} objects, {files} file and {folders} folder records"
        )
        return len(keys)

    async def resume_renames(self, owner: str) -> OperationResult:
        """Finish every rename of owner that was interrupted after its intent was written"""
        resumed = 0
        errors: list[str] = []
        error = None
        try:
            store = await self.stores.get(owner)
            intents = [intent async for intent in self.metadata.list_rename_intents(owner)]
            for intent in intents:
                try:
                    await self._complete_rename(store, intent)
                    resumed += 1
                except DriveError as e:
                    errors.append(f"{intent.old_path} -> {intent.new_path}: {e}")
                    error = error or e.error
                except Exception as e:
                    logging.exception(f"Resuming rename {intent.old_path} -> {intent.new_path} for {owner} failed")
                    errors.append(f"{intent.old_path} -> {intent.new_path}: {e}")
                    error = error or DriveError.error
        except DriveError as e:
            return OperationResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Resuming renames for {owner} failed")
            return OperationResult(success=False, message=f"Failed to resume renames: {e}", error=DriveError.error)

        stats = dict(resumed=resumed, errors=len(errors), error_details=errors)
        if errors:
            logging.warning(f"Resuming renames for {owner}: {len(errors)} of {len(intents)} failed")
            return OperationResult(
                success=False, message=f"Resumed {resumed} of {len(intents)} renames", error=error, stats=stats
            )
        return OperationResult(success=True, message=f"Resumed {resumed} renames", stats=stats)
