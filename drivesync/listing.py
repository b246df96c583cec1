"""
Browsing the virtual directory tree of an owner: one level listings, searching the whole
namespace, and enumerating everything for reconciliation and statistics.
"""

import asyncio
import logging

from drivesync.cache import TTLCache, fingerprint
from drivesync.errors import DriveError
from drivesync.models import (
    Breadcrumb,
    FileItem,
    ListResult,
    OperationResult,
    SearchResult,
    StorageStats,
)
from drivesync.naming import infer_mime_type, mime_category, recover_name
from drivesync.objectstorage.store import ObjectStore, StoreObject, StorePool
from drivesync.paths import (
    DELIMITER,
    breadcrumbs,
    folder_prefix,
    is_marker,
    join_path,
    key_to_path,
    normalize_path,
    owner_prefix,
    parent_path,
    path_name,
)


def folder_item(owner: str, prefix: str) -> FileItem:
    path = key_to_path(owner, prefix)
    return FileItem(key=prefix, name=path_name(path), path=path, is_folder=True)


def file_item(owner: str, obj: StoreObject) -> FileItem:
    """Describe a stored file by the name the user gave it"""
    stored_path = key_to_path(owner, obj["key"])
    name = recover_name(path_name(stored_path), obj["metadata"])
    return FileItem(
        key=obj["key"],
        name=name,
        path=join_path(parent_path(stored_path), name),
        is_folder=False,
        size=obj["size"],
        last_modified=obj["last_modified"],
        mime_type=obj["content_type"] or infer_mime_type(name),
        metadata=obj["metadata"],
    )


async def with_metadata(store: ObjectStore, obj: StoreObject) -> StoreObject:
    """Add content type and user metadata from a HEAD, keeping the listed object if that fails"""
    try:
        head = await store.head_object(obj["key"])
    except DriveError as e:
        logging.debug(f"Could not read metadata of {obj['key']}: {e}")
        return obj
    return {**obj, "content_type": head["content_type"], "metadata": head["metadata"]}


def _sorted(items: list[FileItem]) -> list[FileItem]:
    return sorted(items, key=lambda item: item.name.lower())


class ListingEngine:
    def __init__(self, stores: StorePool, cache: TTLCache, list_ttl: float = 120, search_ttl: float = 60):
        self.stores = stores
        self.cache = cache
        self.list_ttl = list_ttl
        self.search_ttl = search_ttl

    async def list_files(
        self,
        owner: str,
        path: str = "/",
        max_keys: int = 1000,
        continuation_token: str | None = None,
        use_cache: bool = True,
        include_metadata: bool = False,
    ) -> ListResult:
        """
        List the folders and files directly in path (one level, not recursive).

        Results are cached per owner, path and paging options; folder mutations invalidate them.
        With include_metadata, every file is HEADed to read its original name and content type.
        """
        path = normalize_path(path)
        cache_key = fingerprint("list", owner, path, max_keys, continuation_token, include_metadata)
        if use_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        try:
            store = await self.stores.get(owner)
            prefix = folder_prefix(owner, path)
            page = await store.list_objects(
                prefix, delimiter=DELIMITER, max_keys=max_keys, continuation_token=continuation_token
            )
            folders = [folder_item(owner, p) for p in page["prefixes"] if p != prefix]
            objects = [obj for obj in page["items"] if obj["key"] != prefix and not is_marker(obj["key"])]
            if include_metadata:
                objects = list(await asyncio.gather(*[with_metadata(store, obj) for obj in objects]))
            files = [file_item(owner, obj) for obj in objects]
        except DriveError as e:
            return ListResult(success=False, message=str(e), error=e.error, current_path=path)
        except Exception as e:
            logging.exception(f"Listing {path} for {owner} failed")
            return ListResult(success=False, message=f"Failed to list files: {e}", error=DriveError.error, current_path=path)

        result = ListResult(
            success=True,
            message=f"Listed {len(files)} files and {len(folders)} folders",
            files=_sorted(files),
            folders=_sorted(folders),
            current_path=path,
            breadcrumbs=[Breadcrumb(name=name, path=p) for name, p in breadcrumbs(path)],
            total_size=sum(f.size for f in files),
            total_files=len(files),
            total_folders=len(folders),
            has_more=not page["is_last_page"],
            next_token=page["next_page_token"],
        )
        if use_cache:
            self.cache.set(cache_key, result, ttl=self.list_ttl)
        return result

    async def search_files(
        self, owner: str, query: str, max_results: int = 100, mime_type_filter: str | None = None
    ) -> SearchResult:
        """Case-insensitive search on file names in the whole namespace of owner"""
        cache_key = fingerprint("search", owner, "", query, mime_type_filter, max_results)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        needle = query.lower()
        matches: list[FileItem] = []
        try:
            store = await self.stores.get(owner)
            async for obj in store.scan_objects(owner_prefix(owner)):
                if is_marker(obj["key"]):
                    continue
                item = file_item(owner, obj)
                if needle not in item.name.lower():
                    continue
                if mime_type_filter and mime_type_filter not in (item.mime_type or ""):
                    continue
                matches.append(item)
                if len(matches) >= max_results:
                    break
        except DriveError as e:
            return SearchResult(success=False, message=str(e), error=e.error, query=query)
        except Exception as e:
            logging.exception(f"Searching {query!r} for {owner} failed")
            return SearchResult(success=False, message=f"Failed to search files: {e}", error=DriveError.error, query=query)

        result = SearchResult(
            success=True,
            message=f"Found {len(matches)} matching files",
            files=_sorted(matches),
            total_results=len(matches),
            query=query,
        )
        self.cache.set(cache_key, result, ttl=self.search_ttl)
        return result

    async def list_all_files(self, owner: str) -> list[StoreObject]:
        """
        Every object in the namespace of owner, markers included. Never cached, and errors propagate:
        the callers need the true current state or nothing.
        """
        store = await self.stores.get(owner)
        return [obj async for obj in store.scan_objects(owner_prefix(owner))]

    async def storage_stats(self, owner: str) -> OperationResult:
        try:
            objects = await self.list_all_files(owner)
        except DriveError as e:
            return OperationResult(success=False, message=str(e), error=e.error)
        except Exception as e:
            logging.exception(f"Computing storage statistics for {owner} failed")
            return OperationResult(success=False, message=f"Failed to compute storage statistics: {e}", error=DriveError.error)

        stats = StorageStats()
        folders: set[str] = set()
        root = owner_prefix(owner)
        for obj in objects:
            path = key_to_path(owner, obj["key"])
            if is_marker(obj["key"]):
                if obj["key"] != root:
                    folders.add(path)
                continue
            # folders implied by the key, with or without a marker
            parent = parent_path(path)
            while parent != "/":
                folders.add(parent)
                parent = parent_path(parent)
            stats.total_files += 1
            stats.total_size += obj["size"]
            category = mime_category(obj["content_type"] or infer_mime_type(path_name(path)))
            stats.categories[category] = stats.categories.get(category, 0) + 1
        stats.total_folders = len(folders)
        return OperationResult(
            success=True,
            message=f"{stats.total_files} files in {stats.total_folders} folders",
            stats=stats.model_dump(),
        )
