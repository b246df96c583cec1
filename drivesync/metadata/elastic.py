"""
Metadata database on Elasticsearch.

Files, folders and rename intents live in one index each (see mapping.py). Writes use
refresh=True so a sync pass can read its own writes.
"""

import logging
from contextlib import contextmanager
from typing import AsyncIterable

from elasticsearch import ApiError, AsyncElasticsearch, ConflictError, TransportError

from drivesync.elastic.util import bulk_helper_with_errors, index_scan
from drivesync.errors import DatabaseError
from drivesync.metadata.mapping import (
    files_index_name,
    files_mapping,
    folders_index_name,
    folders_mapping,
    renames_index_name,
    renames_mapping,
)
from drivesync.metadata.store import MetadataStore, moved_file, moved_folder
from drivesync.models import FileRecord, FolderRecord, RenameIntent
from drivesync.paths import normalize_path

_INCREMENT_SCRIPT = """
ctx._source.file_count = Math.max(0, ctx._source.file_count + params.file_count);
ctx._source.folder_count = Math.max(0, ctx._source.folder_count + params.folder_count);
ctx._source.total_size = Math.max(0, ctx._source.total_size + params.total_size);
"""


@contextmanager
def database_errors():
    try:
        yield
    except (ApiError, TransportError) as e:
        raise DatabaseError(str(e)) from e


def path_query(owner: str, path: str) -> dict:
    """Query for all records of owner at or below path"""
    path = normalize_path(path)
    return {
        "bool": {
            "filter": [{"term": {"owner_id": owner}}],
            "should": [{"term": {"path": path}}, {"prefix": {"path": path + "/"}}],
            "minimum_should_match": 1,
        }
    }


def owner_query(owner: str) -> dict:
    return {"term": {"owner_id": owner}}


class ElasticMetadataStore(MetadataStore):
    def __init__(self, elastic: AsyncElasticsearch, prefix: str):
        self.elastic = elastic
        self.files_index = files_index_name(prefix)
        self.folders_index = folders_index_name(prefix)
        self.renames_index = renames_index_name(prefix)

    async def create_indices(self) -> None:
        """Create the metadata indices if they don't exist yet"""
        mappings = {
            self.files_index: files_mapping,
            self.folders_index: folders_mapping,
            self.renames_index: renames_mapping,
        }
        with database_errors():
            for index, mapping in mappings.items():
                if await self.elastic.indices.exists(index=index):
                    continue
                logging.info(f"Creating metadata index {index}")
                await self.elastic.options(ignore_status=[400]).indices.create(
                    index=index, mappings={"properties": mapping}
                )

    async def delete_indices(self) -> None:
        with database_errors():
            for index in (self.files_index, self.folders_index, self.renames_index):
                await self.elastic.options(ignore_status=[404]).indices.delete(index=index)

    # FILES

    async def list_files(self, owner: str) -> AsyncIterable[FileRecord]:
        with database_errors():
            async for _id, doc in index_scan(self.elastic, self.files_index, query=owner_query(owner)):
                yield FileRecord.model_validate(doc)

    async def create_file(self, record: FileRecord) -> tuple[FileRecord, bool]:
        with database_errors():
            try:
                await self.elastic.create(
                    index=self.files_index, id=record.id, document=record.model_dump(mode="json"), refresh=True
                )
                return record, True
            except ConflictError:
                doc = await self.elastic.get(index=self.files_index, id=record.id)
                return FileRecord.model_validate(doc["_source"]), False

    async def delete_file(self, record_id: str) -> bool:
        with database_errors():
            res = await self.elastic.options(ignore_status=[404]).delete(index=self.files_index, id=record_id, refresh=True)
        return res.get("result") == "deleted"

    # FOLDERS

    async def list_folders(self, owner: str) -> AsyncIterable[FolderRecord]:
        with database_errors():
            async for _id, doc in index_scan(self.elastic, self.folders_index, query=owner_query(owner)):
                yield FolderRecord.model_validate(doc)

    async def get_folder(self, folder_id: str) -> FolderRecord | None:
        with database_errors():
            doc = await self.elastic.options(ignore_status=[404]).get(index=self.folders_index, id=folder_id)
        if not doc.get("found"):
            return None
        return FolderRecord.model_validate(doc["_source"])

    async def create_folder(self, record: FolderRecord) -> tuple[FolderRecord, bool]:
        with database_errors():
            try:
                await self.elastic.create(
                    index=self.folders_index, id=record.id, document=record.model_dump(mode="json"), refresh=True
                )
                return record, True
            except ConflictError:
                doc = await self.elastic.get(index=self.folders_index, id=record.id)
                return FolderRecord.model_validate(doc["_source"]), False

    async def increment_folder(self, folder_id: str, file_count: int = 0, folder_count: int = 0, total_size: int = 0) -> None:
        with database_errors():
            res = await self.elastic.options(ignore_status=[404]).update(
                index=self.folders_index,
                id=folder_id,
                script={
                    "source": _INCREMENT_SCRIPT,
                    "params": dict(file_count=file_count, folder_count=folder_count, total_size=total_size),
                },
                retry_on_conflict=5,
                refresh=True,
            )
        if res.get("status") == 404 or res.get("found") is False:
            logging.debug(f"Cannot update counters of folder {folder_id}: folder record does not exist")

    # BULK

    async def delete_path_prefix(self, owner: str, path: str) -> tuple[int, int]:
        if normalize_path(path) == "/":
            raise ValueError("Refusing to delete all records of an owner by path")
        query = path_query(owner, path)
        with database_errors():
            files = await self.elastic.delete_by_query(index=self.files_index, query=query, refresh=True)
            folders = await self.elastic.delete_by_query(index=self.folders_index, query=query, refresh=True)
        return files["deleted"], folders["deleted"]

    async def rewrite_path_prefix(self, owner: str, old_path: str, new_path: str) -> tuple[int, int]:
        old_path, new_path = normalize_path(old_path), normalize_path(new_path)
        query = path_query(owner, old_path)
        file_actions: list[dict] = []
        folder_actions: list[dict] = []
        with database_errors():
            async for id, doc in index_scan(self.elastic, self.files_index, query=query):
                moved = moved_file(FileRecord.model_validate(doc), old_path, new_path)
                file_actions.append({"_op_type": "index", "_index": self.files_index, "_id": moved.id, **moved.model_dump(mode="json")})
                file_actions.append({"_op_type": "delete", "_index": self.files_index, "_id": id})
            async for id, doc in index_scan(self.elastic, self.folders_index, query=query):
                moved_f = moved_folder(FolderRecord.model_validate(doc), old_path, new_path)
                folder_actions.append(
                    {"_op_type": "index", "_index": self.folders_index, "_id": moved_f.id, **moved_f.model_dump(mode="json")}
                )
                folder_actions.append({"_op_type": "delete", "_index": self.folders_index, "_id": id})
            await bulk_helper_with_errors(self.elastic, file_actions + folder_actions, refresh=True)
        return len(file_actions) // 2, len(folder_actions) // 2

    # RENAME INTENTS

    async def save_rename_intent(self, intent: RenameIntent) -> None:
        with database_errors():
            await self.elastic.index(
                index=self.renames_index, id=intent.id, document=intent.model_dump(mode="json"), refresh=True
            )

    async def list_rename_intents(self, owner: str) -> AsyncIterable[RenameIntent]:
        with database_errors():
            async for _id, doc in index_scan(self.elastic, self.renames_index, query=owner_query(owner)):
                yield RenameIntent.model_validate(doc)

    async def delete_rename_intent(self, intent_id: str) -> None:
        with database_errors():
            await self.elastic.options(ignore_status=[404]).delete(index=self.renames_index, id=intent_id, refresh=True)

    # OWNERS

    async def list_owners(self) -> list[str]:
        with database_errors():
            res = await self.elastic.search(
                index=self.folders_index,
                size=0,
                aggregations={"owners": {"terms": {"field": "owner_id", "size": 10000}}},
            )
        return [bucket["key"] for bucket in res["aggregations"]["owners"]["buckets"]]
