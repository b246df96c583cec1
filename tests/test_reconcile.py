import pytest

from drivesync.metadata.store import file_record_id, folder_record_id
from tests.conftest import OWNER
from tests.tools import MemoryObjectStore


def fill(store: MemoryObjectStore, *keys: str):
    for key in keys:
        store.add(key, b"" if key.endswith("/") else b"data")


@pytest.mark.anyio
async def test_import_orphaned_files(services, store, metadata):
    fill(store, "u1/photos/img1.png")
    result = await services.reconciler.import_orphaned_s3_files(OWNER)
    assert result.success, result.message
    assert result.stats["imported_files"] == 1
    assert result.stats["created_folders"] == 1
    assert result.stats["errors"] == 0

    photos = metadata.folder(OWNER, "/photos")
    assert photos is not None
    assert (photos.name, photos.parent_folder_id, photos.file_count, photos.total_size) == ("photos", None, 1, 4)
    assert metadata.folder(OWNER, "/").folder_count == 1

    record = metadata.files[file_record_id("u1/photos/img1.png")]
    assert (record.name, record.path, record.mime_type) == ("img1.png", "/photos/img1.png", "image/png")
    assert record.parent_folder_id == photos.id
    assert record.size == 4

    # importing again changes nothing
    result = await services.reconciler.import_orphaned_s3_files(OWNER)
    assert (result.stats["imported_files"], result.stats["created_folders"], result.stats["skipped"]) == (0, 0, 1)
    assert metadata.folder(OWNER, "/photos").file_count == 1


@pytest.mark.anyio
async def test_import_recovers_names(services, store, metadata):
    store.add(
        "u1/1700000000000-ab12cd-scan.bin",
        b"data",
        content_type="application/octet-stream",
        metadata={"original-name": "Scan 1.pdf"},
    )
    store.add("u1/docs/1700000000000-ab12cd-notes.txt", b"data", content_type="text/markdown")
    assert (await services.reconciler.import_orphaned_s3_files(OWNER)).success
    scan = metadata.files[file_record_id("u1/1700000000000-ab12cd-scan.bin")]
    assert (scan.name, scan.original_name, scan.path, scan.mime_type) == (
        "Scan 1.pdf",
        "Scan 1.pdf",
        "/Scan 1.pdf",
        "application/pdf",
    )
    assert scan.parent_folder_id is None
    notes = metadata.files[file_record_id("u1/docs/1700000000000-ab12cd-notes.txt")]
    assert (notes.name, notes.path, notes.mime_type) == ("notes.txt", "/docs/notes.txt", "text/markdown")


@pytest.mark.anyio
async def test_sync_user_files(services, store, metadata):
    fill(store, "u1/docs/a.pdf", "u1/docs/b.pdf")
    assert (await services.reconciler.import_orphaned_s3_files(OWNER)).success
    assert metadata.folder(OWNER, "/docs").file_count == 2

    del store.objects["u1/docs/b.pdf"]
    result = await services.reconciler.sync_user_files(OWNER)
    assert result.success
    assert result.message == "Sync completed. Verified 1 files, removed 1 orphaned entries."
    assert (result.stats["verified_files"], result.stats["removed_files"]) == (1, 1)
    assert metadata.file_paths(OWNER) == {"/docs/a.pdf"}
    docs = metadata.folder(OWNER, "/docs")
    assert (docs.file_count, docs.total_size) == (1, 4)

    # a failing existence check is counted, and the record is kept
    store.fail_head = {"u1/docs/a.pdf"}
    result = await services.reconciler.sync_user_files(OWNER)
    assert result.success
    assert result.stats["errors"] == 1
    assert "a.pdf" in result.stats["error_details"][0]
    assert metadata.file_paths(OWNER) == {"/docs/a.pdf"}


@pytest.mark.anyio
async def test_sync_folders(services, store, metadata):
    fill(store, "u1/a/", "u1/a/b/", "u1/c.txt")
    result = await services.reconciler.sync_folders_from_store(OWNER)
    assert result.success
    assert result.stats["created_folders"] == 2
    assert metadata.folder(OWNER, "/a/b").parent_folder_id == folder_record_id(OWNER, "/a")
    assert metadata.files == {}

    result = await services.reconciler.sync_folders_from_store(OWNER)
    assert (result.stats["created_folders"], result.stats["skipped"]) == (0, 2)

    del store.objects["u1/a/"]
    result = await services.reconciler.sync_folders_to_store(OWNER)
    assert result.success
    assert (result.stats["checked_folders"], result.stats["created_markers"]) == (2, 1)
    assert store.objects["u1/a/"]["metadata"]["folder-name"] == "a"
    assert "u1/" not in store.objects


@pytest.mark.anyio
async def test_find_orphaned_files(services, store, metadata):
    fill(store, "u1/", "u1/docs/", "u1/docs/a.pdf", "u1/known.txt")
    await services.reconciler.import_orphaned_s3_files(OWNER)
    fill(store, "u1/new/", "u1/new/b.pdf")

    result = await services.reconciler.find_orphaned_s3_files(OWNER)
    assert result.success
    assert result.orphaned_keys == ["u1/new/", "u1/new/b.pdf"]
    assert result.stats["orphaned_files"] == 2
    # reporting does not change anything
    assert metadata.folder(OWNER, "/new") is None
    assert "/new/b.pdf" not in metadata.file_paths(OWNER)


@pytest.mark.anyio
async def test_full_sync(services, store, metadata):
    fill(store, "u1/old.txt")
    assert (await services.reconciler.import_orphaned_s3_files(OWNER)).success
    del store.objects["u1/old.txt"]
    fill(store, "u1/docs/", "u1/docs/a.pdf", "u1/photos/img1.png")
    await services.listing.list_files(OWNER)
    assert len(services.cache) == 1

    result = await services.reconciler.perform_full_sync(OWNER)
    assert result.success, result.message
    assert result.error is None
    stats = result.stats
    assert stats["sync_user_files"]["removed_files"] == 1
    assert stats["import_files"]["imported_files"] == 2
    assert stats["import_files"]["created_folders"] + stats["folders_from_store"]["created_folders"] == 2
    assert stats["folders_to_store"]["created_markers"] == 1
    assert stats["orphaned"]["orphaned_files"] == 0
    assert stats["total_errors"] == 0
    assert result.orphaned_keys == []
    assert len(services.cache) == 0

    assert "u1/photos/" in store.objects
    assert metadata.file_paths(OWNER) == {"/docs/a.pdf", "/photos/img1.png"}
    root = metadata.folder(OWNER, "/")
    assert (root.file_count, root.folder_count) == (0, 2)
    assert metadata.folder(OWNER, "/docs").file_count == 1

    files, folders, keys = dict(metadata.files), dict(metadata.folders), store.keys()
    result = await services.reconciler.perform_full_sync(OWNER)
    assert result.success
    stats = result.stats
    assert stats["sync_user_files"] == dict(verified_files=2, removed_files=0, errors=0, error_details=[])
    assert stats["import_files"]["imported_files"] == 0
    assert stats["import_files"]["created_folders"] + stats["folders_from_store"]["created_folders"] == 0
    assert stats["folders_to_store"]["created_markers"] == 0
    assert (metadata.files, metadata.folders, store.keys()) == (files, folders, keys)


@pytest.mark.anyio
async def test_full_sync_counts_errors(services, store):
    fill(store, "u1/docs/a.pdf", "u1/docs/b.pdf")
    store.fail_head = {"u1/docs/b.pdf"}
    result = await services.reconciler.perform_full_sync(OWNER)
    assert (result.success, result.error) == (False, "ERROR")
    assert result.stats["total_errors"] == 1
    assert result.stats["import_files"]["imported_files"] == 1
    assert "u1/docs/b.pdf" in result.stats["import_files"]["error_details"][0]
    assert result.orphaned_keys == ["u1/docs/b.pdf"]


@pytest.mark.anyio
async def test_import_database_failure(services, store, metadata):
    fill(store, "u1/docs/", "u1/docs/a.pdf")
    metadata.fail_writes = True
    result = await services.reconciler.import_orphaned_s3_files(OWNER)
    assert result.success
    assert result.stats["errors"] == 2
    assert result.stats["imported_files"] == 0


@pytest.mark.anyio
async def test_consistency_check(services, store, metadata):
    fill(store, "u1/a.txt", "u1/b.txt")
    await services.reconciler.import_orphaned_s3_files(OWNER)
    del store.objects["u1/b.txt"]
    fill(store, "u1/c.txt")

    result = await services.reconciler.perform_consistency_check(OWNER)
    assert result.success
    assert result.stats["sync_user_files"]["removed_files"] == 1
    assert result.stats["orphaned"]["orphaned_files"] == 1
    assert result.stats["total_errors"] == 0
    assert "checked_at" in result.stats
    assert result.orphaned_keys == ["u1/c.txt"]
    assert metadata.file_paths(OWNER) == {"/a.txt"}


@pytest.mark.anyio
async def test_missing_configuration(services):
    for operation in services.sync_operations().values():
        result = await operation("nobody")
        assert (result.success, result.error) == (False, "S3_CONFIG_MISSING")
