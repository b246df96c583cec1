import pytest

from drivesync.cache import fingerprint
from drivesync.errors import ConfigurationMissing
from tests.conftest import OWNER
from tests.tools import MemoryObjectStore


def fill(store: MemoryObjectStore, *keys: str):
    for key in keys:
        store.add(key, b"" if key.endswith("/") else b"data")


@pytest.mark.anyio
async def test_list_files(services, store):
    fill(store, "u1/docs/", "u1/docs/a.pdf", "u1/1700000000000-ab12cd-report.pdf", "u1/notes.txt")

    result = await services.listing.list_files(OWNER)
    assert result.success
    assert result.current_path == "/"
    assert [(f.name, f.path, f.key) for f in result.folders] == [("docs", "/docs", "u1/docs/")]
    assert [(f.name, f.path) for f in result.files] == [("notes.txt", "/notes.txt"), ("report.pdf", "/report.pdf")]
    assert result.files[1].key == "u1/1700000000000-ab12cd-report.pdf"
    assert result.files[1].mime_type == "application/pdf"
    assert (result.total_files, result.total_folders, result.total_size) == (2, 1, 8)
    assert [(b.name, b.path) for b in result.breadcrumbs] == [("Home", "/")]
    assert not result.has_more

    result = await services.listing.list_files(OWNER, "docs/")
    assert result.current_path == "/docs"
    assert result.folders == []
    assert [f.path for f in result.files] == ["/docs/a.pdf"]
    assert [(b.name, b.path) for b in result.breadcrumbs] == [("Home", "/"), ("docs", "/docs")]


@pytest.mark.anyio
async def test_list_files_pagination(services, store):
    fill(store, "u1/a.txt", "u1/b.txt", "u1/c/d.txt")
    page = await services.listing.list_files(OWNER, max_keys=2)
    assert [f.name for f in page.files] == ["a.txt", "b.txt"]
    assert page.has_more and page.next_token
    page = await services.listing.list_files(OWNER, max_keys=2, continuation_token=page.next_token)
    assert page.files == []
    assert [f.name for f in page.folders] == ["c"]
    assert not page.has_more


@pytest.mark.anyio
async def test_list_files_metadata(services, store):
    store.add(
        "u1/1700000000001-zz99yy-x.bin",
        b"data",
        content_type="application/pdf",
        metadata={"original-name": "Quarterly Report.pdf"},
    )
    plain = await services.listing.list_files(OWNER)
    assert [f.name for f in plain.files] == ["x.bin"]
    assert plain.files[0].metadata is None

    detailed = await services.listing.list_files(OWNER, include_metadata=True)
    [item] = detailed.files
    assert (item.name, item.path, item.mime_type) == ("Quarterly Report.pdf", "/Quarterly Report.pdf", "application/pdf")
    assert item.metadata == {"original-name": "Quarterly Report.pdf"}

    # a failing HEAD keeps the listed object
    store.fail_head = {"u1/1700000000001-zz99yy-x.bin"}
    detailed = await services.listing.list_files(OWNER, include_metadata=True, use_cache=False)
    assert detailed.success
    assert [f.name for f in detailed.files] == ["x.bin"]


@pytest.mark.anyio
async def test_list_files_cache(services, store):
    fill(store, "u1/docs/", "u1/docs/a.pdf")
    first = await services.listing.list_files(OWNER)
    assert store.calls["list_objects"] == 1
    second = await services.listing.list_files(OWNER)
    assert store.calls["list_objects"] == 1
    assert second == first

    await services.listing.list_files(OWNER, use_cache=False)
    assert store.calls["list_objects"] == 2

    # different options are cached separately
    await services.listing.list_files(OWNER, max_keys=10)
    assert store.calls["list_objects"] == 3

    result = await services.listing.list_files("nobody")
    assert (result.success, result.error) == (False, "S3_CONFIG_MISSING")
    assert not any(key.startswith("list:nobody:") for key in services.cache.keys())


@pytest.mark.anyio
async def test_mutations_invalidate_listings(services, store):
    fill(store, "u1/docs/", "u1/docs/a.pdf", "u1/other/")
    await services.listing.list_files(OWNER)
    await services.listing.list_files(OWNER, "/docs")
    await services.listing.list_files(OWNER, "/other")
    docs_key = fingerprint("list", OWNER, "/docs", 1000, None, False)
    other_key = fingerprint("list", OWNER, "/other", 1000, None, False)

    assert (await services.folders.create_folder(OWNER, "new")).success
    assert docs_key in services.cache
    result = await services.listing.list_files(OWNER)
    assert [f.name for f in result.folders] == ["docs", "new", "other"]

    assert (await services.folders.rename_folder(OWNER, "/docs", "papers")).success
    assert docs_key not in services.cache
    assert other_key in services.cache
    result = await services.listing.list_files(OWNER)
    assert [f.name for f in result.folders] == ["new", "other", "papers"]
    result = await services.listing.list_files(OWNER, "/docs")
    assert result.files == []

    assert (await services.folders.delete_folder(OWNER, "/papers")).success
    result = await services.listing.list_files(OWNER)
    assert [f.name for f in result.folders] == ["new", "other"]


@pytest.mark.anyio
async def test_search_files(services, store):
    fill(store, "u1/docs/", "u1/docs/Report-2024.pdf", "u1/docs/sub/report.txt", "u1/photo.png")

    result = await services.listing.search_files(OWNER, "REPORT")
    assert result.success
    assert result.query == "REPORT"
    assert [f.path for f in result.files] == ["/docs/Report-2024.pdf", "/docs/sub/report.txt"]
    assert result.total_results == 2

    result = await services.listing.search_files(OWNER, "report", mime_type_filter="pdf")
    assert [f.name for f in result.files] == ["Report-2024.pdf"]
    result = await services.listing.search_files(OWNER, "report", max_results=1)
    assert result.total_results == 1
    result = await services.listing.search_files(OWNER, "docs")
    assert result.files == []

    calls = store.calls["list_objects"]
    await services.listing.search_files(OWNER, "REPORT")
    assert store.calls["list_objects"] == calls

    assert (await services.folders.create_folder(OWNER, "new")).success
    calls = store.calls["list_objects"]
    await services.listing.search_files(OWNER, "REPORT")
    assert store.calls["list_objects"] == calls + 1

    result = await services.listing.search_files("nobody", "report")
    assert (result.success, result.error) == (False, "S3_CONFIG_MISSING")


@pytest.mark.anyio
async def test_list_all_files(services, store):
    fill(store, "u1/", "u1/docs/", "u1/docs/a.pdf", "u2/x.txt")
    objects = await services.listing.list_all_files(OWNER)
    assert [o["key"] for o in objects] == ["u1/", "u1/docs/", "u1/docs/a.pdf"]
    with pytest.raises(ConfigurationMissing):
        await services.listing.list_all_files("nobody")


@pytest.mark.anyio
async def test_storage_stats(services, store):
    fill(store, "u1/", "u1/docs/", "u1/docs/a.pdf", "u1/notes.txt")
    store.add("u1/photos/2024/img.png", size=10)
    result = await services.listing.storage_stats(OWNER)
    assert result.success
    assert result.stats == dict(
        total_files=3,
        total_folders=3,
        total_size=18,
        categories=dict(document=1, text=1, image=1),
    )
    result = await services.listing.storage_stats("nobody")
    assert result.error == "S3_CONFIG_MISSING"


@pytest.mark.anyio
async def test_storage_stats_unexpected_error(services, store, monkeypatch):
    async def list_objects(*args, **kargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(store, "list_objects", list_objects)
    result = await services.listing.storage_stats(OWNER)
    assert (result.success, result.error) == (False, "ERROR")
    assert "connection reset" in result.message
