import uuid

import pytest

from drivesync.config import s3_enabled
from drivesync.errors import NotFound
from drivesync.folders import delete_keys
from drivesync.objectstorage.s3client import S3ClientPool

if not s3_enabled():
    pytest.skip("S3 not configured, skipping object store tests", allow_module_level=True)


@pytest.fixture()
async def s3():
    pool = S3ClientPool()
    owner = f"drivesync-unittest-{uuid.uuid4().hex[:8]}"
    store = await pool.get(owner)
    prefix = f"{owner}/"
    try:
        yield store, prefix
    finally:
        keys = [obj["key"] async for obj in store.scan_objects(prefix)]
        await delete_keys(store, keys)
        await pool.close()


@pytest.mark.anyio
async def test_put_head_copy(s3):
    store, prefix = s3
    await store.put_object(prefix + "docs/", b"", content_type="application/x-directory")
    await store.put_object(
        prefix + "docs/a.txt", b"hello", content_type="text/plain", metadata={"original-name": "A.txt"}
    )
    head = await store.head_object(prefix + "docs/a.txt")
    assert (head["size"], head["content_type"], head["metadata"]) == (5, "text/plain", {"original-name": "A.txt"})
    with pytest.raises(NotFound):
        await store.head_object(prefix + "missing")
    assert not await store.exists(prefix + "missing")

    await store.copy_object(prefix + "docs/a.txt", prefix + "papers/a.txt")
    copied = await store.head_object(prefix + "papers/a.txt")
    assert copied["metadata"] == {"original-name": "A.txt"}


@pytest.mark.anyio
async def test_list_and_delete(s3):
    store, prefix = s3
    for key in ["docs/", "docs/a.txt", "docs/sub/b.txt", "c.txt"]:
        await store.put_object(prefix + key, b"x")

    page = await store.list_objects(prefix, delimiter="/")
    assert [o["key"] for o in page["items"]] == [prefix + "c.txt"]
    assert page["prefixes"] == [prefix + "docs/"]
    assert page["is_last_page"]

    page = await store.list_objects(prefix, max_keys=2)
    assert len(page["items"]) == 2
    assert not page["is_last_page"] and page["next_page_token"]
    assert len([o async for o in store.scan_objects(prefix, page_size=2)]) == 4
    assert await store.has_prefix(prefix + "docs/")

    deleted, errors = await delete_keys(store, [prefix + "docs/", prefix + "docs/a.txt", prefix + "docs/sub/b.txt"])
    assert (deleted, errors) == (3, [])
    assert not await store.has_prefix(prefix + "docs/")
