"""
The interface the folder, listing and sync engines expect from an object store.

The store is flat: there are only keys. Listing with a delimiter groups keys one level
below the prefix into "common prefixes", which is what makes folders visible.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncIterable, Protocol

from typing_extensions import TypedDict

from drivesync.errors import NotFound


class StoreObject(TypedDict):
    key: str
    is_dir: bool
    size: int
    last_modified: datetime | None
    content_type: str | None
    metadata: dict[str, str] | None


class ListPage(TypedDict):
    items: list[StoreObject]
    prefixes: list[str]
    next_page_token: str | None
    is_last_page: bool


class DeleteFailure(TypedDict):
    key: str
    code: str
    message: str


class ObjectStore(ABC):
    #: maximum number of keys in one delete_objects call
    max_delete_batch: int = 1000

    @abstractmethod
    async def list_objects(
        self,
        prefix: str,
        delimiter: str | None = None,
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ListPage:
        """List one page. Objects directly matching are in items, grouped keys in prefixes"""

    @abstractmethod
    async def head_object(self, key: str) -> StoreObject:
        """Return the object including its metadata, raise NotFound if it does not exist"""

    @abstractmethod
    async def put_object(
        self,
        key: str,
        data: bytes = b"",
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None: ...

    @abstractmethod
    async def copy_object(self, source_key: str, target_key: str) -> None:
        """Server side copy, keeping content type and metadata"""

    @abstractmethod
    async def delete_object(self, key: str) -> None: ...

    @abstractmethod
    async def delete_objects(self, keys: list[str]) -> list[DeleteFailure]:
        """Delete at most max_delete_batch keys, returning the keys that could not be deleted"""

    async def scan_objects(self, prefix: str, page_size: int = 1000) -> AsyncIterable[StoreObject]:
        """Iterate over all objects below prefix, following continuation tokens"""
        token = None
        while True:
            page = await self.list_objects(prefix, max_keys=page_size, continuation_token=token)
            for item in page["items"]:
                yield item
            token = page["next_page_token"]
            if page["is_last_page"] or not token:
                break

    async def exists(self, key: str) -> bool:
        try:
            await self.head_object(key)
        except NotFound:
            return False
        return True

    async def has_prefix(self, prefix: str) -> bool:
        """Is there at least one object below (or at) prefix?"""
        page = await self.list_objects(prefix, max_keys=1)
        return bool(page["items"])


class StorePool(Protocol):
    """Resolves the object store of an owner, raising ConfigurationMissing if there is none"""

    async def get(self, owner: str) -> ObjectStore: ...
