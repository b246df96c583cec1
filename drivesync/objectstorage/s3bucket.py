"""
Interact with S3-compatible object storage (e.g., AWS S3, MinIO, SeaweedFS, Cloudflare R2).
"""

from typing import Any

import async_lru
from botocore.exceptions import ClientError
from types_aiobotocore_s3.client import S3Client
from types_aiobotocore_s3.type_defs import (
    CopyObjectRequestTypeDef,
    ListObjectsV2RequestTypeDef,
    ObjectIdentifierTypeDef,
    PutObjectRequestTypeDef,
)

from drivesync.errors import AccessDenied, NotFound, StoreError
from drivesync.objectstorage.store import DeleteFailure, ListPage, ObjectStore, StoreObject

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
ACCESS_DENIED_CODES = {"403", "AccessDenied", "Forbidden"}


def translate_client_error(e: ClientError, key: str | None = None) -> Exception:
    error = e.response.get("Error", {})
    code = str(error.get("Code", ""))
    message = error.get("Message") or str(e)
    if code in NOT_FOUND_CODES:
        return NotFound(f"Object {key} not found in bucket" if key else message)
    if code in ACCESS_DENIED_CODES:
        return AccessDenied(message)
    return StoreError(f"{code}: {message}" if code else message)


@async_lru.alru_cache(maxsize=1000)
async def create_or_get_bucket(client: S3Client, bucket: str) -> str:
    try:
        await client.head_bucket(Bucket=bucket)
    except ClientError as e:
        error = e.response.get("Error", {})
        if error.get("Code") in ("404", "NoSuchBucket"):
            await client.create_bucket(Bucket=bucket)
        else:
            raise translate_client_error(e)
    return bucket


class S3ObjectStore(ObjectStore):
    """An ObjectStore on one bucket of an aiobotocore S3 client"""

    def __init__(self, client: S3Client, bucket: str):
        self.client = client
        self.bucket = bucket

    async def list_objects(
        self,
        prefix: str,
        delimiter: str | None = None,
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ListPage:
        params: ListObjectsV2RequestTypeDef = {
            "Bucket": self.bucket,
            "MaxKeys": max_keys,
        }
        if prefix:
            params["Prefix"] = prefix
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        if delimiter:
            params["Delimiter"] = delimiter

        try:
            res = await self.client.list_objects_v2(**params)
        except ClientError as e:
            raise translate_client_error(e)

        objects: list[StoreObject] = []
        for content in res.get("Contents", []):
            if "Key" in content:
                objects.append(
                    {
                        "key": content["Key"],
                        "is_dir": content["Key"].endswith("/"),
                        "size": content.get("Size") or 0,
                        "last_modified": content.get("LastModified"),
                        "content_type": None,
                        "metadata": None,
                    }
                )

        prefixes = [cp["Prefix"] for cp in res.get("CommonPrefixes", []) if cp.get("Prefix")]

        return {
            "items": objects,
            "prefixes": prefixes,
            "next_page_token": res.get("NextContinuationToken"),
            "is_last_page": not res.get("IsTruncated", False),
        }

    async def head_object(self, key: str) -> StoreObject:
        try:
            res = await self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise translate_client_error(e, key)
        return {
            "key": key,
            "is_dir": key.endswith("/"),
            "size": res.get("ContentLength") or 0,
            "last_modified": res.get("LastModified"),
            "content_type": res.get("ContentType"),
            "metadata": dict(res.get("Metadata") or {}),
        }

    async def put_object(
        self,
        key: str,
        data: bytes = b"",
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        params: PutObjectRequestTypeDef = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata
        try:
            await self.client.put_object(**params)
        except ClientError as e:
            raise translate_client_error(e, key)

    async def copy_object(self, source_key: str, target_key: str) -> None:
        params: CopyObjectRequestTypeDef = {
            "Bucket": self.bucket,
            "Key": target_key,
            "CopySource": {"Bucket": self.bucket, "Key": source_key},
            "MetadataDirective": "COPY",
        }
        try:
            await self.client.copy_object(**params)
        except ClientError as e:
            raise translate_client_error(e, source_key)

    async def delete_object(self, key: str) -> None:
        try:
            await self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise translate_client_error(e, key)

    async def delete_objects(self, keys: list[str]) -> list[DeleteFailure]:
        if len(keys) > self.max_delete_batch:
            raise ValueError(f"Cannot delete more than {self.max_delete_batch} objects in one call")
        to_delete: list[ObjectIdentifierTypeDef] = [{"Key": key} for key in keys]
        if not to_delete:
            return []
        try:
            res: Any = await self.client.delete_objects(Bucket=self.bucket, Delete={"Objects": to_delete, "Quiet": True})
        except ClientError as e:
            raise translate_client_error(e)
        return [
            DeleteFailure(key=err.get("Key", ""), code=err.get("Code", ""), message=err.get("Message", ""))
            for err in res.get("Errors", [])
        ]
