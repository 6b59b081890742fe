"""
Object storage abstraction for the S3-compatible `papers` bucket and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from confdesk.errors import UpstreamFailure

# S3 DeleteObjects accepts at most this many keys per request.
DELETE_BATCH_SIZE = 1000


class StorageClient(Protocol):
    """Defines the operations the workflows need from object storage."""

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        *,
        upsert: bool = False,
    ) -> str:
        ...

    def remove(self, paths: Iterable[str]) -> list[str]:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def public_url(self, path: str) -> str:
        ...

    def exists(self, path: str) -> bool:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket: str = "papers"
    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        *,
        upsert: bool = False,
    ) -> str:
        if not upsert and path in self.stored_objects:
            raise UpstreamFailure(f"The resource already exists: {path}")
        self.stored_objects[path] = bytes(data)
        return path

    def remove(self, paths: Iterable[str]) -> list[str]:
        removed = []
        for path in paths:
            if self.stored_objects.pop(path, None) is not None:
                removed.append(path)
        return removed

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{self.bucket}/{quote(path)}?op=get&expires={expires_in}"

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{self.bucket}/public/{quote(path)}"

    def exists(self, path: str) -> bool:
        return path in self.stored_objects

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client for the hosted `papers` bucket.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        *,
        upsert: bool = False,
    ) -> str:
        if not upsert and self.exists(path):
            raise UpstreamFailure(f"The resource already exists: {path}")
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamFailure(f"Storage upload failed: {exc}") from exc
        return path

    def remove(self, paths: Iterable[str]) -> list[str]:
        keys = [path for path in paths if path]
        removed: list[str] = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start : start + DELETE_BATCH_SIZE]
            try:
                response = self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": False},
                )
            except (BotoCoreError, ClientError) as exc:
                raise UpstreamFailure(f"Storage delete failed: {exc}") from exc
            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                raise UpstreamFailure(
                    f"Storage delete failed for {first.get('Key')}: {first.get('Message')}"
                )
            removed.extend(item["Key"] for item in response.get("Deleted", []))
        return removed

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamFailure(f"Could not sign storage URL: {exc}") from exc

    def public_url(self, path: str) -> str:
        return f"{self.endpoint.rstrip('/')}/{self.bucket}/{quote(path)}"

    def exists(self, path: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=path)
        except ClientError as exc:
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if status == 404 or exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey"):
                return False
            raise UpstreamFailure(f"Storage lookup failed: {exc}") from exc
        except BotoCoreError as exc:
            raise UpstreamFailure(f"Storage lookup failed: {exc}") from exc
        return True
