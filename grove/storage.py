"""
Object storage for member media and legacy archives.

Media uploads go straight from the browser through presigned PUT URLs under
``uploads/<user>/``. Legacy archives are written server-side as JSON under
``legacy/<branch>/<heir>/`` when an heir is released and removed again when
the release is revoked.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config

ARCHIVE_CONTENT_TYPE = "application/json"
UPLOAD_CONTENT_TYPE = "application/octet-stream"


def upload_key(user_id: str, path: str) -> str:
    return f"uploads/{user_id}/{path.lstrip('/')}"


def archive_key(branch_id: str, heir_id: str) -> str:
    return f"legacy/{branch_id}/{heir_id}/archive.json"


def _encode_archive(payload: dict) -> bytes:
    # Timestamps in bundles are already ISO strings; default=str covers stragglers.
    return json.dumps(payload, default=str, ensure_ascii=False).encode("utf-8")


class StorageClient(Protocol):
    """Operations the API needs from object storage."""

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def presign_put(self, path: str, expires_in: int = 3600) -> str:
        ...

    def upload_json(self, path: str, payload: dict) -> None:
        ...

    def delete_object(self, path: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double that keeps archives as decoded JSON."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def presign_put(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=put&expires={expires_in}"

    def upload_json(self, path: str, payload: dict) -> None:
        self.stored_objects[path] = json.loads(_encode_archive(payload))

    def delete_object(self, path: str) -> None:
        self.stored_objects.pop(path, None)


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, Backblaze B2, Tencent COS, MinIO).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        params = {"Bucket": self.bucket, "Key": path}
        if path.startswith("legacy/"):
            # Heirs get a file to save, not a JSON page in the browser.
            params["ResponseContentDisposition"] = 'attachment; filename="archive.json"'
        return self._client.generate_presigned_url(
            ClientMethod="get_object", Params=params, ExpiresIn=expires_in
        )

    def presign_put(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": self.bucket, "Key": path, "ContentType": UPLOAD_CONTENT_TYPE},
            ExpiresIn=expires_in,
        )

    def upload_json(self, path: str, payload: dict) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=_encode_archive(payload),
            ContentType=ARCHIVE_CONTENT_TYPE,
            CacheControl="private, no-store",
        )

    def delete_object(self, path: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=path)
