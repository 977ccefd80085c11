"""Screenshot objects in an S3 (or S3-compatible) bucket.

Object layout mirrors the local store: ``s3://{bucket}/{prefix}/{key}``, or
just ``{key}`` without a prefix.

boto3 is blocking, so every request runs on an anyio worker thread.  Uploads
use ``upload_fileobj`` with ``use_threads=False``: the transfer then reports
progress on that same worker thread, from where it hops back to the event
loop through ``anyio.from_thread``.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar

import boto3
from anyio import from_thread, to_thread
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import ClientError

from sharenight.backend.store.base import ProgressCallback

T = TypeVar("T")

PRESIGN_SECONDS = 7 * 24 * 3600
_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def make_client(
    endpoint_url: str | None,
    access_key: str | None,
    secret_key: str | None,
    *,
    region: str | None = None,
    path_style: bool = False,
) -> Any:
    """boto3 S3 client; ``endpoint_url=None`` targets AWS itself.

    MinIO and most self-hosted gateways need *path_style* addressing.
    Checksums are only sent when the operation requires them, which keeps
    older S3-compatible servers working.
    """
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=Config(
            s3={"addressing_style": "path" if path_style else "auto"},
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
        ),
    )


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _MISSING_CODES


class _ProgressRelay:
    """boto3 reports byte increments; listeners want ``(done, total)``."""

    def __init__(self, total: int, on_progress: ProgressCallback) -> None:
        self.total = total
        self.done = 0
        self.on_progress = on_progress

    def __call__(self, increment: int) -> None:
        self.done += increment
        from_thread.run_sync(self.on_progress, self.done, self.total)


class S3BlobStore:
    """``BlobStore`` on S3.  ``url`` hands out presigned GET links."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None,
        access_key: str | None,
        secret_key: str | None,
        prefix: str | None = None,
        region: str | None = None,
        path_style: bool = False,
        url_expires: int = PRESIGN_SECONDS,
    ) -> None:
        self.bucket = bucket
        self.prefix = prefix
        self.url_expires = url_expires
        self._client = make_client(endpoint_url, access_key, secret_key, region=region, path_style=path_style)
        self._single_threaded = TransferConfig(use_threads=False)

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    async def _call(self, fn: Callable[..., T], /, **kwargs: Any) -> T:
        return await to_thread.run_sync(partial(fn, **kwargs))

    async def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "image/jpeg",
        on_progress: ProgressCallback | None = None,
    ) -> None:
        await self._call(
            self._client.upload_fileobj,
            Fileobj=io.BytesIO(data),
            Bucket=self.bucket,
            Key=self._full_key(key),
            ExtraArgs={"ContentType": content_type},
            Callback=_ProgressRelay(len(data), on_progress) if on_progress else None,
            Config=self._single_threaded,
        )

    async def read(self, key: str) -> bytes:
        return await self._call(self._download, key=self._full_key(key))

    def _download(self, key: str) -> bytes:
        # The streaming body must be drained on the thread that opened it.
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                raise FileNotFoundError(key) from None
            raise
        return response["Body"].read()

    async def url(self, key: str) -> str:
        if not await self.exists(key):
            raise FileNotFoundError(key)
        return await self._call(
            self._client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": self._full_key(key)},
            ExpiresIn=self.url_expires,
        )

    async def exists(self, key: str) -> bool:
        try:
            await self._call(self._client.head_object, Bucket=self.bucket, Key=self._full_key(key))
        except ClientError as exc:
            if _is_missing(exc):
                return False
            raise
        return True

    async def delete(self, key: str) -> None:
        # Deleting a missing key succeeds on S3.
        await self._call(self._client.delete_object, Bucket=self.bucket, Key=self._full_key(key))
