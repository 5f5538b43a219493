"""Blob storage for APKs and test results using an S3-compatible API."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import aioboto3
from botocore.exceptions import ClientError

from devicelab.config import settings

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class BlobPath:
    """Location of an object, rendered as ``<scheme>://<bucket>/<key>``."""

    bucket: str
    key: str
    scheme: str = "gs"

    @property
    def uri(self) -> str:
        return f"{self.scheme}://{self.bucket}/{self.key}"

    @classmethod
    def parse(cls, uri: str) -> "BlobPath":
        scheme, separator, rest = uri.partition("://")
        if not separator or "/" not in rest:
            raise ValueError(f"Invalid blob path: {uri}")
        bucket, _, key = rest.partition("/")
        return cls(bucket=bucket, key=key.strip("/"), scheme=scheme)

    def __truediv__(self, other: str) -> "BlobPath":
        return BlobPath(
            bucket=self.bucket,
            key=f"{self.key}/{other.strip('/')}" if self.key else other.strip("/"),
            scheme=self.scheme,
        )

    def __str__(self) -> str:
        return self.uri


class StorageService:
    """Service for object storage operations using S3-compatible API."""

    def __init__(
        self,
        bucket: str | None = None,
        bucket_path: str | None = None,
    ) -> None:
        """
        Initialize storage service.

        Args:
            bucket: Bucket name, defaults to STORAGE_BUCKET
            bucket_path: Root folder inside the bucket, defaults to STORAGE_BUCKET_PATH
        """
        self.endpoint_url = (
            f"https://{settings.STORAGE_ENDPOINT}"
            if settings.STORAGE_USE_SSL
            else f"http://{settings.STORAGE_ENDPOINT}"
        )
        self.access_key = settings.STORAGE_ACCESS_KEY
        self.secret_key = settings.STORAGE_SECRET_KEY
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.root = BlobPath(
            bucket=self.bucket,
            key=(bucket_path if bucket_path is not None else settings.STORAGE_BUCKET_PATH).strip("/"),
            scheme=settings.STORAGE_URI_SCHEME,
        )
        self.session = aioboto3.Session()

    async def _get_client(self):
        """Get S3 client."""
        return self.session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name="us-east-1",
        )

    def blob_path(self, relative_path: str) -> BlobPath:
        """Resolve a path relative to the storage root."""
        return self.root / relative_path

    async def ensure_bucket_exists(self) -> None:
        """Ensure the bucket exists, create if it doesn't."""
        async with await self._get_client() as s3:
            try:
                await s3.head_bucket(Bucket=self.bucket)
            except ClientError:
                await s3.create_bucket(Bucket=self.bucket)

    async def check_connection(self) -> None:
        """Raise if the storage endpoint cannot be reached."""
        async with await self._get_client() as s3:
            await s3.list_buckets()

    async def upload(
        self, relative_path: str, data: bytes, content_type: str | None = None
    ) -> str:
        """
        Upload an object under the storage root.

        Args:
            relative_path: Path relative to the storage root
            data: Object content
            content_type: Optional content type

        Returns:
            URI of the uploaded object
        """
        target = self.blob_path(relative_path)
        async with await self._get_client() as s3:
            extra_args = {}
            if content_type:
                extra_args["ContentType"] = content_type

            await s3.put_object(Bucket=target.bucket, Key=target.key, Body=data, **extra_args)
        logger.info(f"Uploaded {len(data)} bytes to {target}")
        return target.uri

    async def existing_path(self, relative_path: str) -> str | None:
        """
        Look up an object under the storage root.

        Returns:
            URI of the object, or None if it doesn't exist
        """
        target = self.blob_path(relative_path)
        async with await self._get_client() as s3:
            try:
                await s3.head_object(Bucket=target.bucket, Key=target.key)
            except ClientError as e:
                if e.response["Error"]["Code"] in _MISSING_OBJECT_CODES:
                    return None
                raise
        return target.uri

    async def download(self, relative_path: str) -> bytes:
        """
        Download an object under the storage root.

        Raises:
            FileNotFoundError: If the object doesn't exist
        """
        return await self.download_uri(self.blob_path(relative_path).uri)

    async def download_uri(self, uri: str) -> bytes:
        """
        Download an object by its URI.

        Raises:
            FileNotFoundError: If the object doesn't exist
        """
        source = BlobPath.parse(uri)
        async with await self._get_client() as s3:
            try:
                response = await s3.get_object(Bucket=source.bucket, Key=source.key)
                async with response["Body"] as stream:
                    return await stream.read()
            except ClientError as e:
                if e.response["Error"]["Code"] in _MISSING_OBJECT_CODES:
                    raise FileNotFoundError(f"File not found: {uri}")
                raise

    async def list_relative_paths(self, uri: str) -> list[str]:
        """List object keys below ``uri``, relative to it."""
        prefix = BlobPath.parse(uri)
        key_prefix = f"{prefix.key}/" if prefix.key else ""
        relative_paths = []
        async with await self._get_client() as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=prefix.bucket, Prefix=key_prefix):
                for item in page.get("Contents", []):
                    relative_paths.append(item["Key"][len(key_prefix):])
        return relative_paths

    async def download_folder(
        self,
        uri: str,
        target: Path,
        name_filter: Callable[[str], bool] = lambda name: True,
    ) -> list[Path]:
        """
        Download every object below ``uri`` into ``target``, keeping the folder layout.

        Args:
            uri: Folder URI
            target: Local destination folder
            name_filter: Objects whose relative path is rejected are skipped

        Returns:
            Paths of the downloaded files
        """
        downloaded = []
        prefix = BlobPath.parse(uri)
        for relative_path in await self.list_relative_paths(uri):
            if not relative_path or not name_filter(relative_path):
                continue
            destination = target / relative_path
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(await self.download_uri((prefix / relative_path).uri))
            downloaded.append(destination)
        logger.info(f"Downloaded {len(downloaded)} files from {uri} into {target}")
        return downloaded


# Global storage service instance
storage_service = StorageService()
