"""S3 object storage.

Learn: boto3 is synchronous, so every call runs in a worker thread via
asyncio.to_thread to keep the event loop free.

Key layout:
  profile-pictures/{user_id}.{ext}                       (overwritten on change)
  requests/{request_id}/{user_id}_{millis}_{random}.{ext} (never overwritten)

delete_prefix() is best effort: it is used for cleanup after the primary
operation (deleting a request) has already succeeded, so it logs and
returns instead of raising.
"""

import asyncio
import secrets
import time
from dataclasses import dataclass
from typing import Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from tnkr.config import settings
from tnkr.errors import ValidationFailure

logger = structlog.get_logger()


@dataclass
class StoredFile:
    """An uploaded file held in memory (what multipart parsing gives us)."""

    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return "bin"
        return self.filename.rsplit(".", 1)[-1].lower() or "bin"


class ObjectStorage:
    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket or settings.bucket_name
        self.region = region or settings.bucket_region
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=settings.aws_access_key_id or None,
                aws_secret_access_key=settings.aws_secret_access_key or None,
            )
        return self._client

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def upload(self, file: StoredFile, key: str) -> str:
        """Put a blob at key and return its public URL."""
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=file.data,
            ContentType=file.content_type,
        )
        logger.info("storage.uploaded", key=key, size=len(file.data))
        return self.public_url(key)

    async def upload_profile_picture(self, file: StoredFile, user_id: str) -> str:
        return await self.upload(file, f"profile-pictures/{user_id}.{file.extension}")

    async def upload_request_photo(
        self, file: StoredFile, user_id: str, request_id: str
    ) -> str:
        # Unique suffix per photo so several uploads never overwrite each other
        unique_id = f"{user_id}_{int(time.time() * 1000)}_{secrets.token_hex(6)}"
        return await self.upload(file, f"requests/{request_id}/{unique_id}.{file.extension}")

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every object under prefix. Never raises; returns count deleted."""
        try:
            listing = await asyncio.to_thread(
                self.client.list_objects_v2, Bucket=self.bucket, Prefix=prefix
            )
            contents = listing.get("Contents") or []
            if not contents:
                logger.info("storage.nothing_to_delete", prefix=prefix)
                return 0

            await asyncio.to_thread(
                self.client.delete_objects,
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": obj["Key"]} for obj in contents]},
            )
            logger.info("storage.deleted", prefix=prefix, count=len(contents))
            return len(contents)
        except (BotoCoreError, ClientError) as e:
            logger.error("storage.delete_failed", prefix=prefix, error=str(e))
            return 0

    async def delete_request_photos(self, request_id: str) -> int:
        return await self.delete_prefix(f"requests/{request_id}/")


_storage: Optional[ObjectStorage] = None


def get_storage() -> ObjectStorage:
    """FastAPI dependency — the process-wide S3 client wrapper."""
    global _storage
    if _storage is None:
        _storage = ObjectStorage()
    return _storage


async def from_upload(upload, *, images_only: bool = True) -> StoredFile:
    """Read a FastAPI UploadFile fully into a StoredFile."""
    content_type = upload.content_type or "application/octet-stream"
    if images_only and not content_type.startswith("image/"):
        raise ValidationFailure(f"Unsupported file type: {content_type}")
    return StoredFile(
        filename=upload.filename or "upload",
        content_type=content_type,
        data=await upload.read(),
    )
