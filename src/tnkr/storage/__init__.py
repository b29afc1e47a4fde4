"""Object storage for profile pictures and request photos (S3)."""

from tnkr.storage.s3 import ObjectStorage, StoredFile, from_upload, get_storage

__all__ = ["ObjectStorage", "StoredFile", "from_upload", "get_storage"]
