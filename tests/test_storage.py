"""Object storage tests — boto3 client replaced by a MagicMock."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from tnkr.storage.s3 import ObjectStorage, StoredFile


def storage_with(client) -> ObjectStorage:
    return ObjectStorage(bucket="tnkr-test", region="us-east-2", client=client)


def test_extension():
    assert StoredFile("Photo.JPG", "image/jpeg", b"").extension == "jpg"
    assert StoredFile("noext", "image/jpeg", b"").extension == "bin"


@pytest.mark.asyncio
async def test_upload_profile_picture_returns_public_url():
    client = MagicMock()
    url = await storage_with(client).upload_profile_picture(
        StoredFile("me.png", "image/png", b"png"), "u1"
    )

    assert url == "https://tnkr-test.s3.us-east-2.amazonaws.com/profile-pictures/u1.png"
    kwargs = client.put_object.call_args.kwargs
    assert kwargs["Key"] == "profile-pictures/u1.png"
    assert kwargs["ContentType"] == "image/png"


@pytest.mark.asyncio
async def test_request_photo_keys_are_unique():
    client = MagicMock()
    storage = storage_with(client)
    photo = StoredFile("shoe.jpg", "image/jpeg", b"x")

    first = await storage.upload_request_photo(photo, "u1", "r1")
    second = await storage.upload_request_photo(photo, "u1", "r1")

    assert first != second
    assert "/requests/r1/u1_" in first


@pytest.mark.asyncio
async def test_delete_prefix():
    client = MagicMock()
    client.list_objects_v2.return_value = {
        "Contents": [{"Key": "requests/r1/a.jpg"}, {"Key": "requests/r1/b.jpg"}]
    }

    assert await storage_with(client).delete_request_photos("r1") == 2
    client.delete_objects.assert_called_once_with(
        Bucket="tnkr-test",
        Delete={"Objects": [{"Key": "requests/r1/a.jpg"}, {"Key": "requests/r1/b.jpg"}]},
    )


@pytest.mark.asyncio
async def test_delete_prefix_empty():
    client = MagicMock()
    client.list_objects_v2.return_value = {}
    assert await storage_with(client).delete_prefix("requests/r1/") == 0
    client.delete_objects.assert_not_called()


@pytest.mark.asyncio
async def test_delete_prefix_failure_is_swallowed():
    client = MagicMock()
    client.list_objects_v2.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "nope"}}, "ListObjectsV2"
    )
    assert await storage_with(client).delete_prefix("requests/r1/") == 0
