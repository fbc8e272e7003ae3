import re
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from fastapi import HTTPException

from app.services.storage import StorageService, generate_filename, is_remote_path


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def storage(s3_client):
    service = StorageService(client=s3_client)
    service.bucket_name = "toeqbank-test"
    service.endpoint = "https://nyc3.digitaloceanspaces.com"
    return service


def test_generated_filenames_keep_extension():
    name = generate_filename("Mitral Valve.PNG")
    assert re.fullmatch(r"toe_\d+-\d+\.png", name)
    assert generate_filename("clip", "video/mp4").endswith(".mp4")


def test_remote_paths():
    assert is_remote_path("https://bucket.nyc3.digitaloceanspaces.com/toe_1.png")
    assert not is_remote_path("uploads/images/toe_1.png")
    assert not is_remote_path(None)


async def test_upload_puts_a_public_object(storage, s3_client):
    result = await storage.upload_file(b"abc", "echo.png", "image/png")

    kwargs = s3_client.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "toeqbank-test"
    assert kwargs["ACL"] == "public-read"
    assert kwargs["ContentType"] == "image/png"
    assert result.size == 3
    assert result.url == f"https://toeqbank-test.nyc3.digitaloceanspaces.com/{result.filename}"


async def test_upload_failure_is_a_gateway_error(storage, s3_client):
    s3_client.put_object.side_effect = ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "PutObject")
    with pytest.raises(HTTPException) as exc:
        await storage.upload_file(b"abc", "echo.png", "image/png")
    assert exc.value.status_code == 502


async def test_remove_stored_branches_on_path(storage, s3_client, tmp_path):
    assert await storage.remove_stored("https://toeqbank-test.nyc3.digitaloceanspaces.com/toe_1.png", "toe_1.png")
    s3_client.delete_object.assert_called_once_with(Bucket="toeqbank-test", Key="toe_1.png")

    local = tmp_path / "toe_2.png"
    local.write_bytes(b"x")
    assert await storage.remove_stored(str(local), "toe_2.png")
    assert not local.exists()
    assert not await storage.remove_stored(str(local), "toe_2.png")


async def test_unconfigured_storage_falls_back_to_local_directory(tmp_path, monkeypatch):
    from app.core.config import settings
    monkeypatch.setattr(settings, "DO_SPACES_KEY", None)
    service = StorageService()
    service.local_dir = tmp_path

    result = await service.upload_file(b"frame", "still.jpg", "image/jpeg")

    assert not service.is_configured()
    assert (tmp_path / result.filename).read_bytes() == b"frame"
    assert result.url == str(tmp_path / result.filename)
    assert await service.delete_file(result.filename) is False


def test_local_path_stays_inside_the_upload_directory(tmp_path):
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    (uploads / "toe_1.png").write_bytes(b"png")
    (tmp_path / "secret.txt").write_text("nope")
    service = StorageService(client=MagicMock())
    service.local_dir = uploads

    assert service.local_path("toe_1.png") == (uploads / "toe_1.png").resolve()
    assert service.local_path("toe_2.png") is None
    assert service.local_path("../secret.txt") is None
    assert service.local_path("..") is None
