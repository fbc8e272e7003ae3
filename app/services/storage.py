import logging
import mimetypes
import os
import secrets
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, status
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from app.core.config import settings

logger = logging.getLogger(__name__)


class UploadResult(BaseModel):
    filename: str
    url: str
    size: int


def generate_filename(original_name: str, mime_type: Optional[str] = None) -> str:
    """``toe_<millis>-<random><ext>``, keeping the original extension when there is one."""
    ext = os.path.splitext(original_name or "")[1].lower()
    if not ext and mime_type:
        ext = mimetypes.guess_extension(mime_type) or ""
    return f"toe_{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{ext}"


def is_remote_path(file_path: Optional[str]) -> bool:
    return bool(file_path) and urlparse(file_path).scheme in ("http", "https")


class StorageService:
    """DigitalOcean Spaces (S3 compatible) storage with a local directory fallback."""

    def __init__(self, client=None):
        self.bucket_name = settings.DO_SPACES_BUCKET
        self.endpoint = settings.DO_SPACES_ENDPOINT.rstrip("/")
        self.local_dir = Path(settings.LOCAL_UPLOAD_DIR)
        self._client = client

    def is_configured(self) -> bool:
        if self._client is not None:
            return True
        return bool(settings.DO_SPACES_KEY and settings.DO_SPACES_SECRET and self.bucket_name)

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                region_name=settings.DO_SPACES_REGION,
                aws_access_key_id=settings.DO_SPACES_KEY,
                aws_secret_access_key=settings.DO_SPACES_SECRET,
            )
        return self._client

    def get_public_url(self, filename: str) -> str:
        host = urlparse(self.endpoint).netloc or self.endpoint
        return f"https://{self.bucket_name}.{host}/{filename}"

    def _put_object(self, data: bytes, filename: str, mime_type: str) -> None:
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=filename,
            Body=data,
            ContentType=mime_type,
            ACL="public-read",
        )

    def _write_local(self, data: bytes, filename: str) -> str:
        self.local_dir.mkdir(parents=True, exist_ok=True)
        path = self.local_dir / filename
        path.write_bytes(data)
        return str(path)

    def local_path(self, filename: str) -> Optional[Path]:
        """Existing file in the local upload directory, None for missing files or names escaping it."""
        root = self.local_dir.resolve()
        path = (root / filename).resolve()
        if path.parent != root or not path.is_file():
            return None
        return path

    async def upload_file(self, data: bytes, original_name: str, mime_type: str) -> UploadResult:
        filename = generate_filename(original_name, mime_type)
        if not self.is_configured():
            logger.warning(f"Object storage not configured, storing {filename} locally")
            path = await run_in_threadpool(self._write_local, data, filename)
            return UploadResult(filename=filename, url=path, size=len(data))

        try:
            await run_in_threadpool(self._put_object, data, filename, mime_type)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload {filename} to object storage: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to upload file to storage",
            )
        logger.info(f"Uploaded {filename} ({len(data)} bytes) to object storage")
        return UploadResult(filename=filename, url=self.get_public_url(filename), size=len(data))

    async def delete_file(self, filename: str) -> bool:
        if not self.is_configured():
            return False
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket_name, Key=filename)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete {filename} from object storage: {e}")
            return False
        return True

    async def remove_stored(self, file_path: str, filename: str) -> bool:
        """Delete an image's bytes wherever they live: object storage for URLs, disk otherwise."""
        if is_remote_path(file_path):
            return await self.delete_file(filename)
        path = Path(file_path)
        if not path.exists():
            logger.warning(f"Local image file {file_path} already gone")
            return False
        await run_in_threadpool(path.unlink)
        return True


storage_service = StorageService()
