import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from placeshare.config import settings
from placeshare.errors import InternalError, ValidationError

logger = logging.getLogger(__name__)

MIME_TYPE_MAP = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
}


class ImageStorage:
    """Stores uploaded images and hands back a reference kept on the document."""

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes or settings.MAX_IMAGE_BYTES

    def validate(self, content: bytes, content_type: Optional[str]) -> str:
        """Return the file extension for an acceptable upload."""
        extension = MIME_TYPE_MAP.get((content_type or "").lower())
        if extension is None:
            raise ValidationError("Invalid image type, only PNG and JPEG are accepted.")
        if not content:
            raise ValidationError("The uploaded image is empty.")
        if len(content) > self.max_bytes:
            raise ValidationError(f"Image too large. Maximum size: {self.max_bytes} bytes.")
        return extension

    async def read_upload(self, upload: UploadFile) -> bytes:
        # one byte past the limit is enough for validate() to reject it
        return await upload.read(self.max_bytes + 1)

    async def save_image(self, content: bytes, content_type: Optional[str]) -> str:
        raise NotImplementedError

    async def delete_image(self, ref: str) -> bool:
        raise NotImplementedError


class LocalImageStorage(ImageStorage):
    def __init__(self, upload_dir: Optional[str] = None, max_bytes: Optional[int] = None,
                 url_path: Optional[str] = None):
        super().__init__(max_bytes)
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        # references are relative to the static mount, e.g. uploads/images/<file>
        self.url_path = (url_path or settings.UPLOAD_URL_PATH).strip("/")

    def _write(self, path: Path, content: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def save_image(self, content: bytes, content_type: Optional[str]) -> str:
        extension = self.validate(content, content_type)
        path = self.upload_dir / f"{uuid.uuid4()}.{extension}"
        try:
            await run_in_threadpool(self._write, path, content)
        except OSError as e:
            logger.error(f"Could not write image {path}: {e}")
            raise InternalError("Storing the image failed, please try again.")
        return f"{self.url_path}/{path.name}"

    async def delete_image(self, ref: str) -> bool:
        # Only ever delete inside the upload directory
        path = self.upload_dir / os.path.basename(ref)
        try:
            await run_in_threadpool(os.remove, path)
            return True
        except OSError as e:
            logger.error(f"Error deleting image {path}: {e}")
            return False


class S3ImageStorage(ImageStorage):
    def __init__(self, bucket_name: Optional[str] = None, region: Optional[str] = None,
                 client=None, max_bytes: Optional[int] = None):
        super().__init__(max_bytes)
        self.bucket_name = bucket_name or settings.AWS_S3_BUCKET_NAME
        self.region = region or settings.AWS_REGION

        if not self.bucket_name:
            raise ValueError("AWS_S3_BUCKET_NAME environment variable is required")

        if client is not None:
            self.s3_client = client
            return
        try:
            self.s3_client = boto3.client(
                "s3",
                aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
                region_name=self.region,
            )
        except NoCredentialsError:
            raise ValueError("AWS credentials not found. Please set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY")

    def _url_for(self, key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    def _key_for(self, ref: str) -> str:
        return ref.split(".amazonaws.com/", 1)[-1]

    async def save_image(self, content: bytes, content_type: Optional[str]) -> str:
        extension = self.validate(content, content_type)
        key = f"images/{uuid.uuid4()}.{extension}"
        try:
            await run_in_threadpool(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 upload error: {e}")
            raise InternalError("Storing the image failed, please try again.")
        return self._url_for(key)

    async def delete_image(self, ref: str) -> bool:
        try:
            await run_in_threadpool(self.s3_client.delete_object, Bucket=self.bucket_name, Key=self._key_for(ref))
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting image from S3: {e}")
            return False


async def remove_image_quietly(storage: ImageStorage, ref: Optional[str]):
    """Best-effort cleanup; never raises."""
    if not ref:
        return
    try:
        deleted = await storage.delete_image(ref)
    except Exception:
        logger.exception(f"Unexpected error while deleting image {ref}")
        return
    if not deleted:
        logger.warning(f"Image {ref} was not deleted")


# Provider (singleton) for dependency injection
_image_storage_instance = None


def get_image_storage() -> ImageStorage:
    global _image_storage_instance
    if _image_storage_instance is None:
        if settings.IMAGE_STORAGE == "s3":
            _image_storage_instance = S3ImageStorage()
        else:
            _image_storage_instance = LocalImageStorage()
    return _image_storage_instance
