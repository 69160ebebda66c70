import logging
import uuid
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from doctrack.config import settings

logger = logging.getLogger(__name__)

_CONTENT_TYPE_EXTENSIONS = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "image/png": "png",
    "image/jpeg": "jpg",
}


class StorageService:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not StorageService.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def generate_storage_key(content_type: str) -> str:
        extension = _CONTENT_TYPE_EXTENSIONS.get(content_type, "bin")
        return f"documents/{uuid.uuid4().hex}.{extension}"

    @staticmethod
    def object_url(storage_key: str) -> str:
        base = settings.s3_public_base_url or (
            f"{settings.s3_endpoint_url.rstrip('/')}/{settings.s3_bucket_name}"
        )
        return f"{base.rstrip('/')}/{storage_key}"

    @staticmethod
    def key_from_url(url: str) -> str:
        base = settings.s3_public_base_url.rstrip("/")
        if base and url.startswith(base + "/"):
            return url[len(base) + 1 :]
        path = urlparse(url).path.lstrip("/")
        bucket_prefix = f"{settings.s3_bucket_name}/"
        if path.startswith(bucket_prefix):
            return path[len(bucket_prefix) :]
        return path

    @staticmethod
    def upload_object(data: bytes, content_type: str) -> str:
        client = StorageService._get_client()
        key = StorageService.generate_storage_key(content_type)
        client.put_object(
            Bucket=settings.s3_bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        logger.info("Uploaded object %s (%d bytes)", key, len(data))
        return StorageService.object_url(key)

    @staticmethod
    def delete_object(url: str) -> bool:
        """Best-effort delete. Failures are logged, never raised."""
        if not url:
            return False
        try:
            client = StorageService._get_client()
            key = StorageService.key_from_url(url)
            client.delete_object(Bucket=settings.s3_bucket_name, Key=key)
        except (BotoCoreError, ClientError, RuntimeError) as e:
            logger.warning("Failed to delete stored object %s: %s", url, e)
            return False
        logger.info("Deleted stored object %s", key)
        return True


storage = StorageService()


def schedule_delete(url: str | None) -> None:
    """Queue removal of a stored file. Fire-and-forget."""
    if not url:
        return
    try:
        from doctrack.tasks.storage import delete_attachment

        delete_attachment.delay(url)
    except Exception as e:
        logger.exception("Failed to schedule deletion of %s: %s", url, e)
