"""S3 storage utilities for resume files."""

import aioboto3
from typing import Optional, BinaryIO
import logging

from core.config import settings

logger = logging.getLogger(__name__)


def _get_credentials() -> dict:
    """
    Session arguments from settings.

    Keys are only passed when configured so the default AWS credential chain
    (instance role, shared config) still applies otherwise.
    """
    credentials = {"region_name": settings.aws_region}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        credentials["aws_access_key_id"] = settings.aws_access_key_id
        credentials["aws_secret_access_key"] = settings.aws_secret_access_key
    return credentials


class S3Storage:
    """S3 storage handler for async operations."""

    def __init__(self, bucket_name: Optional[str] = None):
        """
        Initialize S3 storage.

        Args:
            bucket_name: S3 bucket name (defaults to RESUME_BUCKET)
        """
        self.bucket_name = bucket_name or settings.resume_bucket
        if not self.bucket_name:
            raise ValueError("S3 bucket name not provided and RESUME_BUCKET not set")

        self.credentials = _get_credentials()

    async def upload(
        self,
        file_data: bytes | BinaryIO,
        key: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Upload a file, replacing any object already stored under the key.

        Args:
            file_data: File data (bytes or file-like object)
            key: S3 object key (path)
            content_type: MIME type of the file

        Returns:
            S3 object key
        """
        session = aioboto3.Session(**self.credentials)
        async with session.client("s3") as client:
            upload_args = {
                "Bucket": self.bucket_name,
                "Key": key,
                "Body": file_data if isinstance(file_data, bytes) else file_data.read(),
            }
            if content_type:
                upload_args["ContentType"] = content_type

            await client.put_object(**upload_args)

            logger.info(f"Uploaded file to S3: {self.bucket_name}/{key}")
            return key

    async def delete(self, key: str) -> bool:
        """
        Delete a file. Deleting a missing key is not an error in S3.

        Args:
            key: S3 object key

        Returns:
            True if deleted successfully
        """
        session = aioboto3.Session(**self.credentials)
        async with session.client("s3") as client:
            await client.delete_object(Bucket=self.bucket_name, Key=key)

            logger.info(f"Deleted file from S3: {self.bucket_name}/{key}")
            return True

    def public_url(self, key: str) -> str:
        """
        Publicly resolvable URL for an object.

        Uses S3_PUBLIC_BASE_URL (a CDN or website endpoint) when set, else
        the virtual-hosted S3 URL.
        """
        if settings.s3_public_base_url:
            return f"{settings.s3_public_base_url.rstrip('/')}/{key}"
        region = self.credentials["region_name"]
        return f"https://{self.bucket_name}.s3.{region}.amazonaws.com/{key}"


def get_resume_storage() -> S3Storage:
    """FastAPI dependency for the resume bucket."""
    return S3Storage(settings.resume_bucket)
