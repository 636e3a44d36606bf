"""S3 storage for resumes."""

import aioboto3
from typing import Optional
import logging

from core.config import settings

logger = logging.getLogger(__name__)


def _get_credentials() -> dict:
    """Credentials from settings, falling back to the default AWS chain."""
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
            bucket_name: S3 bucket name (uses AWS_S3_BUCKET if not provided)
        """
        self.bucket_name = bucket_name or settings.aws_s3_bucket
        if not self.bucket_name:
            raise ValueError("S3 bucket name not provided and AWS_S3_BUCKET not set")
        self.credentials = _get_credentials()

    def _session(self) -> aioboto3.Session:
        return aioboto3.Session(**self.credentials)

    async def upload(self, file_data: bytes, key: str, content_type: Optional[str] = None) -> str:
        """
        Upload file to S3.

        Returns:
            Object URL
        """
        async with self._session().client("s3") as client:
            upload_args = {"Bucket": self.bucket_name, "Key": key, "Body": file_data}
            if content_type:
                upload_args["ContentType"] = content_type
            await client.put_object(**upload_args)

        logger.info(f"Uploaded file to S3: {self.bucket_name}/{key}")
        return self.get_url(key)

    async def download(self, key: str) -> bytes:
        async with self._session().client("s3") as client:
            response = await client.get_object(Bucket=self.bucket_name, Key=key)
            async with response["Body"] as stream:
                return await stream.read()

    async def delete(self, key: str) -> bool:
        async with self._session().client("s3") as client:
            await client.delete_object(Bucket=self.bucket_name, Key=key)
        logger.info(f"Deleted file from S3: {self.bucket_name}/{key}")
        return True

    async def exists(self, key: str) -> bool:
        async with self._session().client("s3") as client:
            try:
                await client.head_object(Bucket=self.bucket_name, Key=key)
                return True
            except client.exceptions.ClientError:
                return False

    async def get_presigned_url(self, key: str, expiration: int = 3600) -> str:
        """Time-limited download link for a stored resume."""
        async with self._session().client("s3") as client:
            return await client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expiration,
            )

    def get_url(self, key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.credentials['region_name']}.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        prefix = self.get_url("")
        return url[len(prefix):] if url.startswith(prefix) else None
