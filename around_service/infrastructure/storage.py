"""
Storage management for S3/MinIO
"""
import boto3
import threading
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from typing import BinaryIO, Optional
import logging

from ..config import settings
from ..domain.repositories import IObjectStorage
from ..exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)


class StorageManager(IObjectStorage):
    """Manage media storage in S3/MinIO"""

    def __init__(self, bucket_name: Optional[str] = None):
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        self._client = None
        self._lock = threading.Lock()

    def _create_client(self):
        config = Config(
            connect_timeout=settings.STORAGE_CONNECT_TIMEOUT,
            read_timeout=settings.STORAGE_READ_TIMEOUT,
            retries={"max_attempts": 2},
        )
        if settings.STORAGE_TYPE == "minio":
            return boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT_URL,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or "minioadmin",
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or "minioadmin",
                region_name=settings.AWS_REGION,
                config=config,
            )
        return boto3.client(
            "s3",
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            region_name=settings.AWS_REGION,
            config=config,
        )

    @property
    def client(self):
        """Shared S3 client, created on first use"""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._create_client()
                    self._ensure_bucket_exists(self._client)
        return self._client

    def _ensure_bucket_exists(self, client):
        """Create bucket if it doesn't exist"""
        try:
            client.head_bucket(Bucket=self.bucket_name)
            logger.info(f"Bucket {self.bucket_name} exists")
        except ClientError:
            try:
                if settings.AWS_REGION == "us-east-1":
                    client.create_bucket(Bucket=self.bucket_name)
                else:
                    client.create_bucket(
                        Bucket=self.bucket_name,
                        CreateBucketConfiguration={'LocationConstraint': settings.AWS_REGION}
                    )
                logger.info(f"Created bucket {self.bucket_name}")
            except ClientError as e:
                logger.error(f"Failed to create bucket: {e}")

    def public_url(self, key: str) -> str:
        """Publicly dereferenceable URL of an object"""
        if settings.MEDIA_BASE_URL:
            return f"{settings.MEDIA_BASE_URL.rstrip('/')}/{key}"
        if settings.STORAGE_TYPE == "minio":
            return f"{settings.S3_ENDPOINT_URL.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"

    def upload_media(
        self,
        stream: BinaryIO,
        key: str,
        content_type: str = "application/octet-stream"
    ) -> str:
        """
        Upload a media stream

        Args:
            stream: File-like object
            key: Object key (path) in storage
            content_type: MIME type

        Returns:
            Public URL of the stored object

        Raises:
            CollaboratorUnavailable: If the upload fails
        """
        try:
            if hasattr(stream, "seek"):
                stream.seek(0)
            self.client.upload_fileobj(
                stream,
                self.bucket_name,
                key,
                ExtraArgs={'ContentType': content_type}
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise CollaboratorUnavailable("object store", f"failed to upload {key}") from e

        logger.info(f"Uploaded {key} to {self.bucket_name}")
        return self.public_url(key)


# Global storage instance
storage = StorageManager()
