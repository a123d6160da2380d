"""S3 storage operations for quotation PDFs and compliance evidence."""

import logging
from typing import Optional, Tuple

import boto3
from botocore.exceptions import ClientError

from ..errors import NotFoundError, StoreError
from .base import BlobStore

logger = logging.getLogger(__name__)


class S3BlobStore(BlobStore):
    """Manages blob storage in a single S3 bucket."""

    def __init__(self, bucket_name: str, s3_client=None, region: Optional[str] = None):
        """Initialize S3 store.

        Args:
            bucket_name: S3 bucket name
            s3_client: Optional S3 client (for testing)
            region: AWS region for the default client
        """
        self.bucket_name = bucket_name
        self.s3_client = s3_client or boto3.client("s3", region_name=region)

    def _split_url(self, url: str) -> Tuple[str, str]:
        if url.startswith("s3://"):
            bucket, _, key = url[len("s3://"):].partition("/")
            return bucket, key
        return self.bucket_name, url

    def put(self, data: bytes, path: str, content_type: str = "application/octet-stream") -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            logger.error(f"Error storing s3://{self.bucket_name}/{path}: {str(e)}")
            raise StoreError(f"Failed to store {path}", original_error=e)

        logger.info(f"Stored {len(data)} bytes at s3://{self.bucket_name}/{path}")
        return f"s3://{self.bucket_name}/{path}"

    def get(self, url: str) -> bytes:
        bucket, key = self._split_url(url)
        try:
            response = self.s3_client.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                logger.warning(f"Object not found in S3: {url}")
                raise NotFoundError(f"Blob not found: {url}", identifier=url)
            logger.error(f"Error reading {url}: {str(e)}")
            raise StoreError(f"Failed to read {url}", original_error=e)

    def generate_presigned_url(self, url: str, expiration: int = 3600) -> str:
        """Generate a presigned URL for time-limited download access.

        Args:
            url: ``s3://`` URL returned by ``put``
            expiration: URL expiration in seconds (default 1 hour)

        Returns:
            Presigned HTTPS URL
        """
        bucket, key = self._split_url(url)
        try:
            presigned = self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expiration,
            )
        except ClientError as e:
            logger.error(f"Error generating presigned URL for {url}: {str(e)}")
            raise StoreError(f"Failed to presign {url}", original_error=e)

        logger.info(f"Generated presigned URL for {key}, expires in {expiration}s")
        return presigned
