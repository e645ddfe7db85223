import asyncio
import logging
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from services.errors import NotFound, StoreError, UploadFailed
from utils.blocking import call_blocking

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in NOT_FOUND_CODES


class S3Service:
    def __init__(
            self,
            bucket_name: str,
            client: boto3.client,
            public_base_url: Optional[str] = None,
            timeout: Optional[float] = None,
            url_expiration_seconds: int = 3600,
    ):
        """
        Initialize the S3 service with bucket name and a configured boto3 client
        """
        self.bucket_name = bucket_name
        self.s3 = client
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.timeout = timeout
        self.url_expiration_seconds = url_expiration_seconds

    async def put(
            self,
            key: str,
            data: bytes,
            content_type: str = "image/jpeg",
            metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Upload bytes under a key, overwriting any existing object

        Args:
            key: The S3 key of the object
            data: The object contents
            content_type: MIME type stored with the object
            metadata: Optional user metadata, e.g. the owning user id

        Returns:
            A retrievable URL for the uploaded object

        Raises:
            UploadFailed: If the upload errors or times out
        """
        try:
            await call_blocking(
                self.s3.put_object,
                timeout=self.timeout,
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload error for %s: %s", key, e)
            raise UploadFailed(f"Failed to upload {key}", details={"key": key}) from e
        except asyncio.TimeoutError as e:
            logger.error("S3 upload timed out for %s", key)
            raise UploadFailed(f"Upload of {key} timed out", details={"key": key}) from e

        return self.get_url(key)

    async def delete(self, key: str) -> None:
        """
        Delete an object by key

        S3 reports success for missing keys, so existence is checked first to
        let callers tell an absent object apart from a deleted one.

        Raises:
            NotFound: If no object exists under the key
            StoreError: If the request errors or times out
        """
        try:
            await call_blocking(self.s3.head_object, timeout=self.timeout, Bucket=self.bucket_name, Key=key)
            await call_blocking(self.s3.delete_object, timeout=self.timeout, Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise NotFound("Blob", key) from e
            logger.error("S3 delete error for %s: %s", key, e)
            raise StoreError(f"Failed to delete {key}", details={"key": key}) from e
        except BotoCoreError as e:
            logger.error("S3 delete error for %s: %s", key, e)
            raise StoreError(f"Failed to delete {key}", details={"key": key}) from e
        except asyncio.TimeoutError as e:
            logger.error("S3 delete timed out for %s", key)
            raise StoreError(f"Delete of {key} timed out", details={"key": key}) from e

    def get_url(self, key: str) -> str:
        """
        Build a retrievable URL for a key

        Uses the public base URL when configured, otherwise a presigned URL.

        Raises:
            StoreError: If URL generation fails
        """
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"

        try:
            return self.s3.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': key
                },
                ExpiresIn=self.url_expiration_seconds
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 presign error for %s: %s", key, e)
            raise StoreError(f"Failed to build URL for {key}", details={"key": key}) from e
