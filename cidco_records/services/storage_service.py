"""
Storage Service - read access to the evidence bucket (S3 or MinIO)

The bucket is populated by the scanning team; this service only lists
objects and mints time-limited presigned GET URLs for them. boto3 is
blocking, so every call is pushed to the default thread pool.
"""

import asyncio
from functools import partial
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cidco_records.core.config import settings
from cidco_records.core.logging_config import logger


# Errors that mean "storage did not answer usefully"
STORAGE_ERRORS = (ClientError, BotoCoreError)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageService:
    """Lists and signs objects in the evidence bucket"""

    def __init__(self, bucket_name: Optional[str] = None, client=None):
        self._client = client
        self._bucket_name = bucket_name or settings.S3_BUCKET_NAME
        logger.info(f"StorageService initialized with bucket: {self._bucket_name}")

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    def _get_client(self):
        """Lazy initialization of S3/MinIO client"""
        if self._client is None:
            if settings.USE_MINIO:
                self._client = boto3.client(
                    's3',
                    endpoint_url=f"http://{settings.MINIO_ENDPOINT}",
                    aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                    config=Config(
                        signature_version='s3v4',
                        s3={'addressing_style': 'path'}
                    ),
                    region_name=settings.AWS_REGION
                )
            elif settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
                self._client = boto3.client(
                    's3',
                    aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                    region_name=settings.AWS_REGION,
                    config=Config(signature_version='s3v4'),
                )
            else:
                # Use IAM role credentials (automatic in ECS/EC2)
                self._client = boto3.client(
                    's3',
                    region_name=settings.AWS_REGION,
                    config=Config(signature_version='s3v4'),
                )
                logger.info("S3 client using IAM role credentials")
        return self._client

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _list_keys_sync(self, prefix: str) -> List[str]:
        """Keys directly under prefix (no recursion into sub-folders)"""
        client = self._get_client()
        keys: List[str] = []
        paginator = client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self._bucket_name, Prefix=prefix, Delimiter="/"):
            for obj in page.get("Contents", []) or []:
                key = obj["Key"]
                if not key.endswith("/"):
                    keys.append(key)
        return keys

    def _exists_sync(self, key: str) -> bool:
        try:
            self._get_client().head_object(Bucket=self._bucket_name, Key=key)
            return True
        except ClientError as e:
            error_code = str(e.response.get('Error', {}).get('Code', ''))
            if error_code in _MISSING_OBJECT_CODES:
                return False
            raise

    def _presign_sync(self, key: str, expiration: int) -> str:
        return self._get_client().generate_presigned_url(
            'get_object',
            Params={'Bucket': self._bucket_name, 'Key': key},
            ExpiresIn=expiration,
        )

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------

    async def list_keys(self, prefix: str) -> List[str]:
        return await self._run(self._list_keys_sync, prefix)

    async def sign_url(self, key: str, expiration: int = settings.SIGNED_URL_EXPIRY) -> str:
        """Presigned GET URL; does not check that the object exists"""
        return await self._run(self._presign_sync, key, expiration)

    async def sign_url_if_exists(self, key: str, expiration: int = settings.SIGNED_URL_EXPIRY) -> Optional[str]:
        """Presigned GET URL, or None when the object is not in the bucket"""
        if not await self._run(self._exists_sync, key):
            return None
        return await self.sign_url(key, expiration)
