import asyncio
import logging
from botocore.exceptions import ClientError
from ros_ingress.models.storage import UploadRequest

logger = logging.getLogger(__name__)

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}
_BUCKET_RACE_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class MinIOHandler:
    """
    Object store backed by a shared aiobotocore S3 client.

    The bucket is created lazily on first use. Creation is idempotent: losing
    the race to another replica creating the same bucket counts as success.
    """

    def __init__(self, client, bucket_name: str, region: str = "us-east-1"):
        self.client = client
        self.bucket_name = bucket_name
        self.region = region
        self._bucket_ready = False
        self._bucket_lock = asyncio.Lock()

    async def ensure_bucket_exists(self):
        if self._bucket_ready:
            return
        async with self._bucket_lock:
            if self._bucket_ready:
                return
            try:
                await self.client.head_bucket(Bucket=self.bucket_name)
                logger.info(f"Bucket '{self.bucket_name}' already exists.")
            except ClientError as exc:
                if _error_code(exc) not in _MISSING_BUCKET_CODES:
                    logger.error(f"Error checking bucket {self.bucket_name}: {exc}")
                    raise
                await self._create_bucket()
            self._bucket_ready = True

    async def _create_bucket(self):
        kwargs = {"Bucket": self.bucket_name}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            await self.client.create_bucket(**kwargs)
            logger.info(f"Bucket '{self.bucket_name}' created successfully.")
        except ClientError as exc:
            if _error_code(exc) in _BUCKET_RACE_CODES:
                logger.info(f"Bucket '{self.bucket_name}' was created concurrently.")
                return
            raise

    async def put_object(self, request: UploadRequest) -> str:
        """Stores the object and returns its ETag."""
        await self.ensure_bucket_exists()
        response = await self.client.put_object(
            Bucket=self.bucket_name,
            Key=request.key,
            Body=request.body,
            ContentLength=request.size,
            ContentType=request.content_type,
            Metadata=request.metadata,
        )
        logger.debug(f"Successfully uploaded {request.size} bytes to {request.key}")
        return str(response.get("ETag", "")).strip('"')

    async def generate_presigned_url(self, key: str, expires_in: int) -> str:
        return await self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=expires_in,
        )

    async def health_check(self):
        """Raises when the bucket cannot be reached."""
        await self.client.head_bucket(Bucket=self.bucket_name)
