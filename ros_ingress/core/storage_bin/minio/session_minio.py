import logging
import asyncio
from aiobotocore.session import get_session
from ros_ingress.config import settings

logger = logging.getLogger(__name__)


class MinIOSession:
    """Manages the single long-lived S3 client shared by all in-flight uploads."""

    def __init__(self):
        self.session = get_session()
        self.client = None
        self.client_context = None

    async def connect(self, max_retries: int = 5):
        """Initialize the async S3 client with retries."""
        for attempt in range(max_retries):
            try:
                if self.client is None:
                    self.client_context = self.session.create_client(
                        "s3",
                        endpoint_url=settings.storage_endpoint_url,
                        aws_access_key_id=settings.STORAGE_ACCESS_KEY,
                        aws_secret_access_key=settings.STORAGE_SECRET_KEY,
                        region_name=settings.STORAGE_REGION,
                    )
                    self.client = await self.client_context.__aenter__()
                    logger.info(f"MinIO client initialized for {settings.storage_endpoint_url}")
                return self.client
            except Exception as e:
                logger.error(f"MinIO connection failed: {e}")
                self.client = None
                self.client_context = None
                if attempt < max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                else:
                    raise

    async def close(self):
        """Closes the S3 client session."""
        if self.client_context:
            await self.client_context.__aexit__(None, None, None)
            self.client = None
            self.client_context = None
            logger.info("MinIO client closed")


minio_session = MinIOSession()
