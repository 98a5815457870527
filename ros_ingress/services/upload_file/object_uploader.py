import asyncio
import logging
import os
import time
from typing import Dict, List, Optional, Protocol
from ros_ingress.core.metrics import MetricsSink, NullMetrics
from ros_ingress.models.payload import SelectedFile
from ros_ingress.models.storage import ObjectReference, UploadDescriptor, UploadRequest
from ros_ingress.services.upload_file.errors import UploadError

logger = logging.getLogger(__name__)

ROS_CONTENT_TYPE = "text/csv"


class ObjectStore(Protocol):
    async def put_object(self, request: UploadRequest) -> str: ...

    async def generate_presigned_url(self, key: str, expires_in: int) -> str: ...


def generate_upload_path(schema: str, source_id: str, date: str, filename: str) -> str:
    return f"{schema}/source={source_id}/date={date}/{filename}"


class ObjectUploader:
    """Stores selected ROS files under deterministic keys and returns their references."""

    def __init__(self, store: ObjectStore, path_prefix: str = "", url_expiration: int = 172800, metrics: Optional[MetricsSink] = None):
        self.store = store
        self.path_prefix = path_prefix.strip("/")
        self.url_expiration = url_expiration
        self.metrics = metrics or NullMetrics()

    def storage_key(self, descriptor: UploadDescriptor, filename: str) -> str:
        key = generate_upload_path(descriptor.schema, descriptor.source_id, descriptor.date, filename)
        if self.path_prefix:
            return f"{self.path_prefix}/{key}"
        return key

    async def upload(self, descriptor: UploadDescriptor, selected_file: SelectedFile, metadata: Dict[str, str]) -> ObjectReference:
        key = self.storage_key(descriptor, selected_file.name)
        try:
            size = await asyncio.to_thread(os.path.getsize, selected_file.path)
            handle = open(selected_file.path, "rb")
        except OSError as exc:
            raise UploadError(selected_file.name, f"failed to read file: {exc}") from exc

        start = time.monotonic()
        try:
            # The open handle is streamed as the request body
            with handle:
                etag = await self.store.put_object(UploadRequest(
                    key=key,
                    body=handle,
                    size=size,
                    content_type=ROS_CONTENT_TYPE,
                    metadata=metadata,
                ))
        except Exception as exc:
            self.metrics.storage_operation("upload", "error", time.monotonic() - start)
            logger.error(f"Failed to upload {selected_file.name} to {key}: {exc}")
            raise UploadError(selected_file.name, str(exc)) from exc
        self.metrics.storage_operation("upload", "success", time.monotonic() - start)

        locator = await self.presign(key)
        logger.info(f"Successfully uploaded ROS file {selected_file.name} to {key} ({size} bytes)")
        return ObjectReference(key=key, size=size, locator=locator, etag=etag)

    async def presign(self, key: str) -> str:
        """Returns a time-limited GET URL, or an empty string when signing fails."""
        start = time.monotonic()
        try:
            url = await self.store.generate_presigned_url(key, self.url_expiration)
        except Exception as exc:
            self.metrics.storage_operation("presign", "error", time.monotonic() - start)
            logger.warning(f"Failed to generate presigned URL for {key}: {exc}")
            return ""
        self.metrics.storage_operation("presign", "success", time.monotonic() - start)
        return url

    async def upload_all(self, descriptor: UploadDescriptor, files: List[SelectedFile], metadata: Dict[str, str]) -> List[ObjectReference]:
        # Fail fast: objects stored before a failure are left in place
        references = []
        for selected_file in files:
            references.append(await self.upload(descriptor, selected_file, metadata))
        return references
