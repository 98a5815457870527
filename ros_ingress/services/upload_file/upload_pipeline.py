import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import BinaryIO, Dict, List, Optional
from ros_ingress.core.logger_setup import with_upload_context
from ros_ingress.core.metrics import MetricsSink, NullMetrics
from ros_ingress.models.identity import RequestContext
from ros_ingress.models.payload import ExtractedArchive, ExtractedPayload
from ros_ingress.models.storage import ObjectReference, UploadDescriptor
from ros_ingress.schemas.events import VALIDATION_SUCCESS, NotificationEvent, NotificationMetadata
from ros_ingress.schemas.manifest import Manifest
from ros_ingress.services.upload_file.archive_extractor import ArchiveExtractor
from ros_ingress.services.upload_file.errors import DeadlineExceededError, IngressError
from ros_ingress.services.upload_file.event_notifier import EventNotifier
from ros_ingress.services.upload_file.manifest_resolver import ManifestResolver
from ros_ingress.services.upload_file.object_uploader import ObjectUploader

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    RECEIVED = "received"
    EXTRACTED = "extracted"
    MANIFEST_RESOLVED = "manifest_resolved"
    FILES_UPLOADED = "files_uploaded"
    EVENT_PUBLISHED = "event_published"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineResult:
    request_id: str
    manifest: Manifest
    references: List[ObjectReference]
    event: NotificationEvent
    validation_delivered: bool
    state: PipelineState = PipelineState.COMPLETED


class UploadPipeline:
    """
    Runs one upload request: extract, resolve the manifest, store the ROS
    files, publish the ROS event, then send the best-effort validation message.

    Any failure before the ROS event is acknowledged fails the request. The
    request directory is released on every exit path. Nothing is retried here;
    retries belong to the storage and Kafka client configuration.
    """

    def __init__(
        self,
        extractor: ArchiveExtractor,
        resolver: ManifestResolver,
        uploader: ObjectUploader,
        notifier: EventNotifier,
        metrics: Optional[MetricsSink] = None,
    ):
        self.extractor = extractor
        self.resolver = resolver
        self.uploader = uploader
        self.notifier = notifier
        self.metrics = metrics or NullMetrics()

    @classmethod
    def from_settings(cls, settings, store, publisher, metrics: Optional[MetricsSink] = None) -> "UploadPipeline":
        metrics = metrics or NullMetrics()
        return cls(
            extractor=ArchiveExtractor(settings.UPLOAD_TEMP_DIR),
            resolver=ManifestResolver(),
            uploader=ObjectUploader(
                store,
                path_prefix=settings.STORAGE_PATH_PREFIX,
                url_expiration=settings.STORAGE_URL_EXPIRATION,
                metrics=metrics,
            ),
            notifier=EventNotifier(publisher, settings.KAFKA_ROS_TOPIC, settings.KAFKA_VALIDATION_TOPIC, metrics=metrics),
            metrics=metrics,
        )

    def extract_payload(self, stream: BinaryIO, request_id: str) -> ExtractedPayload:
        """Extracts the archive and resolves its manifest, removing the directory on failure."""
        archive = self.extractor.extract(stream, request_id)
        try:
            return self.resolver.resolve(archive)
        except BaseException:
            archive.cleanup()
            raise

    async def process(self, stream: BinaryIO, request_id: str, context: RequestContext, content_type: str = "") -> PipelineResult:
        log = with_upload_context(logger, request_id, context.account, context.org_id)
        state = PipelineState.RECEIVED
        archive: Optional[ExtractedArchive] = None
        try:
            archive = await self._extract(stream, request_id, context)
            state = self._advance(log, PipelineState.EXTRACTED)

            payload = await asyncio.to_thread(self.resolver.resolve, archive)
            state = self._advance(log, PipelineState.MANIFEST_RESOLVED)
            log.info(f"Found {len(payload.selected_files)} ROS files in payload")

            references = await self._upload(payload, context)
            state = self._advance(log, PipelineState.FILES_UPLOADED)

            event = self.build_event(request_id, payload.manifest, references, context)
            await self.notifier.publish_event(event, context.deadline)
            state = self._advance(log, PipelineState.EVENT_PUBLISHED)
        except IngressError as exc:
            exc.state = state.value
            log.error(f"Upload processing failed after state '{state.value}' [{exc.reason}]: {exc}")
            self._advance(log, PipelineState.FAILED)
            self.metrics.upload_finished("error", content_type)
            raise
        finally:
            # Only a directory this call created is released
            if archive is not None:
                self.extractor.release(archive.request_id)

        delivered = await self.notifier.notify_validation(request_id, VALIDATION_SUCCESS, context.deadline)
        self._advance(log, PipelineState.COMPLETED)
        self.metrics.upload_finished("success", content_type)
        return PipelineResult(
            request_id=request_id,
            manifest=payload.manifest,
            references=references,
            event=event,
            validation_delivered=delivered,
        )

    async def _extract(self, stream: BinaryIO, request_id: str, context: RequestContext) -> ExtractedArchive:
        if context.expired():
            raise DeadlineExceededError("request deadline exceeded before extraction")
        stop_event = threading.Event()
        task = asyncio.ensure_future(asyncio.to_thread(self.extractor.extract, stream, request_id, stop_event))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=context.remaining())
        except asyncio.TimeoutError as exc:
            await self._abandon(task, stop_event)
            raise DeadlineExceededError("request deadline exceeded during extraction") from exc
        except asyncio.CancelledError:
            await self._abandon(task, stop_event)
            raise

    async def _abandon(self, task: asyncio.Future, stop_event: threading.Event):
        # The worker thread must stop writing before the directory is released
        stop_event.set()
        results = await asyncio.gather(task, return_exceptions=True)
        if isinstance(results[0], ExtractedArchive):
            self.extractor.release(results[0].request_id)

    async def _upload(self, payload: ExtractedPayload, context: RequestContext) -> List[ObjectReference]:
        descriptor = self.descriptor_for(payload.manifest, context)
        metadata = self.object_metadata(payload.manifest, payload.request_id)
        if context.expired():
            raise DeadlineExceededError("request deadline exceeded before upload")
        try:
            return await asyncio.wait_for(
                self.uploader.upload_all(descriptor, payload.selected_files, metadata),
                timeout=context.remaining(),
            )
        except asyncio.TimeoutError as exc:
            raise DeadlineExceededError("request deadline exceeded during upload") from exc

    @staticmethod
    def descriptor_for(manifest: Manifest, context: RequestContext) -> UploadDescriptor:
        report_date = manifest.date or datetime.now(timezone.utc)
        return UploadDescriptor(
            schema=context.schema,
            source_id=manifest.cluster_id,
            date=report_date.date().isoformat(),
        )

    @staticmethod
    def object_metadata(manifest: Manifest, request_id: str) -> Dict[str, str]:
        return {
            "ManifestId": manifest.uuid,
            "RequestId": request_id,
            "ClusterUuid": manifest.cluster_id,
            "OperatorVersion": manifest.operator_version,
        }

    @staticmethod
    def build_event(request_id: str, manifest: Manifest, references: List[ObjectReference], context: RequestContext) -> NotificationEvent:
        return NotificationEvent(
            request_id=request_id,
            credential=context.credential,
            metadata=NotificationMetadata(
                account=context.account,
                org_id=context.org_id,
                source_id=manifest.cluster_id,
                provider_id=manifest.cluster_id,
                cluster_id=manifest.cluster_id,
                cluster_alias=manifest.display_alias,
                operator_version=manifest.operator_version,
            ),
            retrieval_locators=[reference.locator for reference in references],
            storage_keys=[reference.key for reference in references],
        )

    @staticmethod
    def _advance(log: logging.LoggerAdapter, state: PipelineState) -> PipelineState:
        log.debug(f"Upload pipeline entered state '{state.value}'")
        return state
