import asyncio
import logging
import time
from typing import Any, List, Optional, Protocol, Tuple
from ros_ingress.core.metrics import MetricsSink, NullMetrics
from ros_ingress.schemas.events import NotificationEvent, ValidationEvent
from ros_ingress.services.upload_file.errors import DeliveryError, DeliveryTimeoutError, ValidationDeliveryError

logger = logging.getLogger(__name__)

EVENT_DELIVERY_TIMEOUT = 30.0
VALIDATION_DELIVERY_TIMEOUT = 10.0


class EventPublisher(Protocol):
    async def publish(self, topic: str, key: bytes, value: bytes, headers: List[Tuple[str, bytes]]) -> Any: ...


class EventNotifier:
    """
    Publishes the ROS notification event and the upload validation event.

    Both wait for the broker acknowledgement, bounded by a fixed timeout and by
    the request deadline when one is given. A timeout is reported as
    ``DeliveryTimeoutError``, a broker rejection as ``DeliveryError``.
    """

    def __init__(
        self,
        publisher: EventPublisher,
        ros_topic: str,
        validation_topic: str,
        metrics: Optional[MetricsSink] = None,
        event_timeout: float = EVENT_DELIVERY_TIMEOUT,
        validation_timeout: float = VALIDATION_DELIVERY_TIMEOUT,
    ):
        self.publisher = publisher
        self.ros_topic = ros_topic
        self.validation_topic = validation_topic
        self.metrics = metrics or NullMetrics()
        self.event_timeout = event_timeout
        self.validation_timeout = validation_timeout

    async def publish_event(self, event: NotificationEvent, deadline: Optional[float] = None):
        headers = [
            ("service", b"ros"),
            ("request_id", event.request_id.encode()),
            ("org_id", event.metadata.org_id.encode()),
        ]
        await self._deliver(self.ros_topic, event.request_id, event.model_dump_json().encode(), headers, self.event_timeout, deadline)
        logger.info(f"ROS event for request {event.request_id} delivered to {self.ros_topic}")

    async def publish_validation(self, request_id: str, status: str, deadline: Optional[float] = None):
        event = ValidationEvent(request_id=request_id, status=status)
        headers = [
            ("service", b"ingress"),
            ("request_id", request_id.encode()),
        ]
        try:
            await self._deliver(self.validation_topic, request_id, event.model_dump_json().encode(), headers, self.validation_timeout, deadline)
        except DeliveryError as exc:
            raise ValidationDeliveryError(f"validation message delivery failed: {exc}") from exc
        logger.debug(f"Validation message '{status}' for request {request_id} delivered")

    async def notify_validation(self, request_id: str, status: str, deadline: Optional[float] = None) -> bool:
        """Best-effort variant of ``publish_validation``: failures are logged, never raised."""
        try:
            await self.publish_validation(request_id, status, deadline)
        except ValidationDeliveryError as exc:
            logger.warning(
                f"Failed to send validation message for request {request_id} "
                f"(status={status}, topic={self.validation_topic}): {exc}"
            )
            return False
        return True

    async def _deliver(self, topic, key, value, headers, timeout, deadline):
        if deadline is not None:
            timeout = min(timeout, max(0.0, deadline - time.monotonic()))
            if timeout <= 0:
                self.metrics.kafka_message(topic, "timeout", 0.0)
                raise DeliveryTimeoutError(f"request deadline exceeded before delivery to {topic}")

        start = time.monotonic()
        try:
            await asyncio.wait_for(self.publisher.publish(topic, key.encode(), value, headers), timeout=timeout)
        except asyncio.TimeoutError as exc:
            self.metrics.kafka_message(topic, "timeout", time.monotonic() - start)
            raise DeliveryTimeoutError(f"message delivery to {topic} timed out after {timeout:.1f} seconds") from exc
        except Exception as exc:
            self.metrics.kafka_message(topic, "delivery_error", time.monotonic() - start)
            raise DeliveryError(f"message delivery to {topic} failed: {exc}") from exc
        self.metrics.kafka_message(topic, "success", time.monotonic() - start)
