from typing import Protocol
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

UPLOAD_SIZE_BUCKETS = (1024, 10240, 102400, 1048576, 10485760, 104857600, 1073741824)


class MetricsSink(Protocol):
    def observe_request(self, method: str, endpoint: str, status_code: int, duration: float) -> None: ...

    def upload_received(self, content_type: str, size: int) -> None: ...

    def upload_finished(self, status: str, content_type: str) -> None: ...

    def storage_operation(self, operation: str, status: str, duration: float) -> None: ...

    def kafka_message(self, topic: str, status: str, duration: float) -> None: ...


class NullMetrics:
    """Sink used when metrics are disabled."""

    def observe_request(self, method, endpoint, status_code, duration):
        pass

    def upload_received(self, content_type, size):
        pass

    def upload_finished(self, status, content_type):
        pass

    def storage_operation(self, operation, status, duration):
        pass

    def kafka_message(self, topic, status, duration):
        pass


class PrometheusMetrics:
    """Prometheus-backed sink with its own registry so instances never collide."""

    def __init__(self, registry: CollectorRegistry = None):
        self.registry = registry or CollectorRegistry()
        self.http_requests_total = Counter(
            "http_requests_total", "Total number of HTTP requests",
            ["method", "endpoint", "status_code"], registry=self.registry,
        )
        self.http_request_duration = Histogram(
            "http_request_duration_seconds", "HTTP request duration in seconds",
            ["method", "endpoint"], registry=self.registry,
        )
        self.uploads_total = Counter(
            "uploads_total", "Total number of uploads processed",
            ["status", "content_type"], registry=self.registry,
        )
        self.upload_size_bytes = Histogram(
            "upload_size_bytes", "Size of uploaded files in bytes",
            ["content_type"], buckets=UPLOAD_SIZE_BUCKETS, registry=self.registry,
        )
        self.storage_operations_total = Counter(
            "storage_operations_total", "Total number of storage operations",
            ["operation", "status"], registry=self.registry,
        )
        self.storage_operation_duration = Histogram(
            "storage_operation_duration_seconds", "Duration of storage operations in seconds",
            ["operation"], registry=self.registry,
        )
        self.kafka_messages_total = Counter(
            "kafka_messages_total", "Total number of Kafka messages sent",
            ["topic", "status"], registry=self.registry,
        )
        self.kafka_message_duration = Histogram(
            "kafka_message_duration_seconds", "Duration of Kafka message operations in seconds",
            ["topic"], registry=self.registry,
        )

    def observe_request(self, method, endpoint, status_code, duration):
        self.http_requests_total.labels(method, endpoint, str(status_code)).inc()
        self.http_request_duration.labels(method, endpoint).observe(duration)

    def upload_received(self, content_type, size):
        self.uploads_total.labels("received", content_type).inc()
        self.upload_size_bytes.labels(content_type).observe(size)

    def upload_finished(self, status, content_type):
        self.uploads_total.labels(status, content_type).inc()

    def storage_operation(self, operation, status, duration):
        self.storage_operations_total.labels(operation, status).inc()
        self.storage_operation_duration.labels(operation).observe(duration)

    def kafka_message(self, topic, status, duration):
        self.kafka_messages_total.labels(topic, status).inc()
        self.kafka_message_duration.labels(topic).observe(duration)

    def render(self) -> bytes:
        return generate_latest(self.registry)
