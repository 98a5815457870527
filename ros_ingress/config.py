import tempfile
from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when required settings are missing at startup."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8080
    DEBUG_MODE: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

    PROJECT_NAME: str = "insights-ros-ingress"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/ingress/v1"

    #Storage (MinIO / S3)
    STORAGE_ENDPOINT: str = ""
    STORAGE_REGION: str = "us-east-1"
    STORAGE_BUCKET: str = "insights-ros-data"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_USE_SSL: bool = False
    STORAGE_URL_EXPIRATION: int = 172800
    STORAGE_PATH_PREFIX: str = ""

    #Kafka
    KAFKA_BROKERS: str = "localhost:9092"
    KAFKA_ROS_TOPIC: str = "hccm.ros.events"
    KAFKA_VALIDATION_TOPIC: str = "platform.upload.validation"
    KAFKA_CLIENT_ID: str = "insights-ros-ingress"
    KAFKA_SECURITY_PROTOCOL: str = "PLAINTEXT"
    KAFKA_SASL_MECHANISM: str = ""
    KAFKA_SASL_USERNAME: str = ""
    KAFKA_SASL_PASSWORD: str = ""
    KAFKA_SSL_CA_LOCATION: str = ""
    KAFKA_BATCH_SIZE: int = 16384

    #Upload
    UPLOAD_MAX_SIZE: int = 100 * 1024 * 1024
    UPLOAD_TEMP_DIR: str = tempfile.gettempdir()
    UPLOAD_ALLOWED_TYPES: str = "application/vnd.redhat.hccm.upload"
    UPLOAD_PROCESSING_TIMEOUT: float = 120.0

    #Auth
    AUTH_ENABLED: bool = True
    AUTH_FALLBACK_ORG_ID: str = ""
    AUTH_FALLBACK_ACCOUNT: str = ""

    #Metrics
    METRICS_ENABLED: bool = True

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").upper()

    @property
    def kafka_bootstrap_servers(self) -> List[str]:
        return [broker.strip() for broker in self.KAFKA_BROKERS.split(",") if broker.strip()]

    @property
    def allowed_content_types(self) -> List[str]:
        return [value.strip() for value in self.UPLOAD_ALLOWED_TYPES.split(",") if value.strip()]

    @property
    def storage_endpoint_url(self) -> str:
        if self.STORAGE_ENDPOINT.startswith(("http://", "https://")):
            return self.STORAGE_ENDPOINT
        scheme = "https" if self.STORAGE_USE_SSL else "http"
        return f"{scheme}://{self.STORAGE_ENDPOINT}"

    def validate_required(self):
        """Checks the settings the service cannot start without."""
        if not self.STORAGE_ENDPOINT:
            raise ConfigurationError("storage endpoint is required")
        if not self.STORAGE_ACCESS_KEY or not self.STORAGE_SECRET_KEY:
            raise ConfigurationError("storage credentials are required")
        if not self.kafka_bootstrap_servers:
            raise ConfigurationError("kafka brokers are required")
        if not self.KAFKA_ROS_TOPIC:
            raise ConfigurationError("kafka topic is required")


settings = Settings()
