import logging
from contextlib import asynccontextmanager
from typing import Optional
import uvicorn
from fastapi import FastAPI
from ros_ingress.api.v1 import api_router
from ros_ingress.api.v1.endpoints import health
from ros_ingress.config import settings
from ros_ingress.core.auth.authenticator import Authenticator, NoOpAuthenticator
from ros_ingress.core.kafka.kafka_handler import KafkaHandler
from ros_ingress.core.logger_setup import setup_logging
from ros_ingress.core.metrics import NullMetrics, PrometheusMetrics
from ros_ingress.core.storage_bin.minio.minio_handler import MinIOHandler
from ros_ingress.core.storage_bin.minio.session_minio import minio_session
from ros_ingress.services.upload_file.upload_pipeline import UploadPipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    setup_logging()
    kafka = None
    try:
        settings.validate_required()

        metrics = PrometheusMetrics() if settings.METRICS_ENABLED else NullMetrics()

        client = await minio_session.connect()
        storage = MinIOHandler(client, settings.STORAGE_BUCKET, settings.STORAGE_REGION)
        await storage.ensure_bucket_exists()

        kafka = KafkaHandler.from_settings(settings)
        await kafka.start_producer()

        app.state.metrics = metrics
        app.state.storage = storage
        app.state.kafka = kafka
        app.state.pipeline = UploadPipeline.from_settings(settings, storage, kafka, metrics)
        logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} initialized successfully")
    except Exception as e:
        logger.critical(f"Failed to initialize application: {str(e)}")
        if kafka is not None:
            await kafka.stop_producer()
        await minio_session.close()
        raise

    yield

    await kafka.stop_producer()
    await minio_session.close()
    logger.info("Services shut down successfully")


def create_app(authenticator: Optional[Authenticator] = None) -> FastAPI:
    app = FastAPI(
        title="Insights ROS Ingress",
        description="Accepts cost management payloads and forwards ROS data to storage and Kafka",
        version=settings.VERSION,
        lifespan=lifespan,
    )

    if authenticator is None:
        if settings.AUTH_ENABLED:
            logger.warning("No token authenticator configured, falling back to no-op auth for development")
        authenticator = NoOpAuthenticator()
    app.state.authenticator = authenticator

    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.include_router(health.router, tags=["Health"])
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "ros_ingress.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.DEBUG_MODE,
        log_level=settings.LOG_LEVEL.lower()
    )
