import logging
import time
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from ros_ingress.api.deps import authenticate_request
from ros_ingress.config import settings
from ros_ingress.core.metrics import PrometheusMetrics
from ros_ingress.schemas.schemas import HealthCheck, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def _run_check(name: str, component) -> HealthCheck:
    if component is None:
        return HealthCheck(status="unhealthy", message=f"{name} client not initialized")
    start = time.monotonic()
    try:
        await component.health_check()
    except Exception as e:
        logger.warning(f"Health check '{name}' failed: {e}")
        return HealthCheck(status="unhealthy", message=str(e), latency_ms=(time.monotonic() - start) * 1000)
    return HealthCheck(status="healthy", latency_ms=(time.monotonic() - start) * 1000)


@router.get("/health")
async def health(request: Request):
    """Checks storage and messaging connectivity."""
    checks = {
        "storage": await _run_check("storage", getattr(request.app.state, "storage", None)),
        "messaging": await _run_check("messaging", getattr(request.app.state, "kafka", None)),
    }
    healthy = all(check.status == "healthy" for check in checks.values())
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.VERSION,
        checks=checks,
    )
    status_code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.get("/ready")
async def ready():
    return {
        "status": "ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
    }


@router.get("/metrics", dependencies=[Depends(authenticate_request)])
async def metrics(request: Request):
    sink = getattr(request.app.state, "metrics", None)
    if not isinstance(sink, PrometheusMetrics):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics are disabled")
    return Response(content=sink.render(), media_type=CONTENT_TYPE_LATEST)
