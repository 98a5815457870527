import logging
import os
import time
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from ros_ingress.api.deps import AuthenticatedCaller, authenticate_request, get_metrics
from ros_ingress.config import settings
from ros_ingress.core.auth.identity_mapper import MissingOrgError, build_identity
from ros_ingress.core.logger_setup import with_upload_context
from ros_ingress.core.metrics import MetricsSink
from ros_ingress.models.identity import RequestContext
from ros_ingress.schemas.schemas import ErrorResponse, UploadData, UploadResponse
from ros_ingress.services.upload_file.errors import IngressError
from ros_ingress.services.upload_file.upload_request_validator import RequestValidator

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str, request_id: str, reason: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=message, reason=reason, request_id=request_id)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _part_size(upload) -> int:
    if getattr(upload, "size", None) is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


@router.post("/upload")
async def upload_payload(
    request: Request,
    caller: AuthenticatedCaller = Depends(authenticate_request),
    metrics: MetricsSink = Depends(get_metrics),
):
    """
    Accepts a tar.gz payload, stores its ROS files and announces them on Kafka.
    Returns 202 once the ROS event has been acknowledged.
    """
    start = time.monotonic()
    request_id = str(uuid.uuid4())
    log = with_upload_context(logger, request_id)
    log.info(
        f"Received upload request (user_agent={request.headers.get('user-agent', '')}, "
        f"content_length={request.headers.get('content-length', '')})"
    )

    response = await _handle_upload(request, request_id, caller, metrics)
    metrics.observe_request("POST", "/upload", response.status_code, time.monotonic() - start)
    return response


async def _handle_upload(request: Request, request_id: str, caller: AuthenticatedCaller, metrics: MetricsSink) -> JSONResponse:
    log = with_upload_context(logger, request_id)
    validator = RequestValidator(settings.allowed_content_types, settings.UPLOAD_MAX_SIZE)

    try:
        form = await request.form()
    except Exception as e:
        log.warning(f"Failed to parse multipart form: {e}")
        return _error(status.HTTP_400_BAD_REQUEST, "Failed to parse multipart form", request_id)

    try:
        if validator.is_test_request(form):
            log.info("Handling test request")
            body = UploadResponse(request_id=request_id, upload=UploadData(account_number="test-account", org_id="test-org"))
            return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump())

        identity = None
        if settings.AUTH_ENABLED:
            try:
                identity = build_identity(caller.user, settings.AUTH_FALLBACK_ORG_ID, settings.AUTH_FALLBACK_ACCOUNT)
            except MissingOrgError as e:
                log.warning(f"Rejecting upload: {e}")
                return _error(status.HTTP_403_FORBIDDEN, "Invalid or missing identity", request_id)
            log = with_upload_context(logger, request_id, identity.account_number, identity.org_id)

        upload = validator.pick_file(form)
        if upload is None:
            return _error(status.HTTP_400_BAD_REQUEST, "File not found in request", request_id)

        content_type = upload.content_type or ""
        if not validator.is_valid_content_type(content_type):
            log.warning(f"Rejecting upload with content type '{content_type}'")
            return _error(status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "Invalid content type", request_id)

        size = _part_size(upload)
        if validator.is_too_large(size):
            log.warning(f"Rejecting upload of {size} bytes (limit {settings.UPLOAD_MAX_SIZE})")
            return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "File too large", request_id)

        log.info(f"Processing upload (content_type={content_type}, file_size={size})")
        metrics.upload_received(content_type, size)

        context = RequestContext.with_timeout(settings.UPLOAD_PROCESSING_TIMEOUT, identity=identity, credential=caller.token)
        pipeline = request.app.state.pipeline
        upload.file.seek(0)
        try:
            await pipeline.process(upload.file, request_id, context, content_type)
        except IngressError as e:
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process upload", request_id, e.reason)
        except Exception as e:
            log.exception(f"Unexpected error while processing upload: {e}")
            metrics.upload_finished("error", content_type)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process upload", request_id, IngressError.reason)

        log.info("Upload processed successfully")
        upload_data = UploadData()
        if identity is not None:
            upload_data = UploadData(account_number=identity.account_number, org_id=identity.org_id)
        body = UploadResponse(request_id=request_id, upload=upload_data)
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump())
    finally:
        await form.close()
