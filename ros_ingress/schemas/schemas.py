from typing import Dict, Optional
from pydantic import BaseModel


class UploadData(BaseModel):
    account_number: str = ""
    org_id: str = ""


class UploadResponse(BaseModel):
    request_id: str
    upload: Optional[UploadData] = None


class ErrorResponse(BaseModel):
    error: str
    reason: Optional[str] = None
    request_id: Optional[str] = None


class HealthCheck(BaseModel):
    status: str
    message: Optional[str] = None
    latency_ms: float = 0.0


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    checks: Dict[str, HealthCheck]
