from typing import List
from pydantic import BaseModel, Field


class NotificationMetadata(BaseModel):
    account: str
    org_id: str
    source_id: str
    provider_id: str
    cluster_id: str
    cluster_alias: str
    operator_version: str


class NotificationEvent(BaseModel):
    """Primary event consumed by the ROS processor.

    ``retrieval_locators`` and ``storage_keys`` are index-aligned, one entry
    per uploaded file.
    """

    request_id: str
    credential: str
    metadata: NotificationMetadata
    retrieval_locators: List[str] = Field(default_factory=list)
    storage_keys: List[str] = Field(default_factory=list)


class ValidationEvent(BaseModel):
    request_id: str
    status: str


VALIDATION_SUCCESS = "success"
