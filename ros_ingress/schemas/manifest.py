from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

MANIFEST_FILE_NAME = "manifest.json"


class Manifest(BaseModel):
    """manifest.json as written by the cost management operator."""

    model_config = ConfigDict(frozen=True, extra="ignore", strict=True)

    uuid: str = ""
    cluster_id: str = ""
    cluster_alias: str = ""
    date: Optional[datetime] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    files: List[str] = Field(default_factory=list)
    resource_optimization_files: List[str] = Field(default_factory=list)
    certified: bool = False
    operator_version: str = ""
    daily_reports: bool = False
    cr_status: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("uuid", "cluster_id", "cluster_alias", "operator_version", mode="before")
    @classmethod
    def null_as_empty_string(cls, value):
        return "" if value is None else value

    @field_validator("files", "resource_optimization_files", mode="before")
    @classmethod
    def null_as_empty_list(cls, value):
        return [] if value is None else value

    @field_validator("certified", "daily_reports", mode="before")
    @classmethod
    def null_as_false(cls, value):
        return False if value is None else value

    @field_validator("cr_status", mode="before")
    @classmethod
    def null_as_empty_dict(cls, value):
        return {} if value is None else value

    @property
    def display_alias(self) -> str:
        # Prefer the explicit alias, fall back to the cluster id
        return self.cluster_alias or self.cluster_id
