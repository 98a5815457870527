from dataclasses import dataclass, field
from typing import BinaryIO, Dict


@dataclass(frozen=True)
class UploadDescriptor:
    """Logical partition of an uploaded file: tenant schema, source and report date."""

    schema: str
    source_id: str
    date: str


@dataclass(frozen=True)
class ObjectReference:
    key: str
    size: int
    locator: str = ""
    etag: str = ""


@dataclass
class UploadRequest:
    key: str
    body: BinaryIO
    size: int
    content_type: str = "text/csv"
    metadata: Dict[str, str] = field(default_factory=dict)
