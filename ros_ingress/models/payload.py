import os
import shutil
from dataclasses import dataclass, field
from typing import List
from ros_ingress.schemas.manifest import Manifest


@dataclass(frozen=True)
class ExtractedEntry:
    name: str
    path: str

    @property
    def base_name(self) -> str:
        return os.path.basename(self.name)


@dataclass
class ExtractedArchive:
    """Request-scoped extraction directory and the regular files written into it."""

    root: str
    request_id: str
    entries: List[ExtractedEntry] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def cleanup(self):
        if self.root and os.path.exists(self.root):
            shutil.rmtree(self.root)


@dataclass(frozen=True)
class SelectedFile:
    name: str
    path: str

    @property
    def size(self) -> int:
        return os.path.getsize(self.path)


@dataclass
class ExtractedPayload:
    request_id: str
    manifest: Manifest
    selected_files: List[SelectedFile]
    archive: ExtractedArchive

    def cleanup(self):
        self.archive.cleanup()
