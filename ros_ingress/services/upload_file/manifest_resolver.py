import logging
import os
from typing import List, Optional
from pydantic import ValidationError
from ros_ingress.models.payload import ExtractedArchive, ExtractedEntry, ExtractedPayload, SelectedFile
from ros_ingress.schemas.manifest import MANIFEST_FILE_NAME, Manifest
from ros_ingress.services.upload_file.errors import (
    ManifestNotFoundError,
    ManifestParseError,
    ManifestValidationError,
    NoSelectedFilesError,
)

logger = logging.getLogger(__name__)


class ManifestResolver:
    """Finds manifest.json among the extracted entries and picks the ROS files it declares."""

    def __init__(self, manifest_name: str = MANIFEST_FILE_NAME):
        self.manifest_name = manifest_name

    def resolve(self, archive: ExtractedArchive) -> ExtractedPayload:
        manifest = self.load_manifest(archive.entries)
        selected = self.select_files(manifest, archive.entries)
        logger.info(
            f"Resolved manifest {manifest.uuid} for cluster {manifest.cluster_id}: "
            f"{len(selected)} ROS files selected"
        )
        return ExtractedPayload(
            request_id=archive.request_id,
            manifest=manifest,
            selected_files=selected,
            archive=archive,
        )

    def find_manifest(self, entries: List[ExtractedEntry]) -> Optional[ExtractedEntry]:
        # Exact base name match; "old-manifest.json" is not a manifest
        for entry in entries:
            if entry.base_name == self.manifest_name:
                return entry
        return None

    def load_manifest(self, entries: List[ExtractedEntry]) -> Manifest:
        entry = self.find_manifest(entries)
        if entry is None:
            raise ManifestNotFoundError(f"{self.manifest_name} not found in payload")
        logger.debug(f"Found manifest file at {entry.path}")

        try:
            with open(entry.path, "rb") as handle:
                raw = handle.read()
        except OSError as exc:
            raise ManifestParseError(f"failed to read manifest file: {exc}") from exc

        try:
            manifest = Manifest.model_validate_json(raw)
        except ValidationError as exc:
            raise ManifestParseError(f"failed to parse manifest JSON: {exc}") from exc

        if not manifest.uuid:
            raise ManifestValidationError("manifest uuid is missing")
        if not manifest.cluster_id:
            raise ManifestValidationError("manifest cluster_id is missing")

        logger.debug(
            f"Parsed manifest {manifest.uuid}: {len(manifest.files)} files, "
            f"{len(manifest.resource_optimization_files)} ROS files"
        )
        return manifest

    def select_files(self, manifest: Manifest, entries: List[ExtractedEntry]) -> List[SelectedFile]:
        if not manifest.resource_optimization_files:
            raise NoSelectedFilesError("no ROS files specified in manifest")

        # A later entry with the same base name replaces an earlier one
        by_base_name = {entry.base_name: entry for entry in entries}

        selected: List[SelectedFile] = []
        seen = set()
        for name in manifest.resource_optimization_files:
            if name in seen:
                continue
            seen.add(name)
            entry = by_base_name.get(name)
            if entry is None:
                logger.warning(f"ROS file {name} specified in manifest but not extracted")
                continue
            if not os.path.isfile(entry.path):
                logger.warning(f"ROS file {name} specified in manifest but not found at {entry.path}")
                continue
            selected.append(SelectedFile(name=name, path=entry.path))

        if not selected:
            raise NoSelectedFilesError("no ROS files found in payload")
        return selected
