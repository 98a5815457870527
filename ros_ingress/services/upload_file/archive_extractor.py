import logging
import os
import shutil
import tarfile
import threading
import zlib
from typing import BinaryIO, List, Optional
from ros_ingress.models.payload import ExtractedArchive, ExtractedEntry
from ros_ingress.services.upload_file.errors import ExtractionCancelledError, ExtractionError

logger = logging.getLogger(__name__)

_COPY_BUFFER_SIZE = 1024 * 1024


class ArchiveExtractor:
    """
    Unpacks a gzip-compressed tar stream into ``<temp_dir>/<request_id>``.

    Entries that would land outside that directory, and anything that is not a
    regular file or a directory, are skipped. A stream that cannot be read as
    tar.gz is fatal, and the request directory is removed before the error
    propagates.
    """

    def __init__(self, temp_dir: str):
        self.temp_dir = os.path.realpath(temp_dir)

    def workdir_for(self, request_id: str) -> str:
        if not request_id or os.path.basename(request_id) != request_id or request_id in (".", ".."):
            raise ExtractionError(f"invalid request id for extraction directory: {request_id!r}")
        return os.path.join(self.temp_dir, request_id)

    def extract(self, stream: BinaryIO, request_id: str, stop_event: Optional[threading.Event] = None) -> ExtractedArchive:
        root = self.workdir_for(request_id)
        try:
            os.makedirs(self.temp_dir, exist_ok=True)
            os.mkdir(root, 0o755)
        except FileExistsError as exc:
            raise ExtractionError(f"extraction directory already exists: {root}") from exc
        except OSError as exc:
            raise ExtractionError(f"failed to create extraction directory: {exc}") from exc

        logger.debug(f"Starting payload extraction for request {request_id} into {root}")
        try:
            entries = self._extract_tar_gz(stream, root, stop_event)
        except BaseException:
            self._remove(root)
            raise

        logger.debug(f"Extraction completed into {root}: {len(entries)} files")
        return ExtractedArchive(root=root, request_id=request_id, entries=entries)

    def release(self, request_id: str):
        """Removes the request directory if it still exists."""
        self._remove(self.workdir_for(request_id))

    def _extract_tar_gz(self, stream: BinaryIO, root: str, stop_event: Optional[threading.Event]) -> List[ExtractedEntry]:
        entries: List[ExtractedEntry] = []
        try:
            with tarfile.open(fileobj=stream, mode="r|gz") as archive:
                for member in archive:
                    if stop_event is not None and stop_event.is_set():
                        raise ExtractionCancelledError("extraction abandoned: request deadline exceeded")

                    target = self._resolve_inside(root, member.name)
                    if target is None or (target == root and not member.isdir()):
                        logger.warning(f"Skipping file with suspicious path: {member.name}")
                        continue

                    if member.isdir():
                        os.makedirs(target, exist_ok=True)
                    elif member.isreg():
                        self._write_member(archive, member, target)
                        entries.append(ExtractedEntry(name=member.name, path=target))
                    else:
                        logger.info(f"Skipping unsupported entry type {member.type!r}: {member.name}")
        except ExtractionError:
            raise
        except (tarfile.TarError, EOFError, zlib.error) as exc:
            raise ExtractionError(f"failed to read tar.gz stream: {exc}") from exc
        except OSError as exc:
            raise ExtractionError(f"failed to extract tar.gz: {exc}") from exc
        return entries

    @staticmethod
    def _resolve_inside(root: str, name: str) -> Optional[str]:
        target = os.path.realpath(os.path.join(root, name))
        if os.path.commonpath([root, target]) != root:
            return None
        return target

    @staticmethod
    def _write_member(archive: tarfile.TarFile, member: tarfile.TarInfo, target: str):
        os.makedirs(os.path.dirname(target), exist_ok=True)
        source = archive.extractfile(member)
        with open(target, "wb") as handle:
            if source is not None:
                shutil.copyfileobj(source, handle, _COPY_BUFFER_SIZE)

    @staticmethod
    def _remove(path: str):
        if not os.path.exists(path):
            return
        try:
            shutil.rmtree(path)
        except OSError as exc:
            logger.error(f"Failed to cleanup extraction directory {path}: {exc}")
