import asyncio
import io
import json
import tarfile
from dataclasses import dataclass, replace
from typing import Dict, List, Optional
import pytest
from ros_ingress.models.identity import Identity, RequestContext
from ros_ingress.services.upload_file.archive_extractor import ArchiveExtractor
from ros_ingress.services.upload_file.event_notifier import EventNotifier
from ros_ingress.services.upload_file.manifest_resolver import ManifestResolver
from ros_ingress.services.upload_file.object_uploader import ObjectUploader
from ros_ingress.services.upload_file.upload_pipeline import UploadPipeline

ROS_TOPIC = "hccm.ros.events"
VALIDATION_TOPIC = "platform.upload.validation"
CLUSTER_ID = "c0ffee00-1234-4abc-9def-000000000001"
MANIFEST_UUID = "a1b2c3d4-0000-4000-8000-00000000abcd"


class FakeObjectStore:
    """In-memory object store that drains each streamed body; ``fail_on`` names a file whose upload raises."""

    def __init__(self, fail_on: Optional[str] = None, presign_error: bool = False, delay: float = 0.0):
        self.objects = {}
        self.put_calls: List[str] = []
        self.fail_on = fail_on
        self.presign_error = presign_error
        self.delay = delay

    async def put_object(self, request):
        self.put_calls.append(request.key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on and request.key.endswith("/" + self.fail_on):
            raise RuntimeError("simulated storage fault")
        self.objects[request.key] = replace(request, body=request.body.read())
        return f"etag-{len(self.objects)}"

    async def generate_presigned_url(self, key: str, expires_in: int) -> str:
        if self.presign_error:
            raise RuntimeError("signing key unavailable")
        return f"https://storage.example.com/insights-ros-data/{key}?X-Amz-Expires={expires_in}"


@dataclass
class PublishedMessage:
    topic: str
    key: bytes
    value: bytes
    headers: Dict[str, bytes]

    @property
    def payload(self) -> dict:
        return json.loads(self.value)


class FakePublisher:
    """Records acknowledged messages; topics in ``fail_topics`` are rejected, ``hang_topics`` never ack."""

    def __init__(self, fail_topics=(), hang_topics=()):
        self.messages: List[PublishedMessage] = []
        self.fail_topics = set(fail_topics)
        self.hang_topics = set(hang_topics)

    async def publish(self, topic, key, value, headers):
        if topic in self.hang_topics:
            await asyncio.sleep(3600)
        if topic in self.fail_topics:
            raise RuntimeError(f"broker rejected message for {topic}")
        self.messages.append(PublishedMessage(topic=topic, key=key, value=value, headers=dict(headers)))

    def on_topic(self, topic: str) -> List[PublishedMessage]:
        return [message for message in self.messages if message.topic == topic]


def make_manifest(**overrides) -> bytes:
    manifest = {
        "uuid": MANIFEST_UUID,
        "cluster_id": CLUSTER_ID,
        "cluster_alias": "prod-east",
        "date": "2025-01-15T10:30:00Z",
        "files": ["cost.csv"],
        "resource_optimization_files": ["ros.csv"],
        "operator_version": "4.0.0",
        "certified": True,
    }
    manifest.update(overrides)
    return json.dumps(manifest).encode()


def make_tar_gz(files: Dict[str, bytes], symlinks: Optional[Dict[str, str]] = None, dirs=()) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            archive.addfile(info)
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            archive.addfile(info)
    return buffer.getvalue()


def make_context(org_id: str = "12345", account: str = "acct-1", timeout: Optional[float] = None) -> RequestContext:
    identity = Identity(account_number=account, org_id=org_id)
    return RequestContext.with_timeout(timeout, identity=identity, credential="token-abc")


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def publisher():
    return FakePublisher()


def build_pipeline(upload_dir, store, publisher, metrics=None) -> UploadPipeline:
    return UploadPipeline(
        extractor=ArchiveExtractor(str(upload_dir)),
        resolver=ManifestResolver(),
        uploader=ObjectUploader(store, metrics=metrics),
        notifier=EventNotifier(publisher, ROS_TOPIC, VALIDATION_TOPIC, metrics=metrics),
        metrics=metrics,
    )


@pytest.fixture
def pipeline(upload_dir, store, publisher):
    return build_pipeline(upload_dir, store, publisher)
