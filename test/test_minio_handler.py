import io
import pytest
from botocore.exceptions import ClientError
from ros_ingress.core.storage_bin.minio.minio_handler import MinIOHandler
from ros_ingress.models.storage import UploadRequest

BUCKET = "insights-ros-data"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    """Records calls the way the aiobotocore client receives them; errors are raised per operation."""

    def __init__(self, head_error=None, create_error=None, etag='"9b2cf535f27731c974343645a3985328"'):
        self.head_error = head_error
        self.create_error = create_error
        self.etag = etag
        self.calls = []

    async def head_bucket(self, **kwargs):
        self.calls.append(("head_bucket", kwargs))
        if self.head_error:
            raise self.head_error
        return {}

    async def create_bucket(self, **kwargs):
        self.calls.append(("create_bucket", kwargs))
        if self.create_error:
            raise self.create_error
        return {}

    async def put_object(self, **kwargs):
        self.calls.append(("put_object", kwargs))
        return {"ETag": self.etag}

    async def generate_presigned_url(self, method, Params, ExpiresIn):
        self.calls.append(("generate_presigned_url", {"method": method, "Params": Params, "ExpiresIn": ExpiresIn}))
        return f"https://minio.example.com/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    def operations(self):
        return [name for name, _ in self.calls]


@pytest.mark.asyncio
async def test_existing_bucket_is_checked_once():
    client = FakeS3Client()
    handler = MinIOHandler(client, BUCKET)

    await handler.ensure_bucket_exists()
    await handler.ensure_bucket_exists()

    assert client.operations() == ["head_bucket"]


@pytest.mark.asyncio
async def test_missing_bucket_is_created_with_region():
    client = FakeS3Client(head_error=client_error("404", "HeadBucket"))
    handler = MinIOHandler(client, BUCKET, region="eu-west-1")

    await handler.ensure_bucket_exists()

    assert client.calls[1] == ("create_bucket", {
        "Bucket": BUCKET,
        "CreateBucketConfiguration": {"LocationConstraint": "eu-west-1"},
    })


@pytest.mark.asyncio
async def test_default_region_sends_no_location_constraint():
    client = FakeS3Client(head_error=client_error("NoSuchBucket", "HeadBucket"))

    await MinIOHandler(client, BUCKET).ensure_bucket_exists()

    assert client.calls[1] == ("create_bucket", {"Bucket": BUCKET})


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["BucketAlreadyOwnedByYou", "BucketAlreadyExists"])
async def test_bucket_created_concurrently_counts_as_success(code):
    client = FakeS3Client(
        head_error=client_error("404", "HeadBucket"),
        create_error=client_error(code, "CreateBucket"),
    )
    handler = MinIOHandler(client, BUCKET)

    await handler.ensure_bucket_exists()
    await handler.ensure_bucket_exists()

    assert client.operations() == ["head_bucket", "create_bucket"]


@pytest.mark.asyncio
async def test_other_head_errors_are_raised():
    client = FakeS3Client(head_error=client_error("AccessDenied", "HeadBucket"))
    handler = MinIOHandler(client, BUCKET)

    with pytest.raises(ClientError):
        await handler.ensure_bucket_exists()

    assert client.operations() == ["head_bucket"]
    assert not handler._bucket_ready


@pytest.mark.asyncio
async def test_other_create_errors_are_raised():
    client = FakeS3Client(
        head_error=client_error("404", "HeadBucket"),
        create_error=client_error("InvalidBucketName", "CreateBucket"),
    )

    with pytest.raises(ClientError):
        await MinIOHandler(client, BUCKET).ensure_bucket_exists()


@pytest.mark.asyncio
async def test_put_object_returns_unquoted_etag():
    client = FakeS3Client()
    handler = MinIOHandler(client, BUCKET)
    body = io.BytesIO(b"a,b\n1,2\n")

    etag = await handler.put_object(UploadRequest(
        key="org_12345/source=c1/date=2025-01-15/ros.csv",
        body=body,
        size=8,
        metadata={"RequestId": "req-1"},
    ))

    assert etag == "9b2cf535f27731c974343645a3985328"
    name, kwargs = client.calls[-1]
    assert name == "put_object"
    assert kwargs == {
        "Bucket": BUCKET,
        "Key": "org_12345/source=c1/date=2025-01-15/ros.csv",
        "Body": body,
        "ContentLength": 8,
        "ContentType": "text/csv",
        "Metadata": {"RequestId": "req-1"},
    }


@pytest.mark.asyncio
async def test_presigned_url_is_for_get_object():
    client = FakeS3Client()

    url = await MinIOHandler(client, BUCKET).generate_presigned_url("a/ros.csv", 172800)

    assert url.endswith(f"/{BUCKET}/a/ros.csv?X-Amz-Expires=172800")
    assert client.calls[-1][1]["method"] == "get_object"
