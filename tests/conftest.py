# tests/conftest.py
"""
Pytest configuration and fixtures for the sync-s3 test suite.

This module sets up the testing environment, including:
- An in-memory fake of the aiobotocore S3 client, used by the unit tests to
  exercise listing, transfer and orchestration without a network.
- Docker containers for source and destination S3 services (MinIO), used by
  the end-to-end tests.
- Credential profiles written to temporary AWS config files, so the
  end-to-end tests resolve clients exactly as a user's profiles would.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterator,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
)

import boto3
import pytest
import pytest_asyncio
import requests
from aiobotocore.session import AioSession, get_session
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError, ProfileNotFound, ResponseStreamingError
from requests.exceptions import ConnectionError
from types_boto3_s3.service_resource import Bucket, S3ServiceResource

from sync_s3.clients import ClientFactory
from sync_s3.config import AppConfig, BucketSpec, Config

# --- Constants ---
S3_ACCESS_KEY: str = "minio-key"
S3_SECRET_KEY: str = "minio-secret"
S3_REGION: str = "us-east-1"
SOURCE_PROFILE: str = "source-profile"
DEST_PROFILE: str = "dest-profile"


# --- In-memory S3 fake ---
def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeStreamingBody:
    """
    Mimics `aiobotocore.response.StreamingBody`.

    Reads return at most `max_read` bytes, like a network stream returning
    short chunks.
    """

    def __init__(self, data: bytes, max_read: int = 4, fail: bool = False) -> None:
        self._data: bytes = data
        self._offset: int = 0
        self._max_read: int = max_read
        self._fail: bool = fail
        self.closed: bool = False

    async def read(self, amt: Optional[int] = None) -> bytes:
        await asyncio.sleep(0)
        if self._fail:
            raise ResponseStreamingError(error="connection reset by peer")
        if amt is None:
            chunk: bytes = self._data[self._offset :]
        else:
            chunk = self._data[self._offset : self._offset + min(amt, self._max_read)]
        self._offset += len(chunk)
        return chunk

    def close(self) -> None:
        self.closed = True


class FakeS3Store:
    """
    Shared state behind every fake client: buckets, call log and failures.

    Attributes:
        buckets: bucket name -> key -> (body, content type).
        calls: (operation, bucket, key) for every client call, in order.
        failures: (operation, key or bucket) -> error code to raise.
        stream_failures: keys whose body fails while being read.
        corrupt_puts: keys stored one byte short, to fail integrity checks.
        bodies: every body handed out by `get_object`.
        aborted_uploads: keys whose multipart upload was aborted.
        closed_profiles: profiles whose client context was exited.
    """

    def __init__(self, profiles: Iterable[str], page_size: int = 2) -> None:
        self.profiles: Set[str] = set(profiles)
        self.page_size: int = page_size
        self.buckets: Dict[str, Dict[str, Tuple[bytes, str]]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.failures: Dict[Tuple[str, str], str] = {}
        self.stream_failures: Set[str] = set()
        self.corrupt_puts: Set[str] = set()
        self.bodies: List[FakeStreamingBody] = []
        self.uploads: Dict[str, Dict[str, Any]] = {}
        self.aborted_uploads: List[str] = []
        self.closed_profiles: List[str] = []

    def create_bucket(
        self, name: str, objects: Optional[Dict[str, bytes]] = None
    ) -> None:
        self.buckets[name] = {
            key: (body, "text/plain") for key, body in (objects or {}).items()
        }

    def keys(self, bucket: str) -> List[str]:
        return sorted(self.buckets[bucket])

    def calls_for(self, operation: str) -> List[str]:
        return [key for op, _, key in self.calls if op == operation]

    def session(self, profile: str) -> "FakeSession":
        return FakeSession(self, profile)


class FakePaginator:
    def __init__(self, client: "FakeS3Client") -> None:
        self._client: FakeS3Client = client

    def paginate(self, Bucket: str, Prefix: str = "") -> AsyncIterator[Dict[str, Any]]:
        return self._pages(Bucket, Prefix)

    async def _pages(self, bucket: str, prefix: str) -> AsyncIterator[Dict[str, Any]]:
        store: FakeS3Store = self._client.store
        await self._client._call("ListObjectsV2", bucket, bucket)
        keys: List[str] = [k for k in store.keys(bucket) if k.startswith(prefix)]
        for start in range(0, max(len(keys), 1), store.page_size):
            page_keys: List[str] = keys[start : start + store.page_size]
            page: Dict[str, Any] = {"KeyCount": len(page_keys)}
            if page_keys:
                page["Contents"] = [
                    {"Key": k, "Size": len(store.buckets[bucket][k][0])}
                    for k in page_keys
                ]
            yield page
            await asyncio.sleep(0)


class FakeS3Client:
    """The subset of the aiobotocore S3 client the application uses."""

    def __init__(self, store: FakeS3Store, profile: str) -> None:
        self.store: FakeS3Store = store
        self.profile: str = profile

    async def _call(self, operation: str, bucket: str, key: str) -> None:
        await asyncio.sleep(0)
        self.store.calls.append((operation, bucket, key))
        code: Optional[str] = self.store.failures.get((operation, key))
        if code:
            raise _client_error(code, operation)
        if bucket not in self.store.buckets:
            raise _client_error("NoSuchBucket", operation)

    def get_paginator(self, operation_name: str) -> FakePaginator:
        assert operation_name == "list_objects_v2"
        return FakePaginator(self)

    async def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        await self._call("GetObject", Bucket, Key)
        if Key not in self.store.buckets[Bucket]:
            raise _client_error("NoSuchKey", "GetObject")
        data, content_type = self.store.buckets[Bucket][Key]
        body: FakeStreamingBody = FakeStreamingBody(
            data, fail=Key in self.store.stream_failures
        )
        self.store.bodies.append(body)
        return {"Body": body, "ContentLength": len(data), "ContentType": content_type}

    def _store(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        if key in self.store.corrupt_puts:
            data = data[:-1]
        self.store.buckets[bucket][key] = (data, content_type)

    async def put_object(
        self,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentLength: int,
        ContentType: str = "binary/octet-stream",
    ) -> Dict[str, Any]:
        await self._call("PutObject", Bucket, Key)
        assert len(Body) == ContentLength
        self._store(Bucket, Key, Body, ContentType)
        return {"ETag": f'"{uuid.uuid4().hex}"'}

    async def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        await self._call("HeadObject", Bucket, Key)
        if Key not in self.store.buckets[Bucket]:
            raise _client_error("404", "HeadObject")
        return {"ContentLength": len(self.store.buckets[Bucket][Key][0])}

    async def create_multipart_upload(
        self, Bucket: str, Key: str, ContentType: str = "binary/octet-stream"
    ) -> Dict[str, Any]:
        await self._call("CreateMultipartUpload", Bucket, Key)
        upload_id: str = uuid.uuid4().hex
        self.store.uploads[upload_id] = {"parts": {}, "content_type": ContentType}
        return {"UploadId": upload_id}

    async def upload_part(
        self,
        Bucket: str,
        Key: str,
        UploadId: str,
        PartNumber: int,
        Body: bytes,
        ContentLength: int,
    ) -> Dict[str, Any]:
        await self._call("UploadPart", Bucket, Key)
        assert len(Body) == ContentLength
        self.store.uploads[UploadId]["parts"][PartNumber] = Body
        return {"ETag": f'"part-{PartNumber}"'}

    async def complete_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str, MultipartUpload: Dict[str, Any]
    ) -> Dict[str, Any]:
        await self._call("CompleteMultipartUpload", Bucket, Key)
        upload: Dict[str, Any] = self.store.uploads.pop(UploadId)
        data: bytes = b"".join(
            upload["parts"][part["PartNumber"]] for part in MultipartUpload["Parts"]
        )
        self._store(Bucket, Key, data, upload["content_type"])
        return {"ETag": '"multipart"'}

    async def abort_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str
    ) -> Dict[str, Any]:
        await self._call("AbortMultipartUpload", Bucket, Key)
        self.store.uploads.pop(UploadId, None)
        self.store.aborted_uploads.append(Key)
        return {}


class FakeSession:
    """Stands in for `AioSession(profile=...)`."""

    def __init__(self, store: FakeS3Store, profile: str) -> None:
        self._store: FakeS3Store = store
        self.profile: str = profile

    @asynccontextmanager
    async def create_client(
        self, service_name: str, **kwargs: Any
    ) -> AsyncIterator[FakeS3Client]:
        if self.profile not in self._store.profiles:
            raise ProfileNotFound(profile=self.profile)
        try:
            yield FakeS3Client(self._store, self.profile)
        finally:
            self._store.closed_profiles.append(self.profile)


# --- Unit test fixtures ---
@pytest.fixture(scope="function")
def fake_store() -> FakeS3Store:
    """
    Provide an empty fake S3 service reachable under the two test profiles.

    Returns:
        FakeS3Store: The shared state of all fake clients.
    """
    return FakeS3Store(profiles=[SOURCE_PROFILE, DEST_PROFILE])


@pytest.fixture(scope="function")
def fake_client(fake_store: FakeS3Store) -> FakeS3Client:
    """
    Provide a fake S3 client bound to the source profile.

    Args:
        fake_store (FakeS3Store): The fake S3 service.

    Returns:
        FakeS3Client: A client over the fake store.
    """
    return FakeS3Client(fake_store, SOURCE_PROFILE)


@pytest.fixture(scope="function")
def client_factory(fake_store: FakeS3Store) -> ClientFactory:
    """
    Provide a `ClientFactory` whose sessions resolve against the fake store.

    Args:
        fake_store (FakeS3Store): The fake S3 service.

    Returns:
        ClientFactory: The factory used by the pipeline under test.
    """
    return ClientFactory(AppConfig(), session_factory=fake_store.session)


@pytest.fixture(scope="function")
def make_config() -> Callable[..., Config]:
    """
    Provide a factory building a `Config` for the two test profiles.

    Returns:
        A function taking the source and destination URIs and any
        `AppConfig` overrides.
    """

    def _make(source: str, destination: str, **app: Any) -> Config:
        app.setdefault("show_progress", False)
        return Config(
            source=BucketSpec.from_uri(source, SOURCE_PROFILE),
            destination=BucketSpec.from_uri(destination, DEST_PROFILE),
            app=AppConfig(**app),
        )

    return _make


# --- Docker Fixtures ---
@pytest.fixture(scope="session")
def docker_compose_file(pytestconfig: pytest.Config) -> str:
    """
    Locate the docker-compose.yml file for the test suite.

    Args:
        pytestconfig (pytest.Config): The pytest configuration objects.

    Returns:
        str: The absolute path to the docker-compose.yml file.
    """
    return str(Path(pytestconfig.rootdir) / "tests" / "docker-compose.yml")


@pytest.fixture(scope="session")
def docker_compose_project_name() -> str:
    """
    Define a unique, static project name for the Docker stack.

    Returns:
        str: A unique name for the docker-compose project.
    """
    return "sync-s3-tests"


def _is_s3_responsive(url: str) -> bool:
    """
    Check if the MinIO health endpoint is responsive.

    Args:
        url (str): The base URL of the MinIO API.

    Returns:
        bool: True if the service is responsive, False otherwise.
    """
    try:
        response: requests.Response = requests.get(f"{url}/minio/health/live")
        return response.status_code == 200
    except ConnectionError:
        return False


def _s3_service(docker_ip: str, docker_services: Any, name: str) -> Dict[str, Any]:
    port: int = docker_services.port_for(name, 9000)
    api_url: str = f"http://{docker_ip}:{port}"
    docker_services.wait_until_responsive(
        timeout=30.0, pause=0.1, check=lambda: _is_s3_responsive(api_url)
    )
    return {
        "endpoint_url": api_url,
        "aws_access_key_id": S3_ACCESS_KEY,
        "aws_secret_access_key": S3_SECRET_KEY,
        "region_name": S3_REGION,
    }


@pytest.fixture(scope="session")
def source_s3_service(docker_ip: str, docker_services: Any) -> Dict[str, Any]:
    """
    Ensure the source S3 service is running and return its connection details.

    Args:
        docker_ip (str): The IP address of the Docker host, provided by pytest-docker.
        docker_services (Any): The pytest-docker services fixture.

    Returns:
        Dict[str, Any]: A dictionary with connection details for the source S3 service.
    """
    return _s3_service(docker_ip, docker_services, "minio-source")


@pytest.fixture(scope="session")
def dest_s3_service(docker_ip: str, docker_services: Any) -> Dict[str, Any]:
    """
    Ensure the destination S3 service is running and return its connection details.

    Args:
        docker_ip (str): The IP address of the Docker host, provided by pytest-docker.
        docker_services (Any): The pytest-docker services fixture.

    Returns:
        Dict[str, Any]: Connection details for the destination S3 service.
    """
    return _s3_service(docker_ip, docker_services, "minio-destination")


@pytest.fixture(scope="function")
def aws_profiles(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Write the two test profiles to temporary AWS config and credentials files.

    Args:
        tmp_path (Path): The pytest fixture for a temporary directory.
        monkeypatch (pytest.MonkeyPatch): Used to point botocore at the files.
    """
    config_file: Path = tmp_path / "aws_config"
    credentials_file: Path = tmp_path / "aws_credentials"
    config_lines: List[str] = []
    credentials_lines: List[str] = []
    for profile in (SOURCE_PROFILE, DEST_PROFILE):
        config_lines += [f"[profile {profile}]", f"region = {S3_REGION}", ""]
        credentials_lines += [
            f"[{profile}]",
            f"aws_access_key_id = {S3_ACCESS_KEY}",
            f"aws_secret_access_key = {S3_SECRET_KEY}",
            "",
        ]
    config_file.write_text("\n".join(config_lines))
    credentials_file.write_text("\n".join(credentials_lines))
    monkeypatch.setenv("AWS_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(credentials_file))
    for name in ("AWS_PROFILE", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest_asyncio.fixture(scope="function")
async def s3_buckets(
    source_s3_service: Dict[str, Any],
    dest_s3_service: Dict[str, Any],
) -> AsyncGenerator[Dict[str, str], None]:
    """
    Create unique, isolated S3 buckets for a single test function.

    Guarantees cleanup of buckets and their contents after the test.

    Args:
        source_s3_service (Dict[str, Any]): Connection details for the source S3.
        dest_s3_service (Dict[str, Any]): Connection details for the destination S3.

    Yield:
        AsyncGenerator[Dict[str, str], None]: A dictionary with the names of
            the created source and destination buckets.
    """
    session: AioSession = get_session()
    suffix: str = f"test-bucket-{uuid.uuid4()}"
    source_bucket: str = f"source-{suffix}"
    dest_bucket: str = f"dest-{suffix}"

    async with (
        session.create_client("s3", **source_s3_service) as s3_source,
        session.create_client("s3", **dest_s3_service) as s3_dest,
    ):
        await s3_source.create_bucket(Bucket=source_bucket)
        await s3_dest.create_bucket(Bucket=dest_bucket)

    yield {"source": source_bucket, "destination": dest_bucket}

    # Cleanup: boto3 is simpler for synchronous, recursive delete
    boto_config: BotoConfig = BotoConfig(
        retries={"max_attempts": 0, "mode": "standard"}
    )
    for service, bucket in [
        (source_s3_service, source_bucket),
        (dest_s3_service, dest_bucket),
    ]:
        resource: S3ServiceResource = boto3.resource(
            "s3", **service, config=boto_config
        )
        try:
            bucket_obj: Bucket = resource.Bucket(bucket)
            bucket_obj.objects.all().delete()
            bucket_obj.delete()
        except ClientError as e:
            if e.response["Error"]["Code"] != "NoSuchBucket":
                raise
