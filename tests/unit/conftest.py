"""Shared fixtures: a stack config and an in-memory, paginating S3 client."""

import logging
from typing import Callable, Dict, Iterator, Optional, Tuple

import pytest
from botocore.exceptions import ClientError

from config import EnvConfig

CONNECTION_ARN = "arn:aws:codestar-connections:us-east-1:123456789012:connection/0a1b2c3d-4e5f-6789-abcd-ef0123456789"


def client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeVersionPaginator:
    """Mimics the list_object_versions paginator: pages are fetched lazily, one per iteration."""

    def __init__(self, client: "FakeS3Client") -> None:
        self._client = client

    def paginate(self, Bucket: str) -> Iterator[dict]:
        client = self._client
        marker: Optional[Tuple[str, str]] = None
        while True:
            client.list_calls += 1
            if client.fail_on_list:
                raise client_error("AccessDenied", "Access Denied", "ListObjectVersions")
            if Bucket not in client.buckets:
                raise client_error("NoSuchBucket", "The specified bucket does not exist", "ListObjectVersions")

            remaining = sorted(e for e in client.buckets[Bucket] if marker is None or e > marker)
            page = remaining[:client.page_size]
            truncated = len(remaining) > client.page_size
            yield {
                "Versions": [
                    {"Key": key, "VersionId": version}
                    for key, version in page if client.buckets[Bucket][(key, version)] == "version"
                ],
                "DeleteMarkers": [
                    {"Key": key, "VersionId": version}
                    for key, version in page if client.buckets[Bucket][(key, version)] == "marker"
                ],
                "IsTruncated": truncated,
            }
            if not truncated:
                return
            marker = page[-1]


class FakeS3Client:
    def __init__(self, page_size: int = 1000) -> None:
        self.page_size = page_size
        self.buckets: Dict[str, Dict[Tuple[str, str], str]] = {}
        self.list_calls = 0
        self.delete_calls = 0
        self.fail_on_list = False
        self.fail_on_delete_call: Optional[int] = None
        self.reject_keys_on_delete = False

    def add_objects(self, bucket: str, count: int, versions: int = 1) -> None:
        contents = self.buckets.setdefault(bucket, {})
        for i in range(count):
            for v in range(versions):
                contents[(f"assets/file-{i:05d}.js", f"v{v}")] = "version"

    def add_delete_marker(self, bucket: str, key: str) -> None:
        self.buckets.setdefault(bucket, {})[(key, "marker-1")] = "marker"

    def object_count(self, bucket: str) -> int:
        return len(self.buckets.get(bucket, {}))

    def get_paginator(self, operation_name: str) -> FakeVersionPaginator:
        assert operation_name == "list_object_versions"
        return FakeVersionPaginator(self)

    def delete_objects(self, Bucket: str, Delete: dict) -> dict:
        self.delete_calls += 1
        if self.fail_on_delete_call == self.delete_calls:
            raise client_error("AccessDenied", "Access Denied", "DeleteObjects")

        objects = Delete["Objects"]
        assert len(objects) <= 1000
        if self.reject_keys_on_delete:
            return {"Errors": [
                {"Key": o["Key"], "VersionId": o.get("VersionId"), "Code": "AccessDenied", "Message": "Access Denied"}
                for o in objects
            ]}
        for o in objects:
            del self.buckets[Bucket][(o["Key"], o["VersionId"])]
        return {}


@pytest.fixture
def make_s3_client() -> Callable[..., FakeS3Client]:
    """Factory for clients with a custom listing page size."""
    def _make(page_size: int = 1000) -> FakeS3Client:
        return FakeS3Client(page_size=page_size)
    return _make


@pytest.fixture
def s3_client(make_s3_client) -> FakeS3Client:
    return make_s3_client()


@pytest.fixture
def drain_logger() -> logging.Logger:
    return logging.getLogger("tests.bucket_drain")


def make_config(env_name: str = "dev", **overrides) -> EnvConfig:
    params = dict(
        env_name=env_name,
        workload="demo",
        github_repository="octo-org/demo-site",
        github_connection_arn=CONNECTION_ARN,
    )
    params.update(overrides)
    return EnvConfig(**params)


@pytest.fixture
def dev_config() -> EnvConfig:
    return make_config("dev")


@pytest.fixture
def prod_config() -> EnvConfig:
    return make_config("prod", price_class="PriceClass_All")
