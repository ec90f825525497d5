"""Bucket drain procedure.

Empties an S3 bucket so that CloudFormation can delete it. Runs only for
Delete requests; Create and Update requests are acknowledged without
touching the bucket.

The S3 client and the logger are passed in by the caller, so the procedure
holds no global state and can be driven by any client that exposes
``get_paginator("list_object_versions")`` and ``delete_objects``.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union, assert_never

from botocore.exceptions import BotoCoreError, ClientError

# delete_objects accepts at most 1000 keys per call
MAX_DELETE_BATCH = 1000

Logger = Union[logging.Logger, logging.LoggerAdapter]


class DrainOperation(Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


class DrainStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


class DeleteBatchError(Exception):
    """S3 accepted a delete_objects call but refused some of its keys."""


@dataclass(frozen=True)
class DrainRequest:
    operation: DrainOperation
    bucket_name: str

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> "DrainRequest":
        """
        Builds a request from a CloudFormation custom resource event.
        Raises ValueError on an unknown RequestType or a missing bucket name.
        """
        request_type = event.get("RequestType")
        try:
            operation = DrainOperation(request_type)
        except ValueError:
            raise ValueError(f"Unsupported RequestType: {request_type!r}") from None

        bucket_name = (event.get("ResourceProperties") or {}).get("BucketName")
        if not bucket_name:
            raise ValueError("ResourceProperties.BucketName is required")
        return cls(operation=operation, bucket_name=bucket_name)


@dataclass(frozen=True)
class DrainResponse:
    status: DrainStatus
    error_detail: Optional[str] = None
    objects_deleted: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is DrainStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "status": self.status.value,
            "objectsDeleted": self.objects_deleted,
        }
        if self.error_detail is not None:
            body["errorDetail"] = self.error_detail
        return body


def drain_bucket(request: DrainRequest, s3_client: Any, logger: Logger) -> DrainResponse:
    """Handle one drain request and report the outcome."""
    match request.operation:
        case DrainOperation.CREATE | DrainOperation.UPDATE:
            logger.info(
                "%s request for bucket %s: nothing to drain",
                request.operation.value, request.bucket_name,
                extra={"operation": request.operation.value, "bucket": request.bucket_name},
            )
            return DrainResponse(DrainStatus.SUCCESS)
        case DrainOperation.DELETE:
            return _drain(request.bucket_name, s3_client, logger)
        case _:
            assert_never(request.operation)


def _drain(bucket_name: str, s3_client: Any, logger: Logger) -> DrainResponse:
    logger.info("Draining bucket %s", bucket_name, extra={"bucket": bucket_name})
    deleted = 0
    try:
        paginator = s3_client.get_paginator("list_object_versions")
        for page_number, page in enumerate(paginator.paginate(Bucket=bucket_name), start=1):
            entries = _page_entries(page)
            for batch in _chunks(entries, MAX_DELETE_BATCH):
                _delete_batch(s3_client, bucket_name, batch)
                deleted += len(batch)
            logger.info(
                "Page %d: removed %d entries (%d total)", page_number, len(entries), deleted,
                extra={"bucket": bucket_name, "page": page_number, "deleted": deleted},
            )
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "NoSuchBucket":
            logger.warning("Bucket %s does not exist, nothing to drain", bucket_name,
                           extra={"bucket": bucket_name})
            return DrainResponse(DrainStatus.SUCCESS, objects_deleted=deleted)
        return _failed(bucket_name, e, deleted, logger)
    except (BotoCoreError, DeleteBatchError) as e:
        return _failed(bucket_name, e, deleted, logger)

    logger.info("Bucket %s drained: %d entries removed", bucket_name, deleted,
                extra={"bucket": bucket_name, "deleted": deleted})
    return DrainResponse(DrainStatus.SUCCESS, objects_deleted=deleted)


def _failed(bucket_name: str, error: Exception, deleted: int, logger: Logger) -> DrainResponse:
    logger.error("Error draining bucket %s after %d deletions: %s", bucket_name, deleted, error,
                 extra={"bucket": bucket_name, "deleted": deleted})
    return DrainResponse(DrainStatus.FAILED, error_detail=str(error), objects_deleted=deleted)


def _page_entries(page: Dict[str, Any]) -> List[Dict[str, str]]:
    """Every object version and delete marker listed on one page."""
    entries = []
    for item in page.get("Versions", []) + page.get("DeleteMarkers", []):
        entry = {"Key": item["Key"]}
        if item.get("VersionId"):
            entry["VersionId"] = item["VersionId"]
        entries.append(entry)
    return entries


def _chunks(items: List[Dict[str, str]], size: int) -> Iterator[List[Dict[str, str]]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _delete_batch(s3_client: Any, bucket_name: str, batch: List[Dict[str, str]]) -> None:
    response = s3_client.delete_objects(
        Bucket=bucket_name,
        Delete={"Objects": batch, "Quiet": True},
    )
    errors = response.get("Errors") or []
    if errors:
        first = errors[0]
        raise DeleteBatchError(
            f"{len(errors)} of {len(batch)} keys could not be deleted; "
            f"first: {first.get('Key')} ({first.get('Code')}: {first.get('Message')})"
        )
