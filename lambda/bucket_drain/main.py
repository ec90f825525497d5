import logging
from typing import Any, Dict, Optional

import boto3

from drain import DrainRequest, drain_bucket

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Created on first use and reused while the Lambda container is "warm"
_S3_CLIENT = None


class BucketDrainError(Exception):
    """Raised to make the provider framework report FAILED to CloudFormation."""


class RequestLogAdapter(logging.LoggerAdapter):
    """Attaches the request context to every record, keeping call-site extras."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_s3_client():
    global _S3_CLIENT
    if _S3_CLIENT is None:
        _S3_CLIENT = boto3.client("s3")
    return _S3_CLIENT


def lambda_handler(event: Dict[str, Any], context: Optional[Any]) -> Dict[str, Any]:
    """
    onEvent handler for the EmptyBucket custom resource.
    Create/Update are acknowledged as-is; Delete empties the bucket first.
    Any drain failure is raised so the stack deletion stops with a visible error.
    """
    request = DrainRequest.from_event(event)
    request_log = RequestLogAdapter(logger, {
        "request_id": event.get("RequestId"),
        "operation": request.operation.value,
        "bucket": request.bucket_name,
    })
    request_log.info("Received %s request for bucket %s", request.operation.value, request.bucket_name)

    response = drain_bucket(request, get_s3_client(), request_log)
    if not response.succeeded:
        raise BucketDrainError(response.error_detail)

    return {
        "PhysicalResourceId": f"drain-{request.bucket_name}",
        "Data": response.to_dict(),
    }
