import os
from aws_cdk import (
    CustomResource,
    Duration,
    RemovalPolicy,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_s3 as s3,
    custom_resources as cr,
)
from constructs import Construct

DRAIN_CODE_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "lambda", "bucket_drain")


class BucketDrain(Construct):
    """
    Empties a bucket when the stack is deleted so the bucket itself can be removed.

    The custom resource takes the bucket name as a property, which makes
    CloudFormation delete it (and run the drain) before the bucket.
    A failed drain fails the custom resource and halts the stack deletion.
    """
    def __init__(self, scope: Construct, construct_id: str, *, bucket: s3.IBucket, removal_policy: RemovalPolicy) -> None:
        super().__init__(scope, construct_id)

        self.handler = lambda_.Function(self, "Handler",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="main.lambda_handler",
            code=lambda_.Code.from_asset(DRAIN_CODE_DIR),
            # Upper bound for one drain; CloudFormation reports a timeout as a failure
            timeout=Duration.minutes(5),
            logging_format=lambda_.LoggingFormat.JSON,
            log_group=logs.LogGroup(self, "HandlerLogs",
                retention=logs.RetentionDays.ONE_WEEK,
                removal_policy=removal_policy,
            ),
            description="Empties the site bucket on stack deletion",
        )

        # Least privilege: list and delete inside this bucket only
        self.handler.add_to_role_policy(iam.PolicyStatement(
            actions=["s3:ListBucket", "s3:ListBucketVersions"],
            resources=[bucket.bucket_arn]
        ))
        self.handler.add_to_role_policy(iam.PolicyStatement(
            actions=["s3:DeleteObject", "s3:DeleteObjectVersion"],
            resources=[bucket.arn_for_objects("*")]
        ))

        provider = cr.Provider(self, "Provider",
            on_event_handler=self.handler,
            log_group=logs.LogGroup(self, "ProviderLogs",
                retention=logs.RetentionDays.ONE_WEEK,
                removal_policy=removal_policy,
            ),
        )

        self.resource = CustomResource(self, "Resource",
            service_token=provider.service_token,
            resource_type="Custom::EmptyS3Bucket",
            properties={"BucketName": bucket.bucket_name},
            removal_policy=RemovalPolicy.DESTROY,
        )
        self.resource.node.add_dependency(bucket)
