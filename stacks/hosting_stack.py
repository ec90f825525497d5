from typing import Any
from aws_cdk import (
    Stack,
    CfnOutput,
    Duration,
    aws_s3 as s3,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
)
from constructs import Construct

from config import PRICE_CLASSES
from stacks.bucket_drain import BucketDrain


class HostingStack(Stack):
    """
    Deploys the hosting infrastructure for the static site:
    1. Private, versioned S3 bucket that receives the build output.
    2. Drain custom resource that empties the bucket before it is deleted.
    3. CloudFront Distribution reading the bucket through an Origin Access Identity.
    """
    def __init__(self, scope: Construct, construct_id: str, config: Any, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # =================================================================
        # 1. SITE S3 BUCKET (Origin & Pipeline Artifact Store)
        # =================================================================
        site_bucket_name = f"{config.prefix}-{self.region}-{self.stack_name.lower()}-bucket"

        self.site_bucket = s3.Bucket(self, "SiteBucket",
            bucket_name=site_bucket_name,
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            enforce_ssl=True,  # Denies every request made without TLS
            versioned=True,
            lifecycle_rules=[
                s3.LifecycleRule(
                    id="ExpireOldVersions",
                    noncurrent_version_expiration=Duration.days(30),
                ),
                s3.LifecycleRule(
                    id="DeleteOldVersions",
                    expiration=Duration.days(365),
                ),
            ],
            removal_policy=config.removal_policy,
            # Emptying is handled by the BucketDrain custom resource below
            auto_delete_objects=False
        )

        # =================================================================
        # 2. TEARDOWN DRAIN
        # =================================================================
        # Runs before CloudFormation deletes the bucket; a failed drain halts the teardown.
        self.drain = BucketDrain(self, "EmptySiteBucket",
            bucket=self.site_bucket,
            removal_policy=config.removal_policy
        )

        # =================================================================
        # 3. CLOUDFRONT DISTRIBUTION
        # =================================================================
        self.origin_access_identity = cloudfront.OriginAccessIdentity(self, "SiteOAI",
            comment=f"Access identity for {config.prefix} site bucket"
        )

        # Adds the s3:GetObject grant for the OAI to the bucket policy
        s3_origin = origins.S3BucketOrigin.with_origin_access_identity(
            self.site_bucket,
            origin_access_identity=self.origin_access_identity
        )

        self.distribution = cloudfront.Distribution(self, "SiteDistribution",
            comment=f"{config.prefix} static site",
            default_root_object="index.html",
            price_class=PRICE_CLASSES[config.price_class],
            default_behavior=cloudfront.BehaviorOptions(
                origin=s3_origin,
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD,
                cached_methods=cloudfront.CachedMethods.CACHE_GET_HEAD,
                # No query strings or cookies forwarded to the origin
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
                compress=True
            )
        )

        # =================================================================
        # 4. OUTPUTS
        # =================================================================
        self.distribution_url = f"https://{self.distribution.distribution_domain_name}"
        CfnOutput(self, "CloudFrontDistributionUrl",
            description="URL of the CloudFront distribution",
            value=self.distribution_url,
            export_name=f"{self.stack_name}-CloudFrontDistributionUrl"
        )
        CfnOutput(self, "SiteBucketName", value=self.site_bucket.bucket_name)
