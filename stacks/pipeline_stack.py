from aws_cdk import (
    Stack,
    Duration,
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as actions,
    aws_iam as iam,
)
from constructs import Construct

class PipelineStack(Stack):
    """
    Deploys the CI/CD Pipeline for the static site.

    This stack automates the following workflow:
    1. Source: Pulls the configured branch from GitHub via CodeStar Connections on every push.
    2. Build: Runs the repository's buildspec.yml in CodeBuild to produce the static bundle.
    3. Deploy: Extracts the build artifact into the site S3 Bucket.

    Each stage consumes the artifact produced by the previous one, so a Deploy
    never starts before the Build for the same change has succeeded.
    """

    def __init__(self, scope: Construct, construct_id: str, config, site_bucket, distribution, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # =================================================================
        # 1. CODEBUILD PROJECT CONFIGURATION (BUILD ENGINE)
        # =================================================================
        self.build_project = codebuild.PipelineProject(self, "SiteBuild",
            project_name=f"{config.prefix}-build",
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.from_code_build_image_id(config.codebuild_image),
                compute_type=codebuild.ComputeType.SMALL,
            ),
            timeout=Duration.minutes(10),
            queued_timeout=Duration.minutes(5),
            # Injects the CloudFront Distribution ID into the build environment
            # This is used by the buildspec to run 'aws cloudfront create-invalidation'
            environment_variables={
                "CLOUDFRONT_ID": codebuild.BuildEnvironmentVariable(
                    value=distribution.distribution_id
                )
            },
            # Path to the build instruction file located in the GitHub repository root
            build_spec=codebuild.BuildSpec.from_source_filename("buildspec.yml")
        )

        # Grant CodeBuild permissions to clear the CloudFront cache post-deployment
        distribution_arn = f"arn:{self.partition}:cloudfront::{self.account}:distribution/{distribution.distribution_id}"
        self.build_project.add_to_role_policy(iam.PolicyStatement(
            actions=["cloudfront:CreateInvalidation"],
            resources=[distribution_arn]
        ))

        # =================================================================
        # 2. PIPELINE ARTIFACTS
        # =================================================================
        # Stored in the site bucket, which is drained when the hosting stack is deleted
        source_output = codepipeline.Artifact("SourceOutput")
        build_output = codepipeline.Artifact("BuildOutput")

        # =================================================================
        # 3. CODEPIPELINE ORCHESTRATION
        # =================================================================
        self.pipeline = codepipeline.Pipeline(self, "SitePipeline",
            pipeline_name=f"{config.prefix}-pipeline",
            artifact_bucket=site_bucket,
            stages=[
                # STAGE 1: Download source code from GitHub
                codepipeline.StageProps(
                    stage_name="Source",
                    actions=[
                        actions.CodeStarConnectionsSourceAction(
                            action_name="SourceAction",
                            owner=config.github_owner,
                            repo=config.github_repo,
                            branch=config.github_branch,
                            output=source_output,
                            connection_arn=config.github_connection_arn,
                            trigger_on_push=True
                        )
                    ]
                ),
                # STAGE 2: Build the static bundle
                codepipeline.StageProps(
                    stage_name="Build",
                    actions=[
                        actions.CodeBuildAction(
                            action_name="BuildAction",
                            project=self.build_project,
                            input=source_output,
                            outputs=[build_output]
                        )
                    ]
                ),
                # STAGE 3: Deploy artifacts to S3
                codepipeline.StageProps(
                    stage_name="Deploy",
                    actions=[
                        actions.S3DeployAction(
                            action_name="DeployAction",
                            bucket=site_bucket,
                            input=build_output,
                            extract=True # Unzips the build output directly into the bucket root
                        )
                    ]
                )
            ]
        )
