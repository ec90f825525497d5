import aws_cdk as core
import aws_cdk.assertions as assertions
from aws_cdk.assertions import Match

from stacks.hosting_stack import HostingStack
from stacks.pipeline_stack import PipelineStack

from conftest import CONNECTION_ARN


def synth(config):
    app = core.App()
    hosting = HostingStack(app, f"{config.prefix}-hosting", config=config)
    pipeline = PipelineStack(app, f"{config.prefix}-pipeline",
        config=config,
        site_bucket=hosting.site_bucket,
        distribution=hosting.distribution
    )
    pipeline.add_dependency(hosting)
    return assertions.Template.from_stack(pipeline)


def pipeline_stages(template):
    pipelines = template.find_resources("AWS::CodePipeline::Pipeline")
    assert len(pipelines) == 1
    return next(iter(pipelines.values()))["Properties"]["Stages"]


def test_stages_run_source_build_deploy_in_order(dev_config):
    stages = pipeline_stages(synth(dev_config))

    assert [stage["Name"] for stage in stages] == ["Source", "Build", "Deploy"]


def test_each_stage_consumes_previous_output(dev_config):
    source, build, deploy = pipeline_stages(synth(dev_config))

    source_out = source["Actions"][0]["OutputArtifacts"][0]["Name"]
    build_in = build["Actions"][0]["InputArtifacts"][0]["Name"]
    build_out = build["Actions"][0]["OutputArtifacts"][0]["Name"]
    deploy_in = deploy["Actions"][0]["InputArtifacts"][0]["Name"]

    assert build_in == source_out
    assert deploy_in == build_out
    assert build_out != source_out


def test_source_action_uses_connection(dev_config):
    source, _, _ = pipeline_stages(synth(dev_config))
    action = source["Actions"][0]

    assert action["ActionTypeId"]["Provider"] == "CodeStarSourceConnection"
    assert action["Configuration"]["ConnectionArn"] == CONNECTION_ARN
    assert action["Configuration"]["FullRepositoryId"] == "octo-org/demo-site"
    assert action["Configuration"]["BranchName"] == "main"


def test_deploy_action_extracts_into_site_bucket(dev_config):
    _, _, deploy = pipeline_stages(synth(dev_config))
    action = deploy["Actions"][0]

    assert action["ActionTypeId"]["Category"] == "Deploy"
    assert action["ActionTypeId"]["Provider"] == "S3"
    assert action["Configuration"]["Extract"] == "true"
    assert "Fn::ImportValue" in action["Configuration"]["BucketName"]


def test_pipeline_name_and_artifact_store(dev_config):
    template = synth(dev_config)

    template.has_resource_properties("AWS::CodePipeline::Pipeline", {
        "Name": "demo-dev-pipeline",
        "ArtifactStore": {"Type": "S3", "Location": {"Fn::ImportValue": Match.any_value()}},
    })


def test_build_project_environment(dev_config):
    template = synth(dev_config)

    template.has_resource_properties("AWS::CodeBuild::Project", {
        "Name": "demo-dev-build",
        "Environment": Match.object_like({
            "ComputeType": "BUILD_GENERAL1_SMALL",
            "Image": "aws/codebuild/standard:7.0",
            "Type": "LINUX_CONTAINER",
        }),
        "TimeoutInMinutes": 10,
        "QueuedTimeoutInMinutes": 5,
    })


def test_build_can_invalidate_distribution(dev_config):
    template = synth(dev_config)

    template.has_resource_properties("AWS::IAM::Policy", {
        "PolicyDocument": {
            "Statement": Match.array_with([
                Match.object_like({"Action": "cloudfront:CreateInvalidation", "Effect": "Allow"}),
            ])
        }
    })
