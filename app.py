import aws_cdk as cdk
from config import get_config
from stacks.hosting_stack import HostingStack
from stacks.pipeline_stack import PipelineStack

app = cdk.App()
config = get_config(app)

main_env = cdk.Environment(account=config.account, region=config.region)

# =================================================================
# 1. HOSTING STACK
# =================================================================
# Deploys the site bucket, its teardown drain and the CloudFront distribution.
hosting_stack = HostingStack(
    app, f"{config.prefix}-hosting",
    config=config,
    env=main_env
)

# =================================================================
# 2. PIPELINE STACK
# =================================================================
# Source -> Build -> Deploy into the hosting bucket.
pipeline_stack = PipelineStack(
    app, f"{config.prefix}-pipeline",
    config=config,
    site_bucket=hosting_stack.site_bucket,
    distribution=hosting_stack.distribution,
    env=main_env
)

# =================================================================
# DEPLOYMENT DEPENDENCIES
# =================================================================
# The pipeline is destroyed first, then the hosting stack drains and removes the bucket.
pipeline_stack.add_dependency(hosting_stack)

config.apply_tags(app)

app.synth()
