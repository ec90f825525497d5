import os
import re
from typing import Optional
from dotenv import load_dotenv
from aws_cdk import RemovalPolicy, Tags, aws_cloudfront as cloudfront

# Load environment variables from a .env file
load_dotenv()

NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")
REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
CONNECTION_ARN_PATTERN = re.compile(
    r"^arn:aws[a-z-]*:(codestar-connections|codeconnections):[a-z0-9-]+:\d{12}:connection/[A-Za-z0-9-]+$"
)
IMAGE_PATTERN = re.compile(r"^[A-Za-z0-9._/:@-]+$")
DEPLOYER_PATTERN = re.compile(r"^[\w .@+=:/-]+$")

PRICE_CLASSES = {
    "PriceClass_100": cloudfront.PriceClass.PRICE_CLASS_100,
    "PriceClass_200": cloudfront.PriceClass.PRICE_CLASS_200,
    "PriceClass_All": cloudfront.PriceClass.PRICE_CLASS_ALL,
}
MAX_PREFIX_LENGTH = 16


class ConfigError(RuntimeError):
    """Raised when a provisioning parameter is missing or malformed."""


class EnvConfig:
    """
    Stores environment-specific configuration for the CDK stacks.
    """
    def __init__(
        self,
        env_name: str,
        workload: str,
        github_repository: str,
        github_connection_arn: str,
        github_branch: str = "main",
        deployer: str = "CDK",
        price_class: str = "PriceClass_100",
        codebuild_image: str = "aws/codebuild/standard:7.0",
        account: Optional[str] = None,
        region: Optional[str] = None,
    ):
        self.name = env_name
        self.workload = workload
        self.deployer = deployer
        self.account = account
        self.region = region
        self.price_class = price_class
        self.codebuild_image = codebuild_image

        # GitHub Configuration
        self.github_repository = github_repository
        self.github_branch = github_branch
        self.github_connection_arn = github_connection_arn

        # Data Lifecycle Policy:
        # The site bucket is drained and removed with the stack in every environment.
        self.removal_policy = RemovalPolicy.DESTROY

        self.validate()

    @property
    def prefix(self) -> str:
        """Common resource name prefix, e.g. 'myapp-dev'."""
        return f"{self.workload}-{self.name}"

    @property
    def github_owner(self) -> str:
        return self.github_repository.split("/", 1)[0]

    @property
    def github_repo(self) -> str:
        return self.github_repository.split("/", 1)[1]

    @property
    def tags(self) -> dict:
        return {
            "environment": self.name,
            "deployer": self.deployer,
            "workload": self.workload,
        }

    def apply_tags(self, scope) -> None:
        """Tags every resource under scope with environment, deployer and workload."""
        for tag_key, tag_value in self.tags.items():
            Tags.of(scope).add(tag_key, tag_value)

    def validate(self) -> None:
        """
        Checks every parameter against its naming pattern.
        Raises ConfigError before any resource is declared.
        """
        check_pattern("environment", self.name, NAME_PATTERN,
                      "Only lowercase alphanumeric and hyphens are allowed.")
        check_pattern("workload", self.workload, NAME_PATTERN,
                      "Only lowercase alphanumeric and hyphens are allowed.")
        check_pattern("deployer", self.deployer, DEPLOYER_PATTERN,
                      "Letters, digits, spaces and _.@+=:/- are allowed.")
        check_pattern("github repository", self.github_repository, REPOSITORY_PATTERN,
                      "Expected the form 'owner/repo'.")
        check_pattern("github branch", self.github_branch, BRANCH_PATTERN,
                      "Not a valid branch name.")
        check_pattern("github connection arn", self.github_connection_arn, CONNECTION_ARN_PATTERN,
                      "Expected a CodeStar connection ARN.")
        check_pattern("codebuild image", self.codebuild_image, IMAGE_PATTERN,
                      "Not a valid image reference.")

        # Keeps '<prefix>-<region>-<prefix>-hosting-bucket' within S3's 63 characters
        if len(self.prefix) > MAX_PREFIX_LENGTH:
            raise ConfigError(
                f"❌ INVALID CONFIG: '{self.prefix}' is longer than {MAX_PREFIX_LENGTH} characters; shorten the workload name"
            )

        if self.price_class not in PRICE_CLASSES:
            raise ConfigError(
                f"❌ INVALID CONFIG: price class '{self.price_class}' must be one of {', '.join(PRICE_CLASSES)}"
            )

def check_pattern(label: str, value: Optional[str], pattern: re.Pattern, hint: str) -> None:
    if not value or not pattern.match(value):
        raise ConfigError(f"❌ INVALID CONFIG: {label} '{value}' is malformed. {hint}")

def get_required_env(key: str) -> str:
    """
    Retrieves a required environment variable or raises a ConfigError if missing.
    """
    value = os.getenv(key)
    if not value:
        raise ConfigError(f"❌ MISSING CONFIG: Required environment variable '{key}' not found in .env")
    return value

def get_config(scope) -> EnvConfig:
    """
    Factory function to generate the EnvConfig object based on CDK context.
    Usage: cdk deploy -c env=prod
    """
    # Default to 'dev' environment if no context is provided
    env_name = scope.node.try_get_context("env") or "dev"
    prefix = env_name.upper()

    print(f"🔍 Initializing CDK Infrastructure for environment: {prefix}")

    # Load Mandatory Variables
    workload = get_required_env(f"{prefix}_WORKLOAD")
    github_repo = get_required_env("GITHUB_REPOSITORY")
    github_conn = get_required_env("GITHUB_CONNECTION_ARN")

    # Load Optional Variables
    return EnvConfig(
        env_name=env_name,
        workload=workload,
        github_repository=github_repo,
        github_connection_arn=github_conn,
        github_branch=os.getenv("GITHUB_BRANCH") or "main",
        deployer=os.getenv("DEPLOYER") or "CDK",
        price_class=os.getenv(f"{prefix}_PRICE_CLASS") or "PriceClass_100",
        codebuild_image=os.getenv("CODEBUILD_IMAGE") or "aws/codebuild/standard:7.0",
        account=os.getenv(f"{prefix}_ACCOUNT"),
        region=os.getenv(f"{prefix}_REGION"),
    )
