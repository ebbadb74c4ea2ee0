"""Entry point for the application infrastructure deployment.

Reads the deployment inputs from the environment, builds the CDK application
and synthesizes the CloudFormation template.

Required Environment Variables:
    APP_IMAGE_TAG: Image tag deployed for the upstream, downstream and
        collector containers.
    APP_VPC_ID: VPC hosting the service security group.
    APP_SUBNET_IDS: Comma-separated subnets the service runs in.

Environment Configuration Options:
    1. AWS Named Profile:
       AWS_PROFILE: Named profile from AWS credentials file

    2. Direct Environment Variables:
       AWS_DEFAULT_REGION: Target AWS region for deployment
       CDK_DEFAULT_ACCOUNT: Target AWS account for deployment

    APP_NAME: Optional name root for all resources.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

import boto3
from aws_cdk import App, Environment

from stacks.app import MainStack
from stacks.app.constants import DEFAULT_APP_NAME, DEFAULT_REGION
from stacks.configs import MainStackConfig, consume_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StackConfiguration:
    """Configuration settings for stack deployment.

    Attributes:
        app_name: Name root for resources, also used for the stack name.
        aws_profile: Optional AWS credentials profile name.
    """

    app_name: str = DEFAULT_APP_NAME
    aws_profile: str | None = None

    @property
    def stack_name(self) -> str:
        """Generate the stack name from the app name."""
        return f"{self.app_name}-main"

    def with_app_name(self, app_name: str) -> "StackConfiguration":
        """Create new configuration with updated app name."""
        return replace(self, app_name=app_name)


def create_deployment_environment(config: StackConfiguration) -> Environment:
    """Creates CDK Environment from configuration.

    Args:
        config: Stack configuration containing environment details.

    Returns:
        CDK Environment with account and region resolved.
    """
    if config.aws_profile:
        session = boto3.Session(profile_name=config.aws_profile)
        sts = session.client("sts")
        account = sts.get_caller_identity()["Account"]
        return Environment(
            account=account,
            region=session.region_name or DEFAULT_REGION,
        )

    return Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=os.environ.get("AWS_DEFAULT_REGION", DEFAULT_REGION),
    )


def initialize_app(env_vars: Mapping[str, str] | None = None) -> App:
    """Initializes and configures the CDK application.

    Args:
        env_vars: Environment to read inputs from; defaults to ``os.environ``.

    Returns:
        Configured CDK App instance ready for synthesis.

    Raises:
        ConfigurationError: If a required input is missing.
    """
    env_vars = os.environ if env_vars is None else env_vars
    app_config = consume_env(env_vars)

    config = StackConfiguration(aws_profile=env_vars.get("AWS_PROFILE"))
    if env_vars.get("APP_NAME"):
        config = config.with_app_name(env_vars["APP_NAME"])

    env = create_deployment_environment(config)
    app = App()

    logger.info("Building stack %s", config.stack_name)
    MainStack(
        app,
        config.stack_name,
        config=MainStackConfig.from_app_config(
            app_config,
            app_name=config.app_name,
            aws_region=env.region or DEFAULT_REGION,
        ),
        env=env,
        description=f"ECS Fargate deployment of the {config.app_name} services",
        tags={
            "Application": config.app_name,
            "ManagedBy": "AWS-CDK",
        },
    )
    return app


if __name__ == "__main__":
    initialize_app().synth()
