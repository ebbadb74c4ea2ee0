"""Deployment inputs for the application stack.

Defines the validated inputs read from the process environment and the
configuration models the main stack is built from.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from pydantic import BaseModel, Field

from stacks.common.errors import ConfigurationError

KEY_IMAGE_TAG: Final[str] = "APP_IMAGE_TAG"
KEY_VPC_ID: Final[str] = "APP_VPC_ID"
KEY_SUBNET_IDS: Final[str] = "APP_SUBNET_IDS"
REQUIRED_KEYS: Final[tuple[str, ...]] = (KEY_IMAGE_TAG, KEY_VPC_ID, KEY_SUBNET_IDS)


class AppConfig(BaseModel):
    """Validated deployment inputs.

    Attributes:
        image_tag: Image tag deployed for every container.
        vpc_id: VPC hosting the service security group.
        subnet_ids: Subnets the service tasks are placed in, in input order.
    """

    image_tag: str
    vpc_id: str
    subnet_ids: list[str]


class ImageTags(BaseModel):
    """Image tag per container of the task definition."""

    upstream: str
    downstream: str
    collector: str

    @classmethod
    def single(cls, tag: str) -> "ImageTags":
        """Use the same tag for all three containers."""
        return cls(upstream=tag, downstream=tag, collector=tag)


class NetworkConfig(BaseModel):
    """Network placement of the service.

    Attributes:
        vpc_id: VPC identifier.
        subnet_ids: Ordered subnet identifiers.
    """

    vpc_id: str
    subnet_ids: list[str] = Field(default_factory=list)


class MainStackConfig(BaseModel):
    """Configuration model for the application stack.

    Attributes:
        app_name: Name root for every resource of the stack.
        aws_region: Region the stack and its log routing target.
        image_tags: Image tag per container.
        network_config: VPC and subnets of the service.
    """

    app_name: str
    aws_region: str
    image_tags: ImageTags
    network_config: NetworkConfig

    @classmethod
    def from_app_config(
        cls,
        app_config: AppConfig,
        app_name: str,
        aws_region: str,
    ) -> "MainStackConfig":
        """Derive the stack configuration from validated inputs."""
        return cls(
            app_name=app_name,
            aws_region=aws_region,
            image_tags=ImageTags.single(app_config.image_tag),
            network_config=NetworkConfig(
                vpc_id=app_config.vpc_id,
                subnet_ids=app_config.subnet_ids,
            ),
        )


@dataclass(frozen=True)
class EnvValidationResult:
    """Outcome of validating the environment.

    Exactly one of ``config`` and ``missing_keys`` is populated.
    """

    config: AppConfig | None = None
    missing_keys: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.config is not None


def validate_env(env: Mapping[str, str]) -> EnvValidationResult:
    """Validate the deployment inputs found in ``env``.

    Args:
        env: Environment mapping, usually ``os.environ``.

    Returns:
        The parsed configuration, or every missing key in check order.
    """
    invalid_keys: list[str] = []

    image_tag = env.get(KEY_IMAGE_TAG)
    if image_tag is None or image_tag == "":
        invalid_keys.append(KEY_IMAGE_TAG)

    # APP_VPC_ID is reported whenever APP_IMAGE_TAG is blank; an empty
    # APP_VPC_ID on its own is accepted.
    vpc_id = env.get(KEY_VPC_ID)
    if vpc_id is None or image_tag == "":
        invalid_keys.append(KEY_VPC_ID)

    subnet_id_list = env.get(KEY_SUBNET_IDS)
    if subnet_id_list is None or subnet_id_list == "":
        invalid_keys.append(KEY_SUBNET_IDS)

    if invalid_keys:
        return EnvValidationResult(missing_keys=invalid_keys)

    return EnvValidationResult(
        config=AppConfig(
            image_tag=image_tag,
            vpc_id=vpc_id,
            subnet_ids=subnet_id_list.split(","),
        ),
    )


def consume_env(env: Mapping[str, str]) -> AppConfig:
    """Read the deployment inputs from ``env``.

    Raises:
        ConfigurationError: If any required key is missing or empty.
    """
    result = validate_env(env)
    if result.config is None:
        raise ConfigurationError(result.missing_keys)
    return result.config
