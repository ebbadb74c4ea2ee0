"""Reusable constructs and builders shared by the application stacks."""

from .container_definition import (
    FargateContainerDefinition,
    aws_logs_configuration,
    render_container_definitions,
)
from .errors import ConfigurationError, InfrastructureError, ResourceCompositionError
from .role_with_policy import RoleConfig, RoleWithPolicy, RoleWithPolicyProps

__all__ = [
    "ConfigurationError",
    "FargateContainerDefinition",
    "InfrastructureError",
    "ResourceCompositionError",
    "RoleConfig",
    "RoleWithPolicy",
    "RoleWithPolicyProps",
    "aws_logs_configuration",
    "render_container_definitions",
]
