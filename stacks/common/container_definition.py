"""Fargate container definition builder.

This module accumulates the runtime settings of a single container (image,
resources, ports, health check, environment and log routing) and serializes
them into the container definition shape ECS expects inside a task
definition. The serialized shape is the camelCase form accepted by
``RegisterTaskDefinition``; ``to_cfn_property`` renders the same content as
the CloudFormation property type used by ``CfnTaskDefinition``.
"""

import copy
import json
from collections.abc import Iterable
from typing import Any, Literal, Required, TypedDict

from aws_cdk import aws_ecs as ecs


class PortMapping(TypedDict, total=False):
    """Port mapping of a container."""

    containerPort: Required[int]
    hostPort: int
    protocol: Literal["tcp", "udp"]


class HealthCheck(TypedDict, total=False):
    """Container health check; intervals are expressed in seconds."""

    command: list[str]
    interval: int
    timeout: int
    retries: int
    startPeriod: int


class EnvironmentVariable(TypedDict):
    """Environment variable passed to a container."""

    name: str
    value: str


AwsLogsOptions = TypedDict(
    "AwsLogsOptions",
    {
        "awslogs-group": str,
        "awslogs-region": str,
        "awslogs-stream-prefix": str,
    },
)


class LogConfiguration(TypedDict):
    """Log routing of a container through the ``awslogs`` driver."""

    logDriver: Literal["awslogs"]
    options: AwsLogsOptions


class ContainerDefinitionOptions(TypedDict, total=False):
    """Base options a container definition is constructed with."""

    image: Required[str]
    memory: int
    memoryReservation: int
    portMappings: list[PortMapping]
    healthCheck: HealthCheck
    cpu: int
    essential: bool
    command: list[str]
    environment: list[EnvironmentVariable]
    logConfiguration: LogConfiguration
    name: str


ACCUMULATED_KEYS = ("portMappings", "environment")


def aws_logs_configuration(
    log_group_name: str,
    region: str,
    stream_prefix: str,
) -> LogConfiguration:
    """Build an ``awslogs`` log configuration.

    Args:
        log_group_name: CloudWatch log group receiving the container output.
        region: Region of the log group.
        stream_prefix: Prefix of the log streams created for the container.

    Returns:
        Log configuration for a container definition.
    """
    return {
        "logDriver": "awslogs",
        "options": {
            "awslogs-group": log_group_name,
            "awslogs-region": region,
            "awslogs-stream-prefix": stream_prefix,
        },
    }


class FargateContainerDefinition:
    """Mutable builder for one container of a Fargate task definition.

    Port mappings and environment variables are accumulated in insertion
    order; nothing is deduplicated. Serialization has no side effects and
    can be repeated.

    Attributes:
        name: Container name, unique within a task definition.
    """

    def __init__(self, name: str, options: ContainerDefinitionOptions) -> None:
        self.name = name
        self._options = options
        self._port_mappings: list[PortMapping] = list(options.get("portMappings", []))
        self._environment: list[EnvironmentVariable] = list(
            options.get("environment", []),
        )

    def add_port_mapping(self, *mappings: PortMapping) -> None:
        """Append port mappings after the ones already present."""
        self._port_mappings.extend(mappings)

    def add_environment(self, *envs: EnvironmentVariable) -> None:
        """Append environment variables; repeated names are all kept."""
        self._environment.extend(envs)

    def to_json(self) -> dict[str, Any]:
        """Serialize into the ECS container definition shape.

        Base options come first, then ``name``, then ``portMappings`` and
        ``environment``. The two accumulated keys are omitted when empty.

        Returns:
            A new dictionary on every call.
        """
        definition: dict[str, Any] = {
            key: copy.deepcopy(value)
            for key, value in self._options.items()
            if key not in ACCUMULATED_KEYS
        }
        definition["name"] = self.name
        if self._port_mappings:
            definition["portMappings"] = copy.deepcopy(self._port_mappings)
        if self._environment:
            definition["environment"] = copy.deepcopy(self._environment)
        return definition

    def to_cfn_property(self) -> ecs.CfnTaskDefinition.ContainerDefinitionProperty:
        """Render the serialized definition as a CloudFormation property.

        Keys missing from ``to_json()`` stay unset so they are left out of
        the synthesized template as well.
        """
        definition = self.to_json()
        health_check = definition.get("healthCheck")
        log_configuration = definition.get("logConfiguration")

        return ecs.CfnTaskDefinition.ContainerDefinitionProperty(
            name=definition["name"],
            image=definition["image"],
            memory=definition.get("memory"),
            memory_reservation=definition.get("memoryReservation"),
            cpu=definition.get("cpu"),
            essential=definition.get("essential"),
            command=definition.get("command"),
            port_mappings=[
                ecs.CfnTaskDefinition.PortMappingProperty(
                    container_port=mapping["containerPort"],
                    host_port=mapping.get("hostPort"),
                    protocol=mapping.get("protocol"),
                )
                for mapping in definition["portMappings"]
            ]
            if "portMappings" in definition
            else None,
            health_check=ecs.CfnTaskDefinition.HealthCheckProperty(
                command=health_check.get("command"),
                interval=health_check.get("interval"),
                timeout=health_check.get("timeout"),
                retries=health_check.get("retries"),
                start_period=health_check.get("startPeriod"),
            )
            if health_check is not None
            else None,
            environment=[
                ecs.CfnTaskDefinition.KeyValuePairProperty(
                    name=env["name"],
                    value=env["value"],
                )
                for env in definition["environment"]
            ]
            if "environment" in definition
            else None,
            log_configuration=ecs.CfnTaskDefinition.LogConfigurationProperty(
                log_driver=log_configuration["logDriver"],
                options=dict(log_configuration["options"]),
            )
            if log_configuration is not None
            else None,
        )


def render_container_definitions(
    definitions: Iterable[FargateContainerDefinition],
) -> str:
    """JSON-encode container definitions as a task definition payload.

    Args:
        definitions: Container definitions in task order.

    Returns:
        JSON array of the serialized definitions, order preserved.
    """
    return json.dumps([definition.to_json() for definition in definitions])
