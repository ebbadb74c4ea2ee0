"""ECS Fargate application stack.

This module assembles the complete deployment of the application: ECR
repositories for the upstream, downstream and collector images, the ECS
cluster, the CloudWatch log group, the task and execution roles, the task
definition holding the three containers and the service running it.

Resources are created in dependency order. Image URIs, ARNs and names are
always taken from the resources that own them.
"""

import logging
from typing import Any

import cdk_nag
from aws_cdk import Aspects, Stack
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecr as ecr
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_iam as iam
from aws_cdk import aws_logs as logs
from cdk_nag import NagSuppressions
from constructs import Construct

from stacks.common.container_definition import (
    FargateContainerDefinition,
    aws_logs_configuration,
)
from stacks.common.errors import ResourceCompositionError
from stacks.common.role_with_policy import (
    RoleConfig,
    RoleWithPolicy,
    RoleWithPolicyProps,
)
from stacks.configs.app_config import MainStackConfig

from .constants import (
    CONTAINER_NAMES,
    ECS_TASKS_SERVICE_PRINCIPAL,
    ESSENTIAL_CONTAINERS,
    LAUNCH_TYPE,
    LOG_RETENTION_IN_DAYS,
    PLATFORM_VERSION,
    SCHEDULING_STRATEGY,
    SERVICE_DESIRED_COUNT,
    TASK_CPU,
    TASK_FAMILY,
    TASK_MEMORY,
    TASK_NETWORK_MODE,
)
from .outputs import OutputManager

logger = logging.getLogger(__name__)


class MainStack(Stack):
    """Application deployment on ECS Fargate.

    Attributes:
        config: Stack configuration.
        security_group: Security group attached to the service tasks.
        repositories: ECR repository per container name.
        cluster: ECS cluster running the service.
        log_group: CloudWatch log group receiving all container logs.
        trust_document: Trust document shared by the task and execution roles.
        task_role: Role assumed by the application containers.
        execution_role: Role used by ECS to pull images and write logs.
        container_definitions: Containers of the task definition, in order.
        task_definition: Fargate task definition.
        service: ECS service running the task definition.
        output_manager: Manager for consistent output creation.
    """

    config: MainStackConfig
    security_group: ec2.CfnSecurityGroup
    repositories: dict[str, ecr.CfnRepository]
    cluster: ecs.CfnCluster
    log_group: logs.CfnLogGroup
    trust_document: iam.PolicyDocument
    task_role: RoleWithPolicy
    execution_role: RoleWithPolicy
    container_definitions: list[FargateContainerDefinition]
    task_definition: ecs.CfnTaskDefinition
    service: ecs.CfnService
    output_manager: OutputManager

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: MainStackConfig,
        **kwargs: Any,
    ) -> None:
        """Initialize the application stack.

        Args:
            scope: CDK construct scope for resource creation.
            construct_id: Unique identifier for this stack.
            config: Names, region, image tags and network placement.
            **kwargs: Additional arguments passed to parent Stack.
        """
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.prefix = config.app_name
        self.output_manager = OutputManager(self, self.stack_name)

        self._create_security_group()
        self._create_repositories()
        self._create_cluster()
        self._create_log_group()
        self._create_trust_document()
        self._create_task_role()
        self._create_execution_role()
        self._create_container_definitions()
        self._create_task_definition()
        self._create_service()
        self._create_outputs()
        self._configure_security_checks()

    def _create_security_group(self) -> None:
        """Create the security group of the service inside the configured VPC."""
        logger.info("Creating security group in %s", self.config.network_config.vpc_id)
        self.security_group = ec2.CfnSecurityGroup(
            self,
            "AppServiceSecurityGroup",
            group_description=f"Security group for the {self.prefix} service",
            vpc_id=self.config.network_config.vpc_id,
        )

    def _create_repositories(self) -> None:
        """Create one immutable-tag ECR repository per container."""
        self.repositories = {}
        for name in CONTAINER_NAMES:
            repository_name = f"{self.prefix}-{name}"
            logger.info("Creating ECR repository %s", repository_name)
            self.repositories[name] = ecr.CfnRepository(
                self,
                f"{name.capitalize()}Repository",
                repository_name=repository_name,
                image_tag_mutability="IMMUTABLE",
                image_scanning_configuration=ecr.CfnRepository.ImageScanningConfigurationProperty(
                    scan_on_push=False,
                ),
            )

    def _create_cluster(self) -> None:
        """Create the ECS cluster with Container Insights enabled."""
        self.cluster = ecs.CfnCluster(
            self,
            "Cluster",
            cluster_name=f"{self.prefix}-app",
            cluster_settings=[
                ecs.CfnCluster.ClusterSettingsProperty(
                    name="containerInsights",
                    value="enabled",
                ),
            ],
        )

    def _create_log_group(self) -> None:
        """Create the log group shared by all containers."""
        self.log_group = logs.CfnLogGroup(
            self,
            "LogGroup",
            log_group_name=f"{self.prefix}-app",
            retention_in_days=LOG_RETENTION_IN_DAYS,
        )

    def _create_trust_document(self) -> None:
        """Render the trust document allowing ECS tasks to assume a role."""
        self.trust_document = iam.PolicyDocument(
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["sts:AssumeRole"],
                    principals=[iam.ServicePrincipal(ECS_TASKS_SERVICE_PRINCIPAL)],
                ),
            ],
        )

    def _create_task_role(self) -> None:
        """Create the role assumed by the application containers.

        The containers only need to introspect the scheduler.
        """
        name = f"{self.prefix}-app-task"
        self.task_role = RoleWithPolicy(
            self,
            "AppTaskRole",
            RoleWithPolicyProps(
                name=name,
                role_config=RoleConfig(
                    role_name=name,
                    assume_role_policy=self.trust_document,
                ),
                policy_document_config=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["ecs:List*"],
                        resources=["*"],
                    ),
                ],
            ),
        )

    def _create_execution_role(self) -> None:
        """Create the role ECS uses to pull images and ship logs.

        Image pulls are limited to the repositories of this stack.
        """
        name = f"{self.prefix}-app-execution"
        self.execution_role = RoleWithPolicy(
            self,
            "AppExecutionRole",
            RoleWithPolicyProps(
                name=name,
                role_config=RoleConfig(
                    role_name=name,
                    assume_role_policy=self.trust_document,
                ),
                policy_document_config=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=[
                            "ecr:GetAuthorizationToken",
                            "logs:CreateLogStream",
                            "logs:PutLogEvents",
                        ],
                        resources=["*"],
                    ),
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=[
                            "ecr:BatchCheckLayerAvailability",
                            "ecr:GetDownloadUrlForLayer",
                            "ecr:BatchGetImage",
                        ],
                        resources=self.get_repository_arns(),
                    ),
                ],
            ),
        )

    def _create_container_definitions(self) -> None:
        """Build the upstream, downstream and collector containers.

        Each container runs its repository's image at its own tag and logs
        to the shared log group with the tag as stream prefix.
        """
        self.container_definitions = []
        for name in CONTAINER_NAMES:
            tag = getattr(self.config.image_tags, name)
            options: dict[str, Any] = {
                "image": f"{self.repositories[name].attr_repository_uri}:{tag}",
            }
            if name in ESSENTIAL_CONTAINERS:
                options["essential"] = True
            options["logConfiguration"] = aws_logs_configuration(
                log_group_name=self.log_group.ref,
                region=self.config.aws_region,
                stream_prefix=tag,
            )
            self.container_definitions.append(
                FargateContainerDefinition(name, options),
            )

    def _create_task_definition(self) -> None:
        """Create the Fargate task definition holding all containers.

        Raises:
            ResourceCompositionError: If two containers share a name.
        """
        names = [definition.name for definition in self.container_definitions]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ResourceCompositionError(
                f"duplicate container names in task definition: {', '.join(duplicates)}",
            )

        logger.info("Creating task definition %s with containers %s", TASK_FAMILY, names)
        self.task_definition = ecs.CfnTaskDefinition(
            self,
            "AppTaskDefinition",
            family=TASK_FAMILY,
            container_definitions=[
                definition.to_cfn_property()
                for definition in self.container_definitions
            ],
            execution_role_arn=self.execution_role.role_arn,
            task_role_arn=self.task_role.role_arn,
            network_mode=TASK_NETWORK_MODE,
            requires_compatibilities=[LAUNCH_TYPE],
            cpu=TASK_CPU,
            memory=TASK_MEMORY,
        )

    def _create_service(self) -> None:
        """Create the service running one copy of the task without public IP."""
        logger.info("Creating ECS service %s", self.prefix)
        self.service = ecs.CfnService(
            self,
            "AppService",
            cluster=self.cluster.attr_arn,
            desired_count=SERVICE_DESIRED_COUNT,
            launch_type=LAUNCH_TYPE,
            service_name=self.prefix,
            platform_version=PLATFORM_VERSION,
            scheduling_strategy=SCHEDULING_STRATEGY,
            task_definition=self.task_definition.ref,
            enable_execute_command=True,
            network_configuration=ecs.CfnService.NetworkConfigurationProperty(
                awsvpc_configuration=ecs.CfnService.AwsVpcConfigurationProperty(
                    assign_public_ip="DISABLED",
                    security_groups=[self.security_group.attr_group_id],
                    subnets=list(self.config.network_config.subnet_ids),
                ),
            ),
        )

    def _create_outputs(self) -> None:
        """Export identifiers needed to push images and operate the service."""
        self.output_manager.add_output(
            "ClusterArn",
            self.cluster.attr_arn,
            "ARN of the ECS cluster",
            "ClusterArn",
        )
        self.output_manager.add_output(
            "ServiceName",
            self.service.attr_name,
            "Name of the ECS service",
            "ServiceName",
        )
        self.output_manager.add_output(
            "TaskDefinitionArn",
            self.task_definition.ref,
            "ARN of the application task definition",
            "TaskDefinitionArn",
        )
        self.output_manager.add_output(
            "TaskRoleArn",
            self.task_role.role_arn,
            "ARN of the role assumed by the application containers",
            "TaskRoleArn",
        )
        self.output_manager.add_output(
            "ExecutionRoleArn",
            self.execution_role.role_arn,
            "ARN of the task execution role",
            "ExecutionRoleArn",
        )
        self.output_manager.add_output(
            "LogGroupName",
            self.log_group.ref,
            "Name of the application log group",
            "LogGroupName",
        )
        for name, repository in self.repositories.items():
            output_id = f"{name.capitalize()}RepositoryUri"
            self.output_manager.add_output(
                output_id,
                repository.attr_repository_uri,
                f"URI of the {name} image repository",
                output_id,
            )

    def _configure_security_checks(self) -> None:
        """Applies AWS Solutions checks with the suppressions this stack needs."""
        Aspects.of(self).add(cdk_nag.AwsSolutionsChecks())
        NagSuppressions.add_stack_suppressions(
            stack=self,
            suppressions=[
                {
                    "id": "AwsSolutions-IAM5",
                    "reason": "ecr:GetAuthorizationToken, log writes and ecs:List* do not support resource-level permissions",
                },
            ],
        )

    def get_repository_arns(self) -> list[str]:
        """Get the repository ARNs in container order."""
        return [self.repositories[name].attr_arn for name in CONTAINER_NAMES]
