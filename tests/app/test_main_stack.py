"""
Test suite for the ECS Fargate application stack.

Covers ECR repositories, the cluster, the log group, the security group, the
task and execution roles, the task definition with its three containers, the
service and the CloudFormation outputs.
"""

import json

import pytest
from aws_cdk import App
from aws_cdk.assertions import Match, Template

from stacks.app.constants import (
    LOG_RETENTION_IN_DAYS,
    PLATFORM_VERSION,
    TASK_CPU,
    TASK_MEMORY,
)
from stacks.app.main_stack import MainStack
from stacks.common.container_definition import FargateContainerDefinition
from stacks.common.errors import ResourceCompositionError
from stacks.configs.app_config import (
    AppConfig,
    ImageTags,
    MainStackConfig,
    NetworkConfig,
)

PREFIX = "test"


def _stack_config(prefix, region):
    return MainStackConfig.from_app_config(
        AppConfig(image_tag="v1", vpc_id="vpc-1", subnet_ids=["sn-1", "sn-2"]),
        app_name=prefix,
        aws_region=region,
    )


@pytest.fixture
def stack_config(aws_environment):
    return _stack_config(PREFIX, aws_environment.region)


@pytest.fixture
def main_stack(stack_config, aws_environment):
    return MainStack(App(), "TestMain", config=stack_config, env=aws_environment)


@pytest.fixture
def template(main_stack):
    return Template.from_stack(main_stack)


def _single_id(template, resource_type, props=None):
    found = template.find_resources(
        resource_type,
        {"Properties": props} if props else None,
    )
    assert len(found) == 1
    return next(iter(found))


def _repository_ids(template, prefix=PREFIX):
    return {
        name: _single_id(
            template,
            "AWS::ECR::Repository",
            {"RepositoryName": f"{prefix}-{name}"},
        )
        for name in ("upstream", "downstream", "collector")
    }


def _managed_policy(template, name):
    found = template.find_resources(
        "AWS::IAM::ManagedPolicy",
        {"Properties": {"ManagedPolicyName": name}},
    )
    assert len(found) == 1
    return next(iter(found.values()))["Properties"]


def _container_definitions(template):
    (task_definition,) = template.find_resources("AWS::ECS::TaskDefinition").values()
    return task_definition["Properties"]["ContainerDefinitions"]


class TestRepositories:
    def test_three_repositories(self, template):
        template.resource_count_is("AWS::ECR::Repository", 3)
        assert len(_repository_ids(template)) == 3

    def test_repository_settings(self, template):
        repositories = template.find_resources("AWS::ECR::Repository")

        for repository in repositories.values():
            props = repository["Properties"]
            assert props["ImageTagMutability"] == "IMMUTABLE"
            assert props["ImageScanningConfiguration"] == {"ScanOnPush": False}


class TestClusterAndLogGroup:
    def test_cluster(self, template):
        template.has_resource_properties(
            "AWS::ECS::Cluster",
            {
                "ClusterName": f"{PREFIX}-app",
                "ClusterSettings": [{"Name": "containerInsights", "Value": "enabled"}],
            },
        )

    def test_log_group(self, template):
        template.resource_count_is("AWS::Logs::LogGroup", 1)
        template.has_resource_properties(
            "AWS::Logs::LogGroup",
            {"LogGroupName": f"{PREFIX}-app", "RetentionInDays": LOG_RETENTION_IN_DAYS},
        )

    def test_security_group_in_vpc(self, template):
        template.resource_count_is("AWS::EC2::SecurityGroup", 1)
        template.has_resource_properties(
            "AWS::EC2::SecurityGroup",
            {"VpcId": "vpc-1"},
        )


class TestRoles:
    def test_two_roles_share_trust_document(self, template):
        roles = template.find_resources("AWS::IAM::Role")

        assert sorted(r["Properties"]["RoleName"] for r in roles.values()) == [
            f"{PREFIX}-app-execution",
            f"{PREFIX}-app-task",
        ]
        trust_documents = [
            r["Properties"]["AssumeRolePolicyDocument"] for r in roles.values()
        ]
        assert trust_documents[0] == trust_documents[1]
        assert trust_documents[0]["Statement"] == [
            {
                "Action": "sts:AssumeRole",
                "Effect": "Allow",
                "Principal": {"Service": "ecs-tasks.amazonaws.com"},
            },
        ]

    def test_task_role_policy_is_registry_independent(self, template):
        policy = _managed_policy(template, f"{PREFIX}-app-task")

        assert policy["PolicyDocument"]["Statement"] == [
            {"Action": "ecs:List*", "Effect": "Allow", "Resource": "*"},
        ]
        rendered = json.dumps(policy)
        for repository_id in _repository_ids(template).values():
            assert repository_id not in rendered

    def test_execution_role_wildcard_statement(self, template):
        statements = _managed_policy(template, f"{PREFIX}-app-execution")[
            "PolicyDocument"
        ]["Statement"]

        assert statements[0]["Resource"] == "*"
        assert set(statements[0]["Action"]) == {
            "ecr:GetAuthorizationToken",
            "logs:CreateLogStream",
            "logs:PutLogEvents",
        }

    @pytest.mark.parametrize("prefix", ["test", "billing-prod", "x"])
    def test_execution_role_pulls_from_exactly_three_repositories(
        self,
        prefix,
        aws_environment,
    ):
        stack = MainStack(
            App(),
            "PrefixedMain",
            config=_stack_config(prefix, aws_environment.region),
            env=aws_environment,
        )
        template = Template.from_stack(stack)
        statements = _managed_policy(template, f"{prefix}-app-execution")[
            "PolicyDocument"
        ]["Statement"]
        pull = statements[1]

        assert set(pull["Action"]) == {
            "ecr:BatchCheckLayerAvailability",
            "ecr:GetDownloadUrlForLayer",
            "ecr:BatchGetImage",
        }
        assert len(pull["Resource"]) == 3
        assert [resource["Fn::GetAtt"] for resource in pull["Resource"]] == [
            [repository_id, "Arn"]
            for repository_id in _repository_ids(template, prefix).values()
        ]

    def test_policies_attached_to_their_roles(self, template):
        for name in (f"{PREFIX}-app-task", f"{PREFIX}-app-execution"):
            role_id = _single_id(template, "AWS::IAM::Role", {"RoleName": name})
            assert _managed_policy(template, name)["Roles"] == [{"Ref": role_id}]


class TestTaskDefinition:
    def test_task_definition_properties(self, template):
        template.has_resource_properties(
            "AWS::ECS::TaskDefinition",
            {
                "Family": "app",
                "Cpu": TASK_CPU,
                "Memory": TASK_MEMORY,
                "NetworkMode": "awsvpc",
                "RequiresCompatibilities": ["FARGATE"],
            },
        )

    def test_role_references(self, template):
        execution_id = _single_id(
            template,
            "AWS::IAM::Role",
            {"RoleName": f"{PREFIX}-app-execution"},
        )
        task_id = _single_id(
            template,
            "AWS::IAM::Role",
            {"RoleName": f"{PREFIX}-app-task"},
        )

        template.has_resource_properties(
            "AWS::ECS::TaskDefinition",
            {
                "ExecutionRoleArn": {"Fn::GetAtt": [execution_id, "Arn"]},
                "TaskRoleArn": {"Fn::GetAtt": [task_id, "Arn"]},
            },
        )

    def test_three_containers_in_order(self, template):
        containers = _container_definitions(template)

        assert [c["Name"] for c in containers] == ["upstream", "downstream", "collector"]

    def test_essential_flags(self, template):
        containers = {c["Name"]: c for c in _container_definitions(template)}

        assert containers["upstream"]["Essential"] is True
        assert containers["downstream"]["Essential"] is True
        assert "Essential" not in containers["collector"]

    def test_no_empty_port_mappings_or_environment(self, template):
        for container in _container_definitions(template):
            assert "PortMappings" not in container
            assert "Environment" not in container

    def test_images_come_from_own_repository(self, template):
        repository_ids = _repository_ids(template)

        for container in _container_definitions(template):
            assert container["Image"] == {
                "Fn::Join": [
                    "",
                    [
                        {"Fn::GetAtt": [repository_ids[container["Name"]], "RepositoryUri"]},
                        ":v1",
                    ],
                ],
            }

    def test_log_configuration(self, template, aws_environment):
        log_group_id = _single_id(template, "AWS::Logs::LogGroup")

        for container in _container_definitions(template):
            assert container["LogConfiguration"] == {
                "LogDriver": "awslogs",
                "Options": {
                    "awslogs-group": {"Ref": log_group_id},
                    "awslogs-region": aws_environment.region,
                    "awslogs-stream-prefix": "v1",
                },
            }

    def test_stream_prefix_follows_each_image_tag(self):
        config = MainStackConfig(
            app_name=PREFIX,
            aws_region="eu-west-1",
            image_tags=ImageTags(upstream="u1", downstream="d1", collector="c1"),
            network_config=NetworkConfig(vpc_id="vpc-1", subnet_ids=["sn-1"]),
        )
        template = Template.from_stack(MainStack(App(), "TaggedMain", config=config))

        prefixes = {
            c["Name"]: c["LogConfiguration"]["Options"]["awslogs-stream-prefix"]
            for c in _container_definitions(template)
        }
        assert prefixes == {"upstream": "u1", "downstream": "d1", "collector": "c1"}

    def test_duplicate_container_names_are_rejected(self, stack_config):
        class DuplicateContainerStack(MainStack):
            def _create_container_definitions(self) -> None:
                super()._create_container_definitions()
                self.container_definitions.append(
                    FargateContainerDefinition("upstream", {"image": "upstream:v2"}),
                )

        with pytest.raises(ResourceCompositionError, match="upstream"):
            DuplicateContainerStack(App(), "Duplicate", config=stack_config)


class TestService:
    def test_service_properties(self, template):
        template.resource_count_is("AWS::ECS::Service", 1)
        template.has_resource_properties(
            "AWS::ECS::Service",
            {
                "ServiceName": PREFIX,
                "DesiredCount": 1,
                "LaunchType": "FARGATE",
                "PlatformVersion": PLATFORM_VERSION,
                "SchedulingStrategy": "REPLICA",
                "EnableExecuteCommand": True,
            },
        )

    def test_network_configuration(self, template):
        security_group_id = _single_id(template, "AWS::EC2::SecurityGroup")

        template.has_resource_properties(
            "AWS::ECS::Service",
            {
                "NetworkConfiguration": {
                    "AwsvpcConfiguration": {
                        "AssignPublicIp": "DISABLED",
                        "SecurityGroups": [
                            {"Fn::GetAtt": [security_group_id, "GroupId"]},
                        ],
                        "Subnets": ["sn-1", "sn-2"],
                    },
                },
            },
        )

    def test_references_cluster_and_task_definition(self, template):
        cluster_id = _single_id(template, "AWS::ECS::Cluster")
        task_definition_id = _single_id(template, "AWS::ECS::TaskDefinition")

        template.has_resource_properties(
            "AWS::ECS::Service",
            {
                "Cluster": {"Fn::GetAtt": [cluster_id, "Arn"]},
                "TaskDefinition": {"Ref": task_definition_id},
            },
        )


class TestOutputs:
    def test_outputs_created(self, template):
        for key in [
            "ClusterArn",
            "ServiceName",
            "TaskDefinitionArn",
            "TaskRoleArn",
            "ExecutionRoleArn",
            "LogGroupName",
            "UpstreamRepositoryUri",
            "DownstreamRepositoryUri",
            "CollectorRepositoryUri",
        ]:
            template.has_output(key, {"Export": Match.object_like({})})


class TestStackHelpers:
    def test_repository_arns_in_container_order(self, main_stack):
        arns = [main_stack.resolve(arn) for arn in main_stack.get_repository_arns()]

        assert [arn["Fn::GetAtt"][1] for arn in arns] == ["Arn", "Arn", "Arn"]
        assert len({arn["Fn::GetAtt"][0] for arn in arns}) == 3

    def test_log_region_follows_stack_environment(self, main_stack, aws_environment):
        assert main_stack.region == aws_environment.region
        assert main_stack.account == aws_environment.account

        for container in _container_definitions(Template.from_stack(main_stack)):
            options = container["LogConfiguration"]["Options"]
            assert options["awslogs-region"] == main_stack.region
