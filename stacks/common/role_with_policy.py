"""IAM role bound to a single customer managed policy."""

import logging
from dataclasses import dataclass, field

from aws_cdk import aws_iam as iam
from constructs import Construct

from .errors import ResourceCompositionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleConfig:
    """Configuration of the role owned by a RoleWithPolicy.

    Attributes:
        role_name: IAM role name.
        assume_role_policy: Trust document describing who may assume the role.
    """

    role_name: str
    assume_role_policy: iam.PolicyDocument


@dataclass(frozen=True)
class RoleWithPolicyProps:
    """Configuration properties for RoleWithPolicy construct.

    Attributes:
        name: Name of the managed policy bound to the role.
        role_config: Role name and trust document.
        policy_document_config: Statements granted to the role once assumed.
    """

    name: str
    role_config: RoleConfig
    policy_document_config: list[iam.PolicyStatement] = field(default_factory=list)


class RoleWithPolicy(Construct):
    """IAM role with exactly one managed policy attached.

    The role, the rendered policy document, the managed policy and the
    attachment are created together and owned by this construct. Only the
    role ARN is exposed.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        props: RoleWithPolicyProps,
    ) -> None:
        """Initialize the role, its policy and the attachment.

        Args:
            scope: CDK construct scope
            construct_id: Construct identifier
            props: Role and policy configuration

        Raises:
            ResourceCompositionError: If the role configuration is missing or
                the policy document has no statements.
        """
        if props.role_config is None:
            raise ResourceCompositionError(
                f"role configuration is required for {props.name}",
            )
        if not props.policy_document_config:
            raise ResourceCompositionError(
                f"policy document for {props.name} has no statements",
            )

        super().__init__(scope, construct_id)

        logger.info("Creating role %s", props.role_config.role_name)
        self._role = iam.CfnRole(
            self,
            "Role",
            role_name=props.role_config.role_name,
            assume_role_policy_document=props.role_config.assume_role_policy,
        )

        document = iam.PolicyDocument(statements=props.policy_document_config)

        # The policy's Roles list is the attachment in CloudFormation.
        self._policy = iam.CfnManagedPolicy(
            self,
            "Policy",
            managed_policy_name=props.name,
            policy_document=document,
        )
        self._policy.roles = [self._role.ref]

    @property
    def role_arn(self) -> str:
        """Get role ARN."""
        return self._role.attr_arn
