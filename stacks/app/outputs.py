"""Output Manager for the application stack.

This module provides a class that consistently handles CloudFormation
outputs exported by the application stack.
"""

from aws_cdk import CfnOutput
from constructs import Construct


class OutputManager:
    """Consistent management of CloudFormation outputs for cross-stack references.

    Attributes:
        scope: The construct for which outputs are being managed.
        stack_name: The name of the stack exporting the outputs.
    """

    def __init__(self, scope: Construct, stack_name: str) -> None:
        self.scope = scope
        self.stack_name = stack_name

    def add_output(
        self,
        id_: str,
        value: str,
        description: str,
        export_name: str,
    ) -> CfnOutput:
        """Creates an exported CloudFormation output.

        Args:
            id_: Unique identifier for the output.
            value: The value returned by the aws cloudformation describe-stacks command.
            description: A String type that describes the output value.
            export_name: Suffix of the export name, prefixed with the stack name.
        """
        return CfnOutput(
            self.scope,
            id_,
            value=value,
            export_name=f"{self.stack_name}-{export_name}",
            description=description,
        )
