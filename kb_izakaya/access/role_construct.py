"""
Knowledge Base Role Construct

This construct creates the IAM role Amazon Bedrock assumes on behalf of the
knowledge base. Its inline policy holds exactly the scoped grants of the plan.
"""

from typing import List, Optional, Sequence
from constructs import Construct
from aws_cdk import (
    aws_iam as iam,
    RemovalPolicy,
    Tags
)

from ..planning.descriptors import Action, PermissionGrant

IAM_ACTIONS = {
    Action.READ_SECRET: "secretsmanager:GetSecretValue",
    Action.INVOKE_MODEL: "bedrock:InvokeModel",
    Action.LIST: "s3:ListBucket",
    Action.READ_OBJECT: "s3:GetObject",
}


def to_policy_statements(grants: Sequence[PermissionGrant]) -> List[iam.PolicyStatement]:
    """One allow statement per grant, actions translated to IAM action names."""
    statements = []
    for grant in grants:
        if not grant.is_bound:
            raise ValueError(f"Grant on {grant.resource_pattern} is not resolved")
        statements.append(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                resources=[grant.resource_pattern],
                actions=[IAM_ACTIONS[action] for action in grant.actions]
            )
        )
    return statements


class KnowledgeBaseRoleConstruct(Construct):
    """
    Construct for the knowledge base service role.

    Creates:
    - IAM role trusted by the given service principal
    - Inline policy with the scoped grants
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        role_name: str,
        service_principal: str,
        statements: Sequence[PermissionGrant],
        removal_policy: Optional[RemovalPolicy] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.role_name = role_name
        self.service_principal = service_principal
        self.statements = statements

        self._create_role()

        if removal_policy is not None:
            self.role.apply_removal_policy(removal_policy)

    def _create_role(self) -> None:
        """Create the role with its inline policy."""
        self.role = iam.Role(
            self,
            "Role",
            role_name=self.role_name,
            assumed_by=iam.ServicePrincipal(self.service_principal),
            description="Role assumed by Amazon Bedrock for the knowledge base",
            inline_policies={
                "inlinePolicy1": iam.PolicyDocument(
                    statements=to_policy_statements(self.statements)
                )
            }
        )

        Tags.of(self.role).add("Component", "Access")

    def get_role(self) -> iam.Role:
        """Returns the knowledge base role"""
        return self.role

    def get_role_arn(self) -> str:
        """Returns the ARN of the knowledge base role"""
        return self.role.role_arn

    def get_role_name(self) -> str:
        """Returns the name of the knowledge base role"""
        return self.role.role_name
