"""
Knowledge Base Izakaya Stack

This stack provisions a Bedrock knowledge base backed by a Pinecone index:
the S3 bucket holding source documents, the role Bedrock assumes, the
knowledge base itself and its S3 data source. The resources are declared as a
plan and realized through CdkProvisioningBackend in dependency order.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import aws_cdk as cdk
from constructs import Construct
from aws_cdk import (
    Stack,
    CfnOutput
)

from .blueprint import declare_knowledge_base
from .config import KnowledgeBaseSettings
from .planning import (
    Attribute,
    OutputDirective,
    PlanOutput,
    ProvisioningBackend,
    RemovalPolicy,
    ResolvedResource,
    ResourceKind,
    build_plan,
    emit,
)

# Import storage constructs
from .storage.s3_construct import DataSourceBucketConstruct

# Import access constructs
from .access.role_construct import KnowledgeBaseRoleConstruct

# Import knowledge base constructs
from .knowledge.knowledge_base_construct import PineconeKnowledgeBaseConstruct
from .knowledge.data_source_construct import S3DataSourceConstruct

logger = logging.getLogger(__name__)

CDK_REMOVAL_POLICIES = {
    RemovalPolicy.DESTROY: cdk.RemovalPolicy.DESTROY,
    RemovalPolicy.RETAIN: cdk.RemovalPolicy.RETAIN,
}


def to_cdk_removal_policy(policy: Optional[RemovalPolicy]) -> Optional[cdk.RemovalPolicy]:
    return CDK_REMOVAL_POLICIES[policy] if policy is not None else None


class CdkProvisioningBackend(ProvisioningBackend):
    """
    Provisioning backend that realizes resolved resources as CDK constructs
    inside a scope. The identifiers it returns are CDK tokens, resolved by
    CloudFormation at deploy time.
    """

    def __init__(self, scope: Construct) -> None:
        self.scope = scope
        self.constructs: Dict[str, Construct] = {}

    def realize(self, resource: ResolvedResource) -> Dict[Attribute, str]:
        config = resource.config
        removal_policy = to_cdk_removal_policy(resource.removal_policy)

        if resource.kind is ResourceKind.STORAGE:
            bucket = DataSourceBucketConstruct(
                self.scope,
                resource.id,
                bucket_name=config["bucket_name"],
                removal_policy=removal_policy
            )
            self.constructs[resource.id] = bucket
            return {
                Attribute.ARN: bucket.get_bucket_arn(),
                Attribute.ID: bucket.get_bucket_name(),
                Attribute.ENDPOINT: f"s3://{bucket.get_bucket_name()}",
            }

        if resource.kind is ResourceKind.ACCESS_ROLE:
            role = KnowledgeBaseRoleConstruct(
                self.scope,
                resource.id,
                role_name=config["role_name"],
                service_principal=config["service_principal"],
                statements=config.get("statements", ()),
                removal_policy=removal_policy
            )
            self.constructs[resource.id] = role
            return {
                Attribute.ARN: role.get_role_arn(),
                Attribute.ID: role.get_role_name(),
            }

        if resource.kind is ResourceKind.VECTOR_KNOWLEDGE_BASE:
            knowledge_base = PineconeKnowledgeBaseConstruct(
                self.scope,
                resource.id,
                name=config["name"],
                description=config.get("description"),
                role_arn=config["role_arn"],
                embedding_model_arn=config["embedding_model_arn"],
                connection_string=config["connection_string"],
                credentials_secret_arn=config["credentials_secret_arn"],
                field_mapping=config.get("field_mapping"),
                removal_policy=removal_policy
            )
            self._depend_on_role(knowledge_base, resource)
            self.constructs[resource.id] = knowledge_base
            return {
                Attribute.ARN: knowledge_base.get_knowledge_base_arn(),
                Attribute.ID: knowledge_base.get_knowledge_base_id(),
            }

        if resource.kind is ResourceKind.DATA_SOURCE:
            data_source = S3DataSourceConstruct(
                self.scope,
                resource.id,
                name=config["name"],
                knowledge_base_id=config["knowledge_base_id"],
                bucket_arn=config["bucket_arn"],
                removal_policy=removal_policy
            )
            self.constructs[resource.id] = data_source
            return {Attribute.ID: data_source.get_data_source_id()}

        raise ValueError(f"Unsupported resource kind: {resource.kind}")

    def _depend_on_role(self, construct: Construct, resource: ResolvedResource) -> None:
        # The inline policy must exist before Bedrock validates the role
        for dependency in resource.depends_on:
            if isinstance(self.constructs.get(dependency), KnowledgeBaseRoleConstruct):
                construct.node.add_dependency(self.constructs[dependency])

    def publish(self, outputs: Sequence[OutputDirective]) -> None:
        """Expose operator outputs as CloudFormation outputs."""
        for directive in outputs:
            CfnOutput(
                self.scope,
                directive.label,
                value=directive.value,
                description=directive.description or None
            )


class KnowledgeBaseIzakayaStack(Stack):
    """
    Main CDK Stack for the Izakaya knowledge base

    Settings are read from CDK context unless given explicitly:
    - embeddingModelArn: ARN of the Bedrock embedding model
    - pineconeEndpoint: Pinecone index connection string
    - pineconeSecretArn: Secrets Manager secret holding the Pinecone API key
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        settings: Optional[KnowledgeBaseSettings] = None,
        pinned: Optional[Mapping[str, Mapping[Attribute, str]]] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        if settings is None:
            settings = KnowledgeBaseSettings.from_context(
                self.node, account=self.account, region=self.region
            )
        elif settings.account is None:
            settings = settings.with_overrides(account=self.account, region=self.region)
        self.settings = settings

        cdk.Tags.of(self).add("Project", "KnowledgeBaseIzakaya")

        # Declare, scope and resolve; nothing is added to the stack on error
        graph = declare_knowledge_base(self.settings)
        self.backend = CdkProvisioningBackend(self)
        self.plan = build_plan(graph, self.backend, pinned=pinned)

        # Upload commands for the expected source documents
        self.output: PlanOutput = emit(self.plan, self.settings.data_source_files)
        self.backend.publish(self.output.outputs)

        logger.info(f"Synthesized plan: {', '.join(self.plan.ids())}")
