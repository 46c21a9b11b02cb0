"""
Pinecone Knowledge Base Construct

This construct creates an Amazon Bedrock vector knowledge base whose vectors
live in an external Pinecone index, reached through its connection string
and a Secrets Manager secret holding the API key.
"""

from typing import Mapping, Optional
from constructs import Construct
from aws_cdk import (
    aws_bedrock as bedrock,
    RemovalPolicy
)

DEFAULT_FIELD_MAPPING = {"metadataField": "metadata", "textField": "text"}


class PineconeKnowledgeBaseConstruct(Construct):
    """
    Construct for a Bedrock knowledge base stored in Pinecone.

    Creates:
    - CfnKnowledgeBase of type VECTOR with PINECONE storage configuration
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        name: str,
        role_arn: str,
        embedding_model_arn: str,
        connection_string: str,
        credentials_secret_arn: str,
        description: Optional[str] = None,
        field_mapping: Optional[Mapping[str, str]] = None,
        removal_policy: Optional[RemovalPolicy] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        mapping = dict(field_mapping or DEFAULT_FIELD_MAPPING)

        self.knowledge_base = bedrock.CfnKnowledgeBase(
            self,
            "KnowledgeBase",
            name=name,
            description=description,
            role_arn=role_arn,
            knowledge_base_configuration=bedrock.CfnKnowledgeBase.KnowledgeBaseConfigurationProperty(
                type="VECTOR",
                vector_knowledge_base_configuration=bedrock.CfnKnowledgeBase.VectorKnowledgeBaseConfigurationProperty(
                    embedding_model_arn=embedding_model_arn
                )
            ),
            storage_configuration=bedrock.CfnKnowledgeBase.StorageConfigurationProperty(
                type="PINECONE",
                pinecone_configuration=bedrock.CfnKnowledgeBase.PineconeConfigurationProperty(
                    connection_string=connection_string,
                    credentials_secret_arn=credentials_secret_arn,
                    field_mapping=bedrock.CfnKnowledgeBase.PineconeFieldMappingProperty(
                        metadata_field=mapping["metadataField"],
                        text_field=mapping["textField"]
                    )
                )
            )
        )

        if removal_policy is not None:
            self.knowledge_base.apply_removal_policy(removal_policy)

    def get_knowledge_base(self) -> bedrock.CfnKnowledgeBase:
        """Returns the knowledge base resource"""
        return self.knowledge_base

    def get_knowledge_base_id(self) -> str:
        """Returns the knowledge base id"""
        return self.knowledge_base.attr_knowledge_base_id

    def get_knowledge_base_arn(self) -> str:
        """Returns the knowledge base ARN"""
        return self.knowledge_base.attr_knowledge_base_arn
