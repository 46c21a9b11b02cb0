"""
Knowledge base blueprint

Declares the four resources of the knowledge base and how they refer to each
other:
- DataSourceBucket: S3 bucket holding the source documents
- KnowledgeBaseRole: role assumed by Bedrock, scoped to the secret, the
  embedding model and the bucket
- KnowledgeBase: vector knowledge base stored in a Pinecone index
- BedrockKnowledgeBaseDataStore: S3 data source bound to the knowledge base
"""

import logging

from .config import KnowledgeBaseSettings
from .planning import Attribute, Reference, ResourceGraph, ResourceKind, Usage

logger = logging.getLogger(__name__)

BUCKET_ID = "DataSourceBucket"
ROLE_ID = "KnowledgeBaseRole"
KNOWLEDGE_BASE_ID = "KnowledgeBase"
DATA_SOURCE_ID = "BedrockKnowledgeBaseDataStore"

BEDROCK_PRINCIPAL = "bedrock.amazonaws.com"
KNOWLEDGE_BASE_DESCRIPTION = "IZAKAYA knowledge base"
PINECONE_FIELD_MAPPING = {"metadataField": "metadata", "textField": "text"}


def declare_knowledge_base(settings: KnowledgeBaseSettings) -> ResourceGraph:
    """Validate settings and declare the knowledge base resource graph."""
    settings.validate()
    graph = ResourceGraph()

    bucket = graph.declare(
        BUCKET_ID,
        ResourceKind.STORAGE,
        {"bucket_name": settings.bucket_name},
        removal_policy=settings.removal_policy,
    )

    role = graph.declare(
        ROLE_ID,
        ResourceKind.ACCESS_ROLE,
        {
            "role_name": settings.role_name,
            "service_principal": BEDROCK_PRINCIPAL,
            "grants": {
                Usage.SECRET.value: settings.pinecone_secret_arn,
                Usage.EMBEDDING_MODEL.value: settings.embedding_model_arn,
                Usage.BUCKET.value: Reference(bucket, Attribute.ARN),
            },
        },
    )

    knowledge_base = graph.declare(
        KNOWLEDGE_BASE_ID,
        ResourceKind.VECTOR_KNOWLEDGE_BASE,
        {
            "name": settings.tag,
            "description": KNOWLEDGE_BASE_DESCRIPTION,
            "role_arn": Reference(role, Attribute.ARN),
            "embedding_model_arn": settings.embedding_model_arn,
            "storage_backend": "PINECONE",
            "connection_string": settings.pinecone_endpoint,
            "credentials_secret_arn": settings.pinecone_secret_arn,
            "field_mapping": PINECONE_FIELD_MAPPING,
        },
    )

    graph.declare(
        DATA_SOURCE_ID,
        ResourceKind.DATA_SOURCE,
        {
            "name": settings.data_source_name,
            "knowledge_base_id": Reference(knowledge_base, Attribute.ID),
            "bucket_arn": Reference(bucket, Attribute.ARN),
        },
    )
    logger.info(f"Declared {len(graph)} resources for knowledge base '{settings.tag}'")
    return graph
