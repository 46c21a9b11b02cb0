"""
Knowledge module for the knowledge base

This module contains the Bedrock constructs:
- Knowledge base with a Pinecone vector store
- S3 data source bound to the knowledge base
"""

from .knowledge_base_construct import PineconeKnowledgeBaseConstruct
from .data_source_construct import S3DataSourceConstruct

__all__ = [
    "PineconeKnowledgeBaseConstruct",
    "S3DataSourceConstruct"
]
