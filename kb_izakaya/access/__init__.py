"""
Access module for the knowledge base

This module contains the IAM role assumed by Amazon Bedrock, built from the
grants derived by the policy scoper.
"""

from .role_construct import KnowledgeBaseRoleConstruct

__all__ = [
    "KnowledgeBaseRoleConstruct"
]
