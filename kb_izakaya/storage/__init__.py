"""
Storage constructs for the knowledge base

This package contains the S3 bucket that holds the documents ingested by the
knowledge base data source.
"""

from .s3_construct import DataSourceBucketConstruct

__all__ = [
    "DataSourceBucketConstruct"
]
