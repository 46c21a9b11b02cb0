"""
S3 Bucket Construct for Knowledge Base Source Documents

This construct creates the S3 bucket the knowledge base data source ingests
from. The bucket name and removal policy always come from the resolved plan.
"""

from constructs import Construct
from aws_cdk import (
    aws_s3 as s3,
    RemovalPolicy,
    Tags
)


class DataSourceBucketConstruct(Construct):
    """
    S3 bucket construct for knowledge base source documents.

    Creates:
    - S3 bucket with public access blocked and SSL enforced
    - Automatic object deletion when the bucket is destroyed on teardown
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        bucket_name: str,
        removal_policy: RemovalPolicy,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.bucket_name = bucket_name
        self.removal_policy = removal_policy

        self._create_data_source_bucket()

    def _create_data_source_bucket(self) -> None:
        """Create S3 bucket for the knowledge base documents."""
        destroy = self.removal_policy == RemovalPolicy.DESTROY

        self.data_source_bucket = s3.Bucket(
            self,
            "Bucket",
            bucket_name=self.bucket_name,
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            enforce_ssl=True,
            removal_policy=self.removal_policy,
            # Contents go with the bucket only when it is destroyed
            auto_delete_objects=destroy
        )

        Tags.of(self.data_source_bucket).add("Component", "Storage")
        Tags.of(self.data_source_bucket).add("Purpose", "KnowledgeBase")

    def get_bucket(self) -> s3.Bucket:
        """Return the S3 bucket instance."""
        return self.data_source_bucket

    def get_bucket_name(self) -> str:
        """Return the S3 bucket name."""
        return self.bucket_name

    def get_bucket_arn(self) -> str:
        """Return the S3 bucket ARN."""
        return self.data_source_bucket.bucket_arn
