"""
S3 Data Source Construct

This construct binds an S3 bucket to a Bedrock knowledge base so that
ingestion jobs can read the documents stored in it.
"""

from typing import Optional
from constructs import Construct
from aws_cdk import (
    aws_bedrock as bedrock,
    RemovalPolicy
)


class S3DataSourceConstruct(Construct):
    """Construct for a knowledge base data source reading from S3."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        name: str,
        knowledge_base_id: str,
        bucket_arn: str,
        removal_policy: Optional[RemovalPolicy] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.data_source = bedrock.CfnDataSource(
            self,
            "DataSource",
            name=name,
            knowledge_base_id=knowledge_base_id,
            data_source_configuration=bedrock.CfnDataSource.DataSourceConfigurationProperty(
                type="S3",
                s3_configuration=bedrock.CfnDataSource.S3DataSourceConfigurationProperty(
                    bucket_arn=bucket_arn
                )
            )
        )

        if removal_policy is not None:
            self.data_source.apply_removal_policy(removal_policy)

    def get_data_source(self) -> bedrock.CfnDataSource:
        """Returns the data source resource"""
        return self.data_source

    def get_data_source_id(self) -> str:
        """Returns the data source id"""
        return self.data_source.attr_data_source_id
