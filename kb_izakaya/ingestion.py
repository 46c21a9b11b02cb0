"""
Post-provisioning operations

Uploads the expected source documents into the data source bucket and runs a
Bedrock ingestion job so the knowledge base indexes them into Pinecone.
"""

import logging
import mimetypes
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_TIMEOUT = 1800.0


class IngestionError(Exception):
    """An ingestion job failed or did not finish in time."""


class AssetUploader:
    """Handles uploading the knowledge base source documents to S3."""

    def __init__(self, bucket_name: str, s3_client: Any = None, region: Optional[str] = None):
        """
        Args:
            bucket_name: Name of the data source bucket
            s3_client: boto3 S3 client (created from region when omitted)
            region: AWS region used when creating the client
        """
        self.bucket_name = bucket_name
        self.s3_client = s3_client or boto3.client("s3", region_name=region)

    def upload(self, files: Sequence[str], local_dir: str = "assets") -> Dict[str, str]:
        """
        Upload every file from local_dir to the bucket root.

        All local files are checked before the first upload.

        Returns:
            Mapping of file name to the S3 URI it was uploaded to
        """
        paths = [Path(local_dir) / name for name in files]
        missing = [str(path) for path in paths if not path.is_file()]
        if missing:
            raise FileNotFoundError(f"Source document(s) not found: {', '.join(missing)}")

        uploaded = {}
        for name, path in zip(files, paths):
            content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
            try:
                self.s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=name,
                    Body=path.read_bytes(),
                    ContentType=content_type,
                )
            except ClientError as e:
                logger.error(f"Error uploading {name} to s3://{self.bucket_name}: {e}")
                raise
            uploaded[name] = f"s3://{self.bucket_name}/{name}"
            logger.info(f"Uploaded {path} to {uploaded[name]}")
        return uploaded


def run_ingestion_job(
    bedrock_agent: Any,
    knowledge_base_id: str,
    data_source_id: str,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: float = DEFAULT_TIMEOUT,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """
    Start an ingestion job and wait for it to complete.

    Args:
        bedrock_agent: boto3 bedrock-agent client

    Returns:
        The final ingestionJob description

    Raises:
        IngestionError: the job failed or exceeded timeout
    """
    response = bedrock_agent.start_ingestion_job(
        knowledgeBaseId=knowledge_base_id,
        dataSourceId=data_source_id,
    )
    job_id = response["ingestionJob"]["ingestionJobId"]
    logger.info(f"Started ingestion job {job_id} for knowledge base {knowledge_base_id}")

    waited = 0.0
    while True:
        job = bedrock_agent.get_ingestion_job(
            knowledgeBaseId=knowledge_base_id,
            dataSourceId=data_source_id,
            ingestionJobId=job_id,
        )["ingestionJob"]
        status = job["status"]

        if status == "COMPLETE":
            logger.info(f"Ingestion job {job_id} completed: {job.get('statistics', {})}")
            return job
        if status == "FAILED":
            reasons = job.get("failureReasons", ["Unknown error"])
            raise IngestionError(f"Ingestion job {job_id} failed: {reasons}")
        if waited >= timeout:
            raise IngestionError(f"Ingestion job {job_id} still {status} after {timeout:.0f}s")

        logger.info(f"Ingestion job {job_id} status: {status}")
        sleep(poll_interval)
        waited += poll_interval
