#!/usr/bin/env python3
"""
Knowledge base command line

Usage:
    kb-izakaya plan --embedding-model-arn ARN --pinecone-endpoint URL --pinecone-secret-arn ARN
    kb-izakaya upload --bucket-name kb-izakaya-123456789012
    kb-izakaya ingest --knowledge-base-id KBID --data-source-id DSID
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .blueprint import declare_knowledge_base
from .config import DEFAULT_DATA_SOURCE_FILES, KnowledgeBaseSettings
from .ingestion import AssetUploader, IngestionError, run_ingestion_job
from .planning import DryRunBackend, PlanOutput, PlanningError, ProvisioningPlan, build_plan, emit

logger = logging.getLogger(__name__)

DRY_RUN_ACCOUNT = "123456789012"
DRY_RUN_REGION = "us-east-1"


def _files(value: str) -> List[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kb-izakaya",
        description="Plan and operate the Bedrock knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate the plan and print the resolution order and upload commands
  kb-izakaya plan --embedding-model-arn arn:aws:bedrock:us-east-1::foundation-model/amazon.titan-embed-text-v2:0 \\
      --pinecone-endpoint https://izakaya-abc123.svc.pinecone.io \\
      --pinecone-secret-arn arn:aws:secretsmanager:us-east-1:123456789012:secret:pinecone

  # Upload the source documents after deployment
  kb-izakaya upload --bucket-name kb-izakaya-123456789012
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", help="Resolve the plan with synthetic identifiers")
    plan.add_argument("--embedding-model-arn", help="Bedrock embedding model ARN (env: KB_EMBEDDING_MODEL_ARN)")
    plan.add_argument("--pinecone-endpoint", help="Pinecone index endpoint (env: KB_PINECONE_ENDPOINT)")
    plan.add_argument("--pinecone-secret-arn", help="Pinecone API key secret ARN (env: KB_PINECONE_SECRET_ARN)")
    plan.add_argument("--tag", help="Resource name prefix (default: kb-izakaya)")
    plan.add_argument("--account", help=f"AWS account id (default: {DRY_RUN_ACCOUNT})")
    plan.add_argument("--region", help=f"AWS region (default: {DRY_RUN_REGION})")
    plan.add_argument("--files", type=_files, help="Comma separated expected source documents")
    plan.add_argument("--removal-policy", choices=["destroy", "retain"], help="Bucket removal policy")
    plan.add_argument("--format", choices=["text", "json"], default="text", help="Output format")

    upload = subparsers.add_parser("upload", help="Upload source documents to the bucket")
    upload.add_argument("--bucket-name", required=True, help="Data source bucket name")
    upload.add_argument(
        "--files", type=_files, default=list(DEFAULT_DATA_SOURCE_FILES),
        help="Comma separated file names (default: %(default)s)"
    )
    upload.add_argument("--local-dir", default="assets", help="Local directory holding the files (default: assets)")
    upload.add_argument("--region", help="AWS region")

    ingest = subparsers.add_parser("ingest", help="Run an ingestion job and wait for it")
    ingest.add_argument("--knowledge-base-id", required=True, help="Knowledge base id")
    ingest.add_argument("--data-source-id", required=True, help="Data source id")
    ingest.add_argument("--region", help="AWS region")
    ingest.add_argument("--poll-interval", type=float, default=10.0, help="Seconds between status checks")
    ingest.add_argument("--timeout", type=float, default=1800.0, help="Seconds to wait before giving up")
    return parser


def plan_command(args: argparse.Namespace) -> PlanOutput:
    settings = KnowledgeBaseSettings.from_env().with_overrides(
        embedding_model_arn=args.embedding_model_arn,
        pinecone_endpoint=args.pinecone_endpoint,
        pinecone_secret_arn=args.pinecone_secret_arn,
        tag=args.tag,
        account=args.account,
        region=args.region,
        data_source_files=args.files,
        removal_policy=args.removal_policy,
    )
    if settings.account is None:
        settings = settings.with_overrides(account=DRY_RUN_ACCOUNT)
    backend = DryRunBackend(
        account=settings.account, region=settings.region or DRY_RUN_REGION
    )
    graph = declare_knowledge_base(settings)
    plan = build_plan(graph, backend)
    output = emit(plan, settings.data_source_files)
    if args.format == "json":
        payload = output.to_dict()
        payload["batches"] = plan.batches()
        print(json.dumps(payload, indent=2))
    else:
        print_plan(plan, output)
    return output


def print_plan(plan: ProvisioningPlan, output: PlanOutput) -> None:
    print("Resolution order:")
    for position, resource in enumerate(plan.resources, 1):
        after = f" (after {', '.join(resource.depends_on)})" if resource.depends_on else ""
        print(f"  {position}. {resource.kind.value} {resource.id}{after}")
        for grant in resource.config.get("statements", ()):
            print(f"       allow {', '.join(a.value for a in grant.actions)} on {grant.resource_pattern}")
    print("\nParallel batches:")
    for level, batch in enumerate(plan.batches(), 1):
        print(f"  {level}. {', '.join(batch)}")
    print("\nOutputs:")
    for directive in output.outputs:
        print(f"  {directive.label} = {directive.value}")


def upload_command(args: argparse.Namespace) -> None:
    uploader = AssetUploader(args.bucket_name, region=args.region)
    uploaded = uploader.upload(args.files, local_dir=args.local_dir)
    for name, uri in uploaded.items():
        print(f"✓ {name} -> {uri}")


def ingest_command(args: argparse.Namespace) -> None:
    client = boto3.client("bedrock-agent", region_name=args.region)
    job = run_ingestion_job(
        client,
        args.knowledge_base_id,
        args.data_source_id,
        poll_interval=args.poll_interval,
        timeout=args.timeout,
    )
    print(f"✓ Ingestion job {job['ingestionJobId']} {job['status']}")


COMMANDS = {
    "plan": plan_command,
    "upload": upload_command,
    "ingest": ingest_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        COMMANDS[args.command](args)
    except PlanningError as e:
        print(f"Plan error: {e}", file=sys.stderr)
        return 2
    except (FileNotFoundError, IngestionError, ClientError, BotoCoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
