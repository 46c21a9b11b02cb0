"""
Tests for the kb-izakaya command line.
"""

import json
from datetime import datetime

import boto3
import pytest
from botocore.stub import Stubber

from kb_izakaya import cli
from kb_izakaya.cli import build_parser, main

from tests.conftest import MODEL_ARN, PINECONE_ENDPOINT, SECRET_ARN

PLAN_ARGS = [
    "plan",
    "--embedding-model-arn", MODEL_ARN,
    "--pinecone-endpoint", PINECONE_ENDPOINT,
    "--pinecone-secret-arn", SECRET_ARN,
]


def test_plan_json(clean_env, capsys):
    assert main(PLAN_ARGS + ["--format", "json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert [r["id"] for r in payload["resources"]] == [
        "DataSourceBucket", "KnowledgeBaseRole", "KnowledgeBase", "BedrockKnowledgeBaseDataStore",
    ]
    assert payload["batches"] == [[r["id"]] for r in payload["resources"]]
    assert payload["outputs"][0]["value"] == (
        "aws s3 cp assets/izakaya_menu.txt s3://kb-izakaya-123456789012/izakaya_menu.txt"
    )


def test_plan_text(clean_env, capsys):
    assert main(PLAN_ARGS + ["--tag", "izakaya-dev", "--files", "menu.txt"]) == 0

    out = capsys.readouterr().out
    assert "Resolution order:" in out
    assert "allow invoke-model on " + MODEL_ARN in out
    assert "UploadCommand_menu.txt = aws s3 cp assets/menu.txt s3://izakaya-dev-123456789012/menu.txt" in out


def test_plan_reads_environment(clean_env, capsys):
    clean_env.setenv("KB_EMBEDDING_MODEL_ARN", MODEL_ARN)
    clean_env.setenv("KB_PINECONE_ENDPOINT", PINECONE_ENDPOINT)
    clean_env.setenv("KB_PINECONE_SECRET_ARN", SECRET_ARN)
    clean_env.setenv("CDK_DEFAULT_ACCOUNT", "210987654321")

    assert main(["plan", "--format", "json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["resources"][0]["config"]["bucket_name"] == "kb-izakaya-210987654321"


def test_plan_missing_parameters(clean_env, capsys):
    assert main(["plan", "--pinecone-endpoint", PINECONE_ENDPOINT]) == 2

    err = capsys.readouterr().err
    assert "Plan error:" in err
    assert "embeddingModelArn" in err
    assert "pineconeSecretArn" in err


def test_upload_missing_files(tmp_path, capsys):
    rc = main([
        "upload", "--bucket-name", "docs", "--files", "nope.txt",
        "--local-dir", str(tmp_path), "--region", "us-east-1",
    ])
    assert rc == 1
    assert "nope.txt" in capsys.readouterr().err


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_ingest(monkeypatch, capsys):
    agent = boto3.client(
        "bedrock-agent",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    monkeypatch.setattr(cli.boto3, "client", lambda service, region_name=None: agent)
    now = datetime(2026, 1, 1)
    ingestion_job = {
        "knowledgeBaseId": "KB12345678",
        "dataSourceId": "DS12345678",
        "ingestionJobId": "JOB1234567",
        "startedAt": now,
        "updatedAt": now,
    }

    with Stubber(agent) as stubber:
        stubber.add_response("start_ingestion_job", {"ingestionJob": dict(ingestion_job, status="STARTING")})
        stubber.add_response("get_ingestion_job", {"ingestionJob": dict(ingestion_job, status="COMPLETE")}, {
            "knowledgeBaseId": "KB12345678",
            "dataSourceId": "DS12345678",
            "ingestionJobId": "JOB1234567",
        })
        rc = main([
            "ingest", "--knowledge-base-id", "KB12345678", "--data-source-id", "DS12345678",
            "--region", "us-east-1",
        ])
        stubber.assert_no_pending_responses()

    assert rc == 0
    assert "Ingestion job JOB1234567 COMPLETE" in capsys.readouterr().out


def test_ingest_failure_exits_with_error(monkeypatch, capsys):
    agent = boto3.client(
        "bedrock-agent",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    monkeypatch.setattr(cli.boto3, "client", lambda service, region_name=None: agent)

    with Stubber(agent) as stubber:
        stubber.add_client_error("start_ingestion_job", service_error_code="ResourceNotFoundException")
        rc = main(["ingest", "--knowledge-base-id", "KB12345678", "--data-source-id", "DS12345678"])

    assert rc == 1
    assert "ResourceNotFoundException" in capsys.readouterr().err
