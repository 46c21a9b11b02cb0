"""
Pytest configuration and shared fixtures for all tests.
"""

import pytest

from kb_izakaya.config import ENV_KEYS, KnowledgeBaseSettings
from kb_izakaya.planning import (
    Attribute,
    DryRunBackend,
    Reference,
    ResourceGraph,
    ResourceKind,
)

ACCOUNT = "123456789012"
REGION = "us-east-1"
MODEL_ARN = "arn:aws:bedrock:us-east-1::foundation-model/amazon.titan-embed-text-v2:0"
SECRET_ARN = "arn:aws:secretsmanager:us-east-1:123456789012:secret:pinecone-api-key"
PINECONE_ENDPOINT = "https://izakaya-abc123.svc.aped-4627-b74a.pinecone.io"


def declare_scenario(
    model_arn: str = "arn:model:1",
    secret_arn: str = "arn:secret:1",
) -> ResourceGraph:
    """Bucket S, role R, knowledge base K assuming R, data source D on K and S."""
    graph = ResourceGraph()
    graph.declare("S", ResourceKind.STORAGE, {"bucket_name": "bucket-s"}, removal_policy="Destroy")
    graph.declare(
        "R",
        ResourceKind.ACCESS_ROLE,
        {
            "role_name": "role-r",
            "service_principal": "bedrock.amazonaws.com",
            "grants": {
                "secret": secret_arn,
                "embedding_model": model_arn,
                "bucket": Reference("S", Attribute.ARN),
            },
        },
    )
    graph.declare(
        "K",
        ResourceKind.VECTOR_KNOWLEDGE_BASE,
        {
            "name": "kb",
            "role_arn": Reference("R", Attribute.ARN),
            "embedding_model_arn": model_arn,
            "storage_backend": "PINECONE",
            "connection_string": "https://index.pinecone.io",
            "credentials_secret_arn": secret_arn,
        },
    )
    graph.declare(
        "D",
        ResourceKind.DATA_SOURCE,
        {
            "name": "ds",
            "knowledge_base_id": Reference("K", Attribute.ID),
            "bucket_arn": Reference("S", Attribute.ARN),
        },
    )
    return graph


@pytest.fixture
def scenario_graph() -> ResourceGraph:
    return declare_scenario()


@pytest.fixture
def backend() -> DryRunBackend:
    return DryRunBackend(account=ACCOUNT, region=REGION)


@pytest.fixture
def settings() -> KnowledgeBaseSettings:
    return KnowledgeBaseSettings(
        embedding_model_arn=MODEL_ARN,
        pinecone_endpoint=PINECONE_ENDPOINT,
        pinecone_secret_arn=SECRET_ARN,
        account=ACCOUNT,
        region=REGION,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every knowledge base environment variable."""
    for key in ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
