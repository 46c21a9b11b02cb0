"""
Tests for the knowledge base resource declarations.
"""

import pytest

from kb_izakaya.blueprint import (
    BUCKET_ID,
    DATA_SOURCE_ID,
    KNOWLEDGE_BASE_ID,
    ROLE_ID,
    declare_knowledge_base,
)
from kb_izakaya.config import KnowledgeBaseSettings
from kb_izakaya.planning import (
    IncompleteConfigurationError,
    RemovalPolicy,
    ResourceKind,
    build_plan,
    emit,
)

from tests.conftest import MODEL_ARN, PINECONE_ENDPOINT, SECRET_ARN


def test_declares_four_resources(settings):
    graph = declare_knowledge_base(settings)

    assert graph.ids() == [BUCKET_ID, ROLE_ID, KNOWLEDGE_BASE_ID, DATA_SOURCE_ID]
    assert graph.get(BUCKET_ID).kind is ResourceKind.STORAGE
    assert graph.get(BUCKET_ID).removal_policy is RemovalPolicy.DESTROY
    assert graph.get(KNOWLEDGE_BASE_ID).config["connection_string"] == PINECONE_ENDPOINT


def test_missing_settings_declare_nothing():
    with pytest.raises(IncompleteConfigurationError) as exc:
        declare_knowledge_base(KnowledgeBaseSettings(account="123456789012"))
    assert "pineconeSecretArn" in exc.value.missing


def test_plan_grants_match_the_knowledge_base(settings, backend):
    plan = build_plan(declare_knowledge_base(settings), backend)
    statements = plan.get(ROLE_ID).config["statements"]

    assert [(g.resource_pattern, [a.value for a in g.actions]) for g in statements] == [
        (SECRET_ARN, ["read-secret"]),
        (MODEL_ARN, ["invoke-model"]),
        ("arn:aws:s3:::kb-izakaya-123456789012", ["list"]),
        ("arn:aws:s3:::kb-izakaya-123456789012/*", ["read-object"]),
    ]


def test_upload_commands(settings, backend):
    plan = build_plan(declare_knowledge_base(settings), backend)
    output = emit(plan, settings.data_source_files)

    assert [d.value for d in output.outputs] == [
        "aws s3 cp assets/izakaya_menu.txt s3://kb-izakaya-123456789012/izakaya_menu.txt",
        "aws s3 cp assets/izakaya_guidance.pdf s3://kb-izakaya-123456789012/izakaya_guidance.pdf",
    ]


def test_retained_bucket(settings, backend):
    graph = declare_knowledge_base(settings.with_overrides(removal_policy="retain"))
    assert graph.get(BUCKET_ID).removal_policy is RemovalPolicy.RETAIN
