"""
Synthesis tests for the knowledge base stack.
"""

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Match, Template

from kb_izakaya.blueprint import BUCKET_ID
from kb_izakaya.kb_izakaya_stack import KnowledgeBaseIzakayaStack
from kb_izakaya.planning import Attribute, IncompleteConfigurationError, SchemaError
from kb_izakaya.planning.plan import UPLOAD_DESCRIPTION

from tests.conftest import ACCOUNT, MODEL_ARN, PINECONE_ENDPOINT, REGION, SECRET_ARN

ENV = cdk.Environment(account=ACCOUNT, region=REGION)
CONTEXT = {
    "embeddingModelArn": MODEL_ARN,
    "pineconeEndpoint": PINECONE_ENDPOINT,
    "pineconeSecretArn": SECRET_ARN,
}


def synth(settings=None, context=None, **kwargs):
    app = cdk.App(context=context)
    stack = KnowledgeBaseIzakayaStack(app, "TestStack", settings=settings, env=ENV, **kwargs)
    return stack, Template.from_stack(stack)


@pytest.fixture
def template(settings):
    return synth(settings)[1]


def test_bucket(template):
    template.resource_count_is("AWS::S3::Bucket", 1)
    template.has_resource_properties("AWS::S3::Bucket", {
        "BucketName": "kb-izakaya-123456789012",
        "PublicAccessBlockConfiguration": {
            "BlockPublicAcls": True,
            "BlockPublicPolicy": True,
            "IgnorePublicAcls": True,
            "RestrictPublicBuckets": True,
        },
    })
    template.has_resource("AWS::S3::Bucket", {"DeletionPolicy": "Delete"})


def test_role_policy_is_scoped(template):
    template.has_resource_properties("AWS::IAM::Role", {
        "RoleName": "kb-izakaya_role",
        "AssumeRolePolicyDocument": {
            "Statement": Match.array_with([
                Match.object_like({"Principal": {"Service": "bedrock.amazonaws.com"}}),
            ]),
        },
        "Policies": [{
            "PolicyName": "inlinePolicy1",
            "PolicyDocument": {
                "Statement": Match.array_with([
                    Match.object_like({
                        "Action": "secretsmanager:GetSecretValue",
                        "Effect": "Allow",
                        "Resource": SECRET_ARN,
                    }),
                    Match.object_like({
                        "Action": "bedrock:InvokeModel",
                        "Effect": "Allow",
                        "Resource": MODEL_ARN,
                    }),
                    Match.object_like({"Action": "s3:ListBucket", "Effect": "Allow"}),
                    Match.object_like({"Action": "s3:GetObject", "Effect": "Allow"}),
                ]),
            },
        }],
    })


def test_knowledge_base(template):
    template.resource_count_is("AWS::Bedrock::KnowledgeBase", 1)
    template.has_resource_properties("AWS::Bedrock::KnowledgeBase", {
        "Name": "kb-izakaya",
        "KnowledgeBaseConfiguration": {
            "Type": "VECTOR",
            "VectorKnowledgeBaseConfiguration": {"EmbeddingModelArn": MODEL_ARN},
        },
        "StorageConfiguration": {
            "Type": "PINECONE",
            "PineconeConfiguration": {
                "ConnectionString": PINECONE_ENDPOINT,
                "CredentialsSecretArn": SECRET_ARN,
                "FieldMapping": {"MetadataField": "metadata", "TextField": "text"},
            },
        },
    })


def test_knowledge_base_waits_for_role(template):
    knowledge_bases = template.find_resources("AWS::Bedrock::KnowledgeBase")
    (kb,) = knowledge_bases.values()
    assert any(name.startswith("KnowledgeBaseRole") for name in kb["DependsOn"])


def test_data_source(template):
    template.resource_count_is("AWS::Bedrock::DataSource", 1)
    template.has_resource_properties("AWS::Bedrock::DataSource", {
        "Name": "kb-izakaya-data-source",
        "KnowledgeBaseId": {"Fn::GetAtt": [Match.string_like_regexp("^KnowledgeBase"), "KnowledgeBaseId"]},
        "DataSourceConfiguration": {"Type": "S3"},
    })


def test_upload_outputs(template):
    outputs = template.find_outputs("*", {"Description": UPLOAD_DESCRIPTION})
    assert sorted(output["Value"] for output in outputs.values()) == [
        "aws s3 cp assets/izakaya_guidance.pdf s3://kb-izakaya-123456789012/izakaya_guidance.pdf",
        "aws s3 cp assets/izakaya_menu.txt s3://kb-izakaya-123456789012/izakaya_menu.txt",
    ]


def test_plan_is_exposed_on_the_stack(settings):
    stack, _ = synth(settings)
    assert stack.plan.ids() == ["DataSourceBucket", "KnowledgeBaseRole", "KnowledgeBase", "BedrockKnowledgeBaseDataStore"]
    assert len(stack.output.outputs) == 2
    assert set(stack.backend.constructs) == set(stack.plan.ids())


def test_retained_bucket(settings):
    _, template = synth(settings.with_overrides(removal_policy="retain"))
    template.has_resource("AWS::S3::Bucket", {
        "DeletionPolicy": "Retain",
        "UpdateReplacePolicy": "Retain",
    })
    template.resource_count_is("Custom::S3AutoDeleteObjects", 0)


def test_settings_from_context():
    _, template = synth(context=dict(CONTEXT, tag="izakaya-dev"))
    template.has_resource_properties("AWS::S3::Bucket", {"BucketName": "izakaya-dev-123456789012"})
    template.has_resource_properties("AWS::Bedrock::KnowledgeBase", {"Name": "izakaya-dev"})


def test_missing_context_fails_synthesis():
    with pytest.raises(IncompleteConfigurationError) as exc:
        synth(context={"pineconeEndpoint": PINECONE_ENDPOINT})
    assert exc.value.missing == ("embeddingModelArn", "pineconeSecretArn")


def test_pinned_bucket_is_not_created(settings):
    pinned = {BUCKET_ID: {Attribute.ARN: "arn:aws:s3:::existing", Attribute.ID: "existing"}}
    _, template = synth(settings, pinned=pinned)

    template.resource_count_is("AWS::S3::Bucket", 0)
    template.has_resource_properties("AWS::Bedrock::DataSource", {
        "DataSourceConfiguration": {"S3Configuration": {"BucketArn": "arn:aws:s3:::existing"}},
    })
    outputs = template.find_outputs("*", {"Description": UPLOAD_DESCRIPTION})
    assert all("s3://existing/" in output["Value"] for output in outputs.values())


def test_malformed_files_context_fails_synthesis():
    with pytest.raises(SchemaError, match="dataSourceFiles"):
        synth(context=dict(CONTEXT, dataSourceFiles=3))
