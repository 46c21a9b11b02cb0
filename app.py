#!/usr/bin/env python3
"""
Knowledge Base Izakaya CDK Application

This application deploys an Amazon Bedrock knowledge base backed by a
Pinecone vector index:
- Amazon S3 bucket for source documents
- IAM role assumed by Amazon Bedrock, scoped to what the knowledge base uses
- Bedrock knowledge base and its S3 data source

Required context (cdk.json or -c key=value):
- embeddingModelArn, pineconeEndpoint, pineconeSecretArn
"""

import aws_cdk as cdk
from kb_izakaya.kb_izakaya_stack import KnowledgeBaseIzakayaStack


app = cdk.App()

# Get environment configuration
env = cdk.Environment(
    account=app.node.try_get_context("account"),
    region=app.node.try_get_context("region")
)

# Deploy the main stack
KnowledgeBaseIzakayaStack(
    app,
    "KnowledgeBaseIzakayaStack",
    env=env,
    description="Bedrock knowledge base with a Pinecone vector store"
)

app.synth()
