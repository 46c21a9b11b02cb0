"""
Bedrock knowledge base backed by a Pinecone vector index.

The CDK stack lives in kb_izakaya.kb_izakaya_stack and is imported
explicitly so that planning can run without the CDK toolchain.
"""

__version__ = "0.1.0"
