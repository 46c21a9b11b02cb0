"""
Knowledge base configuration

External parameters come from CDK context (cdk.json or `cdk deploy -c`),
environment variables, or CLI flags. Missing required parameters fail the
whole plan before any descriptor is declared.
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Sequence, Tuple

from .planning.descriptors import RemovalPolicy, coerce_removal_policy
from .planning.errors import IncompleteConfigurationError, SchemaError

DEFAULT_TAG = "kb-izakaya"
DEFAULT_DATA_SOURCE_FILES: Tuple[str, ...] = ("izakaya_menu.txt", "izakaya_guidance.pdf")

# settings field -> CDK context key
CONTEXT_KEYS = {
    "embedding_model_arn": "embeddingModelArn",
    "pinecone_endpoint": "pineconeEndpoint",
    "pinecone_secret_arn": "pineconeSecretArn",
    "tag": "tag",
    "data_source_files": "dataSourceFiles",
    "removal_policy": "removalPolicy",
}

# settings field -> environment variable
ENV_KEYS = {
    "embedding_model_arn": "KB_EMBEDDING_MODEL_ARN",
    "pinecone_endpoint": "KB_PINECONE_ENDPOINT",
    "pinecone_secret_arn": "KB_PINECONE_SECRET_ARN",
    "tag": "KB_TAG",
    "data_source_files": "KB_DATA_SOURCE_FILES",
    "removal_policy": "KB_REMOVAL_POLICY",
    "account": "CDK_DEFAULT_ACCOUNT",
    "region": "CDK_DEFAULT_REGION",
}

REQUIRED = ("embedding_model_arn", "pinecone_endpoint", "pinecone_secret_arn")


@dataclass(frozen=True)
class KnowledgeBaseSettings:
    embedding_model_arn: Optional[str] = None
    pinecone_endpoint: Optional[str] = None
    pinecone_secret_arn: Optional[str] = None
    tag: str = DEFAULT_TAG
    account: Optional[str] = None
    region: Optional[str] = None
    data_source_files: Tuple[str, ...] = DEFAULT_DATA_SOURCE_FILES
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY

    @property
    def bucket_name(self) -> str:
        return f"{self.tag}-{self.account}"

    @property
    def role_name(self) -> str:
        return f"{self.tag}_role"

    @property
    def data_source_name(self) -> str:
        return f"{self.tag}-data-source"

    def validate(self) -> "KnowledgeBaseSettings":
        """
        Raises:
            IncompleteConfigurationError: naming every missing parameter,
                by its CDK context key
        """
        missing = [
            CONTEXT_KEYS[name] for name in REQUIRED
            if not (getattr(self, name) or "").strip()
        ]
        if not self.account:
            missing.append("account")
        if not (self.tag or "").strip():
            missing.append(CONTEXT_KEYS["tag"])
        if missing:
            raise IncompleteConfigurationError(missing)
        return self

    def with_overrides(self, **overrides: Any) -> "KnowledgeBaseSettings":
        """Copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **_normalize(values))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "KnowledgeBaseSettings":
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__ and v is not None}
        return cls(**_normalize(known))

    @classmethod
    def from_context(
        cls,
        node: Any,
        account: Optional[str] = None,
        region: Optional[str] = None,
    ) -> "KnowledgeBaseSettings":
        """Read settings from a CDK construct node's context."""
        values = {name: node.try_get_context(key) for name, key in CONTEXT_KEYS.items()}
        values["account"] = account
        values["region"] = region
        return cls.from_mapping(values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "KnowledgeBaseSettings":
        environ = os.environ if environ is None else environ
        values = {name: environ.get(key) for name, key in ENV_KEYS.items()}
        return cls.from_mapping(values)


def _normalize(values: Mapping[str, Any]) -> dict:
    normalized = dict(values)
    if "data_source_files" in normalized:
        normalized["data_source_files"] = _split_files(normalized["data_source_files"])
    policy = normalized.get("removal_policy")
    if isinstance(policy, str) and not isinstance(policy, RemovalPolicy):
        normalized["removal_policy"] = coerce_removal_policy(policy.strip().capitalize())
    return normalized


def _split_files(files: Any) -> Tuple[str, ...]:
    if isinstance(files, str):
        files = files.split(",")
    if not isinstance(files, Sequence):
        raise SchemaError(f"dataSourceFiles must be a list or comma separated string, got {files!r}")
    return tuple(name.strip() for name in files if name and name.strip())
