"""
Policy scoper

Derives the least-privilege grants an access role needs from what the
resources assuming it will touch: the vector store credentials secret, the
embedding model and the data source bucket.
"""

import logging
from typing import Dict, Iterator, List, Tuple, Union

from .descriptors import (
    Action,
    Attribute,
    PermissionGrant,
    Reference,
    ResourceDescriptor,
    ResourceKind,
    Usage,
)
from .errors import IncompleteConfigurationError, UnresolvedReferenceError
from .graph import ResourceGraph

logger = logging.getLogger(__name__)

# (suffix, actions) per usage. Object keys are unknown at declaration time,
# so bucket reads are granted on the whole key space.
USAGE_ACTIONS: Dict[Usage, Tuple[Tuple[str, Tuple[Action, ...]], ...]] = {
    Usage.SECRET: (("", (Action.READ_SECRET,)),),
    Usage.EMBEDDING_MODEL: (("", (Action.INVOKE_MODEL,)),),
    Usage.BUCKET: (("", (Action.LIST,)), ("/*", (Action.READ_OBJECT,))),
}

_KNOWLEDGE_BASE_USAGES = (
    ("credentials_secret_arn", Usage.SECRET),
    ("embedding_model_arn", Usage.EMBEDDING_MODEL),
)

Target = Union[str, Reference, None]


class PolicyScoper:
    """Computes PermissionGrant lists for the access roles of a graph."""

    def __init__(self, graph: ResourceGraph) -> None:
        self.graph = graph

    def scope_all(self) -> Dict[str, List[PermissionGrant]]:
        """Grants for every AccessRole in the graph, keyed by role id."""
        return {
            role.id: self.scope(role.id)
            for role in self.graph.of_kind(ResourceKind.ACCESS_ROLE)
        }

    def scope(self, role_id: str) -> List[PermissionGrant]:
        """
        Minimal grants for one role.

        Grants are deduplicated by (resource pattern, action) and keep the
        order in which they were first discovered.

        Raises:
            IncompleteConfigurationError: a grant target is empty
            UnresolvedReferenceError: a grant target references an undeclared
                descriptor
        """
        role = self.graph.get(role_id)
        merged: Dict[Tuple[Union[str, Reference], str], List[Action]] = {}

        for source_id, field_name, usage, target in self._usages(role):
            self._check_target(source_id, field_name, target)
            for suffix, actions in USAGE_ACTIONS[usage]:
                granted = merged.setdefault((target, suffix), [])
                for action in actions:
                    if action not in granted:
                        granted.append(action)

        grants = [
            PermissionGrant(resource=resource, actions=tuple(actions), suffix=suffix)
            for (resource, suffix), actions in merged.items()
        ]
        logger.info(
            f"Scoped {len(grants)} grant(s) for role '{role_id}': "
            + ", ".join(f"{'/'.join(g.actions)} on {g.resource_pattern}" for g in grants)
        )
        return grants

    def _usages(
        self, role: ResourceDescriptor
    ) -> Iterator[Tuple[str, str, Usage, Target]]:
        for usage, target in role.config["grants"].items():
            yield role.id, f"grants.{Usage(usage).value}", Usage(usage), target

        assuming = [
            kb for kb in self.graph.of_kind(ResourceKind.VECTOR_KNOWLEDGE_BASE)
            if _refers_to(kb.config.get("role_arn"), role.id)
        ]
        for kb in assuming:
            for field_name, usage in _KNOWLEDGE_BASE_USAGES:
                yield kb.id, field_name, usage, kb.config.get(field_name)

        kb_ids = {kb.id for kb in assuming}
        for source in self.graph.of_kind(ResourceKind.DATA_SOURCE):
            kb_ref = source.config.get("knowledge_base_id")
            if isinstance(kb_ref, Reference) and kb_ref.target_id in kb_ids:
                yield source.id, "bucket_arn", Usage.BUCKET, source.config.get("bucket_arn")

    def _check_target(self, source_id: str, field_name: str, target: Target) -> None:
        if isinstance(target, Reference):
            if target.target_id not in self.graph:
                raise UnresolvedReferenceError(source_id, target.target_id)
            return
        if target is None or not str(target).strip():
            raise IncompleteConfigurationError([field_name], descriptor_id=source_id)


def _refers_to(value: Target, descriptor_id: str) -> bool:
    return (
        isinstance(value, Reference)
        and value.target_id == descriptor_id
        and value.attribute is Attribute.ARN
    )
