"""
Declaration table for a single plan.

A ResourceGraph owns the descriptors declared for one plan, in declaration
order. Declaring a descriptor only registers it; nothing is created.
"""

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from .descriptors import (
    STORAGE_KINDS,
    RemovalPolicy,
    ResourceDescriptor,
    ResourceKind,
    coerce_kind,
    coerce_removal_policy,
    validate_config,
)
from .errors import ConflictError, SchemaError

logger = logging.getLogger(__name__)


class ResourceGraph:
    """Descriptors declared for one plan, keyed by id."""

    def __init__(self) -> None:
        self._descriptors: Dict[str, ResourceDescriptor] = {}

    def declare(
        self,
        descriptor_id: str,
        kind: Union[str, ResourceKind],
        config: Optional[Mapping[str, Any]] = None,
        removal_policy: Union[str, RemovalPolicy, None] = None,
    ) -> str:
        """
        Register a descriptor and return its id.

        Raises:
            ConflictError: descriptor_id is already declared
            SchemaError: unknown kind, malformed config, or a storage resource
                declared without an explicit removal policy
        """
        if not descriptor_id or not isinstance(descriptor_id, str):
            raise SchemaError(f"Descriptor id must be a non-empty string: {descriptor_id!r}")
        if descriptor_id in self._descriptors:
            raise ConflictError(descriptor_id)

        resource_kind = coerce_kind(kind)
        policy = coerce_removal_policy(removal_policy)
        config = dict(config or {})
        validate_config(descriptor_id, resource_kind, config)
        if resource_kind in STORAGE_KINDS and policy is None:
            raise SchemaError(
                f"{resource_kind.value} requires an explicit removal policy",
                descriptor_id,
            )

        self._descriptors[descriptor_id] = ResourceDescriptor(
            id=descriptor_id,
            kind=resource_kind,
            config=config,
            removal_policy=policy,
        )
        logger.debug(f"Declared {resource_kind.value} descriptor '{descriptor_id}'")
        return descriptor_id

    def get(self, descriptor_id: str) -> ResourceDescriptor:
        return self._descriptors[descriptor_id]

    def of_kind(self, kind: ResourceKind) -> List[ResourceDescriptor]:
        return [d for d in self._descriptors.values() if d.kind is kind]

    def ids(self) -> List[str]:
        return list(self._descriptors)

    def __contains__(self, descriptor_id: object) -> bool:
        return descriptor_id in self._descriptors

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)
