"""
Dependency resolver

Orders descriptors so that every reference is resolved after its target,
then walks that order handing each resolved resource to a provisioning
backend. The backend answers with the identifiers of the new resource, which
feed the references of the resources that follow.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .descriptors import (
    PROVIDED_ATTRIBUTES,
    Action,
    Attribute,
    PermissionGrant,
    Reference,
    ResolvedResource,
    ResourceKind,
    bind_value,
    iter_references,
)
from .errors import (
    CyclicDependencyError,
    IncompleteConfigurationError,
    SchemaError,
    UnresolvedReferenceError,
)
from .graph import ResourceGraph

logger = logging.getLogger(__name__)

Identifiers = Dict[Attribute, str]


class ProvisioningBackend(ABC):
    """Turns resolved resources into real (or simulated) resources."""

    @abstractmethod
    def realize(self, resource: ResolvedResource) -> Mapping[Attribute, str]:
        """Create the resource and return the attributes it exposes."""


class DryRunBackend(ProvisioningBackend):
    """
    Backend that creates nothing and answers with deterministic synthetic
    identifiers, for validating a plan without an AWS account.
    """

    def __init__(self, account: str = "123456789012", region: str = "us-east-1") -> None:
        self.account = account
        self.region = region
        self.realized: List[str] = []

    def realize(self, resource: ResolvedResource) -> Identifiers:
        self.realized.append(resource.id)
        config = resource.config
        if resource.kind is ResourceKind.STORAGE:
            name = config["bucket_name"]
            return {
                Attribute.ARN: f"arn:aws:s3:::{name}",
                Attribute.ID: name,
                Attribute.ENDPOINT: f"s3://{name}",
            }
        if resource.kind is ResourceKind.ACCESS_ROLE:
            name = config["role_name"]
            return {
                Attribute.ARN: f"arn:aws:iam::{self.account}:role/{name}",
                Attribute.ID: name,
            }
        synthetic_id = synthetic_identifier(resource.id)
        if resource.kind is ResourceKind.VECTOR_KNOWLEDGE_BASE:
            return {
                Attribute.ARN: (
                    f"arn:aws:bedrock:{self.region}:{self.account}"
                    f":knowledge-base/{synthetic_id}"
                ),
                Attribute.ID: synthetic_id,
            }
        return {Attribute.ID: synthetic_id}


def merge_grants(grants: Sequence[PermissionGrant]) -> Tuple[PermissionGrant, ...]:
    """Merge bound grants on the same resource pattern, keeping first-seen order."""
    merged: Dict[str, List[Action]] = {}
    for grant in grants:
        actions = merged.setdefault(grant.resource_pattern, [])
        for action in grant.actions:
            if action not in actions:
                actions.append(action)
    return tuple(PermissionGrant(pattern, tuple(actions)) for pattern, actions in merged.items())


def synthetic_identifier(descriptor_id: str) -> str:
    """10 uppercase alphanumerics, stable for a given descriptor id."""
    return hashlib.sha1(descriptor_id.encode("utf-8")).hexdigest()[:10].upper()


class DependencyResolver:
    """
    Resolves the descriptors of a graph in dependency order.

    Args:
        graph: declared descriptors
        grants: scoped grants per access role id; they are bound into the
            role's resolved config under "statements" and their references
            count as dependencies of the role
        pinned: known attributes for declared descriptors that already exist;
            the backend is not asked to realize them
    """

    def __init__(
        self,
        graph: ResourceGraph,
        grants: Optional[Mapping[str, Sequence[PermissionGrant]]] = None,
        pinned: Optional[Mapping[str, Mapping[Attribute, str]]] = None,
    ) -> None:
        self.graph = graph
        self.grants = {key: tuple(value) for key, value in (grants or {}).items()}
        self.pinned = {key: _coerce_attributes(key, value) for key, value in (pinned or {}).items()}
        for descriptor_id in self.grants:
            if descriptor_id not in graph:
                raise UnresolvedReferenceError("<grants>", descriptor_id)
        for descriptor_id in self.pinned:
            if descriptor_id not in graph:
                raise UnresolvedReferenceError("<pinned>", descriptor_id)

    def references(self, descriptor_id: str) -> Tuple[Reference, ...]:
        descriptor = self.graph.get(descriptor_id)
        refs = list(descriptor.references())
        refs.extend(iter_references(self.grants.get(descriptor_id, ())))
        return tuple(refs)

    def dependencies(self, descriptor_id: str) -> Tuple[str, ...]:
        """Distinct descriptor ids referenced by descriptor_id, first-seen order."""
        seen: Dict[str, None] = {}
        for ref in self.references(descriptor_id):
            seen.setdefault(ref.target_id, None)
        return tuple(seen)

    def validate(self) -> None:
        """
        Check every reference before anything is resolved.

        Raises:
            UnresolvedReferenceError: reference to an undeclared descriptor
            SchemaError: reference to an attribute the target does not expose
        """
        for descriptor in self.graph:
            for ref in self.references(descriptor.id):
                if ref.target_id not in self.graph:
                    raise UnresolvedReferenceError(descriptor.id, ref.target_id)
                target = self.graph.get(ref.target_id)
                if ref.attribute not in PROVIDED_ATTRIBUTES[target.kind]:
                    raise SchemaError(
                        f"references {ref.attribute.value} of '{target.id}', "
                        f"which a {target.kind.value} does not expose",
                        descriptor.id,
                    )

    def order(self) -> List[str]:
        """
        Topological order of descriptor ids. Ties are broken by declaration
        order.

        Raises:
            CyclicDependencyError: naming every member of the first cycle found
        """
        self.validate()
        declared = self.graph.ids()
        deps = {descriptor_id: set(self.dependencies(descriptor_id)) for descriptor_id in declared}
        emitted: List[str] = []
        done = set()
        remaining = list(declared)

        while remaining:
            ready = next((d for d in remaining if deps[d] <= done), None)
            if ready is None:
                raise CyclicDependencyError(self._find_cycle(remaining, deps))
            remaining.remove(ready)
            done.add(ready)
            emitted.append(ready)
        return emitted

    def resolve(self, backend: ProvisioningBackend) -> Tuple[List[ResolvedResource], Dict[str, Identifiers]]:
        """
        Resolve every descriptor in order, realizing each through backend.

        The whole graph is validated and ordered before the backend sees the
        first resource, so structural errors never leave a partial plan.
        """
        ordered = self.order()
        self._check_pinned()
        logger.info(f"Resolution order: {' -> '.join(ordered)}")

        identifiers: Dict[str, Identifiers] = {}
        resolved: List[ResolvedResource] = []

        def lookup(ref: Reference) -> str:
            value = identifiers[ref.target_id].get(ref.attribute)
            if not value:
                raise IncompleteConfigurationError(
                    [f"{ref.target_id}.{ref.attribute.value}"], descriptor_id=ref.target_id
                )
            return value

        for descriptor_id in ordered:
            descriptor = self.graph.get(descriptor_id)
            config = bind_value(dict(descriptor.config), lookup)
            if descriptor.kind is ResourceKind.ACCESS_ROLE:
                config["statements"] = merge_grants(
                    bind_value(self.grants.get(descriptor_id, ()), lookup)
                )
            resource = ResolvedResource(
                id=descriptor.id,
                kind=descriptor.kind,
                config=config,
                removal_policy=descriptor.removal_policy,
                depends_on=self.dependencies(descriptor_id),
            )
            if descriptor_id in self.pinned:
                realized = self.pinned[descriptor_id]
                logger.debug(f"Using pinned identifiers for '{descriptor_id}'")
            else:
                realized = backend.realize(resource)
                logger.debug(f"Realized {descriptor.kind.value} '{descriptor_id}'")
            identifiers[descriptor_id] = {Attribute(k): v for k, v in realized.items()}
            resolved.append(resource)
        return resolved, identifiers

    def _check_pinned(self) -> None:
        for descriptor_id, attributes in self.pinned.items():
            kind = self.graph.get(descriptor_id).kind
            for attribute in attributes:
                if attribute not in PROVIDED_ATTRIBUTES[kind]:
                    raise SchemaError(
                        f"pinned attribute {attribute.value} is not exposed by {kind.value}",
                        descriptor_id,
                    )
        for descriptor in self.graph:
            for ref in self.references(descriptor.id):
                attributes = self.pinned.get(ref.target_id)
                if attributes is not None and not attributes.get(ref.attribute):
                    raise IncompleteConfigurationError(
                        [f"{ref.target_id}.{ref.attribute.value}"], descriptor_id=ref.target_id
                    )

    @staticmethod
    def _find_cycle(remaining: List[str], deps: Mapping[str, set]) -> List[str]:
        # Every remaining descriptor waits on another remaining one, so
        # following the first pending dependency must revisit a node.
        pending = set(remaining)
        path: List[str] = []
        position: Dict[str, int] = {}
        node = remaining[0]
        while node not in position:
            position[node] = len(path)
            path.append(node)
            node = next(d for d in remaining if d in deps[node] and d in pending)
        return path[position[node]:]


def _coerce_attributes(descriptor_id: str, attributes: Mapping[Attribute, str]) -> Identifiers:
    try:
        return {Attribute(key): value for key, value in attributes.items()}
    except ValueError as e:
        raise SchemaError(f"pinned {e}", descriptor_id) from None
