"""
Resource planning for the knowledge base

This package describes the knowledge base resources as descriptors, derives
least-privilege grants for the access role, and resolves cross-resource
references in dependency order:
- descriptors: resource kinds, references, grants and schemas
- graph: the declaration table of a plan
- policy_scoper: grant derivation
- resolver: ordering, reference binding and provisioning backends
- plan: the resolved plan and operator outputs
"""

from .descriptors import (
    Action,
    Attribute,
    PermissionGrant,
    Reference,
    RemovalPolicy,
    ResolvedResource,
    ResourceDescriptor,
    ResourceKind,
    Usage,
)
from .errors import (
    ConflictError,
    CyclicDependencyError,
    IncompleteConfigurationError,
    PlanningError,
    SchemaError,
    UnresolvedReferenceError,
)
from .graph import ResourceGraph
from .plan import OutputDirective, PlanOutput, ProvisioningPlan, build_plan, emit
from .policy_scoper import PolicyScoper
from .resolver import DependencyResolver, DryRunBackend, ProvisioningBackend

__all__ = [
    "Action",
    "Attribute",
    "ConflictError",
    "CyclicDependencyError",
    "DependencyResolver",
    "DryRunBackend",
    "IncompleteConfigurationError",
    "OutputDirective",
    "PermissionGrant",
    "PlanOutput",
    "PlanningError",
    "PolicyScoper",
    "ProvisioningBackend",
    "ProvisioningPlan",
    "Reference",
    "RemovalPolicy",
    "ResolvedResource",
    "ResourceDescriptor",
    "ResourceGraph",
    "ResourceKind",
    "SchemaError",
    "UnresolvedReferenceError",
    "Usage",
    "build_plan",
    "emit",
]
