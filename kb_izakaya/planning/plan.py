"""
Provisioning plan and output emission

build_plan runs the whole pipeline (scoping, ordering, resolution) over a
declared graph. emit turns a finished plan into the handoff payload: the
resolved resources plus the operator-facing upload commands.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .descriptors import Attribute, ResolvedResource, ResourceKind
from .errors import IncompleteConfigurationError, SchemaError
from .graph import ResourceGraph
from .policy_scoper import PolicyScoper
from .resolver import DependencyResolver, ProvisioningBackend

logger = logging.getLogger(__name__)

DEFAULT_COPY_TOOL = "aws s3 cp"
DEFAULT_LOCAL_DIR = "assets"
UPLOAD_DESCRIPTION = "AWS CLI command to upload a file to the S3 bucket"


@dataclass(frozen=True)
class OutputDirective:
    label: str
    value: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"label": self.label, "value": self.value, "description": self.description}


@dataclass(frozen=True)
class ProvisioningPlan:
    """Ordered, fully resolved resources and the identifiers they received."""

    resources: Tuple[ResolvedResource, ...]
    identifiers: Mapping[str, Mapping[Attribute, str]] = field(default_factory=dict)

    def get(self, descriptor_id: str) -> ResolvedResource:
        for resource in self.resources:
            if resource.id == descriptor_id:
                return resource
        raise KeyError(descriptor_id)

    def ids(self) -> List[str]:
        return [resource.id for resource in self.resources]

    def batches(self) -> List[List[str]]:
        """
        Group resources into dependency levels. Resources in the same batch
        have no dependency edge between them and may be created concurrently.
        """
        level: Dict[str, int] = {}
        for resource in self.resources:
            level[resource.id] = 1 + max((level[d] for d in resource.depends_on), default=-1)
        batches: List[List[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
        for resource in self.resources:
            batches[level[resource.id]].append(resource.id)
        return batches


@dataclass(frozen=True)
class PlanOutput:
    resources: Tuple[ResolvedResource, ...]
    outputs: Tuple[OutputDirective, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resources": [resource.to_dict() for resource in self.resources],
            "outputs": [directive.to_dict() for directive in self.outputs],
        }


def build_plan(
    graph: ResourceGraph,
    backend: ProvisioningBackend,
    pinned: Optional[Mapping[str, Mapping[Attribute, str]]] = None,
) -> ProvisioningPlan:
    """
    Scope role grants, order the graph and resolve it through backend.

    Every error is raised before the backend realizes anything.
    """
    if not len(graph):
        raise SchemaError("Cannot build a plan from an empty graph")
    grants = PolicyScoper(graph).scope_all()
    resolver = DependencyResolver(graph, grants=grants, pinned=pinned)
    resources, identifiers = resolver.resolve(backend)
    logger.info(f"Resolved {len(resources)} resource(s)")
    return ProvisioningPlan(resources=tuple(resources), identifiers=identifiers)


def emit(
    plan: ProvisioningPlan,
    expected_files: Sequence[str],
    storage_id: Optional[str] = None,
    copy_tool: str = DEFAULT_COPY_TOOL,
    local_dir: str = DEFAULT_LOCAL_DIR,
) -> PlanOutput:
    """
    One upload directive per expected file, targeting the storage resource.

    storage_id may be omitted when the plan holds exactly one storage
    resource.
    """
    bucket = _storage_identifier(plan, storage_id)
    outputs = tuple(
        OutputDirective(
            label=f"UploadCommand_{name}",
            value=f"{copy_tool} {local_dir}/{name} s3://{bucket}/{name}",
            description=UPLOAD_DESCRIPTION,
        )
        for name in expected_files
    )
    return PlanOutput(resources=plan.resources, outputs=outputs)


def _storage_identifier(plan: ProvisioningPlan, storage_id: Optional[str]) -> str:
    if storage_id is None:
        storage = [r.id for r in plan.resources if r.kind is ResourceKind.STORAGE]
        if len(storage) != 1:
            raise SchemaError(
                f"Expected exactly one storage resource, found {len(storage)}; "
                "pass storage_id explicitly"
            )
        storage_id = storage[0]
    resource = plan.get(storage_id)
    if resource.kind is not ResourceKind.STORAGE:
        raise SchemaError(f"is a {resource.kind.value}, not a storage resource", storage_id)
    bucket = plan.identifiers.get(storage_id, {}).get(Attribute.ID)
    if not bucket:
        raise IncompleteConfigurationError([f"{storage_id}.Id"], descriptor_id=storage_id)
    return bucket
