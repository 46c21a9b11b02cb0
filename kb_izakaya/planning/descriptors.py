"""
Resource descriptors

Typed, immutable declarations of the cloud resources that make up the
knowledge base: the data source bucket, the role the knowledge base assumes,
the vector knowledge base itself and the data source binding. Configuration
values are literals or References to an attribute of another descriptor that
does not exist yet.
"""

from collections import abc
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple, Union

from .errors import SchemaError


class ResourceKind(str, Enum):
    STORAGE = "Storage"
    ACCESS_ROLE = "AccessRole"
    VECTOR_KNOWLEDGE_BASE = "VectorKnowledgeBase"
    DATA_SOURCE = "DataSource"


class RemovalPolicy(str, Enum):
    DESTROY = "Destroy"
    RETAIN = "Retain"


class Attribute(str, Enum):
    ARN = "Arn"
    ID = "Id"
    ENDPOINT = "Endpoint"


class Usage(str, Enum):
    """What an access role needs to do with a resource."""

    SECRET = "secret"
    EMBEDDING_MODEL = "embedding_model"
    BUCKET = "bucket"


class Action(str, Enum):
    READ_SECRET = "read-secret"
    INVOKE_MODEL = "invoke-model"
    LIST = "list"
    READ_OBJECT = "read-object"


@dataclass(frozen=True)
class Reference:
    """The named attribute of another descriptor, not yet known."""

    target_id: str
    attribute: Attribute = Attribute.ARN

    def __str__(self) -> str:
        return f"${{{self.target_id}.{self.attribute.value}}}"


Lookup = Callable[[Reference], str]


@dataclass(frozen=True)
class PermissionGrant:
    """
    Actions a role may perform on a resource pattern.

    The resource is a Reference until the target resource is resolved;
    suffix is appended to the bound value (e.g. "/*" for bucket contents).
    """

    resource: Union[str, Reference]
    actions: Tuple[Action, ...]
    suffix: str = ""

    @property
    def resource_pattern(self) -> str:
        return f"{self.resource}{self.suffix}"

    @property
    def is_bound(self) -> bool:
        return not isinstance(self.resource, Reference)

    def bind(self, lookup: Lookup) -> "PermissionGrant":
        if not isinstance(self.resource, Reference):
            return self
        return PermissionGrant(lookup(self.resource) + self.suffix, self.actions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": self.resource_pattern,
            "actions": [action.value for action in self.actions],
        }


@dataclass(frozen=True)
class FieldSpec:
    types: Tuple[type, ...] = (str,)
    required: bool = True
    # Reference attributes the field accepts; empty means literals only.
    attributes: Tuple[Attribute, ...] = ()
    choices: Tuple[str, ...] = ()


_ARN_OR_LITERAL = FieldSpec(attributes=(Attribute.ARN,))

SCHEMAS: Dict[ResourceKind, Dict[str, FieldSpec]] = {
    ResourceKind.STORAGE: {
        "bucket_name": FieldSpec(),
    },
    ResourceKind.ACCESS_ROLE: {
        "role_name": FieldSpec(),
        "service_principal": FieldSpec(),
        "grants": FieldSpec(types=(abc.Mapping,)),
    },
    ResourceKind.VECTOR_KNOWLEDGE_BASE: {
        "name": FieldSpec(),
        "description": FieldSpec(required=False),
        "role_arn": _ARN_OR_LITERAL,
        "embedding_model_arn": _ARN_OR_LITERAL,
        "storage_backend": FieldSpec(choices=("PINECONE",)),
        "connection_string": FieldSpec(),
        "credentials_secret_arn": _ARN_OR_LITERAL,
        "field_mapping": FieldSpec(types=(abc.Mapping,), required=False),
    },
    ResourceKind.DATA_SOURCE: {
        "name": FieldSpec(),
        "knowledge_base_id": FieldSpec(attributes=(Attribute.ID,)),
        "bucket_arn": _ARN_OR_LITERAL,
    },
}

# Attributes each kind exposes once it exists.
PROVIDED_ATTRIBUTES: Dict[ResourceKind, Tuple[Attribute, ...]] = {
    ResourceKind.STORAGE: (Attribute.ARN, Attribute.ID, Attribute.ENDPOINT),
    ResourceKind.ACCESS_ROLE: (Attribute.ARN, Attribute.ID),
    ResourceKind.VECTOR_KNOWLEDGE_BASE: (Attribute.ARN, Attribute.ID),
    ResourceKind.DATA_SOURCE: (Attribute.ID,),
}

STORAGE_KINDS = frozenset({ResourceKind.STORAGE})


def coerce_kind(kind: Union[str, ResourceKind]) -> ResourceKind:
    try:
        return ResourceKind(kind)
    except ValueError:
        raise SchemaError(f"Unknown resource kind: {kind!r}") from None


def coerce_removal_policy(
    policy: Union[str, RemovalPolicy, None]
) -> Optional[RemovalPolicy]:
    if policy is None:
        return None
    try:
        return RemovalPolicy(policy)
    except ValueError:
        raise SchemaError(f"Unknown removal policy: {policy!r}") from None


def _check_value(
    descriptor_id: str, name: str, value: Any, spec: FieldSpec
) -> None:
    if isinstance(value, Reference):
        if value.attribute not in spec.attributes:
            raise SchemaError(
                f"field '{name}' does not accept a reference to {value.attribute.value}",
                descriptor_id,
            )
        return
    if not isinstance(value, spec.types):
        expected = " or ".join(t.__name__ for t in spec.types)
        raise SchemaError(
            f"field '{name}' expects {expected}, got {type(value).__name__}",
            descriptor_id,
        )
    if spec.choices and value not in spec.choices:
        raise SchemaError(
            f"field '{name}' must be one of {', '.join(spec.choices)}, got {value!r}",
            descriptor_id,
        )


def _check_grants(descriptor_id: str, grants: Mapping[str, Any]) -> None:
    for usage, target in grants.items():
        try:
            Usage(usage)
        except ValueError:
            raise SchemaError(f"unknown grant usage {usage!r}", descriptor_id) from None
        _check_value(descriptor_id, f"grants.{usage}", target, _ARN_OR_LITERAL)


def validate_config(
    descriptor_id: str, kind: ResourceKind, config: Mapping[str, Any]
) -> None:
    """Type-check a configuration mapping against the schema of its kind."""
    schema = SCHEMAS[kind]
    unknown = sorted(set(config) - set(schema))
    if unknown:
        raise SchemaError(
            f"unknown field(s) for {kind.value}: {', '.join(unknown)}", descriptor_id
        )
    for name, spec in schema.items():
        if name not in config:
            if spec.required:
                raise SchemaError(
                    f"missing required field '{name}' for {kind.value}", descriptor_id
                )
            continue
        _check_value(descriptor_id, name, config[name], spec)
    if kind is ResourceKind.ACCESS_ROLE:
        _check_grants(descriptor_id, config["grants"])


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested inside a configuration value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, PermissionGrant):
        if isinstance(value.resource, Reference):
            yield value.resource
    elif isinstance(value, abc.Mapping):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def bind_value(value: Any, lookup: Lookup) -> Any:
    """Replace every nested Reference with the literal returned by lookup."""
    if isinstance(value, Reference):
        return lookup(value)
    if isinstance(value, PermissionGrant):
        return value.bind(lookup)
    if isinstance(value, abc.Mapping):
        return {key: bind_value(item, lookup) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return tuple(bind_value(item, lookup) for item in value)
    return value


def _freeze(config: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(config))


@dataclass(frozen=True)
class ResourceDescriptor:
    """A declared, not yet resolved, resource."""

    id: str
    kind: ResourceKind
    config: Mapping[str, Any] = field(default_factory=dict)
    removal_policy: Optional[RemovalPolicy] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "config", _freeze(self.config))

    def references(self) -> Tuple[Reference, ...]:
        return tuple(iter_references(self.config))


@dataclass(frozen=True)
class ResolvedResource:
    """A descriptor whose references were replaced with literal identifiers."""

    id: str
    kind: ResourceKind
    config: Mapping[str, Any]
    removal_policy: Optional[RemovalPolicy] = None
    depends_on: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "config", _freeze(self.config))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "config": _jsonable(self.config),
            "removal_policy": self.removal_policy.value if self.removal_policy else None,
            "depends_on": list(self.depends_on),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, PermissionGrant):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, abc.Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
