"""
Planning errors

Every error raised while declaring, scoping or resolving a knowledge base
plan derives from PlanningError. None of them are retryable: the declaration
has to be fixed and the plan rebuilt.
"""

from typing import Iterable, Optional, Sequence


class PlanningError(Exception):
    """Base class for all resource planning errors."""


class SchemaError(PlanningError):
    """Unknown resource kind or malformed descriptor configuration."""

    def __init__(self, message: str, descriptor_id: Optional[str] = None) -> None:
        self.descriptor_id = descriptor_id
        if descriptor_id:
            message = f"{descriptor_id}: {message}"
        super().__init__(message)


class ConflictError(PlanningError):
    """A descriptor id was declared twice in the same plan."""

    def __init__(self, descriptor_id: str) -> None:
        self.descriptor_id = descriptor_id
        super().__init__(f"Descriptor '{descriptor_id}' is already declared")


class UnresolvedReferenceError(PlanningError):
    """A reference points at a descriptor that is not declared."""

    def __init__(self, source_id: str, target_id: str) -> None:
        self.source_id = source_id
        self.target_id = target_id
        super().__init__(
            f"Descriptor '{source_id}' references undeclared descriptor '{target_id}'"
        )


class CyclicDependencyError(PlanningError):
    """The references between descriptors form a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join(list(self.cycle) + [self.cycle[0]])
        super().__init__(f"Dependency cycle detected: {path}")


class IncompleteConfigurationError(PlanningError):
    """A required external parameter or grant target is empty."""

    def __init__(
        self,
        missing: Iterable[str],
        descriptor_id: Optional[str] = None,
    ) -> None:
        self.missing = tuple(missing)
        self.descriptor_id = descriptor_id
        names = ", ".join(self.missing)
        if descriptor_id:
            message = f"{descriptor_id}: required value is empty: {names}"
        else:
            message = f"Missing required parameters: {names}"
        super().__init__(message)
