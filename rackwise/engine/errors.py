"""Exception types raised by the Rackwise engine."""

from __future__ import annotations


class RackwiseError(Exception):
    """Base class for engine errors."""


class SpecificationNotFound(RackwiseError):
    """A component has no resolvable specification record."""

    def __init__(self, component_type: str, uuid: str) -> None:
        self.component_type = component_type
        self.uuid = uuid
        super().__init__(f"No {component_type} specification found for {uuid}")


class MalformedSpecification(RackwiseError):
    """A specification record exists but does not validate."""

    def __init__(self, component_type: str, uuid: str, detail: str = "") -> None:
        self.component_type = component_type
        self.uuid = uuid
        self.detail = detail
        super().__init__(
            f"Malformed {component_type} specification for {uuid}: {detail}"
        )


class InternalComputationError(RackwiseError):
    """Unexpected failure inside a checker (bad data, logic fault)."""
