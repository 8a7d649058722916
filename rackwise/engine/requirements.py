"""Immutable requirements accumulator.

Checkers fold existing components into a RequirementsAccumulator and then
apply it once against the candidate. Every update returns a new instance.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Iterable, Optional, Tuple, TypeVar

T = TypeVar("T")


def _unique(values: Iterable[T]) -> Tuple[T, ...]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True)
class RequirementsAccumulator:
    # Socket demanded by the motherboard (CPU checks) or by a CPU (board checks)
    required_socket: Optional[str] = None
    # Sockets of other CPUs already installed
    cpu_sockets: Tuple[str, ...] = ()
    cpu_count: int = 0

    # Memory types the installed board supports (strict) and the CPUs support (directional)
    supported_memory_types: Tuple[str, ...] = ()
    cpu_memory_types: Tuple[str, ...] = ()
    # Memory types installed RAM needs
    required_memory_types: Tuple[str, ...] = ()
    # Speed ceilings from CPU / board
    max_memory_speeds: Tuple[int, ...] = ()
    # Fastest installed RAM
    min_memory_speed: int = 0
    memory_form_factors: Tuple[str, ...] = ()
    module_types: Tuple[str, ...] = ()
    # Module types the board accepts; None when it does not say
    supported_module_types: Optional[Tuple[str, ...]] = None

    sources: Tuple[str, ...] = ()
    details: Tuple[str, ...] = ()

    def with_(self, **changes: Any) -> "RequirementsAccumulator":
        return replace(self, **changes)

    def add(self, **extra: Any) -> "RequirementsAccumulator":
        """Append to tuple fields, e.g. ``add(sources=("CPU: DDR5",))``."""
        changes = {}
        for name, values in extra.items():
            changes[name] = _unique(getattr(self, name) + tuple(values))
        return replace(self, **changes)

    def merge(self, other: "RequirementsAccumulator") -> "RequirementsAccumulator":
        changes = {}
        for f in fields(self):
            mine, theirs = getattr(self, f.name), getattr(other, f.name)
            if isinstance(mine, tuple):
                changes[f.name] = _unique(mine + theirs)
            elif f.name == "cpu_count":
                changes[f.name] = mine + theirs
            elif f.name == "min_memory_speed":
                changes[f.name] = max(mine, theirs)
            else:
                changes[f.name] = mine if mine is not None else theirs
        return replace(self, **changes)

    @property
    def speed_ceiling(self) -> Optional[int]:
        return min(self.max_memory_speeds) if self.max_memory_speeds else None


def fold(
    items: Iterable[T],
    contribute: Callable[[RequirementsAccumulator, T], RequirementsAccumulator],
    initial: Optional[RequirementsAccumulator] = None,
) -> RequirementsAccumulator:
    """Reduce existing components into one accumulator."""
    acc = initial or RequirementsAccumulator()
    for item in items:
        acc = contribute(acc, item)
    return acc
