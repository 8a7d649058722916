"""Missing-specification policy, configurable per component type.

Strict types reject a candidate whose spec cannot be resolved; every other
type warns and assumes compatibility.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from rackwise.models.components import ComponentType

logger = logging.getLogger(__name__)

STRICT_SPEC_TYPES = os.getenv("RACKWISE_STRICT_SPEC_TYPES", "chassis,hbacard")


def _parse_types(raw: str) -> FrozenSet[ComponentType]:
    types = set()
    for token in raw.split(","):
        token = token.strip().lower()
        if not token:
            continue
        try:
            types.add(ComponentType(token))
        except ValueError:
            logger.warning(
                "Ignoring unknown component type %r in RACKWISE_STRICT_SPEC_TYPES (expected one of: %s)",
                token,
                ", ".join(t.value for t in ComponentType),
            )
    return frozenset(types)


@dataclass(frozen=True)
class SpecPolicy:
    strict_types: FrozenSet[ComponentType] = field(
        default_factory=lambda: _parse_types(STRICT_SPEC_TYPES)
    )

    @classmethod
    def of(cls, strict_types: Iterable[ComponentType]) -> "SpecPolicy":
        return cls(strict_types=frozenset(strict_types))

    @classmethod
    def lenient(cls) -> "SpecPolicy":
        return cls(strict_types=frozenset())

    @classmethod
    def from_env(cls, raw: Optional[str] = None) -> "SpecPolicy":
        return cls(strict_types=_parse_types(raw if raw is not None else STRICT_SPEC_TYPES))

    def is_strict(self, component_type: ComponentType) -> bool:
        return component_type in self.strict_types
