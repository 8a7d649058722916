"""Specification lookup: resolves (component_type, uuid) to a typed spec.

Lookups return a ``LookupResult`` instead of raising, so callers branch on
NOT_FOUND vs MALFORMED explicitly. ``require()`` converts to exceptions for
layers that prefer them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple, Union

from pydantic import ValidationError

from rackwise.engine.errors import MalformedSpecification, SpecificationNotFound
from rackwise.models.components import ComponentType
from rackwise.models.specs import CatalogSpec, parse_specification

logger = logging.getLogger(__name__)


class SpecLookupError(str, Enum):
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a spec lookup: a spec, or the reason there is none."""

    spec: Optional[CatalogSpec] = None
    error: Optional[SpecLookupError] = None
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.spec is not None

    @classmethod
    def ok(cls, spec: CatalogSpec) -> "LookupResult":
        return cls(spec=spec)

    @classmethod
    def not_found(cls, detail: str = "") -> "LookupResult":
        return cls(error=SpecLookupError.NOT_FOUND, detail=detail)

    @classmethod
    def malformed(cls, detail: str) -> "LookupResult":
        return cls(error=SpecLookupError.MALFORMED, detail=detail)

    def require(self, component_type: ComponentType, uuid: str) -> CatalogSpec:
        if self.spec is not None:
            return self.spec
        if self.error == SpecLookupError.MALFORMED:
            raise MalformedSpecification(component_type.value, uuid, self.detail)
        raise SpecificationNotFound(component_type.value, uuid)


class ComponentSpecLookup(Protocol):
    """Catalog access the engine consumes but never implements."""

    def find(self, component_type: ComponentType, uuid: str) -> LookupResult:
        ...

    def has_record(self, component_type: ComponentType, uuid: str) -> bool:
        ...


# ──────────────────────────────────────────────
# In-memory implementation
# ──────────────────────────────────────────────


_Key = Tuple[ComponentType, str]


class InMemorySpecLookup:
    """Dict-backed lookup over raw catalog records.

    Records are validated into their typed model on first ``find`` and the
    outcome is kept, so a malformed record is reported the same way every
    time. ``record=False`` registers a spec without an inventory record,
    which the chassis checker treats as incomplete.
    """

    def __init__(self) -> None:
        self._raw: Dict[_Key, Dict[str, Any]] = {}
        self._parsed: Dict[_Key, LookupResult] = {}
        self._records: set = set()

    @classmethod
    def from_catalog(cls, catalog: Dict[str, Any]) -> "InMemorySpecLookup":
        """Build from ``{component_type: [record, ...]}``."""
        lookup = cls()
        for type_name, records in catalog.items():
            try:
                component_type = ComponentType(type_name)
            except ValueError:
                logger.warning("Skipping unknown component type in catalog: %s", type_name)
                continue
            for raw in records or []:
                uuid = raw.get("uuid") or raw.get("UUID")
                if not uuid:
                    logger.warning("Skipping %s record without uuid", type_name)
                    continue
                lookup.add(component_type, uuid, raw)
        return lookup

    @classmethod
    def load_json_file(cls, path: Union[str, Path]) -> "InMemorySpecLookup":
        with open(path, "r", encoding="utf-8") as fh:
            catalog = json.load(fh)
        lookup = cls.from_catalog(catalog)
        logger.info("Loaded %d catalog records from %s", len(lookup), path)
        return lookup

    def add(
        self,
        component_type: ComponentType,
        uuid: str,
        raw: Optional[Dict[str, Any]],
        record: bool = True,
    ) -> None:
        key = (component_type, uuid)
        self._parsed.pop(key, None)
        if raw is None:
            self._raw.pop(key, None)
        else:
            self._raw[key] = dict(raw)
        if record:
            self._records.add(key)

    def remove(self, component_type: ComponentType, uuid: str) -> None:
        key = (component_type, uuid)
        self._raw.pop(key, None)
        self._parsed.pop(key, None)
        self._records.discard(key)

    def has_record(self, component_type: ComponentType, uuid: str) -> bool:
        return (component_type, uuid) in self._records

    def find(self, component_type: ComponentType, uuid: str) -> LookupResult:
        key = (component_type, uuid)
        cached = self._parsed.get(key)
        if cached is not None:
            return cached

        raw = self._raw.get(key)
        if raw is None:
            result = LookupResult.not_found(
                f"No {component_type.value} specification for {uuid}"
            )
        else:
            try:
                result = LookupResult.ok(parse_specification(component_type, raw))
            except ValidationError as exc:
                logger.warning(
                    "Malformed %s specification %s: %d validation errors",
                    component_type.value,
                    uuid,
                    exc.error_count(),
                )
                result = LookupResult.malformed(str(exc))
        self._parsed[key] = result
        return result

    def __len__(self) -> int:
        return len(self._raw)
