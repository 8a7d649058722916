"""Per-call validation context.

A ValidationContext pairs one configuration snapshot with a spec lookup and
memoizes everything derived from them for the duration of a single check.
Nothing here outlives the call, so results always reflect the snapshot.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from rackwise.engine.lookup import ComponentSpecLookup, LookupResult
from rackwise.engine.onboard import onboard_nic_spec
from rackwise.engine.policy import SpecPolicy
from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import CatalogSpec, ChassisSpec, MotherboardSpec


class ValidationContext:
    def __init__(
        self,
        configuration: Configuration,
        lookup: ComponentSpecLookup,
        policy: Optional[SpecPolicy] = None,
    ) -> None:
        self.configuration = configuration
        self.lookup = lookup
        self.policy = policy or SpecPolicy()
        self._lookups: Dict[Tuple[ComponentType, str], LookupResult] = {}
        self._memo: Dict[Hashable, Any] = {}

    def derive(self, configuration: Configuration) -> "ValidationContext":
        """Context over another snapshot that shares the lookup cache."""
        ctx = ValidationContext(configuration, self.lookup, self.policy)
        ctx._lookups = self._lookups
        return ctx

    # ── Spec access ──

    def find(self, component_type: ComponentType, uuid: str) -> LookupResult:
        key = (component_type, uuid)
        if key not in self._lookups:
            self._lookups[key] = self.lookup.find(component_type, uuid)
        return self._lookups[key]

    def spec(self, component: Component) -> Optional[CatalogSpec]:
        spec = self.find(component.component_type, component.uuid).spec
        if spec is None and component.is_onboard:
            return self._onboard_spec(component)
        return spec

    def _onboard_spec(self, component: Component) -> Optional[CatalogSpec]:
        parent = component.parent_component_uuid
        if not parent:
            return None
        mb = self.find(ComponentType.MOTHERBOARD, parent).spec
        if not isinstance(mb, MotherboardSpec):
            return None
        return onboard_nic_spec(mb, component.uuid)

    def specs_of(self, component_type: ComponentType) -> List[Tuple[Component, Optional[CatalogSpec]]]:
        return [(c, self.spec(c)) for c in self.configuration.components_of(component_type)]

    def motherboard_spec(self) -> Optional[MotherboardSpec]:
        mb = self.configuration.motherboard()
        spec = self.spec(mb) if mb else None
        return spec if isinstance(spec, MotherboardSpec) else None

    def chassis_spec(self) -> Optional[ChassisSpec]:
        chassis = self.configuration.chassis()
        spec = self.spec(chassis) if chassis else None
        return spec if isinstance(spec, ChassisSpec) else None

    # ── Memoization ──

    def memo(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        if key not in self._memo:
            self._memo[key] = factory()
        return self._memo[key]
