"""Onboard NIC synthesis.

Motherboards with integrated NICs get one synthetic NIC component per
``networking.onboard_nics`` entry, so SFP placement and port accounting
treat onboard and add-in NICs the same way. Onboard NICs never consume a
PCIe slot.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Protocol

from rackwise.engine.lookup import ComponentSpecLookup
from rackwise.models.components import Component, ComponentType, SourceType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import MotherboardSpec, NICSpec, OnboardNIC

logger = logging.getLogger(__name__)

ONBOARD_INTERFACE = "Onboard"


def onboard_nic_uuid(motherboard_uuid: str, index: int) -> str:
    """Synthetic NIC uuid, e.g. ``onboard-3f2a9c1d-1`` (index is 1-based)."""
    return f"onboard-{motherboard_uuid[:8]}-{index}"


def _onboard_index(uuid: str) -> Optional[int]:
    m = re.match(r"^onboard-.+-(\d+)$", uuid)
    return int(m.group(1)) if m else None


def _nic_spec(entry: OnboardNIC, uuid: str) -> NICSpec:
    return NICSpec(
        uuid=uuid,
        model=f"Onboard {entry.controller or 'NIC'}",
        component_subtype="Onboard NIC",
        interface=ONBOARD_INTERFACE,
        ports=entry.ports,
        port_type=entry.connector,
        speeds=[entry.speed] if entry.speed else None,
    )


def onboard_nic_spec(motherboard: MotherboardSpec, uuid: str) -> Optional[NICSpec]:
    """Spec for a synthetic onboard NIC, derived from its motherboard."""
    index = _onboard_index(uuid)
    nics = motherboard.networking.onboard_nics if motherboard.networking else []
    if index is None or not 1 <= index <= len(nics):
        return None
    return _nic_spec(nics[index - 1], uuid)


class OnboardNICHook(Protocol):
    """Side-effect hook run when a motherboard joins or leaves a build."""

    def on_motherboard_added(
        self,
        configuration: Configuration,
        motherboard: Component,
        lookup: ComponentSpecLookup,
    ) -> List[Component]:
        ...

    def on_motherboard_removed(
        self, configuration: Configuration, motherboard_uuid: str
    ) -> List[str]:
        ...


class OnboardNICSynthesizer:
    """Default hook: materializes ``networking.onboard_nics`` as NIC components."""

    def on_motherboard_added(
        self,
        configuration: Configuration,
        motherboard: Component,
        lookup: ComponentSpecLookup,
    ) -> List[Component]:
        spec = lookup.find(ComponentType.MOTHERBOARD, motherboard.uuid).spec
        if not isinstance(spec, MotherboardSpec) or not spec.networking:
            return []

        existing = {c.uuid for c in configuration.components}
        created: List[Component] = []
        for index, entry in enumerate(spec.networking.onboard_nics, start=1):
            uuid = onboard_nic_uuid(motherboard.uuid, index)
            if uuid in existing:
                continue
            created.append(
                Component(
                    component_type=ComponentType.NIC,
                    uuid=uuid,
                    source_type=SourceType.ONBOARD,
                    parent_component_uuid=motherboard.uuid,
                )
            )
            # Register a spec when the lookup accepts writes
            add = getattr(lookup, "add", None)
            if callable(add):
                add(
                    ComponentType.NIC,
                    uuid,
                    _nic_spec(entry, uuid).model_dump(exclude_none=True),
                )

        logger.info(
            "Synthesized %d onboard NIC(s) for motherboard %s",
            len(created),
            motherboard.uuid,
        )
        return created

    def on_motherboard_removed(
        self, configuration: Configuration, motherboard_uuid: str
    ) -> List[str]:
        return [
            c.uuid
            for c in configuration.components_of(ComponentType.NIC)
            if c.is_onboard and c.parent_component_uuid == motherboard_uuid
        ]
