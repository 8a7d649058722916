"""Resource trackers: total / used / available per finite pool.

Every tracker recomputes from the configuration snapshot held by the
ValidationContext; nothing is stored between calls. Slot placement is
deterministic and independent of the order components were added:

1. explicit ``slot_position`` values naming a free, large-enough slot are honoured;
2. everything else is placed largest-requirement-first, ties broken by uuid;
3. each demand takes the smallest sufficient free slot, motherboard slots
   before riser-provided slots at equal size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from rackwise.engine.context import ValidationContext
from rackwise.engine.extractors import (
    SLOT_SIZES,
    compatible_slot_sizes,
    extract_protocol,
    form_factor_size,
    is_m2,
    is_u2,
    normalize_bay_type,
    size_lanes,
    slot_size,
)
from rackwise.engine.lookup import ComponentSpecLookup
from rackwise.engine.results import PoolCounts, ResourceKind, ResourceUsage
from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import (
    HBASpec,
    MotherboardSpec,
    NICSpec,
    PCIeCardSpec,
    StorageSpec,
)

logger = logging.getLogger(__name__)

SOURCE_MOTHERBOARD = "motherboard"
SOURCE_RISER = "riser"
SOURCE_EXPANSION = "expansion_card"

# Slot size assumed when a card's interface names no lane width
DEFAULT_CARD_SIZE: Dict[ComponentType, str] = {
    ComponentType.PCIE_CARD: "x16",
    ComponentType.HBA_CARD: "x8",
    ComponentType.NIC: "x8",
}
UNKNOWN_SPEC_SIZE = "x1"
DEFAULT_RISER_SIZE = "x16"


# ──────────────────────────────────────────────
# Slot placement
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class Slot:
    slot_id: str
    size: str
    source: str
    provider: Optional[str] = None


@dataclass(frozen=True)
class SlotDemand:
    uuid: str
    size: str
    slot_position: Optional[str] = None


@dataclass
class Placement:
    slots: List[Slot]
    assignments: Dict[str, str] = field(default_factory=dict)
    unplaced: List[SlotDemand] = field(default_factory=list)

    def free_slots(self) -> List[Slot]:
        return [s for s in self.slots if s.slot_id not in self.assignments]

    def slot(self, slot_id: str) -> Optional[Slot]:
        for s in self.slots:
            if s.slot_id == slot_id:
                return s
        return None

    def slot_of(self, uuid: str) -> Optional[str]:
        for slot_id, occupant in self.assignments.items():
            if occupant == uuid:
                return slot_id
        return None


def _slot_order(slots: List[Slot]) -> Dict[str, int]:
    return {s.slot_id: i for i, s in enumerate(slots)}


def pick_slot(free: List[Slot], size: str, order: Optional[Dict[str, int]] = None) -> Optional[Slot]:
    """Smallest sufficient slot; motherboard before riser at equal size."""
    fits = compatible_slot_sizes(size)
    candidates = [s for s in free if s.size in fits]
    if not candidates:
        return None
    order = order or _slot_order(free)
    return min(
        candidates,
        key=lambda s: (
            size_lanes(s.size),
            0 if s.source == SOURCE_MOTHERBOARD else 1,
            order.get(s.slot_id, 0),
        ),
    )


def place(slots: List[Slot], demands: List[SlotDemand]) -> Placement:
    placement = Placement(slots=list(slots))
    order = _slot_order(slots)
    pending: List[SlotDemand] = []

    for demand in sorted(demands, key=lambda d: (d.uuid, d.slot_position or "")):
        slot = placement.slot(demand.slot_position) if demand.slot_position else None
        if (
            slot is not None
            and slot.slot_id not in placement.assignments
            and slot.size in compatible_slot_sizes(demand.size)
        ):
            placement.assignments[slot.slot_id] = demand.uuid
        else:
            pending.append(demand)

    pending.sort(key=lambda d: (-size_lanes(d.size), d.uuid))
    for demand in pending:
        slot = pick_slot(placement.free_slots(), demand.size, order)
        if slot is None:
            placement.unplaced.append(demand)
        else:
            placement.assignments[slot.slot_id] = demand.uuid
    return placement


def _slot_usage(kind: ResourceKind, placement: Placement) -> ResourceUsage:
    usage = ResourceUsage(
        kind=kind,
        total=len(placement.slots),
        used=len(placement.assignments) + len(placement.unplaced),
        assignments=dict(placement.assignments),
    )
    for size in SLOT_SIZES:
        sized = [s for s in placement.slots if s.size == size]
        if sized:
            usage.by_size[size] = PoolCounts(
                total=len(sized),
                used=sum(1 for s in sized if s.slot_id in placement.assignments),
            )
    for slot in placement.slots:
        counts = usage.by_source.setdefault(slot.source, PoolCounts())
        counts.total += 1
        if slot.slot_id in placement.assignments:
            counts.used += 1
    if placement.unplaced:
        usage.reason = "%d component(s) could not be placed" % len(placement.unplaced)
    return usage


def _sized_slot_ids(groups: List[Tuple[str, int]], template: str, source: str) -> List[Slot]:
    """Expand (size, count) groups into numbered slots, numbering per size."""
    slots: List[Slot] = []
    seen: Dict[str, int] = {}
    for size, count in groups:
        for _ in range(max(0, count)):
            seen[size] = seen.get(size, 0) + 1
            slots.append(Slot(template.format(size=size, n=seen[size]), size, source))
    return slots


def riser_slot_id(riser_uuid: str, size: str, n: int) -> str:
    return f"riser_{riser_uuid}_pcie_{size}_slot_{n}"


def riser_prefix(riser_uuid: str) -> str:
    return f"riser_{riser_uuid}_pcie_"


# ──────────────────────────────────────────────
# Card classification
# ──────────────────────────────────────────────


def is_riser(spec: Optional[object]) -> bool:
    return isinstance(spec, PCIeCardSpec) and spec.is_riser


def is_pcie_nic(component: Component, spec: Optional[object]) -> bool:
    """Component-sourced NIC that sits in a PCIe slot."""
    if component.is_onboard:
        return False
    if not isinstance(spec, NICSpec):
        return True
    interface = (spec.interface or "").lower()
    return any(token in interface for token in ("pcie", "pci express", "pci-e"))


def card_slot_size(component_type: ComponentType, spec: Optional[object]) -> str:
    if spec is None:
        return UNKNOWN_SPEC_SIZE
    interface = getattr(spec, "interface", None)
    return slot_size(interface) or DEFAULT_CARD_SIZE.get(component_type, "x16")


def riser_size(spec: PCIeCardSpec) -> str:
    return slot_size(spec.interface) or DEFAULT_RISER_SIZE


def riser_provided_size(spec: PCIeCardSpec) -> str:
    return slot_size(spec.slot_type) or DEFAULT_RISER_SIZE


# ──────────────────────────────────────────────
# PCIe / riser slot trackers
# ──────────────────────────────────────────────


class PCIeSlotTracker:
    """Motherboard PCIe slots plus slots provided by installed risers."""

    kind = ResourceKind.PCIE_SLOTS

    def motherboard_slots(self, mb: MotherboardSpec) -> List[Slot]:
        groups: List[Tuple[str, int]] = []
        for group in (mb.expansion_slots.pcie_slots if mb.expansion_slots else []):
            size = slot_size(group.type)
            if size:
                groups.append((size, group.count))
        return _sized_slot_ids(groups, "pcie_{size}_slot_{n}", SOURCE_MOTHERBOARD)

    def riser_slots(self, ctx: ValidationContext) -> List[Slot]:
        slots: List[Slot] = []
        risers = [
            (c, s) for c, s in ctx.specs_of(ComponentType.PCIE_CARD) if is_riser(s)
        ]
        for component, spec in sorted(risers, key=lambda cs: cs[0].uuid):
            size = riser_provided_size(spec)
            for n in range(1, (spec.pcie_slots or 0) + 1):
                slots.append(
                    Slot(riser_slot_id(component.uuid, size, n), size, SOURCE_RISER, component.uuid)
                )
        return slots

    def slots(self, ctx: ValidationContext) -> Optional[List[Slot]]:
        mb = ctx.motherboard_spec()
        if mb is None:
            return None
        return self.motherboard_slots(mb) + self.riser_slots(ctx)

    def demands(self, ctx: ValidationContext) -> List[SlotDemand]:
        demands: List[SlotDemand] = []
        for component_type in (ComponentType.PCIE_CARD, ComponentType.HBA_CARD, ComponentType.NIC):
            for component, spec in ctx.specs_of(component_type):
                if component_type == ComponentType.PCIE_CARD and is_riser(spec):
                    continue
                if component_type == ComponentType.NIC and not is_pcie_nic(component, spec):
                    continue
                size = card_slot_size(component_type, spec)
                for unit in range(component.quantity):
                    position = component.slot_position if unit == 0 else None
                    demands.append(SlotDemand(component.uuid, size, position))
        return demands

    def placement(self, ctx: ValidationContext) -> Optional[Placement]:
        def _build() -> Optional[Placement]:
            slots = self.slots(ctx)
            if slots is None:
                return None
            return place(slots, self.demands(ctx))

        return ctx.memo(("placement", self.kind), _build)

    def availability(self, ctx: ValidationContext) -> ResourceUsage:
        placement = self.placement(ctx)
        if placement is None:
            return ResourceUsage.not_available(self.kind, "No motherboard in configuration")
        return _slot_usage(self.kind, placement)

    def can_fit(self, ctx: ValidationContext, size: str) -> bool:
        return self.assign(ctx, size) is not None

    def assign(self, ctx: ValidationContext, size: str) -> Optional[str]:
        placement = self.placement(ctx)
        if placement is None:
            return None
        slot = pick_slot(placement.free_slots(), size, _slot_order(placement.slots))
        return slot.slot_id if slot else None


class RiserSlotTracker:
    """Motherboard riser slots consumed by riser cards."""

    kind = ResourceKind.RISER_SLOTS

    def slots(self, ctx: ValidationContext) -> Optional[List[Slot]]:
        mb = ctx.motherboard_spec()
        if mb is None:
            return None
        expansion = mb.expansion_slots
        groups: List[Tuple[str, int]] = []
        if expansion and expansion.riser_slots is not None:
            for group in expansion.riser_slots:
                groups.append((slot_size(group.type) or DEFAULT_RISER_SIZE, group.count))
        elif expansion and expansion.riser_compatibility:
            # Legacy boards only state a riser count; those slots are x16
            groups.append((DEFAULT_RISER_SIZE, expansion.riser_compatibility.max_risers))
        return _sized_slot_ids(groups, "riser_{size}_slot_{n}", SOURCE_MOTHERBOARD)

    def demands(self, ctx: ValidationContext) -> List[SlotDemand]:
        demands: List[SlotDemand] = []
        for component, spec in ctx.specs_of(ComponentType.PCIE_CARD):
            if not is_riser(spec):
                continue
            size = riser_size(spec)
            for unit in range(component.quantity):
                position = component.slot_position if unit == 0 else None
                demands.append(SlotDemand(component.uuid, size, position))
        return demands

    def placement(self, ctx: ValidationContext) -> Optional[Placement]:
        def _build() -> Optional[Placement]:
            slots = self.slots(ctx)
            if slots is None:
                return None
            return place(slots, self.demands(ctx))

        return ctx.memo(("placement", self.kind), _build)

    def availability(self, ctx: ValidationContext) -> ResourceUsage:
        placement = self.placement(ctx)
        if placement is None:
            return ResourceUsage.not_available(self.kind, "No motherboard in configuration")
        usage = _slot_usage(self.kind, placement)
        if not placement.slots:
            usage.reason = "Motherboard does not support riser cards"
        return usage

    def can_fit(self, ctx: ValidationContext, size: str) -> bool:
        return self.assign(ctx, size) is not None

    def assign(self, ctx: ValidationContext, size: str) -> Optional[str]:
        placement = self.placement(ctx)
        if placement is None:
            return None
        slot = pick_slot(placement.free_slots(), size, _slot_order(placement.slots))
        return slot.slot_id if slot else None


# ──────────────────────────────────────────────
# M.2 / U.2 slot trackers
# ──────────────────────────────────────────────


@dataclass
class NvmeSlotState:
    motherboard_total: int
    motherboard_used: int
    # card uuid -> PoolCounts
    cards: Dict[str, PoolCounts]
    assignments: Dict[str, str]
    unplaced: int = 0

    @property
    def expansion_total(self) -> int:
        return sum(c.total for c in self.cards.values())

    @property
    def expansion_used(self) -> int:
        return sum(c.used for c in self.cards.values())

    @property
    def motherboard_available(self) -> int:
        return max(0, self.motherboard_total - self.motherboard_used)

    @property
    def expansion_available(self) -> int:
        return sum(c.available for c in self.cards.values())


class NvmeSlotTracker:
    """Drive slots with two sources: motherboard-native and adapter cards."""

    def __init__(
        self,
        kind: ResourceKind,
        label: str,
        matches: Callable[[Optional[str]], bool],
        motherboard_count: Callable[[MotherboardSpec], int],
        card_count: Callable[[PCIeCardSpec], int],
    ) -> None:
        self.kind = kind
        self.label = label
        self._matches = matches
        self._motherboard_count = motherboard_count
        self._card_count = card_count

    def provider_present(self, ctx: ValidationContext) -> bool:
        return ctx.configuration.motherboard() is not None or bool(self.adapters(ctx))

    def adapters(self, ctx: ValidationContext) -> List[Tuple[Component, PCIeCardSpec]]:
        found = []
        for component, spec in ctx.specs_of(ComponentType.PCIE_CARD):
            if isinstance(spec, PCIeCardSpec) and not spec.is_riser and self._card_count(spec) > 0:
                found.append((component, spec))
        return sorted(found, key=lambda cs: cs[0].uuid)

    def drives(self, ctx: ValidationContext) -> List[Component]:
        drives = [
            c
            for c, spec in ctx.specs_of(ComponentType.STORAGE)
            if isinstance(spec, StorageSpec) and self._matches(spec.form_factor)
        ]
        return sorted(drives, key=lambda c: c.uuid)

    def drive_count(self, ctx: ValidationContext) -> int:
        return sum(c.quantity for c in self.drives(ctx))

    def state(self, ctx: ValidationContext) -> NvmeSlotState:
        def _build() -> NvmeSlotState:
            mb = ctx.motherboard_spec()
            mb_total = self._motherboard_count(mb) if mb else 0
            cards = {
                c.uuid: PoolCounts(total=self._card_count(s) * c.quantity)
                for c, s in self.adapters(ctx)
            }
            state = NvmeSlotState(mb_total, 0, cards, {})

            floating: List[Component] = []
            for drive in self.drives(ctx):
                pinned = next(
                    (uuid for uuid in cards if drive.slot_position and uuid in drive.slot_position),
                    None,
                )
                for unit in range(drive.quantity):
                    if pinned and cards[pinned].available > 0:
                        cards[pinned].used += 1
                        state.assignments[f"{pinned}_{self.label}_slot_{cards[pinned].used}"] = drive.uuid
                    else:
                        floating.append(drive)

            for drive in floating:
                if state.motherboard_used < state.motherboard_total:
                    state.motherboard_used += 1
                    state.assignments[f"{self.label}_slot_{state.motherboard_used}"] = drive.uuid
                    continue
                card_uuid = next((u for u, p in cards.items() if p.available > 0), None)
                if card_uuid is None:
                    state.unplaced += 1
                    continue
                cards[card_uuid].used += 1
                state.assignments[f"{card_uuid}_{self.label}_slot_{cards[card_uuid].used}"] = drive.uuid
            return state

        return ctx.memo(("nvme", self.kind), _build)

    def availability(self, ctx: ValidationContext) -> ResourceUsage:
        if not self.provider_present(ctx):
            return ResourceUsage.not_available(
                self.kind, "No motherboard or adapter card in configuration"
            )
        state = self.state(ctx)
        usage = ResourceUsage(
            kind=self.kind,
            total=state.motherboard_total + state.expansion_total,
            used=state.motherboard_used + state.expansion_used + state.unplaced,
            assignments=dict(state.assignments),
        )
        usage.by_source[SOURCE_MOTHERBOARD] = PoolCounts(state.motherboard_total, state.motherboard_used)
        usage.by_source[SOURCE_EXPANSION] = PoolCounts(state.expansion_total, state.expansion_used)
        if state.unplaced:
            usage.reason = "%d drive(s) without a free %s slot" % (state.unplaced, self.label)
        return usage

    def can_fit(self, ctx: ValidationContext, quantity: int = 1) -> bool:
        if not self.provider_present(ctx):
            return False
        state = self.state(ctx)
        return state.motherboard_available + state.expansion_available >= quantity

    def assign(self, ctx: ValidationContext, quantity: int = 1) -> Optional[str]:
        if not self.can_fit(ctx, quantity):
            return None
        state = self.state(ctx)
        if state.motherboard_available > 0:
            return f"{self.label}_slot_{state.motherboard_used + 1}"
        for uuid, counts in state.cards.items():
            if counts.available > 0:
                return f"{uuid}_{self.label}_slot_{counts.used + 1}"
        return None

    def motherboard_requirement(self, ctx: ValidationContext) -> int:
        """Drives that can only live on motherboard-native slots.

        Used when swapping motherboards: adapter capacity already covers
        the rest, whatever board is installed.
        """
        expansion = sum(self._card_count(s) * c.quantity for c, s in self.adapters(ctx))
        return max(0, self.drive_count(ctx) - expansion)


def _motherboard_m2_count(mb: MotherboardSpec) -> int:
    nvme = mb.storage.nvme if mb.storage else None
    return sum(group.count for group in nvme.m2_slots) if nvme else 0


def _motherboard_u2_count(mb: MotherboardSpec) -> int:
    nvme = mb.storage.nvme if mb.storage else None
    return nvme.u2_slots.count if nvme and nvme.u2_slots else 0


M2_TRACKER = NvmeSlotTracker(
    ResourceKind.M2_SLOTS, "m2", is_m2, _motherboard_m2_count, lambda s: s.m2_slots
)
U2_TRACKER = NvmeSlotTracker(
    ResourceKind.U2_SLOTS, "u2", is_u2, _motherboard_u2_count, lambda s: s.u2_slots
)


def motherboard_m2_requirement(ctx: ValidationContext) -> int:
    return M2_TRACKER.motherboard_requirement(ctx)


def motherboard_u2_requirement(ctx: ValidationContext) -> int:
    return U2_TRACKER.motherboard_requirement(ctx)


# ──────────────────────────────────────────────
# Port and bay counters
# ──────────────────────────────────────────────


def is_chassis_connected(spec: Optional[StorageSpec]) -> bool:
    """2.5"/3.5" style drives that attach through bays, not M.2/U.2 slots."""
    if spec is None:
        return False
    return not is_m2(spec.form_factor) and not is_u2(spec.form_factor)


def chassis_connected_count(ctx: ValidationContext, protocols: Tuple[str, ...] = ("sata", "sas")) -> int:
    count = 0
    for component, spec in ctx.specs_of(ComponentType.STORAGE):
        if not isinstance(spec, StorageSpec) or not is_chassis_connected(spec):
            continue
        if extract_protocol(spec.interface) in protocols:
            count += component.quantity
    return count


class SataPortTracker:
    """Motherboard SATA ports.

    SATA drives sitting behind a SATA-capable chassis backplane attach
    through the backplane and do not use motherboard ports.
    """

    kind = ResourceKind.SATA_PORTS

    def total(self, mb: MotherboardSpec) -> int:
        sata = mb.storage.sata if mb.storage else None
        return sata.ports if sata else 0

    def used(self, ctx: ValidationContext) -> int:
        chassis = ctx.chassis_spec()
        if chassis and chassis.backplane and chassis.backplane.supports_sata:
            return 0
        used = 0
        for component, spec in ctx.specs_of(ComponentType.STORAGE):
            if not isinstance(spec, StorageSpec) or is_m2(spec.form_factor):
                continue
            if extract_protocol(spec.interface) == "sata":
                used += component.quantity
        return used

    def availability(self, ctx: ValidationContext) -> ResourceUsage:
        mb = ctx.motherboard_spec()
        if mb is None:
            return ResourceUsage.not_available(self.kind, "No motherboard in configuration")
        return ResourceUsage(kind=self.kind, total=self.total(mb), used=self.used(ctx))

    def can_fit(self, ctx: ValidationContext, quantity: int = 1) -> bool:
        usage = self.availability(ctx)
        return usage.provider_present and usage.available >= quantity

    def assign(self, ctx: ValidationContext, quantity: int = 1) -> Optional[str]:
        if not self.can_fit(ctx, quantity):
            return None
        return "sata_port_%d" % (self.availability(ctx).used + 1)


class HBAPortTracker:
    """Internal HBA ports consumed by chassis-connected SATA/SAS drives."""

    kind = ResourceKind.HBA_PORTS

    def cards(self, ctx: ValidationContext) -> List[Tuple[Component, HBASpec]]:
        return [
            (c, s) for c, s in ctx.specs_of(ComponentType.HBA_CARD) if isinstance(s, HBASpec)
        ]

    def availability(self, ctx: ValidationContext) -> ResourceUsage:
        if not ctx.configuration.components_of(ComponentType.HBA_CARD):
            return ResourceUsage.not_available(self.kind, "No HBA card in configuration")
        usage = ResourceUsage(kind=self.kind, used=chassis_connected_count(ctx))
        for component, spec in self.cards(ctx):
            ports = spec.internal_ports * component.quantity
            usage.total += ports
            usage.by_source[component.uuid] = PoolCounts(total=ports)
        return usage

    def can_fit(self, ctx: ValidationContext, quantity: int = 1) -> bool:
        usage = self.availability(ctx)
        return usage.provider_present and usage.available >= quantity

    def assign(self, ctx: ValidationContext, quantity: int = 1) -> Optional[str]:
        if not self.can_fit(ctx, quantity):
            return None
        return "hba_port_%d" % (self.availability(ctx).used + 1)


class DriveBayTracker:
    """Chassis drive bays, split by bay type."""

    kind = ResourceKind.DRIVE_BAYS

    def availability(self, ctx: ValidationContext) -> ResourceUsage:
        if ctx.configuration.chassis() is None:
            return ResourceUsage.not_available(self.kind, "No chassis in configuration")
        chassis = ctx.chassis_spec()
        bays = chassis.drive_bays if chassis else None
        usage = ResourceUsage(kind=self.kind)
        if bays is None:
            usage.reason = "Chassis drive bay data unavailable"
            return usage

        for group in bays.bay_configuration:
            key = form_factor_size(group.bay_type) or normalize_bay_type(group.bay_type)
            usage.by_size.setdefault(key, PoolCounts()).total += group.count
        usage.total = bays.total_bays or sum(p.total for p in usage.by_size.values())

        storage = sorted(ctx.specs_of(ComponentType.STORAGE), key=lambda cs: cs[0].uuid)
        for component, spec in storage:
            if not isinstance(spec, StorageSpec) or not is_chassis_connected(spec):
                continue
            usage.used += component.quantity
            size = form_factor_size(spec.form_factor)
            target = usage.by_size.get(size) if size else None
            # 2.5" drives overflow into 3.5" bays (with a caddy)
            larger = usage.by_size.get("3.5-inch") if size == "2.5-inch" else None
            if larger is not None and (target is None or target.available < component.quantity):
                target = larger
            if target is not None:
                target.used += component.quantity
        return usage

    def effective_limit(self, ctx: ValidationContext) -> Optional[int]:
        """Usable bays: capped by HBA ports when SAS drives need an HBA."""
        usage = self.availability(ctx)
        if not usage.provider_present:
            return None
        chassis = ctx.chassis_spec()
        native_sas = bool(chassis and chassis.backplane and chassis.backplane.supports_sas)
        if native_sas or chassis_connected_count(ctx, ("sas",)) == 0:
            return usage.total
        hba = HBA_PORTS.availability(ctx)
        return min(usage.total, hba.total) if hba.provider_present else usage.total

    def can_fit(self, ctx: ValidationContext, quantity: int = 1) -> bool:
        usage = self.availability(ctx)
        return usage.provider_present and usage.available >= quantity

    def assign(self, ctx: ValidationContext, quantity: int = 1) -> Optional[str]:
        if not self.can_fit(ctx, quantity):
            return None
        return "bay_%d" % (self.availability(ctx).used + 1)


class NICPortTracker:
    """SFP cages on NICs; an SFP occupies the port named by its port_index."""

    kind = ResourceKind.NIC_PORTS

    def occupied(self, ctx: ValidationContext, nic_uuid: str) -> Dict[int, str]:
        ports: Dict[int, str] = {}
        for sfp in ctx.configuration.components_of(ComponentType.SFP):
            if sfp.parent_nic_uuid == nic_uuid and sfp.port_index is not None:
                ports.setdefault(sfp.port_index, sfp.uuid)
        return ports

    def ports_of(self, ctx: ValidationContext, nic: Component) -> int:
        spec = ctx.spec(nic)
        return (spec.ports or 0) if isinstance(spec, NICSpec) else 0

    def availability(self, ctx: ValidationContext) -> ResourceUsage:
        nics = ctx.configuration.components_of(ComponentType.NIC)
        if not nics:
            return ResourceUsage.not_available(self.kind, "No NIC in configuration")
        usage = ResourceUsage(kind=self.kind)
        for nic in sorted(nics, key=lambda c: c.uuid):
            total = self.ports_of(ctx, nic)
            occupied = self.occupied(ctx, nic.uuid)
            usage.total += total
            usage.used += len(occupied)
            usage.by_source[nic.uuid] = PoolCounts(total=total, used=len(occupied))
            for index, sfp_uuid in sorted(occupied.items()):
                usage.assignments[f"{nic.uuid}_port_{index}"] = sfp_uuid
        # SFPs whose parent NIC is missing still count as claims
        known = {n.uuid for n in nics}
        usage.used += sum(
            1
            for sfp in ctx.configuration.components_of(ComponentType.SFP)
            if sfp.parent_nic_uuid and sfp.parent_nic_uuid not in known
        )
        return usage

    def can_fit(self, ctx: ValidationContext, requirement: Tuple[str, int]) -> bool:
        nic_uuid, port_index = requirement
        nic = ctx.configuration.find(nic_uuid)
        if nic is None or nic.component_type != ComponentType.NIC:
            return False
        return 1 <= port_index <= self.ports_of(ctx, nic) and port_index not in self.occupied(ctx, nic_uuid)

    def assign(self, ctx: ValidationContext, nic_uuid: str) -> Optional[str]:
        nic = ctx.configuration.find(nic_uuid)
        if nic is None:
            return None
        occupied = self.occupied(ctx, nic_uuid)
        for index in range(1, self.ports_of(ctx, nic) + 1):
            if index not in occupied:
                return f"{nic_uuid}_port_{index}"
        return None


# ──────────────────────────────────────────────
# Registry / public entry
# ──────────────────────────────────────────────

PCIE_SLOTS = PCIeSlotTracker()
RISER_SLOTS = RiserSlotTracker()
SATA_PORTS = SataPortTracker()
HBA_PORTS = HBAPortTracker()
DRIVE_BAYS = DriveBayTracker()
NIC_PORTS = NICPortTracker()

TRACKERS = {
    ResourceKind.PCIE_SLOTS: PCIE_SLOTS,
    ResourceKind.RISER_SLOTS: RISER_SLOTS,
    ResourceKind.M2_SLOTS: M2_TRACKER,
    ResourceKind.U2_SLOTS: U2_TRACKER,
    ResourceKind.SATA_PORTS: SATA_PORTS,
    ResourceKind.HBA_PORTS: HBA_PORTS,
    ResourceKind.DRIVE_BAYS: DRIVE_BAYS,
    ResourceKind.NIC_PORTS: NIC_PORTS,
}


def get_resource_availability(
    kind: ResourceKind,
    configuration: Configuration,
    lookup: ComponentSpecLookup,
) -> ResourceUsage:
    """Total / used / available for one pool, computed from the snapshot."""
    ctx = ValidationContext(configuration, lookup)
    usage = TRACKERS[kind].availability(ctx)
    logger.debug(
        "Resource %s: %d/%d used (provider_present=%s)",
        kind.value,
        usage.used,
        usage.total,
        usage.provider_present,
    )
    return usage
