"""Riser cascade and slot integrity.

Riser-provided slots are namespaced ``riser_{riser_uuid}_pcie_{size}_slot_{n}``,
so every card depending on a riser can be found from its slot ID alone.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from rackwise.engine.context import ValidationContext
from rackwise.engine.extractors import compatible_slot_sizes
from rackwise.engine.lookup import ComponentSpecLookup
from rackwise.engine.trackers import (
    PCIE_SLOTS,
    RISER_SLOTS,
    card_slot_size,
    is_riser,
    riser_prefix,
    riser_size,
)
from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import PCIeCardSpec

logger = logging.getLogger(__name__)

_RISER_SLOT_RE = re.compile(r"^riser_([A-Za-z0-9-]+)_pcie_")

_SLOT_CONSUMERS = (ComponentType.PCIE_CARD, ComponentType.HBA_CARD, ComponentType.NIC)


@dataclass
class RiserRemovalCheck:
    can_remove: bool
    dependent_components: List[Dict[str, Any]] = field(default_factory=list)
    message: str = ""
    cascade_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CascadePlan:
    riser_uuid: str
    dependent_cards: List[Dict[str, Any]] = field(default_factory=list)
    warning: Optional[str] = None

    @property
    def total_affected(self) -> int:
        return len(self.dependent_cards)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "riser_uuid": self.riser_uuid,
            "dependent_cards": list(self.dependent_cards),
            "total_affected": self.total_affected,
            "warning": self.warning,
        }


@dataclass
class IntegrityReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    riser_count: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "riser_count": self.riser_count,
        }


# ──────────────────────────────────────────────
# Dependents
# ──────────────────────────────────────────────


def _slot_consumers(ctx: ValidationContext) -> List[Component]:
    return [c for t in _SLOT_CONSUMERS for c in ctx.configuration.components_of(t)]


def cards_on_riser(ctx: ValidationContext, riser_uuid: str) -> List[Component]:
    """Cards placed in, or explicitly claiming, a slot provided by the riser."""
    prefix = riser_prefix(riser_uuid)
    placement = PCIE_SLOTS.placement(ctx)
    placed = set()
    if placement is not None:
        placed = {uuid for slot_id, uuid in placement.assignments.items() if slot_id.startswith(prefix)}

    dependents = []
    for component in _slot_consumers(ctx):
        claims = (component.slot_position or "").startswith(prefix)
        if component.uuid in placed or claims:
            dependents.append(component)
    return sorted(dependents, key=lambda c: c.uuid)


def _describe(ctx: ValidationContext, component: Component) -> Dict[str, Any]:
    spec = ctx.spec(component)
    subtype = getattr(spec, "component_subtype", None)
    return {
        "uuid": component.uuid,
        "model": spec.model if spec is not None and spec.model else "Unknown",
        "subtype": subtype or "PCIe Card",
        "slot_position": component.slot_position,
    }


def validate_riser_removal(
    configuration: Configuration, lookup: ComponentSpecLookup, riser_uuid: str
) -> RiserRemovalCheck:
    ctx = ValidationContext(configuration, lookup)
    dependents = cards_on_riser(ctx, riser_uuid)
    if not dependents:
        return RiserRemovalCheck(
            can_remove=True,
            message="Riser can be safely removed (no dependent components)",
        )
    logger.info("Riser %s has %d dependent card(s)", riser_uuid, len(dependents))
    return RiserRemovalCheck(
        can_remove=False,
        dependent_components=[_describe(ctx, c) for c in dependents],
        message=(
            f"Riser has {len(dependents)} dependent PCIe card(s). "
            "Remove those first or use cascade removal."
        ),
        cascade_required=True,
    )


def cascade_removal_plan(
    configuration: Configuration, lookup: ComponentSpecLookup, riser_uuid: str
) -> CascadePlan:
    ctx = ValidationContext(configuration, lookup)
    plan = CascadePlan(riser_uuid=riser_uuid)
    for component in cards_on_riser(ctx, riser_uuid):
        card = _describe(ctx, component)
        card.pop("slot_position")
        card["reason"] = "Installed in riser-provided PCIe slot"
        plan.dependent_cards.append(card)
    if plan.total_affected:
        plan.warning = (
            f"Removing this riser will cascade-remove {plan.total_affected} dependent PCIe card(s)"
        )
    return plan


# ──────────────────────────────────────────────
# Integrity
# ──────────────────────────────────────────────


def validate_riser_slot_integrity(
    configuration: Configuration, lookup: ComponentSpecLookup
) -> IntegrityReport:
    ctx = ValidationContext(configuration, lookup)
    report = IntegrityReport()
    risers = [(c, s) for c, s in ctx.specs_of(ComponentType.PCIE_CARD) if is_riser(s)]
    riser_uuids = {c.uuid for c, _ in risers}
    report.riser_count = len(risers)

    claims: Dict[str, int] = {}
    for component in _slot_consumers(ctx):
        position = component.slot_position or ""
        if not position.startswith("riser_") or component.uuid in riser_uuids:
            continue
        match = _RISER_SLOT_RE.match(position)
        if match is None:
            report.errors.append(
                f"PCIe card {component.uuid} has invalid riser slot format: {position}"
            )
            continue
        referenced = match.group(1)
        if referenced not in riser_uuids:
            report.errors.append(
                f"PCIe card {component.uuid} references non-existent riser: {referenced}"
            )
        else:
            claims[referenced] = claims.get(referenced, 0) + 1

    for component, spec in sorted(risers, key=lambda cs: cs[0].uuid):
        provided = (spec.pcie_slots or 0) if isinstance(spec, PCIeCardSpec) else 0
        if provided <= 0:
            report.warnings.append(
                f"Riser {component.uuid} specifies 0 PCIe slots - may not function properly"
            )
        occupants = claims.get(component.uuid, 0)
        if occupants > provided:
            report.errors.append(
                f"Riser {component.uuid} has {occupants} cards but only provides {provided} slots"
            )

    if report.errors:
        logger.warning("Riser integrity errors: %s", "; ".join(report.errors))
    return report


def validate_slot_assignments(
    configuration: Configuration, lookup: ComponentSpecLookup
) -> IntegrityReport:
    """Explicit ``slot_position`` values against the slots that actually exist."""
    ctx = ValidationContext(configuration, lookup)
    report = IntegrityReport()
    if ctx.configuration.motherboard() is None:
        return report
    pcie = PCIE_SLOTS.slots(ctx) or []
    riser = RISER_SLOTS.slots(ctx) or []
    report.riser_count = len(RISER_SLOTS.demands(ctx))

    claimed: Dict[str, str] = {}
    for component in _slot_consumers(ctx):
        position = component.slot_position
        if not position:
            continue
        if position in claimed and claimed[position] != component.uuid:
            report.errors.append(
                f"Slot {position} claimed by both {claimed[position]} and {component.uuid}"
            )
            continue
        claimed[position] = component.uuid

        spec = ctx.spec(component)
        slots = riser if is_riser(spec) else pcie
        sizes = {s.slot_id: s.size for s in slots}
        if position not in sizes:
            report.errors.append(f"{component.uuid} claims unknown slot {position}")
            continue
        needed = riser_size(spec) if is_riser(spec) else card_slot_size(component.component_type, spec)
        if sizes[position] not in compatible_slot_sizes(needed):
            report.errors.append(
                f"{component.uuid} requires {needed} but {position} is {sizes[position]}"
            )
    return report
