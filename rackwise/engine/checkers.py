"""Decentralized compatibility checkers, one per component type.

A checker validates a candidate against *every* relevant component in the
configuration, not against one designated base component. Requirements
from existing components are folded into a RequirementsAccumulator and
applied once, so the verdict does not depend on the order the components
were added in.

Each checker receives a ValidationContext over the configuration without
the candidate and returns a CompatibilityResult with a one-line summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type

from rackwise.engine.context import ValidationContext
from rackwise.engine.errors import InternalComputationError
from rackwise.engine.extractors import (
    analyze_memory_frequency,
    form_factor_size,
    max_speed_gbps,
    memory_generation_compatibility,
    normalize_memory_form_factor,
    normalize_memory_type,
    normalize_module_type,
    normalize_port_type,
    pcie_generation,
    size_lanes,
    sockets_match,
)
from rackwise.engine.lookup import SpecLookupError
from rackwise.engine.pair_rules import (
    caddy_size,
    chassis_bay_sizes,
    chassis_caddy,
    check_pair,
    compatible_sfp_types,
    is_sfp_port,
    motherboard_storage,
    motherboard_storage_interfaces,
    nic_sfp,
    storage_caddy,
    storage_interface_score,
)
from rackwise.engine.requirements import RequirementsAccumulator, fold
from rackwise.engine.results import CompatibilityResult, ResourceUsage
from rackwise.engine.storage_paths import (
    form_factor_lock,
    is_hba_protocol_compatible,
    resolve,
)
from rackwise.engine.trackers import (
    M2_TRACKER,
    NIC_PORTS,
    PCIE_SLOTS,
    RISER_SLOTS,
    U2_TRACKER,
    card_slot_size,
    is_chassis_connected,
    is_pcie_nic,
    is_riser,
    motherboard_m2_requirement,
    motherboard_u2_requirement,
    riser_size,
)
from rackwise.models.components import Component, ComponentType
from rackwise.models.specs import (
    CaddySpec,
    CatalogSpec,
    ChassisSpec,
    CPUSpec,
    HBASpec,
    MotherboardSpec,
    NICSpec,
    PCIeCardSpec,
    RAMSpec,
    SFPSpec,
    StorageSpec,
)

logger = logging.getLogger(__name__)

Checker = Callable[[Component, ValidationContext], CompatibilityResult]
_ComponentSpec = Tuple[Component, Optional[CatalogSpec]]


# ──────────────────────────────────────────────
# Shared helpers
# ──────────────────────────────────────────────


def _typed(candidate: Component, ctx: ValidationContext, model: Type[CatalogSpec]):
    spec = ctx.spec(candidate)
    if not isinstance(spec, model):
        raise InternalComputationError(
            f"{candidate.component_type.value} {candidate.uuid} resolved to "
            f"{type(spec).__name__}, expected {model.__name__}"
        )
    return spec


def _memory_types(values) -> List[str]:
    types: List[str] = []
    for value in values or []:
        normalized = normalize_memory_type(value)
        if normalized and normalized not in types:
            types.append(normalized)
    return types


def _socket_count(mb: MotherboardSpec) -> int:
    return (mb.socket.count if mb.socket and mb.socket.count else None) or 1


def _motherboard_generation(mb: MotherboardSpec) -> Optional[float]:
    if mb.pcie_generation:
        return mb.pcie_generation
    groups = mb.expansion_slots.pcie_slots if mb.expansion_slots else []
    return pcie_generation(groups[0].type) if groups else None


def _finish(result: CompatibilityResult, ok_summary: str) -> CompatibilityResult:
    if result.compatible:
        result.summary = ok_summary
    else:
        result.summary = result.issues[0]
    return result


# ──────────────────────────────────────────────
# Requirement contributions
# ──────────────────────────────────────────────


def _contribute_cpu(acc: RequirementsAccumulator, item: _ComponentSpec) -> RequirementsAccumulator:
    component, spec = item
    acc = acc.with_(cpu_count=acc.cpu_count + component.quantity)
    if not isinstance(spec, CPUSpec):
        return acc
    if spec.socket:
        acc = acc.add(cpu_sockets=(spec.socket,), sources=(f"CPU: {spec.socket} socket",))
    acc = acc.add(cpu_memory_types=_memory_types(spec.memory_types))
    if spec.max_memory_speed_mhz:
        acc = acc.add(max_memory_speeds=(spec.max_memory_speed_mhz,))
    return acc


def _contribute_ram(acc: RequirementsAccumulator, item: _ComponentSpec) -> RequirementsAccumulator:
    _, spec = item
    if not isinstance(spec, RAMSpec):
        return acc
    memory_type = normalize_memory_type(spec.memory_type)
    if memory_type:
        acc = acc.add(required_memory_types=(memory_type,), sources=(f"RAM: {memory_type}",))
    if spec.frequency_mhz:
        acc = acc.with_(min_memory_speed=max(acc.min_memory_speed, spec.frequency_mhz))
    form_factor = normalize_memory_form_factor(spec.form_factor)
    if form_factor:
        acc = acc.add(memory_form_factors=(form_factor,))
    module_type = normalize_module_type(spec.module_type)
    if module_type:
        acc = acc.add(module_types=(module_type,))
    return acc


def _contribute_motherboard(acc: RequirementsAccumulator, mb: Optional[MotherboardSpec]) -> RequirementsAccumulator:
    if mb is None:
        return acc
    socket = mb.socket.type if mb.socket else None
    if socket:
        acc = acc.with_(required_socket=socket).add(sources=(f"Motherboard: {socket} socket",))
    memory = mb.memory
    if memory is None:
        return acc
    acc = acc.add(supported_memory_types=_memory_types(memory.types))
    if memory.max_frequency_mhz:
        acc = acc.add(max_memory_speeds=(memory.max_frequency_mhz,))
    if memory.module_types is not None:
        acc = acc.with_(
            supported_module_types=tuple(
                t for t in (normalize_module_type(m) for m in memory.module_types) if t
            )
        )
    return acc


# ──────────────────────────────────────────────
# CPU
# ──────────────────────────────────────────────


def check_cpu(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    spec: CPUSpec = _typed(candidate, ctx, CPUSpec)
    result = CompatibilityResult()
    mb = ctx.motherboard_spec()

    acc = _contribute_motherboard(RequirementsAccumulator(), mb)
    acc = fold(ctx.specs_of(ComponentType.RAM), _contribute_ram, acc)
    acc = fold(ctx.specs_of(ComponentType.CPU), _contribute_cpu, acc)

    for existing in acc.cpu_sockets:
        if sockets_match(spec.socket, existing) is False:
            result.reject(
                f"CPU socket mismatch: new CPU ({spec.socket}) vs existing CPU ({existing})",
                code="socket_mismatch",
                recommendation=f"Choose a CPU with {existing} socket",
            )

    if acc.required_socket:
        if not spec.socket:
            result.warn(f"CPU socket unknown - motherboard requires {acc.required_socket}")
        elif sockets_match(spec.socket, acc.required_socket) is False:
            result.reject(
                f"CPU socket ({spec.socket}) does not match required socket ({acc.required_socket})",
                code="socket_mismatch",
                recommendation=f"Choose a CPU with {acc.required_socket} socket or replace the motherboard",
            )

    for ram_type in acc.required_memory_types:
        compatible, message = memory_generation_compatibility(spec.memory_types, ram_type)
        if not compatible:
            result.reject(message, code="memory_type_incompatible")
        elif message:
            result.warn(message)

    if spec.max_memory_speed_mhz and acc.min_memory_speed > spec.max_memory_speed_mhz:
        result.warn(
            f"CPU maximum memory speed ({spec.max_memory_speed_mhz} MHz) is lower than "
            f"installed RAM ({acc.min_memory_speed} MHz) - memory will run at "
            f"{spec.max_memory_speed_mhz} MHz"
        )

    if mb is not None:
        sockets = _socket_count(mb)
        if acc.cpu_count + candidate.quantity > sockets:
            result.reject(
                f"CPU count ({acc.cpu_count + candidate.quantity}) exceeds motherboard "
                f"socket capacity ({sockets})",
                code="socket_capacity_exceeded",
            )
        if result.compatible:
            pair = check_pair(ComponentType.CPU, spec, ComponentType.MOTHERBOARD, mb)
            for warning in pair.warnings:
                result.warn(warning)
            for recommendation in pair.recommendations:
                result.recommend(recommendation)

    socket = acc.required_socket or (acc.cpu_sockets[0] if acc.cpu_sockets else None)
    return _finish(
        result,
        f"Compatible with {socket} socket" if socket else "Compatible - no constraints found",
    )


# ──────────────────────────────────────────────
# Motherboard
# ──────────────────────────────────────────────


def check_motherboard(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    spec: MotherboardSpec = _typed(candidate, ctx, MotherboardSpec)
    result = CompatibilityResult()

    if ctx.configuration.motherboard() is not None:
        result.reject(
            "Server already has a motherboard - only one motherboard allowed per configuration",
            code="duplicate_motherboard",
            recommendation="Remove the existing motherboard first",
        )
        result.summary = "Motherboard already installed - only one motherboard allowed per server-config"
        return result

    acc = fold(ctx.specs_of(ComponentType.CPU), _contribute_cpu)
    acc = fold(ctx.specs_of(ComponentType.RAM), _contribute_ram, acc)
    board_socket = spec.socket.type if spec.socket else None
    memory = spec.memory

    sockets = _socket_count(spec)
    if acc.cpu_count > sockets:
        result.reject(
            f"CPU count ({acc.cpu_count}) exceeds motherboard socket capacity ({sockets})",
            code="socket_capacity_exceeded",
        )
    for cpu_socket in acc.cpu_sockets:
        if sockets_match(board_socket, cpu_socket) is False:
            result.reject(
                f"Motherboard socket ({board_socket}) does not match CPU socket ({cpu_socket})",
                code="socket_mismatch",
            )

    board_types = _memory_types(memory.types if memory else None)
    for ram_type in acc.required_memory_types:
        if board_types and ram_type not in board_types:
            result.reject(
                f"Motherboard does not support required memory type: {ram_type} "
                f"(supported: {', '.join(board_types)})",
                code="memory_type_unsupported",
            )

    if memory is not None:
        if memory.max_frequency_mhz and acc.min_memory_speed > memory.max_frequency_mhz:
            result.warn(
                f"Performance: RAM speed ({acc.min_memory_speed} MHz) exceeds motherboard "
                f"limit ({memory.max_frequency_mhz} MHz) - will run at reduced speed"
            )

        board_ff = normalize_memory_form_factor(memory.form_factor)
        for ram_ff in acc.memory_form_factors:
            if board_ff and ram_ff != board_ff:
                result.reject(
                    f"Motherboard memory form factor ({board_ff}) does not match installed RAM ({ram_ff})",
                    code="memory_form_factor_mismatch",
                )

        if acc.module_types:
            if memory.module_types is None:
                result.warn(
                    "Motherboard module type support not specified - assuming compatible with "
                    + ", ".join(acc.module_types)
                )
            else:
                supported = [t for t in (normalize_module_type(m) for m in memory.module_types) if t]
                missing = [t for t in acc.module_types if t not in supported]
                if missing:
                    result.reject(
                        "Motherboard memory incompatible with existing RAM",
                        code="module_type_unsupported",
                    )
                    result.details.append(
                        f"Installed RAM module type(s) {', '.join(missing)} not in motherboard "
                        f"supported types ({', '.join(supported) or 'none'})"
                    )

        ram_modules = ctx.configuration.count_of(ComponentType.RAM)
        if memory.slots is not None and ram_modules > memory.slots:
            result.reject(
                f"Configuration has {ram_modules} memory module(s) but motherboard only has "
                f"{memory.slots} memory slots",
                code="memory_slots_exhausted",
            )

        if memory.ecc_support is False and any(
            isinstance(s, RAMSpec) and s.is_ecc for _, s in ctx.specs_of(ComponentType.RAM)
        ):
            result.warn("ECC memory used with non-ECC motherboard - ECC features will be disabled")

    # Capacity checks run against the configuration as it would be
    derived = ctx.derive(ctx.configuration.with_component(candidate))
    for label, tracker, needed, code in (
        ("M.2", M2_TRACKER, motherboard_m2_requirement(ctx), "m2_slots_exhausted"),
        ("U.2", U2_TRACKER, motherboard_u2_requirement(ctx), "u2_slots_exhausted"),
    ):
        provided = tracker.state(derived).motherboard_total
        if needed > provided:
            result.reject(
                f"Motherboard provides {provided} {label} slot(s) but {needed} {label} drive(s) "
                f"need motherboard slots",
                code=code,
                recommendation=f"Choose a motherboard with at least {needed} {label} slots or add an adapter card",
            )

    risers = RISER_SLOTS.placement(derived)
    if risers is not None and risers.unplaced:
        result.reject(
            f"Motherboard cannot host {len(risers.unplaced)} installed riser card(s) "
            f"({len(risers.slots)} riser slots)",
            code="riser_slots_exhausted",
        )
    cards = PCIE_SLOTS.placement(derived)
    if cards is not None and cards.unplaced:
        result.reject(
            f"Motherboard cannot host {len(cards.unplaced)} installed PCIe card(s) "
            f"({len(cards.slots)} slots including riser-provided)",
            code="pcie_slots_exhausted",
            recommendation="Choose a motherboard with more PCIe or riser slots",
        )

    if result.compatible:
        for component, cpu in ctx.specs_of(ComponentType.CPU):
            if isinstance(cpu, CPUSpec):
                pair = check_pair(ComponentType.CPU, cpu, ComponentType.MOTHERBOARD, spec)
                for warning in pair.warnings:
                    result.warn(warning)

    if board_socket and board_types:
        summary = f"Compatible with {board_socket} socket and {'/'.join(board_types)} memory"
    elif board_socket:
        summary = f"Compatible with {board_socket} socket"
    else:
        summary = "Compatible - no constraints found"
    return _finish(result, summary)


# ──────────────────────────────────────────────
# RAM
# ──────────────────────────────────────────────


def check_ram(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    spec: RAMSpec = _typed(candidate, ctx, RAMSpec)
    result = CompatibilityResult()
    mb = ctx.motherboard_spec()

    existing = fold(ctx.specs_of(ComponentType.RAM), _contribute_ram)
    acc = fold(ctx.specs_of(ComponentType.CPU), _contribute_cpu)
    acc = _contribute_motherboard(acc, mb)

    ram_type = normalize_memory_type(spec.memory_type)
    ram_ff = normalize_memory_form_factor(spec.form_factor)
    module_type = normalize_module_type(spec.module_type)

    if ram_ff and existing.memory_form_factors and ram_ff not in existing.memory_form_factors:
        result.reject(
            f"Form factor mismatch: new RAM ({ram_ff}) vs existing RAM "
            f"({', '.join(existing.memory_form_factors)})",
            code="memory_form_factor_mismatch",
        )
    if module_type and existing.module_types and module_type not in existing.module_types:
        result.reject(
            f"Module type mismatch: new RAM ({module_type}) vs existing RAM "
            f"({', '.join(existing.module_types)}). UDIMM, RDIMM, and LRDIMM cannot be mixed.",
            code="module_type_mismatch",
        )

    board_ff = normalize_memory_form_factor(mb.memory.form_factor) if mb and mb.memory else None
    if ram_ff and board_ff and ram_ff != board_ff:
        result.reject(
            f"RAM form factor '{ram_ff}' is not compatible with motherboard "
            f"(motherboard requires: {board_ff})",
            code="memory_form_factor_mismatch",
        )

    if ram_type and acc.supported_memory_types and ram_type not in acc.supported_memory_types:
        result.reject(
            f"Memory type {ram_type} not supported by existing components "
            f"(supported: {', '.join(acc.supported_memory_types)})",
            code="memory_type_unsupported",
        )

    compatible, message = memory_generation_compatibility(acc.cpu_memory_types, ram_type)
    if not compatible:
        result.reject(message, code="memory_type_incompatible")
    elif message:
        result.warn(message)

    if module_type and acc.supported_module_types is not None and module_type not in acc.supported_module_types:
        result.reject(
            f"Module type {module_type} not supported by motherboard "
            f"(supported: {', '.join(acc.supported_module_types) or 'none'})",
            code="module_type_unsupported",
        )

    ceiling = acc.speed_ceiling
    speed = spec.frequency_mhz
    if speed and ceiling:
        if speed > ceiling:
            result.warn(
                f"Performance: RAM speed ({speed} MHz) exceeds component limit ({ceiling} MHz) "
                "- will run at reduced speed"
            )
        elif speed < ceiling:
            result.warn(
                f"Performance: RAM speed ({speed} MHz) is lower than system capability "
                f"({ceiling} MHz) - possible performance bottleneck"
            )
    if len(set(acc.max_memory_speeds)) > 1:
        speeds = ", ".join(f"{s} MHz" for s in sorted(set(acc.max_memory_speeds)))
        result.details.append(
            f"Note: Components have different max memory speeds ({speeds}) - "
            "system will use lowest common speed"
        )
    analysis = analyze_memory_frequency(speed, ceiling)
    if analysis is not None:
        result.details.append(analysis.message)

    memory = mb.memory if mb else None
    if memory is not None and memory.slots is not None:
        used = ctx.configuration.count_of(ComponentType.RAM)
        if used + candidate.quantity > memory.slots:
            result.reject(
                f"Insufficient memory slots: {candidate.quantity} module(s) requested but only "
                f"{max(0, memory.slots - used)} of {memory.slots} slots available",
                code="memory_slots_exhausted",
            )
    if memory is not None and memory.ecc_support is False and spec.is_ecc:
        result.warn("ECC memory used with non-ECC motherboard - ECC features will be disabled")

    if ram_type and (acc.supported_memory_types or acc.cpu_memory_types):
        summary = f"Compatible - {ram_type} supported by existing components"
    else:
        summary = "Compatible - no constraints found"
    return _finish(result, summary)


# ──────────────────────────────────────────────
# PCIe cards / NICs / HBAs
# ──────────────────────────────────────────────


@dataclass
class _SlotFit:
    placed: bool
    slot_id: Optional[str]
    slot_size: Optional[str]
    usage: ResourceUsage
    largest_free: Optional[str]


def _fit_card(candidate: Component, ctx: ValidationContext) -> _SlotFit:
    """Place the candidate together with every existing card."""
    usage = PCIE_SLOTS.availability(ctx)
    before = PCIE_SLOTS.placement(ctx)
    derived = ctx.derive(ctx.configuration.with_component(candidate))
    after = PCIE_SLOTS.placement(derived)

    free = before.free_slots() if before else []
    largest = max(free, key=lambda s: size_lanes(s.size)).size if free else None
    if before is None or after is None:
        return _SlotFit(False, None, None, usage, largest)

    placed = len(after.unplaced) <= len(before.unplaced)
    slot_id = after.slot_of(candidate.uuid)
    slot = after.slot(slot_id) if slot_id else None
    return _SlotFit(placed, slot_id, slot.size if slot else None, usage, largest)


def _apply_slot_fit(
    result: CompatibilityResult,
    candidate: Component,
    size: str,
    fit: _SlotFit,
    ctx: ValidationContext,
    label: str = "Card",
) -> None:
    usage = fit.usage
    if not fit.placed:
        if usage.available == 0:
            riser_room = RISER_SLOTS.availability(ctx)
            result.reject(
                f"All PCIe slots occupied ({usage.used}/{usage.total} used)",
                code="pcie_slots_exhausted",
                recommendation=(
                    "Add a riser card to expand PCIe slot capacity"
                    if riser_room.provider_present and riser_room.available > 0
                    else "Remove existing PCIe components to free slots"
                ),
            )
        else:
            result.reject(
                f"{label} requires {size} slot, but no compatible slots available",
                code="pcie_slot_size_incompatible",
                recommendation=(
                    f"Use a card that requires {fit.largest_free} or smaller slot"
                    if fit.largest_free
                    else "Remove existing PCIe components to free slots"
                ),
            )
        return

    if fit.slot_id:
        result.details.append(f"Assigned slot: {fit.slot_id}")
    if candidate.slot_position and candidate.slot_position != fit.slot_id:
        result.warn(
            f"Requested slot {candidate.slot_position} is not available - "
            f"card will be placed in {fit.slot_id}"
        )
    if fit.slot_size and size_lanes(fit.slot_size) > size_lanes(size):
        result.warn(
            f"{label} requires {size} slot, will be placed in {fit.slot_size} slot "
            "(acceptable but not optimal)"
        )


def _generation_warning(result: CompatibilityResult, card_gen: Optional[float], mb: MotherboardSpec) -> None:
    mb_gen = _motherboard_generation(mb)
    if not card_gen:
        return
    if not mb_gen:
        result.warn("Motherboard PCIe generation unknown - verify compatibility manually")
    elif card_gen < mb_gen:
        result.warn(
            f"Card is PCIe Gen {card_gen:g}, motherboard supports Gen {mb_gen:g} - "
            "fully compatible (may not use full slot bandwidth)"
        )
    elif card_gen > mb_gen:
        result.warn(
            f"Card is PCIe Gen {card_gen:g}, motherboard supports Gen {mb_gen:g} - "
            f"will run at Gen {mb_gen:g} speed (motherboard limitation)"
        )
    else:
        result.details.append(f"PCIe generation match: Gen {card_gen:g}")


def _slot_summary(result: CompatibilityResult, fit_usage: ResourceUsage, quantity: int) -> str:
    remaining = max(0, fit_usage.available - quantity)
    summary = f"Compatible ({remaining} of {fit_usage.total} slots available)"
    if result.warnings:
        summary += f" - {result.warnings[0]}"
    return summary


def _check_riser(candidate: Component, spec: PCIeCardSpec, ctx: ValidationContext) -> CompatibilityResult:
    result = CompatibilityResult()
    mb = ctx.motherboard_spec()
    if mb is None:
        result.warn("Add motherboard with riser slot support first")
        result.summary = "Compatible - pending motherboard addition"
        return result

    usage = RISER_SLOTS.availability(ctx)
    size = riser_size(spec)
    if usage.total == 0:
        result.reject("Motherboard does not support riser cards", code="riser_not_supported")
    elif usage.available < candidate.quantity:
        result.reject(
            f"All riser slots occupied ({usage.available}/{usage.total} available)",
            code="riser_slots_exhausted",
        )
    else:
        slot_id = RISER_SLOTS.assign(ctx, size)
        if slot_id is None:
            result.reject(
                f"Riser card requires {size} slot, but no compatible slots available",
                code="riser_slot_size_incompatible",
            )
        else:
            result.details.append(
                f"Riser card compatible - {usage.available} of {usage.total} riser slots available"
            )
            result.details.append(f"Assigned slot: {slot_id}")

    if spec.height_mm:
        compat = mb.expansion_slots.riser_compatibility if mb.expansion_slots else None
        if compat and compat.max_riser_height_mm and spec.height_mm > compat.max_riser_height_mm:
            result.warn(
                f"Riser card height ({spec.height_mm}mm) exceeds motherboard maximum riser "
                f"height ({compat.max_riser_height_mm}mm)"
            )
        chassis = ctx.chassis_spec()
        limit = chassis.expansion.max_riser_height_mm if chassis and chassis.expansion else None
        if limit and spec.height_mm > limit:
            result.warn(
                f"Riser card height ({spec.height_mm}mm) exceeds chassis maximum riser height ({limit}mm)"
            )

    if result.compatible:
        result.summary = (
            f"Compatible - Riser slot available ({usage.available}/{usage.total} free)"
        )
    else:
        result.summary = result.issues[0]
    return result


def check_pcie_card(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    """PCIe add-in cards and NICs. Risers take riser slots, not PCIe slots."""
    spec = ctx.spec(candidate)
    result = CompatibilityResult()

    if candidate.component_type == ComponentType.NIC and not is_pcie_nic(candidate, spec):
        result.details.append(
            "Onboard NIC - no PCIe slot required"
            if candidate.is_onboard
            else "NIC does not use a PCIe expansion slot"
        )
        result.summary = "Compatible - no PCIe slot required"
        return result
    if is_riser(spec):
        return _check_riser(candidate, spec, ctx)

    size = card_slot_size(candidate.component_type, spec)
    mb = ctx.motherboard_spec()
    if mb is None:
        result.warn("Ensure motherboard has available PCIe slot")
        result.summary = "Compatible - pending motherboard addition"
        return result

    fit = _fit_card(candidate, ctx)
    _apply_slot_fit(result, candidate, size, fit, ctx)
    if not result.compatible:
        result.summary = "Incompatible - " + "; ".join(result.issues)
        return result

    interface = getattr(spec, "interface", None)
    _generation_warning(result, pcie_generation(interface, getattr(spec, "pcie_generation", None)), mb)

    length = spec.length_mm if isinstance(spec, PCIeCardSpec) else None
    chassis = ctx.chassis_spec()
    max_length = chassis.expansion.max_card_length_mm if chassis and chassis.expansion else None
    if length and max_length and length > max_length:
        result.warn(f"Card length ({length}mm) exceeds chassis maximum card length ({max_length}mm)")

    result.summary = _slot_summary(result, fit.usage, candidate.quantity)
    return result


def check_hba(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    """Slot fit is the only blocker; storage protocol support is informational."""
    spec: HBASpec = _typed(candidate, ctx, HBASpec)
    result = CompatibilityResult()

    if ctx.configuration.is_empty():
        result.warn("Ensure motherboard has available PCIe x8 slot")
        result.summary = "Compatible - no existing components"
        return result

    storage = [(c, s) for c, s in ctx.specs_of(ComponentType.STORAGE) if isinstance(s, StorageSpec)]
    if storage:
        supported = sum(
            c.quantity for c, s in storage if is_hba_protocol_compatible(spec.protocol, s.interface)
        )
        total = sum(c.quantity for c, _ in storage)
        result.details.append(
            f"HBA supports {supported} of {total} existing storage device(s) "
            f"(protocol: {spec.protocol or 'unknown'})"
        )

    mb = ctx.motherboard_spec()
    if mb is None:
        result.warn("No motherboard in configuration - cannot verify PCIe slot availability")
        result.summary = "Compatible - pending motherboard addition"
        return result

    size = card_slot_size(ComponentType.HBA_CARD, spec)
    fit = _fit_card(candidate, ctx)
    _apply_slot_fit(result, candidate, size, fit, ctx, label="HBA card")
    if not result.compatible:
        result.summary = "Incompatible - " + "; ".join(result.issues)
        return result

    hba_gen = pcie_generation(spec.interface, spec.pcie_generation)
    mb_gen = _motherboard_generation(mb)
    if hba_gen and mb_gen and hba_gen > mb_gen:
        result.warn(
            f"HBA card is PCIe {hba_gen:g} but motherboard supports PCIe {mb_gen:g} - "
            "card will run at reduced speed"
        )

    result.summary = _slot_summary(result, fit.usage, candidate.quantity)
    return result


# ──────────────────────────────────────────────
# Storage
# ──────────────────────────────────────────────


def _motherboard_fit(spec: StorageSpec, ctx: ValidationContext, result: CompatibilityResult) -> None:
    """Interface score and bandwidth warnings against the board.

    Hard path failures belong to the resolver, so only a compatible pair
    verdict contributes its warnings.
    """
    mb = ctx.motherboard_spec()
    if mb is None or not spec.interface or not motherboard_storage_interfaces(mb):
        return
    score, message = storage_interface_score(spec, mb)
    result.score_breakdown["interface_score"] = score
    pair = motherboard_storage(mb, spec)
    if not pair.compatible:
        return
    result.details.append(message)
    for warning in pair.warnings:
        result.warn(warning)
    for recommendation in pair.recommendations:
        result.recommend(recommendation)


def check_storage(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    """Connection-path resolution mapped onto a CompatibilityResult."""
    spec: StorageSpec = _typed(candidate, ctx, StorageSpec)
    connection = resolve(candidate, ctx)
    result = CompatibilityResult()

    for error in connection.errors:
        result.reject(error.message, code=error.type, recommendation=error.resolution)
    for warning in connection.warnings:
        result.warn(warning.message, recommendation=warning.recommendation)
        for option in warning.extra.get("options", []):
            result.recommend(f"{option['component']} - {option['reason']} (e.g. {option['example']})")
    for info in connection.info:
        result.details.append(info.message)
    if connection.primary_path is not None:
        result.details.append(connection.primary_path.description)

    _motherboard_fit(spec, ctx, result)

    covered = {"form_factor_mismatch", "form_factor_lock_violation"} & set(connection.error_types())
    if not covered:
        for _, caddy in ctx.specs_of(ComponentType.CADDY):
            if isinstance(caddy, CaddySpec):
                result.merge(storage_caddy(spec, caddy))

    if result.compatible:
        path = connection.primary_path
        result.summary = (
            f"Compatible - connects via {path.path_type.value}"
            if path
            else "Compatible - connection pending additional components"
        )
    else:
        result.summary = result.issues[0]
    return result


# ──────────────────────────────────────────────
# Chassis
# ──────────────────────────────────────────────


def check_chassis(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    result = CompatibilityResult()
    has_record = ctx.lookup.has_record(ComponentType.CHASSIS, candidate.uuid)
    spec = ctx.find(ComponentType.CHASSIS, candidate.uuid).spec
    result.score_breakdown = {
        "database_record": has_record,
        "json_specification": isinstance(spec, ChassisSpec),
    }

    strict = ctx.policy.is_strict(ComponentType.CHASSIS)
    if not has_record:
        if strict:
            result.reject("Chassis UUID not found in database", code="chassis_not_found")
        else:
            result.warn("Chassis UUID not found in database - assuming compatible")
    if not isinstance(spec, ChassisSpec):
        logger.warning("No usable chassis specification for %s", candidate.uuid)
        if strict:
            result.reject("Chassis JSON specifications not found", code="specification_not_found")
            result.summary = "Chassis incompatible: " + "; ".join(result.issues)
        else:
            result.warn("Specifications not found for chassis - assuming compatible")
            result.summary = "Compatible - specifications unavailable"
        return result

    if ctx.configuration.chassis() is not None:
        result.reject(
            "Server already has a chassis - only one chassis allowed per configuration",
            code="duplicate_chassis",
            recommendation="Remove the existing chassis first",
        )

    bays = chassis_bay_sizes(spec)
    bay_counts: Dict[str, int] = {}
    for group in spec.drive_bays.bay_configuration if spec.drive_bays else []:
        key = form_factor_size(group.bay_type)
        if key:
            bay_counts[key] = bay_counts.get(key, 0) + group.count

    drive_counts: Dict[str, int] = {}
    connected = 0
    for component, storage in ctx.specs_of(ComponentType.STORAGE):
        if not isinstance(storage, StorageSpec) or not is_chassis_connected(storage):
            continue
        connected += component.quantity
        size = form_factor_size(storage.form_factor)
        if size:
            drive_counts[size] = drive_counts.get(size, 0) + component.quantity

    # Spare 3.5" bays take 2.5" overflow on mixed-bay chassis
    spare_large = max(0, bay_counts.get("3.5-inch", 0) - drive_counts.get("3.5-inch", 0))
    for size in sorted(drive_counts):
        limit = bay_counts.get(size, 0) + (spare_large if size == "2.5-inch" else 0)
        if bays and size not in bays:
            result.reject(
                f"Storage form factor {size} requires {size} chassis bays (strict matching)",
                code="form_factor_incompatible",
                recommendation=f"Choose a chassis with {size} bays OR remove {size} storage",
            )
        elif size in bay_counts and drive_counts[size] > limit:
            result.reject(
                f"Chassis provides {limit} usable {size} bays but configuration has "
                f"{drive_counts[size]} {size} drive(s)",
                code="bay_limit_exceeded",
            )

    total_bays = spec.drive_bays.total_bays if spec.drive_bays else 0
    if total_bays and connected > total_bays and "bay_limit_exceeded" not in result.codes:
        result.reject(
            f"Chassis has {total_bays} drive bays but configuration has {connected} bay-mounted drive(s)",
            code="bay_limit_exceeded",
        )

    for _, caddy in ctx.specs_of(ComponentType.CADDY):
        if isinstance(caddy, CaddySpec):
            result.merge(chassis_caddy(spec, caddy))

    if result.compatible:
        result.summary = f"Chassis ({spec.form_factor or spec.label}) compatible with existing configuration"
    else:
        result.summary = "Chassis incompatible: " + "; ".join(result.issues)
    return result


# ──────────────────────────────────────────────
# Caddy
# ──────────────────────────────────────────────


def check_caddy(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    spec: CaddySpec = _typed(candidate, ctx, CaddySpec)
    result = CompatibilityResult()
    size = caddy_size(spec)
    if size is None:
        result.warn("Caddy size not specified - assuming compatible")

    lock = form_factor_lock(ctx)
    if size and lock and lock.reason != "chassis_bay_configuration" and lock.size != size:
        result.reject(
            f"Form factor locked to {lock.size} by {lock.reason_text} - cannot add {size} caddy",
            code="form_factor_mismatch",
            recommendation=f"Remove {lock.size} components OR select a {lock.size} caddy",
        )

    if ctx.configuration.chassis() is None:
        result.details.append("No chassis yet - bay size will be validated when chassis is added")
        return _finish(result, "Compatible - no chassis constraints yet")

    chassis = ctx.chassis_spec()
    if chassis is None:
        result.warn("Chassis specifications not found - cannot verify caddy bay size")
    else:
        result.merge(chassis_caddy(chassis, spec))

    return _finish(result, f"Caddy ({size or 'unknown size'}) compatible with chassis bay configuration")


# ──────────────────────────────────────────────
# SFP
# ──────────────────────────────────────────────

_FIBER_NOTES = (
    (("copper", "dac"), "Using Direct Attach Copper (DAC) cable - ensure cable length is appropriate for distance"),
    (("smf", "single"), "Using Single-Mode Fiber - ensure fiber infrastructure is SMF compatible"),
)


def _fiber_recommendation(spec: SFPSpec) -> Optional[str]:
    fiber = (spec.fiber_type or "").lower()
    if not fiber:
        return None
    for tokens, note in _FIBER_NOTES:
        if any(t in fiber for t in tokens):
            return note
    if "mmf" in fiber or "multi" in fiber:
        return f"Using Multi-Mode Fiber - verify fiber distance is within reach limit ({spec.reach or 'N/A'})"
    return None


def _sfp_structure(candidate: Component, ctx: ValidationContext) -> Tuple[Optional[NICSpec], CompatibilityResult]:
    result = CompatibilityResult()
    nic_uuid, port = candidate.parent_nic_uuid, candidate.port_index
    if not nic_uuid:
        result.reject("SFP must be assigned to a parent NIC card", code="sfp_parent_missing",
                      recommendation="Specify parent_nic_uuid when adding SFP")
        result.summary = "Missing parent NIC assignment"
        return None, result
    if not port:
        result.reject("SFP must specify which port it will occupy", code="sfp_port_missing",
                      recommendation="Specify port_index when adding SFP")
        result.summary = "Missing port index"
        return None, result

    nic = ctx.configuration.find(nic_uuid)
    if nic is None or nic.component_type != ComponentType.NIC:
        result.reject(f"Parent NIC with UUID {nic_uuid} not found in configuration",
                      code="sfp_parent_not_found",
                      recommendation="Add the NIC card before adding SFP modules")
        result.summary = "Parent NIC not found"
        return None, result

    nic_spec = ctx.spec(nic)
    if not isinstance(nic_spec, NICSpec):
        result.reject(f"NIC specifications not found for UUID {nic_uuid}", code="specification_not_found")
        result.summary = "NIC specifications not found"
        return None, result

    if not is_sfp_port(nic_spec.port_type):
        result.reject(f"NIC port type '{nic_spec.port_type}' does not support SFP modules",
                      code="sfp_port_unsupported",
                      recommendation="SFP modules require SFP+/QSFP+/SFP28 compatible NIC cards")
        result.summary = "NIC port type incompatible"
        return None, result

    ports = nic_spec.ports or 0
    if port > ports:
        result.reject(f"Port index {port} exceeds NIC port count ({ports})", code="sfp_port_out_of_range",
                      recommendation=f"Choose port index between 1 and {ports}")
        result.summary = "Invalid port index"
        return None, result

    occupant = NIC_PORTS.occupied(ctx, nic_uuid).get(port)
    if occupant is not None:
        result.reject(f"Port {port} on NIC {nic_uuid} is already occupied by SFP {occupant}",
                      code="sfp_port_occupied")
        free = NIC_PORTS.assign(ctx, nic_uuid)
        if free:
            result.recommend(f"Use free port {free.rsplit('_', 1)[-1]} on NIC {nic_uuid}")
    return nic_spec, result


def check_sfp(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    spec: SFPSpec = _typed(candidate, ctx, SFPSpec)
    nic_spec, result = _sfp_structure(candidate, ctx)
    if nic_spec is None:
        return result

    result.merge(nic_sfp(nic_spec, spec))
    port_type = normalize_port_type(nic_spec.port_type)
    sfp_type = normalize_port_type(spec.type)
    if result.compatible and sfp_type and sfp_type != port_type and sfp_type in compatible_sfp_types(port_type):
        result.warn(f"Using {sfp_type} module in {port_type} port - cross-compatible but may run at reduced speed")

    detail = f"SFP {sfp_type or 'unknown'} on {port_type} port {candidate.port_index}"
    nic_max = max_speed_gbps(nic_spec.speeds)
    if nic_max is not None:
        detail += f" (NIC max {nic_max:g}G)"
    result.details.append(detail)
    note = _fiber_recommendation(spec)
    if note:
        result.recommend(note)

    return _finish(result, f"SFP module compatible with NIC port {candidate.port_index}")


# ──────────────────────────────────────────────
# Registry / boundary
# ──────────────────────────────────────────────

CHECKERS: Dict[ComponentType, Checker] = {
    ComponentType.CPU: check_cpu,
    ComponentType.MOTHERBOARD: check_motherboard,
    ComponentType.RAM: check_ram,
    ComponentType.STORAGE: check_storage,
    ComponentType.PCIE_CARD: check_pcie_card,
    ComponentType.NIC: check_pcie_card,
    ComponentType.HBA_CARD: check_hba,
    ComponentType.CHASSIS: check_chassis,
    ComponentType.CADDY: check_caddy,
    ComponentType.SFP: check_sfp,
}

# Checked even against an empty configuration
_ALWAYS_CHECKED = {ComponentType.CHASSIS, ComponentType.HBA_CARD}


def _precheck(candidate: Component, ctx: ValidationContext) -> Optional[CompatibilityResult]:
    """Missing-spec policy and the empty-configuration shortcut."""
    component_type = candidate.component_type
    if component_type == ComponentType.CHASSIS:
        return None

    if ctx.spec(candidate) is None:
        lookup = ctx.find(component_type, candidate.uuid)
        malformed = lookup.error == SpecLookupError.MALFORMED
        logger.warning(
            "No usable %s specification for %s (%s)",
            component_type.value,
            candidate.uuid,
            lookup.error.value if lookup.error else "not_found",
        )
        result = CompatibilityResult()
        if ctx.policy.is_strict(component_type):
            result.reject(
                f"Specifications {'malformed' if malformed else 'not found'} for "
                f"{component_type.value} {candidate.uuid}",
                code="specification_malformed" if malformed else "specification_not_found",
            )
            result.summary = result.issues[0]
        else:
            result.warn(f"Specifications not found for {component_type.value} - assuming compatible")
            result.summary = "Compatible - specifications unavailable"
        return result

    if ctx.configuration.is_empty() and component_type not in _ALWAYS_CHECKED:
        return CompatibilityResult(summary="Compatible - no existing components to check against")
    return None


def run_checker(candidate: Component, ctx: ValidationContext) -> CompatibilityResult:
    """Dispatch to the checker for the candidate's type.

    Unexpected failures inside a checker never surface as exceptions:
    they are logged and reported as an incomplete check.
    """
    try:
        result = _precheck(candidate, ctx)
        if result is None:
            result = CHECKERS[candidate.component_type](candidate, ctx)
    except Exception as exc:
        logger.exception(
            "Compatibility check failed for %s %s", candidate.component_type.value, candidate.uuid
        )
        error = exc if isinstance(exc, InternalComputationError) else InternalComputationError(str(exc))
        result = CompatibilityResult(summary="Compatibility check incomplete")
        result.warn(f"Compatibility check could not be completed: {error}")
        return result

    if not result.compatible:
        logger.info(
            "Rejected %s %s: %s", candidate.component_type.value, candidate.uuid, result.issues[0]
        )
    return result
