"""Pairwise compatibility rules between two resolved specifications.

Rules are registered against an ordered pair of component types.
``check_pair`` falls back to the swapped pair, so callers never need to
know which way round a rule was written. An unregistered pair is
compatible with no messages.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from rackwise.engine.extractors import (
    form_factor_size,
    is_m2,
    is_u2,
    max_speed_gbps,
    normalize_bay_type,
    normalize_form_factor,
    normalize_memory_form_factor,
    normalize_memory_type,
    normalize_port_type,
    parse_storage_interface,
    pcie_generation,
    size_lanes,
    slot_size,
    sockets_match,
    speed_gbps,
)
from rackwise.engine.results import CompatibilityResult
from rackwise.models.components import ComponentType
from rackwise.models.specs import (
    CaddySpec,
    CatalogSpec,
    ChassisSpec,
    CPUSpec,
    MotherboardSpec,
    NICSpec,
    RAMSpec,
    SFPSpec,
    StorageSpec,
)

PairRule = Callable[[CatalogSpec, CatalogSpec], CompatibilityResult]

# NIC port type -> SFP module types it accepts
SFP_COMPATIBILITY: Dict[str, List[str]] = {
    "SFP": ["SFP"],
    "SFP+": ["SFP+", "SFP+ DAC", "SFP"],
    "SFP28": ["SFP28", "SFP+", "SFP+ DAC", "SFP"],
    "QSFP+": ["QSFP+"],
    "QSFP28": ["QSFP28", "QSFP+"],
    "QSFP56": ["QSFP56", "QSFP28", "QSFP+"],
    "RJ45": [],
}


def compatible_sfp_types(port_type: Optional[str]) -> List[str]:
    return SFP_COMPATIBILITY.get(normalize_port_type(port_type) or "", [])


def is_sfp_port(port_type: Optional[str]) -> bool:
    return bool(compatible_sfp_types(port_type))


def sfp_type_compatible(port_type: Optional[str], sfp_type: Optional[str]) -> bool:
    return (normalize_port_type(sfp_type) or "") in compatible_sfp_types(port_type)


# ──────────────────────────────────────────────
# CPU / Motherboard / RAM
# ──────────────────────────────────────────────


def cpu_motherboard(cpu: CPUSpec, mb: MotherboardSpec) -> CompatibilityResult:
    result = CompatibilityResult()
    mb_socket = mb.socket.type if mb.socket else None

    if sockets_match(cpu.socket, mb_socket) is False:
        result.reject(
            f"Socket mismatch: CPU socket ({cpu.socket}) does not match "
            f"motherboard socket ({mb_socket})",
            code="socket_mismatch",
        )
        return result

    if cpu.tdp_w and mb.max_tdp_w and cpu.tdp_w > mb.max_tdp_w:
        result.warn(
            f"CPU TDP ({cpu.tdp_w}W) may exceed motherboard's recommended limit ({mb.max_tdp_w}W)"
        )

    cpu_types = {normalize_memory_type(t) for t in cpu.memory_types or []} - {None}
    mb_types = {normalize_memory_type(t) for t in (mb.memory.types if mb.memory else None) or []} - {None}
    if cpu_types and mb_types and not cpu_types & mb_types:
        result.warn("No common memory types supported between CPU and motherboard")

    cpu_gen, mb_gen = cpu.pcie_generation, mb.pcie_generation
    if cpu_gen and mb_gen and cpu_gen > mb_gen:
        result.warn(
            f"CPU supports newer PCIe version ({cpu_gen:g}) than motherboard ({mb_gen:g})",
            recommendation="Consider upgrading motherboard for full PCIe performance",
        )
    return result


def motherboard_ram(mb: MotherboardSpec, ram: RAMSpec) -> CompatibilityResult:
    result = CompatibilityResult()
    memory = mb.memory
    ram_type = normalize_memory_type(ram.memory_type)
    mb_types = [t for t in (normalize_memory_type(t) for t in (memory.types if memory else None) or []) if t]

    if mb_types and ram_type and ram_type not in mb_types:
        result.reject(
            f"Memory type incompatible: {ram_type} not supported by motherboard",
            code="memory_type_unsupported",
        )
        return result

    max_speed = memory.max_frequency_mhz if memory else None
    if max_speed and ram.frequency_mhz and ram.frequency_mhz > max_speed:
        result.warn(
            f"RAM speed ({ram.frequency_mhz}MHz) exceeds motherboard maximum "
            f"({max_speed}MHz) - will run at reduced speed"
        )

    mb_ff = normalize_memory_form_factor(memory.form_factor if memory else None)
    ram_ff = normalize_memory_form_factor(ram.form_factor)
    if mb_ff and ram_ff and mb_ff != ram_ff:
        result.reject(
            f"Memory form factor incompatible: {ram_ff} not supported by motherboard ({mb_ff})",
            code="memory_form_factor_mismatch",
        )
        return result

    if ram.is_ecc and memory is not None and memory.ecc_support is False:
        result.warn("ECC memory used with non-ECC motherboard - ECC features will be disabled")
    return result


def cpu_ram(cpu: CPUSpec, ram: RAMSpec) -> CompatibilityResult:
    result = CompatibilityResult()
    ram_type = normalize_memory_type(ram.memory_type)
    cpu_types = [t for t in (normalize_memory_type(t) for t in cpu.memory_types or []) if t]
    if cpu_types and ram_type and ram_type not in cpu_types:
        result.warn(
            f"RAM type {ram_type} may have compatibility issues with CPU "
            f"(supports {', '.join(cpu_types)})"
        )
    if cpu.max_memory_speed_mhz and ram.frequency_mhz and ram.frequency_mhz > cpu.max_memory_speed_mhz:
        result.warn(
            f"RAM speed ({ram.frequency_mhz}MHz) exceeds CPU specification "
            f"({cpu.max_memory_speed_mhz}MHz)",
            recommendation="Memory will run at CPU's maximum supported speed",
        )
    return result


# ──────────────────────────────────────────────
# Storage
# ──────────────────────────────────────────────


def motherboard_storage_interfaces(mb: MotherboardSpec) -> List[str]:
    """Interface strings a board can serve directly, for interface scoring."""
    storage = mb.storage
    if storage is None:
        return []
    interfaces: List[str] = []
    if storage.sata and storage.sata.ports > 0:
        interfaces.append("SATA III")
    if storage.sas and storage.sas.ports > 0:
        interfaces.append("SAS")
    nvme = storage.nvme
    if nvme:
        for group in nvme.m2_slots:
            if group.count <= 0:
                continue
            gen = group.pcie_generation or mb.pcie_generation
            label = f"NVMe PCIe {gen:g}" if gen else "NVMe"
            if label not in interfaces:
                interfaces.append(label)
        if nvme.u2_slots and nvme.u2_slots.count > 0 and "NVMe U.2" not in interfaces:
            interfaces.append("NVMe U.2")
    return interfaces


def storage_interface_score(storage: StorageSpec, mb: MotherboardSpec) -> Tuple[float, str]:
    """Score how well the board's native interfaces serve a drive.

    0.95 exact / same protocol+generation, 0.90 backward compatible,
    0.85 generation unknown, 0.80 NVMe via PCIe adapter, 0.25 incompatible.
    """
    interface = storage.interface or ""
    mb_interfaces = motherboard_storage_interfaces(mb)
    if interface in mb_interfaces:
        return 0.95, f"Perfect interface match: {interface}"

    wanted = parse_storage_interface(interface)
    for mb_interface in mb_interfaces:
        offered = parse_storage_interface(mb_interface)
        if wanted.protocol is None or wanted.protocol != offered.protocol:
            continue
        if wanted.generation == offered.generation:
            return 0.95, f"Interface compatible: {interface} matches {mb_interface}"
        if wanted.generation is not None and offered.generation is not None:
            if wanted.generation <= offered.generation:
                return 0.90, (
                    f"Interface compatible: {interface} works with {mb_interface} "
                    "(backward compatible)"
                )
            continue
        return 0.85, f"Interface compatible: {interface} works with {mb_interface}"

    pcie_slots = mb.expansion_slots.pcie_slots if mb.expansion_slots else []
    if wanted.protocol == "nvme" and pcie_slots:
        return 0.80, "NVMe storage can use PCIe slot with adapter"
    return 0.25, (
        f"Storage requires {interface} but motherboard only supports: "
        + (", ".join(mb_interfaces) or "none")
    )


def pcie_bandwidth_score(storage: StorageSpec, mb: MotherboardSpec) -> Tuple[float, str, str]:
    required_gen = storage.pcie_generation or pcie_generation(storage.interface)
    required_lanes = storage.pcie_lanes
    if not required_gen or not required_lanes:
        return (
            0.90,
            "PCIe requirements not specified, assuming compatibility",
            "Verify PCIe requirements with storage documentation",
        )
    mb_gen = mb.pcie_generation or 0.0
    slots = mb.expansion_slots.pcie_slots if mb.expansion_slots else []
    has_slot = any(size_lanes(slot_size(g.type)) >= required_lanes for g in slots if g.count > 0)
    if has_slot and mb_gen >= required_gen:
        return (
            0.95,
            f"Full bandwidth available: PCIe {mb_gen:g} x{required_lanes}",
            "Optimal PCIe bandwidth for maximum performance",
        )
    if has_slot:
        return (
            0.85,
            f"Reduced bandwidth: Storage requires PCIe {required_gen:g} but motherboard "
            f"provides {mb_gen:g}",
            "Storage will work but with reduced performance due to PCIe version limitation",
        )
    return (
        0.40,
        f"Insufficient PCIe resources: Storage requires {required_gen:g} x{required_lanes}",
        "Use storage with lower PCIe requirements or upgrade motherboard",
    )


def motherboard_storage(mb: MotherboardSpec, storage: StorageSpec) -> CompatibilityResult:
    result = CompatibilityResult()
    if not storage.interface or not motherboard_storage_interfaces(mb):
        return result
    score, message = storage_interface_score(storage, mb)
    result.details.append(f"interface_score={score:.2f}")
    if score < 0.5:
        result.reject(
            message,
            code="storage_interface_incompatible",
            recommendation="Use storage device with compatible interface or upgrade motherboard",
        )
        return result
    result.details.append(message)

    # Slot and bay form factors never ride on PCIe expansion lanes
    if parse_storage_interface(storage.interface).protocol != "nvme":
        return result
    if is_m2(storage.form_factor) or is_u2(storage.form_factor) or form_factor_size(storage.form_factor):
        return result
    bw_score, bw_message, bw_recommendation = pcie_bandwidth_score(storage, mb)
    if bw_score < 0.5:
        result.reject(bw_message, code="pcie_bandwidth_insufficient", recommendation=bw_recommendation)
    elif bw_score < 0.9:
        result.warn(bw_message, recommendation=bw_recommendation)
    return result


def storage_caddy(storage: StorageSpec, caddy: CaddySpec) -> CompatibilityResult:
    result = CompatibilityResult()
    if is_m2(storage.form_factor) or is_u2(storage.form_factor):
        result.details.append(
            "M.2/U.2 storage does not require caddy - connects directly to motherboard/PCIe adapter"
        )
        return result

    storage_ff = normalize_form_factor(storage.form_factor)
    supported = caddy_form_factors(caddy)
    if storage_ff and supported and storage_ff not in supported:
        result.reject(
            f"Storage form factor ({storage.form_factor}) not supported by caddy",
            code="caddy_form_factor_mismatch",
        )
    return result


def caddy_form_factors(caddy: CaddySpec) -> List[str]:
    compat = caddy.compatibility
    raw: List[str] = []
    if compat and compat.supported_form_factors:
        raw = list(compat.supported_form_factors)
    elif compat and compat.size:
        raw = [compat.size]
    elif caddy.type:
        raw = [caddy.type]
    return [f for f in (normalize_form_factor(r) for r in raw) if f]


def caddy_size(caddy: CaddySpec) -> Optional[str]:
    """2.5-inch / 3.5-inch from ``compatibility.size``, else ``type``."""
    compat = caddy.compatibility
    for candidate in ((compat.size if compat else None), caddy.type):
        size = form_factor_size(candidate)
        if size:
            return size
    return None


# ──────────────────────────────────────────────
# Chassis
# ──────────────────────────────────────────────


def chassis_bay_sizes(chassis: ChassisSpec) -> List[str]:
    """Distinct bay sizes, in declaration order."""
    sizes: List[str] = []
    for group in chassis.drive_bays.bay_configuration if chassis.drive_bays else []:
        size = form_factor_size(group.bay_type) or normalize_bay_type(group.bay_type)
        if size and size not in sizes:
            sizes.append(size)
    return sizes


def chassis_storage(chassis: ChassisSpec, storage: StorageSpec) -> CompatibilityResult:
    result = CompatibilityResult()
    if is_m2(storage.form_factor) or is_u2(storage.form_factor):
        return result
    size = form_factor_size(storage.form_factor)
    bays = chassis_bay_sizes(chassis)
    if size and bays and size not in bays:
        result.reject(
            f"Storage form factor {size} not compatible with chassis bay types "
            f"({', '.join(bays)})",
            code="form_factor_incompatible",
            recommendation="Choose compatible storage OR replace chassis",
        )
    return result


def chassis_caddy(chassis: ChassisSpec, caddy: CaddySpec) -> CompatibilityResult:
    result = CompatibilityResult()
    size = caddy_size(caddy)
    bays = chassis_bay_sizes(chassis)
    if size and bays and size not in bays:
        bay_label = ", ".join(bays)
        result.reject(
            f"Cannot add {size} caddy - chassis only has {bay_label} bays (strict matching required)",
            code="caddy_chassis_mismatch",
            recommendation=(
                f"Use a caddy matching chassis bay size ({bay_label}) OR remove current chassis"
            ),
        )
    return result


# ──────────────────────────────────────────────
# Networking
# ──────────────────────────────────────────────


def motherboard_nic(mb: MotherboardSpec, nic: NICSpec) -> CompatibilityResult:
    result = CompatibilityResult()
    interface = (nic.interface or "").lower()
    if not any(t in interface for t in ("pcie", "pci express", "pci-e")):
        return result

    needed = slot_size(nic.interface)
    groups = mb.expansion_slots.pcie_slots if mb.expansion_slots else []
    if needed and groups:
        largest = max((size_lanes(slot_size(g.type)) for g in groups if g.count > 0), default=0)
        if largest < size_lanes(needed):
            result.warn(
                f"NIC requires {needed} slot but motherboard's largest PCIe slot is x{largest}"
            )

    nic_gen = nic.pcie_generation or pcie_generation(nic.interface)
    if nic_gen and mb.pcie_generation and nic_gen != mb.pcie_generation:
        result.warn(
            f"NIC is PCIe Gen {nic_gen:g}, motherboard supports Gen {mb.pcie_generation:g}"
        )
    return result


def nic_sfp(nic: NICSpec, sfp: SFPSpec) -> CompatibilityResult:
    result = CompatibilityResult()
    port_type = normalize_port_type(nic.port_type) or ""
    sfp_type = normalize_port_type(sfp.type) or ""

    if not sfp_type_compatible(port_type, sfp_type):
        accepted = compatible_sfp_types(port_type)
        result.reject(
            f"SFP type {sfp_type} not compatible with NIC port type {port_type}",
            code="sfp_type_incompatible",
            recommendation=(
                "Compatible SFP types for this NIC: " + ", ".join(accepted)
                if accepted
                else "This NIC has no SFP cages"
            ),
        )
        return result

    nic_max = max_speed_gbps(nic.speeds)
    sfp_speed = speed_gbps(sfp.speed)
    if nic_max is not None and sfp_speed is not None and sfp_speed > nic_max:
        result.reject(
            f"SFP speed {sfp.speed} exceeds NIC maximum speed {nic_max:g}G",
            code="sfp_speed_exceeds_nic",
            recommendation=f"Use SFP module with speed <= {nic_max:g}G",
        )
    return result


# ──────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────

PAIR_RULES: Dict[Tuple[ComponentType, ComponentType], PairRule] = {
    (ComponentType.CPU, ComponentType.MOTHERBOARD): cpu_motherboard,
    (ComponentType.MOTHERBOARD, ComponentType.RAM): motherboard_ram,
    (ComponentType.CPU, ComponentType.RAM): cpu_ram,
    (ComponentType.MOTHERBOARD, ComponentType.STORAGE): motherboard_storage,
    (ComponentType.MOTHERBOARD, ComponentType.NIC): motherboard_nic,
    (ComponentType.STORAGE, ComponentType.CADDY): storage_caddy,
    (ComponentType.NIC, ComponentType.SFP): nic_sfp,
    (ComponentType.CHASSIS, ComponentType.STORAGE): chassis_storage,
    (ComponentType.CHASSIS, ComponentType.CADDY): chassis_caddy,
}


def check_pair(
    a_type: ComponentType,
    a_spec: Optional[CatalogSpec],
    b_type: ComponentType,
    b_spec: Optional[CatalogSpec],
) -> CompatibilityResult:
    """Apply the registered rule for (a, b) or (b, a).

    Missing specs on either side leave the pair unchecked.
    """
    if a_spec is None or b_spec is None:
        return CompatibilityResult()
    rule = PAIR_RULES.get((a_type, b_type))
    if rule is not None:
        return rule(a_spec, b_spec)
    rule = PAIR_RULES.get((b_type, a_type))
    if rule is not None:
        return rule(b_spec, a_spec)
    return CompatibilityResult()
