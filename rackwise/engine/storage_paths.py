"""Storage connection path resolver.

Decides how a storage device would attach to the build: chassis backplane,
motherboard SATA/M.2/U.2, HBA card or PCIe NVMe adapter. The battery of
checks runs in a fixed order; every check contributes typed errors,
warnings or info entries to one StorageConnectionResult.

Components may arrive in any order. Missing providers defer the decision
(warning + recommendations) except for SAS storage, which needs either a
SAS backplane or a SAS-capable HBA before it can be added.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rackwise.engine.context import ValidationContext
from rackwise.engine.extractors import (
    extract_protocol,
    form_factor_size,
    is_m2,
    is_u2,
    lanes_from_interface,
    normalize_form_factor,
    storage_pcie_generation,
)
from rackwise.engine.lookup import ComponentSpecLookup
from rackwise.engine.pair_rules import caddy_size
from rackwise.engine.results import (
    ConnectionPath,
    PathType,
    ResolverMessage,
    StorageConnectionResult,
)
from rackwise.engine.trackers import (
    DRIVE_BAYS,
    M2_TRACKER,
    SATA_PORTS,
    U2_TRACKER,
    NvmeSlotTracker,
    chassis_connected_count,
)
from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import (
    CaddySpec,
    CPUSpec,
    HBASpec,
    PCIeCardSpec,
    StorageSpec,
)

logger = logging.getLogger(__name__)

NVME_LANES_PER_DRIVE = 4


# ──────────────────────────────────────────────
# HBA protocol support
# ──────────────────────────────────────────────


def is_hba_protocol_compatible(hba_protocol: Optional[str], storage_interface: Optional[str]) -> bool:
    """Whether an HBA controller can drive storage with this interface.

    Tri-mode cards handle SAS, SATA and NVMe. SAS controllers also accept
    SATA drives. SATA-only and NVMe-only controllers take their own protocol.
    """
    hba = (hba_protocol or "").strip().upper()
    protocol = extract_protocol(storage_interface)
    if not hba or protocol == "unknown":
        return False
    if "TRI-MODE" in hba or "TRI MODE" in hba or "SAS/SATA/NVME" in hba:
        return True
    if "SAS" in hba:
        return protocol in ("sas", "sata")
    if "SATA" in hba:
        return protocol == "sata"
    if "NVME" in hba or "PCIE" in hba:
        return protocol == "nvme"
    return False


# ──────────────────────────────────────────────
# Form-factor lock
# ──────────────────────────────────────────────

_LOCK_REASON_TEXT = {
    "chassis_bay_configuration": "chassis bay configuration",
    "existing_caddy": "existing caddy",
    "existing_storage": "existing storage",
}


@dataclass(frozen=True)
class FormFactorLock:
    """Configuration-wide 2.5"/3.5" size, and what established it."""

    size: str
    reason: str
    source_uuid: Optional[str] = None

    @property
    def reason_text(self) -> str:
        return _LOCK_REASON_TEXT.get(self.reason, "configuration")

    def resolution(self, incoming: str) -> str:
        if self.reason == "chassis_bay_configuration":
            return f"Replace chassis with {incoming} bay configuration OR select {self.size} storage"
        if self.reason == "existing_caddy":
            return f"Remove {self.size} caddy OR select {self.size} storage"
        if self.reason == "existing_storage":
            return f"Remove existing {self.size} storage OR select {self.size} storage"
        return f"Select storage matching locked size: {self.size}"


def _chassis_lock_size(ctx: ValidationContext) -> Optional[str]:
    chassis = ctx.chassis_spec()
    if chassis is None or chassis.drive_bays is None:
        return None
    sizes = {
        form_factor_size(g.bay_type)
        for g in chassis.drive_bays.bay_configuration
        if form_factor_size(g.bay_type)
    }
    # Mixed-bay chassis accept both sizes; caddies and storage decide
    return sizes.pop() if len(sizes) == 1 else None


def form_factor_lock(ctx: ValidationContext) -> Optional[FormFactorLock]:
    """Current lock, by priority: chassis bays > caddies > storage."""
    size = _chassis_lock_size(ctx)
    if size:
        return FormFactorLock(size, "chassis_bay_configuration", ctx.configuration.chassis_id())

    for component, spec in sorted(ctx.specs_of(ComponentType.CADDY), key=lambda cs: cs[0].uuid):
        size = caddy_size(spec) if isinstance(spec, CaddySpec) else None
        if size:
            return FormFactorLock(size, "existing_caddy", component.uuid)

    for component, spec in sorted(ctx.specs_of(ComponentType.STORAGE), key=lambda cs: cs[0].uuid):
        size = form_factor_size(spec.form_factor) if isinstance(spec, StorageSpec) else None
        if size:
            return FormFactorLock(size, "existing_storage", component.uuid)
    return None


# ──────────────────────────────────────────────
# Path probes
# ──────────────────────────────────────────────


@dataclass
class PathProbe:
    """Outcome of one path check: a usable path or the reason there is none."""

    path: Optional[ConnectionPath] = None
    reason: Optional[str] = None
    mandatory_error: Optional[ResolverMessage] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def unavailable(cls, reason: str, **details: Any) -> "PathProbe":
        return cls(reason=reason, details=details)


@dataclass
class _Request:
    component: Component
    spec: StorageSpec
    protocol: str
    size: Optional[str]

    @property
    def quantity(self) -> int:
        return self.component.quantity

    @property
    def interface(self) -> str:
        return self.spec.interface or "Unknown"

    @property
    def form_factor(self) -> str:
        return self.spec.form_factor or "Unknown"


def _chassis_backplane(req: _Request, ctx: ValidationContext) -> PathProbe:
    if is_m2(req.spec.form_factor):
        return PathProbe.unavailable("m2_bypass_chassis")
    if is_u2(req.spec.form_factor):
        return PathProbe.unavailable("u2_u3_bypass_chassis")
    chassis = ctx.configuration.chassis()
    if chassis is None:
        return PathProbe.unavailable("no_chassis")
    spec = ctx.chassis_spec()
    if spec is None:
        return PathProbe.unavailable("chassis_specs_not_found")

    backplane = spec.backplane
    supported = backplane is not None and (
        (req.protocol == "nvme" and backplane.supports_nvme)
        or (req.protocol == "sata" and backplane.supports_sata)
        or (req.protocol == "sas" and backplane.supports_sas)
    )
    if not supported:
        return PathProbe.unavailable("backplane_incompatible")

    bp_interface = backplane.interface or "Unknown"
    if req.protocol == "sata" and bp_interface.upper() != "SATA3":
        note = f"{req.interface} drive compatible with {bp_interface} backplane (backward compatible)"
    elif req.protocol == "sas" and bp_interface.upper() != "SAS3":
        note = f"{req.interface} drive on {bp_interface} backplane"
    else:
        note = f"{req.interface} drive on {bp_interface} backplane (native support)"

    return PathProbe(
        path=ConnectionPath(
            PathType.CHASSIS_BAY,
            f"Storage connects via chassis backplane ({note})",
            {
                "chassis_uuid": chassis.uuid,
                "backplane_model": backplane.model or "Unknown",
                "backplane_interface": bp_interface,
                "storage_interface": req.interface,
                "compatibility_type": (
                    "native" if req.protocol == bp_interface.lower() else "backward_compatible"
                ),
            },
        )
    )


def _nvme_slot_probe(
    ctx: ValidationContext, tracker: NvmeSlotTracker, path_type: PathType
) -> PathProbe:
    """Motherboard-native M.2 / U.2 slots."""
    label = "M.2" if tracker is M2_TRACKER else "U.2"
    state = tracker.state(ctx)
    total, used = state.motherboard_total, state.motherboard_used
    if total <= 0:
        return PathProbe.unavailable(f"no_{tracker.label}_slots")
    if used >= total:
        return PathProbe.unavailable(
            f"{tracker.label}_slots_exhausted",
            **{
                f"total_{tracker.label}_slots": total,
                f"used_{tracker.label}_slots": used,
                f"available_{tracker.label}_slots": 0,
            },
        )

    mb = ctx.motherboard_spec()
    details: Dict[str, Any] = {
        "motherboard_uuid": ctx.configuration.motherboard_id(),
        f"total_{tracker.label}_slots": total,
        f"used_{tracker.label}_slots": used,
        f"available_{tracker.label}_slots": total - used,
    }
    if tracker is M2_TRACKER:
        groups = mb.storage.nvme.m2_slots
        details["supported_form_factors"] = list(groups[0].form_factors) if groups else []
        details["pcie_generation"] = (groups[0].pcie_generation if groups else None) or mb.pcie_generation or 4.0
    else:
        details["connection"] = mb.storage.nvme.u2_slots.connection or "Unknown"
    return PathProbe(
        path=ConnectionPath(path_type, f"Storage connects via motherboard {label} slot", details)
    )


def _motherboard_direct(req: _Request, ctx: ValidationContext) -> PathProbe:
    if ctx.configuration.motherboard() is None:
        if is_m2(req.spec.form_factor) or is_u2(req.spec.form_factor):
            tracker = M2_TRACKER if is_m2(req.spec.form_factor) else U2_TRACKER
            if tracker.adapters(ctx):
                return PathProbe.unavailable("no_motherboard_but_adapter_exists")
            return PathProbe.unavailable("no_motherboard_m2_u2_warning")
        return PathProbe.unavailable("no_motherboard")

    mb = ctx.motherboard_spec()
    if mb is None:
        return PathProbe.unavailable("motherboard_specs_not_found")

    sata = mb.storage.sata if mb.storage else None
    if req.protocol == "sata" and not is_m2(req.spec.form_factor) and sata and sata.ports > 0:
        usage = SATA_PORTS.availability(ctx)
        if usage.available <= 0:
            return PathProbe.unavailable(
                "sata_ports_exhausted", total_sata_ports=usage.total, used_sata_ports=usage.used
            )
        return PathProbe(
            path=ConnectionPath(
                PathType.MOTHERBOARD_SATA,
                "Storage connects via motherboard SATA port",
                {
                    "motherboard_uuid": ctx.configuration.motherboard_id(),
                    "total_sata_ports": usage.total,
                    "used_sata_ports": usage.used,
                    "controller": sata.controller or "Integrated",
                },
            )
        )

    if is_m2(req.spec.form_factor):
        return _nvme_slot_probe(ctx, M2_TRACKER, PathType.MOTHERBOARD_M2)
    if is_u2(req.spec.form_factor):
        return _nvme_slot_probe(ctx, U2_TRACKER, PathType.MOTHERBOARD_U2)
    return PathProbe.unavailable("no_compatible_motherboard_port")


def _hba_card(req: _Request, ctx: ValidationContext, chassis_sas: bool) -> PathProbe:
    if req.protocol not in ("sas", "sata") or is_m2(req.spec.form_factor) or is_u2(req.spec.form_factor):
        return PathProbe.unavailable("hba_not_applicable")

    cards = [
        (c, s)
        for c, s in sorted(ctx.specs_of(ComponentType.HBA_CARD), key=lambda cs: cs[0].uuid)
        if isinstance(s, HBASpec) and is_hba_protocol_compatible(s.protocol, req.spec.interface)
    ]
    # SAS needs a controller unless the backplane speaks SAS natively
    mandatory = req.protocol == "sas" and not chassis_sas

    if not cards:
        if mandatory:
            return PathProbe(
                reason="hba_required",
                mandatory_error=ResolverMessage(
                    "hba_required",
                    "SAS storage requires SAS HBA card",
                    resolution="Add SAS HBA card (e.g., LSI 9400-16i) before adding SAS storage",
                ),
            )
        return PathProbe.unavailable("no_compatible_hba")

    ports = sum(s.internal_ports * c.quantity for c, s in cards)
    in_use = chassis_connected_count(ctx)
    after = in_use + req.quantity
    first, first_spec = cards[0]
    if ports < after:
        error = ResolverMessage(
            "hba_ports_exhausted",
            f"HBA card ({first_spec.label}) has {ports} internal ports. Currently using "
            f"{in_use}, trying to add {req.quantity} (total would be {after})",
            resolution="Reduce quantity OR remove existing storage OR replace with HBA having more ports",
        )
        return PathProbe(reason="hba_ports_exhausted", mandatory_error=error if mandatory else None)

    max_devices = sum((s.max_devices or 0) * c.quantity for c, s in cards)
    description = (
        f"Storage connects via HBA card ({first_spec.label})"
        if req.protocol == "sas"
        else "Storage can connect via HBA card (optional)"
    )
    return PathProbe(
        path=ConnectionPath(
            PathType.HBA_CARD,
            description,
            {
                "hba_uuid": first.uuid,
                "hba_model": first_spec.label,
                "internal_ports": ports,
                "ports_used": in_use,
                "ports_available": ports - in_use,
                "max_devices": max_devices,
            },
        )
    )


def _pcie_adapter(req: _Request, ctx: ValidationContext) -> PathProbe:
    if is_m2(req.spec.form_factor):
        tracker, label = M2_TRACKER, "M.2"
    elif is_u2(req.spec.form_factor):
        tracker, label = U2_TRACKER, "U.2"
    else:
        return PathProbe.unavailable("adapter_not_applicable")

    adapters = tracker.adapters(ctx)
    if not adapters:
        return PathProbe.unavailable("no_nvme_adapters")
    state = tracker.state(ctx)
    for component, spec in adapters:
        counts = state.cards.get(component.uuid)
        if counts is None or counts.available <= 0:
            continue
        slots = spec.m2_slots if tracker is M2_TRACKER else spec.u2_slots
        details: Dict[str, Any] = {
            "adapter_uuid": component.uuid,
            "adapter_model": spec.label,
            f"{tracker.label}_slots": slots,
            "available_slots": state.expansion_available,
        }
        if tracker is M2_TRACKER:
            details["supported_form_factors"] = list(spec.m2_form_factors)
            details["requires_bifurcation"] = slots > 1
        return PathProbe(
            path=ConnectionPath(
                PathType.PCIE_ADAPTER,
                f"Storage connects via PCIe {label} adapter card ({spec.label})",
                details,
            )
        )
    return PathProbe.unavailable("adapter_slots_exhausted")


# ──────────────────────────────────────────────
# Verification steps
# ──────────────────────────────────────────────


def _check_bays(req: _Request, ctx: ValidationContext, result: StorageConnectionResult) -> bool:
    """Bay availability on the chassis path. Returns whether a caddy is needed.

    The form-factor lock was already applied before path selection.
    """
    normalized = normalize_form_factor(req.spec.form_factor) or req.form_factor
    usage = DRIVE_BAYS.availability(ctx)
    if usage.used + req.quantity > usage.total:
        result.errors.append(
            ResolverMessage(
                "bay_limit_exceeded",
                f"Chassis has {usage.total} drive bays, {usage.used} used - "
                f"cannot add {req.quantity} more",
                resolution="Remove existing storage OR choose chassis with more bays",
            )
        )
        return False

    if not usage.by_size:
        return False
    own = usage.by_size.get(normalized)
    if own is not None and own.available >= req.quantity:
        return False
    larger = usage.by_size.get("3.5-inch") if normalized == "2.5-inch" else None
    if larger is not None and larger.available >= req.quantity:
        return True
    if own is not None or larger is not None:
        result.errors.append(
            ResolverMessage(
                "bay_limit_exceeded",
                f"No free {normalized} bays for {req.quantity} more drive(s)",
                resolution="Remove existing storage OR choose chassis with more bays",
            )
        )
        return False
    result.errors.append(
        ResolverMessage(
            "form_factor_incompatible",
            f"Storage form factor {req.form_factor} not compatible with chassis bay types",
            resolution="Choose compatible storage OR replace chassis",
        )
    )
    return False


def _check_caddy(ctx: ValidationContext, result: StorageConnectionResult) -> None:
    caddies = [s for _, s in ctx.specs_of(ComponentType.CADDY) if isinstance(s, CaddySpec)]
    if caddies:
        result.info.append(
            ResolverMessage("caddy_available", "Using 2.5-inch caddy for 3.5-inch bay installation")
        )
        return
    result.warnings.append(
        ResolverMessage(
            "caddy_recommended",
            "2.5-inch storage in 3.5-inch bay requires caddy adapter",
            recommendation="Add 2.5-inch to 3.5-inch caddy for proper installation",
        )
    )


def _check_ports(req: _Request, ctx: ValidationContext, primary: ConnectionPath, result: StorageConnectionResult) -> None:
    """Re-verify the capacity of the chosen path for the full quantity."""
    if primary.path_type == PathType.MOTHERBOARD_SATA:
        usage = SATA_PORTS.availability(ctx)
        if usage.used + req.quantity > usage.total:
            result.errors.append(
                ResolverMessage(
                    "sata_ports_exhausted",
                    f"Motherboard SATA ports exhausted ({usage.total} ports, {usage.used} used)",
                    resolution="Add SATA HBA card OR use NVMe storage",
                )
            )
    elif primary.path_type in (PathType.MOTHERBOARD_M2, PathType.PCIE_ADAPTER) and is_m2(req.spec.form_factor):
        _check_nvme_capacity(req, ctx, M2_TRACKER, result)
    elif primary.path_type in (PathType.MOTHERBOARD_U2, PathType.PCIE_ADAPTER) and is_u2(req.spec.form_factor):
        _check_nvme_capacity(req, ctx, U2_TRACKER, result)
    elif primary.path_type == PathType.HBA_CARD:
        max_devices = primary.details.get("max_devices") or 0
        used = chassis_connected_count(ctx)
        if max_devices and used + req.quantity > max_devices:
            result.errors.append(
                ResolverMessage(
                    "hba_ports_exhausted",
                    f"HBA card device limit reached ({max_devices} max)",
                    resolution="Add another HBA card",
                )
            )


def _nvme_exhausted(tracker: NvmeSlotTracker, ctx: ValidationContext) -> ResolverMessage:
    label = "M.2" if tracker is M2_TRACKER else "U.2"
    state = tracker.state(ctx)
    return ResolverMessage(
        f"{tracker.label}_slots_exhausted",
        f"Motherboard {label} slots exhausted ({state.motherboard_total} slots, "
        f"{state.motherboard_used} used)",
        resolution=f"Add {label} to PCIe adapter card",
        extra={
            f"total_{tracker.label}_slots": state.motherboard_total + state.expansion_total,
            f"used_{tracker.label}_slots": state.motherboard_used + state.expansion_used,
            f"available_{tracker.label}_slots": state.motherboard_available + state.expansion_available,
        },
    )


def _check_nvme_capacity(
    req: _Request, ctx: ValidationContext, tracker: NvmeSlotTracker, result: StorageConnectionResult
) -> None:
    if not tracker.can_fit(ctx, req.quantity):
        result.errors.append(_nvme_exhausted(tracker, ctx))


def _check_lane_budget(req: _Request, ctx: ValidationContext, result: StorageConnectionResult) -> None:
    if is_m2(req.spec.form_factor):
        return
    total = 0
    cpus = ctx.specs_of(ComponentType.CPU)
    if cpus and isinstance(cpus[0][1], CPUSpec):
        total += cpus[0][1].pcie_lanes or 0
    mb = ctx.motherboard_spec()
    if mb is not None:
        total += mb.chipset_pcie_lanes or 0

    used = 0
    for component, spec in ctx.specs_of(ComponentType.PCIE_CARD):
        interface = spec.interface if isinstance(spec, PCIeCardSpec) else None
        used += lanes_from_interface(interface) * component.quantity
    for component, spec in ctx.specs_of(ComponentType.STORAGE):
        if not isinstance(spec, StorageSpec) or is_m2(spec.form_factor):
            continue
        if extract_protocol(spec.interface) == "nvme":
            used += NVME_LANES_PER_DRIVE * component.quantity

    required = NVME_LANES_PER_DRIVE * req.quantity
    available = total - used
    if available < required:
        result.warnings.append(
            ResolverMessage(
                "pcie_lanes_insufficient",
                f"Insufficient PCIe expansion lanes (need {required}, available {available}/{total})",
                recommendation="Remove other PCIe devices OR upgrade CPU/motherboard",
            )
        )


def _check_pcie_version(
    req: _Request, ctx: ValidationContext, primary: ConnectionPath, result: StorageConnectionResult
) -> None:
    storage_version = req.spec.pcie_generation or storage_pcie_generation(req.spec.interface)
    slot_version = 3.0
    if primary.path_type == PathType.MOTHERBOARD_M2:
        slot_version = float(primary.details.get("pcie_generation") or 3.0)
    else:
        mb = ctx.motherboard_spec()
        if mb is not None and mb.pcie_generation:
            slot_version = mb.pcie_generation
    if storage_version > slot_version:
        degradation = (storage_version - slot_version) / storage_version * 100
        result.warnings.append(
            ResolverMessage(
                "pcie_version_mismatch",
                f"PCIe version mismatch: Storage PCIe {storage_version:g} on slot PCIe {slot_version:g}",
                recommendation=f"Use PCIe {storage_version:g} slot for full performance",
                extra={"impact": "%.0f%% bandwidth reduction" % degradation},
            )
        )


def _check_bifurcation(ctx: ValidationContext, primary: ConnectionPath, result: StorageConnectionResult) -> None:
    if not primary.details.get("requires_bifurcation"):
        return
    mb = ctx.motherboard_spec()
    if mb is None:
        return
    groups = mb.expansion_slots.pcie_slots if mb.expansion_slots else []
    if any(g.bifurcation_support for g in groups):
        result.warnings.append(
            ResolverMessage(
                "bifurcation_required",
                "Requires BIOS bifurcation configuration for multi-slot M.2 adapter",
                recommendation="Enable PCIe bifurcation in BIOS settings",
            )
        )
        return
    result.errors.append(
        ResolverMessage(
            "bifurcation_not_supported",
            "Multi-slot M.2 adapter requires PCIe bifurcation (motherboard unsupported)",
            resolution="Replace motherboard with bifurcation support OR use single-slot M.2 adapter",
        )
    )


# ──────────────────────────────────────────────
# Recommendations for unconnected storage
# ──────────────────────────────────────────────


def _option(priority: int, component: str, reason: str, example: str) -> Dict[str, Any]:
    return {"priority": priority, "component": component, "reason": reason, "example": example}


def connection_options(req_protocol: str, spec: StorageSpec, configuration: Configuration) -> List[Dict[str, Any]]:
    """Components that would give this storage a connection path."""
    has_chassis = configuration.chassis() is not None
    has_mb = configuration.motherboard() is not None
    options: List[Dict[str, Any]] = []

    if req_protocol == "sas":
        if not has_chassis:
            options.append(_option(1, "Chassis with SAS backplane", "Provides hot-swap SAS storage bays", "Supermicro SC846 with SAS3 backplane"))
        options.append(_option(2, "SAS HBA Card", "Required controller for SAS storage", "LSI 9400-16i or 9400-8i"))
    elif req_protocol == "sata":
        if not has_chassis:
            options.append(_option(1, "Chassis with SATA backplane", "Provides hot-swap SATA storage bays", "Supermicro chassis with SATA backplane"))
        if not has_mb:
            options.append(_option(2, "Motherboard with SATA ports", "Direct SATA connection to motherboard", "Motherboard with 8+ SATA ports"))
        options.append(_option(3, "SATA HBA Card", "Expands SATA port capacity", "SATA HBA controller"))
    elif req_protocol == "nvme":
        if is_m2(spec.form_factor) or is_m2(spec.subtype):
            if not has_mb:
                options.append(_option(1, "Motherboard with M.2 slots", "Direct M.2 NVMe connection", "Motherboard with 4x M.2 PCIe slots"))
            options.append(_option(2, "M.2 to PCIe Adapter Card", "Convert M.2 drives to PCIe slot", "Supermicro AOM-SNG-4M2P (Quad M.2 adapter)"))
            if not has_chassis:
                options.append(_option(3, "Chassis with NVMe backplane", "Hot-swap NVMe storage bays", "Chassis with U.2/NVMe backplane"))
        else:
            if not has_chassis:
                options.append(_option(1, "Chassis with NVMe/U.2 backplane", "Hot-swap U.2/U.3 NVMe bays", "Chassis with U.2 backplane"))
            if not has_mb:
                options.append(_option(2, "Motherboard with U.2 ports", "Direct U.2 connection", "Motherboard with U.2 connectors"))
            options.append(_option(3, "U.2 to PCIe Adapter Card", "Convert U.2 drives to PCIe slot", "U.2 to PCIe adapter"))
    return sorted(options, key=lambda o: o["priority"])


# ──────────────────────────────────────────────
# Resolver
# ──────────────────────────────────────────────


def resolve(candidate: Component, ctx: ValidationContext) -> StorageConnectionResult:
    """Run the connection battery for ``candidate`` against ``ctx``.

    ``ctx`` wraps the configuration *without* the candidate.
    """
    result = StorageConnectionResult()
    spec = ctx.find(ComponentType.STORAGE, candidate.uuid).spec
    if not isinstance(spec, StorageSpec):
        result.errors.append(
            ResolverMessage(
                "storage_not_found",
                f"Storage {candidate.uuid} not found in JSON specifications",
            )
        )
        return result

    req = _Request(candidate, spec, extract_protocol(spec.interface), form_factor_size(spec.form_factor))

    # 1. Form-factor lock, 2.5"/3.5" only
    lock = form_factor_lock(ctx) if req.size else None
    if req.size and lock is None:
        result.info.append(
            ResolverMessage(
                "form_factor_lock_set",
                f"Form factor locked to {req.size} - future storage must match",
            )
        )
    elif lock is not None and lock.size != req.size:
        result.errors.append(
            ResolverMessage(
                "form_factor_mismatch",
                f"Form factor locked to {lock.size} by {lock.reason_text} - cannot add {req.size} storage",
                resolution=lock.resolution(req.size),
                extra={"locked_size": lock.size, "incoming_size": req.size, "locked_by": lock.reason},
            )
        )

    # 2-5. Candidate paths
    probes = [_chassis_backplane(req, ctx), _motherboard_direct(req, ctx)]
    chassis_sas = probes[0].path is not None and req.protocol == "sas"
    probes.append(_hba_card(req, ctx, chassis_sas))
    probes.append(_pcie_adapter(req, ctx))
    for probe in probes:
        if probe.path is not None:
            result.connection_paths.append(probe.path)
        elif probe.mandatory_error is not None:
            result.errors.append(probe.mandatory_error)

    # 6. Primary path
    if result.connection_paths:
        result.primary_path = min(result.connection_paths, key=lambda p: p.priority)
    primary = result.primary_path

    # 7 + 11. Bays and caddy
    if primary is not None and primary.path_type == PathType.CHASSIS_BAY:
        if _check_bays(req, ctx, result):
            _check_caddy(ctx, result)

    # 8. Port / slot capacity for the full quantity
    if primary is not None:
        _check_ports(req, ctx, primary, result)

    # 9-10. PCIe budget, version and bifurcation
    if req.protocol == "nvme":
        if ctx.configuration.motherboard() is not None or ctx.configuration.components_of(ComponentType.CPU):
            _check_lane_budget(req, ctx, result)
        if primary is not None:
            _check_pcie_version(req, ctx, primary, result)
            if primary.path_type == PathType.PCIE_ADAPTER:
                _check_bifurcation(ctx, primary, result)

    if not result.connection_paths:
        _no_path(req, ctx, probes, result)
    return result


def _no_path(req: _Request, ctx: ValidationContext, probes: List[PathProbe], result: StorageConnectionResult) -> None:
    if req.protocol == "sas":
        result.errors.append(
            ResolverMessage(
                "sas_requires_hba_or_chassis",
                "SAS storage requires SAS HBA card OR chassis with SAS backplane",
                resolution=(
                    "Add SAS HBA card (e.g., LSI 9400-16i) OR add chassis with SAS backplane "
                    "before adding SAS storage"
                ),
            )
        )
        return

    # Exhausted native slots are a capacity failure, not a missing provider
    for probe in probes:
        if probe.reason in ("m2_slots_exhausted", "u2_slots_exhausted"):
            tracker = M2_TRACKER if probe.reason == "m2_slots_exhausted" else U2_TRACKER
            result.errors.append(_nvme_exhausted(tracker, ctx))
            return
        if probe.reason == "sata_ports_exhausted":
            result.errors.append(
                ResolverMessage(
                    "sata_ports_exhausted",
                    f"Motherboard SATA ports exhausted ({probe.details.get('total_sata_ports', 0)} ports, "
                    f"{probe.details.get('used_sata_ports', 0)} used)",
                    resolution="Add SATA HBA card OR use NVMe storage",
                )
            )
            return

    result.warnings.append(
        ResolverMessage(
            "no_connection_path_yet",
            "Storage added but not yet connected to any component",
            recommendation="Add one of the following to connect this storage",
            extra={"options": connection_options(req.protocol, req.spec, ctx.configuration)},
        )
    )
    result.info.append(
        ResolverMessage(
            "component_order_flexible",
            "You can add required components (chassis/motherboard/adapter) later to connect this storage",
        )
    )


def resolve_storage_connection(
    candidate: Component,
    configuration: Configuration,
    lookup: ComponentSpecLookup,
) -> StorageConnectionResult:
    """Public entry: connection paths for adding ``candidate`` to ``configuration``."""
    ctx = ValidationContext(configuration.without_component(candidate.uuid), lookup)
    try:
        result = resolve(candidate, ctx)
    except Exception as exc:
        logger.exception("Storage connection resolution failed for %s", candidate.uuid)
        return StorageConnectionResult(
            errors=[ResolverMessage("validation_error", f"Internal validation error: {exc}")]
        )
    logger.debug(
        "Storage %s: %d path(s), primary=%s, errors=%s",
        candidate.uuid,
        len(result.connection_paths),
        result.primary_path.path_type.value if result.primary_path else None,
        result.error_types(),
    )
    return result
