"""Whole-configuration validation.

Re-checks a finished (or in-progress) build as a whole: pair rules across
every relevant component pair, cardinality limits, every resource pool,
riser integrity and the storage form-factor lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, List, Optional

from rackwise.engine.context import ValidationContext
from rackwise.engine.extractors import form_factor_size
from rackwise.engine.lookup import ComponentSpecLookup
from rackwise.engine.pair_rules import PAIR_RULES, caddy_size
from rackwise.engine.policy import SpecPolicy
from rackwise.engine.results import CompatibilityResult, ResourceKind
from rackwise.engine.risers import validate_riser_slot_integrity, validate_slot_assignments
from rackwise.engine.trackers import PCIE_SLOTS, RISER_SLOTS, TRACKERS
from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import CaddySpec, CPUSpec, MotherboardSpec, StorageSpec

logger = logging.getLogger(__name__)

# Storage interfaces are resolved per drive by the connection resolver
_SKIPPED_PAIRS = {(ComponentType.MOTHERBOARD, ComponentType.STORAGE)}

# Overcommitting these pools is reported as a warning only
_SOFT_POOLS = {ResourceKind.HBA_PORTS}


@dataclass
class ConfigurationReport:
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    codes: List[str] = field(default_factory=list)
    resources: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    missing_specs: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    def reject(self, issue: str, code: str) -> None:
        self.issues.append(issue)
        if code not in self.codes:
            self.codes.append(code)

    def absorb(self, result: CompatibilityResult, context: str) -> None:
        for issue in result.issues:
            self.issues.append(f"{context}: {issue}")
        for code in result.codes:
            if code not in self.codes:
                self.codes.append(code)
        for warning in result.warnings:
            self.warnings.append(f"{context}: {warning}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "codes": list(self.codes),
            "resources": dict(self.resources),
            "missing_specs": list(self.missing_specs),
        }


def _rule_for(a: Component, b: Component):
    key = (a.component_type, b.component_type)
    if key in _SKIPPED_PAIRS or key[::-1] in _SKIPPED_PAIRS:
        return None
    if key in PAIR_RULES:
        return PAIR_RULES[key], a, b
    if key[::-1] in PAIR_RULES:
        return PAIR_RULES[key[::-1]], b, a
    return None


def _check_pairs(ctx: ValidationContext, report: ConfigurationReport) -> None:
    components = sorted(ctx.configuration.components, key=lambda c: (c.component_type.value, c.uuid))
    for a, b in combinations(components, 2):
        found = _rule_for(a, b)
        if found is None:
            continue
        rule, first, second = found
        # An SFP is only checked against the NIC it is plugged into
        if second.component_type == ComponentType.SFP and second.parent_nic_uuid != first.uuid:
            continue
        first_spec, second_spec = ctx.spec(first), ctx.spec(second)
        if first_spec is None or second_spec is None:
            continue
        report.absorb(
            rule(first_spec, second_spec),
            f"{first.component_type.value} {first.uuid} / {second.component_type.value} {second.uuid}",
        )


def _check_cardinality(ctx: ValidationContext, report: ConfigurationReport) -> None:
    configuration = ctx.configuration
    boards = configuration.count_of(ComponentType.MOTHERBOARD)
    if boards > 1:
        report.reject(
            f"Configuration has {boards} motherboards - only one motherboard allowed per configuration",
            "duplicate_motherboard",
        )
    chassis = configuration.count_of(ComponentType.CHASSIS)
    if chassis > 1:
        report.reject(
            f"Configuration has {chassis} chassis - only one chassis allowed per configuration",
            "duplicate_chassis",
        )
    mb = ctx.motherboard_spec()
    cpus = configuration.count_of(ComponentType.CPU)
    if isinstance(mb, MotherboardSpec) and cpus:
        sockets = (mb.socket.count if mb.socket and mb.socket.count else None) or 1
        if cpus > sockets:
            report.reject(
                f"CPU count ({cpus}) exceeds motherboard socket capacity ({sockets})",
                "socket_capacity_exceeded",
            )
    cpu_sockets = {
        s.socket.strip().lower()
        for _, s in ctx.specs_of(ComponentType.CPU)
        if isinstance(s, CPUSpec) and s.socket
    }
    if len(cpu_sockets) > 1:
        report.reject(
            f"CPUs use different sockets ({', '.join(sorted(cpu_sockets))})",
            "socket_mismatch",
        )


def _check_resources(ctx: ValidationContext, report: ConfigurationReport) -> None:
    has_hba = bool(ctx.configuration.components_of(ComponentType.HBA_CARD))
    for kind, tracker in TRACKERS.items():
        usage = tracker.availability(ctx)
        report.resources[kind.value] = usage.to_dict()
        if not usage.provider_present or not usage.overcommitted:
            continue
        message = f"{kind.value} overcommitted: {usage.used} used of {usage.total}"
        if kind in _SOFT_POOLS or (kind == ResourceKind.SATA_PORTS and has_hba):
            report.warnings.append(message)
        else:
            report.reject(message, f"{kind.value}_exhausted")

    for tracker in (PCIE_SLOTS, RISER_SLOTS):
        placement = tracker.placement(ctx)
        if placement is None or not placement.unplaced:
            continue
        unplaced = ", ".join(f"{d.uuid} ({d.size})" for d in placement.unplaced)
        message = f"No compatible {tracker.kind.value.replace('_', ' ')} for: {unplaced}"
        if message not in report.issues:
            report.reject(message, f"{tracker.kind.value}_exhausted")


def _check_form_factors(ctx: ValidationContext, report: ConfigurationReport) -> None:
    sizes: Dict[str, List[str]] = {}
    for component, spec in ctx.specs_of(ComponentType.STORAGE):
        size = form_factor_size(spec.form_factor) if isinstance(spec, StorageSpec) else None
        if size:
            sizes.setdefault(size, []).append(component.uuid)
    for component, spec in ctx.specs_of(ComponentType.CADDY):
        size = caddy_size(spec) if isinstance(spec, CaddySpec) else None
        if size:
            sizes.setdefault(size, []).append(component.uuid)
    if len(sizes) > 1:
        report.reject(
            "Mixed storage form factors: " + "; ".join(
                f"{size}: {', '.join(uuids)}" for size, uuids in sorted(sizes.items())
            ),
            "form_factor_mismatch",
        )


def validate_configuration(
    configuration: Configuration,
    lookup: ComponentSpecLookup,
    policy: Optional[SpecPolicy] = None,
) -> ConfigurationReport:
    """Validate the configuration as a whole. ``valid`` means no issues."""
    ctx = ValidationContext(configuration, lookup, policy)
    report = ConfigurationReport()

    for component in configuration.components:
        if ctx.spec(component) is None:
            report.missing_specs.append(component.uuid)
            if ctx.policy.is_strict(component.component_type):
                report.reject(
                    f"Specifications not found for {component.component_type.value} {component.uuid}",
                    "specification_not_found",
                )

    _check_cardinality(ctx, report)
    _check_pairs(ctx, report)
    _check_resources(ctx, report)

    integrity = validate_riser_slot_integrity(configuration, lookup)
    for error in integrity.errors:
        report.reject(error, "riser_integrity")
    report.warnings.extend(integrity.warnings)
    assignments = validate_slot_assignments(configuration, lookup)
    report.warnings.extend(assignments.errors + assignments.warnings)

    _check_form_factors(ctx, report)

    logger.info(
        "Validated configuration %s: %d issue(s), %d warning(s)",
        configuration.config_uuid or "<unsaved>",
        len(report.issues),
        len(report.warnings),
    )
    return report
