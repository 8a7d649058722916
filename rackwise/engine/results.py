"""Result types returned by the compatibility engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ──────────────────────────────────────────────
# Compatibility Result
# ──────────────────────────────────────────────


@dataclass
class CompatibilityResult:
    """Verdict for one candidate against a configuration.

    ``compatible`` is derived from ``issues`` so a rejection always
    carries at least one reason. Warnings never change the verdict.
    """

    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    details: List[str] = field(default_factory=list)
    codes: List[str] = field(default_factory=list)
    summary: str = ""
    score_breakdown: Dict[str, Any] = field(default_factory=dict)

    @property
    def compatible(self) -> bool:
        return not self.issues

    def reject(self, issue: str, code: Optional[str] = None, recommendation: Optional[str] = None) -> None:
        self.issues.append(issue)
        if code and code not in self.codes:
            self.codes.append(code)
        if recommendation:
            self.recommend(recommendation)

    def warn(self, warning: str, recommendation: Optional[str] = None) -> None:
        self.warnings.append(warning)
        if recommendation:
            self.recommend(recommendation)

    def recommend(self, recommendation: str) -> None:
        if recommendation not in self.recommendations:
            self.recommendations.append(recommendation)

    def merge(self, other: "CompatibilityResult") -> None:
        """Fold another result's messages into this one."""
        self.issues.extend(other.issues)
        self.warnings.extend(other.warnings)
        self.details.extend(other.details)
        for rec in other.recommendations:
            self.recommend(rec)
        for code in other.codes:
            if code not in self.codes:
                self.codes.append(code)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "compatible": self.compatible,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "details": list(self.details),
            "codes": list(self.codes),
            "summary": self.summary,
        }
        if self.score_breakdown:
            data["score_breakdown"] = dict(self.score_breakdown)
        return data


# ──────────────────────────────────────────────
# Resource Usage
# ──────────────────────────────────────────────


class ResourceKind(str, Enum):
    """Finite resource pools tracked per configuration."""

    PCIE_SLOTS = "pcie_slots"
    RISER_SLOTS = "riser_slots"
    M2_SLOTS = "m2_slots"
    U2_SLOTS = "u2_slots"
    SATA_PORTS = "sata_ports"
    HBA_PORTS = "hba_ports"
    DRIVE_BAYS = "drive_bays"
    NIC_PORTS = "nic_ports"


@dataclass
class PoolCounts:
    total: int = 0
    used: int = 0

    @property
    def available(self) -> int:
        return max(0, self.total - self.used)

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "used": self.used, "available": self.available}


@dataclass
class ResourceUsage:
    """Derived total/used/available snapshot for one resource pool.

    ``provider_present`` is False when the component that supplies the
    pool (motherboard, chassis, ...) is absent. That is "not available",
    which callers treat as "defer", unlike a present provider with zero slots.
    """

    kind: ResourceKind
    provider_present: bool = True
    total: int = 0
    used: int = 0
    by_size: Dict[str, PoolCounts] = field(default_factory=dict)
    by_source: Dict[str, PoolCounts] = field(default_factory=dict)
    assignments: Dict[str, str] = field(default_factory=dict)
    reason: Optional[str] = None

    @property
    def available(self) -> int:
        return max(0, self.total - self.used)

    @property
    def overcommitted(self) -> bool:
        return self.used > self.total

    @classmethod
    def not_available(cls, kind: ResourceKind, reason: str) -> "ResourceUsage":
        return cls(kind=kind, provider_present=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "provider_present": self.provider_present,
            "total": self.total,
            "used": self.used,
            "available": self.available,
            "by_size": {k: v.to_dict() for k, v in self.by_size.items()},
            "by_source": {k: v.to_dict() for k, v in self.by_source.items()},
            "assignments": dict(self.assignments),
            "reason": self.reason,
        }


# ──────────────────────────────────────────────
# Storage Connection
# ──────────────────────────────────────────────


class PathType(str, Enum):
    """Physical routes by which storage attaches to the system."""

    CHASSIS_BAY = "chassis_bay"
    MOTHERBOARD_SATA = "motherboard_sata"
    MOTHERBOARD_M2 = "motherboard_m2"
    MOTHERBOARD_U2 = "motherboard_u2"
    HBA_CARD = "hba_card"
    PCIE_ADAPTER = "pcie_adapter"


PATH_PRIORITY: Dict[PathType, int] = {
    PathType.CHASSIS_BAY: 1,
    PathType.MOTHERBOARD_SATA: 2,
    PathType.MOTHERBOARD_M2: 2,
    PathType.MOTHERBOARD_U2: 2,
    PathType.HBA_CARD: 3,
    PathType.PCIE_ADAPTER: 4,
}


@dataclass
class ConnectionPath:
    path_type: PathType
    description: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def priority(self) -> int:
        return PATH_PRIORITY[self.path_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.path_type.value,
            "priority": self.priority,
            "description": self.description,
            "details": dict(self.details),
        }


@dataclass
class ResolverMessage:
    """A typed error / warning / info entry from the storage resolver."""

    type: str
    message: str
    resolution: Optional[str] = None
    recommendation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "message": self.message}
        if self.resolution:
            data["resolution"] = self.resolution
        if self.recommendation:
            data["recommendation"] = self.recommendation
        data.update(self.extra)
        return data


@dataclass
class StorageConnectionResult:
    connection_paths: List[ConnectionPath] = field(default_factory=list)
    primary_path: Optional[ConnectionPath] = None
    errors: List[ResolverMessage] = field(default_factory=list)
    warnings: List[ResolverMessage] = field(default_factory=list)
    info: List[ResolverMessage] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error_types(self) -> List[str]:
        return [e.type for e in self.errors]

    def warning_types(self) -> List[str]:
        return [w.type for w in self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "connection_paths": [p.to_dict() for p in self.connection_paths],
            "primary_path": self.primary_path.to_dict() if self.primary_path else None,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "info": [i.to_dict() for i in self.info],
        }
