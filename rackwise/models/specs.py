"""Typed specification records, one model per component kind.

Catalog JSON is inconsistent about key names (``tdp_W`` vs ``tdp``,
``frequency_MHz`` vs ``speed_MHz``) and about nesting. These models accept
the known variants through ``AliasChoices`` and normalize shape in
``before`` validators. Anything the catalog does not state stays ``None``;
callers branch on unknown explicitly instead of getting a default.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Dict, List, Optional, Type, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from rackwise.models.components import ComponentType


# ──────────────────────────────────────────────
# Shared helpers
# ──────────────────────────────────────────────

_TRUTHY = {"yes", "true", "supported", "required", "1", "y"}
_FALSY = {"no", "false", "none", "unsupported", "not supported", "0", "n", ""}


def _as_list(value: Any) -> Any:
    """Wrap a bare scalar into a one-element list (None stays None)."""
    if value is None or isinstance(value, list):
        return value
    if isinstance(value, (tuple, set)):
        return list(value)
    return [value]


def _as_bool(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    return value


def _as_generation(value: Any) -> Any:
    """Accept 4, 4.0, "4.0", "PCIe 4.0", "Gen4"."""
    if value is None or isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        m = re.search(r"(\d+(?:\.\d+)?)", value)
        return float(m.group(1)) if m else None
    return value


def _as_text(value: Any) -> Any:
    return None if value is None else str(value)


def _as_text_list(value: Any) -> Any:
    value = _as_list(value)
    return None if value is None else [str(v) for v in value]


PCIeGeneration = Annotated[Optional[float], BeforeValidator(_as_generation)]
StrList = Annotated[Optional[List[str]], BeforeValidator(_as_list)]
TextList = Annotated[Optional[List[str]], BeforeValidator(_as_text_list)]
Text = Annotated[Optional[str], BeforeValidator(_as_text)]
Flag = Annotated[Optional[bool], BeforeValidator(_as_bool)]


class SpecModel(BaseModel):
    """Base for every specification fragment."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CatalogSpec(SpecModel):
    """Base for a top-level catalog record."""

    uuid: Optional[str] = Field(default=None, validation_alias=AliasChoices("uuid", "UUID"))
    model: Optional[str] = None
    brand: Optional[str] = None

    @property
    def label(self) -> str:
        """Human-readable name for messages."""
        if self.brand and self.model:
            return f"{self.brand} {self.model}"
        return self.model or self.uuid or "Unknown"


# ──────────────────────────────────────────────
# CPU
# ──────────────────────────────────────────────


class CPUSpec(CatalogSpec):
    socket: Optional[str] = None
    cores: Optional[int] = None
    threads: Optional[int] = None
    tdp_w: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("tdp_w", "tdp_W", "tdp")
    )
    memory_types: StrList = Field(
        default=None, validation_alias=AliasChoices("memory_types", "memory_type")
    )
    max_memory_speed_mhz: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices(
            "max_memory_speed_mhz",
            "max_memory_frequency_MHz",
            "max_memory_frequency",
            "memory_speed_MHz",
        ),
    )
    pcie_generation: PCIeGeneration = Field(
        default=None, validation_alias=AliasChoices("pcie_generation", "pcie_version")
    )
    pcie_lanes: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_memory(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("memory"), dict):
            data = dict(data)
            memory = data.pop("memory")
            types = memory.get("types", memory.get("type"))
            speed = memory.get("max_frequency_MHz", memory.get("max_speed_MHz"))
            if types is not None:
                data.setdefault("memory_types", types)
            if speed is not None:
                data.setdefault("max_memory_speed_mhz", speed)
        return data


# ──────────────────────────────────────────────
# Motherboard
# ──────────────────────────────────────────────


class SocketInfo(SpecModel):
    type: Optional[str] = None
    count: Optional[int] = None


class MemorySupport(SpecModel):
    types: StrList = Field(
        default=None, validation_alias=AliasChoices("types", "type", "memory_types")
    )
    max_frequency_mhz: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices(
            "max_frequency_mhz", "max_frequency_MHz", "max_speed_MHz"
        ),
    )
    form_factor: Optional[str] = None
    module_types: StrList = Field(
        default=None,
        validation_alias=AliasChoices(
            "module_types", "supported_module_types", "module_type"
        ),
    )
    ecc_support: Flag = Field(
        default=None, validation_alias=AliasChoices("ecc_support", "ecc")
    )
    slots: Optional[int] = None
    max_capacity_gb: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("max_capacity_gb", "max_capacity_GB")
    )


class PCIeSlotGroup(SpecModel):
    type: str = ""
    count: int = 0
    lanes: Optional[int] = None
    bifurcation_support: bool = False


class RiserSlotGroup(SpecModel):
    type: str = "PCIe x16 Riser"
    count: int = 1


class RiserCompatibility(SpecModel):
    max_risers: int = 0
    max_riser_height_mm: Optional[int] = None


class ExpansionSlots(SpecModel):
    pcie_slots: List[PCIeSlotGroup] = Field(default_factory=list)
    riser_slots: Optional[List[RiserSlotGroup]] = None
    riser_compatibility: Optional[RiserCompatibility] = None


class PortCount(SpecModel):
    ports: int = 0
    controller: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("controller", "sata_controller")
    )


class M2SlotGroup(SpecModel):
    count: int = 0
    type: Optional[str] = None
    form_factors: List[str] = Field(default_factory=list)
    pcie_generation: PCIeGeneration = None
    pcie_lanes: Optional[int] = None


class U2Slots(SpecModel):
    count: int = 0
    connection: Optional[str] = None


class NvmeSupport(SpecModel):
    m2_slots: List[M2SlotGroup] = Field(default_factory=list)
    u2_slots: Optional[U2Slots] = None


class MotherboardStorage(SpecModel):
    sata: Optional[PortCount] = None
    sas: Optional[PortCount] = None
    nvme: Optional[NvmeSupport] = None


class OnboardNIC(SpecModel):
    controller: Optional[str] = None
    ports: int = 0
    speed: Text = None
    connector: Optional[str] = None


class Networking(SpecModel):
    onboard_nics: List[OnboardNIC] = Field(default_factory=list)


class MotherboardSpec(CatalogSpec):
    form_factor: Optional[str] = None
    socket: Optional[SocketInfo] = None
    memory: Optional[MemorySupport] = None
    expansion_slots: Optional[ExpansionSlots] = None
    storage: Optional[MotherboardStorage] = None
    networking: Optional[Networking] = None
    max_tdp_w: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices(
            "max_tdp_w", "max_tdp_W", "max_cpu_tdp_W", "max_cpu_tdp"
        ),
    )
    pcie_generation: PCIeGeneration = Field(
        default=None, validation_alias=AliasChoices("pcie_generation", "pcie_version")
    )
    chipset_pcie_lanes: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        socket = data.get("socket", data.get("cpu_socket"))
        if isinstance(socket, str):
            data["socket"] = {"type": socket}
        elif socket is not None:
            data["socket"] = socket
        # Flat legacy fields fold into the nested memory block
        if "memory_types" in data and "memory" not in data:
            data["memory"] = {"types": data.pop("memory_types")}
        if "pcie_slots" in data and "expansion_slots" not in data:
            data["expansion_slots"] = {"pcie_slots": data.pop("pcie_slots")}
        return data


# ──────────────────────────────────────────────
# RAM / Storage
# ──────────────────────────────────────────────


class RAMFeatures(SpecModel):
    ecc_support: Flag = None


class RAMSpec(CatalogSpec):
    memory_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("memory_type", "type")
    )
    module_type: Optional[str] = None
    form_factor: Optional[str] = None
    capacity_gb: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("capacity_gb", "capacity_GB")
    )
    frequency_mhz: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices(
            "frequency_mhz", "frequency_MHz", "speed_MHz", "speed_mhz"
        ),
    )
    features: Optional[RAMFeatures] = None

    @property
    def is_ecc(self) -> Optional[bool]:
        return self.features.ecc_support if self.features else None


class StorageSpec(CatalogSpec):
    interface: Optional[str] = None
    form_factor: Optional[str] = None
    subtype: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("subtype", "component_subtype")
    )
    capacity_gb: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("capacity_gb", "capacity_GB")
    )
    pcie_generation: PCIeGeneration = None
    pcie_lanes: Optional[int] = None


# ──────────────────────────────────────────────
# Networking
# ──────────────────────────────────────────────


class NICSpec(CatalogSpec):
    component_subtype: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("component_subtype", "subtype")
    )
    interface: Optional[str] = None
    ports: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("ports", "port_count")
    )
    port_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("port_type", "connector")
    )
    speeds: TextList = Field(
        default=None, validation_alias=AliasChoices("speeds", "speed")
    )
    pcie_generation: PCIeGeneration = None


class SFPSpec(CatalogSpec):
    type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("type", "sfp_type", "form_factor")
    )
    speed: Text = None
    fiber_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("fiber_type", "medium", "cable_type")
    )
    connector: Optional[str] = None
    wavelength: Optional[str] = None
    reach: Text = None


# ──────────────────────────────────────────────
# Expansion cards
# ──────────────────────────────────────────────


class HBASpec(CatalogSpec):
    protocol: Optional[str] = None
    internal_ports: int = 0
    external_ports: int = 0
    max_devices: Optional[int] = None
    interface: Optional[str] = None
    pcie_generation: PCIeGeneration = None


class PCIeCardSpec(CatalogSpec):
    component_subtype: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("component_subtype", "subtype")
    )
    interface: Optional[str] = None
    pcie_generation: PCIeGeneration = None
    # Riser cards: slot size and count they provide
    slot_type: Optional[str] = None
    pcie_slots: Optional[int] = None
    # NVMe adapters: drive slots they provide
    m2_slots: int = 0
    u2_slots: int = 0
    m2_form_factors: List[str] = Field(default_factory=list)
    height_mm: Optional[int] = None
    length_mm: Optional[int] = None

    @property
    def is_riser(self) -> bool:
        return "riser" in (self.component_subtype or "").lower()

    @property
    def is_nvme_adapter(self) -> bool:
        return not self.is_riser and (self.m2_slots > 0 or self.u2_slots > 0)


# ──────────────────────────────────────────────
# Chassis / Caddy
# ──────────────────────────────────────────────


class CaddyCompatibility(SpecModel):
    size: Optional[str] = None
    supported_form_factors: StrList = Field(
        default=None,
        validation_alias=AliasChoices(
            "supported_form_factors", "form_factors", "drive_sizes"
        ),
    )


class CaddySpec(CatalogSpec):
    type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("type", "size")
    )
    compatibility: Optional[CaddyCompatibility] = None


class BayGroup(SpecModel):
    bay_type: str = ""
    count: int = 0
    hot_swap: bool = False


class DriveBays(SpecModel):
    total_bays: int = 0
    bay_configuration: List[BayGroup] = Field(default_factory=list)


class Backplane(SpecModel):
    model: Optional[str] = None
    interface: Optional[str] = None
    supports_sata: bool = False
    supports_sas: bool = False
    supports_nvme: bool = False


class ChassisExpansion(SpecModel):
    max_card_length_mm: Optional[int] = None
    max_riser_height_mm: Optional[int] = None


class ChassisSpec(CatalogSpec):
    form_factor: Optional[str] = None
    drive_bays: Optional[DriveBays] = None
    backplane: Optional[Backplane] = None
    expansion: Optional[ChassisExpansion] = None


# ──────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────

Specification = Union[
    CPUSpec,
    MotherboardSpec,
    RAMSpec,
    StorageSpec,
    NICSpec,
    SFPSpec,
    HBASpec,
    PCIeCardSpec,
    CaddySpec,
    ChassisSpec,
]

SPEC_MODELS: Dict[ComponentType, Type[CatalogSpec]] = {
    ComponentType.CPU: CPUSpec,
    ComponentType.MOTHERBOARD: MotherboardSpec,
    ComponentType.RAM: RAMSpec,
    ComponentType.STORAGE: StorageSpec,
    ComponentType.NIC: NICSpec,
    ComponentType.SFP: SFPSpec,
    ComponentType.HBA_CARD: HBASpec,
    ComponentType.PCIE_CARD: PCIeCardSpec,
    ComponentType.CADDY: CaddySpec,
    ComponentType.CHASSIS: ChassisSpec,
}


def parse_specification(component_type: ComponentType, raw: Dict[str, Any]) -> CatalogSpec:
    """Validate a raw catalog record into the typed model for its kind.

    Raises pydantic.ValidationError on malformed data.
    """
    return SPEC_MODELS[component_type].model_validate(raw)
