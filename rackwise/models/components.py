"""Shared enums and component models for the Rackwise compatibility engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────


class ComponentType(str, Enum):
    """Hardware component categories used in server builds."""

    CPU = "cpu"
    MOTHERBOARD = "motherboard"
    RAM = "ram"
    STORAGE = "storage"
    NIC = "nic"
    SFP = "sfp"
    HBA_CARD = "hbacard"
    PCIE_CARD = "pciecard"
    CADDY = "caddy"
    CHASSIS = "chassis"


class SourceType(str, Enum):
    """Where a component came from: picked by the user or synthesized."""

    COMPONENT = "component"
    ONBOARD = "onboard"


# ──────────────────────────────────────────────
# Component
# ──────────────────────────────────────────────


class Component(BaseModel):
    """A typed, identified hardware unit inside a configuration.

    Components are never mutated in place; configuration membership is the
    only thing that changes over a build's lifetime.
    """

    model_config = ConfigDict(frozen=True)

    component_type: ComponentType
    uuid: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)

    # Explicit slot assignment, e.g. "pcie_x16_slot_1" or
    # "riser_<uuid>_pcie_x8_slot_2". None means "place automatically".
    slot_position: Optional[str] = None

    # SFP placement within a parent NIC (1-based port index)
    parent_nic_uuid: Optional[str] = None
    port_index: Optional[int] = Field(default=None, ge=1)

    # Onboard NICs are synthesized from the motherboard spec
    source_type: SourceType = SourceType.COMPONENT
    parent_component_uuid: Optional[str] = None

    @model_validator(mode="after")
    def _validate_placement_fields(self) -> "Component":
        if self.component_type != ComponentType.SFP and (
            self.parent_nic_uuid is not None or self.port_index is not None
        ):
            raise ValueError(
                f"parent_nic_uuid/port_index only apply to SFP modules, "
                f"not {self.component_type.value}"
            )
        return self

    @property
    def is_onboard(self) -> bool:
        return self.source_type == SourceType.ONBOARD
