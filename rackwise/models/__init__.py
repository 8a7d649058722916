"""Pydantic models for components, configurations, and specifications."""

from rackwise.models.components import Component, ComponentType, SourceType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import (
    SPEC_MODELS,
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
    Specification,
    StorageSpec,
    parse_specification,
)

__all__ = [
    # Components & configuration
    "Component",
    "ComponentType",
    "Configuration",
    "SourceType",
    # Specifications
    "SPEC_MODELS",
    "CaddySpec",
    "CatalogSpec",
    "ChassisSpec",
    "CPUSpec",
    "HBASpec",
    "MotherboardSpec",
    "NICSpec",
    "PCIeCardSpec",
    "RAMSpec",
    "SFPSpec",
    "Specification",
    "StorageSpec",
    "parse_specification",
]
