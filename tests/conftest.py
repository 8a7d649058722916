"""Shared catalog for the engine tests.

A small but realistic spec catalog: one dual-socket Sapphire Rapids board
with risers and onboard SFP+ NICs, a single-socket DDR4 board, and the
drives, cards and chassis that exercise every resource pool.
"""

from __future__ import annotations

import pytest

from rackwise.engine.lookup import InMemorySpecLookup


CATALOG = {
    "cpu": [
        {
            "uuid": "cpu-spr", "brand": "Intel", "model": "Xeon Gold 6430",
            "socket": "LGA4677", "cores": 32, "tdp_W": 270,
            "memory_types": ["DDR5-4800"], "max_memory_speed_mhz": 4800,
            "pcie_generation": "PCIe 5.0", "pcie_lanes": 80,
        },
        {
            "uuid": "cpu-spr-oem", "brand": "Intel", "model": "Xeon Gold 6430 OEM",
            "socket": "lga4677 ", "tdp_W": 270,
            "memory_types": ["DDR5"], "max_memory_speed_mhz": 4800,
            "pcie_generation": 5.0, "pcie_lanes": 80,
        },
        {
            "uuid": "cpu-icx", "brand": "Intel", "model": "Xeon Silver 4314",
            "socket": "LGA4189", "tdp_W": 135,
            "memory": {"types": ["DDR4-3200"], "max_frequency_MHz": 3200},
            "pcie_generation": "PCIe 4.0", "pcie_lanes": 64,
        },
    ],
    "motherboard": [
        {
            "uuid": "mb-x13", "brand": "Supermicro", "model": "X13DEI",
            "form_factor": "E-ATX",
            "socket": {"type": "LGA4677", "count": 2},
            "memory": {
                "types": ["DDR5"], "max_frequency_MHz": 4800, "form_factor": "DIMM",
                "module_types": ["RDIMM", "LRDIMM"], "ecc_support": "yes", "slots": 16,
            },
            "expansion_slots": {
                "pcie_slots": [
                    {"type": "PCIe 5.0 x16", "count": 2},
                    {"type": "PCIe 5.0 x8", "count": 1},
                ],
                "riser_slots": [{"type": "PCIe x16 Riser", "count": 2}],
                "riser_compatibility": {"max_risers": 2, "max_riser_height_mm": 120},
            },
            "storage": {
                "sata": {"ports": 4},
                "nvme": {
                    "m2_slots": [{"count": 2, "form_factors": ["2280", "22110"], "pcie_generation": 4.0}],
                    "u2_slots": {"count": 2, "connection": "SlimSAS"},
                },
            },
            "networking": {
                "onboard_nics": [
                    {"controller": "Intel X710", "ports": 2, "speed": "10GbE", "connector": "SFP+"},
                ],
            },
            "max_tdp_W": 350, "pcie_generation": 5.0, "chipset_pcie_lanes": 8,
        },
        {
            "uuid": "mb-x12", "brand": "Supermicro", "model": "X12SPI",
            "socket": "LGA4189",
            "memory": {"types": ["DDR4"], "max_frequency_MHz": 3200, "form_factor": "DIMM", "slots": 8},
            "expansion_slots": {"pcie_slots": [{"type": "PCIe 4.0 x16", "count": 1}]},
            "storage": {
                "sata": {"ports": 2},
                "nvme": {"m2_slots": [{"count": 1, "form_factors": ["2280"]}]},
            },
            "pcie_generation": 4.0,
        },
        {
            "uuid": "mb-m2quad", "brand": "ASRock Rack", "model": "SPC741D8-2L2T",
            "socket": {"type": "LGA4677", "count": 1},
            "memory": {"types": ["DDR5"], "max_frequency_MHz": 4800, "form_factor": "DIMM", "slots": 8},
            "expansion_slots": {"pcie_slots": [{"type": "PCIe 5.0 x16", "count": 1}]},
            "storage": {"nvme": {"m2_slots": [{"count": 4, "form_factors": ["2280"], "pcie_generation": 4.0}]}},
            "pcie_generation": 5.0,
        },
    ],
    "ram": [
        {
            "uuid": "ram-ddr5", "brand": "Samsung", "model": "M321R4GA3BB6",
            "memory_type": "DDR5", "module_type": "RDIMM", "form_factor": "DIMM",
            "capacity_GB": 32, "frequency_MHz": 4800, "features": {"ecc_support": "yes"},
        },
        {
            "uuid": "ram-ddr5-5600", "brand": "Samsung", "model": "M321R4GA3PB0",
            "memory_type": "DDR5", "module_type": "RDIMM", "form_factor": "DIMM",
            "capacity_GB": 32, "frequency_MHz": 5600, "features": {"ecc_support": "yes"},
        },
        {
            "uuid": "ram-ddr5-udimm", "brand": "Kingston", "model": "KSM48E40BD8KM",
            "memory_type": "DDR5", "module_type": "UDIMM", "form_factor": "DIMM",
            "capacity_GB": 32, "frequency_MHz": 4800,
        },
        {
            "uuid": "ram-ddr4", "brand": "Micron", "model": "MTA36ASF4G72PZ",
            "memory_type": "DDR4", "module_type": "RDIMM", "form_factor": "DIMM",
            "capacity_GB": 32, "frequency_MHz": 3200, "features": {"ecc_support": "yes"},
        },
        {
            "uuid": "ram-sodimm", "brand": "Crucial", "model": "CT16G48C40S5",
            "memory_type": "DDR5", "module_type": "UDIMM", "form_factor": "SO-DIMM",
            "capacity_GB": 16, "frequency_MHz": 4800,
        },
    ],
    "storage": [
        {"uuid": "ssd-sata-25", "model": "PM893", "interface": "SATA III", "form_factor": "2.5-inch"},
        {"uuid": "ssd-sata-25b", "model": "D3-S4520", "interface": "SATA III", "form_factor": '2.5"'},
        {"uuid": "hdd-sata-35", "model": "Ultrastar HC550", "interface": "SATA III", "form_factor": "3.5-inch"},
        {"uuid": "hdd-sas-35", "model": "Exos X18 SAS", "interface": "SAS3", "form_factor": "3.5-inch"},
        {"uuid": "ssd-sas-25", "model": "PM1643a", "interface": "SAS3", "form_factor": "2.5-inch"},
        {"uuid": "nvme-m2", "model": "PM9A3 M.2", "interface": "NVMe PCIe 4.0", "form_factor": "M.2 2280"},
        {"uuid": "nvme-m2-gen5", "model": "PM1743 M.2", "interface": "NVMe PCIe 5.0", "form_factor": "M.2 2280"},
        {"uuid": "nvme-u2", "model": "PM9A3 U.2", "interface": "NVMe PCIe 4.0", "form_factor": "U.2"},
    ],
    "chassis": [
        {
            "uuid": "chassis-35", "brand": "Supermicro", "model": "CSE-826",
            "form_factor": "2U",
            "drive_bays": {"total_bays": 12, "bay_configuration": [{"bay_type": "3.5_inch", "count": 12, "hot_swap": True}]},
            "backplane": {"model": "BPN-SAS3-826A", "interface": "SATA3", "supports_sata": True},
            "expansion": {"max_card_length_mm": 280, "max_riser_height_mm": 110},
        },
        {
            "uuid": "chassis-25", "brand": "Supermicro", "model": "CSE-116",
            "form_factor": "1U",
            "drive_bays": {"total_bays": 10, "bay_configuration": [{"bay_type": "2.5_inch", "count": 10}]},
            "backplane": {"model": "BPN-SAS3-116A", "interface": "SAS3", "supports_sata": True, "supports_sas": True},
            "expansion": {"max_card_length_mm": 200},
        },
        {
            "uuid": "chassis-mixed", "brand": "Supermicro", "model": "CSE-836",
            "form_factor": "3U",
            "drive_bays": {
                "total_bays": 6,
                "bay_configuration": [
                    {"bay_type": "2.5_inch", "count": 2},
                    {"bay_type": "3.5_inch", "count": 4},
                ],
            },
            "backplane": {"interface": "SATA3", "supports_sata": True},
        },
    ],
    "caddy": [
        {
            "uuid": "caddy-25", "model": "MCP-220-00043", "type": "2.5 inch",
            "compatibility": {"size": "2.5_inch", "supported_form_factors": ["2.5-inch"]},
        },
        {
            "uuid": "caddy-35", "model": "MCP-220-00075", "type": "3.5 inch",
            "compatibility": {"size": "3.5_inch", "supported_form_factors": ["3.5-inch", "2.5-inch"]},
        },
    ],
    "hbacard": [
        {
            "uuid": "hba-9400", "brand": "Broadcom", "model": "9400-8i",
            "protocol": "SAS/SATA", "internal_ports": 8, "max_devices": 1024,
            "interface": "PCIe 3.1 x8",
        },
        {
            "uuid": "hba-9600", "brand": "Broadcom", "model": "9600-16i",
            "protocol": "Tri-Mode", "internal_ports": 16, "interface": "PCIe 4.0 x8",
        },
    ],
    "pciecard": [
        {
            "uuid": "gpu-x16", "brand": "NVIDIA", "model": "L40S", "component_subtype": "GPU",
            "interface": "PCIe 4.0 x16", "length_mm": 267,
        },
        {
            "uuid": "card-x8", "brand": "Xilinx", "model": "Alveo U50", "component_subtype": "Accelerator",
            "interface": "PCIe 4.0 x8", "length_mm": 168,
        },
        {
            "uuid": "card-x8b", "brand": "Xilinx", "model": "Alveo U55C", "component_subtype": "Accelerator",
            "interface": "PCIe 4.0 x8",
        },
        {
            "uuid": "card-x4", "brand": "Intel", "model": "QAT 8970", "component_subtype": "Accelerator",
            "interface": "PCIe 3.0 x4",
        },
        {
            "uuid": "riser-2x8", "brand": "Supermicro", "model": "RSC-W2-88",
            "component_subtype": "Riser Card", "interface": "PCIe x16",
            "slot_type": "PCIe x8", "pcie_slots": 2, "height_mm": 110,
        },
        {
            "uuid": "riser-zero", "brand": "Generic", "model": "Blank Riser",
            "component_subtype": "Riser Card", "interface": "PCIe x16", "pcie_slots": 0,
        },
        {
            "uuid": "m2-adapter-4", "brand": "Supermicro", "model": "AOC-SLG4-4E4T",
            "component_subtype": "NVMe Adaptor", "interface": "PCIe 4.0 x16",
            "m2_slots": 4, "m2_form_factors": ["2280"],
        },
        {
            "uuid": "m2-adapter-1", "brand": "Supermicro", "model": "AOC-SLG3-2M2",
            "component_subtype": "NVMe Adaptor", "interface": "PCIe 3.0 x4",
            "m2_slots": 1, "m2_form_factors": ["2280"],
        },
    ],
    "nic": [
        {
            "uuid": "nic-sfp28", "brand": "NVIDIA", "model": "ConnectX-6 Lx",
            "interface": "PCIe 4.0 x8", "ports": 2, "port_type": "SFP28",
            "speeds": ["25GbE", "10GbE"],
        },
        {
            "uuid": "nic-rj45", "brand": "Intel", "model": "X550-T2",
            "interface": "PCIe 3.0 x4", "ports": 2, "port_type": "RJ45", "speeds": ["10GbE"],
        },
    ],
    "sfp": [
        {"uuid": "sfp-28-sr", "model": "MMA2P00-AS", "type": "SFP28", "speed": "25G", "fiber_type": "MMF", "reach": "100m"},
        {"uuid": "sfp-plus-dac", "model": "MC3309130", "type": "SFP+ DAC", "speed": "10G", "fiber_type": "Copper DAC"},
        {"uuid": "sfp-plus-lr", "model": "FTLX1471D3BCL", "type": "SFP+", "speed": "10G", "fiber_type": "SMF", "reach": "10km"},
        {"uuid": "sfp-qsfp28", "model": "MMA1B00-C100D", "type": "QSFP28", "speed": "100G", "fiber_type": "MMF"},
    ],
}


@pytest.fixture
def lookup() -> InMemorySpecLookup:
    """Fresh catalog per test; tests may add or remove records."""
    return InMemorySpecLookup.from_catalog(CATALOG)
