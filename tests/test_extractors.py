"""Tests for the attribute extractors."""

from __future__ import annotations

import pytest

from rackwise.engine.extractors import (
    analyze_memory_frequency,
    compatible_slot_sizes,
    extract_protocol,
    form_factor_size,
    lanes_from_interface,
    max_speed_gbps,
    memory_generation,
    memory_generation_compatibility,
    memory_types_speed_ceiling,
    normalize_bay_type,
    normalize_form_factor,
    normalize_memory_form_factor,
    normalize_memory_type,
    normalize_module_type,
    normalize_port_type,
    parse_storage_interface,
    pcie_generation,
    slot_size,
    sockets_match,
    speed_gbps,
    split_memory_type,
    storage_pcie_generation,
)


# ──────────────────────────────────────────────
# Memory
# ──────────────────────────────────────────────


class TestMemory:
    @pytest.mark.parametrize(
        "raw, expected",
        [("DDR5-4800", "DDR5"), ("ddr4", "DDR4"), (" DDR5 ", "DDR5"), ("", None), (None, None)],
    )
    def test_normalize_memory_type(self, raw, expected):
        assert normalize_memory_type(raw) == expected

    def test_generation(self):
        assert memory_generation("DDR5-5600") == 5
        assert memory_generation("ddr4") == 4
        assert memory_generation("HBM") == 0

    def test_split(self):
        assert split_memory_type("DDR5-5600") == ("DDR5", 5600)
        assert split_memory_type("DDR4") == ("DDR4", None)
        assert split_memory_type(None) == (None, None)

    def test_speed_ceiling(self):
        assert memory_types_speed_ceiling(["DDR5-4800", "DDR5-5600"]) == 4800
        assert memory_types_speed_ceiling(["DDR5"]) is None

    def test_newer_cpu_older_ram_warns(self):
        ok, message = memory_generation_compatibility(["DDR5"], "DDR4")
        assert ok is True
        assert message == "CPU supports DDR5 but DDR4 RAM installed - RAM will run at DDR4 speeds"

    def test_older_cpu_newer_ram_rejects(self):
        ok, message = memory_generation_compatibility(["DDR4-3200"], "DDR5")
        assert ok is False
        assert message == "CPU only supports DDR4 but DDR5 RAM is installed - incompatible"

    def test_generation_compat_unknown_is_compatible(self):
        assert memory_generation_compatibility(None, "DDR5") == (True, None)
        assert memory_generation_compatibility(["DDR5"], None) == (True, None)
        assert memory_generation_compatibility(["DDR5-4800"], "DDR5") == (True, None)

    @pytest.mark.parametrize(
        "raw, expected",
        [("DIMM (288-pin)", "DIMM"), ("sodimm", "SO-DIMM"), ("SO-DIMM", "SO-DIMM"), (None, None)],
    )
    def test_memory_form_factor(self, raw, expected):
        assert normalize_memory_form_factor(raw) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("LRDIMM", "LRDIMM"),
            ("RDIMM", "RDIMM"),
            ("DDR5 UDIMM", "UDIMM"),
            ("Registered ECC", "RDIMM"),
            ("Unbuffered", "UDIMM"),
            ("SODIMM", None),
            (None, None),
        ],
    )
    def test_module_type(self, raw, expected):
        assert normalize_module_type(raw) == expected


class TestFrequencyAnalysis:
    def test_limited(self):
        a = analyze_memory_frequency(5600, 4800)
        assert a.status == "limited"
        assert a.effective_frequency == 4800

    def test_optimal(self):
        a = analyze_memory_frequency(4800, 4800)
        assert a.status == "optimal"
        assert a.message == "RAM will operate at full rated speed of 4800MHz"

    def test_suboptimal(self):
        assert analyze_memory_frequency(3200, 4800).status == "suboptimal"

    def test_no_ceiling(self):
        a = analyze_memory_frequency(4800, None)
        assert a.status == "optimal"
        assert "no constraints" in a.message

    def test_unknown_speed(self):
        assert analyze_memory_frequency(None, 4800) is None


# ──────────────────────────────────────────────
# Socket
# ──────────────────────────────────────────────


class TestSocket:
    def test_case_and_whitespace_insensitive(self):
        assert sockets_match("LGA4677", "lga4677 ") is True

    def test_mismatch(self):
        assert sockets_match("LGA4677", "LGA4189") is False

    def test_unknown(self):
        assert sockets_match(None, "SP5") is None
        assert sockets_match("SP5", "  ") is None


# ──────────────────────────────────────────────
# Storage
# ──────────────────────────────────────────────


class TestStorage:
    @pytest.mark.parametrize(
        "raw, protocol, generation",
        [
            ("NVMe PCIe 4.0", "nvme", 4.0),
            ("PCIe NVMe 4.0", "nvme", 4.0),
            ("SATA III", "sata", 3.0),
            ("SAS3", "sas", 3.0),
        ],
    )
    def test_parse_interface(self, raw, protocol, generation):
        parsed = parse_storage_interface(raw)
        assert parsed.protocol == protocol
        assert parsed.generation == generation

    def test_extract_protocol_priority(self):
        assert extract_protocol("SAS/SATA") == "sas"
        assert extract_protocol("SATA III") == "sata"
        assert extract_protocol("PCIe 4.0 x4") == "nvme"
        assert extract_protocol(None) == "unknown"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ('2.5"', "2.5-inch"),
            ("2.5 inch", "2.5-inch"),
            ("3.5_inch", "3.5-inch"),
            ("M.2 2280", "m.2"),
            ("U.3", "u.3"),
            ("E1.S", "e1.s"),
            (None, None),
        ],
    )
    def test_normalize_form_factor(self, raw, expected):
        assert normalize_form_factor(raw) == expected

    def test_form_factor_size(self):
        assert form_factor_size("3.5_inch") == "3.5-inch"
        assert form_factor_size("M.2") is None

    def test_bay_type(self):
        assert normalize_bay_type("3.5_inch") == "3.5-inch"
        assert normalize_bay_type("U.2 NVMe") == "u.2-nvme"

    def test_storage_pcie_generation(self):
        assert storage_pcie_generation("NVMe PCIe 5.0") == 5.0
        assert storage_pcie_generation("NVMe") == 3.0


# ──────────────────────────────────────────────
# PCIe / networking
# ──────────────────────────────────────────────


class TestPCIe:
    def test_slot_size(self):
        assert slot_size("PCIe 4.0 x8") == "x8"
        assert slot_size("x16") == "x16"
        assert slot_size("PCIe 5.0") is None

    def test_backward_fit(self):
        assert compatible_slot_sizes("x8") == ["x8", "x16"]
        assert compatible_slot_sizes("x1") == ["x1", "x4", "x8", "x16"]
        assert compatible_slot_sizes("x3") == []

    def test_generation(self):
        assert pcie_generation("PCIe 4.0 x8") == 4.0
        assert pcie_generation("Gen5 x16") == 5.0
        assert pcie_generation("PCIe 4.0 x8", explicit=3) == 3.0
        assert pcie_generation(None) is None

    def test_lanes(self):
        assert lanes_from_interface("PCIe 4.0 x16") == 16
        assert lanes_from_interface(None) == 4


class TestNetworking:
    def test_speed(self):
        assert speed_gbps("25GbE") == 25.0
        assert speed_gbps("1000Mbps") == 1.0
        assert speed_gbps("10G") == 10.0
        assert speed_gbps(None) is None

    def test_max_speed(self):
        assert max_speed_gbps(["10GbE", "25GbE"]) == 25.0
        assert max_speed_gbps([]) is None

    def test_port_type(self):
        assert normalize_port_type(" sfp28 ") == "SFP28"
        assert normalize_port_type("") is None
