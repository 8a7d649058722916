"""Tests for the pairwise compatibility rules."""

from __future__ import annotations

import pytest

from rackwise.engine.pair_rules import (
    PAIR_RULES,
    caddy_form_factors,
    caddy_size,
    chassis_bay_sizes,
    check_pair,
    compatible_sfp_types,
    is_sfp_port,
    motherboard_storage_interfaces,
    sfp_type_compatible,
    storage_interface_score,
)
from rackwise.models.components import ComponentType
from rackwise.models.specs import CPUSpec, MotherboardSpec, NICSpec, StorageSpec

T = ComponentType


def _spec(lookup, component_type: ComponentType, uuid: str):
    return lookup.find(component_type, uuid).spec


def _pair(lookup, a_type, a_uuid, b_type, b_uuid):
    return check_pair(a_type, _spec(lookup, a_type, a_uuid), b_type, _spec(lookup, b_type, b_uuid))


# ──────────────────────────────────────────────
# Dispatch
# ──────────────────────────────────────────────


class TestCheckPair:
    def test_swapped_order_uses_same_rule(self, lookup):
        forward = _pair(lookup, T.CPU, "cpu-icx", T.MOTHERBOARD, "mb-x13")
        backward = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.CPU, "cpu-icx")
        assert forward.issues == backward.issues
        assert not forward.compatible

    def test_missing_spec_is_unchecked(self, lookup):
        result = check_pair(T.CPU, None, T.MOTHERBOARD, _spec(lookup, T.MOTHERBOARD, "mb-x13"))
        assert result.compatible
        assert not result.warnings

    def test_unregistered_pair(self, lookup):
        result = _pair(lookup, T.CPU, "cpu-spr", T.SFP, "sfp-28-sr")
        assert result.compatible
        assert (T.CPU, T.SFP) not in PAIR_RULES


# ──────────────────────────────────────────────
# CPU / Motherboard / RAM
# ──────────────────────────────────────────────


class TestCPUMotherboard:
    def test_matching_socket(self, lookup):
        result = _pair(lookup, T.CPU, "cpu-spr", T.MOTHERBOARD, "mb-x13")
        assert result.compatible
        assert result.warnings == []

    def test_socket_normalized(self, lookup):
        assert _pair(lookup, T.CPU, "cpu-spr-oem", T.MOTHERBOARD, "mb-x13").compatible

    def test_socket_mismatch(self, lookup):
        result = _pair(lookup, T.CPU, "cpu-icx", T.MOTHERBOARD, "mb-x13")
        assert result.issues == [
            "Socket mismatch: CPU socket (LGA4189) does not match motherboard socket (LGA4677)"
        ]
        assert result.codes == ["socket_mismatch"]

    def test_tdp_warning(self, lookup):
        cpu = CPUSpec(socket="LGA4677", tdp_w=400)
        result = check_pair(T.CPU, cpu, T.MOTHERBOARD, _spec(lookup, T.MOTHERBOARD, "mb-x13"))
        assert result.compatible
        assert result.warnings == ["CPU TDP (400W) may exceed motherboard's recommended limit (350W)"]

    def test_newer_pcie_on_cpu(self, lookup):
        cpu = CPUSpec(socket="LGA4189", pcie_generation=5.0)
        result = check_pair(T.CPU, cpu, T.MOTHERBOARD, _spec(lookup, T.MOTHERBOARD, "mb-x12"))
        assert result.warnings == ["CPU supports newer PCIe version (5) than motherboard (4)"]
        assert "Consider upgrading motherboard for full PCIe performance" in result.recommendations


class TestMotherboardRAM:
    def test_compatible(self, lookup):
        result = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.RAM, "ram-ddr5")
        assert result.compatible
        assert result.warnings == []

    def test_type_unsupported(self, lookup):
        result = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.RAM, "ram-ddr4")
        assert result.issues == ["Memory type incompatible: DDR4 not supported by motherboard"]
        assert result.codes == ["memory_type_unsupported"]

    def test_speed_warns(self, lookup):
        result = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.RAM, "ram-ddr5-5600")
        assert result.compatible
        assert result.warnings == [
            "RAM speed (5600MHz) exceeds motherboard maximum (4800MHz) - will run at reduced speed"
        ]

    def test_form_factor_mismatch(self, lookup):
        result = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.RAM, "ram-sodimm")
        assert result.codes == ["memory_form_factor_mismatch"]
        assert "SO-DIMM not supported by motherboard (DIMM)" in result.issues[0]

    def test_ecc_on_non_ecc_board(self, lookup):
        mb = MotherboardSpec.model_validate({"memory": {"types": ["DDR5"], "ecc_support": "no"}})
        result = check_pair(T.MOTHERBOARD, mb, T.RAM, _spec(lookup, T.RAM, "ram-ddr5"))
        assert result.compatible
        assert result.warnings == [
            "ECC memory used with non-ECC motherboard - ECC features will be disabled"
        ]


class TestCPURAM:
    def test_type_mismatch_only_warns(self, lookup):
        result = _pair(lookup, T.CPU, "cpu-spr", T.RAM, "ram-ddr4")
        assert result.compatible
        assert result.warnings == ["RAM type DDR4 may have compatibility issues with CPU (supports DDR5)"]

    def test_speed_over_cpu_limit(self, lookup):
        result = _pair(lookup, T.CPU, "cpu-spr", T.RAM, "ram-ddr5-5600")
        assert result.warnings == ["RAM speed (5600MHz) exceeds CPU specification (4800MHz)"]
        assert result.recommendations == ["Memory will run at CPU's maximum supported speed"]


# ──────────────────────────────────────────────
# Storage
# ──────────────────────────────────────────────


class TestMotherboardStorage:
    def test_native_interfaces(self, lookup):
        mb = _spec(lookup, T.MOTHERBOARD, "mb-x13")
        assert motherboard_storage_interfaces(mb) == ["SATA III", "NVMe PCIe 4", "NVMe U.2"]

    def test_perfect_match(self, lookup):
        score, message = storage_interface_score(
            _spec(lookup, T.STORAGE, "ssd-sata-25"), _spec(lookup, T.MOTHERBOARD, "mb-x13")
        )
        assert score == 0.95
        assert message == "Perfect interface match: SATA III"

    def test_same_protocol_and_generation(self, lookup):
        score, message = storage_interface_score(
            _spec(lookup, T.STORAGE, "nvme-m2"), _spec(lookup, T.MOTHERBOARD, "mb-x13")
        )
        assert score == 0.95
        assert message == "Interface compatible: NVMe PCIe 4.0 matches NVMe PCIe 4"

    def test_newer_nvme_uses_adapter_path(self, lookup):
        result = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.STORAGE, "nvme-m2-gen5")
        assert result.compatible
        assert "interface_score=0.80" in result.details
        assert "NVMe storage can use PCIe slot with adapter" in result.details

    def test_interface_incompatible(self, lookup):
        result = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.STORAGE, "hdd-sas-35")
        assert not result.compatible
        assert result.codes == ["storage_interface_incompatible"]
        assert result.issues == [
            "Storage requires SAS3 but motherboard only supports: SATA III, NVMe PCIe 4, NVMe U.2"
        ]

    def test_board_without_storage_data(self, lookup):
        mb = MotherboardSpec.model_validate({"socket": "LGA4677"})
        result = check_pair(T.MOTHERBOARD, mb, T.STORAGE, _spec(lookup, T.STORAGE, "hdd-sas-35"))
        assert result.compatible
        assert result.details == []

    def test_add_in_card_bandwidth_reduced(self, lookup):
        card = StorageSpec(interface="NVMe PCIe 5.0", form_factor="Add-in Card", pcie_lanes=4)
        result = check_pair(T.MOTHERBOARD, _spec(lookup, T.MOTHERBOARD, "mb-x12"), T.STORAGE, card)
        assert result.compatible
        assert result.warnings == [
            "Reduced bandwidth: Storage requires PCIe 5 but motherboard provides 4"
        ]


class TestCaddy:
    def test_caddy_helpers(self, lookup):
        assert caddy_size(_spec(lookup, T.CADDY, "caddy-25")) == "2.5-inch"
        assert caddy_form_factors(_spec(lookup, T.CADDY, "caddy-35")) == ["3.5-inch", "2.5-inch"]

    def test_nvme_needs_no_caddy(self, lookup):
        result = _pair(lookup, T.STORAGE, "nvme-m2", T.CADDY, "caddy-25")
        assert result.compatible
        assert result.details[0].startswith("M.2/U.2 storage does not require caddy")

    def test_caddy_form_factor_mismatch(self, lookup):
        result = _pair(lookup, T.STORAGE, "hdd-sata-35", T.CADDY, "caddy-25")
        assert result.issues == ["Storage form factor (3.5-inch) not supported by caddy"]
        assert result.codes == ["caddy_form_factor_mismatch"]

    def test_large_caddy_takes_small_drive(self, lookup):
        assert _pair(lookup, T.STORAGE, "ssd-sata-25b", T.CADDY, "caddy-35").compatible


# ──────────────────────────────────────────────
# Chassis
# ──────────────────────────────────────────────


class TestChassis:
    def test_bay_sizes(self, lookup):
        assert chassis_bay_sizes(_spec(lookup, T.CHASSIS, "chassis-mixed")) == ["2.5-inch", "3.5-inch"]

    def test_storage_wrong_bay(self, lookup):
        result = _pair(lookup, T.CHASSIS, "chassis-25", T.STORAGE, "hdd-sata-35")
        assert result.issues == [
            "Storage form factor 3.5-inch not compatible with chassis bay types (2.5-inch)"
        ]
        assert result.codes == ["form_factor_incompatible"]

    def test_storage_mixed_chassis(self, lookup):
        assert _pair(lookup, T.CHASSIS, "chassis-mixed", T.STORAGE, "ssd-sata-25").compatible
        assert _pair(lookup, T.CHASSIS, "chassis-mixed", T.STORAGE, "hdd-sata-35").compatible

    def test_m2_ignores_bays(self, lookup):
        assert _pair(lookup, T.CHASSIS, "chassis-35", T.STORAGE, "nvme-m2").compatible

    def test_caddy_chassis_mismatch(self, lookup):
        result = _pair(lookup, T.CHASSIS, "chassis-35", T.CADDY, "caddy-25")
        assert result.codes == ["caddy_chassis_mismatch"]
        assert result.issues == [
            "Cannot add 2.5-inch caddy - chassis only has 3.5-inch bays (strict matching required)"
        ]


# ──────────────────────────────────────────────
# Networking
# ──────────────────────────────────────────────


class TestNetworking:
    @pytest.mark.parametrize(
        "port, sfp, ok",
        [
            ("SFP28", "SFP+", True),
            ("SFP28", "sfp28", True),
            ("SFP+", "SFP28", False),
            ("QSFP28", "QSFP+", True),
            ("RJ45", "SFP+", False),
            ("Unknown", "SFP", False),
        ],
    )
    def test_sfp_type_matrix(self, port, sfp, ok):
        assert sfp_type_compatible(port, sfp) is ok

    def test_sfp_port_detection(self):
        assert is_sfp_port("SFP+")
        assert not is_sfp_port("RJ45")
        assert compatible_sfp_types("rj45") == []

    def test_nic_sfp_compatible(self, lookup):
        assert _pair(lookup, T.NIC, "nic-sfp28", T.SFP, "sfp-28-sr").compatible

    def test_nic_sfp_type_incompatible(self, lookup):
        result = _pair(lookup, T.NIC, "nic-sfp28", T.SFP, "sfp-qsfp28")
        assert result.issues == ["SFP type QSFP28 not compatible with NIC port type SFP28"]
        assert result.codes == ["sfp_type_incompatible"]
        assert result.recommendations == [
            "Compatible SFP types for this NIC: SFP28, SFP+, SFP+ DAC, SFP"
        ]

    def test_nic_sfp_rj45(self, lookup):
        result = _pair(lookup, T.NIC, "nic-rj45", T.SFP, "sfp-plus-lr")
        assert result.recommendations == ["This NIC has no SFP cages"]

    def test_sfp_speed_exceeds_nic(self, lookup):
        nic = NICSpec(port_type="SFP28", speeds=["10GbE"])
        result = check_pair(T.NIC, nic, T.SFP, _spec(lookup, T.SFP, "sfp-28-sr"))
        assert result.codes == ["sfp_speed_exceeds_nic"]
        assert result.issues == ["SFP speed 25G exceeds NIC maximum speed 10G"]

    def test_motherboard_nic_generation(self, lookup):
        result = _pair(lookup, T.MOTHERBOARD, "mb-x13", T.NIC, "nic-rj45")
        assert result.compatible
        assert result.warnings == ["NIC is PCIe Gen 3, motherboard supports Gen 5"]

    def test_motherboard_nic_slot_too_small(self, lookup):
        mb = MotherboardSpec.model_validate({"pcie_slots": [{"type": "PCIe 4.0 x4", "count": 1}]})
        result = check_pair(T.MOTHERBOARD, mb, T.NIC, _spec(lookup, T.NIC, "nic-sfp28"))
        assert result.warnings == [
            "NIC requires x8 slot but motherboard's largest PCIe slot is x4"
        ]
