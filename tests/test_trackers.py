"""Tests for the resource trackers (PCIe, riser, M.2/U.2, SATA, HBA, bays, NIC ports)."""

from __future__ import annotations

import itertools

from rackwise.engine.context import ValidationContext
from rackwise.engine.results import ResourceKind
from rackwise.engine.trackers import (
    DRIVE_BAYS,
    HBA_PORTS,
    M2_TRACKER,
    NIC_PORTS,
    PCIE_SLOTS,
    RISER_SLOTS,
    SATA_PORTS,
    U2_TRACKER,
    get_resource_availability,
)
from rackwise.models.components import Component, ComponentType, SourceType
from rackwise.models.configuration import Configuration

T = ComponentType


def _make(component_type: ComponentType, uuid: str, **kw) -> Component:
    return Component(component_type=component_type, uuid=uuid, **kw)


def _ctx(lookup, *components: Component) -> ValidationContext:
    return ValidationContext(Configuration(components=list(components)), lookup)


# ──────────────────────────────────────────────
# PCIe slots
# ──────────────────────────────────────────────


class TestPCIeSlots:
    def test_no_motherboard(self, lookup):
        usage = PCIE_SLOTS.availability(_ctx(lookup, _make(T.PCIE_CARD, "gpu-x16")))
        assert not usage.provider_present
        assert usage.reason == "No motherboard in configuration"
        assert PCIE_SLOTS.assign(_ctx(lookup), "x8") is None

    def test_motherboard_slots(self, lookup):
        usage = PCIE_SLOTS.availability(_ctx(lookup, _make(T.MOTHERBOARD, "mb-x13")))
        assert usage.total == 3
        assert usage.used == 0
        assert usage.by_size["x16"].total == 2
        assert usage.by_size["x8"].total == 1

    def test_smallest_sufficient_slot(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), _make(T.PCIE_CARD, "card-x8"))
        assert PCIE_SLOTS.placement(ctx).slot_of("card-x8") == "pcie_x8_slot_1"
        assert PCIE_SLOTS.assign(ctx, "x8") == "pcie_x16_slot_1"

    def test_explicit_slot_position_honoured(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x13"),
            _make(T.PCIE_CARD, "card-x8", slot_position="pcie_x16_slot_2"),
        )
        placement = PCIE_SLOTS.placement(ctx)
        assert placement.slot_of("card-x8") == "pcie_x16_slot_2"

    def test_explicit_slot_too_small_falls_back(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x13"),
            _make(T.PCIE_CARD, "gpu-x16", slot_position="pcie_x8_slot_1"),
        )
        assert PCIE_SLOTS.placement(ctx).slot_of("gpu-x16") == "pcie_x16_slot_1"

    def test_placement_is_order_independent(self, lookup):
        parts = [
            _make(T.PCIE_CARD, "card-x8"),
            _make(T.PCIE_CARD, "gpu-x16"),
            _make(T.PCIE_CARD, "card-x8b"),
        ]
        seen = set()
        for perm in itertools.permutations(parts):
            ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), *perm)
            seen.add(tuple(sorted(PCIE_SLOTS.placement(ctx).assignments.items())))
        assert seen == {
            (
                ("pcie_x16_slot_1", "gpu-x16"),
                ("pcie_x16_slot_2", "card-x8b"),
                ("pcie_x8_slot_1", "card-x8"),
            )
        }

    def test_quantity_consumes_slots(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), _make(T.PCIE_CARD, "card-x8", quantity=2))
        assert PCIE_SLOTS.availability(ctx).used == 2

    def test_hba_and_nic_take_slots(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x13"),
            _make(T.HBA_CARD, "hba-9400"),
            _make(T.NIC, "nic-sfp28"),
        )
        usage = PCIE_SLOTS.availability(ctx)
        assert usage.used == 2
        assert set(usage.assignments.values()) == {"hba-9400", "nic-sfp28"}

    def test_riser_adds_slots(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), _make(T.PCIE_CARD, "riser-2x8"))
        usage = PCIE_SLOTS.availability(ctx)
        assert usage.total == 5
        assert usage.by_source["riser"].total == 2
        assert usage.by_source["motherboard"].total == 3
        slot_ids = [s.slot_id for s in PCIE_SLOTS.placement(ctx).slots]
        assert "riser_riser-2x8_pcie_x8_slot_1" in slot_ids
        assert "riser_riser-2x8_pcie_x8_slot_2" in slot_ids

    def test_motherboard_slot_preferred_over_riser(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x13"),
            _make(T.PCIE_CARD, "riser-2x8"),
            _make(T.PCIE_CARD, "card-x8"),
        )
        assert PCIE_SLOTS.placement(ctx).slot_of("card-x8") == "pcie_x8_slot_1"

    def test_overcommit(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x12"),
            _make(T.PCIE_CARD, "gpu-x16"),
            _make(T.PCIE_CARD, "card-x8"),
        )
        usage = PCIE_SLOTS.availability(ctx)
        assert usage.total == 1
        assert usage.used == 2
        assert usage.overcommitted
        assert usage.reason == "1 component(s) could not be placed"
        assert [d.uuid for d in PCIE_SLOTS.placement(ctx).unplaced] == ["card-x8"]

    def test_unknown_card_assumes_x1(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x12"), _make(T.PCIE_CARD, "card-unknown"))
        assert PCIE_SLOTS.placement(ctx).slot_of("card-unknown") == "pcie_x16_slot_1"


# ──────────────────────────────────────────────
# Riser slots
# ──────────────────────────────────────────────


class TestRiserSlots:
    def test_riser_slot_consumed(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), _make(T.PCIE_CARD, "riser-2x8"))
        usage = RISER_SLOTS.availability(ctx)
        assert usage.total == 2
        assert usage.used == 1
        assert usage.assignments == {"riser_x16_slot_1": "riser-2x8"}
        assert RISER_SLOTS.assign(ctx, "x16") == "riser_x16_slot_2"

    def test_board_without_risers(self, lookup):
        usage = RISER_SLOTS.availability(_ctx(lookup, _make(T.MOTHERBOARD, "mb-x12")))
        assert usage.provider_present
        assert usage.total == 0
        assert usage.reason == "Motherboard does not support riser cards"

    def test_legacy_riser_count(self, lookup):
        lookup.add(
            T.MOTHERBOARD,
            "mb-legacy",
            {"uuid": "mb-legacy", "expansion_slots": {"riser_compatibility": {"max_risers": 3}}},
        )
        usage = RISER_SLOTS.availability(_ctx(lookup, _make(T.MOTHERBOARD, "mb-legacy")))
        assert usage.total == 3
        assert list(usage.by_size) == ["x16"]


# ──────────────────────────────────────────────
# M.2 / U.2
# ──────────────────────────────────────────────


class TestNvmeSlots:
    def test_no_provider(self, lookup):
        usage = M2_TRACKER.availability(_ctx(lookup, _make(T.STORAGE, "nvme-m2")))
        assert not usage.provider_present
        assert usage.reason == "No motherboard or adapter card in configuration"
        assert not M2_TRACKER.can_fit(_ctx(lookup), 1)

    def test_motherboard_slots(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), _make(T.STORAGE, "nvme-m2"))
        usage = M2_TRACKER.availability(ctx)
        assert (usage.total, usage.used) == (2, 1)
        assert usage.assignments == {"m2_slot_1": "nvme-m2"}
        assert usage.by_source["motherboard"].used == 1
        assert usage.by_source["expansion_card"].total == 0
        assert M2_TRACKER.assign(ctx) == "m2_slot_2"

    def test_adapter_overflow(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-m2quad"),
            _make(T.STORAGE, "nvme-m2", quantity=4),
            _make(T.PCIE_CARD, "m2-adapter-4"),
        )
        usage = M2_TRACKER.availability(ctx)
        assert (usage.total, usage.used) == (8, 4)
        assert M2_TRACKER.assign(ctx) == "m2-adapter-4_m2_slot_1"
        assert M2_TRACKER.can_fit(ctx, 4)
        assert not M2_TRACKER.can_fit(ctx, 5)

    def test_pinned_to_adapter(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x13"),
            _make(T.PCIE_CARD, "m2-adapter-4"),
            _make(T.STORAGE, "nvme-m2", slot_position="m2-adapter-4_m2_slot_1"),
        )
        usage = M2_TRACKER.availability(ctx)
        assert usage.assignments == {"m2-adapter-4_m2_slot_1": "nvme-m2"}
        assert usage.by_source["motherboard"].used == 0

    def test_adapter_without_motherboard(self, lookup):
        ctx = _ctx(lookup, _make(T.PCIE_CARD, "m2-adapter-1"), _make(T.STORAGE, "nvme-m2"))
        usage = M2_TRACKER.availability(ctx)
        assert usage.provider_present
        assert usage.assignments == {"m2-adapter-1_m2_slot_1": "nvme-m2"}

    def test_unplaced_drive(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x12"), _make(T.STORAGE, "nvme-m2", quantity=2))
        usage = M2_TRACKER.availability(ctx)
        assert usage.overcommitted
        assert usage.reason == "1 drive(s) without a free m2 slot"

    def test_motherboard_requirement(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.STORAGE, "nvme-m2", quantity=5),
            _make(T.PCIE_CARD, "m2-adapter-1"),
        )
        assert M2_TRACKER.motherboard_requirement(ctx) == 4

    def test_u2(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), _make(T.STORAGE, "nvme-u2", quantity=2))
        usage = U2_TRACKER.availability(ctx)
        assert (usage.total, usage.used) == (2, 2)
        assert not U2_TRACKER.can_fit(ctx)
        # U.2 drives never count against M.2 slots
        assert M2_TRACKER.availability(ctx).used == 0


# ──────────────────────────────────────────────
# SATA / HBA ports
# ──────────────────────────────────────────────


class TestPorts:
    def test_sata_ports(self, lookup):
        ctx = _ctx(lookup, _make(T.MOTHERBOARD, "mb-x13"), _make(T.STORAGE, "ssd-sata-25", quantity=3))
        usage = SATA_PORTS.availability(ctx)
        assert (usage.total, usage.used) == (4, 3)
        assert SATA_PORTS.assign(ctx) == "sata_port_4"
        assert not SATA_PORTS.can_fit(ctx, 2)

    def test_sata_backplane_bypasses_ports(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x13"),
            _make(T.CHASSIS, "chassis-35"),
            _make(T.STORAGE, "hdd-sata-35", quantity=6),
        )
        assert SATA_PORTS.availability(ctx).used == 0

    def test_hba_ports(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.HBA_CARD, "hba-9400"),
            _make(T.STORAGE, "hdd-sas-35", quantity=3),
            _make(T.STORAGE, "ssd-sata-25", quantity=2),
            _make(T.STORAGE, "nvme-m2"),
        )
        usage = HBA_PORTS.availability(ctx)
        assert (usage.total, usage.used) == (8, 5)
        assert usage.by_source["hba-9400"].total == 8
        assert HBA_PORTS.assign(ctx) == "hba_port_6"

    def test_no_hba(self, lookup):
        usage = HBA_PORTS.availability(_ctx(lookup, _make(T.STORAGE, "hdd-sas-35")))
        assert not usage.provider_present
        assert usage.reason == "No HBA card in configuration"


# ──────────────────────────────────────────────
# Drive bays
# ──────────────────────────────────────────────


class TestDriveBays:
    def test_no_chassis(self, lookup):
        usage = DRIVE_BAYS.availability(_ctx(lookup, _make(T.STORAGE, "hdd-sata-35")))
        assert usage.reason == "No chassis in configuration"
        assert DRIVE_BAYS.effective_limit(_ctx(lookup)) is None

    def test_bays_by_size(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.CHASSIS, "chassis-35"),
            _make(T.STORAGE, "hdd-sata-35", quantity=4),
            _make(T.STORAGE, "ssd-sata-25", quantity=2),
            _make(T.STORAGE, "nvme-m2"),
        )
        usage = DRIVE_BAYS.availability(ctx)
        assert (usage.total, usage.used) == (12, 6)
        assert usage.by_size["3.5-inch"].used == 6
        assert DRIVE_BAYS.assign(ctx) == "bay_7"

    def test_small_drives_overflow_into_large_bays(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.CHASSIS, "chassis-mixed"),
            _make(T.STORAGE, "ssd-sata-25", quantity=2),
            _make(T.STORAGE, "ssd-sata-25b"),
        )
        usage = DRIVE_BAYS.availability(ctx)
        assert usage.by_size["2.5-inch"].used == 2
        assert usage.by_size["3.5-inch"].used == 1
        assert usage.available == 3

    def test_effective_limit_capped_by_hba(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.CHASSIS, "chassis-35"),
            _make(T.HBA_CARD, "hba-9400"),
            _make(T.STORAGE, "hdd-sas-35"),
        )
        assert DRIVE_BAYS.effective_limit(ctx) == 8

    def test_effective_limit_native_sas(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.CHASSIS, "chassis-25"),
            _make(T.HBA_CARD, "hba-9400"),
            _make(T.STORAGE, "ssd-sas-25"),
        )
        assert DRIVE_BAYS.effective_limit(ctx) == 10


# ──────────────────────────────────────────────
# NIC ports
# ──────────────────────────────────────────────


class TestNICPorts:
    def _sfp_ctx(self, lookup, *extra: Component) -> ValidationContext:
        return _ctx(
            lookup,
            _make(T.NIC, "nic-sfp28"),
            _make(T.SFP, "sfp-28-sr", parent_nic_uuid="nic-sfp28", port_index=1),
            *extra,
        )

    def test_occupancy(self, lookup):
        ctx = self._sfp_ctx(lookup)
        usage = NIC_PORTS.availability(ctx)
        assert (usage.total, usage.used) == (2, 1)
        assert usage.assignments == {"nic-sfp28_port_1": "sfp-28-sr"}
        assert NIC_PORTS.assign(ctx, "nic-sfp28") == "nic-sfp28_port_2"

    def test_can_fit(self, lookup):
        ctx = self._sfp_ctx(lookup)
        assert not NIC_PORTS.can_fit(ctx, ("nic-sfp28", 1))
        assert NIC_PORTS.can_fit(ctx, ("nic-sfp28", 2))
        assert not NIC_PORTS.can_fit(ctx, ("nic-sfp28", 3))
        assert not NIC_PORTS.can_fit(ctx, ("nic-gone", 1))

    def test_orphan_sfp_still_counted(self, lookup):
        ctx = self._sfp_ctx(
            lookup, _make(T.SFP, "sfp-plus-lr", parent_nic_uuid="nic-gone", port_index=1)
        )
        assert NIC_PORTS.availability(ctx).used == 2

    def test_no_nic(self, lookup):
        assert not NIC_PORTS.availability(_ctx(lookup)).provider_present

    def test_onboard_nic_ports(self, lookup):
        ctx = _ctx(
            lookup,
            _make(T.MOTHERBOARD, "mb-x13"),
            _make(
                T.NIC, "onboard-mb-x13-1",
                source_type=SourceType.ONBOARD, parent_component_uuid="mb-x13",
            ),
        )
        assert NIC_PORTS.availability(ctx).total == 2
        # onboard NICs do not sit in a PCIe slot
        assert PCIE_SLOTS.availability(ctx).used == 0


# ──────────────────────────────────────────────
# Public entry
# ──────────────────────────────────────────────


class TestGetResourceAvailability:
    def test_dispatch(self, lookup):
        config = Configuration(
            components=[_make(T.MOTHERBOARD, "mb-x13"), _make(T.STORAGE, "ssd-sata-25")]
        )
        usage = get_resource_availability(ResourceKind.SATA_PORTS, config, lookup)
        assert usage.kind == ResourceKind.SATA_PORTS
        assert usage.to_dict()["available"] == 3
