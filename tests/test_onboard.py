"""Tests for onboard NIC synthesis."""

from __future__ import annotations

from rackwise.engine.context import ValidationContext
from rackwise.engine.lookup import SpecLookupError
from rackwise.engine.onboard import (
    ONBOARD_INTERFACE,
    OnboardNICSynthesizer,
    onboard_nic_spec,
    onboard_nic_uuid,
)
from rackwise.engine.trackers import NIC_PORTS, PCIE_SLOTS
from rackwise.models.components import Component, ComponentType, SourceType
from rackwise.models.configuration import Configuration
from rackwise.models.specs import MotherboardSpec, NICSpec


def _mb(lookup, uuid: str = "mb-x13") -> MotherboardSpec:
    return lookup.find(ComponentType.MOTHERBOARD, uuid).spec


class TestOnboardSpec:
    def test_uuid_truncates_motherboard_id(self):
        assert onboard_nic_uuid("3f2a9c1d-77aa-4e1b", 2) == "onboard-3f2a9c1d-2"

    def test_spec_from_motherboard(self, lookup):
        spec = onboard_nic_spec(_mb(lookup), "onboard-mb-x13-1")
        assert isinstance(spec, NICSpec)
        assert spec.model == "Onboard Intel X710"
        assert spec.interface == ONBOARD_INTERFACE
        assert spec.ports == 2
        assert spec.port_type == "SFP+"
        assert spec.speeds == ["10GbE"]

    def test_index_out_of_range(self, lookup):
        assert onboard_nic_spec(_mb(lookup), "onboard-mb-x13-2") is None
        assert onboard_nic_spec(_mb(lookup), "nic-sfp28") is None

    def test_board_without_onboard_nics(self, lookup):
        assert onboard_nic_spec(_mb(lookup, "mb-x12"), "onboard-mb-x12-1") is None


class TestOnboardNICSynthesizer:
    def test_motherboard_added(self, lookup):
        mb = Component(component_type=ComponentType.MOTHERBOARD, uuid="mb-x13")
        created = OnboardNICSynthesizer().on_motherboard_added(Configuration(components=[mb]), mb, lookup)

        assert [c.uuid for c in created] == ["onboard-mb-x13-1"]
        nic = created[0]
        assert nic.component_type == ComponentType.NIC
        assert nic.source_type == SourceType.ONBOARD
        assert nic.parent_component_uuid == "mb-x13"
        # The synthesized spec is registered with a writable lookup
        assert lookup.find(ComponentType.NIC, "onboard-mb-x13-1").found

    def test_existing_onboard_nic_not_duplicated(self, lookup):
        mb = Component(component_type=ComponentType.MOTHERBOARD, uuid="mb-x13")
        onboard = Component(
            component_type=ComponentType.NIC,
            uuid="onboard-mb-x13-1",
            source_type=SourceType.ONBOARD,
            parent_component_uuid="mb-x13",
        )
        config = Configuration(components=[mb, onboard])
        assert OnboardNICSynthesizer().on_motherboard_added(config, mb, lookup) == []

    def test_board_without_networking(self, lookup):
        mb = Component(component_type=ComponentType.MOTHERBOARD, uuid="mb-x12")
        assert OnboardNICSynthesizer().on_motherboard_added(Configuration(components=[mb]), mb, lookup) == []

    def test_unknown_board(self, lookup):
        mb = Component(component_type=ComponentType.MOTHERBOARD, uuid="mb-missing")
        assert OnboardNICSynthesizer().on_motherboard_added(Configuration(components=[mb]), mb, lookup) == []

    def test_motherboard_removed(self, lookup):
        config = Configuration(
            components=[
                Component(component_type=ComponentType.MOTHERBOARD, uuid="mb-x13"),
                Component(
                    component_type=ComponentType.NIC,
                    uuid="onboard-mb-x13-1",
                    source_type=SourceType.ONBOARD,
                    parent_component_uuid="mb-x13",
                ),
                Component(component_type=ComponentType.NIC, uuid="nic-sfp28"),
            ]
        )
        assert OnboardNICSynthesizer().on_motherboard_removed(config, "mb-x13") == ["onboard-mb-x13-1"]


class TestOnboardInContext:
    def test_spec_resolved_without_registration(self, lookup):
        onboard = Component(
            component_type=ComponentType.NIC,
            uuid="onboard-mb-x13-1",
            source_type=SourceType.ONBOARD,
            parent_component_uuid="mb-x13",
        )
        config = Configuration(
            components=[Component(component_type=ComponentType.MOTHERBOARD, uuid="mb-x13"), onboard]
        )
        ctx = ValidationContext(config, lookup)

        assert lookup.find(ComponentType.NIC, onboard.uuid).error == SpecLookupError.NOT_FOUND
        assert isinstance(ctx.spec(onboard), NICSpec)
        assert NIC_PORTS.ports_of(ctx, onboard) == 2
        assert PCIE_SLOTS.placement(ctx).assignments == {}
