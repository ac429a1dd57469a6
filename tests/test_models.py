"""Data model invariants and serialization."""

import json

import pytest

from netsurvey.discovery.models import (
    DeviceCategory,
    DeviceStatus,
    DiscoveredDevice,
    DiscoveredMacAddressEntry,
    DiscoveredVlan,
    DiscoveryResult,
    MacTableResult,
    SwitchTarget,
    is_valid_vlan_id,
)
from netsurvey.errors import ValidationError


@pytest.mark.parametrize("vlan_id,valid", [
    (0, False),
    (1, True),
    (4094, True),
    (4095, False),
    (-1, False),
    ("10", False),
    (True, False),
])
def test_vlan_id_range(vlan_id, valid):
    assert is_valid_vlan_id(vlan_id) is valid


def test_discovered_vlan_rejects_reserved_ids():
    with pytest.raises(ValidationError):
        DiscoveredVlan(vlan_id=4095, name="reserved")
    with pytest.raises(ValidationError):
        DiscoveredVlan(vlan_id=0, name="zero")


def test_discovered_vlan_defaults():
    vlan = DiscoveredVlan(vlan_id=10, name="Management", used_by=["sw1", "sw2", "sw1"])

    assert vlan.segment_name == "Management"
    assert vlan.used_by == ["sw1", "sw2"]
    assert vlan.add_user("sw3")
    assert not vlan.add_user("sw1")
    assert vlan.used_by == ["sw1", "sw2", "sw3"]


def test_mac_entry_rejects_invalid_vlan():
    with pytest.raises(ValidationError):
        DiscoveredMacAddressEntry(mac_address="00:00:0C:00:00:01", vlan_id=5000, device_type="IoT")


def test_device_verification_tracks_identity_fields():
    device = DiscoveredDevice(ip_address="10.0.0.1", manufacturer="Cisco")
    assert device.update_verification()

    device.model = "C3750"
    device.hostname = "sw1"
    assert not device.update_verification()
    assert device.identifier == "sw1"


def test_device_dict_round_trip_keeps_enums():
    device = DiscoveredDevice(
        ip_address="10.0.0.2",
        hostname="sw1",
        category=DeviceCategory.SWITCH,
        status=DeviceStatus.ONLINE,
    )
    restored = DiscoveredDevice.from_dict(device.to_dict())

    assert restored.category is DeviceCategory.SWITCH
    assert restored.status is DeviceStatus.ONLINE
    assert restored.hostname == "sw1"


def test_vlan_from_dict():
    vlan = DiscoveredVlan(
        vlan_id=20, name="Voice", segment_name="Phones", subnet="10.20.0.0/24",
        used_by=["sw1", "sw2"], ports=["Gi0/1"],
    )
    assert DiscoveredVlan.from_dict(vlan.to_dict()) == vlan

    minimal = DiscoveredVlan.from_dict({'vlan_id': 30})
    assert minimal.name == "VLAN30"
    assert minimal.segment_name == "VLAN30"
    assert minimal.used_by == []

    with pytest.raises(ValidationError):
        DiscoveredVlan.from_dict({'vlan_id': 4095, 'name': "reserved"})


def test_switch_target_from_device():
    device = DiscoveredDevice(ip_address="10.0.0.2", hostname="sw1", manufacturer="Cisco")
    target = SwitchTarget.from_device(device)

    assert target.ip_address == "10.0.0.2"
    assert target.identifier == "sw1"
    assert target.manufacturer == "Cisco"
    assert SwitchTarget("10.0.0.3").identifier == "10.0.0.3"


def test_result_validate_rejects_duplicate_ips():
    result = DiscoveryResult(devices=[
        DiscoveredDevice(ip_address="10.0.0.1"),
        DiscoveredDevice(ip_address="10.0.0.1"),
    ])
    with pytest.raises(ValidationError, match="Duplicate device IP"):
        result.validate()


def test_result_validate_rejects_duplicate_vlans():
    result = DiscoveryResult(vlans=[
        DiscoveredVlan(vlan_id=10, name="a"),
        DiscoveredVlan(vlan_id=10, name="b"),
    ])
    with pytest.raises(ValidationError, match="Duplicate VLAN"):
        result.validate()


def test_result_validate_rejects_orphan_mac_entries():
    result = DiscoveryResult(
        vlans=[DiscoveredVlan(vlan_id=10, name="Management")],
        mac_addresses=[
            DiscoveredMacAddressEntry(mac_address="00:00:0C:00:00:01", vlan_id=20, device_type="IoT"),
        ],
    )
    with pytest.raises(ValidationError, match="VLAN 20"):
        result.validate()


def test_summary_counts_every_category():
    result = DiscoveryResult(
        cidr="10.0.0.0/29",
        hosts_planned=6,
        devices=[
            DiscoveredDevice(ip_address="10.0.0.1", category=DeviceCategory.SWITCH),
            DiscoveredDevice(ip_address="10.0.0.2", category=DeviceCategory.SWITCH),
            DiscoveredDevice(ip_address="10.0.0.3"),
        ],
    )
    summary = result.summary

    assert summary["devices"] == 3
    assert summary["needs_verification"] == 3
    assert summary["devices_by_category"]["Switch"] == 2
    assert summary["devices_by_category"]["Other"] == 1
    assert set(summary["devices_by_category"]) == {c.value for c in DeviceCategory}


def test_result_to_json():
    result = DiscoveryResult(
        cidr="10.0.0.0/30",
        vlans=[DiscoveredVlan(vlan_id=1, name="default", used_by=["sw1"])],
    )
    data = json.loads(result.to_json())

    assert data["cidr"] == "10.0.0.0/30"
    assert data["vlans"][0]["used_by"] == ["sw1"]
    assert data["summary"]["vlans"] == 1
    assert data["duration_seconds"] is None


def test_mac_table_summary():
    table = MacTableResult(
        switch="sw1",
        vlan_ids=[1, 10],
        failed_vlans=[10],
        mac_addresses=[
            DiscoveredMacAddressEntry(mac_address="00:00:0C:00:00:01", vlan_id=1, device_type="IoT"),
        ],
    )
    assert table.summary == {"switch": "sw1", "vlans": 2, "failed_vlans": 1, "mac_addresses": 1}
