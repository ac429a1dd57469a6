"""Per-switch VLAN discovery and cross-switch merging."""

from conftest import CISCO_VLAN_BRIEF

from netsurvey.agent.models import AgentVlan, DiscoverVlansResponse
from netsurvey.discovery.models import ConnectionMethod, DiscoveredVlan, SwitchTarget
from netsurvey.discovery.oids import CISCO_VTP, QBRIDGE
from netsurvey.discovery.vlans import VlanDiscovery, VlanRegistry, merge_vlans


def test_merge_keeps_first_name_and_unions_users():
    sw1 = [
        DiscoveredVlan(vlan_id=20, name="Users", used_by=["SW1"]),
        DiscoveredVlan(vlan_id=10, name="Management", used_by=["SW1"]),
    ]
    sw2 = [
        DiscoveredVlan(vlan_id=20, name="users-renamed", used_by=["SW2"]),
        DiscoveredVlan(vlan_id=30, name="Voice", used_by=["SW2"]),
    ]

    merged = merge_vlans([sw1, sw2])

    assert [v.vlan_id for v in merged] == [10, 20, 30]
    vlan20 = merged[1]
    assert vlan20.name == "Users"
    assert vlan20.used_by == ["SW1", "SW2"]


def test_merge_is_idempotent():
    vlans = [DiscoveredVlan(vlan_id=10, name="Management", used_by=["SW1"])]

    registry = VlanRegistry()
    registry.extend(vlans)
    registry.extend(vlans)

    assert len(registry) == 1
    assert registry.merged()[0].used_by == ["SW1"]
    assert 10 in registry
    assert registry.vlan_ids() == [10]


def test_registry_does_not_alias_inputs():
    original = DiscoveredVlan(vlan_id=10, name="Management", used_by=["SW1"])
    registry = VlanRegistry()
    registry.add(original)
    registry.add(DiscoveredVlan(vlan_id=10, name="x", used_by=["SW2"]))

    assert original.used_by == ["SW1"]


def test_agent_source_first(agent):
    agent.vlans["10.0.0.2"] = DiscoverVlansResponse(
        vlans=[
            AgentVlan(vlan_id=1, name="default"),
            AgentVlan(vlan_id="10", name="Management", used_by=["sw1", "sw9"]),
            AgentVlan(vlan_id=4095, name="reserved"),
        ],
        invalid_vlans=["abc"],
    )

    result = VlanDiscovery(agent).discover_switch(
        SwitchTarget("10.0.0.2", hostname="sw1", manufacturer="Cisco")
    )

    assert result.success
    assert result.source == "agent"
    assert [v.vlan_id for v in result.vlans] == [1, 10]
    assert result.vlans[0].used_by == ["sw1"]
    assert result.vlans[1].used_by == ["sw1", "sw9"]
    assert agent.calls_to("discover_vlans")[0][3] == "Cisco"


def test_vtp_fallback_for_cisco(agent):
    ip = "10.0.0.2"
    agent.walks[(ip, CISCO_VTP.VLAN_STATE, "public")] = [
        (f"{CISCO_VTP.VLAN_STATE}.1.1", 1),
        (f"{CISCO_VTP.VLAN_STATE}.1.20", 1),
        (f"{CISCO_VTP.VLAN_STATE}.1.30", 2),
    ]
    agent.walks[(ip, CISCO_VTP.VLAN_NAME, "public")] = [
        (f"{CISCO_VTP.VLAN_NAME}.1.1", "default"),
        (f"{CISCO_VTP.VLAN_NAME}.1.20", "Users"),
        (f"{CISCO_VTP.VLAN_NAME}.1.30", "Suspended"),
    ]

    result = VlanDiscovery(agent).discover_switch(SwitchTarget(ip, manufacturer="Cisco"))

    assert result.source == "vtp"
    assert [(v.vlan_id, v.name) for v in result.vlans] == [(1, "default"), (20, "Users")]
    assert result.vlans[0].used_by == [ip]
    assert any(e.startswith("agent:") for e in result.errors)


def test_qbridge_for_other_vendors(agent):
    ip = "10.0.0.3"
    agent.walks[(ip, QBRIDGE.VLAN_STATIC_NAME, "netops")] = [
        (f"{QBRIDGE.VLAN_STATIC_NAME}.10", "Servers"),
        (f"{QBRIDGE.VLAN_STATIC_NAME}.5000", "bogus"),
    ]

    discovery = VlanDiscovery(agent, community="netops")
    result = discovery.discover_switch(SwitchTarget(ip, hostname="hp1", manufacturer="HP"))

    assert result.source == "qbridge"
    assert [(v.vlan_id, v.name) for v in result.vlans] == [(10, "Servers")]
    walked = [args[1] for args in agent.calls_to("snmp_walk")]
    assert CISCO_VTP.VLAN_STATE not in walked


def test_per_switch_community_override(agent):
    ip = "10.0.0.3"
    agent.walks[(ip, QBRIDGE.VLAN_STATIC_NAME, "special")] = [
        (f"{QBRIDGE.VLAN_STATIC_NAME}.10", "Servers"),
    ]

    result = VlanDiscovery(agent).discover_switch(SwitchTarget(ip, community="special"))
    assert result.success


def test_cli_fallback_moves_ports(agent):
    ip = "10.0.0.2"
    agent.cli_outputs["show vlan brief"] = CISCO_VLAN_BRIEF
    discovery = VlanDiscovery(agent, cli_username="admin", cli_password="secret")

    result = discovery.discover_switch(SwitchTarget(ip, hostname="sw1", manufacturer="Cisco"))

    assert result.source == "ssh"
    by_id = {v.vlan_id: v for v in result.vlans}
    assert by_id[10].used_by == ["sw1"]
    assert by_id[10].ports == ["Gi0/3", "Gi0/4"]

    commands = [args[2] for args in agent.calls_to("session_execute")]
    assert commands == ["terminal length 0", "show vlan brief"]
    assert agent.calls_to("session_disconnect")


def test_cli_falls_back_to_telnet(agent):
    agent.failing_methods.add("ssh")
    agent.cli_outputs["show vlan brief"] = CISCO_VLAN_BRIEF
    discovery = VlanDiscovery(agent, cli_username="admin", cli_password="secret")

    result = discovery.discover_switch(SwitchTarget("10.0.0.2", manufacturer="Cisco"))

    assert result.source == ConnectionMethod.TELNET.value
    connects = agent.calls_to("session_connect")
    assert [(c[0], c[3]) for c in connects] == [("ssh", 22), ("telnet", 23)]


def test_unparseable_cli_output_fails_switch(agent):
    agent.cli_outputs["show vlan brief"] = "% Invalid input detected"
    discovery = VlanDiscovery(agent, cli_username="admin", cli_password="secret")

    result = discovery.discover_switch(SwitchTarget("10.0.0.2", manufacturer="Cisco"))

    assert not result.success
    # A parse failure is not retried over telnet
    assert [c[0] for c in agent.calls_to("session_connect")] == ["ssh"]


def test_every_source_failing(agent):
    result = VlanDiscovery(agent).discover_switch(SwitchTarget("10.0.0.9"))

    assert not result.success
    assert result.vlans == []
    assert "cli: no credentials" in result.errors
