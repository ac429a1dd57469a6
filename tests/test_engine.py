"""Discovery engine orchestration, events and cancellation."""

import asyncio

import pytest
from conftest import CISCO_SWITCH_SYSTEM

from netsurvey.agent.models import AgentDevice, AgentVlan, DiscoverVlansResponse, ProbeResponse
from netsurvey.discovery.engine import DiscoveryEngine
from netsurvey.discovery.events import EventEmitter, EventType
from netsurvey.discovery.models import DeviceCategory, DeviceStatus, SwitchTarget
from netsurvey.discovery.oids import BRIDGE
from netsurvey.errors import ConnectivityError, ProtocolError, ValidationError
from netsurvey.settings import SurveySettings

SWITCH_IP = "10.0.0.2"
MAC_OID = f"{BRIDGE.FDB_PORT}.0.26.171.5.2.39"


def _recorder(engine):
    events = []
    engine.events.subscribe(events.append)
    return events


def _types(events, *wanted):
    return [e.event_type for e in events if not wanted or e.event_type in wanted]


def _run_events(events):
    return _types(
        events,
        EventType.RUN_STARTED, EventType.RUN_COMPLETE,
        EventType.RUN_CANCELLED, EventType.RUN_FAILED,
    )


def _switch_network(agent):
    """/29 with one Cisco switch at .2; everything else silent."""
    agent.probes[SWITCH_IP] = ProbeResponse(reachable=True, mac_address="00:00:0c:12:34:56")
    agent.system[SWITCH_IP] = CISCO_SWITCH_SYSTEM
    agent.vlans[SWITCH_IP] = DiscoverVlansResponse(vlans=[
        AgentVlan(vlan_id=1, name="default"),
        AgentVlan(vlan_id=10, name="Management"),
    ])
    agent.walks[(SWITCH_IP, BRIDGE.FDB_PORT, "public")] = [(MAC_OID, 3)]


# =============================================================================
# Subnet scan
# =============================================================================

@pytest.mark.asyncio
async def test_scan_classifies_reachable_hosts(agent):
    _switch_network(agent)

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        result = await engine.scan_subnet("10.0.0.0/29")

    assert result.hosts_planned == 6
    assert result.hosts_scanned == 6
    assert (result.reachable, result.unreachable, result.failed) == (1, 5, 0)
    assert len(result.devices) == 1

    device = result.devices[0]
    assert device.ip_address == SWITCH_IP
    assert device.status is DeviceStatus.ONLINE
    assert device.mac_address == "00:00:0C:12:34:56"
    assert device.manufacturer == "Cisco"
    assert device.model == "C3750"
    assert device.hostname == "sw1"
    assert device.category is DeviceCategory.SWITCH
    assert not device.needs_verification

    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_COMPLETE]
    assert _types(events, EventType.HOST_STARTED).count(EventType.HOST_STARTED) == 6
    assert _types(events, EventType.DEVICE_DISCOVERED) == [EventType.DEVICE_DISCOVERED]

    probed = [args[0] for args in agent.calls_to("probe")]
    assert probed == [f"10.0.0.{i}" for i in range(1, 7)]
    assert agent.calls[0] == ("health", ())


@pytest.mark.asyncio
async def test_scan_progress_is_monotonic(agent):
    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        await engine.scan_subnet("10.0.0.0/29")

    percents = [e.data["percent"] for e in events if e.event_type == EventType.PROGRESS]
    assert percents == sorted(percents)
    assert percents[-1] == 100


@pytest.mark.asyncio
async def test_run_complete_carries_summary(agent):
    _switch_network(agent)

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        await engine.scan_subnet("10.0.0.0/29")

    complete = [e for e in events if e.event_type == EventType.RUN_COMPLETE][0]
    assert complete.data["operation"] == "scan"
    assert complete.data["summary"]["reachable"] == 1
    assert complete.data["summary"]["devices_by_category"]["Switch"] == 1


@pytest.mark.asyncio
async def test_routed_hosts_have_no_mac(agent):
    agent.probes["10.0.0.1"] = ProbeResponse(reachable=True, mac_address="00:00:0c:12:34:56")

    async with DiscoveryEngine(agent) as engine:
        result = await engine.scan_subnet("10.0.0.0/30", local_ip="192.168.1.10", local_prefix=24)

    device = result.get_device("10.0.0.1")
    assert device.is_routed
    assert device.mac_address is None
    # SNMP not configured for this host
    assert device.needs_verification


@pytest.mark.asyncio
async def test_probe_errors_and_unreachable_hosts_recorded(agent):
    agent.probes["10.0.0.1"] = ProtocolError("probe timed out")
    settings = SurveySettings(include_unreachable=True)

    async with DiscoveryEngine(agent, settings) as engine:
        events = _recorder(engine)
        result = await engine.scan_subnet("10.0.0.0/30")

    assert result.failed == 1
    assert result.unreachable == 1
    assert result.get_device("10.0.0.1").status is DeviceStatus.UNKNOWN
    assert result.get_device("10.0.0.2").status is DeviceStatus.OFFLINE
    assert EventType.HOST_FAILED in _types(events)
    assert _run_events(events)[-1] == EventType.RUN_COMPLETE


@pytest.mark.asyncio
async def test_unreachable_hosts_omitted_by_default(agent):
    async with DiscoveryEngine(agent) as engine:
        result = await engine.scan_subnet("10.0.0.0/30")

    assert result.devices == []
    assert result.unreachable == 2


@pytest.mark.asyncio
async def test_invalid_cidr_fails_before_start(agent):
    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        with pytest.raises(ValidationError):
            await engine.scan_subnet("10.0.0.0/33")

    assert events == []
    assert agent.calls == []


@pytest.mark.asyncio
async def test_unhealthy_agent_fails_run(agent):
    agent.health_status = "down"

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        with pytest.raises(ConnectivityError):
            await engine.scan_subnet("10.0.0.0/30")

    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_FAILED]
    assert agent.calls_to("probe") == []


@pytest.mark.asyncio
async def test_connectivity_loss_mid_scan_keeps_partial_result(agent):
    agent.probes["10.0.0.1"] = ProbeResponse(reachable=True, mac_address="00:00:0c:aa:bb:cc")
    agent.probes["10.0.0.2"] = ConnectivityError("agent went away")

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        result = await engine.scan_subnet("10.0.0.0/29")

    assert result.aborted
    assert not result.cancelled
    assert [d.ip_address for d in result.devices] == ["10.0.0.1"]
    assert result.hosts_scanned == 1
    assert result.errors == ["10.0.0.2: agent went away"]
    assert result.to_dict()["aborted"] is True
    assert [args[0] for args in agent.calls_to("probe")] == ["10.0.0.1", "10.0.0.2"]

    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_FAILED]
    failed = events[-1]
    assert failed.data["error"] == "10.0.0.2: agent went away"
    assert failed.data["summary"]["devices"] == 1


@pytest.mark.asyncio
async def test_connectivity_loss_during_run_skips_switch_stages(agent):
    _switch_network(agent)
    agent.probes["10.0.0.3"] = ConnectivityError("agent went away")

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        result = await engine.run("10.0.0.0/29")

    assert result.aborted
    assert [d.ip_address for d in result.devices] == [SWITCH_IP]
    assert result.vlans == []
    assert agent.calls_to("discover_vlans") == []
    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_FAILED]


@pytest.mark.asyncio
async def test_cancel_between_hosts_keeps_partial_result(agent):
    cancel = asyncio.Event()

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        engine.events.subscribe(lambda e: cancel.set(), EventType.HOST_UNREACHABLE)
        result = await engine.scan_subnet("10.0.0.0/29", cancel_event=cancel)

    assert result.cancelled
    assert result.hosts_scanned == 1
    assert len(agent.calls_to("probe")) == 1
    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_CANCELLED]


@pytest.mark.asyncio
async def test_engine_cancel_method(agent):
    async with DiscoveryEngine(agent) as engine:
        engine.events.subscribe(lambda e: engine.cancel(), EventType.HOST_STARTED)
        result = await engine.scan_subnet("10.0.0.0/29")

        assert result.cancelled
        assert result.hosts_scanned == 1

        # The next top-level call starts clean
        engine.events.clear()
        again = await engine.scan_subnet("10.0.0.0/30")
        assert not again.cancelled


# =============================================================================
# VLANs and MAC tables
# =============================================================================

@pytest.mark.asyncio
async def test_discover_vlans_merges_switches(agent):
    agent.vlans["10.0.0.2"] = DiscoverVlansResponse(vlans=[
        AgentVlan(vlan_id=20, name="Users"),
        AgentVlan(vlan_id=10, name="Management"),
    ])
    agent.vlans["10.0.0.3"] = DiscoverVlansResponse(vlans=[
        AgentVlan(vlan_id=20, name="users"),
    ])

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        result = await engine.discover_vlans([
            SwitchTarget("10.0.0.2", hostname="SW1"),
            SwitchTarget("10.0.0.3", hostname="SW2"),
            "10.0.0.4",
        ])

    assert [v.vlan_id for v in result.vlans] == [10, 20]
    assert result.vlans[1].name == "Users"
    assert result.vlans[1].used_by == ["SW1", "SW2"]
    assert result.switches_attempted == 3
    assert result.switches_failed == 1
    assert result.errors[0].startswith("10.0.0.4:")
    assert _types(events, EventType.SWITCH_COMPLETE, EventType.SWITCH_FAILED) == [
        EventType.SWITCH_COMPLETE, EventType.SWITCH_COMPLETE, EventType.SWITCH_FAILED,
    ]
    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_COMPLETE]


@pytest.mark.asyncio
async def test_discover_vlans_validates_input(agent):
    async with DiscoveryEngine(agent) as engine:
        with pytest.raises(ValidationError):
            await engine.discover_vlans([])
        with pytest.raises(ValidationError):
            await engine.discover_vlans(["switch-one"])
    assert agent.calls == []


@pytest.mark.asyncio
async def test_discover_mac_addresses(agent):
    agent.walks[(SWITCH_IP, BRIDGE.FDB_PORT, "public")] = [(MAC_OID, 3)]

    settings = SurveySettings(resolve_ports=False)
    async with DiscoveryEngine(agent, settings) as engine:
        events = _recorder(engine)
        table = await engine.discover_mac_addresses(
            SwitchTarget(SWITCH_IP, hostname="sw1"), [10, 1]
        )

    assert table.switch == "sw1"
    assert table.vlan_ids == [1, 10]
    assert table.failed_vlans == [10]
    assert [(e.mac_address, e.port) for e in table.mac_addresses] == [("00:1A:AB:05:02:27", "Port 3")]

    progress = [e.data for e in events if e.event_type == EventType.PROGRESS]
    assert [p["percent"] for p in progress] == [50, 100]
    assert progress[0]["message"] == "sw1 VLAN 1: 1 MAC addresses"
    assert EventType.SWITCH_COMPLETE in _types(events)


@pytest.mark.asyncio
async def test_discover_mac_addresses_every_vlan_failing(agent):
    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        table = await engine.discover_mac_addresses(SWITCH_IP, [1, 10])

    assert table.failed_vlans == [1, 10]
    assert EventType.SWITCH_FAILED in _types(events)
    # Per-VLAN failures do not fail the operation
    assert _run_events(events)[-1] == EventType.RUN_COMPLETE


@pytest.mark.asyncio
async def test_discover_mac_addresses_rejects_empty_vlans(agent):
    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        with pytest.raises(ValidationError, match="No VLANs"):
            await engine.discover_mac_addresses(SWITCH_IP, [])

    assert events == []
    assert agent.calls == []


@pytest.mark.asyncio
async def test_agent_mac_mode(agent):
    settings = SurveySettings(mac_mode="agent")

    async with DiscoveryEngine(agent, settings) as engine:
        table = await engine.discover_mac_addresses(SWITCH_IP, [1])

    assert agent.calls_to("discover_mac_addresses")
    assert agent.calls_to("snmp_walk") == []
    assert table.failed_vlans == [1]


# =============================================================================
# Single device
# =============================================================================

@pytest.mark.asyncio
async def test_identify_device(agent):
    agent.devices[SWITCH_IP] = AgentDevice(
        sys_name="sw1.example.com", manufacturer="Cisco", model="C9300", type="switch",
    )

    async with DiscoveryEngine(agent) as engine:
        device = await engine.identify_device(SWITCH_IP)

    assert device.hostname == "sw1"
    assert device.category is DeviceCategory.SWITCH
    assert not device.needs_verification


@pytest.mark.asyncio
async def test_identify_device_failure(agent):
    async with DiscoveryEngine(agent) as engine:
        with pytest.raises(ProtocolError):
            await engine.identify_device("10.0.0.9")


# =============================================================================
# Full pipeline
# =============================================================================

@pytest.mark.asyncio
async def test_full_run(agent):
    _switch_network(agent)

    async with DiscoveryEngine(agent, SurveySettings(resolve_ports=False)) as engine:
        events = _recorder(engine)
        result = await engine.run("10.0.0.0/29")

    assert [v.vlan_id for v in result.vlans] == [1, 10]
    assert result.vlans[0].used_by == ["sw1"]
    assert [(m.vlan_id, m.mac_address) for m in result.mac_addresses] == [(1, "00:1A:AB:05:02:27")]
    assert result.switches_attempted == 1
    assert result.mac_vlans_failed == 1
    assert result.completed_at is not None
    assert not result.cancelled

    # One bracket around the whole survey
    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_COMPLETE]
    assert events[0].data["operation"] == "survey"
    assert len(agent.calls_to("health")) == 1

    summary = [e for e in events if e.event_type == EventType.RUN_COMPLETE][0].data["summary"]
    assert summary["vlans"] == 2
    assert summary["mac_addresses"] == 1


@pytest.mark.asyncio
async def test_run_without_switches_skips_switch_stages(agent):
    async with DiscoveryEngine(agent) as engine:
        result = await engine.run("10.0.0.0/30")

    assert result.vlans == []
    assert agent.calls_to("discover_vlans") == []


@pytest.mark.asyncio
async def test_run_primary_switch_only(agent):
    _switch_network(agent)
    agent.vlans["10.0.0.9"] = DiscoverVlansResponse(vlans=[AgentVlan(vlan_id=30, name="Voice")])
    settings = SurveySettings(vlan_switches="primary", resolve_ports=False)

    async with DiscoveryEngine(agent, settings) as engine:
        result = await engine.run("10.0.0.0/29", switches=["10.0.0.9"])

    assert [args[0] for args in agent.calls_to("discover_vlans")] == ["10.0.0.9"]
    assert result.switches_attempted == 1
    assert [v.vlan_id for v in result.vlans] == [30]


@pytest.mark.asyncio
async def test_run_cancelled_during_scan_skips_switches(agent):
    _switch_network(agent)
    cancel = asyncio.Event()

    async with DiscoveryEngine(agent) as engine:
        events = _recorder(engine)
        engine.events.subscribe(lambda e: cancel.set(), EventType.DEVICE_DISCOVERED)
        result = await engine.run("10.0.0.0/29", cancel_event=cancel)

    assert result.cancelled
    assert result.hosts_scanned == 2
    assert agent.calls_to("discover_vlans") == []
    assert _run_events(events) == [EventType.RUN_STARTED, EventType.RUN_CANCELLED]


@pytest.mark.asyncio
async def test_stream_consumer_sees_whole_run(agent):
    _switch_network(agent)
    emitter = EventEmitter()
    stream = emitter.stream()

    async with DiscoveryEngine(agent, event_emitter=emitter) as engine:
        task = asyncio.create_task(engine.scan_subnet("10.0.0.0/29"))
        received = [event async for event in stream]
        result = await task

    assert received[0].event_type == EventType.RUN_STARTED
    assert received[-1].event_type == EventType.RUN_COMPLETE
    assert result.reachable == 1
