"""Event emitter, bounded streams and console printer."""

import pytest

from netsurvey.discovery.events import (
    ConsoleEventPrinter,
    DiscoveryEvent,
    EventEmitter,
    EventStream,
    EventType,
    LogLevel,
)


def _event(event_type=EventType.PROGRESS, **data):
    return DiscoveryEvent(event_type=event_type, data=data)


def test_subscribe_and_filter():
    emitter = EventEmitter()
    everything, progress_only = [], []
    emitter.subscribe(everything.append)
    emitter.subscribe(progress_only.append, EventType.PROGRESS)

    emitter.progress("scan", "10.0.0.1: Switch", 50)
    emitter.log("hello")

    assert [e.event_type for e in everything] == [EventType.PROGRESS, EventType.LOG_MESSAGE]
    assert [e.event_type for e in progress_only] == [EventType.PROGRESS]

    emitter.unsubscribe(everything.append)
    emitter.log("again")
    assert len(everything) == 2


def test_listener_error_does_not_stop_delivery():
    emitter = EventEmitter()
    received = []

    def broken(event):
        raise RuntimeError("listener bug")

    emitter.subscribe(broken)
    emitter.subscribe(received.append)
    emitter.log("still delivered")

    assert received[0].message == "still delivered"


def test_progress_is_clamped():
    emitter = EventEmitter()
    event = emitter.emit(EventType.PROGRESS)
    assert event.data == {}

    received = []
    emitter.subscribe(received.append)
    emitter.progress("macs", "over", 150)
    emitter.progress("macs", "under", -5)

    assert [e.data["percent"] for e in received] == [100, 0]
    assert emitter.stats.percent == 0


def test_stats_follow_events():
    emitter = EventEmitter()
    emitter.run_started("scan", "10.0.0.0/29")
    emitter.scan_started("10.0.0.0/29", 6, 6, False)
    emitter.device_discovered("10.0.0.1", "sw1", "Cisco", "C3750", "Switch", None, False)
    emitter.host_unreachable("10.0.0.2")
    emitter.host_failed("10.0.0.3", "timeout")
    emitter.switch_complete("sw1", "vlans", 4, "agent")
    emitter.switch_complete("sw1", "macs", 12, "walk")
    emitter.switch_failed("sw2", "vlans", "no VLANs")

    stats = emitter.stats
    assert stats.hosts_planned == 6
    assert stats.hosts_scanned == 3
    assert (stats.reachable, stats.unreachable, stats.failed) == (1, 1, 1)
    assert stats.reachable_rate == pytest.approx(100 / 3)
    assert (stats.vlans, stats.mac_addresses) == (4, 12)
    assert (stats.switches_done, stats.switches_failed) == (3, 1)


def test_run_started_resets_stats():
    emitter = EventEmitter()
    emitter.host_failed("10.0.0.3", "timeout")
    emitter.run_started("scan", "10.0.0.0/29")
    assert emitter.stats.failed == 0
    assert emitter.stats.current_target == "10.0.0.0/29"


def test_stream_constructor_rejects_zero():
    with pytest.raises(ValueError):
        EventStream(maxsize=0)


@pytest.mark.asyncio
async def test_stream_drops_oldest_when_full():
    stream = EventStream(maxsize=2)
    for n in range(3):
        stream.put(_event(n=n))
    assert stream.dropped == 1

    stream.put(_event(EventType.RUN_COMPLETE))
    assert stream.dropped == 2
    assert stream.closed

    received = [event async for event in stream]
    assert [e.event_type for e in received] == [EventType.PROGRESS, EventType.RUN_COMPLETE]
    assert received[0].data == {"n": 2}


@pytest.mark.asyncio
async def test_stream_ends_after_terminal_event():
    emitter = EventEmitter()
    stream = emitter.stream()

    emitter.run_started("scan", "10.0.0.0/30")
    emitter.progress("scan", "10.0.0.1: no reply", 50)
    emitter.run_complete("scan", 1.5, {"devices": 0})
    emitter.log("after the end")

    received = [event async for event in stream]
    types = [e.event_type for e in received]

    assert types[0] == EventType.RUN_STARTED
    assert types[-1] == EventType.RUN_COMPLETE
    assert EventType.LOG_MESSAGE not in types
    assert received[-1].data["summary"] == {"devices": 0}


@pytest.mark.asyncio
async def test_close_streams_ends_iteration():
    emitter = EventEmitter()
    stream = emitter.stream()
    emitter.log("one")
    emitter.close_streams()

    received = [event async for event in stream]
    assert [e.message for e in received] == ["one"]


def test_terminal_events():
    assert _event(EventType.RUN_FAILED).is_terminal
    assert _event(EventType.RUN_CANCELLED).is_terminal
    assert not _event(EventType.SWITCH_FAILED).is_terminal


def test_console_printer(capsys):
    printer = ConsoleEventPrinter(verbose=False, color=False)
    emitter = EventEmitter()
    emitter.subscribe(printer.handle_event)

    emitter.host_started("10.0.0.1", 1, 6)
    emitter.progress("scan", "10.0.0.1: no reply", 16)
    emitter.device_discovered("10.0.0.2", "sw1", "Cisco", "C3750", "Switch", None, True)
    emitter.host_failed("10.0.0.3", "x" * 80)
    emitter.log("debug detail", LogLevel.DEBUG)
    emitter.log("careful", LogLevel.WARNING)

    out = capsys.readouterr().out
    assert "Probing" not in out
    assert "no reply" not in out
    assert "FOUND: sw1 (Switch, Cisco C3750) [verify]" in out
    assert "FAILED: 10.0.0.3 - " + "x" * 57 + "..." in out
    assert "debug detail" not in out
    assert "careful" in out
    assert "\033[" not in out


def test_console_printer_verbose(capsys):
    printer = ConsoleEventPrinter(verbose=True, color=False)
    emitter = EventEmitter()
    emitter.subscribe(printer.handle_event)

    emitter.host_started("10.0.0.1", 1, 6)
    emitter.progress("scan", "10.0.0.1: no reply", 16)
    emitter.log("debug detail", LogLevel.DEBUG)

    out = capsys.readouterr().out
    assert "[1/6] Probing: 10.0.0.1" in out
    assert " 16% 10.0.0.1: no reply" in out
    assert "[DEBUG] debug detail" in out
