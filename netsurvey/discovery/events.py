"""
netsurvey - Discovery Event System.

Structured events emitted by the discovery engine. Consumers either
subscribe a synchronous callback (CLI printer, logging bridge) or open
an EventStream and iterate it with `async for`.

Event Flow:
    run_started -> scan_started -> (host_started ->
    device_discovered/host_unreachable/host_failed -> progress)* ->
    (switch_started -> progress* -> switch_complete/switch_failed)* ->
    run_complete/run_cancelled/run_failed

Every stream ends after the run_* terminal event.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Discovery event types."""
    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_COMPLETE = "run_complete"
    RUN_CANCELLED = "run_cancelled"
    RUN_FAILED = "run_failed"

    # Subnet scan
    SCAN_STARTED = "scan_started"
    HOST_STARTED = "host_started"
    DEVICE_DISCOVERED = "device_discovered"
    HOST_UNREACHABLE = "host_unreachable"
    HOST_FAILED = "host_failed"

    # Switch interrogation (VLANs and MAC tables)
    SWITCH_STARTED = "switch_started"
    SWITCH_COMPLETE = "switch_complete"
    SWITCH_FAILED = "switch_failed"

    # Aggregated updates
    PROGRESS = "progress"
    STATS_UPDATED = "stats_updated"

    LOG_MESSAGE = "log_message"


TERMINAL_EVENTS = frozenset({
    EventType.RUN_COMPLETE,
    EventType.RUN_CANCELLED,
    EventType.RUN_FAILED,
})


class LogLevel(str, Enum):
    """Log message severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


@dataclass
class DiscoveryStats:
    """Running counters for the current operation."""
    hosts_planned: int = 0
    hosts_scanned: int = 0
    reachable: int = 0
    unreachable: int = 0
    failed: int = 0

    vlans: int = 0
    mac_addresses: int = 0
    switches_done: int = 0
    switches_failed: int = 0

    stage: str = ""
    percent: int = 0
    current_target: str = ""
    status: str = "Ready"

    @property
    def reachable_rate(self) -> float:
        """Reachable hosts as a percentage of hosts scanned."""
        if self.hosts_scanned == 0:
            return 0.0
        return (self.reachable / self.hosts_scanned) * 100


@dataclass
class DiscoveryEvent:
    """
    Event emitted by the discovery engine.

    All events have a type, timestamp, and event-specific data.
    """
    event_type: EventType
    timestamp: datetime = field(default_factory=datetime.now)
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return self.data.get("message", "")

    @property
    def target(self) -> str:
        return self.data.get("target", "")

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENTS


EventCallback = Callable[[DiscoveryEvent], None]


class EventStream:
    """
    Bounded async view of the event flow.

    When the consumer falls behind, the oldest queued event is dropped
    and counted in `dropped`. Iteration stops after a terminal event
    or close().

    Usage:
        stream = emitter.stream()
        task = asyncio.create_task(engine.scan_subnet("10.0.0.0/24"))
        async for event in stream:
            print(event.event_type.value, event.data)
    """

    def __init__(self, maxsize: int = 1000):
        if maxsize < 1:
            raise ValueError("EventStream needs room for at least one event")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._finished = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: Optional[DiscoveryEvent]) -> None:
        """Enqueue without blocking; None marks end of stream."""
        if self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)
        if event is None or event.is_terminal:
            self._closed = True

    def close(self) -> None:
        self.put(None)

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> DiscoveryEvent:
        if self._finished:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self._finished = True
            raise StopAsyncIteration
        if event.is_terminal:
            self._finished = True
        return event


class EventEmitter:
    """
    Event emitter for the discovery engine.

    Emitting must happen on the event loop thread when streams are
    attached; the engine marshals worker-thread progress onto the loop.

    Usage:
        emitter = EventEmitter()
        emitter.subscribe(my_handler)
        emitter.subscribe(progress_handler, EventType.PROGRESS)
        stream = emitter.stream(maxsize=200)
    """

    def __init__(self):
        self._listeners: List[tuple] = []
        self._streams: List[EventStream] = []
        self._stats = DiscoveryStats()

    @property
    def stats(self) -> DiscoveryStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = DiscoveryStats()

    def subscribe(
        self,
        callback: EventCallback,
        event_type: Optional[EventType] = None
    ) -> None:
        """
        Subscribe to events.

        Args:
            callback: Function to call with DiscoveryEvent
            event_type: If specified, only receive this event type
        """
        self._listeners.append((callback, event_type))

    def unsubscribe(self, callback: EventCallback) -> None:
        self._listeners = [
            (cb, et) for cb, et in self._listeners if cb != callback
        ]

    def stream(self, maxsize: int = 1000) -> EventStream:
        """Attach a new bounded stream that receives every later event."""
        stream = EventStream(maxsize=maxsize)
        self._streams.append(stream)
        return stream

    def close_streams(self) -> None:
        for stream in self._streams:
            stream.close()
        self._streams.clear()

    def clear(self) -> None:
        """Remove all listeners and close all streams."""
        self._listeners.clear()
        self.close_streams()

    def emit(self, event_type: EventType, **data) -> DiscoveryEvent:
        """
        Emit an event to all listeners and open streams.

        Returns:
            The emitted event
        """
        event = DiscoveryEvent(
            event_type=event_type,
            timestamp=datetime.now(),
            data=data
        )

        for callback, filter_type in self._listeners:
            if filter_type is None or filter_type == event_type:
                try:
                    callback(event)
                except Exception as e:
                    # Listener errors never break discovery
                    logger.error(f"Event listener error: {e}")

        for stream in self._streams:
            stream.put(event)
        self._streams = [s for s in self._streams if not s.closed]

        return event

    # =========================================================================
    # Run lifecycle
    # =========================================================================

    def run_started(self, operation: str, target: str, **details) -> None:
        """Emit run started event and reset stats."""
        self.reset_stats()
        self._stats.status = f"Running {operation}"
        self._stats.current_target = target

        self.emit(EventType.RUN_STARTED, operation=operation, target=target, **details)
        self._emit_stats_update()

    def run_complete(
        self,
        operation: str,
        duration_seconds: float,
        summary: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._stats.status = "Complete"
        self._stats.percent = 100
        self._emit_stats_update()

        self.emit(
            EventType.RUN_COMPLETE,
            operation=operation,
            duration_seconds=duration_seconds,
            summary=summary or {},
        )

    def run_cancelled(
        self,
        operation: str,
        summary: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._stats.status = "Cancelled"
        self._emit_stats_update()

        self.emit(EventType.RUN_CANCELLED, operation=operation, summary=summary or {})

    def run_failed(
        self,
        operation: str,
        error: str,
        summary: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._stats.status = "Failed"
        self._emit_stats_update()

        self.emit(EventType.RUN_FAILED, operation=operation, error=error, summary=summary or {})

    # =========================================================================
    # Subnet scan
    # =========================================================================

    def scan_started(
        self,
        cidr: str,
        hosts_planned: int,
        total_hosts: int,
        sampled: bool,
    ) -> None:
        self._stats.hosts_planned = hosts_planned
        self._stats.stage = "scan"
        self._stats.status = f"Scanning {cidr}"

        self.emit(
            EventType.SCAN_STARTED,
            cidr=cidr,
            hosts_planned=hosts_planned,
            total_hosts=total_hosts,
            sampled=sampled,
        )
        self._emit_stats_update()

    def host_started(self, ip: str, index: int, total: int) -> None:
        self._stats.current_target = ip
        self.emit(EventType.HOST_STARTED, target=ip, index=index, total=total)

    def device_discovered(
        self,
        ip: str,
        hostname: Optional[str],
        manufacturer: Optional[str],
        model: Optional[str],
        category: str,
        mac_address: Optional[str],
        needs_verification: bool,
    ) -> None:
        self._stats.hosts_scanned += 1
        self._stats.reachable += 1

        self.emit(
            EventType.DEVICE_DISCOVERED,
            target=ip,
            hostname=hostname,
            manufacturer=manufacturer,
            model=model,
            category=category,
            mac_address=mac_address,
            needs_verification=needs_verification,
        )
        self._emit_stats_update()

    def host_unreachable(self, ip: str) -> None:
        self._stats.hosts_scanned += 1
        self._stats.unreachable += 1
        self.emit(EventType.HOST_UNREACHABLE, target=ip)

    def host_failed(self, ip: str, error: str) -> None:
        self._stats.hosts_scanned += 1
        self._stats.failed += 1

        self.emit(EventType.HOST_FAILED, target=ip, error=error)
        self._emit_stats_update()

    # =========================================================================
    # Switches
    # =========================================================================

    def switch_started(self, switch: str, stage: str) -> None:
        self._stats.current_target = switch
        self._stats.stage = stage
        self._stats.status = f"{stage}: {switch}"

        self.emit(EventType.SWITCH_STARTED, target=switch, stage=stage)
        self._emit_stats_update()

    def switch_complete(
        self,
        switch: str,
        stage: str,
        count: int,
        source: Optional[str] = None,
    ) -> None:
        self._stats.switches_done += 1
        if stage == "vlans":
            self._stats.vlans += count
        else:
            self._stats.mac_addresses += count

        self.emit(
            EventType.SWITCH_COMPLETE,
            target=switch,
            stage=stage,
            count=count,
            source=source,
        )
        self._emit_stats_update()

    def switch_failed(self, switch: str, stage: str, error: str) -> None:
        self._stats.switches_done += 1
        self._stats.switches_failed += 1

        self.emit(EventType.SWITCH_FAILED, target=switch, stage=stage, error=error)
        self._emit_stats_update()

    # =========================================================================
    # Progress and log
    # =========================================================================

    def progress(self, stage: str, message: str, percent: int) -> None:
        """Linear progress within a stage, 0-100."""
        percent = max(0, min(100, int(percent)))
        self._stats.stage = stage
        self._stats.percent = percent
        self.emit(EventType.PROGRESS, stage=stage, message=message, percent=percent)

    def log(
        self,
        message: str,
        level: LogLevel = LogLevel.INFO,
        device: str = "",
    ) -> None:
        self.emit(
            EventType.LOG_MESSAGE,
            message=message,
            level=level.value,
            device=device,
        )

    def _emit_stats_update(self) -> None:
        s = self._stats
        self.emit(
            EventType.STATS_UPDATED,
            hosts_planned=s.hosts_planned,
            hosts_scanned=s.hosts_scanned,
            reachable=s.reachable,
            unreachable=s.unreachable,
            failed=s.failed,
            vlans=s.vlans,
            mac_addresses=s.mac_addresses,
            switches_done=s.switches_done,
            switches_failed=s.switches_failed,
            stage=s.stage,
            percent=s.percent,
            current_target=s.current_target,
            status=s.status,
        )


# =========================================================================
# Console Event Printer (for CLI)
# =========================================================================

class ConsoleEventPrinter:
    """
    Prints discovery events to the console.

    Usage:
        printer = ConsoleEventPrinter(verbose=True, color=True)
        emitter.subscribe(printer.handle_event)
    """

    # ANSI color codes
    COLORS = {
        "reset": "\033[0m",
        "bold": "\033[1m",
        "dim": "\033[2m",
        "red": "\033[31m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "blue": "\033[34m",
        "magenta": "\033[35m",
        "cyan": "\033[36m",
        "white": "\033[37m",
    }

    def __init__(
        self,
        verbose: bool = False,
        color: bool = True,
        show_timestamps: bool = False,
    ):
        self.verbose = verbose
        self.color = color
        self.show_timestamps = show_timestamps

    def _c(self, text: str, *colors: str) -> str:
        """Apply colors if enabled."""
        if not self.color:
            return text
        codes = "".join(self.COLORS.get(c, "") for c in colors)
        return f"{codes}{text}{self.COLORS['reset']}"

    def _timestamp(self, event: DiscoveryEvent) -> str:
        if not self.show_timestamps:
            return ""
        return f"[{event.timestamp.strftime('%H:%M:%S')}] "

    def handle_event(self, event: DiscoveryEvent) -> None:
        """Handle and print a discovery event."""
        handler = getattr(self, f"_handle_{event.event_type.value}", None)
        if handler:
            handler(event)
        elif self.verbose:
            print(f"{self._timestamp(event)}[{event.event_type.value}] {event.data}")

    def _handle_run_started(self, event: DiscoveryEvent) -> None:
        data = event.data
        print()
        print(self._c("=" * 60, "cyan", "bold"))
        print(self._c(f"NETWORK SURVEY: {data['operation'].upper()}", "cyan", "bold"))
        print(self._c("=" * 60, "cyan", "bold"))
        print(f"Target: {data['target']}")
        print()

    def _handle_run_complete(self, event: DiscoveryEvent) -> None:
        data = event.data
        summary = data.get('summary', {})
        print()
        print(self._c("#" * 60, "green", "bold"))
        print(self._c("SURVEY COMPLETE", "green", "bold"))
        print(self._c("#" * 60, "green", "bold"))
        for key, value in summary.items():
            if isinstance(value, dict):
                continue
            print(f"{key.replace('_', ' ').title()}: {value}")
        print(f"Duration: {data['duration_seconds']:.1f}s")
        print()

    def _handle_run_cancelled(self, event: DiscoveryEvent) -> None:
        print()
        print(self._c("Survey cancelled, partial results kept", "yellow", "bold"))
        print()

    def _handle_run_failed(self, event: DiscoveryEvent) -> None:
        print()
        print(self._c(f"Survey failed: {event.data.get('error', '')}", "red", "bold"))
        print()

    def _handle_scan_started(self, event: DiscoveryEvent) -> None:
        data = event.data
        line = f"Scanning {data['hosts_planned']} of {data['total_hosts']} hosts in {data['cidr']}"
        if data.get('sampled'):
            line += self._c(" (sampled)", "yellow")
        print(self._c(line, "blue", "bold"))

    def _handle_host_started(self, event: DiscoveryEvent) -> None:
        if self.verbose:
            data = event.data
            print(f"{self._timestamp(event)}  [{data['index']}/{data['total']}] "
                  f"Probing: {data['target']}")

    def _handle_device_discovered(self, event: DiscoveryEvent) -> None:
        data = event.data
        name = data.get('hostname') or data['target']
        detail = " ".join(
            part for part in (data.get('manufacturer'), data.get('model')) if part
        ) or "unidentified"

        status = self._c("FOUND", "green", "bold")
        line = f"{self._timestamp(event)}  {status}: {name} ({data['category']}, {detail})"
        if data.get('needs_verification'):
            line += self._c(" [verify]", "yellow")
        print(line)

    def _handle_host_unreachable(self, event: DiscoveryEvent) -> None:
        if self.verbose:
            print(f"{self._timestamp(event)}  {self._c('NO REPLY', 'dim')}: "
                  f"{event.data['target']}")

    def _handle_host_failed(self, event: DiscoveryEvent) -> None:
        data = event.data
        status = self._c("FAILED", "red", "bold")
        error = data.get('error', 'Unknown error')

        # Truncate long errors
        if len(error) > 60:
            error = error[:57] + "..."

        print(f"{self._timestamp(event)}  {status}: {data['target']} - {error}")

    def _handle_switch_started(self, event: DiscoveryEvent) -> None:
        data = event.data
        print(self._c(f"{data['stage'].upper()}: {data['target']}", "blue"))

    def _handle_switch_complete(self, event: DiscoveryEvent) -> None:
        data = event.data
        noun = "VLANs" if data['stage'] == "vlans" else "MAC addresses"
        source = f" via {data['source']}" if data.get('source') else ""
        print(f"{self._timestamp(event)}  {self._c('OK', 'green', 'bold')}: "
              f"{data['target']} {data['count']} {noun}{source}")

    def _handle_switch_failed(self, event: DiscoveryEvent) -> None:
        data = event.data
        print(f"{self._timestamp(event)}  {self._c('FAILED', 'red', 'bold')}: "
              f"{data['target']} - {data.get('error', '')}")

    def _handle_progress(self, event: DiscoveryEvent) -> None:
        if self.verbose:
            data = event.data
            percent = self._c(f"{data['percent']:3d}%", 'cyan')
            print(f"{self._timestamp(event)}  {percent} {data['message']}")

    def _handle_log_message(self, event: DiscoveryEvent) -> None:
        data = event.data
        level = data.get('level', 'info')
        message = data.get('message', '')

        if level == 'debug' and not self.verbose:
            return

        level_colors = {
            'debug': ('dim',),
            'info': (),
            'warning': ('yellow',),
            'error': ('red',),
            'success': ('green',),
        }
        colors = level_colors.get(level, ())

        prefix = f"[{level.upper()}] " if self.verbose else ""
        print(f"{self._timestamp(event)}{prefix}{self._c(message, *colors)}")

    def _handle_stats_updated(self, event: DiscoveryEvent) -> None:
        """Stats updates are silent on the console."""
        pass
