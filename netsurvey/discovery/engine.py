"""
netsurvey - Discovery Engine.

Sequences the survey stages and owns the accumulating results:

    scan_subnet            plan -> (probe -> classify)* per host
    discover_vlans         per switch, merged across switches
    discover_mac_addresses per VLAN on one switch
    run                    all of the above for a subnet

Work is deliberately sequential: one Access Agent call at a time, run
on a single worker thread so the event loop stays free for event
consumers. Cancellation is checked before each host, switch and VLAN;
the call in flight finishes (bounded by its own timeout) and the
partial result comes back flagged `cancelled`.

Top-level calls are bracketed by run_started and one of
run_complete/run_cancelled/run_failed. Stages invoked from run() share
the outer bracket.
"""

import asyncio
import ipaddress
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from functools import partial
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from ..agent.client import AccessAgent, ensure_agent_available
from ..errors import ConnectivityError, ValidationError
from ..settings import SurveySettings
from .classifier import DeviceClassifier
from .events import EventEmitter, LogLevel
from .mac_table import MacTableDiscovery, normalize_vlan_ids
from .models import (
    ConnectionMethod,
    DeviceCategory,
    DeviceStatus,
    DiscoveredDevice,
    DiscoveryResult,
    MacTableResult,
    SwitchTarget,
)
from .reachability import ProbeResult, ReachabilityProber
from .subnet import SubnetPlan, plan_subnet
from .vlans import VlanDiscovery, VlanRegistry

logger = logging.getLogger(__name__)

SwitchLike = Union[SwitchTarget, DiscoveredDevice, str]

_LOG_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def _to_switch(value: SwitchLike) -> SwitchTarget:
    if isinstance(value, SwitchTarget):
        return value
    if isinstance(value, DiscoveredDevice):
        return SwitchTarget.from_device(value)
    try:
        ipaddress.IPv4Address(value)
    except ValueError as e:
        raise ValidationError(f"Invalid switch address {value!r}") from e
    return SwitchTarget(ip_address=value)


class DiscoveryEngine:
    """
    Async orchestrator over a synchronous Access Agent.

    Usage:
        agent = AccessAgentClient(settings.agent_url, settings.agent_api_key)
        engine = DiscoveryEngine(agent, settings)

        printer = ConsoleEventPrinter(verbose=True)
        engine.events.subscribe(printer.handle_event)

        result = await engine.run("10.20.0.0/24")
        print(result.to_json())

    Collaborators can be injected for testing or to swap strategies
    (e.g. a MacTableDiscovery with a real OUI device-type lookup).
    """

    def __init__(
        self,
        agent: AccessAgent,
        settings: Optional[SurveySettings] = None,
        event_emitter: Optional[EventEmitter] = None,
        classifier: Optional[DeviceClassifier] = None,
        prober: Optional[ReachabilityProber] = None,
        vlan_discovery: Optional[VlanDiscovery] = None,
        mac_discovery: Optional[MacTableDiscovery] = None,
    ):
        self.agent = agent
        self.settings = settings or SurveySettings()
        s = self.settings

        # Event system
        self.events = event_emitter or EventEmitter()

        self.prober = prober or ReachabilityProber(agent)
        self.classifier = classifier or DeviceClassifier(
            agent, s.community, s.snmp_version, s.entity_refinement
        )
        self.vlan_discovery = vlan_discovery or VlanDiscovery(
            agent,
            community=s.community,
            version=s.snmp_version,
            cli_username=s.cli_username,
            cli_password=s.cli_password,
            cli_methods=[ConnectionMethod(m) for m in s.cli_methods],
            ssh_port=s.ssh_port,
            telnet_port=s.telnet_port,
        )
        self.mac_discovery = mac_discovery or MacTableDiscovery(
            agent, resolve_ports=s.resolve_ports
        )

        # One worker: agent calls never overlap
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="netsurvey-agent")
        self._cancel = asyncio.Event()
        self._depth = 0

    def _log(self, message: str, level: LogLevel = LogLevel.INFO, device: str = ""):
        """Emit log message event and mirror it to logging."""
        self.events.log(message, level, device)
        logger.log(_LOG_LEVELS[level], f"{device}: {message}" if device else message)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def cancel(self) -> None:
        """Request cancellation of the running operation."""
        self._cancel.set()

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    async def __aenter__(self) -> "DiscoveryEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def _is_cancelled(self, cancel_event: Optional[asyncio.Event]) -> bool:
        return self._cancel.is_set() or bool(cancel_event and cancel_event.is_set())

    def _abort(self, result: DiscoveryResult, error: str) -> None:
        """Stop after the agent went away, keeping what was found."""
        result.aborted = True
        result.errors.append(error)
        self._log(f"Access Agent lost, stopping early: {error}", LogLevel.ERROR)

    async def _run_blocking(self, func: Callable, *args: Any) -> Any:
        """Run one blocking agent-backed call on the worker thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args))

    async def _bracket(
        self,
        operation: str,
        target: str,
        body: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Run `body` inside run_* events when it is the outermost call.

        The agent health check happens once per top-level call, before
        any work starts.
        """
        outermost = self._depth == 0
        start = time.monotonic()

        if outermost:
            self._cancel.clear()
            self.events.run_started(operation, target)

        self._depth += 1
        try:
            if outermost:
                await self._run_blocking(
                    ensure_agent_available, self.agent, getattr(self.agent, "base_url", None)
                )
            result = await body()
        except asyncio.CancelledError:
            if outermost:
                self.events.run_cancelled(operation)
            raise
        except Exception as e:
            if outermost:
                self._log(f"{operation} failed: {e}", LogLevel.ERROR)
                self.events.run_failed(operation, str(e))
            raise
        finally:
            self._depth -= 1

        if outermost:
            if getattr(result, "aborted", False):
                self.events.run_failed(operation, result.errors[-1], result.summary)
            elif result.cancelled:
                self.events.run_cancelled(operation, result.summary)
            else:
                self.events.run_complete(operation, time.monotonic() - start, result.summary)
        return result

    # =========================================================================
    # Subnet scan
    # =========================================================================

    async def scan_subnet(
        self,
        cidr: str,
        local_ip: Optional[str] = None,
        local_prefix: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DiscoveryResult:
        """
        Probe and classify every host in the scan plan, one at a time.

        local_ip/local_prefix describe the agent's own segment and decide
        which hosts are routed; both default to the settings, then to
        the scanned subnet itself.

        Raises:
            ValidationError: malformed CIDR (before anything is probed)
            ConnectivityError: Access Agent unavailable before work starts
        """
        plan = plan_subnet(cidr, self.settings.scan_cap)
        reference_ip, mask_bits = self._local_reference(plan, local_ip, local_prefix)

        return await self._bracket(
            "scan", plan.cidr,
            lambda: self._scan(plan, reference_ip, mask_bits, cancel_event),
        )

    def _local_reference(
        self,
        plan: SubnetPlan,
        local_ip: Optional[str],
        local_prefix: Optional[int],
    ) -> Tuple[str, int]:
        reference_ip = local_ip or self.settings.local_ip or plan.first_usable
        mask_bits = local_prefix
        if mask_bits is None:
            mask_bits = self.settings.local_prefix
        if mask_bits is None:
            mask_bits = plan.prefix_length
        if not 0 <= mask_bits <= 32:
            raise ValidationError(f"Invalid local prefix length {mask_bits}")
        return reference_ip, mask_bits

    async def _scan(
        self,
        plan: SubnetPlan,
        reference_ip: str,
        mask_bits: int,
        cancel_event: Optional[asyncio.Event],
    ) -> DiscoveryResult:
        result = DiscoveryResult(
            cidr=plan.cidr,
            hosts_planned=plan.planned_hosts,
            sampled=plan.sampled,
            started_at=datetime.now(),
        )
        total = plan.planned_hosts
        self.events.scan_started(plan.cidr, total, plan.total_hosts, plan.sampled)
        if plan.sampled:
            self._log(
                f"{plan.cidr} has {plan.total_hosts} hosts; sampling {total}",
                LogLevel.WARNING,
            )

        for index, ip in enumerate(plan.scan_plan, start=1):
            if self._is_cancelled(cancel_event):
                result.cancelled = True
                self._log(f"Scan cancelled after {index - 1} of {total} hosts", LogLevel.WARNING)
                break

            self.events.host_started(ip, index, total)
            try:
                outcome = await self._scan_host(ip, reference_ip, mask_bits, result)
            except ConnectivityError as e:
                self._abort(result, f"{ip}: {e}")
                break
            self.events.progress("scan", f"{ip}: {outcome}", index * 100 // total)

        result.completed_at = datetime.now()
        self._log(
            f"Scan of {plan.cidr}: {result.reachable} reachable, "
            f"{result.unreachable} unreachable, {result.failed} failed",
            LogLevel.SUCCESS,
        )
        return result

    async def _scan_host(
        self,
        ip: str,
        reference_ip: str,
        mask_bits: int,
        result: DiscoveryResult,
    ) -> str:
        """Probe and classify one host; returns a short outcome label."""
        probe: ProbeResult = await self._run_blocking(
            self.prober.probe, ip, reference_ip, mask_bits
        )
        result.hosts_scanned += 1

        if probe.error:
            result.failed += 1
            self.events.host_failed(ip, probe.error)
            if self.settings.include_unreachable:
                result.devices.append(DiscoveredDevice(
                    ip_address=ip, status=DeviceStatus.UNKNOWN,
                    is_routed=probe.is_routed, errors=[f"probe: {probe.error}"],
                ))
            return "probe failed"

        if not probe.reachable:
            result.unreachable += 1
            self.events.host_unreachable(ip)
            if self.settings.include_unreachable:
                result.devices.append(DiscoveredDevice(
                    ip_address=ip, status=DeviceStatus.OFFLINE, is_routed=probe.is_routed,
                ))
            return "no reply"

        result.reachable += 1
        device = DiscoveredDevice(
            ip_address=ip,
            mac_address=probe.mac_address,
            status=DeviceStatus.ONLINE,
            is_routed=probe.is_routed,
        )
        await self._run_blocking(self.classifier.classify, device)
        result.devices.append(device)

        self.events.device_discovered(
            ip=ip,
            hostname=device.hostname,
            manufacturer=device.manufacturer,
            model=device.model,
            category=device.category.value,
            mac_address=device.mac_address,
            needs_verification=device.needs_verification,
        )
        return device.category.value

    # =========================================================================
    # VLANs
    # =========================================================================

    async def discover_vlans(
        self,
        switches: Sequence[SwitchLike],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DiscoveryResult:
        """
        Discover VLANs on each switch in turn and merge them by id.

        A switch where every source fails contributes nothing and is
        counted in switches_failed.

        Raises:
            ValidationError: no switches, or a malformed switch address
        """
        targets = [_to_switch(s) for s in switches]
        if not targets:
            raise ValidationError("No switches given for VLAN discovery")

        return await self._bracket(
            "vlans", ", ".join(t.identifier for t in targets),
            lambda: self._discover_vlans(targets, cancel_event),
        )

    async def _discover_vlans(
        self,
        targets: List[SwitchTarget],
        cancel_event: Optional[asyncio.Event],
    ) -> DiscoveryResult:
        result = DiscoveryResult(started_at=datetime.now())
        registry = VlanRegistry()

        for index, switch in enumerate(targets, start=1):
            if self._is_cancelled(cancel_event):
                result.cancelled = True
                self._log("VLAN discovery cancelled", LogLevel.WARNING)
                break

            self.events.switch_started(switch.identifier, "vlans")
            result.switches_attempted += 1
            outcome = await self._run_blocking(self.vlan_discovery.discover_switch, switch)

            if outcome.success:
                registry.extend(outcome.vlans)
                self.events.switch_complete(
                    switch.identifier, "vlans", len(outcome.vlans), outcome.source
                )
                message = f"{switch.identifier}: {len(outcome.vlans)} VLANs via {outcome.source}"
            else:
                result.switches_failed += 1
                error = "; ".join(outcome.errors) or "no VLANs found"
                result.errors.append(f"{switch.identifier}: {error}")
                self.events.switch_failed(switch.identifier, "vlans", error)
                self._log(
                    "VLAN discovery failed, continuing with remaining switches",
                    LogLevel.WARNING, switch.identifier,
                )
                message = f"{switch.identifier}: no VLANs"

            self.events.progress("vlans", message, index * 100 // len(targets))

        result.vlans = registry.merged()
        result.completed_at = datetime.now()
        return result

    # =========================================================================
    # MAC address tables
    # =========================================================================

    async def discover_mac_addresses(
        self,
        switch: SwitchLike,
        vlan_ids: Iterable[int],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> MacTableResult:
        """
        Walk the forwarding table of one switch for each VLAN.

        Raises:
            ValidationError: empty VLAN list or out-of-range id (before
                any walk), malformed switch address
        """
        target = _to_switch(switch)
        ids = normalize_vlan_ids(vlan_ids)

        return await self._bracket(
            "macs", target.identifier,
            lambda: self._discover_macs(target, ids, cancel_event),
        )

    async def _discover_macs(
        self,
        switch: SwitchTarget,
        vlan_ids: List[int],
        cancel_event: Optional[asyncio.Event],
    ) -> MacTableResult:
        loop = asyncio.get_running_loop()
        community = switch.community or self.settings.community
        version = switch.snmp_version or self.settings.snmp_version

        def progress(message: str, percent: int) -> None:
            # Called on the worker thread
            loop.call_soon_threadsafe(
                self.events.progress, "macs", f"{switch.identifier} {message}", percent
            )

        self.events.switch_started(switch.identifier, "macs")

        if self.settings.mac_mode == "agent":
            table = await self._run_blocking(
                self.mac_discovery.discover_via_agent,
                switch.ip_address, community, version, vlan_ids, progress,
            )
        else:
            table = await self._run_blocking(
                self.mac_discovery.discover,
                switch.ip_address, community, version, vlan_ids, progress,
                lambda: self._is_cancelled(cancel_event),
            )
        table.switch = switch.identifier

        if table.failed_vlans and len(table.failed_vlans) == len(vlan_ids):
            self.events.switch_failed(switch.identifier, "macs", "every VLAN walk failed")
        else:
            self.events.switch_complete(
                switch.identifier, "macs", len(table.mac_addresses), self.settings.mac_mode
            )
        if table.failed_vlans:
            self._log(
                f"MAC walk failed for VLANs {table.failed_vlans}",
                LogLevel.WARNING, switch.identifier,
            )
        if table.cancelled:
            self._log("MAC discovery cancelled", LogLevel.WARNING, switch.identifier)
        return table

    # =========================================================================
    # Single device
    # =========================================================================

    async def identify_device(self, ip: str) -> DiscoveredDevice:
        """
        One-shot identification through the agent's discoverDevice call.

        Raises:
            ProtocolError: agent could not query the device
        """
        info = await self._run_blocking(
            self.agent.discover_device, ip, self.settings.community, self.settings.snmp_version
        )
        device = DiscoveredDevice(
            ip_address=ip,
            hostname=(info.sys_name or "").split(".")[0] or None,
            manufacturer=info.manufacturer,
            model=info.model,
            sys_descr=info.sys_descr,
            status=DeviceStatus.ONLINE,
            discovered_via=ConnectionMethod.SNMP,
        )
        agent_type = (info.type or "").lower()
        for category in DeviceCategory:
            if category.value.lower() == agent_type:
                device.category = category
                break
        device.update_verification()
        return device

    # =========================================================================
    # Full pipeline
    # =========================================================================

    async def run(
        self,
        cidr: str,
        switches: Optional[Sequence[SwitchLike]] = None,
        local_ip: Optional[str] = None,
        local_prefix: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DiscoveryResult:
        """
        Scan a subnet, then VLANs and MAC tables on the switches found.

        `switches` are interrogated in addition to discovered switches.

        Raises:
            ValidationError: malformed CIDR or switch address
            ConnectivityError: Access Agent unavailable before work starts
        """
        plan = plan_subnet(cidr, self.settings.scan_cap)
        extra = [_to_switch(s) for s in switches or []]

        return await self._bracket(
            "survey", plan.cidr,
            lambda: self._run(plan.cidr, extra, local_ip, local_prefix, cancel_event),
        )

    def _select_switches(
        self,
        devices: List[DiscoveredDevice],
        extra: List[SwitchTarget],
    ) -> List[SwitchTarget]:
        targets = list(extra)
        seen = {t.ip_address for t in targets}
        for device in devices:
            if device.category == DeviceCategory.SWITCH and device.ip_address not in seen:
                targets.append(SwitchTarget.from_device(device))
                seen.add(device.ip_address)

        if self.settings.vlan_switches == "primary":
            return targets[:1]
        return targets

    async def _run(
        self,
        cidr: str,
        extra: List[SwitchTarget],
        local_ip: Optional[str],
        local_prefix: Optional[int],
        cancel_event: Optional[asyncio.Event],
    ) -> DiscoveryResult:
        result = await self.scan_subnet(cidr, local_ip, local_prefix, cancel_event)

        if not (result.cancelled or result.aborted):
            try:
                await self._run_switch_stages(result, extra, cancel_event)
            except ConnectivityError as e:
                self._abort(result, str(e))

        result.completed_at = datetime.now()
        result.validate()
        return result

    async def _run_switch_stages(
        self,
        result: DiscoveryResult,
        extra: List[SwitchTarget],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        switches = self._select_switches(result.devices, extra)
        if not switches:
            self._log("No switches found; skipping VLAN and MAC discovery", LogLevel.WARNING)
            return

        vlan_result = await self.discover_vlans(switches, cancel_event)
        result.vlans = vlan_result.vlans
        result.switches_attempted = vlan_result.switches_attempted
        result.switches_failed = vlan_result.switches_failed
        result.errors.extend(vlan_result.errors)
        if vlan_result.cancelled:
            result.cancelled = True
            return

        if not result.vlans:
            self._log("No VLANs discovered; skipping MAC discovery", LogLevel.WARNING)
            return

        vlan_ids = [v.vlan_id for v in result.vlans]
        for switch in switches:
            if self._is_cancelled(cancel_event):
                result.cancelled = True
                return
            table = await self.discover_mac_addresses(switch, vlan_ids, cancel_event)
            result.mac_addresses.extend(table.mac_addresses)
            result.mac_vlans_failed += len(table.failed_vlans)
            if table.cancelled:
                result.cancelled = True
                return
