"""
netsurvey - VLAN Discovery.

Per switch, sources are tried in order until one yields VLANs:

1. Access Agent VLAN discovery (snmp.discoverVlans)
2. Raw SNMP tables: Cisco vtpVlanTable (operational only), then the
   802.1Q static table
3. CLI over SSH, then Telnet, when credentials are available

Across switches, VlanRegistry keeps one DiscoveredVlan per id: the
first report sets name and subnet, later reports only add to used_by.
Results are sorted by VLAN id.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from ..agent.client import AccessAgent
from ..agent.models import DiscoverVlansResponse
from ..errors import ProtocolError
from .models import ConnectionMethod, DiscoveredVlan, SwitchTarget, is_valid_vlan_id
from .session import CliVlanCollector
from .snmp.collectors import get_qbridge_vlans, get_vtp_vlans
from .snmp.parsers import decode_int

logger = logging.getLogger(__name__)


class VlanRegistry:
    """
    Cross-switch VLAN merge keyed by VLAN id.

    Not thread-safe; the engine is the only writer.

    Example:
        registry = VlanRegistry()
        registry.extend(vlans_from_sw1)
        registry.extend(vlans_from_sw2)
        merged = registry.merged()
    """

    def __init__(self):
        self._vlans: Dict[int, DiscoveredVlan] = {}

    def __len__(self) -> int:
        return len(self._vlans)

    def __contains__(self, vlan_id: int) -> bool:
        return vlan_id in self._vlans

    def add(self, vlan: DiscoveredVlan, reported_by: Optional[str] = None) -> DiscoveredVlan:
        """Merge one VLAN report and return the canonical entry."""
        existing = self._vlans.get(vlan.vlan_id)
        if existing is None:
            existing = DiscoveredVlan(
                vlan_id=vlan.vlan_id,
                name=vlan.name,
                segment_name=vlan.segment_name,
                subnet=vlan.subnet,
                used_by=list(vlan.used_by),
                ports=list(vlan.ports),
            )
            self._vlans[vlan.vlan_id] = existing
        else:
            for user in vlan.used_by:
                existing.add_user(user)

        if reported_by:
            existing.add_user(reported_by)
        return existing

    def extend(self, vlans: Iterable[DiscoveredVlan], reported_by: Optional[str] = None) -> None:
        for vlan in vlans:
            self.add(vlan, reported_by)

    def merged(self) -> List[DiscoveredVlan]:
        """Canonical VLANs sorted by id."""
        return [self._vlans[vlan_id] for vlan_id in sorted(self._vlans)]

    def vlan_ids(self) -> List[int]:
        return sorted(self._vlans)


def merge_vlans(per_switch: Iterable[Iterable[DiscoveredVlan]]) -> List[DiscoveredVlan]:
    """Merge VLAN lists from several switches, sorted by id."""
    registry = VlanRegistry()
    for vlans in per_switch:
        registry.extend(vlans)
    return registry.merged()


@dataclass
class SwitchVlanResult:
    """VLANs found on one switch and where they came from."""
    switch: str
    vlans: List[DiscoveredVlan] = field(default_factory=list)
    source: Optional[str] = None  # agent, vtp, qbridge, ssh, telnet
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.vlans)


class VlanDiscovery:
    """
    VLAN discovery for a single switch.

    Every failure below the switch level is caught here; a switch with
    no working source yields an empty result and a warning.

    Example:
        discovery = VlanDiscovery(agent, community="public",
                                  cli_username="admin", cli_password="secret")
        result = discovery.discover_switch(SwitchTarget("10.0.0.2", manufacturer="Cisco"))
    """

    def __init__(
        self,
        agent: AccessAgent,
        community: str = "public",
        version: str = "2c",
        cli_username: Optional[str] = None,
        cli_password: Optional[str] = None,
        cli_methods: Sequence[ConnectionMethod] = (ConnectionMethod.SSH, ConnectionMethod.TELNET),
        ssh_port: int = 22,
        telnet_port: int = 23,
    ):
        self.agent = agent
        self.community = community
        self.version = version
        self.cli_username = cli_username
        self.cli_password = cli_password
        self.cli_methods = list(cli_methods)
        self.ssh_port = ssh_port
        self.telnet_port = telnet_port

    def discover_switch(self, switch: SwitchTarget) -> SwitchVlanResult:
        result = SwitchVlanResult(switch=switch.identifier)
        community = switch.community or self.community
        version = switch.snmp_version or self.version

        # 1. Agent-side discovery
        try:
            response = self.agent.discover_vlans(
                switch.ip_address, community, version, switch.manufacturer
            )
            result.vlans = self._from_agent(response, switch)
            if result.vlans:
                result.source = "agent"
                return result
            result.errors.append("agent: no VLANs reported")
        except ProtocolError as e:
            result.errors.append(f"agent: {e}")
            logger.info(f"{switch.identifier}: agent VLAN discovery failed: {e}")

        # 2. Raw SNMP tables
        for source, collector in self._table_collectors(switch):
            try:
                pairs = collector(self.agent, switch.ip_address, community, version)
            except ProtocolError as e:
                result.errors.append(f"{source}: {e}")
                continue
            result.vlans = self._dedupe(
                DiscoveredVlan(vlan_id=vlan_id, name=name, used_by=[switch.identifier])
                for vlan_id, name in pairs
            )
            if result.vlans:
                result.source = source
                return result

        # 3. CLI fallback
        collector = self._cli_collector(switch)
        if collector is None:
            result.errors.append("cli: no credentials")
        else:
            cli_result = collector.collect(switch.ip_address, switch.manufacturer)
            result.errors.extend(cli_result.errors)
            if cli_result.success:
                # Parsed used_by holds member ports; move them to ports
                result.vlans = [
                    DiscoveredVlan(
                        vlan_id=v.vlan_id,
                        name=v.name,
                        used_by=[switch.identifier],
                        ports=list(v.used_by),
                    )
                    for v in cli_result.vlans
                ]
                result.source = cli_result.method.value
                return result

        logger.warning(
            f"{switch.identifier}: VLAN discovery failed on every source "
            f"({'; '.join(result.errors)})"
        )
        return result

    def _from_agent(
        self, response: DiscoverVlansResponse, switch: SwitchTarget
    ) -> List[DiscoveredVlan]:
        if response.invalid_vlans:
            logger.warning(
                f"{switch.identifier}: agent rejected {len(response.invalid_vlans)} "
                f"invalid VLAN entries"
            )

        vlans = []
        for row in response.vlans:
            vlan_id = decode_int(row.vlan_id)
            if not is_valid_vlan_id(vlan_id):
                logger.warning(f"{switch.identifier}: dropping invalid VLAN id {row.vlan_id!r}")
                continue
            vlans.append(DiscoveredVlan(
                vlan_id=vlan_id,
                name=row.name or f"VLAN{vlan_id}",
                used_by=list(row.used_by or []) or [switch.identifier],
            ))
        return self._dedupe(vlans)

    @staticmethod
    def _dedupe(vlans: Iterable[DiscoveredVlan]) -> List[DiscoveredVlan]:
        seen: Dict[int, DiscoveredVlan] = {}
        for vlan in vlans:
            seen.setdefault(vlan.vlan_id, vlan)
        return list(seen.values())

    @staticmethod
    def _table_collectors(switch: SwitchTarget):
        if "cisco" in (switch.manufacturer or "").lower():
            return [("vtp", get_vtp_vlans), ("qbridge", get_qbridge_vlans)]
        return [("qbridge", get_qbridge_vlans)]

    def _cli_collector(self, switch: SwitchTarget) -> Optional[CliVlanCollector]:
        username = switch.username or self.cli_username
        password = switch.password or self.cli_password
        if not username or password is None:
            return None
        return CliVlanCollector(
            self.agent,
            username,
            password,
            methods=switch.methods or self.cli_methods,
            ssh_port=self.ssh_port,
            telnet_port=self.telnet_port,
        )
