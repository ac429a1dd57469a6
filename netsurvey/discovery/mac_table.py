"""
netsurvey - MAC Address Table Discovery.

Walks the BRIDGE-MIB forwarding table of a switch once per VLAN, in
ascending VLAN order, using the Cisco community@vlan context for every
VLAN except 1. Each row OID encodes the MAC in its last six
sub-identifiers.

device_type is a best-effort guess supplied by a pluggable strategy.
The default hashes the OUI octets and is not authoritative; swap in a
real OUI database by passing any callable mac -> str.
"""

import logging
from typing import Callable, Iterable, List, Optional, Protocol, Sequence

from ..agent.client import AccessAgent
from ..errors import ProtocolError, ValidationError
from .models import DiscoveredMacAddressEntry, MacTableResult, is_valid_vlan_id
from .snmp.collectors import get_forwarding_table, get_port_names, vlan_community
from .snmp.parsers import decode_int, normalize_mac, oui_bytes
from .vendors import MAC_DEVICE_TYPES

logger = logging.getLogger(__name__)

# (message, percent_complete)
ProgressCallback = Callable[[str, int], None]


class DeviceTypeStrategy(Protocol):
    """Maps a canonical MAC address to a device type label."""

    def __call__(self, mac_address: str) -> str: ...


class OuiHashDeviceType:
    """
    Sum of the three OUI octets modulo the number of types.

    Deterministic, cheap, and only an approximation.
    """

    def __init__(self, types: Sequence[str] = MAC_DEVICE_TYPES):
        if not types:
            raise ValueError("At least one device type is required")
        self.types = tuple(types)

    def __call__(self, mac_address: str) -> str:
        octets = oui_bytes(mac_address)
        if octets is None:
            return self.types[0]
        return self.types[sum(octets) % len(self.types)]


def normalize_vlan_ids(vlan_ids: Iterable[int]) -> List[int]:
    """
    Sorted, de-duplicated VLAN ids for a MAC walk.

    Raises:
        ValidationError: empty list or any id outside 1-4094
    """
    ids = list(vlan_ids or [])
    if not ids:
        raise ValidationError(
            "No VLANs to walk: discover VLANs before MAC address discovery"
        )
    invalid = [v for v in ids if not is_valid_vlan_id(v)]
    if invalid:
        raise ValidationError(f"Invalid VLAN ids for MAC discovery: {invalid}")
    return sorted(set(ids))


class MacTableDiscovery:
    """
    Per-VLAN bridge table discovery for one switch.

    Example:
        macs = MacTableDiscovery(agent)
        result = macs.discover("10.0.0.2", "public", "2c", [1, 10, 20])
        for entry in result.mac_addresses:
            print(entry.vlan_id, entry.mac_address, entry.port)
    """

    def __init__(
        self,
        agent: AccessAgent,
        device_type: Optional[DeviceTypeStrategy] = None,
        resolve_ports: bool = True,
    ):
        self.agent = agent
        self.device_type = device_type or OuiHashDeviceType()
        self.resolve_ports = resolve_ports

    def walk_vlan(
        self,
        target: str,
        community: str,
        version: str,
        vlan_id: int,
    ) -> List[DiscoveredMacAddressEntry]:
        """
        Forwarding table entries for one VLAN.

        Raises:
            ProtocolError: the forwarding table walk failed
        """
        context = vlan_community(community, vlan_id)
        rows = get_forwarding_table(self.agent, target, context, version)

        port_names = {}
        if self.resolve_ports and rows:
            try:
                port_names = get_port_names(self.agent, target, context, version)
            except ProtocolError as e:
                logger.debug(f"{target} VLAN {vlan_id}: port names unavailable: {e}")

        entries = []
        for mac, bridge_port in rows:
            port = None
            if bridge_port is not None:
                port = port_names.get(bridge_port, f"Port {bridge_port}")
            entries.append(DiscoveredMacAddressEntry(
                mac_address=mac,
                vlan_id=vlan_id,
                device_type=self.device_type(mac),
                port=port,
            ))
        return entries

    def discover(
        self,
        target: str,
        community: str,
        version: str,
        vlan_ids: Iterable[int],
        progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> MacTableResult:
        """
        Walk every VLAN in ascending order.

        A failed VLAN is logged and recorded in failed_vlans; the walk
        continues. should_stop is checked before each VLAN.

        Raises:
            ValidationError: empty or invalid VLAN id list
        """
        ids = normalize_vlan_ids(vlan_ids)
        result = MacTableResult(switch=target, vlan_ids=ids)

        for index, vlan_id in enumerate(ids):
            if should_stop and should_stop():
                result.cancelled = True
                logger.info(f"{target}: MAC discovery stopped before VLAN {vlan_id}")
                break

            try:
                entries = self.walk_vlan(target, community, version, vlan_id)
                result.mac_addresses.extend(entries)
                message = f"VLAN {vlan_id}: {len(entries)} MAC addresses"
            except ProtocolError as e:
                result.failed_vlans.append(vlan_id)
                logger.warning(f"{target}: MAC walk failed for VLAN {vlan_id}: {e}")
                message = f"VLAN {vlan_id}: walk failed"

            if progress:
                progress(message, round((index + 1) * 100 / len(ids)))

        return result

    def discover_via_agent(
        self,
        target: str,
        community: str,
        version: str,
        vlan_ids: Iterable[int],
        progress: Optional[ProgressCallback] = None,
    ) -> MacTableResult:
        """
        Single agent-side call covering all VLANs.

        Entries for VLANs that were not requested, or with malformed
        MACs, are dropped. A failed call marks every VLAN failed.
        """
        ids = normalize_vlan_ids(vlan_ids)
        result = MacTableResult(switch=target, vlan_ids=ids)
        wanted = set(ids)

        try:
            response = self.agent.discover_mac_addresses(target, community, version, ids)
        except ProtocolError as e:
            logger.warning(f"{target}: agent MAC discovery failed: {e}")
            result.failed_vlans = list(ids)
            if progress:
                progress("Agent MAC discovery failed", 100)
            return result

        dropped = 0
        for row in response.mac_addresses:
            mac = normalize_mac(row.mac_address)
            vlan_id = decode_int(row.vlan_id)
            if mac is None or vlan_id not in wanted:
                dropped += 1
                continue
            result.mac_addresses.append(DiscoveredMacAddressEntry(
                mac_address=mac,
                vlan_id=vlan_id,
                device_type=row.device_type or self.device_type(mac),
                port=str(row.port) if row.port is not None else None,
            ))

        if dropped:
            logger.debug(f"{target}: dropped {dropped} agent MAC rows")
        if progress:
            progress(f"{len(result.mac_addresses)} MAC addresses on {len(ids)} VLANs", 100)
        return result
