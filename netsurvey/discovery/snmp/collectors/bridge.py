"""
netsurvey - Bridge Table Collector.

Walks the BRIDGE-MIB forwarding database (dot1dTpFdbPort) and the
base port table used to name the port each MAC was learned on.

On Cisco switches both tables are per-VLAN: the caller passes the
community@vlan context string as `community`.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ....agent.client import AccessAgent
from ...oids import BRIDGE, INTERFACES, extract_index_from_oid
from ..parsers import decode_int, decode_string, mac_from_oid

logger = logging.getLogger(__name__)


def vlan_community(community: str, vlan_id: int) -> str:
    """
    Community string for a VLAN context.

    VLAN 1 uses the base community; others use community@vlan.
    """
    if vlan_id == 1:
        return community
    return f"{community}@{vlan_id}"


def get_forwarding_table(
    agent: AccessAgent,
    target: str,
    community: str,
    version: str,
) -> List[Tuple[str, Optional[int]]]:
    """
    Learned MACs and their bridge port numbers.

    Rows whose OID does not end in six valid octets are skipped.

    Returns:
        (mac, bridge_port) pairs in walk order; mac is XX:XX:XX:XX:XX:XX
    """
    entries = []
    skipped = 0
    for oid, value in agent.snmp_walk(target, BRIDGE.FDB_PORT, community, version):
        mac = mac_from_oid(oid)
        if mac is None:
            skipped += 1
            continue
        entries.append((mac, decode_int(value)))

    if skipped:
        logger.debug(f"{target}: skipped {skipped} undecodable FDB rows")
    return entries


def get_port_names(
    agent: AccessAgent,
    target: str,
    community: str,
    version: str,
) -> Dict[int, str]:
    """
    Map bridge port number -> interface name.

    Uses dot1dBasePortIfIndex, then ifName, falling back to ifDescr
    when ifName is not populated.
    """
    port_to_ifindex: Dict[int, int] = {}
    for oid, value in agent.snmp_walk(
        target, BRIDGE.BASE_PORT_IF_INDEX, community, version
    ):
        port = decode_int(extract_index_from_oid(oid, BRIDGE.BASE_PORT_IF_INDEX))
        if_index = decode_int(value)
        if port is not None and if_index is not None:
            port_to_ifindex[port] = if_index

    if not port_to_ifindex:
        return {}

    if_names = _walk_names(agent, target, community, version, INTERFACES.IF_NAME)
    if not if_names:
        if_names = _walk_names(agent, target, community, version, INTERFACES.IF_DESCR)

    return {
        port: if_names[if_index]
        for port, if_index in port_to_ifindex.items()
        if if_index in if_names
    }


def _walk_names(
    agent: AccessAgent,
    target: str,
    community: str,
    version: str,
    base: str,
) -> Dict[int, str]:
    names: Dict[int, str] = {}
    for oid, value in agent.snmp_walk(target, base, community, version):
        if_index = decode_int(extract_index_from_oid(oid, base))
        name = decode_string(value)
        if if_index is not None and name:
            names[if_index] = name
    return names
