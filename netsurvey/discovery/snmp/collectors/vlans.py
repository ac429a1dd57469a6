"""
netsurvey - VLAN Table Collector.

Raw SNMP VLAN tables, used when the agent's own VLAN discovery call
fails:

- CISCO-VTP-MIB vtpVlanTable (index: domain.vlanId). Only VLANs in
  the operational state are kept.
- Q-BRIDGE-MIB dot1qVlanStaticTable (index: vlanId) for everything else.

VLAN ids outside 1-4094 are dropped here and logged.
"""

import logging
from typing import Dict, List, Tuple

from ....agent.client import AccessAgent
from ...models import is_valid_vlan_id
from ...oids import CISCO_VTP, QBRIDGE, extract_index_from_oid
from ..parsers import decode_int, decode_string

logger = logging.getLogger(__name__)


def _vlan_index(oid: str, base: str) -> int:
    index = extract_index_from_oid(oid, base)
    value = decode_int(index.split('.')[-1])
    return value if value is not None else -1


def get_vtp_vlans(
    agent: AccessAgent,
    target: str,
    community: str,
    version: str,
) -> List[Tuple[int, str]]:
    """
    Operational VLANs from the Cisco VTP table.

    Returns:
        (vlan_id, name) pairs in walk order; names default to VLAN{id}
    """
    states: Dict[int, int] = {}
    for oid, value in agent.snmp_walk(target, CISCO_VTP.VLAN_STATE, community, version):
        vlan_id = _vlan_index(oid, CISCO_VTP.VLAN_STATE)
        state = decode_int(value)
        if state is not None:
            states[vlan_id] = state

    names: Dict[int, str] = {}
    if states:
        for oid, value in agent.snmp_walk(target, CISCO_VTP.VLAN_NAME, community, version):
            names[_vlan_index(oid, CISCO_VTP.VLAN_NAME)] = decode_string(value)

    vlans = []
    for vlan_id, state in states.items():
        if state != CISCO_VTP.STATE_OPERATIONAL:
            continue
        if not is_valid_vlan_id(vlan_id):
            logger.warning(f"{target}: dropping invalid VTP VLAN id {vlan_id}")
            continue
        vlans.append((vlan_id, names.get(vlan_id) or f"VLAN{vlan_id}"))

    logger.debug(f"{target}: {len(vlans)} operational VTP VLANs of {len(states)}")
    return vlans


def get_qbridge_vlans(
    agent: AccessAgent,
    target: str,
    community: str,
    version: str,
) -> List[Tuple[int, str]]:
    """
    VLANs from the IEEE 802.1Q static table.

    Returns:
        (vlan_id, name) pairs in walk order
    """
    vlans = []
    for oid, value in agent.snmp_walk(
        target, QBRIDGE.VLAN_STATIC_NAME, community, version
    ):
        vlan_id = _vlan_index(oid, QBRIDGE.VLAN_STATIC_NAME)
        if not is_valid_vlan_id(vlan_id):
            logger.warning(f"{target}: dropping invalid 802.1Q VLAN id {vlan_id}")
            continue
        vlans.append((vlan_id, decode_string(value) or f"VLAN{vlan_id}"))
    return vlans
