"""
netsurvey - System Info Collector.

Collects system MIB information (sysDescr, sysName, sysObjectID,
sysLocation) through the Access Agent.
"""

import logging
from typing import Dict, Any

from ....agent.client import AccessAgent
from ....errors import ProtocolError
from ...oids import SYSTEM
from ..parsers import decode_string, extract_hostname, normalize_oid

logger = logging.getLogger(__name__)


def get_system_info(
    agent: AccessAgent,
    target: str,
    community: str,
    version: str,
) -> Dict[str, Any]:
    """
    Get system MIB information from device.

    Queries the SNMPv2-MIB system group in a single GET.

    Args:
        agent: Access Agent to issue the GET through
        target: Device IP address
        community: SNMP community string
        version: SNMP version ("1", "2c", "3")

    Returns:
        Dictionary with keys:
            - sys_descr: System description
            - sys_name: System name
            - sys_object_id: Vendor OID (dotted numeric)
            - sys_location: Physical location
            - hostname: First label of sys_name

    Raises:
        ProtocolError: agent call failed, or the device answered none
            of the OIDs

    Example:
        info = get_system_info(agent, "192.168.1.1", "public", "2c")
        print(f"Device: {info['hostname']} ({info['sys_object_id']})")
    """
    oids = [
        SYSTEM.SYS_DESCR,
        SYSTEM.SYS_NAME,
        SYSTEM.SYS_OBJECT_ID,
        SYSTEM.SYS_LOCATION,
    ]

    values = agent.snmp_get(target, community, version, oids)

    result = {
        'sys_descr': decode_string(values.get(SYSTEM.SYS_DESCR)) or None,
        'sys_name': decode_string(values.get(SYSTEM.SYS_NAME)) or None,
        'sys_object_id': normalize_oid(values.get(SYSTEM.SYS_OBJECT_ID)),
        'sys_location': decode_string(values.get(SYSTEM.SYS_LOCATION)) or None,
    }
    result['hostname'] = extract_hostname(result['sys_name'])

    if not any(result.values()):
        raise ProtocolError(f"No SNMP system data from {target}", target=target)

    logger.debug(
        f"{target}: sysName={result['sys_name']} "
        f"sysObjectID={result['sys_object_id']}"
    )
    return result
