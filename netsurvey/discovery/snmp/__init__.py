"""
netsurvey - SNMP Discovery Module.

SNMP data is fetched through the Access Agent; this package decodes
and structures it.

Components:
- parsers: Value decoding (MAC, strings, OIDs, hostnames)
- collectors: MIB-specific data collection
  - system: sysDescr, sysName, sysObjectID, sysLocation
  - entity: chassis/module descriptions
  - vlans: VTP and 802.1Q VLAN tables
  - bridge: forwarding database, bridge port names

Usage:
    from netsurvey.discovery.snmp import get_system_info, get_forwarding_table

    info = get_system_info(agent, "192.168.1.1", "public", "2c")
    fdb = get_forwarding_table(agent, "192.168.1.1", "public@20", "2c")
"""

from .parsers import (
    decode_int,
    decode_string,
    extract_hostname,
    mac_from_oid,
    mac_hex,
    normalize_mac,
    normalize_oid,
    oui_bytes,
)

from .collectors import (
    get_system_info,
    get_physical_descriptions,
    get_vtp_vlans,
    get_qbridge_vlans,
    get_forwarding_table,
    get_port_names,
    vlan_community,
)


__all__ = [
    # Parsers
    'decode_int',
    'decode_string',
    'extract_hostname',
    'mac_from_oid',
    'mac_hex',
    'normalize_mac',
    'normalize_oid',
    'oui_bytes',
    # Collectors
    'get_system_info',
    'get_physical_descriptions',
    'get_vtp_vlans',
    'get_qbridge_vlans',
    'get_forwarding_table',
    'get_port_names',
    'vlan_community',
]
