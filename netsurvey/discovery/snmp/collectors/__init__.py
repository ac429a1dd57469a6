"""
netsurvey - SNMP Collectors.

MIB-specific collection through the Access Agent. Each collector is a
plain blocking function taking (agent, target, community, version).
"""

from .system import get_system_info
from .entity import get_physical_descriptions
from .vlans import get_vtp_vlans, get_qbridge_vlans
from .bridge import get_forwarding_table, get_port_names, vlan_community

__all__ = [
    'get_system_info',
    'get_physical_descriptions',
    'get_vtp_vlans',
    'get_qbridge_vlans',
    'get_forwarding_table',
    'get_port_names',
    'vlan_community',
]
