"""
netsurvey CLI Session Module.

VLAN discovery fallback over SSH/Telnet sessions opened through the
Access Agent.
"""

from .collector import (
    CliVlanCollector,
    CliCollectorResult,
    VendorCommands,
    VENDOR_COMMANDS,
    DEFAULT_COMMANDS,
    vendor_key,
    detect_vendor_from_output,
)
from .parsers import (
    OutputCleaner,
    parse_vlan_output,
    parse_cisco_vlans,
    parse_juniper_vlans,
    parse_hp_vlans,
    parse_generic_vlans,
)

__all__ = [
    'CliVlanCollector',
    'CliCollectorResult',
    'VendorCommands',
    'VENDOR_COMMANDS',
    'DEFAULT_COMMANDS',
    'vendor_key',
    'detect_vendor_from_output',
    'OutputCleaner',
    'parse_vlan_output',
    'parse_cisco_vlans',
    'parse_juniper_vlans',
    'parse_hp_vlans',
    'parse_generic_vlans',
]
