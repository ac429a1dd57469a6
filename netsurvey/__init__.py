"""
netsurvey - Subnet survey and switch inventory engine.

Enumerates reachable hosts in a subnet, classifies them by MAC OUI and
SNMP, discovers VLANs on switches (SNMP first, CLI fallback) and walks
per-VLAN bridge forwarding tables. All device I/O goes through an
external Device Access Agent reached over HTTP/JSON.
"""

__version__ = "0.3.0"
