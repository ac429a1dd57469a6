"""
netsurvey - SNMP OID Constants.

Centralized OID definitions used when asking the Access Agent for
SNMP data.

Organization:
- SNMPv2-MIB: System group (sysDescr, sysName, sysObjectID)
- IF-MIB: Interface names for bridge port resolution
- BRIDGE-MIB: Forwarding database and base port table
- Q-BRIDGE-MIB: Standard VLAN static table
- CISCO-VTP-MIB: Cisco VLAN table
- ENTITY-MIB: Physical entity descriptions

Usage:
    from netsurvey.discovery.oids import SYSTEM, BRIDGE

    values = agent.snmp_get(ip, community, version, [SYSTEM.SYS_DESCR])
    entries = agent.snmp_walk(ip, BRIDGE.FDB_PORT, community, version)

Notes:
- Numeric OIDs only; the agent does no MIB resolution
- Table column OIDs are walked, scalars end in .0
"""

from typing import List


# =============================================================================
# SNMPv2-MIB - System Group
# =============================================================================

class SYSTEM:
    """
    SNMPv2-MIB System Group OIDs.

    Base: 1.3.6.1.2.1.1 (iso.org.dod.internet.mgmt.mib-2.system)
    """
    BASE = "1.3.6.1.2.1.1"

    SYS_DESCR = "1.3.6.1.2.1.1.1.0"           # System description string
    SYS_OBJECT_ID = "1.3.6.1.2.1.1.2.0"       # Vendor's authoritative ID
    SYS_NAME = "1.3.6.1.2.1.1.5.0"            # Administratively assigned name
    SYS_LOCATION = "1.3.6.1.2.1.1.6.0"        # Physical location


# =============================================================================
# IF-MIB - Interface names
# =============================================================================

class INTERFACES:
    """IF-MIB columns used to turn ifIndex into a port name."""
    IF_DESCR = "1.3.6.1.2.1.2.2.1.2"          # ifDescr (fallback)
    IF_NAME = "1.3.6.1.2.1.31.1.1.1.1"        # ifName (short name, Gi0/1)


# =============================================================================
# BRIDGE-MIB - Forwarding database
# =============================================================================

class BRIDGE:
    """
    BRIDGE-MIB OIDs.

    dot1dTpFdbTable is indexed by the MAC itself, so the last six
    sub-identifiers of every row OID are the address octets. On Cisco
    the table is per-VLAN and needs the community@vlan context.
    """
    FDB_ADDRESS = "1.3.6.1.2.1.17.4.3.1.1"    # dot1dTpFdbAddress
    FDB_PORT = "1.3.6.1.2.1.17.4.3.1.2"       # dot1dTpFdbPort (bridge port)
    FDB_STATUS = "1.3.6.1.2.1.17.4.3.1.3"     # dot1dTpFdbStatus

    BASE_PORT_IF_INDEX = "1.3.6.1.2.1.17.1.4.1.2"  # dot1dBasePortIfIndex


# =============================================================================
# Q-BRIDGE-MIB - Standard VLAN table
# =============================================================================

class QBRIDGE:
    """IEEE 802.1Q VLAN static table, indexed by VLAN id."""
    VLAN_STATIC_NAME = "1.3.6.1.2.1.17.7.1.4.3.1.1"
    VLAN_STATIC_ROW_STATUS = "1.3.6.1.2.1.17.7.1.4.3.1.5"


# =============================================================================
# CISCO-VTP-MIB
# =============================================================================

class CISCO_VTP:
    """
    vtpVlanTable, indexed by managementDomainIndex.vlanIndex.

    vtpVlanState: 1=operational 2=suspended 3=mtuTooBigForDevice
    4=mtuTooBigForTrunk
    """
    VLAN_STATE = "1.3.6.1.4.1.9.9.46.1.3.1.1.2"
    VLAN_NAME = "1.3.6.1.4.1.9.9.46.1.3.1.1.4"

    STATE_OPERATIONAL = 1


# =============================================================================
# ENTITY-MIB
# =============================================================================

class ENTITY:
    """ENTITY-MIB physical table (chassis, modules, PSUs)."""
    PHYS_DESCR = "1.3.6.1.2.1.47.1.1.1.1.2"   # entPhysicalDescr
    PHYS_CLASS = "1.3.6.1.2.1.47.1.1.1.1.5"   # entPhysicalClass

    # entPhysicalClass values scanned for category keywords
    CLASS_CHASSIS = 3
    CLASS_MODULE = 9


# =============================================================================
# Helper Functions
# =============================================================================

def extract_index_from_oid(oid: str, base_oid: str) -> str:
    """
    Extract index portion from an OID.

    Example:
        oid = "1.3.6.1.2.1.17.1.4.1.2.5"
        base = "1.3.6.1.2.1.17.1.4.1.2"
        returns "5"
    """
    oid = oid.lstrip(".")
    if oid.startswith(base_oid + "."):
        return oid[len(base_oid) + 1:]
    return oid


def oid_suffix(oid: str, count: int) -> List[str]:
    """Last `count` sub-identifiers of an OID (fewer if it is shorter)."""
    parts = [p for p in oid.strip().split(".") if p]
    return parts[-count:]
