"""
netsurvey - Discovery Module.

Subnet scan, device classification, VLAN and MAC table discovery
through the Device Access Agent.

Architecture:
    discovery/
    ├── models.py        # DiscoveredDevice, DiscoveredVlan, results
    ├── oids.py          # SNMP OID constants
    ├── vendors.py       # OUI, OID and model lookup tables
    ├── subnet.py        # CIDR -> host range and scan plan
    ├── reachability.py  # per-IP probe through the agent
    ├── classifier.py    # manufacturer/model/category heuristics
    ├── vlans.py         # per-switch VLAN discovery + merge
    ├── mac_table.py     # per-VLAN bridge table walk
    ├── events.py        # event emitter, async stream, console printer
    ├── engine.py        # async orchestration
    ├── cli.py           # CLI interface
    ├── snmp/            # agent-backed SNMP collectors
    │   ├── parsers.py   # MAC/OID/value decoding
    │   └── collectors/
    │       ├── system.py  # sysDescr, sysName, sysObjectID
    │       ├── entity.py  # ENTITY-MIB chassis/module text
    │       ├── vlans.py   # vtpVlanTable, dot1qVlanStaticTable
    │       └── bridge.py  # dot1dTpFdbTable, port names
    └── session/         # CLI fallback over SSH/Telnet
        ├── collector.py # vendor commands, session handling
        └── parsers.py   # vendor VLAN output parsers

Quick Start:
    from netsurvey.agent import AccessAgentClient
    from netsurvey.discovery import DiscoveryEngine

    engine = DiscoveryEngine(AccessAgentClient("http://localhost:3001/api"))
    result = await engine.run("192.168.10.0/24")
    print(result.to_json())
"""

from .models import (
    DeviceCategory,
    DeviceStatus,
    ConnectionMethod,
    DiscoveredDevice,
    DiscoveredVlan,
    DiscoveredMacAddressEntry,
    SwitchTarget,
    MacTableResult,
    DiscoveryResult,
    is_valid_vlan_id,
)

from .subnet import SubnetPlan, plan_subnet
from .reachability import ProbeResult, ReachabilityProber
from .classifier import DeviceClassifier
from .vlans import VlanDiscovery, VlanRegistry, merge_vlans
from .mac_table import DeviceTypeStrategy, MacTableDiscovery, OuiHashDeviceType

from .events import (
    EventType,
    LogLevel,
    DiscoveryEvent,
    EventEmitter,
    EventStream,
    ConsoleEventPrinter,
)

from .engine import DiscoveryEngine


__all__ = [
    # Engine
    'DiscoveryEngine',
    # Stages
    'SubnetPlan',
    'plan_subnet',
    'ProbeResult',
    'ReachabilityProber',
    'DeviceClassifier',
    'VlanDiscovery',
    'VlanRegistry',
    'merge_vlans',
    'DeviceTypeStrategy',
    'MacTableDiscovery',
    'OuiHashDeviceType',
    # Models
    'DeviceCategory',
    'DeviceStatus',
    'ConnectionMethod',
    'DiscoveredDevice',
    'DiscoveredVlan',
    'DiscoveredMacAddressEntry',
    'SwitchTarget',
    'MacTableResult',
    'DiscoveryResult',
    'is_valid_vlan_id',
    # Events
    'EventType',
    'LogLevel',
    'DiscoveryEvent',
    'EventEmitter',
    'EventStream',
    'ConsoleEventPrinter',
]
