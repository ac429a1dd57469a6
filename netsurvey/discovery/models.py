"""
netsurvey - Discovery Data Models.

Typed dataclasses for subnet survey results. Devices, VLANs and MAC
table entries are produced in memory and handed to the caller, which
owns persistence.

Design Principles:
- All fields optional except identifiers (for partial discovery)
- Enums instead of free-form strings for category, status, method
- Invariants checked at construction (VLAN id range)
- Serializable to JSON for export
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
import json

from ..errors import ValidationError

VLAN_ID_MIN = 1
VLAN_ID_MAX = 4094


def is_valid_vlan_id(vlan_id: Any) -> bool:
    """True for integers in the 802.1Q usable range 1-4094."""
    if isinstance(vlan_id, bool) or not isinstance(vlan_id, int):
        return False
    return VLAN_ID_MIN <= vlan_id <= VLAN_ID_MAX


class DeviceCategory(str, Enum):
    """Device role classification."""
    SWITCH = "Switch"
    ROUTER = "Router"
    AP = "AP"
    CONTROLLER = "Controller"
    FIREWALL = "Firewall"
    SERVER = "Server"
    OTHER = "Other"


class DeviceStatus(str, Enum):
    """Reachability status at scan time."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class ConnectionMethod(str, Enum):
    """Access method used through the agent."""
    SNMP = "snmp"
    SSH = "ssh"
    TELNET = "telnet"


@dataclass
class DiscoveredDevice:
    """
    Host found during a subnet scan.

    Created once per probed IP, then filled in by the classifier.
    needs_verification stays True while manufacturer, model or
    hostname is unknown.
    """
    ip_address: str
    mac_address: Optional[str] = None  # XX:XX:XX:XX:XX:XX
    hostname: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    category: DeviceCategory = DeviceCategory.OTHER
    status: DeviceStatus = DeviceStatus.UNKNOWN
    needs_verification: bool = True

    # Raw SNMP system group, kept for audit
    sys_descr: Optional[str] = None
    sys_object_id: Optional[str] = None
    sys_location: Optional[str] = None

    is_routed: bool = False
    discovered_via: Optional[ConnectionMethod] = None
    discovered_at: datetime = field(default_factory=datetime.now)
    errors: List[str] = field(default_factory=list)

    def update_verification(self) -> bool:
        """Recompute needs_verification from the identity fields."""
        self.needs_verification = not (
            self.manufacturer and self.model and self.hostname
        )
        return self.needs_verification

    @property
    def identifier(self) -> str:
        """Hostname when known, otherwise the IP."""
        return self.hostname or self.ip_address

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ip_address': self.ip_address,
            'mac_address': self.mac_address,
            'hostname': self.hostname,
            'manufacturer': self.manufacturer,
            'model': self.model,
            'category': self.category.value,
            'status': self.status.value,
            'needs_verification': self.needs_verification,
            'sys_descr': self.sys_descr,
            'sys_object_id': self.sys_object_id,
            'sys_location': self.sys_location,
            'is_routed': self.is_routed,
            'discovered_via': self.discovered_via.value if self.discovered_via else None,
            'discovered_at': self.discovered_at.isoformat() if self.discovered_at else None,
            'errors': self.errors,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiscoveredDevice':
        discovered_at = datetime.now()
        if data.get('discovered_at'):
            discovered_at = datetime.fromisoformat(data['discovered_at'])

        method = data.get('discovered_via')

        return cls(
            ip_address=data['ip_address'],
            mac_address=data.get('mac_address'),
            hostname=data.get('hostname'),
            manufacturer=data.get('manufacturer'),
            model=data.get('model'),
            category=DeviceCategory(data.get('category', 'Other')),
            status=DeviceStatus(data.get('status', 'unknown')),
            needs_verification=data.get('needs_verification', True),
            sys_descr=data.get('sys_descr'),
            sys_object_id=data.get('sys_object_id'),
            sys_location=data.get('sys_location'),
            is_routed=data.get('is_routed', False),
            discovered_via=ConnectionMethod(method) if method else None,
            discovered_at=discovered_at,
            errors=data.get('errors', []),
        )


@dataclass
class DiscoveredVlan:
    """
    VLAN reported by one or more switches.

    used_by holds device identifiers (hostname or IP) in first-seen
    order without duplicates. ports is filled only when the VLAN came
    from CLI output that lists member interfaces.
    """
    vlan_id: int
    name: str
    segment_name: Optional[str] = None
    subnet: Optional[str] = None
    used_by: List[str] = field(default_factory=list)
    ports: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not is_valid_vlan_id(self.vlan_id):
            raise ValidationError(
                f"VLAN id {self.vlan_id!r} outside {VLAN_ID_MIN}-{VLAN_ID_MAX}"
            )
        if self.segment_name is None:
            self.segment_name = self.name
        # Collapse duplicates while keeping order
        self.used_by = list(dict.fromkeys(self.used_by))

    def add_user(self, identifier: str) -> bool:
        """Append a reporting device. Returns False if already listed."""
        if not identifier or identifier in self.used_by:
            return False
        self.used_by.append(identifier)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vlan_id': self.vlan_id,
            'name': self.name,
            'segment_name': self.segment_name,
            'subnet': self.subnet,
            'used_by': list(self.used_by),
            'ports': list(self.ports),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiscoveredVlan':
        return cls(
            vlan_id=data['vlan_id'],
            name=data.get('name', f"VLAN{data['vlan_id']}"),
            segment_name=data.get('segment_name'),
            subnet=data.get('subnet'),
            used_by=data.get('used_by', []),
            ports=data.get('ports', []),
        )


@dataclass
class DiscoveredMacAddressEntry:
    """
    One learned MAC in a switch forwarding table.

    device_type is a heuristic guess, not an authoritative class.
    """
    mac_address: str
    vlan_id: int
    device_type: str
    port: Optional[str] = None

    def __post_init__(self):
        if not is_valid_vlan_id(self.vlan_id):
            raise ValidationError(
                f"VLAN id {self.vlan_id!r} outside {VLAN_ID_MIN}-{VLAN_ID_MAX}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mac_address': self.mac_address,
            'vlan_id': self.vlan_id,
            'device_type': self.device_type,
            'port': self.port,
        }


@dataclass
class SwitchTarget:
    """
    Switch to interrogate for VLANs and MAC tables.

    SNMP and CLI fields left as None fall back to the engine settings.
    """
    ip_address: str
    hostname: Optional[str] = None
    manufacturer: Optional[str] = None
    community: Optional[str] = None
    snmp_version: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    methods: List[ConnectionMethod] = field(default_factory=list)

    @property
    def identifier(self) -> str:
        return self.hostname or self.ip_address

    @classmethod
    def from_device(cls, device: DiscoveredDevice) -> 'SwitchTarget':
        return cls(
            ip_address=device.ip_address,
            hostname=device.hostname,
            manufacturer=device.manufacturer,
        )


@dataclass
class MacTableResult:
    """MAC entries collected from one switch."""
    switch: str
    mac_addresses: List[DiscoveredMacAddressEntry] = field(default_factory=list)
    vlan_ids: List[int] = field(default_factory=list)
    failed_vlans: List[int] = field(default_factory=list)
    cancelled: bool = False

    @property
    def summary(self) -> Dict[str, Any]:
        return {
            'switch': self.switch,
            'vlans': len(self.vlan_ids),
            'failed_vlans': len(self.failed_vlans),
            'mac_addresses': len(self.mac_addresses),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'switch': self.switch,
            'mac_addresses': [m.to_dict() for m in self.mac_addresses],
            'vlan_ids': list(self.vlan_ids),
            'failed_vlans': list(self.failed_vlans),
            'cancelled': self.cancelled,
        }


@dataclass
class DiscoveryResult:
    """
    Result of a survey operation (scan, VLAN pass, MAC pass or full run).

    Partial failures never discard what was found; records needing
    manual review carry needs_verification. aborted marks a run that
    stopped early because the Access Agent went away.
    """
    cidr: Optional[str] = None
    devices: List[DiscoveredDevice] = field(default_factory=list)
    vlans: List[DiscoveredVlan] = field(default_factory=list)
    mac_addresses: List[DiscoveredMacAddressEntry] = field(default_factory=list)

    # Statistics
    hosts_planned: int = 0
    hosts_scanned: int = 0
    reachable: int = 0
    unreachable: int = 0
    failed: int = 0
    sampled: bool = False
    switches_attempted: int = 0
    switches_failed: int = 0
    mac_vlans_failed: int = 0

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    cancelled: bool = False
    aborted: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def devices_by_category(self) -> Dict[str, int]:
        """Count devices per category, every category present."""
        counts = {category.value: 0 for category in DeviceCategory}
        for device in self.devices:
            counts[device.category.value] += 1
        return counts

    @property
    def needs_verification(self) -> int:
        return sum(1 for d in self.devices if d.needs_verification)

    @property
    def summary(self) -> Dict[str, Any]:
        return {
            'hosts_planned': self.hosts_planned,
            'hosts_scanned': self.hosts_scanned,
            'reachable': self.reachable,
            'unreachable': self.unreachable,
            'failed': self.failed,
            'sampled': self.sampled,
            'devices': len(self.devices),
            'needs_verification': self.needs_verification,
            'devices_by_category': self.devices_by_category,
            'vlans': len(self.vlans),
            'mac_addresses': len(self.mac_addresses),
            'switches_attempted': self.switches_attempted,
            'switches_failed': self.switches_failed,
            'mac_vlans_failed': self.mac_vlans_failed,
        }

    def get_device(self, ip_address: str) -> Optional[DiscoveredDevice]:
        for device in self.devices:
            if device.ip_address == ip_address:
                return device
        return None

    def validate(self) -> None:
        """
        Check the contract handed to persistence.

        Raises:
            ValidationError: duplicate device IPs or VLAN ids, or MAC
                entries pointing at VLANs not in this result
        """
        seen_ips = set()
        for device in self.devices:
            if device.ip_address in seen_ips:
                raise ValidationError(f"Duplicate device IP {device.ip_address}")
            seen_ips.add(device.ip_address)

        vlan_ids = set()
        for vlan in self.vlans:
            if not is_valid_vlan_id(vlan.vlan_id):
                raise ValidationError(f"Invalid VLAN id {vlan.vlan_id}")
            if vlan.vlan_id in vlan_ids:
                raise ValidationError(f"Duplicate VLAN id {vlan.vlan_id}")
            vlan_ids.add(vlan.vlan_id)

        for entry in self.mac_addresses:
            if entry.vlan_id not in vlan_ids:
                raise ValidationError(
                    f"MAC {entry.mac_address} references undiscovered "
                    f"VLAN {entry.vlan_id}"
                )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'cidr': self.cidr,
            'devices': [d.to_dict() for d in self.devices],
            'vlans': [v.to_dict() for v in self.vlans],
            'mac_addresses': [m.to_dict() for m in self.mac_addresses],
            'summary': self.summary,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
            'cancelled': self.cancelled,
            'aborted': self.aborted,
            'errors': self.errors,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
