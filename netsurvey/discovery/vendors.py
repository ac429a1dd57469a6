"""
netsurvey - Static vendor lookup tables.

Process-wide, read-only data loaded once at import:
- OUI prefixes -> manufacturer
- sysObjectID enterprise prefixes -> manufacturer
- Per-manufacturer model regexes
- sysObjectID and keyword tables for device category

Tables are exposed as tuples or MappingProxyType so callers cannot
mutate them at runtime. OUI entries must not overlap: lookup accepts
any entry that is a prefix of the candidate (or vice versa) and stops
at the first hit.
"""

import re
from types import MappingProxyType
from typing import Dict, Mapping, Pattern, Tuple

from .models import DeviceCategory


# =============================================================================
# MAC OUI -> manufacturer
# =============================================================================

_OUI_GROUPS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Cisco", (
        "00:00:0C", "00:01:42", "00:01:43", "00:01:97", "00:03:6B",
        "00:04:9A", "00:05:9A", "00:07:0D", "00:0A:8A", "00:0C:CE",
        "00:0E:08", "00:0E:38", "00:0F:23", "00:0F:34", "00:11:92",
        "00:12:7F", "00:12:80", "00:13:C4", "00:15:C6", "00:17:5A",
        "00:17:DF", "00:18:BA", "00:19:2F", "00:19:AA", "00:1A:2F",
        "00:1B:67", "00:1B:D4", "00:1B:D5", "00:1C:0F", "00:1C:57",
        "00:1C:58", "00:1E:13", "00:1E:14", "00:21:55", "00:21:A0",
        "00:22:6B", "00:24:98", "00:50:0F", "00:50:54", "00:50:F0",
        "00:60:09", "00:60:2F", "00:60:3E", "00:90:92", "00:90:AB",
        "00:90:F2", "00:D0:58", "00:D0:63", "00:D0:97", "00:D0:BA",
        "00:D0:BB", "00:D0:BC", "00:E0:14", "00:E0:1E", "00:E0:F7",
        "00:E0:F9", "00:E0:FE", "04:FE:7F", "08:96:AD", "30:37:A6",
        "3C:CE:73", "58:6D:8F", "5C:50:15", "64:9E:F3", "74:A0:2F",
        "A4:0C:C3", "C8:9C:1D", "D0:D0:FD", "FC:FB:FB",
    )),
    ("Juniper", (
        "00:05:85", "00:10:DB", "00:12:1E", "00:14:F6", "00:19:E2",
        "00:1B:C0", "00:1F:12", "00:21:59", "00:22:83", "00:23:9C",
        "00:24:DC", "20:4E:71", "28:8A:1C", "28:C0:DA", "2C:21:31",
        "2C:6B:F5", "30:7C:5E", "3C:8A:B0", "3C:94:D5", "40:71:83",
        "4C:16:FC", "4C:96:14", "5C:45:27", "5C:5E:AB", "64:87:88",
        "78:19:F7", "84:18:88",
    )),
    ("Aruba", (
        "00:0B:86", "00:1A:1E", "00:24:6C", "04:BD:88", "18:64:72",
        "20:4C:03", "24:77:03", "24:DE:C6", "64:E8:81", "70:3A:0E",
        "84:D4:7E", "94:B4:0F", "9C:1C:12", "AC:A3:1E", "D8:C7:C8",
    )),
    ("HP", (
        "00:01:E7", "00:02:A5", "00:04:EA", "00:08:02", "00:0B:CD",
        "00:0D:9D", "00:10:83", "00:11:0A", "00:11:85", "00:12:79",
        "00:14:38", "00:15:60", "00:17:A4", "00:18:71", "00:1A:4B",
        "00:1B:78", "00:1C:C4", "00:1E:0B", "00:21:5A", "00:22:64",
        "00:23:7D", "00:24:A8", "00:25:B3", "00:26:55", "00:30:C1",
        "00:50:8B", "00:60:B0", "00:80:5F", "08:00:09", "10:1F:74",
        "14:58:D0", "1C:C1:DE", "24:BE:05", "2C:41:38", "2C:76:8A",
        "3C:D9:2B", "6C:C2:17", "80:C1:6E", "94:57:A5", "A0:D3:C1",
        "B8:AF:67", "B8:86:87", "C8:CB:B8", "CC:3E:5F", "D4:C9:EF",
        "E8:39:35",
    )),
    ("Dell", (
        "00:08:74", "00:0B:DB", "00:11:43", "00:12:3F", "00:13:72",
        "00:15:C5", "00:18:8B", "00:19:B9", "00:1A:A0", "00:1C:23",
        "00:1D:09", "00:21:70", "00:21:9B", "00:22:19", "00:25:64",
        "00:B0:D0", "08:00:20", "14:18:77", "14:5A:05", "18:03:73",
        "18:FB:7B", "24:B6:FD", "28:F1:0E", "50:9A:4C", "5C:26:0A",
        "84:2B:2B", "A4:BA:DB", "B8:AC:6F", "BC:30:5B", "BC:30:FB",
        "D0:67:E5", "D4:AE:52", "E0:DB:55", "F0:1F:AF", "F8:B1:56",
        "F8:DB:88",
    )),
    ("Huawei", (
        "00:18:82", "00:1E:10", "00:25:68", "00:25:9E", "00:34:FE",
        "00:46:4B", "00:5A:13", "00:66:4B", "00:9A:CD", "00:E0:FC",
        "04:25:C5", "04:F9:38", "08:19:A6", "08:63:61", "08:7A:4C",
        "0C:37:DC", "10:1B:54", "10:47:80", "10:C6:1F", "18:DE:D7",
        "20:0B:C7", "24:DB:AC", "28:31:52", "2C:9D:1E", "48:AD:08",
        "4C:B1:6C", "54:39:DF", "58:2A:F7", "5C:09:79", "5C:4C:A9",
        "60:DE:44", "70:54:F5", "78:D1:53", "7C:60:97", "80:71:1F",
        "80:B6:86", "AC:CF:85", "C4:FF:1F", "D4:40:F0", "D4:A1:48",
        "D4:B1:10", "E8:CD:2D", "EC:4D:47", "F4:55:9C", "F4:9F:F3",
    )),
    ("Ubiquiti", (
        "00:15:6D", "00:27:22", "04:18:D6", "18:E8:29", "24:A4:3C",
        "44:D9:E7", "68:72:51", "74:83:C2", "78:8A:20", "80:2A:A8",
        "DC:9F:DB", "FC:EC:DA",
    )),
    ("Ruckus", (
        "00:13:38", "00:18:6E", "00:22:7F", "00:24:82", "04:4F:AA",
        "0C:F4:D5", "24:C9:A1", "50:A7:33", "58:B6:33", "68:92:34",
        "6C:AA:B3", "74:91:1A", "AC:67:B2", "C0:8A:DE", "D4:68:4D",
        "F0:3E:90",
    )),
    ("Meraki", (
        "00:18:0A", "58:8D:09", "88:15:44", "AC:17:C8", "D4:CA:6D",
        "D8:84:66", "E0:55:3D",
    )),
    ("Extreme", (
        "00:04:96", "00:0F:CB", "00:11:88", "00:13:65", "00:1F:45",
        "00:23:A2", "00:25:45", "00:E0:2B", "5C:CC:A0", "74:67:F7",
        "B8:26:D4",
    )),
    ("Fortinet", (
        "00:09:0F", "08:5B:0E", "0C:17:F1", "18:56:80", "28:D0:7B",
        "54:3C:8F", "70:45:C9", "90:6C:AC", "94:5F:9D", "B8:A3:86",
        "E8:1C:BA",
    )),
)


def _build_oui_table() -> Mapping[str, str]:
    table: Dict[str, str] = {}
    for manufacturer, prefixes in _OUI_GROUPS:
        for prefix in prefixes:
            key = re.sub(r'[^0-9A-F]', '', prefix.upper())
            if key in table:
                raise ValueError(f"OUI {prefix} listed twice")
            table[key] = manufacturer
    return MappingProxyType(table)


# Normalized prefix (uppercase hex, no separators) -> manufacturer
OUI_TABLE: Mapping[str, str] = _build_oui_table()


# =============================================================================
# sysObjectID -> manufacturer
# =============================================================================

OID_MANUFACTURERS: Tuple[Tuple[str, str], ...] = (
    ("1.3.6.1.4.1.9.", "Cisco"),
    ("1.3.6.1.4.1.2636.", "Juniper"),
    ("1.3.6.1.4.1.4526.", "Aruba"),
    ("1.3.6.1.4.1.11.", "HP"),
    ("1.3.6.1.4.1.171.", "D-Link"),
    ("1.3.6.1.4.1.1916.", "Extreme"),
    ("1.3.6.1.4.1.6889.", "Avaya"),
    ("1.3.6.1.4.1.890.", "Zyxel"),
    ("1.3.6.1.4.1.3375.", "F5"),
    ("1.3.6.1.4.1.12356.", "Fortinet"),
    ("1.3.6.1.4.1.14988.", "Mikrotik"),
    ("1.3.6.1.4.1.25461.", "Palo Alto"),
    ("1.3.6.1.4.1.1991.", "Brocade"),
)


# =============================================================================
# Model extraction from sysDescr
# =============================================================================

# manufacturer (lowercase) -> (pattern, uppercase result)
MODEL_PATTERNS: Mapping[str, Tuple[Pattern[str], bool]] = MappingProxyType({
    "cisco": (
        re.compile(r'C\d+|CSR\d+|ASR\d+|ISR\d+|Nexus \d+|WS-\w+', re.IGNORECASE),
        False,
    ),
    "juniper": (
        re.compile(r'srx\d+|ex\d+|mx\d+|qfx\d+', re.IGNORECASE),
        True,
    ),
    "hp": (re.compile(r'\b[A-Z]\d{4}[A-Z]?\b|\bJ\d{4}[A-Z]\b'), False),
    "aruba": (re.compile(r'\b[A-Z]\d{4}[A-Z]?\b|\bJ\d{4}[A-Z]\b'), False),
})

GENERIC_MODEL_PATTERN: Pattern[str] = re.compile(r'[A-Z0-9]+-[A-Z0-9]+')


# =============================================================================
# Category tables
# =============================================================================

# Matched against the full sysObjectID, exactly or followed by "."
CATEGORY_OIDS: Tuple[Tuple[str, DeviceCategory], ...] = (
    ("1.3.6.1.4.1.9.1.516", DeviceCategory.SWITCH),      # Catalyst 3750
    ("1.3.6.1.4.1.9.1.1745", DeviceCategory.SWITCH),     # Catalyst 3850
    ("1.3.6.1.4.1.9.1.1639", DeviceCategory.ROUTER),     # ISR 4000
    ("1.3.6.1.4.1.9.1.525", DeviceCategory.AP),          # Aironet 1200
    ("1.3.6.1.4.1.9.1.1250", DeviceCategory.FIREWALL),   # ASA 5500
    ("1.3.6.1.4.1.12356.101.1", DeviceCategory.FIREWALL),  # FortiGate
    ("1.3.6.1.4.1.14823.1.1", DeviceCategory.CONTROLLER),  # Aruba mobility controller
    ("1.3.6.1.4.1.25461.2.3", DeviceCategory.FIREWALL),  # PAN-OS
)

# Checked in order; first category with a keyword substring wins
CATEGORY_KEYWORDS: Tuple[Tuple[DeviceCategory, Tuple[str, ...]], ...] = (
    (DeviceCategory.SWITCH, ("switch", "catalyst", "nexus")),
    (DeviceCategory.ROUTER, ("router", "isr", "asr")),
    (DeviceCategory.AP, ("wireless", "access point", "aironet")),
    (DeviceCategory.FIREWALL, ("firewall", "asa", "fortigate")),
    (DeviceCategory.CONTROLLER, ("controller", "wlc")),
    (DeviceCategory.SERVER, ("server", "ucs", "poweredge")),
)


# =============================================================================
# MAC table device types
# =============================================================================

MAC_DEVICE_TYPES: Tuple[str, ...] = ("Desktop", "Mobile", "IoT", "Server", "Network")
