"""
netsurvey CLI VLAN Parsers - Vendor text parsing for VLAN tables.

Path: netsurvey/discovery/session/parsers.py

Parses the output of the VLAN listing command for each vendor family:

    cisco    show vlan brief     fixed columns below a ---- separator
    juniper  show vlans detail   "Routing instance:" blocks
    hp       show vlans          "<id> <name> |" columns, no ports
    default  show vlan           best-effort "<id> <name>" tokens

Parsers never raise. VLAN ids outside 1-4094 are dropped and logged;
an empty list means nothing matched.
"""

import re
import logging
from typing import Callable, Dict, List, Optional

from ..models import DiscoveredVlan, is_valid_vlan_id

logger = logging.getLogger(__name__)

VlanParser = Callable[[str], List[DiscoveredVlan]]


class OutputCleaner:
    """Clean raw CLI output before parsing."""

    ANSI_PATTERN = re.compile(r'\x1b\[[0-9;?]*[A-Za-z]')
    PAGER_PATTERN = re.compile(r'\s*-+\s*more\s*-+\s*', re.IGNORECASE)

    # Patterns to skip at start of output
    PREAMBLE_PATTERNS = [
        r'^terminal\s+(length|width)',
        r'^set\s+cli\s+screen-length',
        r'^screen-length\s+\d+',
        r'^no\s+page\s*$',
        r'^\s*$',
    ]

    # Command echo pattern
    COMMAND_ECHO_PATTERN = r'^[\w\-\.@]+[\#\>\$\)]\s*show\s+'

    # Trailing prompt pattern
    TRAILING_PROMPT_PATTERN = r'^[\w\-\.@]+[\#\>\$\)]\s*$'

    @classmethod
    def clean(cls, raw_output: str) -> str:
        """
        Clean raw CLI output.

        Removes:
        - ANSI escapes, backspaces, carriage returns and pager prompts
        - Preamble lines (terminal length, pagination commands)
        - Command echo (hostname#show command)
        - Trailing prompts
        """
        text = cls.ANSI_PATTERN.sub('', raw_output or '')
        text = re.sub(r'.\x08', '', text).replace('\x08', '')
        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = cls.PAGER_PATTERN.sub('\n', text)

        cleaned_lines = []
        found_output_start = False

        for line in text.split('\n'):
            line_stripped = line.strip()

            if not found_output_start:
                is_preamble = any(
                    re.match(p, line_stripped, re.IGNORECASE)
                    for p in cls.PREAMBLE_PATTERNS
                )
                if is_preamble:
                    continue

                if re.match(cls.COMMAND_ECHO_PATTERN, line_stripped, re.IGNORECASE):
                    found_output_start = True
                    continue

                found_output_start = True

            if re.match(cls.TRAILING_PROMPT_PATTERN, line_stripped):
                continue

            cleaned_lines.append(line.rstrip())

        while cleaned_lines and not cleaned_lines[-1].strip():
            cleaned_lines.pop()

        return '\n'.join(cleaned_lines)


def _accept(vlan_id: int, name: str, ports: List[str], source: str) -> Optional[DiscoveredVlan]:
    if not is_valid_vlan_id(vlan_id):
        logger.warning(f"{source}: dropping invalid VLAN id {vlan_id}")
        return None
    return DiscoveredVlan(vlan_id=vlan_id, name=name, used_by=ports)


def _split_ports(text: str) -> List[str]:
    return [p.strip() for p in text.split(',') if p.strip()]


# =============================================================================
# Cisco
# =============================================================================

CISCO_ROW = re.compile(r'^(\d+)\s+(\S+)\s+(\S+)\s*(.*)$')
CISCO_PORT_CONTINUATION = re.compile(r'^[A-Za-z][\w/.:\-]*(\s*,\s*[A-Za-z][\w/.:\-]*)*,?$')


def parse_cisco_vlans(output: str) -> List[DiscoveredVlan]:
    """
    Parse "show vlan brief".

        VLAN Name                             Status    Ports
        ---- -------------------------------- --------- -----------------
        1    default                          active    Gi0/1, Gi0/2
        10   Management                       active    Gi0/3, Gi0/4

    Rows after the dashed separator are parsed (all rows when there is
    no separator). Indented lines continue the previous row's ports.
    Member ports are returned in used_by.
    """
    lines = output.splitlines()
    start = 0
    for i, line in enumerate(lines):
        if line.strip().startswith('----'):
            start = i + 1
            break

    vlans: List[DiscoveredVlan] = []
    last: Optional[DiscoveredVlan] = None
    for line in lines[start:]:
        stripped = line.strip()
        if not stripped:
            continue

        match = CISCO_ROW.match(stripped)
        if match:
            vlan_id, name, _status, ports = match.groups()
            last = _accept(int(vlan_id), name, _split_ports(ports), "cisco")
            if last:
                vlans.append(last)
            continue

        if last and line[:1].isspace() and CISCO_PORT_CONTINUATION.match(stripped):
            for port in _split_ports(stripped):
                last.add_user(port)

    return vlans


# =============================================================================
# Juniper
# =============================================================================

JUNIPER_NAME = re.compile(r'VLAN(?: Name)?:\s+([^\s,]+)')
JUNIPER_TAG = re.compile(r'Tag:\s+(\d+)')
JUNIPER_INTERFACE = re.compile(r'(\S+?\.\d+)\*?(?:,|\s|$)')


def parse_juniper_vlans(output: str) -> List[DiscoveredVlan]:
    """
    Parse "show vlans detail".

        Routing instance: default-switch
        VLAN Name: v10                    State: Active
        Tag: 10
        Internal index: 5, Generation Index: 5, Origin: Static
        Untagged interfaces: ge-0/0/1.0*, ge-0/0/2.0,

    Each "Routing instance:" block yields at most one VLAN. Interface
    units (name.unit) listed after the first "interfaces" label become
    used_by.
    """
    vlans: List[DiscoveredVlan] = []
    for block in output.split('Routing instance:'):
        name_match = JUNIPER_NAME.search(block)
        tag_match = JUNIPER_TAG.search(block)
        if not name_match or not tag_match:
            continue

        ports: List[str] = []
        marker = re.search(r'interfaces', block, re.IGNORECASE)
        if marker:
            ports = JUNIPER_INTERFACE.findall(block[marker.end():])

        vlan = _accept(int(tag_match.group(1)), name_match.group(1), ports, "juniper")
        if vlan:
            vlans.append(vlan)
    return vlans


# =============================================================================
# HP / Aruba
# =============================================================================

HP_ROW = re.compile(r'^[ \t]*(\d+)[ \t]+(\S+)(?=\s|$)', re.MULTILINE)


def parse_hp_vlans(output: str) -> List[DiscoveredVlan]:
    """
    Parse ProCurve/Aruba "show vlans".

        VLAN ID Name                             | Status     Voice Jumbo
        ------- -------------------------------- + ---------- ----- -----
        1       DEFAULT_VLAN                     | Port-based No    No

    Port membership is not part of this output.
    """
    vlans: List[DiscoveredVlan] = []
    for match in HP_ROW.finditer(output):
        vlan = _accept(int(match.group(1)), match.group(2), [], "hp")
        if vlan:
            vlans.append(vlan)
    return vlans


# =============================================================================
# Default
# =============================================================================

GENERIC_TOKEN = re.compile(r'(\d+)[ \t]+(\S+)')


def parse_generic_vlans(output: str) -> List[DiscoveredVlan]:
    """Best-effort "<id> <name>" matching for unknown vendors, one per line."""
    vlans: List[DiscoveredVlan] = []
    for line in output.splitlines():
        match = GENERIC_TOKEN.search(line)
        if not match:
            continue
        vlan = _accept(int(match.group(1)), match.group(2), [], "generic")
        if vlan:
            vlans.append(vlan)
    return vlans


PARSERS: Dict[str, VlanParser] = {
    "cisco": parse_cisco_vlans,
    "juniper": parse_juniper_vlans,
    "hp": parse_hp_vlans,
}


def parse_vlan_output(output: str, vendor: str = "default") -> List[DiscoveredVlan]:
    """
    Parse VLAN listing output with the parser for `vendor`.

    Duplicate VLAN ids keep their first occurrence.
    """
    parser = PARSERS.get(vendor, parse_generic_vlans)
    seen: Dict[int, DiscoveredVlan] = {}
    for vlan in parser(output):
        if vlan.vlan_id not in seen:
            seen[vlan.vlan_id] = vlan
    return list(seen.values())
