"""
netsurvey CLI Collector - VLAN discovery over SSH/Telnet sessions.

Path: netsurvey/discovery/session/collector.py

Fallback for switches whose SNMP VLAN data is unavailable. Opens a
session through the Access Agent, disables paging, runs the vendor's
VLAN listing command and parses the text.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ...agent.client import AccessAgent
from ...errors import ParseError, ProtocolError
from ..models import ConnectionMethod, DiscoveredVlan
from .parsers import OutputCleaner, parse_vlan_output

logger = logging.getLogger(__name__)


# =============================================================================
# Vendor-specific command definitions
# =============================================================================

@dataclass(frozen=True)
class VendorCommands:
    """Paging setup and VLAN listing command for a vendor family."""
    vlan_command: str
    setup_commands: Tuple[str, ...] = ()


VENDOR_COMMANDS: Dict[str, VendorCommands] = {
    "cisco": VendorCommands(
        vlan_command="show vlan brief",
        setup_commands=("terminal length 0",),
    ),
    "juniper": VendorCommands(
        vlan_command="show vlans detail",
        setup_commands=("set cli screen-length 0",),
    ),
    "hp": VendorCommands(
        vlan_command="show vlans",
        setup_commands=("no page",),
    ),
}

# Fallback for unknown vendors
DEFAULT_COMMANDS = VendorCommands(vlan_command="show vlan")


def vendor_key(manufacturer: Optional[str]) -> str:
    """Map a manufacturer name onto a command/parser family."""
    name = (manufacturer or "").lower()
    if "cisco" in name:
        return "cisco"
    if "juniper" in name:
        return "juniper"
    if any(kw in name for kw in ("hp", "hewlett", "aruba", "procurve")):
        return "hp"
    return "default"


def detect_vendor_from_output(output: str) -> str:
    """Guess the parser family from the shape of VLAN command output."""
    if "Routing instance:" in output or re.search(r'\bjunos\b', output, re.IGNORECASE):
        return "juniper"
    if re.search(r'^\s*VLAN\s+Name\s+Status\s+Ports', output, re.MULTILINE):
        return "cisco"
    if re.search(r'VLAN ID\s+Name|Status and Counters', output):
        return "hp"
    lowered = output.lower()
    if "cisco" in lowered:
        return "cisco"
    if "procurve" in lowered or "aruba" in lowered:
        return "hp"
    return "default"


@dataclass
class CliCollectorResult:
    """Result of CLI VLAN collection."""
    success: bool
    vlans: List[DiscoveredVlan] = field(default_factory=list)
    vendor: str = "default"
    method: Optional[ConnectionMethod] = None
    raw_output: Dict[str, str] = field(default_factory=dict)  # command -> output
    errors: List[str] = field(default_factory=list)
    duration_ms: float = 0.0


class CliVlanCollector:
    """
    CLI-based VLAN collector.

    Tries each connection method in order; the first session that
    produces parseable output wins. A ParseError ends the attempt since
    another transport would return the same text.

    Example:
        collector = CliVlanCollector(agent, "admin", "secret")
        result = collector.collect("10.0.0.2", manufacturer="Cisco")
        for vlan in result.vlans:
            print(vlan.vlan_id, vlan.name)
    """

    def __init__(
        self,
        agent: AccessAgent,
        username: str,
        password: str,
        methods: Sequence[ConnectionMethod] = (ConnectionMethod.SSH, ConnectionMethod.TELNET),
        ssh_port: int = 22,
        telnet_port: int = 23,
    ):
        self.agent = agent
        self.username = username
        self.password = password
        self.methods = [m for m in methods if m != ConnectionMethod.SNMP]
        self.ports = {
            ConnectionMethod.SSH: ssh_port,
            ConnectionMethod.TELNET: telnet_port,
        }

    def collect(self, target: str, manufacturer: Optional[str] = None) -> CliCollectorResult:
        """Collect VLANs from one switch."""
        start = time.monotonic()
        vendor = vendor_key(manufacturer)
        result = CliCollectorResult(success=False, vendor=vendor)

        for method in self.methods:
            try:
                result.vlans, result.vendor = self._collect_via(
                    method, target, vendor, result.raw_output
                )
                result.method = method
                result.success = True
                break
            except ParseError as e:
                result.errors.append(f"{method.value}: {e}")
                logger.warning(f"{target}: {e}")
                break
            except ProtocolError as e:
                result.errors.append(f"{method.value}: {e}")
                logger.info(f"{target}: {method.value} session failed: {e}")

        result.duration_ms = (time.monotonic() - start) * 1000
        return result

    def _collect_via(
        self,
        method: ConnectionMethod,
        target: str,
        vendor: str,
        raw_output: Dict[str, str],
    ) -> Tuple[List[DiscoveredVlan], str]:
        commands = VENDOR_COMMANDS.get(vendor, DEFAULT_COMMANDS)

        session_id = self.agent.session_connect(
            method.value, target, self.username, self.password, self.ports[method]
        )
        try:
            for command in commands.setup_commands:
                self.agent.session_execute(method.value, session_id, command)
            output = self.agent.session_execute(
                method.value, session_id, commands.vlan_command
            )
        finally:
            try:
                self.agent.session_disconnect(method.value, session_id)
            except ProtocolError as e:
                logger.debug(f"{target}: disconnect failed: {e}")

        raw_output[commands.vlan_command] = output
        cleaned = OutputCleaner.clean(output)

        if vendor == "default":
            vendor = detect_vendor_from_output(cleaned)

        vlans = parse_vlan_output(cleaned, vendor)
        if not vlans:
            raise ParseError(
                f"'{commands.vlan_command}' output matched no {vendor} VLAN pattern"
            )
        return vlans, vendor
