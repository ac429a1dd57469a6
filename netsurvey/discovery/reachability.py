"""
netsurvey - Reachability Prober.

Asks the Access Agent whether a host answers and, for hosts on the
local segment, which MAC it resolved to. Hosts outside the local
subnet are routed: a reply proves reachability but the agent has no
ARP visibility, so the MAC is always None for them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..agent.client import AccessAgent
from ..errors import ProtocolError
from .snmp.parsers import normalize_mac
from .subnet import same_subnet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one IP."""
    reachable: bool
    mac_address: Optional[str] = None
    is_routed: bool = False
    error: Optional[str] = None


class ReachabilityProber:
    """
    Per-IP reachability through the Access Agent.

    Example:
        prober = ReachabilityProber(agent)
        result = prober.probe("10.1.1.20", "10.1.1.5", 24)
        if result.reachable and not result.is_routed:
            print(result.mac_address)
    """

    def __init__(self, agent: AccessAgent):
        self.agent = agent

    def probe(
        self,
        ip: str,
        local_reference_ip: str,
        mask_bits: int,
    ) -> ProbeResult:
        """
        Probe one host.

        A failed agent call is reported as unreachable with `error`
        set; ConnectivityError still propagates because it means the
        agent itself is gone.
        """
        is_routed = not same_subnet(ip, local_reference_ip, mask_bits)

        try:
            response = self.agent.probe(ip)
        except ProtocolError as e:
            logger.warning(f"Probe of {ip} failed: {e}")
            return ProbeResult(reachable=False, is_routed=is_routed, error=str(e))

        mac = None
        if response.reachable and not is_routed:
            mac = normalize_mac(response.mac_address)
            if response.mac_address and mac is None:
                logger.debug(f"{ip}: ignoring malformed MAC {response.mac_address!r}")

        return ProbeResult(
            reachable=response.reachable,
            mac_address=mac,
            is_routed=is_routed,
        )
