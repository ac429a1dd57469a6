"""
netsurvey - Subnet Range Planner.

Turns a CIDR string into its usable host range and a bounded scan plan.

Range rules:
- prefix < 31: network and broadcast addresses are excluded
- /31: both addresses are usable (point-to-point)
- /32: the single address is usable

Scan plan:
- total_hosts <= cap: every usable address, in order
- total_hosts > cap and prefix < 24: exactly `cap` addresses sampled
  with stride floor(total_hosts / cap), starting at the first usable
- otherwise every usable address (a /24 or smaller is never sampled)
"""

import ipaddress
import logging
import re
from dataclasses import dataclass
from typing import List, Tuple

from ..errors import ValidationError

logger = logging.getLogger(__name__)

SCAN_CAP = 254

CIDR_PATTERN = re.compile(r'^\d{1,3}(\.\d{1,3}){3}/\d{1,2}$')


@dataclass(frozen=True)
class SubnetPlan:
    """Host range and scan plan for one CIDR."""
    cidr: str
    network_address: str
    broadcast_address: str
    prefix_length: int
    first_usable: str
    last_usable: str
    total_hosts: int
    scan_plan: Tuple[str, ...]
    sampled: bool

    @property
    def planned_hosts(self) -> int:
        return len(self.scan_plan)


def parse_cidr(cidr: str) -> ipaddress.IPv4Network:
    """
    Parse a dotted-quad CIDR, ignoring host bits.

    Raises:
        ValidationError: not of the form a.b.c.d/n or out of range
    """
    if not isinstance(cidr, str) or not CIDR_PATTERN.match(cidr.strip()):
        raise ValidationError(f"Invalid CIDR notation: {cidr!r}")
    try:
        return ipaddress.IPv4Network(cidr.strip(), strict=False)
    except ValueError as e:
        raise ValidationError(f"Invalid CIDR notation: {cidr!r} ({e})") from e


def usable_range(network: ipaddress.IPv4Network) -> Tuple[int, int]:
    """First and last usable host as integers."""
    first = int(network.network_address)
    last = int(network.broadcast_address)
    if network.prefixlen < 31:
        first += 1
        last -= 1
    return first, last


def build_scan_plan(
    first_usable: int,
    total_hosts: int,
    prefix_length: int,
    cap: int = SCAN_CAP,
) -> List[str]:
    """
    Addresses to probe, as dotted-quad strings in ascending order.

    Large subnets (more than `cap` hosts, prefix shorter than /24) are
    sampled evenly; everything else is enumerated in full.
    """
    if cap < 1:
        raise ValidationError(f"Scan cap must be at least 1, got {cap}")
    if total_hosts <= 0:
        return []

    if total_hosts > cap and prefix_length < 24:
        stride = total_hosts // cap
        offsets = [i * stride for i in range(cap)]
    else:
        offsets = list(range(total_hosts))

    return [str(ipaddress.IPv4Address(first_usable + off)) for off in offsets]


def plan_subnet(cidr: str, cap: int = SCAN_CAP) -> SubnetPlan:
    """
    Build the full plan for a CIDR.

    Example:
        >>> plan = plan_subnet("192.168.10.0/24")
        >>> plan.first_usable, plan.last_usable, plan.total_hosts
        ('192.168.10.1', '192.168.10.254', 254)
    """
    network = parse_cidr(cidr)
    first, last = usable_range(network)
    total = last - first + 1

    plan = build_scan_plan(first, total, network.prefixlen, cap)
    sampled = len(plan) < total
    if sampled:
        logger.info(
            f"{network.with_prefixlen}: sampling {len(plan)} of {total} hosts "
            f"(stride {total // cap})"
        )

    return SubnetPlan(
        cidr=network.with_prefixlen,
        network_address=str(network.network_address),
        broadcast_address=str(network.broadcast_address),
        prefix_length=network.prefixlen,
        first_usable=str(ipaddress.IPv4Address(first)),
        last_usable=str(ipaddress.IPv4Address(last)),
        total_hosts=total,
        scan_plan=tuple(plan),
        sampled=sampled,
    )


def same_subnet(ip: str, reference_ip: str, mask_bits: int) -> bool:
    """
    True when both addresses fall in the same /mask_bits network.

    Raises:
        ValidationError: malformed address or mask
    """
    if not 0 <= mask_bits <= 32:
        raise ValidationError(f"Invalid mask length: {mask_bits}")
    try:
        a = int(ipaddress.IPv4Address(ip))
        b = int(ipaddress.IPv4Address(reference_ip))
    except ValueError as e:
        raise ValidationError(str(e)) from e
    mask = (0xFFFFFFFF << (32 - mask_bits)) & 0xFFFFFFFF
    return (a & mask) == (b & mask)
