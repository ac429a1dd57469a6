"""
netsurvey - SNMP Value Parsers.

Functions for turning agent-returned SNMP values into usable Python
values. The agent serializes varbinds as JSON, so values arrive as
strings, numbers, or hex strings ("0x...") for binary OctetStrings.

Handles:
- MAC address normalization and decoding from bridge-table OIDs
- Text value extraction (hex strings, null bytes)
- Integer coercion
- sysObjectID normalization
- Hostname extraction from sysName

All functions return None (or a fallback value) on decode errors
instead of raising.
"""

import re
from typing import Any, Optional

from ..oids import oid_suffix


# =============================================================================
# MAC Address Decoding
# =============================================================================

_HEX_DIGITS = set('0123456789ABCDEF')


def mac_hex(mac: str) -> str:
    """Uppercase hex digits of a MAC with all separators removed."""
    return re.sub(r'[^0-9A-Fa-f]', '', mac or '').upper()


def normalize_mac(mac: Any) -> Optional[str]:
    """
    Normalize MAC address to uppercase colon-separated format.

    Handles various input formats:
    - aa:bb:cc:dd:ee:ff
    - AA-BB-CC-DD-EE-FF
    - aabb.ccdd.eeff
    - aabbccddeeff
    - 0xaabbccddeeff (hex OctetString from the agent)

    Returns:
        "AA:BB:CC:DD:EE:FF" or None if not a 48-bit address
    """
    if mac is None:
        return None
    if isinstance(mac, bytes):
        if len(mac) != 6:
            return None
        return ':'.join(f"{b:02X}" for b in mac)

    text = str(mac).strip()
    if text.lower().startswith('0x'):
        text = text[2:]
    if not re.fullmatch(r'[0-9A-Fa-f:.\-\s]+', text):
        return None
    clean = mac_hex(text)

    if len(clean) == 12 and set(clean) <= _HEX_DIGITS:
        return ':'.join(clean[i:i + 2] for i in range(0, 12, 2))
    return None


def mac_from_oid(oid: str) -> Optional[str]:
    """
    Decode the MAC encoded in the last six sub-identifiers of an OID.

    dot1dTpFdbTable rows are indexed by the address octets.

    Example:
        >>> mac_from_oid("1.3.6.1.2.1.17.4.3.1.2.0.26.171.5.2.39")
        '00:1A:AB:05:02:27'
    """
    parts = oid_suffix(oid, 6)
    if len(parts) != 6:
        return None
    octets = []
    for part in parts:
        try:
            value = int(part)
        except ValueError:
            return None
        if not 0 <= value <= 255:
            return None
        octets.append(f"{value:02X}")
    return ':'.join(octets)


def oui_bytes(mac: str) -> Optional[tuple]:
    """First three octets of a MAC as integers."""
    clean = mac_hex(mac)
    if len(clean) < 6:
        return None
    return tuple(int(clean[i:i + 2], 16) for i in range(0, 6, 2))


# =============================================================================
# Scalar Decoding
# =============================================================================

def decode_string(value: Any) -> str:
    """
    Safely convert SNMP value to string.

    Decodes "0x..." hex strings that look like text, strips null bytes
    and surrounding whitespace.

    Returns:
        Clean string value ("" for None)
    """
    if value is None:
        return ""
    if isinstance(value, bytes):
        try:
            result = value.decode('utf-8')
        except UnicodeDecodeError:
            result = value.decode('latin-1')
    else:
        result = str(value)

    result = result.replace('\x00', '').strip()

    if result.startswith('0x') and len(result) > 2:
        try:
            decoded = bytes.fromhex(result[2:]).decode('utf-8')
            if decoded.isprintable():
                result = decoded.replace('\x00', '').strip()
        except (ValueError, UnicodeDecodeError):
            pass  # Keep original

    return result


def decode_int(value: Any) -> Optional[int]:
    """
    Safely convert SNMP value to integer.

    Returns:
        Integer value or None on failure
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def normalize_oid(value: Any) -> Optional[str]:
    """
    Normalize a sysObjectID to plain dotted numeric form.

    Accepts ".1.3.6...", "iso.3.6..." and
    "SNMPv2-SMI::enterprises.9..." spellings.
    """
    text = decode_string(value)
    if not text:
        return None
    text = text.lstrip('.')
    if text.startswith('SNMPv2-SMI::enterprises.'):
        text = '1.3.6.1.4.1.' + text[len('SNMPv2-SMI::enterprises.'):]
    elif text.startswith('iso.'):
        text = '1.' + text[len('iso.'):]
    if not re.fullmatch(r'\d+(\.\d+)*', text):
        return None
    return text


# =============================================================================
# Hostname Extraction
# =============================================================================

def extract_hostname(sys_name: Any) -> Optional[str]:
    """
    Short hostname from sysName (first dot-separated label).

    Example:
        >>> extract_hostname("core-sw1.example.com")
        'core-sw1'
    """
    text = decode_string(sys_name)
    if not text:
        return None
    return text.split('.')[0] or None
