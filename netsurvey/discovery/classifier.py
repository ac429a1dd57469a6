"""
netsurvey - Manufacturer/Model/Category Classifier.

Two signal sources, SNMP taking precedence when both are present:

1. MAC OUI: the MAC is reduced to uppercase hex and its 3-, 4- and
   5-byte prefixes are tried against the static OUI table. The first
   table entry that is a prefix of the candidate (or the reverse)
   wins.
2. SNMP: sysObjectID selects the manufacturer; sysDescr yields the
   model via a per-manufacturer regex. Category comes from known
   sysObjectID sub-trees first, then keywords in sysDescr, and may be
   overridden by Entity-MIB chassis/module descriptions.

SNMP failures are not fatal. The device keeps whatever was resolved
and is flagged for verification.
"""

import logging
from typing import Iterable, Optional

from ..agent.client import AccessAgent
from ..errors import ProtocolError
from .models import ConnectionMethod, DeviceCategory, DiscoveredDevice
from .snmp.collectors import get_physical_descriptions, get_system_info
from .snmp.parsers import mac_hex
from .vendors import (
    CATEGORY_KEYWORDS,
    CATEGORY_OIDS,
    GENERIC_MODEL_PATTERN,
    MODEL_PATTERNS,
    OID_MANUFACTURERS,
    OUI_TABLE,
)

logger = logging.getLogger(__name__)

# OUI candidate lengths in hex digits (3, 4 and 5 bytes)
OUI_LENGTHS = (6, 8, 10)


# =============================================================================
# Lookups
# =============================================================================

def lookup_oui(mac: Optional[str]) -> Optional[str]:
    """
    Manufacturer for a MAC address from the static OUI table.

    Example:
        >>> lookup_oui("00:00:0c:12:34:56")
        'Cisco'
    """
    clean = mac_hex(mac or "")
    if len(clean) != 12:
        return None

    for length in OUI_LENGTHS:
        candidate = clean[:length]
        for prefix, manufacturer in OUI_TABLE.items():
            if candidate.startswith(prefix) or prefix.startswith(candidate):
                return manufacturer
    return None


def manufacturer_from_oid(sys_object_id: Optional[str]) -> Optional[str]:
    """Manufacturer from the enterprise sub-tree of a sysObjectID."""
    if not sys_object_id:
        return None
    oid = sys_object_id.lstrip('.') + '.'
    for prefix, manufacturer in OID_MANUFACTURERS:
        if oid.startswith(prefix):
            return manufacturer
    return None


def extract_model(sys_descr: Optional[str], manufacturer: Optional[str]) -> Optional[str]:
    """
    Model token from sysDescr.

    Manufacturer-specific pattern first, generic NAME-NAME fallback.

    Example:
        >>> extract_model("Juniper Networks, Inc. ex4300-48t", "Juniper")
        'EX4300'
    """
    if not sys_descr:
        return None

    entry = MODEL_PATTERNS.get((manufacturer or "").lower())
    if entry:
        pattern, upper = entry
        match = pattern.search(sys_descr)
        if match:
            model = match.group(0)
            return model.upper() if upper else model

    match = GENERIC_MODEL_PATTERN.search(sys_descr)
    return match.group(0) if match else None


def category_from_oid(sys_object_id: Optional[str]) -> Optional[DeviceCategory]:
    """Category for known sysObjectID values (exact or sub-tree)."""
    if not sys_object_id:
        return None
    oid = sys_object_id.lstrip('.')
    for known, category in CATEGORY_OIDS:
        if oid == known or oid.startswith(known + '.'):
            return category
    return None


def category_from_text(text: Optional[str]) -> Optional[DeviceCategory]:
    """First category whose keyword appears in the text."""
    if not text:
        return None
    lowered = text.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def determine_category(
    sys_object_id: Optional[str],
    sys_descr: Optional[str],
    entity_descriptions: Iterable[str] = (),
) -> DeviceCategory:
    """
    Resolve category: sysObjectID, then sysDescr keywords, default Other.

    Entity descriptions, when given, override the result on the first
    keyword hit.
    """
    category = (
        category_from_oid(sys_object_id)
        or category_from_text(sys_descr)
        or DeviceCategory.OTHER
    )
    for description in entity_descriptions:
        refined = category_from_text(description)
        if refined:
            return refined
    return category


# =============================================================================
# Classifier
# =============================================================================

class DeviceClassifier:
    """
    Fills manufacturer, model, hostname and category on a device.

    Example:
        classifier = DeviceClassifier(agent, community="public")
        device = DiscoveredDevice(ip_address="10.0.0.1", mac_address=mac)
        classifier.classify(device)
        if device.needs_verification:
            print(f"Check {device.ip_address} manually")
    """

    def __init__(
        self,
        agent: AccessAgent,
        community: str = "public",
        version: str = "2c",
        entity_refinement: bool = False,
    ):
        self.agent = agent
        self.community = community
        self.version = version
        self.entity_refinement = entity_refinement

    def classify(
        self,
        device: DiscoveredDevice,
        community: Optional[str] = None,
        version: Optional[str] = None,
    ) -> DiscoveredDevice:
        """Classify in place and return the device."""
        community = community or self.community
        version = version or self.version

        # Phase 1: OUI
        if device.mac_address:
            oui_manufacturer = lookup_oui(device.mac_address)
            if oui_manufacturer:
                device.manufacturer = oui_manufacturer

        # Phase 2: SNMP
        try:
            info = get_system_info(self.agent, device.ip_address, community, version)
        except ProtocolError as e:
            logger.warning(f"SNMP query failed for {device.ip_address}: {e}")
            device.errors.append(f"snmp: {e}")
            device.update_verification()
            return device

        device.discovered_via = ConnectionMethod.SNMP
        device.sys_descr = info['sys_descr']
        device.sys_object_id = info['sys_object_id']
        device.sys_location = info['sys_location']
        if info['hostname']:
            device.hostname = info['hostname']

        oid_manufacturer = manufacturer_from_oid(device.sys_object_id)
        if oid_manufacturer:
            device.manufacturer = oid_manufacturer

        model = extract_model(device.sys_descr, device.manufacturer)
        if model:
            device.model = model

        entity_descriptions = []
        if self.entity_refinement:
            entity_descriptions = self._entity_descriptions(device, community, version)

        device.category = determine_category(
            device.sys_object_id, device.sys_descr, entity_descriptions
        )
        device.update_verification()

        logger.debug(
            f"{device.ip_address}: {device.manufacturer} {device.model} "
            f"{device.category.value}"
        )
        return device

    def _entity_descriptions(
        self, device: DiscoveredDevice, community: str, version: str
    ) -> list:
        try:
            return get_physical_descriptions(
                self.agent, device.ip_address, community, version
            )
        except ProtocolError as e:
            logger.debug(f"Entity MIB unavailable on {device.ip_address}: {e}")
            return []
