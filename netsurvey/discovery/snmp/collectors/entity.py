"""
netsurvey - Entity MIB Collector.

Collects entPhysicalDescr for chassis and module entries. Used to
refine the device category when sysDescr is vague.
"""

import logging
from typing import Dict, List

from ....agent.client import AccessAgent
from ...oids import ENTITY, extract_index_from_oid
from ..parsers import decode_int, decode_string

logger = logging.getLogger(__name__)


def get_physical_descriptions(
    agent: AccessAgent,
    target: str,
    community: str,
    version: str,
) -> List[str]:
    """
    Descriptions of chassis (class 3) and module (class 9) entities.

    Returned in entPhysicalIndex order. Entities whose class cannot be
    read are skipped.
    """
    classes: Dict[str, int] = {}
    for oid, value in agent.snmp_walk(target, ENTITY.PHYS_CLASS, community, version):
        index = extract_index_from_oid(oid, ENTITY.PHYS_CLASS)
        phys_class = decode_int(value)
        if phys_class is not None:
            classes[index] = phys_class

    wanted = {ENTITY.CLASS_CHASSIS, ENTITY.CLASS_MODULE}
    descriptions = []
    for oid, value in agent.snmp_walk(target, ENTITY.PHYS_DESCR, community, version):
        index = extract_index_from_oid(oid, ENTITY.PHYS_DESCR)
        if classes.get(index) not in wanted:
            continue
        text = decode_string(value)
        if text:
            descriptions.append(text)

    logger.debug(f"{target}: {len(descriptions)} chassis/module descriptions")
    return descriptions
