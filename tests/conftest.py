"""Shared fixtures: an in-memory Access Agent and default settings."""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from netsurvey.agent.models import (
    AgentDevice,
    DiscoverMacResponse,
    DiscoverVlansResponse,
    HealthResponse,
    ProbeResponse,
)
from netsurvey.discovery.oids import SYSTEM
from netsurvey.errors import ProtocolError
from netsurvey.settings import SurveySettings


CISCO_SWITCH_SYSTEM = {
    SYSTEM.SYS_DESCR: "Cisco IOS Software, C3750 Software (C3750-IPSERVICESK9-M), Version 12.2(55)SE",
    SYSTEM.SYS_NAME: "sw1.example.com",
    SYSTEM.SYS_OBJECT_ID: "1.3.6.1.4.1.9.1.516",
    SYSTEM.SYS_LOCATION: "IDF-1",
}

CISCO_VLAN_BRIEF = """\
VLAN Name                             Status    Ports
---- -------------------------------- --------- -------------------------------
1    default                          active    Gi0/1, Gi0/2
10   Management                       active    Gi0/3, Gi0/4
20   Users                            active    Gi0/5, Gi0/6, Gi0/7, Gi0/8
                                                Gi0/9, Gi0/10
1002 fddi-default                     act/unsup
"""


class FakeAgent:
    """
    AccessAgent double backed by dictionaries.

    Anything not configured answers like a device that does not speak
    the protocol: ProtocolError. Probes of unknown IPs get no reply.
    Every call is recorded in `calls` as (method, args).
    """

    def __init__(self):
        self.health_status = "up"
        self.probes: Dict[str, Any] = {}
        self.system: Dict[str, Dict[str, Any]] = {}
        self.walks: Dict[Tuple[str, str, str], Any] = {}
        self.devices: Dict[str, AgentDevice] = {}
        self.vlans: Dict[str, Any] = {}
        self.macs: Dict[str, Any] = {}
        self.cli_outputs: Dict[str, str] = {}
        self.failing_methods: set = set()
        self.calls: List[Tuple[str, tuple]] = []

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))

    def calls_to(self, name: str) -> List[tuple]:
        return [args for method, args in self.calls if method == name]

    @staticmethod
    def _answer(value: Any) -> Any:
        if isinstance(value, Exception):
            raise value
        return value

    def health(self) -> HealthResponse:
        self._record("health")
        return HealthResponse(status=self.health_status)

    def probe(self, ip: str) -> ProbeResponse:
        self._record("probe", ip)
        return self._answer(self.probes.get(ip, ProbeResponse(reachable=False)))

    def snmp_get(self, ip: str, community: str, version: str, oids: List[str]) -> Dict[str, Any]:
        self._record("snmp_get", ip, community, version, tuple(oids))
        if ip not in self.system:
            raise ProtocolError(f"SNMP timeout for {ip}", target=ip)
        values = self._answer(self.system[ip])
        return {oid: values.get(oid) for oid in oids}

    def snmp_walk(self, ip: str, oid: str, community: str, version: str) -> List[Tuple[str, Any]]:
        self._record("snmp_walk", ip, oid, community, version)
        key = (ip, oid, community)
        if key not in self.walks:
            raise ProtocolError(f"No such table {oid} on {ip}", target=ip)
        return list(self._answer(self.walks[key]))

    def discover_device(self, ip: str, community: str, version: str) -> AgentDevice:
        self._record("discover_device", ip, community, version)
        if ip not in self.devices:
            raise ProtocolError(f"discoverDevice failed for {ip}", target=ip)
        return self._answer(self.devices[ip])

    def discover_vlans(
        self, ip: str, community: str, version: str, make: Optional[str]
    ) -> DiscoverVlansResponse:
        self._record("discover_vlans", ip, community, version, make)
        if ip not in self.vlans:
            raise ProtocolError(f"discover-vlans failed for {ip}", target=ip)
        return self._answer(self.vlans[ip])

    def discover_mac_addresses(
        self, ip: str, community: str, version: str, vlan_ids: List[int]
    ) -> DiscoverMacResponse:
        self._record("discover_mac_addresses", ip, community, version, tuple(vlan_ids))
        if ip not in self.macs:
            raise ProtocolError(f"discover-mac-addresses failed for {ip}", target=ip)
        return self._answer(self.macs[ip])

    def session_connect(self, method: str, ip: str, username: str, password: str, port: int) -> str:
        self._record("session_connect", method, ip, username, port)
        if method in self.failing_methods:
            raise ProtocolError(f"{method} connection refused", target=ip)
        return f"{method}-session"

    def session_execute(self, method: str, session_id: str, command: str) -> str:
        self._record("session_execute", method, session_id, command)
        return self.cli_outputs.get(command, "")

    def session_disconnect(self, method: str, session_id: str) -> None:
        self._record("session_disconnect", method, session_id)


@pytest.fixture
def agent():
    return FakeAgent()


@pytest.fixture
def settings():
    return SurveySettings()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove NETSURVEY_* variables inherited from the shell."""
    import os
    for key in list(os.environ):
        if key.startswith("NETSURVEY_"):
            monkeypatch.delenv(key)
