"""
netsurvey - Device Access Agent client.

The agent is the external service that performs SNMP, SSH and Telnet
I/O. This module talks to it over HTTP/JSON with urllib and maps
transport failures onto the discovery error taxonomy:

    URLError / refused connection  -> ConnectivityError
    HTTP error status, timeout     -> ProtocolError
    bad JSON, schema mismatch      -> ProtocolError

Every call blocks for at most its own timeout. The engine runs these
calls in an executor to keep its event loop responsive.

Usage:
    agent = AccessAgentClient("http://localhost:3001/api")
    agent.ensure_available()
    values = agent.snmp_get("10.0.0.1", "public", "2c", [SYSTEM.SYS_NAME])
"""

import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional, Protocol, Tuple, Type, TypeVar

from pydantic import ValidationError as SchemaError

from ..errors import ConnectivityError, ProtocolError
from .models import (
    AgentDevice,
    AgentModel,
    DiscoverDeviceResponse,
    DiscoverMacRequest,
    DiscoverMacResponse,
    DiscoverVlansRequest,
    DiscoverVlansResponse,
    ExecuteResponse,
    HealthResponse,
    ProbeRequest,
    ProbeResponse,
    SessionConnectRequest,
    SessionDisconnectRequest,
    SessionExecuteRequest,
    SessionResponse,
    SnmpGetRequest,
    SnmpGetResponse,
    SnmpTarget,
    SnmpWalkRequest,
    SnmpWalkResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_AGENT_URL = "http://localhost:3001/api"

SESSION_METHODS = ("ssh", "telnet")

ResponseT = TypeVar("ResponseT", bound=AgentModel)


class AccessAgent(Protocol):
    """
    Operations the engine needs from a Device Access Agent.

    AccessAgentClient implements this over HTTP; tests supply an
    in-memory fake.
    """

    def health(self) -> HealthResponse: ...

    def probe(self, ip: str) -> ProbeResponse: ...

    def snmp_get(
        self, ip: str, community: str, version: str, oids: List[str]
    ) -> Dict[str, Any]: ...

    def snmp_walk(
        self, ip: str, oid: str, community: str, version: str
    ) -> List[Tuple[str, Any]]: ...

    def discover_device(
        self, ip: str, community: str, version: str
    ) -> AgentDevice: ...

    def discover_vlans(
        self, ip: str, community: str, version: str, make: Optional[str]
    ) -> DiscoverVlansResponse: ...

    def discover_mac_addresses(
        self, ip: str, community: str, version: str, vlan_ids: List[int]
    ) -> DiscoverMacResponse: ...

    def session_connect(
        self, method: str, ip: str, username: str, password: str, port: int
    ) -> str: ...

    def session_execute(self, method: str, session_id: str, command: str) -> str: ...

    def session_disconnect(self, method: str, session_id: str) -> None: ...


def ensure_agent_available(agent: AccessAgent, agent_url: Optional[str] = None) -> HealthResponse:
    """
    Verify the agent is up before a run starts.

    Raises:
        ConnectivityError: agent unreachable or not reporting "up"
    """
    where = agent_url or "the configured URL"
    try:
        health = agent.health()
    except ProtocolError as e:
        raise ConnectivityError(
            f"Access agent at {where} is not healthy: {e}",
            agent_url=agent_url,
        ) from e
    if not health.is_up:
        raise ConnectivityError(
            f"Access agent at {where} reports status {health.status!r}",
            agent_url=agent_url,
        )
    return health


def _method_name(method: Any) -> str:
    name = str(getattr(method, "value", method)).lower()
    if name not in SESSION_METHODS:
        raise ProtocolError(f"Unsupported session method: {name}")
    return name


class AccessAgentClient:
    """
    HTTP client for the Device Access Agent.

    Timeouts are per call class: single GETs and probes are short,
    walks and agent-side bulk discovery are long, CLI sessions sit in
    between.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_AGENT_URL,
        api_key: Optional[str] = None,
        get_timeout: float = 5.0,
        walk_timeout: float = 60.0,
        session_timeout: float = 30.0,
        probe_timeout: float = 3.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.get_timeout = get_timeout
        self.walk_timeout = walk_timeout
        self.session_timeout = session_timeout
        self.probe_timeout = probe_timeout

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(
        self,
        path: str,
        body: Optional[AgentModel] = None,
        timeout: Optional[float] = None,
        target: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        data = None
        if body is not None:
            data = json.dumps(body.to_wire()).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        req = urllib.request.Request(
            url,
            data=data,
            headers=headers,
            method="POST" if body is not None else "GET",
        )
        timeout = timeout or self.get_timeout

        logger.debug(f"agent {req.get_method()} {path} target={target}")
        try:
            with urllib.request.urlopen(req, timeout=timeout) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            raise self._http_error(e, path, target) from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise ProtocolError(
                    f"{path} timed out after {timeout}s", target=target
                ) from e
            raise ConnectivityError(
                f"Cannot connect to access agent at {self.base_url}: {e.reason}",
                agent_url=self.base_url,
            ) from e
        except (socket.timeout, TimeoutError) as e:
            raise ProtocolError(f"{path} timed out after {timeout}s", target=target) from e
        except ConnectionError as e:
            raise ConnectivityError(
                f"Connection to access agent at {self.base_url} failed: {e}",
                agent_url=self.base_url,
            ) from e

        try:
            payload = json.loads(raw) if raw else {}
        except json.JSONDecodeError as e:
            raise ProtocolError(f"{path} returned invalid JSON: {e}", target=target) from e

        if isinstance(payload, dict):
            if payload.get("error"):
                raise ProtocolError(str(payload["error"]), target=target)
            if payload.get("success") is False:
                raise ProtocolError(
                    str(payload.get("message") or f"{path} reported failure"),
                    target=target,
                )
        return payload

    @staticmethod
    def _http_error(
        e: urllib.error.HTTPError, path: str, target: Optional[str]
    ) -> ProtocolError:
        if e.code == 401:
            message = "Access agent authentication failed - check API key"
        elif e.code == 403:
            message = "Access agent denied the request - invalid API key"
        else:
            detail = ""
            try:
                body = json.loads(e.read().decode("utf-8"))
                detail = body.get("error") or body.get("message") or ""
            except (ValueError, AttributeError, OSError):
                pass
            message = f"{path} failed: HTTP {e.code} {e.reason}"
            if detail:
                message += f" - {detail}"
        return ProtocolError(message, target=target, status=e.code)

    def _call(
        self,
        path: str,
        body: Optional[AgentModel],
        response_model: Type[ResponseT],
        timeout: Optional[float] = None,
        target: Optional[str] = None,
    ) -> ResponseT:
        payload = self._request(path, body, timeout, target)
        try:
            return response_model.model_validate(payload)
        except SchemaError as e:
            raise ProtocolError(
                f"{path} returned an unexpected response: {e.error_count()} "
                f"validation error(s)",
                target=target,
            ) from e

    # =========================================================================
    # Health
    # =========================================================================

    def health(self) -> HealthResponse:
        return self._call("/health", None, HealthResponse, self.get_timeout)

    def ensure_available(self) -> HealthResponse:
        return ensure_agent_available(self, self.base_url)

    # =========================================================================
    # Reachability
    # =========================================================================

    def probe(self, ip: str) -> ProbeResponse:
        body = ProbeRequest(ip=ip, timeout=self.probe_timeout)
        # Leave the agent room to answer after its own probe times out
        return self._call(
            "/network/probe", body, ProbeResponse,
            self.probe_timeout + self.get_timeout, ip,
        )

    # =========================================================================
    # SNMP
    # =========================================================================

    def snmp_get(
        self, ip: str, community: str, version: str, oids: List[str]
    ) -> Dict[str, Any]:
        body = SnmpGetRequest(ip=ip, community=community, version=version, oids=oids)
        response = self._call("/snmp/get", body, SnmpGetResponse, self.get_timeout, ip)
        return response.values()

    def snmp_walk(
        self, ip: str, oid: str, community: str, version: str
    ) -> List[Tuple[str, Any]]:
        body = SnmpWalkRequest(ip=ip, oid=oid, community=community, version=version)
        response = self._call("/snmp/walk", body, SnmpWalkResponse, self.walk_timeout, ip)
        return [(row.oid, row.value) for row in response.results]

    def discover_device(self, ip: str, community: str, version: str) -> AgentDevice:
        body = SnmpTarget(ip=ip, community=community, version=version)
        response = self._call(
            "/snmp/discoverDevice", body, DiscoverDeviceResponse, self.walk_timeout, ip
        )
        return response.device

    def discover_vlans(
        self, ip: str, community: str, version: str, make: Optional[str]
    ) -> DiscoverVlansResponse:
        body = DiscoverVlansRequest(ip=ip, community=community, version=version, make=make)
        return self._call(
            "/snmp/discover-vlans", body, DiscoverVlansResponse, self.walk_timeout, ip
        )

    def discover_mac_addresses(
        self, ip: str, community: str, version: str, vlan_ids: List[int]
    ) -> DiscoverMacResponse:
        body = DiscoverMacRequest(ip=ip, community=community, version=version, vlan_ids=vlan_ids)
        # One walk per VLAN happens agent-side
        timeout = self.walk_timeout * max(1, len(vlan_ids))
        return self._call(
            "/snmp/discover-mac-addresses", body, DiscoverMacResponse, timeout, ip
        )

    # =========================================================================
    # CLI sessions (SSH / Telnet)
    # =========================================================================

    def session_connect(
        self, method: str, ip: str, username: str, password: str, port: int
    ) -> str:
        name = _method_name(method)
        body = SessionConnectRequest(ip=ip, username=username, password=password, port=port)
        response = self._call(
            f"/{name}/connect", body, SessionResponse, self.session_timeout, ip
        )
        return response.session_id

    def session_execute(self, method: str, session_id: str, command: str) -> str:
        name = _method_name(method)
        body = SessionExecuteRequest(session_id=session_id, command=command)
        response = self._call(
            f"/{name}/execute", body, ExecuteResponse, self.session_timeout
        )
        return response.text()

    def session_disconnect(self, method: str, session_id: str) -> None:
        name = _method_name(method)
        body = SessionDisconnectRequest(session_id=session_id)
        self._request(f"/{name}/disconnect", body, self.session_timeout)
