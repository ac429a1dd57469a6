"""
Pydantic models for the Device Access Agent request/response bodies.

The agent speaks camelCase JSON; fields are snake_case here with
aliases. Responses ignore unknown keys so newer agents stay compatible.
"""

from typing import Optional, Dict, Any, List, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentModel(BaseModel):
    """Common config: accept field names or aliases, ignore extras"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        """camelCase dict for the request body"""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Request Models
# =============================================================================

class ProbeRequest(AgentModel):
    """Reachability probe (ICMP/ARP performed by the agent)"""
    ip: str = Field(..., description="Target IP address")
    timeout: float = Field(default=3.0, gt=0, description="Probe timeout in seconds")


class SnmpTarget(AgentModel):
    """Fields shared by every SNMP request"""
    ip: str = Field(..., description="Target IP address")
    community: str = Field(default="public", description="SNMP community string (v1/v2c)")
    version: str = Field(default="2c", description="SNMP version: 1, 2c, or 3")


class SnmpGetRequest(SnmpTarget):
    """Request for SNMP GET of one or more scalar OIDs"""
    oids: List[str] = Field(..., min_length=1, description="OIDs to retrieve")


class SnmpWalkRequest(SnmpTarget):
    """Request for SNMP WALK"""
    oid: str = Field(..., description="Base OID to walk")


class DiscoverVlansRequest(SnmpTarget):
    """Agent-side VLAN discovery"""
    make: Optional[str] = Field(default=None, description="Manufacturer hint")


class DiscoverMacRequest(SnmpTarget):
    """Agent-side per-VLAN bridge table discovery"""
    vlan_ids: List[int] = Field(..., alias="vlanIds", min_length=1)


class SessionConnectRequest(AgentModel):
    """Open an SSH or Telnet session"""
    ip: str
    username: str
    password: str
    port: int = Field(default=22, ge=1, le=65535)


class SessionExecuteRequest(AgentModel):
    """Run one command in an open session"""
    session_id: str = Field(..., alias="sessionId")
    command: str


class SessionDisconnectRequest(AgentModel):
    session_id: str = Field(..., alias="sessionId")


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(AgentModel):
    """Agent health check"""
    status: str
    timestamp: Optional[str] = None

    @property
    def is_up(self) -> bool:
        return self.status.lower() in ("up", "ok")


class ProbeResponse(AgentModel):
    reachable: bool
    mac_address: Optional[str] = Field(default=None, alias="macAddress")


class SnmpGetResponse(AgentModel):
    """
    GET results keyed by OID.

    Values arrive either bare or wrapped as {"value": ..., "type": ...};
    per-OID failures arrive as {"error": ...}.
    """
    results: Dict[str, Any] = Field(default_factory=dict)

    def values(self) -> Dict[str, Any]:
        """OID -> unwrapped value, None for per-OID errors"""
        out: Dict[str, Any] = {}
        for oid, raw in self.results.items():
            if isinstance(raw, dict):
                out[oid] = None if "error" in raw else raw.get("value")
            else:
                out[oid] = raw
        return out


class WalkEntry(AgentModel):
    oid: str
    value: Any = None


class SnmpWalkResponse(AgentModel):
    """WALK results as ordered (oid, value) rows"""
    results: List[WalkEntry] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def _accept_mapping(cls, value: Any) -> Any:
        # Some agents return {oid: value} instead of a list of rows
        if isinstance(value, dict):
            rows = []
            for oid, raw in value.items():
                if isinstance(raw, dict) and "value" in raw:
                    raw = raw["value"]
                rows.append({"oid": oid, "value": raw})
            return rows
        return value


class AgentDevice(AgentModel):
    sys_name: Optional[str] = Field(default=None, alias="sysName")
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    type: Optional[str] = None
    sys_descr: Optional[str] = Field(default=None, alias="sysDescr")


class DiscoverDeviceResponse(AgentModel):
    device: AgentDevice


class AgentVlan(AgentModel):
    """VLAN row as reported by the agent; vlan_id is checked later"""
    vlan_id: Any = Field(..., alias="vlanId")
    name: Optional[str] = None
    used_by: Optional[List[str]] = Field(default=None, alias="usedBy")


class DiscoverVlansResponse(AgentModel):
    vlans: List[AgentVlan] = Field(default_factory=list)
    invalid_vlans: List[Any] = Field(default_factory=list, alias="invalidVlans")


class AgentMacEntry(AgentModel):
    mac_address: str = Field(..., alias="macAddress")
    vlan_id: Any = Field(..., alias="vlanId")
    device_type: Optional[str] = Field(default=None, alias="deviceType")
    port: Optional[Union[str, int]] = None


class DiscoverMacResponse(AgentModel):
    mac_addresses: List[AgentMacEntry] = Field(default_factory=list, alias="macAddresses")
    vlan_ids: List[Any] = Field(default_factory=list, alias="vlanIds")


class SessionResponse(AgentModel):
    session_id: str = Field(..., alias="sessionId")


class ExecuteResponse(AgentModel):
    """SSH returns stdout/stderr, Telnet returns output"""
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    output: Optional[str] = None

    def text(self) -> str:
        if self.output is not None:
            return self.output
        text = self.stdout or ""
        if self.stderr:
            text += f"\nERROR: {self.stderr}"
        return text
