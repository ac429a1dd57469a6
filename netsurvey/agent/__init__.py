"""
netsurvey - Device Access Agent boundary.

    agent/
    ├── models.py   # pydantic request/response bodies
    └── client.py   # AccessAgent protocol + HTTP client
"""

from .client import AccessAgent, AccessAgentClient, DEFAULT_AGENT_URL, ensure_agent_available
from .models import (
    AgentDevice,
    AgentMacEntry,
    AgentVlan,
    DiscoverMacResponse,
    DiscoverVlansResponse,
    HealthResponse,
    ProbeResponse,
)

__all__ = [
    'AccessAgent',
    'AccessAgentClient',
    'DEFAULT_AGENT_URL',
    'ensure_agent_available',
    'AgentDevice',
    'AgentMacEntry',
    'AgentVlan',
    'DiscoverMacResponse',
    'DiscoverVlansResponse',
    'HealthResponse',
    'ProbeResponse',
]
