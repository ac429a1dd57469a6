"""
netsurvey - Discovery error taxonomy.

ValidationError and ConnectivityError raised before a run starts are
fatal. ProtocolError and ParseError raised for a single host, switch or
VLAN are caught by the engine and degrade only that record.
"""

from typing import Optional


class DiscoveryError(Exception):
    """Base exception for discovery operations."""
    pass


class ValidationError(DiscoveryError):
    """Raised for malformed input (CIDR, VLAN id, settings)."""
    pass


class ConnectivityError(DiscoveryError):
    """Raised when the Access Agent cannot be reached."""

    def __init__(self, message: str, agent_url: Optional[str] = None):
        super().__init__(message)
        self.agent_url = agent_url


class ProtocolError(DiscoveryError):
    """Raised when an SNMP/CLI call through the agent failed or timed out."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.target = target
        self.status = status


class ParseError(DiscoveryError):
    """Raised when vendor output matched no known pattern."""
    pass
