"""
netsurvey settings.

Layering, later wins:

    1. SurveySettings defaults
    2. YAML file (flat mapping of field names)
    3. NETSURVEY_<FIELD> environment variables
    4. Explicit overrides (CLI flags); None means "not given"

Example config.yaml:

    agent_url: http://collector01:3001/api
    community: netops-ro
    snmp_version: 2c
    cli_username: svc_survey
    cli_methods: [ssh]
    entity_refinement: true
"""

import ipaddress
import logging
import os
import typing
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import ValidationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "NETSURVEY_"

SNMP_VERSIONS = ("1", "2c", "3")
MAC_MODES = ("walk", "agent")
VLAN_SWITCH_MODES = ("all", "primary")
CLI_METHODS = ("ssh", "telnet")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass
class SurveySettings:
    """Runtime configuration for the agent client and discovery engine."""
    # Access Agent
    agent_url: str = "http://localhost:3001/api"
    agent_api_key: Optional[str] = None

    # SNMP
    community: str = "public"
    snmp_version: str = "2c"

    # Scan
    scan_cap: int = 254
    local_ip: Optional[str] = None
    local_prefix: Optional[int] = None
    include_unreachable: bool = False

    # Timeouts (seconds)
    get_timeout: float = 5.0
    walk_timeout: float = 60.0
    session_timeout: float = 30.0
    probe_timeout: float = 3.0

    # CLI fallback
    cli_username: Optional[str] = None
    cli_password: Optional[str] = None
    cli_methods: List[str] = field(default_factory=lambda: ["ssh", "telnet"])
    ssh_port: int = 22
    telnet_port: int = 23

    # Behaviour switches
    entity_refinement: bool = False
    resolve_ports: bool = True
    mac_mode: str = "walk"
    vlan_switches: str = "all"

    def validate(self) -> "SurveySettings":
        """
        Check value ranges and enumerations.

        Raises:
            ValidationError: first offending field
        """
        if self.snmp_version not in SNMP_VERSIONS:
            raise ValidationError(
                f"snmp_version must be one of {', '.join(SNMP_VERSIONS)}, "
                f"got {self.snmp_version!r}"
            )
        if not self.community:
            raise ValidationError("community must not be empty")
        if self.scan_cap < 1:
            raise ValidationError(f"scan_cap must be >= 1, got {self.scan_cap}")

        for name in ("get_timeout", "walk_timeout", "session_timeout", "probe_timeout"):
            if getattr(self, name) <= 0:
                raise ValidationError(f"{name} must be > 0")

        if self.mac_mode not in MAC_MODES:
            raise ValidationError(f"mac_mode must be one of {', '.join(MAC_MODES)}")
        if self.vlan_switches not in VLAN_SWITCH_MODES:
            raise ValidationError(
                f"vlan_switches must be one of {', '.join(VLAN_SWITCH_MODES)}"
            )

        unknown = [m for m in self.cli_methods if m not in CLI_METHODS]
        if unknown:
            raise ValidationError(f"Unsupported CLI methods: {unknown}")

        for name in ("ssh_port", "telnet_port"):
            if not 0 < getattr(self, name) < 65536:
                raise ValidationError(f"{name} out of range")

        if self.local_ip is not None:
            try:
                ipaddress.IPv4Address(self.local_ip)
            except ValueError as e:
                raise ValidationError(f"local_ip: {e}") from e
        if self.local_prefix is not None and not 0 <= self.local_prefix <= 32:
            raise ValidationError(f"local_prefix must be 0-32, got {self.local_prefix}")

        return self

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if mask_secrets:
            for key in ("agent_api_key", "cli_password"):
                if data.get(key):
                    data[key] = "********"
        return data


def _field_type(name: str) -> Any:
    """Concrete type of a settings field, Optional unwrapped."""
    hint = typing.get_type_hints(SurveySettings)[name]
    if typing.get_origin(hint) is Union:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        hint = args[0]
    return hint


def _coerce(name: str, value: Any) -> Any:
    """Convert text from env/YAML into the field's type."""
    if not isinstance(value, str):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            kind = _field_type(name)
            if kind is str:
                return str(value)
        return value

    kind = _field_type(name)
    try:
        if kind is bool:
            lowered = value.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(f"not a boolean: {value!r}")
        if kind is int:
            return int(value)
        if kind is float:
            return float(value)
        if typing.get_origin(kind) is list:
            return [part.strip().lower() for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise ValidationError(f"{name}: {e}") from e
    return value


def load_yaml_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a flat YAML mapping.

    Raises:
        ValidationError: missing file, bad YAML, or non-mapping root
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ValidationError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ValidationError(f"YAML parsing error in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: top level must be a mapping")
    return data


def _from_env(env: Mapping[str, str], names: List[str]) -> Dict[str, Any]:
    values = {}
    for name in names:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in env:
            values[name] = env[key]
    return values


def load_settings(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> SurveySettings:
    """
    Build validated settings from every layer.

    Args:
        path: Optional YAML file
        env: Environment mapping, os.environ when None
        **overrides: Field values; None entries are ignored

    Raises:
        ValidationError: unreadable file, bad value, or failed validation
    """
    names = [f.name for f in fields(SurveySettings)]
    settings = SurveySettings()

    layers = []
    if path:
        file_values = load_yaml_config(path)
        unknown = sorted(set(file_values) - set(names))
        if unknown:
            logger.warning(f"Ignoring unknown settings in {path}: {', '.join(unknown)}")
        layers.append({k: v for k, v in file_values.items() if k in names})

    layers.append(_from_env(os.environ if env is None else env, names))

    unknown = sorted(set(overrides) - set(names))
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(unknown)}")
    layers.append({k: v for k, v in overrides.items() if v is not None})

    for layer in layers:
        coerced = {name: _coerce(name, value) for name, value in layer.items()}
        settings = replace(settings, **coerced)

    settings.cli_methods = [str(m).lower() for m in settings.cli_methods]
    return settings.validate()
