#!/usr/bin/env python3
"""
netsurvey - Discovery CLI.

Command-line interface for subnet surveys with structured event output.

Usage:
    # Show the scan plan for a subnet (no agent needed)
    python -m netsurvey.discovery plan 10.20.0.0/22

    # Scan and classify hosts
    python -m netsurvey.discovery scan 10.20.0.0/24 -o scan.json

    # Full survey: scan, VLANs on discovered switches, MAC tables
    python -m netsurvey.discovery scan 10.20.0.0/24 --full --switch 10.20.0.2

    # VLANs on specific switches
    python -m netsurvey.discovery vlans 10.20.0.2 10.20.0.3

    # MAC table for given VLANs
    python -m netsurvey.discovery macs 10.20.0.2 --vlan 1 --vlan 10

    # Identify one device, check the agent
    python -m netsurvey.discovery identify 10.20.0.1
    python -m netsurvey.discovery health
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .. import __version__
from ..agent.client import AccessAgentClient
from ..errors import DiscoveryError
from ..settings import MAC_MODES, SNMP_VERSIONS, SurveySettings, load_settings
from .engine import DiscoveryEngine
from .events import ConsoleEventPrinter, EventEmitter
from .subnet import plan_subnet

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, color: bool = True) -> None:
    """Configure the root handler; DEBUG with -v, otherwise WARNING."""

    class ColorFormatter(logging.Formatter):
        COLORS = {
            'DEBUG': '\033[36m',    # Cyan
            'INFO': '\033[32m',     # Green
            'WARNING': '\033[33m',  # Yellow
            'ERROR': '\033[31m',    # Red
            'CRITICAL': '\033[35m', # Magenta
        }
        RESET = '\033[0m'

        def format(self, record):
            levelname = record.levelname
            if color:
                c = self.COLORS.get(levelname, self.RESET)
                record.levelname = f"{c}{levelname:8}{self.RESET}"
            else:
                record.levelname = f"{levelname:8}"
            try:
                return super().format(record)
            finally:
                record.levelname = levelname

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColorFormatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _add_common(parser: argparse.ArgumentParser, agent: bool = True) -> None:
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output and debug logging'
    )
    parser.add_argument(
        '--no-color',
        action='store_true',
        dest='no_color',
        help='Disable colored output'
    )
    parser.add_argument(
        '-o', '--output',
        type=Path,
        help='Write JSON result to this file'
    )
    if not agent:
        return

    parser.add_argument(
        '--config',
        type=Path,
        help='YAML settings file (NETSURVEY_* env vars also apply)'
    )
    parser.add_argument(
        '--agent-url',
        dest='agent_url',
        help='Access Agent base URL (default: http://localhost:3001/api)'
    )
    parser.add_argument(
        '-c', '--community',
        help='SNMP community string (default: public)'
    )
    parser.add_argument(
        '--snmp-version',
        dest='snmp_version',
        choices=SNMP_VERSIONS,
        help='SNMP version (default: 2c)'
    )
    parser.add_argument(
        '--timestamps',
        action='store_true',
        help='Show timestamps on event lines'
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog='netsurvey',
        description='Subnet discovery and classification through a Device Access Agent',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  netsurvey plan 10.0.0.0/16
  netsurvey scan 192.168.10.0/24 -c netops-ro -o scan.json
  netsurvey scan 192.168.10.0/24 --full --config survey.yaml
  netsurvey vlans 192.168.10.2 --cli-username admin
  netsurvey macs 192.168.10.2 --vlan 1 --vlan 20 --mac-mode agent
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Plan command (offline)
    plan_parser = subparsers.add_parser('plan', help='Show the host range and scan plan for a CIDR')
    plan_parser.add_argument('cidr', help='Subnet, e.g. 192.168.10.0/24')
    plan_parser.add_argument(
        '--cap',
        type=int,
        default=254,
        help='Maximum hosts to scan before sampling (default: 254)'
    )
    plan_parser.add_argument(
        '--hosts',
        action='store_true',
        help='List every planned address'
    )
    _add_common(plan_parser, agent=False)

    # Scan command
    scan_parser = subparsers.add_parser('scan', help='Probe and classify hosts in a subnet')
    scan_parser.add_argument('cidr', help='Subnet, e.g. 192.168.10.0/24')
    scan_parser.add_argument(
        '--full',
        action='store_true',
        help='Continue with VLAN and MAC table discovery on switches'
    )
    scan_parser.add_argument(
        '--switch',
        action='append',
        dest='switches',
        help='Additional switch IP for --full (repeatable)'
    )
    scan_parser.add_argument('--local-ip', dest='local_ip', help="Agent's own address")
    scan_parser.add_argument(
        '--local-prefix',
        dest='local_prefix',
        type=int,
        help="Prefix length of the agent's segment"
    )
    scan_parser.add_argument('--cap', dest='scan_cap', type=int, help='Scan cap (default: 254)')
    scan_parser.add_argument(
        '--include-unreachable',
        action='store_true',
        default=None,
        dest='include_unreachable',
        help='Record hosts that did not answer'
    )
    scan_parser.add_argument(
        '--entity',
        action='store_true',
        default=None,
        dest='entity_refinement',
        help='Refine categories from ENTITY-MIB chassis/module text'
    )
    _add_cli_credentials(scan_parser)
    _add_common(scan_parser)

    # VLANs command
    vlans_parser = subparsers.add_parser('vlans', help='Discover VLANs on switches')
    vlans_parser.add_argument('switches', nargs='+', help='Switch IP addresses')
    _add_cli_credentials(vlans_parser)
    _add_common(vlans_parser)

    # MACs command
    macs_parser = subparsers.add_parser('macs', help='Walk MAC address tables per VLAN')
    macs_parser.add_argument('switch', help='Switch IP address')
    macs_parser.add_argument(
        '--vlan',
        type=int,
        action='append',
        dest='vlan_ids',
        required=True,
        help='VLAN id to walk (repeatable)'
    )
    macs_parser.add_argument(
        '--mac-mode',
        dest='mac_mode',
        choices=MAC_MODES,
        help='walk: per-VLAN bridge walk; agent: one agent-side call'
    )
    _add_common(macs_parser)

    # Identify command
    identify_parser = subparsers.add_parser('identify', help="Identify one device via the agent")
    identify_parser.add_argument('target', help='Device IP address')
    _add_common(identify_parser)

    # Health command
    health_parser = subparsers.add_parser('health', help='Check the Access Agent')
    _add_common(health_parser)

    return parser


def _add_cli_credentials(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--cli-username',
        dest='cli_username',
        help='SSH/Telnet username for CLI VLAN fallback'
    )
    parser.add_argument(
        '--cli-password',
        dest='cli_password',
        help='SSH/Telnet password (prefer NETSURVEY_CLI_PASSWORD)'
    )


# Argument names that map onto SurveySettings fields
_SETTING_ARGS = (
    'agent_url', 'community', 'snmp_version', 'scan_cap', 'local_ip', 'local_prefix',
    'include_unreachable', 'entity_refinement', 'cli_username', 'cli_password', 'mac_mode',
)


def settings_from_args(args: argparse.Namespace) -> SurveySettings:
    overrides: Dict[str, Any] = {
        name: getattr(args, name) for name in _SETTING_ARGS if hasattr(args, name)
    }
    return load_settings(getattr(args, 'config', None), **overrides)


def build_engine(args: argparse.Namespace, settings: SurveySettings) -> DiscoveryEngine:
    agent = AccessAgentClient(
        settings.agent_url,
        api_key=settings.agent_api_key,
        get_timeout=settings.get_timeout,
        walk_timeout=settings.walk_timeout,
        session_timeout=settings.session_timeout,
        probe_timeout=settings.probe_timeout,
    )

    emitter = EventEmitter()
    printer = ConsoleEventPrinter(
        verbose=args.verbose,
        color=not args.no_color,
        show_timestamps=getattr(args, 'timestamps', False),
    )
    emitter.subscribe(printer.handle_event)

    return DiscoveryEngine(agent, settings, event_emitter=emitter)


def write_output(path: Optional[Path], data: Dict[str, Any]) -> None:
    if not path:
        return
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)
    print(f"\nSaved to: {path}")


def _cancel_on_sigint(engine: DiscoveryEngine) -> None:
    """First Ctrl-C cancels gracefully so partial results are kept."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, engine.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows event loops: Ctrl-C falls through to KeyboardInterrupt
        pass


# =============================================================================
# Commands
# =============================================================================

def cmd_plan(args) -> int:
    plan = plan_subnet(args.cidr, args.cap)

    print(f"{'=' * 60}")
    print(f"SCAN PLAN: {plan.cidr}")
    print(f"{'=' * 60}")
    print(f"Network:      {plan.network_address}")
    print(f"Broadcast:    {plan.broadcast_address}")
    print(f"Usable:       {plan.first_usable} - {plan.last_usable}")
    print(f"Total hosts:  {plan.total_hosts}")
    print(f"Planned:      {plan.planned_hosts}" + (" (sampled)" if plan.sampled else ""))

    if args.hosts:
        print()
        for ip in plan.scan_plan:
            print(f"  {ip}")

    write_output(args.output, {
        'cidr': plan.cidr,
        'network_address': plan.network_address,
        'broadcast_address': plan.broadcast_address,
        'first_usable': plan.first_usable,
        'last_usable': plan.last_usable,
        'total_hosts': plan.total_hosts,
        'sampled': plan.sampled,
        'scan_plan': list(plan.scan_plan),
    })
    return 0


async def cmd_scan(args) -> int:
    settings = settings_from_args(args)
    async with build_engine(args, settings) as engine:
        _cancel_on_sigint(engine)
        if args.full:
            result = await engine.run(args.cidr, switches=args.switches or [])
        else:
            result = await engine.scan_subnet(args.cidr)

    review = [d for d in result.devices if d.needs_verification]
    if review:
        print(f"Needs verification ({len(review)}):")
        for device in review:
            print(f"  {device.ip_address:<16} {device.manufacturer or '?':<12} "
                  f"{device.hostname or ''}")

    write_output(args.output, result.to_dict())
    return 1 if result.aborted else 0


async def cmd_vlans(args) -> int:
    settings = settings_from_args(args)
    async with build_engine(args, settings) as engine:
        _cancel_on_sigint(engine)
        result = await engine.discover_vlans(args.switches)

    if result.vlans:
        print(f"\n{'VLAN':>5}  {'Name':<24} Used by")
        for vlan in result.vlans:
            print(f"{vlan.vlan_id:>5}  {vlan.name:<24} {', '.join(vlan.used_by)}")

    write_output(args.output, result.to_dict())
    return 0 if result.vlans else 1


async def cmd_macs(args) -> int:
    settings = settings_from_args(args)
    async with build_engine(args, settings) as engine:
        _cancel_on_sigint(engine)
        table = await engine.discover_mac_addresses(args.switch, args.vlan_ids)

    if table.mac_addresses:
        print(f"\n{'VLAN':>5}  {'MAC':<18} {'Port':<16} Type")
        for entry in table.mac_addresses:
            print(f"{entry.vlan_id:>5}  {entry.mac_address:<18} "
                  f"{entry.port or '':<16} {entry.device_type}")

    write_output(args.output, table.to_dict())
    return 0


async def cmd_identify(args) -> int:
    settings = settings_from_args(args)
    async with build_engine(args, settings) as engine:
        device = await engine.identify_device(args.target)

    print(f"{'=' * 60}")
    print(f"DEVICE: {device.hostname or device.ip_address}")
    print(f"{'=' * 60}")
    print(f"IP Address:   {device.ip_address}")
    print(f"Manufacturer: {device.manufacturer or 'N/A'}")
    print(f"Model:        {device.model or 'N/A'}")
    print(f"Category:     {device.category.value}")
    print(f"sysDescr:     {(device.sys_descr or 'N/A')[:60]}")
    if device.needs_verification:
        print("Needs verification")

    write_output(args.output, device.to_dict())
    return 0


def cmd_health(args) -> int:
    settings = settings_from_args(args)
    agent = AccessAgentClient(settings.agent_url, api_key=settings.agent_api_key,
                              get_timeout=settings.get_timeout)
    health = agent.ensure_available()
    print(f"Access agent {settings.agent_url}: {health.status}"
          + (f" ({health.timestamp})" if health.timestamp else ""))
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, color=not args.no_color)

    try:
        if args.command == 'plan':
            return cmd_plan(args)
        elif args.command == 'scan':
            return asyncio.run(cmd_scan(args))
        elif args.command == 'vlans':
            return asyncio.run(cmd_vlans(args))
        elif args.command == 'macs':
            return asyncio.run(cmd_macs(args))
        elif args.command == 'identify':
            return asyncio.run(cmd_identify(args))
        elif args.command == 'health':
            return cmd_health(args)
    except DiscoveryError as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            logger.exception("Command failed")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
