"""Command-line parsing and offline commands."""

import json

import pytest

from netsurvey.discovery.cli import cmd_plan, create_parser, settings_from_args


def test_scan_arguments(clean_env):
    args = create_parser().parse_args([
        "scan", "10.0.0.0/24",
        "--full",
        "--switch", "10.0.0.2", "--switch", "10.0.0.3",
        "-c", "netops",
        "--snmp-version", "1",
        "--cap", "64",
        "--entity",
    ])

    assert args.command == "scan"
    assert args.full
    assert args.switches == ["10.0.0.2", "10.0.0.3"]

    settings = settings_from_args(args)
    assert settings.community == "netops"
    assert settings.snmp_version == "1"
    assert settings.scan_cap == 64
    assert settings.entity_refinement is True
    # Flags not given leave defaults alone
    assert settings.include_unreachable is False


def test_macs_requires_vlan():
    parser = create_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["macs", "10.0.0.2"])

    args = parser.parse_args(["macs", "10.0.0.2", "--vlan", "1", "--vlan", "20", "--mac-mode", "agent"])
    assert args.vlan_ids == [1, 20]
    assert args.mac_mode == "agent"


def test_settings_from_config_file(clean_env, tmp_path):
    config = tmp_path / "survey.yaml"
    config.write_text("community: from-file\nvlan_switches: primary\n")

    args = create_parser().parse_args(["vlans", "10.0.0.2", "--config", str(config)])
    settings = settings_from_args(args)

    assert settings.community == "from-file"
    assert settings.vlan_switches == "primary"


def test_env_applies_to_cli(clean_env, monkeypatch):
    monkeypatch.setenv("NETSURVEY_AGENT_URL", "http://collector01:3001/api")

    args = create_parser().parse_args(["health"])
    assert settings_from_args(args).agent_url == "http://collector01:3001/api"


def test_cmd_plan(capsys, tmp_path):
    output = tmp_path / "plan.json"
    args = create_parser().parse_args(["plan", "10.20.0.0/22", "--cap", "100", "-o", str(output)])

    assert cmd_plan(args) == 0

    out = capsys.readouterr().out
    assert "SCAN PLAN: 10.20.0.0/22" in out
    assert "(sampled)" in out

    data = json.loads(output.read_text())
    assert data["total_hosts"] == 1022
    assert len(data["scan_plan"]) == 100
    assert data["first_usable"] == "10.20.0.1"
