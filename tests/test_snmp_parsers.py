"""SNMP value decoding."""

import pytest

from netsurvey.discovery.snmp.parsers import (
    decode_int,
    decode_string,
    extract_hostname,
    mac_from_oid,
    normalize_mac,
    normalize_oid,
)


@pytest.mark.parametrize("raw", [
    "00:1a:ab:05:02:27",
    "00-1A-AB-05-02-27",
    "001a.ab05.0227",
    "001aab050227",
    "0x001aab050227",
    b"\x00\x1a\xab\x05\x02\x27",
])
def test_normalize_mac_formats(raw):
    assert normalize_mac(raw) == "00:1A:AB:05:02:27"


@pytest.mark.parametrize("raw", [None, "", "00:1a:ab", "zz:zz:zz:zz:zz:zz", b"\x00\x01"])
def test_normalize_mac_rejects_garbage(raw):
    assert normalize_mac(raw) is None


def test_mac_from_bridge_oid():
    assert mac_from_oid("1.3.6.1.2.1.17.4.3.1.2.0.26.171.5.2.39") == "00:1A:AB:05:02:27"
    assert mac_from_oid("1.3.6.1.2.1.17.4.3.1.2.0.26.171.5.2.300") is None
    assert mac_from_oid("2.39") is None


def test_decode_string_handles_hex_and_nulls():
    assert decode_string("0x737731") == "sw1"
    assert decode_string("core\x00 ") == "core"
    assert decode_string(None) == ""


def test_decode_int():
    assert decode_int("42") == 42
    assert decode_int(7) == 7
    assert decode_int("n/a") is None
    assert decode_int(True) is None


@pytest.mark.parametrize("raw,expected", [
    (".1.3.6.1.4.1.9.1.516", "1.3.6.1.4.1.9.1.516"),
    ("SNMPv2-SMI::enterprises.9.1.516", "1.3.6.1.4.1.9.1.516"),
    ("iso.3.6.1.4.1.2636.1.1.1.2.31", "1.3.6.1.4.1.2636.1.1.1.2.31"),
    ("garbage", None),
    (None, None),
])
def test_normalize_oid(raw, expected):
    assert normalize_oid(raw) == expected


def test_extract_hostname():
    assert extract_hostname("core-sw1.example.com") == "core-sw1"
    assert extract_hostname("") is None
