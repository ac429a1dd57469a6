"""Subnet range planning and sampling."""

import ipaddress

import pytest

from netsurvey.discovery.subnet import plan_subnet, same_subnet
from netsurvey.errors import ValidationError


def test_slash_24_enumerates_every_usable_host():
    plan = plan_subnet("192.168.10.0/24")

    assert plan.network_address == "192.168.10.0"
    assert plan.broadcast_address == "192.168.10.255"
    assert plan.first_usable == "192.168.10.1"
    assert plan.last_usable == "192.168.10.254"
    assert plan.total_hosts == 254
    assert plan.planned_hosts == 254
    assert plan.scan_plan[0] == "192.168.10.1"
    assert plan.scan_plan[-1] == "192.168.10.254"
    assert not plan.sampled


def test_host_bits_are_ignored():
    plan = plan_subnet("10.1.2.77/24")
    assert plan.cidr == "10.1.2.0/24"
    assert plan.first_usable == "10.1.2.1"


def test_slash_32_is_single_host():
    plan = plan_subnet("10.0.0.5/32")
    assert plan.total_hosts == 1
    assert plan.scan_plan == ("10.0.0.5",)


def test_slash_31_keeps_both_addresses():
    plan = plan_subnet("10.0.0.4/31")
    assert plan.total_hosts == 2
    assert plan.scan_plan == ("10.0.0.4", "10.0.0.5")


def test_large_subnet_is_sampled_to_cap():
    plan = plan_subnet("10.20.0.0/22", cap=254)

    assert plan.total_hosts == 1022
    assert plan.sampled
    assert plan.planned_hosts == 254
    assert plan.scan_plan[0] == "10.20.0.1"

    as_ints = [int(ipaddress.IPv4Address(ip)) for ip in plan.scan_plan]
    assert all(b > a for a, b in zip(as_ints, as_ints[1:]))
    # stride is floor(1022 / 254) = 4
    assert as_ints[1] - as_ints[0] == 4
    assert len(set(plan.scan_plan)) == 254


def test_slash_24_never_sampled_even_above_cap():
    plan = plan_subnet("192.168.1.0/24", cap=100)
    assert plan.planned_hosts == 254
    assert not plan.sampled


def test_small_subnet_under_cap_is_complete():
    plan = plan_subnet("10.0.0.0/29")
    assert plan.scan_plan == tuple(f"10.0.0.{i}" for i in range(1, 7))


@pytest.mark.parametrize("cidr", [
    "10.0.0.0",
    "10.0.0.0/33",
    "300.1.1.1/24",
    "not-a-subnet",
    "",
    "fe80::/64",
])
def test_invalid_cidr_rejected(cidr):
    with pytest.raises(ValidationError):
        plan_subnet(cidr)


def test_cap_must_be_positive():
    with pytest.raises(ValidationError):
        plan_subnet("10.0.0.0/16", cap=0)


def test_same_subnet():
    assert same_subnet("10.1.1.20", "10.1.1.5", 24)
    assert not same_subnet("10.1.2.20", "10.1.1.5", 24)
    assert same_subnet("10.1.2.20", "10.1.1.5", 16)
    assert same_subnet("8.8.8.8", "10.1.1.5", 0)


def test_same_subnet_rejects_bad_mask():
    with pytest.raises(ValidationError):
        same_subnet("10.1.1.20", "10.1.1.5", 33)
