"""
tests/test_client_ip.py — Unit tests for client identification
"""
from __future__ import annotations

import pytest
from starlette.datastructures import Headers

from scpb_site.core.client_ip import UNKNOWN_CLIENT, identify, is_valid_ip, parse_header_ip
from scpb_site.core.errors import InvalidClientHeader


@pytest.mark.parametrize("value", [
    "203.0.113.5",
    "0.0.0.0",
    "255.255.255.255",
    "::1",
    "2001:db8::1",
    "fe80:0:0:0:202:b3ff:fe1e:8329",
])
def test_valid_ips(value):
    assert is_valid_ip(value)


@pytest.mark.parametrize("value", [
    "",
    "999.1.1.1",
    "1.2.3",
    "1.2.3.4.5",
    "abc.def.gha.bcd",
    " 1.2.3.4",
    "1.2.3.4x",
    "localhost",
    "1:2:3:4:5:6:7:8:9",
])
def test_invalid_ips(value):
    assert not is_valid_ip(value)


def test_ipv6_check_is_shape_only():
    # Loose on purpose: a triple colon passes the shape check
    assert is_valid_ip(":::")


def test_forwarded_for_uses_first_hop():
    headers = {"x-forwarded-for": " 203.0.113.5 , 10.0.0.1, 10.0.0.2"}
    assert identify(headers) == "203.0.113.5"


def test_forwarded_for_wins_over_other_headers():
    headers = {
        "x-forwarded-for": "198.51.100.7",
        "x-real-ip": "203.0.113.9",
        "cf-connecting-ip": "192.0.2.1",
    }
    assert identify(headers) == "198.51.100.7"


def test_malformed_forwarded_for_falls_through_to_real_ip():
    headers = {"x-forwarded-for": "garbage", "x-real-ip": "203.0.113.9"}
    assert identify(headers) == "203.0.113.9"


def test_header_precedence_after_forwarded_for():
    assert identify({"cf-connecting-ip": "192.0.2.1", "true-client-ip": "192.0.2.2"}) == "192.0.2.1"
    assert identify({"true-client-ip": "192.0.2.2"}) == "192.0.2.2"


def test_no_usable_header_is_unknown():
    assert identify({}) == UNKNOWN_CLIENT
    assert identify({"x-forwarded-for": "nope", "x-real-ip": "999.0.0.1"}) == UNKNOWN_CLIENT


def test_header_lookup_is_case_insensitive():
    assert identify({"X-Real-IP": "203.0.113.9"}) == "203.0.113.9"
    assert identify(Headers({"X-Forwarded-For": "203.0.113.5"})) == "203.0.113.5"


def test_parse_header_ip_raises_on_invalid():
    with pytest.raises(InvalidClientHeader) as exc_info:
        parse_header_ip("x-real-ip", "not-an-ip")
    assert exc_info.value.details == {"header": "x-real-ip"}


@pytest.mark.parametrize("value", ["١٢٣.1.1.1", "1.1.1.١", "１.2.3.4"])
def test_non_ascii_digits_are_rejected(value):
    assert not is_valid_ip(value)


def test_non_ascii_forwarded_for_is_unknown():
    assert identify({"x-forwarded-for": "١.1.1.1"}) == UNKNOWN_CLIENT
