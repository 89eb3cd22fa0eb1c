from __future__ import annotations

import ipaddress

import pytest

from visit_notifications.utils.ip_utils import anonymize_ip, grace_key


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("203.0.113.77", "203.0.113.0"),
        ("192.168.1.255", "192.168.1.0"),
        ("10.0.0.0", "10.0.0.0"),
        (" 198.51.100.9 ", "198.51.100.0"),
    ],
)
def test_ipv4_zeroes_last_octet(raw: str, expected: str) -> None:
    assert anonymize_ip(raw) == expected


def test_ipv4_anonymization_is_idempotent() -> None:
    once = anonymize_ip("203.0.113.77")

    assert anonymize_ip(once) == once


@pytest.mark.parametrize(
    "raw",
    [
        "2001:db8:85a3:1234:5678:8a2e:370:7334",
        "fe80::1",
        "::ffff:203.0.113.77",
    ],
)
def test_ipv6_zeroes_last_ten_bytes(raw: str) -> None:
    anonymized = anonymize_ip(raw)

    assert anonymized is not None
    source_bytes = ipaddress.IPv6Address(raw).packed
    masked = ipaddress.IPv6Address(anonymized).packed
    assert masked[:6] == source_bytes[:6]
    assert masked[6:] == b"\x00" * 10


def test_ipv6_output_is_a_compressed_address() -> None:
    assert anonymize_ip("2001:db8:85a3:1234:5678:8a2e:370:7334") == "2001:db8:85a3::"


@pytest.mark.parametrize("raw", [None, "", "unknown", "999.1.1.1", "203.0.113", "2001:db8::zz"])
def test_invalid_addresses_return_none(raw: str | None) -> None:
    assert anonymize_ip(raw) is None


def test_grace_key_is_stable_content_hash() -> None:
    key = grace_key("203.0.113.0")

    assert key == grace_key("203.0.113.0")
    assert key != grace_key("203.0.114.0")
    assert len(key) == 32
