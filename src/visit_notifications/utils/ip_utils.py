from __future__ import annotations

import hashlib
import ipaddress

# Bytes zeroed at the end of the packed address, matching Google Analytics
# IP anonymization: last octet for IPv4, last 80 bits for IPv6.
_IPV4_ZEROED_BYTES = 1
_IPV6_ZEROED_BYTES = 10


def anonymize_ip(ip: str | None) -> str | None:
    """Return ``ip`` with its trailing bytes zeroed, or None if it is not an IP literal."""
    value = (ip or "").strip()
    if not value:
        return None

    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return None

    zeroed = _IPV4_ZEROED_BYTES if address.version == 4 else _IPV6_ZEROED_BYTES
    packed = address.packed
    masked = packed[:-zeroed] + b"\x00" * zeroed
    return str(ipaddress.ip_address(masked))


def grace_key(anonymized_ip: str) -> str:
    # Hashed so the stored grace data cannot be joined back to the visitor list.
    return hashlib.md5(anonymized_ip.encode("utf-8")).hexdigest()
