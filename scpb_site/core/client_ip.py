"""
scpb_site/core/client_ip.py — Client identification from proxy headers
Resolves the real client IP behind CDNs and reverse proxies. The result is
used only as a rate-limit bucket key, never stored or logged.
"""
from __future__ import annotations

import re
from typing import Mapping, Optional

from scpb_site.core.errors import InvalidClientHeader

UNKNOWN_CLIENT = "unknown"

# First valid header wins.
CLIENT_IP_HEADERS: tuple[str, ...] = (
    "x-forwarded-for",
    "x-real-ip",
    "cf-connecting-ip",
    "true-client-ip",
)

_IPV4_RE = re.compile(r"^([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})$")
# Shape check only: 3 to 8 groups of up to 4 hex digits. Not full RFC 4291.
_IPV6_RE = re.compile(r"^([0-9a-fA-F]{0,4}:){2,7}[0-9a-fA-F]{0,4}$")


def is_valid_ip(value: str) -> bool:
    """True for a dotted-quad IPv4 address or an IPv6-shaped string."""
    if not value:
        return False

    match = _IPV4_RE.fullmatch(value)
    if match:
        return all(0 <= int(octet) <= 255 for octet in match.groups())

    if _IPV6_RE.fullmatch(value):
        return len(value.split(":")) <= 8

    return False


def parse_header_ip(header: str, raw: str) -> str:
    """
    Extract the candidate IP from one header value.
    x-forwarded-for is a chain; only the first hop is the client.
    Raises InvalidClientHeader if the candidate is not an IP.
    """
    candidate = raw.split(",")[0].strip() if header == "x-forwarded-for" else raw.strip()
    if not is_valid_ip(candidate):
        raise InvalidClientHeader(
            f"{header} does not carry a valid IP",
            details={"header": header},
        )
    return candidate


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette Headers are case-insensitive; plain dicts are matched lower-case.
    value = headers.get(name)
    if value is None and not hasattr(headers, "getlist"):
        for key, val in headers.items():
            if key.lower() == name:
                return val
    return value


def identify(headers: Mapping[str, str]) -> str:
    """
    Resolve the rate-limit identity for a request.
    Malformed headers are skipped; with no usable header every such client
    shares the "unknown" bucket.
    """
    for header in CLIENT_IP_HEADERS:
        raw = _get_header(headers, header)
        if not raw:
            continue
        try:
            return parse_header_ip(header, raw)
        except InvalidClientHeader:
            continue
    return UNKNOWN_CLIENT
