"""Parsing helpers shared by every platform adapter.

Signal normalization and security inference must give identical results
on all platforms, so adapters never implement their own.
"""

import hashlib

from .models import SecurityType

ENTERPRISE_TOKENS = ("ENTERPRISE", "802.1X", "EAP")
NO_SECURITY_VALUES = ("", "--", "NONE", "OPEN")


def rssi_to_percent(dbm: int) -> int:
    """Map an RSSI reading in dBm onto the 0-100 scale.

    Fixed staircase: >=-50 -> 100, >=-60 -> 80, >=-70 -> 60,
    >=-80 -> 40, >=-90 -> 20, else 10.
    """
    if dbm >= -50:
        return 100
    if dbm >= -60:
        return 80
    if dbm >= -70:
        return 60
    if dbm >= -80:
        return 40
    if dbm >= -90:
        return 20
    return 10


def quality_to_percent(quality: int, maximum: int = 70) -> int:
    """Convert an iwlist ``Quality=x/70`` reading to a percentage."""
    if maximum <= 0:
        return 0
    return max(0, min(100, round(quality / maximum * 100)))


def clamp_percent(value: int) -> int:
    return max(0, min(100, value))


def infer_security(text: str | None) -> SecurityType:
    """Infer the security type from a tool's free-text security column.

    Most specific tokens are checked first: WPA3, then WPA2 (enterprise
    when an 802.1X/EAP token is present), WPA, WEP. No token means OPEN.
    """
    if text is None:
        return SecurityType.OPEN
    value = text.strip().upper()
    if value in NO_SECURITY_VALUES:
        return SecurityType.OPEN
    if "WPA3" in value or "SAE" in value:
        return SecurityType.WPA3
    if "WPA2" in value:
        if any(token in value for token in ENTERPRISE_TOKENS):
            return SecurityType.WPA2_ENTERPRISE
        return SecurityType.WPA2
    if "WPA" in value:
        return SecurityType.WPA
    if "WEP" in value:
        return SecurityType.WEP
    return SecurityType.OPEN


def synthetic_bssid(ssid: str) -> str:
    """Stable placeholder identity for records that carry no MAC.

    OS profiles and some "current network" outputs only name the SSID. A
    locally administered address derived from the SSID keeps the same
    network mapped to the same key across calls.
    """
    digest = hashlib.sha1(ssid.encode()).hexdigest()[:10].upper()
    return "02:" + ":".join(digest[i : i + 2] for i in range(0, 10, 2))


def split_terse(line: str, separator: str = ":") -> list[str]:
    """Split an ``nmcli -t`` line, honouring ``\\:`` and ``\\\\`` escapes."""
    fields: list[str] = []
    current: list[str] = []
    escaped = False
    for char in line:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == separator:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def parse_int(value: str | None, default: int | None = None) -> int | None:
    """``int(value)`` that tolerates blanks and garbage."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default
