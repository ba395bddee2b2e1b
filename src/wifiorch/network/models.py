"""Data model shared by adapters, the facade and the network manager.

``bssid`` is the sole identity key for a network. It is normalized to an
upper-case, colon-separated MAC on construction so records from
different tools compare equal.
"""

import re
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Literal

from ..core.tasks import TaskSlots

_HEX12 = re.compile(r"^[0-9A-F]{12}$")
_MAC = re.compile(r"^[0-9A-F]{2}(:[0-9A-F]{2}){5}$")


def normalize_bssid(bssid: str) -> str:
    """Canonical ``AA:BB:CC:DD:EE:FF`` form of a MAC address.

    Accepts ``-`` or ``.`` separators, bare 12-digit hex and single-digit
    octets (``0:1b:2:...`` as printed by some tools). Anything that is not
    a MAC is returned stripped and upper-cased.
    """
    value = bssid.strip().upper()
    if _HEX12.match(value):
        return ":".join(value[i : i + 2] for i in range(0, 12, 2))
    parts = re.split(r"[:\-.]", value)
    if len(parts) == 6 and all(re.fullmatch(r"[0-9A-F]{1,2}", p) for p in parts):
        return ":".join(p.zfill(2) for p in parts)
    return value


def is_mac(value: str) -> bool:
    return bool(_MAC.match(value))


class SecurityType(str, Enum):
    """WiFi security protocol, weakest to strongest."""

    OPEN = "Open"
    WEP = "WEP"
    WPA = "WPA"
    WPA2 = "WPA2"
    WPA2_ENTERPRISE = "WPA2-Enterprise"
    WPA3 = "WPA3"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: "str | SecurityType") -> "SecurityType":
        """Accept enum values or member names (``WPA2-Enterprise``/``WPA2_ENTERPRISE``)."""
        if isinstance(value, SecurityType):
            return value
        name = value.strip().upper().replace("-", "_")
        for member in cls:
            if value == member.value or name == member.name:
                return member
        raise ValueError(f"Unknown security type: {value}")

    @property
    def requires_password(self) -> bool:
        return self is not SecurityType.OPEN

    @property
    def is_enterprise(self) -> bool:
        return self is SecurityType.WPA2_ENTERPRISE


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    ERROR = "error"


class NetworkType(str, Enum):
    WIFI = "wifi"


@dataclass
class NetworkSettings:
    """Per-network behaviour; ``redirect_timeout`` is milliseconds."""

    auto_connect: bool = False
    redirect_url: str | None = None
    hidden: bool = False
    priority: int = 0
    redirect_timeout: int = 3000

    def to_dict(self) -> dict[str, Any]:
        return {
            "autoConnect": self.auto_connect,
            "redirectUrl": self.redirect_url,
            "hidden": self.hidden,
            "priority": self.priority,
            "redirectTimeout": self.redirect_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "NetworkSettings":
        data = data or {}
        return cls(
            auto_connect=bool(data.get("autoConnect", False)),
            redirect_url=data.get("redirectUrl"),
            hidden=bool(data.get("hidden", False)),
            priority=int(data.get("priority", 0)),
            redirect_timeout=int(data.get("redirectTimeout", 3000)),
        )

    def updated(self, **changes: Any) -> "NetworkSettings":
        """Copy with ``changes`` applied.

        Raises:
            ValueError: On an unknown setting name or negative timeout
        """
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown network settings: {', '.join(sorted(unknown))}")
        result = replace(self, **changes)
        if result.redirect_timeout < 0:
            raise ValueError("redirect_timeout must be >= 0")
        return result


@dataclass
class WiFiNetwork:
    """A network as seen by a scan, an OS profile or the saved set."""

    ssid: str
    bssid: str
    security: SecurityType = SecurityType.UNKNOWN
    signal_strength: int = 0  # 0-100, 0 = not currently observed
    type: NetworkType = NetworkType.WIFI
    saved: bool = False
    settings: NetworkSettings = field(default_factory=NetworkSettings)

    def __post_init__(self) -> None:
        self.bssid = normalize_bssid(self.bssid)
        self.security = SecurityType.parse(self.security)
        self.signal_strength = max(0, min(100, int(self.signal_strength)))

    def brief(self) -> dict[str, str]:
        """The ``{ssid, bssid}`` reference used in event payloads."""
        return {"ssid": self.ssid, "bssid": self.bssid}

    def copy(self, **changes: Any) -> "WiFiNetwork":
        changes.setdefault("settings", replace(self.settings))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase record shape."""
        return {
            "ssid": self.ssid,
            "bssid": self.bssid,
            "security": self.security.value,
            "signalStrength": self.signal_strength,
            "type": self.type.value,
            "saved": self.saved,
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WiFiNetwork":
        return cls(
            ssid=data["ssid"],
            bssid=data["bssid"],
            security=SecurityType.parse(data.get("security", SecurityType.UNKNOWN)),
            signal_strength=int(data.get("signalStrength", 0)),
            type=NetworkType(data.get("type", NetworkType.WIFI.value)),
            saved=bool(data.get("saved", False)),
            settings=NetworkSettings.from_dict(data.get("settings")),
        )


@dataclass
class ScanState:
    """Lifecycle of the most recent scan."""

    is_scanning: bool = False
    progress: int = 0
    scan_id: str | None = None
    last_scan_time: float | None = None
    duration: int | None = None  # ms
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isScanning": self.is_scanning,
            "progress": self.progress,
            "scanId": self.scan_id,
            "lastScanTime": self.last_scan_time,
            "duration": self.duration,
            "error": self.error,
        }


@dataclass
class ConnectionSession:
    """Everything tied to one ``connect_to_network`` call.

    Owns the retry, redirect and signal-monitor tasks so a disconnect can
    cancel them together.
    """

    connection_id: str
    network: WiFiNetwork
    password: str | None = field(default=None, repr=False)
    save_network: bool = True
    start_time: float = field(default_factory=time.time)
    retry_count: int = 0
    ip_address: str | None = None
    signal_strength: int = 0
    simulated: bool = False
    connected_at: float | None = None
    tasks: TaskSlots = field(default_factory=TaskSlots, repr=False)


SortKey = Literal["signal", "name", "security"]


@dataclass
class NetworkFilter:
    """Filtering and ordering for network listings.

    Usage:
        NetworkFilter(min_signal_strength=40, sort_by="signal").apply(networks)
    """

    ssid: str | None = None
    security: SecurityType | None = None
    min_signal_strength: int | None = None
    only_saved: bool = False
    only_available: bool = False
    sort_by: SortKey | None = None
    sort_direction: Literal["asc", "desc"] = "desc"

    def apply(self, networks: Iterable[WiFiNetwork]) -> list[WiFiNetwork]:
        result = list(networks)

        if self.ssid:
            term = self.ssid.lower()
            result = [n for n in result if term in n.ssid.lower()]
        if self.security is not None:
            wanted = SecurityType.parse(self.security)
            result = [n for n in result if n.security is wanted]
        if self.min_signal_strength is not None:
            result = [n for n in result if n.signal_strength >= self.min_signal_strength]
        if self.only_saved:
            result = [n for n in result if n.saved]
        if self.only_available:
            result = [n for n in result if n.signal_strength > 0]

        if self.sort_by:
            keys = {
                "signal": lambda n: n.signal_strength,
                "name": lambda n: n.ssid.lower(),
                "security": lambda n: n.security.value,
            }
            result.sort(key=keys[self.sort_by], reverse=self.sort_direction == "desc")

        return result
