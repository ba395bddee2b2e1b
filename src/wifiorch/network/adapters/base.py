"""Capability interface implemented by every platform adapter."""

import logging
from abc import ABC, abstractmethod

from ...core.errors import WiFiError
from ...core.process import CommandRunner
from ..models import NetworkSettings, SecurityType, WiFiNetwork, is_mac, normalize_bssid
from ..parsing import synthetic_bssid

logger = logging.getLogger(__name__)


def _identity(ssid: str, bssid: str | None) -> str:
    """Reported MAC if it is one, otherwise the SSID-derived placeholder."""
    if bssid and is_mac(normalize_bssid(bssid)):
        return normalize_bssid(bssid)
    return synthetic_bssid(ssid)


class PlatformAdapter(ABC):
    """Translates one OS's native WiFi tooling into ``WiFiNetwork`` records.

    Contract:
    - ``is_available`` fails closed and never raises.
    - List operations raise when the tool itself fails, but skip
      individual malformed records.
    - ``start_scan``/``connect_to_network``/``disconnect_from_network``
      report tool failure as ``False``.
    - ``PermissionDeniedError`` always propagates.
    """

    name: str = "unknown"

    def __init__(self, runner: CommandRunner | None = None, interface: str | None = None) -> None:
        """Initialize adapter.

        Args:
            runner: Command runner (injected by tests)
            interface: WiFi interface override
        """
        self._runner = runner or CommandRunner()
        self._interface = interface

    async def is_available(self) -> bool:
        """Whether WiFi hardware and tooling are usable on this host."""
        try:
            return await self._probe()
        except (WiFiError, OSError) as e:
            logger.warning("%s WiFi check failed: %s", self.name, e)
            return False

    @abstractmethod
    async def _probe(self) -> bool:
        """Detect tooling; may raise, ``is_available`` turns that into False."""

    @abstractmethod
    async def get_available_networks(self) -> list[WiFiNetwork]:
        """Networks currently in range."""

    @abstractmethod
    async def get_current_network(self) -> WiFiNetwork | None:
        """The associated network, or None."""

    @abstractmethod
    async def get_saved_networks(self) -> list[WiFiNetwork]:
        """OS-level stored profiles."""

    @abstractmethod
    async def start_scan(self) -> bool:
        """Trigger a scan; True means the trigger was accepted."""

    @abstractmethod
    async def connect_to_network(self, ssid: str, password: str | None = None) -> bool:
        """Associate with ``ssid``."""

    @abstractmethod
    async def disconnect_from_network(self) -> bool:
        """Drop the current association."""

    async def get_ip_address(self) -> str | None:
        """IPv4 address of the WiFi interface, when the platform can tell."""
        return None

    # =========================================================================
    # Record construction
    # =========================================================================

    @staticmethod
    def scanned(
        ssid: str,
        bssid: str | None,
        security: SecurityType,
        signal_strength: int,
        hidden: bool = False,
    ) -> WiFiNetwork:
        """Record for a network seen in a scan."""
        return WiFiNetwork(
            ssid=ssid,
            bssid=_identity(ssid, bssid),
            security=security,
            signal_strength=signal_strength,
            settings=NetworkSettings(hidden=hidden),
        )

    @staticmethod
    def profile(
        ssid: str,
        security: SecurityType = SecurityType.UNKNOWN,
        auto_connect: bool = True,
        hidden: bool = False,
        priority: int = 0,
    ) -> WiFiNetwork:
        """Record for an OS-stored profile; profiles are out of range until scanned."""
        return WiFiNetwork(
            ssid=ssid,
            bssid=synthetic_bssid(ssid),
            security=security,
            signal_strength=0,
            saved=True,
            settings=NetworkSettings(auto_connect=auto_connect, hidden=hidden, priority=priority),
        )

    @staticmethod
    def associated(
        ssid: str,
        bssid: str | None,
        security: SecurityType,
        signal_strength: int,
    ) -> WiFiNetwork:
        """Record for the network the interface is associated with."""
        return WiFiNetwork(
            ssid=ssid,
            bssid=_identity(ssid, bssid),
            security=security,
            signal_strength=signal_strength,
            saved=True,
            settings=NetworkSettings(auto_connect=True, priority=1),
        )
