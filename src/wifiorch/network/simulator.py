"""Seedable stand-in for the radio, used when no WiFi tooling is present.

Scans return a fixed catalogue of networks plus a few random ones;
connections take a configurable time and fail at ``failure_rate``.
"""

import asyncio
import logging
import random
from typing import Callable

from ..core.config import SimulatorConfig
from ..core.errors import AuthenticationFailedError, ConnectionFailedError
from .models import NetworkSettings, SecurityType, WiFiNetwork

logger = logging.getLogger(__name__)

CATALOGUE: tuple[tuple[str, str, int, SecurityType, NetworkSettings], ...] = (
    (
        "Home_Network",
        "00:11:22:33:44:55",
        90,
        SecurityType.WPA2,
        NetworkSettings(
            auto_connect=True,
            redirect_url="https://home-portal.example.com",
            priority=1,
        ),
    ),
    ("Office_WiFi", "AA:BB:CC:DD:EE:FF", 75, SecurityType.WPA2_ENTERPRISE, NetworkSettings()),
    (
        "Cafe_Guest",
        "11:22:33:44:55:66",
        60,
        SecurityType.WPA,
        NetworkSettings(redirect_url="https://cafe-login.example.com", redirect_timeout=5000),
    ),
    (
        "Public_WiFi",
        "BB:CC:DD:EE:FF:00",
        45,
        SecurityType.OPEN,
        NetworkSettings(redirect_url="https://public-wifi-auth.example.com"),
    ),
    ("Neighbor_Network", "CC:DD:EE:FF:00:11", 30, SecurityType.WPA2, NetworkSettings()),
    ("IoT_Network", "DD:EE:FF:00:11:22", 85, SecurityType.WPA3, NetworkSettings(hidden=True)),
    ("Guest_Network", "EE:FF:00:11:22:33", 65, SecurityType.OPEN, NetworkSettings()),
    ("5G_Network", "FF:00:11:22:33:44", 70, SecurityType.WPA2, NetworkSettings()),
)

RANDOM_SECURITY = (SecurityType.WPA, SecurityType.WPA2, SecurityType.OPEN)


class WifiSimulator:
    """Deterministic for a given ``seed``.

    Usage:
        sim = WifiSimulator(SimulatorConfig(seed=42))
        networks = sim.scan_networks()
        ip = await sim.connect(networks[0])
    """

    def __init__(self, config: SimulatorConfig | None = None) -> None:
        self.config = config or SimulatorConfig()
        self._rng = random.Random(self.config.seed)

    @staticmethod
    def catalogue() -> list[WiFiNetwork]:
        return [
            WiFiNetwork(
                ssid=ssid,
                bssid=bssid,
                security=security,
                signal_strength=signal,
                settings=NetworkSettings(**vars(settings)),
            )
            for ssid, bssid, signal, security, settings in CATALOGUE
        ]

    def _random_bssid(self) -> str:
        # Locally administered unicast prefix
        octets = [0x06] + [self._rng.randint(0, 255) for _ in range(5)]
        return ":".join(f"{o:02X}" for o in octets)

    def scan_networks(self) -> list[WiFiNetwork]:
        """The fixed catalogue plus ``random_networks`` random entries."""
        networks = self.catalogue()
        for _ in range(self.config.random_networks):
            networks.append(
                WiFiNetwork(
                    ssid=f"Network_{self._rng.randint(0, 999)}",
                    bssid=self._random_bssid(),
                    security=self._rng.choice(RANDOM_SECURITY),
                    signal_strength=self._rng.randint(20, 79),
                )
            )
        return networks

    async def connect(
        self,
        network: WiFiNetwork,
        on_authenticating: Callable[[], None] | None = None,
    ) -> str:
        """Pretend to associate with ``network``.

        Args:
            network: Target network
            on_authenticating: Called when an enterprise network enters authentication

        Returns:
            The assigned IP address

        Raises:
            ConnectionFailedError: Injected association failure
            AuthenticationFailedError: Injected enterprise authentication failure
        """
        logger.debug("Simulating connection to %s", network.ssid)
        await asyncio.sleep(self.config.connect_delay)

        if network.security.is_enterprise:
            if on_authenticating:
                on_authenticating()
            await asyncio.sleep(self.config.auth_delay)

        if self.config.failure_rate and self._rng.random() < self.config.failure_rate:
            logger.warning("Injected connection failure for %s", network.ssid)
            if network.security.is_enterprise:
                raise AuthenticationFailedError(
                    "Authentication failed", details={"ssid": network.ssid}
                )
            raise ConnectionFailedError(
                "Failed to connect to network", details={"ssid": network.ssid}
            )

        return self.ip_address()

    def ip_address(self) -> str:
        return f"192.168.1.{self._rng.randint(2, 254)}"

    def perturb_signal(self, current: int) -> int:
        """Random walk of at most 3 points, kept within 0-100."""
        return max(0, min(100, current + self._rng.randint(-3, 3)))
