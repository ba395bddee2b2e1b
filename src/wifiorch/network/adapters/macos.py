"""macOS adapter driving ``airport`` and ``networksetup``."""

import asyncio
import logging
import re

from ...core.errors import CommandError
from ...core.process import CommandRunner
from ..models import SecurityType, WiFiNetwork
from ..parsing import infer_security, parse_int, rssi_to_percent
from .base import PlatformAdapter

logger = logging.getLogger(__name__)

AIRPORT = (
    "/System/Library/PrivateFrameworks/Apple80211.framework"
    "/Versions/Current/Resources/airport"
)

# airport -s right-aligns SSIDs, which may themselves contain spaces
_SCAN_LINE = re.compile(
    r"^\s*(?P<ssid>.+?)\s+"
    r"(?P<bssid>[0-9a-fA-F]{1,2}(?::[0-9a-fA-F]{1,2}){5})\s+"
    r"(?P<rssi>-?\d+)\s+"
    r"(?P<channel>\S+)\s+"
    r"(?P<ht>[YN])\s+"
    r"(?P<cc>\S+)\s+"
    r"(?P<security>.+?)\s*$"
)
_CURRENT_NETWORKSETUP = re.compile(r"Current\s+(?:Wi-Fi|AirPort)\s+Network:\s+(.+)", re.I)
_JOIN_FAILURE_MARKERS = ("Error", "Failed", "Could not", "not find")


class MacOSAdapter(PlatformAdapter):
    """airport/networksetup-based adapter."""

    name = "macos"

    def __init__(
        self,
        runner: CommandRunner | None = None,
        interface: str | None = None,
        power_cycle_delay: float = 1.0,
    ) -> None:
        super().__init__(runner, interface)
        self._power_cycle_delay = power_cycle_delay
        self._device: str | None = self._interface

    async def _probe(self) -> bool:
        if self._runner.which(AIRPORT):
            return True
        output = await self._runner.run("networksetup", "-listallhardwareports")
        return "Wi-Fi" in output or "AirPort" in output

    async def _wifi_device(self) -> str:
        """Hardware device of the Wi-Fi port (e.g. ``en0``).

        Raises:
            CommandError: No Wi-Fi port is present
        """
        if self._device:
            return self._device
        output = await self._runner.run("networksetup", "-listallhardwareports")
        device = self.parse_wifi_device(output)
        if not device:
            raise CommandError("No Wi-Fi hardware port found")
        self._device = device
        return device

    @staticmethod
    def parse_wifi_device(output: str) -> str | None:
        wifi_port = False
        for line in output.splitlines():
            if line.startswith("Hardware Port:"):
                wifi_port = "Wi-Fi" in line or "AirPort" in line
            elif wifi_port and line.startswith("Device:"):
                return line.split(":", 1)[1].strip() or None
        return None

    async def get_available_networks(self) -> list[WiFiNetwork]:
        try:
            output = await self._runner.run(AIRPORT, "-s")
            return self.parse_scan(output)
        except CommandError as e:
            logger.warning("airport scan failed, using preferred networks: %s", e)
            try:
                device = await self._wifi_device()
                output = await self._runner.run(
                    "networksetup", "-listpreferredwirelessnetworks", device
                )
            except CommandError:
                raise e
            return self.parse_preferred(output)

    def parse_scan(self, output: str) -> list[WiFiNetwork]:
        networks: list[WiFiNetwork] = []
        for line in output.splitlines():
            match = _SCAN_LINE.match(line)
            if not match:
                if line.strip() and "BSSID" not in line:
                    logger.debug("Skipping unparseable airport line: %r", line)
                continue
            try:
                networks.append(
                    self.scanned(
                        match.group("ssid").strip(),
                        match.group("bssid"),
                        infer_security(match.group("security")),
                        rssi_to_percent(int(match.group("rssi"))),
                    )
                )
            except ValueError as e:
                logger.warning("Skipping malformed airport entry: %s", e)
        return networks

    async def get_current_network(self) -> WiFiNetwork | None:
        try:
            output = await self._runner.run(AIRPORT, "-I")
            return self.parse_info(output)
        except CommandError as e:
            logger.warning("airport -I failed, asking networksetup: %s", e)
            device = await self._wifi_device()
            output = await self._runner.run("networksetup", "-getairportnetwork", device)
            match = _CURRENT_NETWORKSETUP.search(output)
            if not match:
                return None
            return self.associated(match.group(1).strip(), None, SecurityType.UNKNOWN, 50)

    def parse_info(self, output: str) -> WiFiNetwork | None:
        """Parse ``airport -I`` key/value output."""
        info: dict[str, str] = {}
        for line in output.splitlines():
            if ":" in line:
                key, value = line.split(":", 1)
                info[key.strip()] = value.strip()

        ssid = info.get("SSID")
        if not ssid:
            return None
        rssi = parse_int(info.get("agrCtlRSSI"), -50)
        auth = info.get("link auth")
        security = infer_security(auth) if auth else SecurityType.UNKNOWN
        return self.associated(ssid, info.get("BSSID"), security, rssi_to_percent(rssi))

    async def get_saved_networks(self) -> list[WiFiNetwork]:
        device = await self._wifi_device()
        output = await self._runner.run("networksetup", "-listpreferredwirelessnetworks", device)
        return self.parse_preferred(output)

    def parse_preferred(self, output: str) -> list[WiFiNetwork]:
        networks: list[WiFiNetwork] = []
        started = False
        for line in output.splitlines():
            if not started:
                started = "Preferred networks" in line
                continue
            name = line.strip()
            if name and not name.startswith("--"):
                networks.append(self.profile(name))
        return networks

    async def start_scan(self) -> bool:
        try:
            await self._runner.run(AIRPORT, "-s")
            return True
        except CommandError as e:
            logger.error("airport scan failed: %s", e)
            return False

    async def connect_to_network(self, ssid: str, password: str | None = None) -> bool:
        try:
            device = await self._wifi_device()
            args = ["networksetup", "-setairportnetwork", device, ssid]
            if password:
                args.append(password)
            output = await self._runner.run(*args)
        except CommandError as e:
            logger.error("networksetup join %s failed: %s", ssid, e)
            return False

        # networksetup exits 0 even when the join fails
        if any(marker in output for marker in _JOIN_FAILURE_MARKERS):
            logger.error("networksetup could not join %s: %s", ssid, output)
            return False
        return True

    async def disconnect_from_network(self) -> bool:
        """Power-cycle the radio, the only way networksetup drops an association."""
        try:
            device = await self._wifi_device()
            await self._runner.run("networksetup", "-setairportpower", device, "off")
            await asyncio.sleep(self._power_cycle_delay)
            await self._runner.run("networksetup", "-setairportpower", device, "on")
            return True
        except CommandError as e:
            logger.error("networksetup power cycle failed: %s", e)
            return False

    async def get_ip_address(self) -> str | None:
        try:
            device = await self._wifi_device()
            output = await self._runner.run("ipconfig", "getifaddr", device)
        except CommandError:
            return None
        return output.strip() or None
