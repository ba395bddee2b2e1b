"""Windows adapter driving ``netsh wlan``."""

import logging
import re

from ...core.errors import CommandError
from ..models import SecurityType, WiFiNetwork
from ..parsing import infer_security, parse_int
from .base import PlatformAdapter

logger = logging.getLogger(__name__)

_SSID_LINE = re.compile(r"^SSID\s+\d+\s*:\s?(.*)$")
_BSSID_LINE = re.compile(r"^BSSID\s+\d+\s*:\s*(\S+)")
_SIGNAL_LINE = re.compile(r"^(?:Signal|信号)\s*:\s*(\d+)%")
_KEY_VALUE = re.compile(r"^\s*([^:]+?)\s*:\s(.*)$")
_PROFILE_LINE = re.compile(r"^\s*(?:All User Profile|User Profile|所有用户配置文件)\s*:\s*(.+)$")
_IPV4_LINE = re.compile(r"IPv4 Address[ .]*:\s*(\d+\.\d+\.\d+\.\d+)")


def _key_values(output: str) -> list[dict[str, str]]:
    """Split ``key : value`` output into one dict per ``Name`` block."""
    blocks: list[dict[str, str]] = []
    current: dict[str, str] = {}
    for line in output.splitlines():
        match = _KEY_VALUE.match(line)
        if not match:
            continue
        key, value = match.group(1).strip(), match.group(2).strip()
        if key == "Name" and current:
            blocks.append(current)
            current = {}
        current[key] = value
    if current:
        blocks.append(current)
    return blocks


class WindowsAdapter(PlatformAdapter):
    """netsh-based adapter.

    Connecting with a password requires creating a profile first, which
    netsh cannot do from arguments alone. ``connect_to_network`` with a
    password therefore returns False; saved profiles connect without one.
    """

    name = "windows"

    async def _probe(self) -> bool:
        if not self._runner.which("netsh"):
            return False
        output = await self._runner.run("netsh", "wlan", "show", "interfaces")
        return "GUID" in output or "Name" in output

    async def get_available_networks(self) -> list[WiFiNetwork]:
        output = await self._runner.run("netsh", "wlan", "show", "networks", "mode=bssid")
        return self.parse_networks(output)

    def parse_networks(self, output: str) -> list[WiFiNetwork]:
        """Parse ``show networks mode=bssid``: one record per BSSID."""
        networks: list[WiFiNetwork] = []
        ssid: str | None = None
        auth = encryption = ""
        pending: list[tuple[str, int]] = []

        def flush() -> None:
            if ssid is None:
                return
            for bssid, signal in pending:
                try:
                    networks.append(
                        self.scanned(ssid, bssid, infer_security(f"{auth} {encryption}"), signal)
                    )
                except ValueError as e:
                    logger.warning("Skipping malformed netsh entry %r: %s", ssid, e)

        for raw in output.splitlines():
            line = raw.strip()
            ssid_match = _SSID_LINE.match(line)
            if ssid_match:
                flush()
                ssid = ssid_match.group(1).strip() or None
                auth = encryption = ""
                pending = []
                continue
            if ssid is None:
                continue
            bssid_match = _BSSID_LINE.match(line)
            if bssid_match:
                pending.append((bssid_match.group(1), 0))
                continue
            signal_match = _SIGNAL_LINE.match(line)
            if signal_match and pending:
                bssid, _ = pending[-1]
                pending[-1] = (bssid, int(signal_match.group(1)))
                continue
            if line.startswith("Authentication"):
                auth = line.split(":", 1)[1].strip()
            elif line.startswith("Encryption"):
                encryption = line.split(":", 1)[1].strip()
        flush()

        logger.debug("netsh reported %d networks", len(networks))
        return networks

    async def get_current_network(self) -> WiFiNetwork | None:
        output = await self._runner.run("netsh", "wlan", "show", "interfaces")
        return self.parse_interfaces(output)

    def parse_interfaces(self, output: str) -> WiFiNetwork | None:
        for block in _key_values(output):
            ssid = block.get("SSID")
            if not ssid or block.get("State", "").lower() != "connected":
                continue
            signal = parse_int(block.get("Signal", "").rstrip("%"), 50)
            security = infer_security(f"{block.get('Authentication', '')} {block.get('Cipher', '')}")
            return self.associated(ssid, block.get("BSSID"), security, signal)
        return None

    async def get_saved_networks(self) -> list[WiFiNetwork]:
        output = await self._runner.run("netsh", "wlan", "show", "profiles")
        networks: list[WiFiNetwork] = []
        for name in self.parse_profile_names(output):
            security = SecurityType.UNKNOWN
            try:
                detail = await self._runner.run("netsh", "wlan", "show", "profile", f"name={name}")
                auth = cipher = ""
                for block in _key_values(detail):
                    auth = block.get("Authentication", auth)
                    cipher = block.get("Cipher", cipher)
                if auth:
                    security = infer_security(f"{auth} {cipher}")
            except CommandError as e:
                logger.warning("Could not read profile %s: %s", name, e)
            networks.append(self.profile(name, security))
        return networks

    @staticmethod
    def parse_profile_names(output: str) -> list[str]:
        names = []
        for line in output.splitlines():
            match = _PROFILE_LINE.match(line)
            if match and match.group(1).strip():
                names.append(match.group(1).strip())
        return names

    async def start_scan(self) -> bool:
        try:
            await self._runner.run("netsh", "wlan", "scan")
            return True
        except CommandError as e:
            logger.error("netsh scan failed: %s", e)
            return False

    async def connect_to_network(self, ssid: str, password: str | None = None) -> bool:
        if password:
            logger.warning(
                "netsh cannot connect to %s with a password; add a profile first", ssid
            )
            return False
        try:
            await self._runner.run("netsh", "wlan", "connect", f"name={ssid}")
            return True
        except CommandError as e:
            logger.error("netsh connect to %s failed: %s", ssid, e)
            return False

    async def disconnect_from_network(self) -> bool:
        try:
            await self._runner.run("netsh", "wlan", "disconnect")
            return True
        except CommandError as e:
            logger.error("netsh disconnect failed: %s", e)
            return False

    async def get_ip_address(self) -> str | None:
        try:
            output = await self._runner.run("ipconfig")
        except CommandError:
            return None
        in_wireless = False
        for line in output.splitlines():
            if line and not line[0].isspace():
                in_wireless = "Wireless" in line or "Wi-Fi" in line
                continue
            match = _IPV4_LINE.search(line)
            if in_wireless and match:
                return match.group(1)
        return None
