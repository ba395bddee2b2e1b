"""Linux adapter: NetworkManager's ``nmcli`` first, wireless-tools otherwise."""

import logging
import re
from pathlib import Path

from ...core.errors import CommandError
from ...core.process import CommandRunner
from ...core.retry import COMMAND_RETRY_CONFIG, async_retry
from ..models import SecurityType, WiFiNetwork
from ..parsing import (
    infer_security,
    parse_int,
    quality_to_percent,
    rssi_to_percent,
    split_terse,
)
from .base import PlatformAdapter

logger = logging.getLogger(__name__)

WIFI_CONNECTION_TYPES = ("wifi", "802-11-wireless")
WPA_SUPPLICANT_CONFS = (
    Path("/etc/wpa_supplicant/wpa_supplicant.conf"),
    Path("/etc/wpa_supplicant.conf"),
)

_IWCONFIG_IFACE = re.compile(r"^(\S+)\s+IEEE 802\.11", re.M)
_DBM = re.compile(r"Signal level[=:]\s*(-\d+)\s*dBm")
_QUALITY = re.compile(r"Quality[=:]\s*(\d+)/(\d+)")
_PERCENT_LEVEL = re.compile(r"Signal level[=:]\s*(\d+)/100")
_IPV4 = re.compile(r"(\d+\.\d+\.\d+\.\d+)")


class LinuxAdapter(PlatformAdapter):
    """nmcli adapter with an iwlist/iwconfig/wpa_cli fallback.

    Which toolset is used is decided by ``is_available``.
    """

    name = "linux"

    def __init__(
        self,
        runner: CommandRunner | None = None,
        interface: str | None = None,
        supplicant_confs: tuple[Path, ...] = WPA_SUPPLICANT_CONFS,
    ) -> None:
        super().__init__(runner, interface)
        self._supplicant_confs = supplicant_confs
        self.use_nmcli = True

    async def _probe(self) -> bool:
        if self._runner.which("nmcli"):
            self.use_nmcli = True
            return True
        if self._runner.which("iwconfig"):
            self.use_nmcli = False
            return True
        logger.warning("Neither nmcli nor iwconfig found")
        return False

    async def _nmcli(self, *args: str, check: bool = True) -> str:
        return await self._runner.run("nmcli", *args, check=check)

    async def _wireless_interface(self) -> str:
        """First wireless interface.

        Raises:
            CommandError: No wireless interface is present
        """
        if self._interface:
            return self._interface
        if self.use_nmcli:
            output = await self._nmcli("-t", "-f", "DEVICE,TYPE", "device", "status")
            for line in output.splitlines():
                fields = split_terse(line)
                if len(fields) >= 2 and fields[1] == "wifi":
                    self._interface = fields[0]
                    return fields[0]
        else:
            # Non-wireless interfaces are reported on stderr
            output = await self._runner.run("iwconfig", check=False)
            match = _IWCONFIG_IFACE.search(output)
            if match:
                self._interface = match.group(1)
                return match.group(1)
        raise CommandError("No wireless interface found")

    # =========================================================================
    # Available networks
    # =========================================================================

    async def get_available_networks(self) -> list[WiFiNetwork]:
        if self.use_nmcli:
            output = await self._list_nmcli()
            return self.parse_nmcli_list(output)
        interface = await self._wireless_interface()
        output = await self._runner.run("iwlist", interface, "scan")
        return self.parse_iwlist(output)

    @async_retry(COMMAND_RETRY_CONFIG)
    async def _list_nmcli(self) -> str:
        return await self._nmcli(
            "-t", "-f", "SSID,BSSID,SIGNAL,SECURITY", "device", "wifi", "list"
        )

    def parse_nmcli_list(self, output: str) -> list[WiFiNetwork]:
        networks: list[WiFiNetwork] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            fields = split_terse(line)
            if len(fields) < 4 or not fields[0]:
                logger.debug("Skipping nmcli entry %r", line)
                continue
            ssid, bssid, signal, security = fields[:4]
            try:
                networks.append(
                    self.scanned(ssid, bssid, infer_security(security), parse_int(signal, 0))
                )
            except ValueError as e:
                logger.warning("Skipping malformed nmcli entry %r: %s", ssid, e)
        return networks

    def parse_iwlist(self, output: str) -> list[WiFiNetwork]:
        networks: list[WiFiNetwork] = []
        for cell in output.split("Cell ")[1:]:
            try:
                network = self._parse_cell(cell)
            except (ValueError, IndexError) as e:
                logger.warning("Skipping malformed iwlist cell: %s", e)
                continue
            if network:
                networks.append(network)
        return networks

    def _parse_cell(self, cell: str) -> WiFiNetwork | None:
        ssid_match = re.search(r'ESSID:"(.*?)"', cell)
        if not ssid_match or not ssid_match.group(1):
            return None
        address = re.search(r"Address:\s*([0-9A-Fa-f:]{11,17})", cell)

        dbm = _DBM.search(cell)
        quality = _QUALITY.search(cell)
        if dbm:
            signal = rssi_to_percent(int(dbm.group(1)))
        elif quality:
            signal = quality_to_percent(int(quality.group(1)), int(quality.group(2)))
        else:
            signal = 0

        if "Encryption key:off" in cell:
            security = SecurityType.OPEN
        else:
            tokens = [
                line.strip()
                for line in cell.splitlines()
                if "IE:" in line or "Authentication Suites" in line
            ]
            security = infer_security(" ".join(tokens))
            if security is SecurityType.OPEN:
                # Encrypted without any WPA element
                security = SecurityType.WEP

        return self.scanned(
            ssid_match.group(1),
            address.group(1) if address else None,
            security,
            signal,
        )

    # =========================================================================
    # Current network
    # =========================================================================

    async def get_current_network(self) -> WiFiNetwork | None:
        if self.use_nmcli:
            output = await self._nmcli(
                "-t", "-f", "ACTIVE,SSID,BSSID,SIGNAL,SECURITY", "device", "wifi"
            )
            return self.parse_nmcli_active(output)
        output = await self._runner.run("iwconfig", check=False)
        return self.parse_iwconfig(output)

    def parse_nmcli_active(self, output: str) -> WiFiNetwork | None:
        for line in output.splitlines():
            fields = split_terse(line)
            if len(fields) >= 5 and fields[0] == "yes" and fields[1]:
                return self.associated(
                    fields[1], fields[2], infer_security(fields[4]), parse_int(fields[3], 50)
                )
        return None

    def parse_iwconfig(self, output: str) -> WiFiNetwork | None:
        ssid_match = re.search(r'ESSID:"(.+?)"', output)
        if not ssid_match:
            return None
        ap_match = re.search(r"Access Point:\s*([0-9A-Fa-f:]{17})", output)

        signal = 50
        dbm = _DBM.search(output)
        percent = _PERCENT_LEVEL.search(output)
        if dbm:
            signal = rssi_to_percent(int(dbm.group(1)))
        elif percent:
            signal = int(percent.group(1))

        return self.associated(
            ssid_match.group(1),
            ap_match.group(1) if ap_match else None,
            SecurityType.UNKNOWN,
            signal,
        )

    # =========================================================================
    # Saved networks
    # =========================================================================

    async def get_saved_networks(self) -> list[WiFiNetwork]:
        if self.use_nmcli:
            output = await self._nmcli("-t", "-f", "NAME,TYPE,AUTOCONNECT", "connection", "show")
            return self.parse_nmcli_connections(output)
        try:
            output = await self._runner.run("wpa_cli", "list_networks")
            return self.parse_wpa_cli(output)
        except CommandError as e:
            logger.warning("wpa_cli unavailable, reading wpa_supplicant.conf: %s", e)
        for path in self._supplicant_confs:
            try:
                return self.parse_supplicant_conf(path.read_text())
            except OSError:
                continue
        raise CommandError("No wpa_cli and no readable wpa_supplicant.conf")

    def parse_nmcli_connections(self, output: str) -> list[WiFiNetwork]:
        networks: list[WiFiNetwork] = []
        for line in output.splitlines():
            fields = split_terse(line)
            if len(fields) < 3 or fields[1] not in WIFI_CONNECTION_TYPES or not fields[0]:
                continue
            networks.append(self.profile(fields[0], auto_connect=fields[2] == "yes"))
        return networks

    def parse_wpa_cli(self, output: str) -> list[WiFiNetwork]:
        networks: list[WiFiNetwork] = []
        for line in output.splitlines():
            parts = line.split("\t")
            # Header and the "Selected interface" banner are not tab separated
            if len(parts) < 2 or not parts[0].strip().isdigit() or not parts[1]:
                continue
            networks.append(self.profile(parts[1]))
        return networks

    def parse_supplicant_conf(self, text: str) -> list[WiFiNetwork]:
        networks: list[WiFiNetwork] = []
        for block in re.findall(r"network\s*=\s*\{([^}]*)\}", text):
            ssid_match = re.search(r'^\s*ssid="([^"]+)"', block, re.M)
            if not ssid_match:
                continue
            key_mgmt = re.search(r"^\s*key_mgmt=(\S+)", block, re.M)
            if key_mgmt and "WPA-EAP" in key_mgmt.group(1):
                security = SecurityType.WPA2_ENTERPRISE
            elif "psk=" in block:
                security = SecurityType.WPA2
            elif "wep_key" in block:
                security = SecurityType.WEP
            else:
                security = SecurityType.OPEN
            priority = re.search(r"^\s*priority=(\d+)", block, re.M)
            networks.append(
                self.profile(
                    ssid_match.group(1),
                    security,
                    hidden=bool(re.search(r"^\s*scan_ssid=1", block, re.M)),
                    priority=int(priority.group(1)) if priority else 0,
                )
            )
        return networks

    # =========================================================================
    # Actions
    # =========================================================================

    async def start_scan(self) -> bool:
        try:
            if self.use_nmcli:
                await self._nmcli("device", "wifi", "rescan")
            else:
                interface = await self._wireless_interface()
                await self._runner.run("iwlist", interface, "scan")
            return True
        except CommandError as e:
            logger.error("Scan trigger failed: %s", e)
            return False

    async def connect_to_network(self, ssid: str, password: str | None = None) -> bool:
        try:
            if self.use_nmcli:
                return await self._connect_nmcli(ssid, password)
            return await self._connect_wpa_cli(ssid, password)
        except CommandError as e:
            logger.error("Connection to %s failed: %s", ssid, e)
            return False

    async def _connect_nmcli(self, ssid: str, password: str | None) -> bool:
        if not password:
            names = await self._nmcli("-t", "-f", "NAME", "connection", "show")
            if ssid in [split_terse(line)[0] for line in names.splitlines()]:
                await self._nmcli("connection", "up", ssid)
                return True
            await self._nmcli("device", "wifi", "connect", ssid)
            return True
        await self._nmcli("device", "wifi", "connect", ssid, "password", password)
        return True

    async def _connect_wpa_cli(self, ssid: str, password: str | None) -> bool:
        network_id = (await self._runner.run("wpa_cli", "add_network")).splitlines()[-1].strip()
        if not network_id.isdigit():
            raise CommandError("wpa_cli add_network returned no id", details={"output": network_id})

        commands = [("set_network", network_id, "ssid", f'"{ssid}"')]
        if password:
            commands.append(("set_network", network_id, "psk", f'"{password}"'))
        else:
            commands.append(("set_network", network_id, "key_mgmt", "NONE"))
        commands.append(("select_network", network_id))

        for args in commands:
            output = await self._runner.run("wpa_cli", *args)
            if not output.strip().endswith("OK"):
                raise CommandError(f"wpa_cli {args[0]} failed", details={"output": output})
        return True

    async def disconnect_from_network(self) -> bool:
        try:
            if not self.use_nmcli:
                await self._runner.run("wpa_cli", "disconnect")
                return True
            output = await self._nmcli("-t", "-f", "NAME,TYPE", "connection", "show", "--active")
            for line in output.splitlines():
                fields = split_terse(line)
                if len(fields) >= 2 and fields[1] in WIFI_CONNECTION_TYPES:
                    await self._nmcli("connection", "down", fields[0])
                    return True
            logger.warning("No active WiFi connection to bring down")
            return False
        except CommandError as e:
            logger.error("Disconnect failed: %s", e)
            return False

    async def get_ip_address(self) -> str | None:
        try:
            interface = await self._wireless_interface()
            if self.use_nmcli:
                # Format: IP4.ADDRESS[1]:192.168.1.100/24
                output = await self._nmcli("-t", "-f", "IP4.ADDRESS", "device", "show", interface)
            else:
                output = await self._runner.run("ip", "-4", "-o", "addr", "show", "dev", interface)
        except CommandError:
            return None
        match = _IPV4.search(output)
        return match.group(1) if match else None
