"""
Unit tests for the platform adapters.

Each adapter is driven by a FakeRunner returning captured tool output,
so parsing and command selection are tested without WiFi hardware.
"""

import pytest
from conftest import FakeRunner

from wifiorch.core.errors import CommandError, CommandTimeoutError, PermissionDeniedError
from wifiorch.network.adapters import (
    LinuxAdapter,
    MacOSAdapter,
    WindowsAdapter,
    create_adapter,
    detect_platform,
)
from wifiorch.network.adapters.macos import AIRPORT
from wifiorch.network.models import SecurityType
from wifiorch.network.parsing import synthetic_bssid

# =============================================================================
# Captured Tool Output
# =============================================================================

NETSH_NETWORKS = """
Interface name : Wi-Fi
There are 3 networks currently visible.

SSID 1 : Home_Network
    Network type            : Infrastructure
    Authentication          : WPA2-Personal
    Encryption              : CCMP
    BSSID 1                 : 00:11:22:33:44:55
         Signal             : 90%
         Radio type         : 802.11ac
    BSSID 2                 : 00:11:22:33:44:56
         Signal             : 40%

SSID 2 : Office_WiFi
    Network type            : Infrastructure
    Authentication          : WPA2-Enterprise
    Encryption              : CCMP
    BSSID 1                 : aa:bb:cc:dd:ee:ff
         Signal             : 75%

SSID 3 :
    Network type            : Infrastructure
    Authentication          : Open
    Encryption              : None
    BSSID 1                 : 12:34:56:78:9a:bc
         Signal             : 20%

SSID 4 : Cafe_Guest
    Network type            : Infrastructure
    Authentication          : Open
    Encryption              : None
    BSSID 1                 : 11:22:33:44:55:66
         Signal             : 60%
"""

NETSH_INTERFACES = """
There is 1 interface on the system:

    Name                   : Wi-Fi
    Description            : Intel(R) Wi-Fi 6 AX201 160MHz
    GUID                   : 12345678-1234-1234-1234-123456789abc
    Physical address       : 01:23:45:67:89:ab
    State                  : connected
    SSID                   : Home_Network
    BSSID                  : 00:11:22:33:44:55
    Network type           : Infrastructure
    Radio type             : 802.11ac
    Authentication         : WPA2-Personal
    Cipher                 : CCMP
    Connection mode        : Auto Connect
    Channel                : 36
    Signal                 : 88%
"""

NETSH_PROFILES = """
Profiles on interface Wi-Fi:

Group policy profiles (read only)
---------------------------------
    <None>

User profiles
-------------
    All User Profile     : Home_Network
    All User Profile     : Office_WiFi
"""

NETSH_PROFILE_DETAIL = """
Security settings
-----------------
    Authentication         : WPA2-Personal
    Cipher                 : CCMP
    Security key           : Present
"""

IPCONFIG = """
Windows IP Configuration

Ethernet adapter Ethernet:

   Media State . . . . . . . . . . . : Media disconnected

Wireless LAN adapter Wi-Fi:

   Connection-specific DNS Suffix  . : lan
   IPv4 Address. . . . . . . . . . . : 192.168.1.23
   Subnet Mask . . . . . . . . . . . : 255.255.255.0
"""

AIRPORT_SCAN = """\
                            SSID BSSID             RSSI CHANNEL HT CC SECURITY (auth/unicast/group)
                    Home_Network 00:11:22:33:44:55 -45  6       Y  US WPA2(PSK/AES/AES)
                  My Cafe WiFi 11:22:33:44:55:66 -72  11      N  -- NONE
                     Office_WiFi aa:bb:cc:dd:ee:ff -63  36,+1   Y  US WPA2(802.1x/AES/AES)
                       IoT_Network dd:ee:ff:0:11:22 -85  1       Y  US WPA3(SAE/AES/AES)
this line is garbage
"""

AIRPORT_INFO = """\
     agrCtlRSSI: -58
     agrExtRSSI: 0
          state: running
        op mode: station
     lastTxRate: 400
      link auth: wpa2-psk
          BSSID: 0:11:22:33:44:55
           SSID: Home_Network
            MCS: 9
        channel: 36,80
"""

HARDWARE_PORTS = """\
Hardware Port: Ethernet
Device: en1
Ethernet Address: aa:aa:aa:aa:aa:aa

Hardware Port: Wi-Fi
Device: en0
Ethernet Address: bb:bb:bb:bb:bb:bb
"""

PREFERRED = """\
Preferred networks on en0:
\tHome_Network
\tOffice_WiFi
"""

NMCLI_LIST = """\
Home_Network:00\\:11\\:22\\:33\\:44\\:55:90:WPA2
Office_WiFi:AA\\:BB\\:CC\\:DD\\:EE\\:FF:75:WPA2 802.1X
Cafe\\:Guest:11\\:22\\:33\\:44\\:55\\:66:60:
:22\\:33\\:44\\:55\\:66\\:77:30:WPA2
broken line
"""

NMCLI_ACTIVE = """\
no:Office_WiFi:AA\\:BB\\:CC\\:DD\\:EE\\:FF:75:WPA2 802.1X
yes:Home_Network:00\\:11\\:22\\:33\\:44\\:55:87:WPA2
"""

NMCLI_CONNECTIONS = """\
Home_Network:802-11-wireless:yes
Wired connection 1:802-3-ethernet:yes
Office_WiFi:802-11-wireless:no
"""

IWLIST_SCAN = """\
wlan0     Scan completed :
          Cell 01 - Address: 00:11:22:33:44:55
                    Channel:6
                    Quality=60/70  Signal level=-45 dBm
                    Encryption key:on
                    ESSID:"Home_Network"
                    IE: IEEE 802.11i/WPA2 Version 1
                        Authentication Suites (1) : PSK
          Cell 02 - Address: 11:22:33:44:55:66
                    Quality=35/70  Signal level=-75 dBm
                    Encryption key:off
                    ESSID:"Cafe_Guest"
          Cell 03 - Address: 22:33:44:55:66:77
                    Quality=35/70
                    Encryption key:on
                    ESSID:"Legacy"
          Cell 04 - Address: 33:44:55:66:77:88
                    Encryption key:on
                    ESSID:""
"""

IWCONFIG = """\
wlan0     IEEE 802.11  ESSID:"Home_Network"
          Mode:Managed  Frequency:2.437 GHz  Access Point: 00:11:22:33:44:55
          Link Quality=60/70  Signal level=-62 dBm
"""

SUPPLICANT_CONF = """\
ctrl_interface=DIR=/var/run/wpa_supplicant
network={
    ssid="Home_Network"
    psk="hunter22"
    priority=5
}
network={
    ssid="Corp"
    key_mgmt=WPA-EAP
    scan_ssid=1
}
network={
    ssid="Guest"
    key_mgmt=NONE
}
"""


# =============================================================================
# Platform Detection
# =============================================================================


class TestPlatformDetection:
    """Test adapter selection."""

    @pytest.mark.parametrize(
        "system, expected",
        [("Windows", "windows"), ("win32", "windows"), ("Darwin", "macos"), ("Linux", "linux"), ("FreeBSD", "unknown")],
    )
    def test_detect_platform(self, system, expected):
        assert detect_platform(system) == expected

    def test_create_adapter(self):
        assert isinstance(create_adapter("Linux"), LinuxAdapter)
        assert isinstance(create_adapter("Darwin"), MacOSAdapter)
        assert isinstance(create_adapter("Windows"), WindowsAdapter)
        assert create_adapter("FreeBSD") is None


# =============================================================================
# Windows
# =============================================================================


class TestWindowsAdapter:
    """Test the netsh adapter."""

    def test_parse_networks_one_record_per_bssid(self):
        networks = WindowsAdapter(runner=FakeRunner()).parse_networks(NETSH_NETWORKS)

        by_bssid = {n.bssid: n for n in networks}
        assert set(by_bssid) == {
            "00:11:22:33:44:55",
            "00:11:22:33:44:56",
            "AA:BB:CC:DD:EE:FF",
            "11:22:33:44:55:66",
        }
        assert by_bssid["00:11:22:33:44:55"].signal_strength == 90
        assert by_bssid["00:11:22:33:44:56"].signal_strength == 40
        assert by_bssid["00:11:22:33:44:55"].security is SecurityType.WPA2
        assert by_bssid["AA:BB:CC:DD:EE:FF"].security is SecurityType.WPA2_ENTERPRISE
        assert by_bssid["11:22:33:44:55:66"].security is SecurityType.OPEN

    def test_parse_interfaces(self):
        current = WindowsAdapter(runner=FakeRunner()).parse_interfaces(NETSH_INTERFACES)

        assert current.ssid == "Home_Network"
        assert current.bssid == "00:11:22:33:44:55"
        assert current.signal_strength == 88
        assert current.security is SecurityType.WPA2

    def test_parse_interfaces_disconnected(self):
        output = NETSH_INTERFACES.replace("connected", "disconnected")
        assert WindowsAdapter(runner=FakeRunner()).parse_interfaces(output) is None

    @pytest.mark.asyncio
    async def test_saved_networks_with_security(self):
        runner = FakeRunner(
            {
                ("netsh", "wlan", "show", "profiles"): NETSH_PROFILES,
                ("netsh", "wlan", "show", "profile", "name=Home_Network"): NETSH_PROFILE_DETAIL,
                ("netsh", "wlan", "show", "profile", "name=Office_WiFi"): CommandError("denied"),
            }
        )
        saved = await WindowsAdapter(runner=runner).get_saved_networks()

        assert [n.ssid for n in saved] == ["Home_Network", "Office_WiFi"]
        assert saved[0].security is SecurityType.WPA2
        assert saved[1].security is SecurityType.UNKNOWN
        assert all(n.saved for n in saved)
        assert saved[0].bssid == synthetic_bssid("Home_Network")

    @pytest.mark.asyncio
    async def test_connect_with_password_is_refused(self):
        runner = FakeRunner({("netsh", "wlan", "connect"): ""})
        adapter = WindowsAdapter(runner=runner)

        assert await adapter.connect_to_network("Home_Network", "hunter22") is False
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_connect_saved_profile(self):
        runner = FakeRunner({("netsh", "wlan", "connect"): "Connection request was completed successfully."})

        assert await WindowsAdapter(runner=runner).connect_to_network("Home_Network")
        assert runner.calls == [("netsh", "wlan", "connect", "name=Home_Network")]

    @pytest.mark.asyncio
    async def test_availability_fails_closed(self):
        runner = FakeRunner(
            {("netsh", "wlan", "show", "interfaces"): CommandError("service not running")},
            programs={"netsh"},
        )
        assert await WindowsAdapter(runner=runner).is_available() is False

    @pytest.mark.asyncio
    async def test_available(self):
        runner = FakeRunner({("netsh", "wlan", "show", "interfaces"): NETSH_INTERFACES}, programs={"netsh"})
        assert await WindowsAdapter(runner=runner).is_available() is True

    @pytest.mark.asyncio
    async def test_ip_address(self):
        runner = FakeRunner({("ipconfig",): IPCONFIG})
        assert await WindowsAdapter(runner=runner).get_ip_address() == "192.168.1.23"


# =============================================================================
# macOS
# =============================================================================


class TestMacOSAdapter:
    """Test the airport/networksetup adapter."""

    def test_parse_scan(self):
        networks = MacOSAdapter(runner=FakeRunner()).parse_scan(AIRPORT_SCAN)
        by_ssid = {n.ssid: n for n in networks}

        assert set(by_ssid) == {"Home_Network", "My Cafe WiFi", "Office_WiFi", "IoT_Network"}
        assert by_ssid["Home_Network"].signal_strength == 100
        assert by_ssid["My Cafe WiFi"].signal_strength == 40
        assert by_ssid["My Cafe WiFi"].security is SecurityType.OPEN
        assert by_ssid["Office_WiFi"].security is SecurityType.WPA2_ENTERPRISE
        assert by_ssid["Office_WiFi"].signal_strength == 60
        assert by_ssid["IoT_Network"].security is SecurityType.WPA3
        assert by_ssid["IoT_Network"].bssid == "DD:EE:FF:00:11:22"

    def test_parse_info(self):
        current = MacOSAdapter(runner=FakeRunner()).parse_info(AIRPORT_INFO)

        assert current.ssid == "Home_Network"
        assert current.bssid == "00:11:22:33:44:55"
        assert current.signal_strength == 80
        assert current.security is SecurityType.WPA2

    def test_parse_info_not_associated(self):
        assert MacOSAdapter(runner=FakeRunner()).parse_info("AirPort: Off") is None

    def test_parse_wifi_device(self):
        assert MacOSAdapter.parse_wifi_device(HARDWARE_PORTS) == "en0"

    @pytest.mark.asyncio
    async def test_scan_falls_back_to_preferred(self):
        runner = FakeRunner(
            {
                (AIRPORT, "-s"): CommandError("airport missing"),
                ("networksetup", "-listallhardwareports"): HARDWARE_PORTS,
                ("networksetup", "-listpreferredwirelessnetworks", "en0"): PREFERRED,
            }
        )
        networks = await MacOSAdapter(runner=runner).get_available_networks()
        assert [n.ssid for n in networks] == ["Home_Network", "Office_WiFi"]

    @pytest.mark.asyncio
    async def test_connect_reports_join_failure(self):
        runner = FakeRunner(
            {
                ("networksetup", "-listallhardwareports"): HARDWARE_PORTS,
                ("networksetup", "-setairportnetwork"): "Could not find network Home_Network.",
            }
        )
        adapter = MacOSAdapter(runner=runner)

        assert await adapter.connect_to_network("Home_Network", "hunter22") is False
        assert runner.calls[-1] == ("networksetup", "-setairportnetwork", "en0", "Home_Network", "hunter22")

    @pytest.mark.asyncio
    async def test_disconnect_power_cycles(self):
        runner = FakeRunner({("networksetup",): ""})
        adapter = MacOSAdapter(runner=runner, interface="en0", power_cycle_delay=0.0)

        assert await adapter.disconnect_from_network()
        assert runner.calls == [
            ("networksetup", "-setairportpower", "en0", "off"),
            ("networksetup", "-setairportpower", "en0", "on"),
        ]


# =============================================================================
# Linux
# =============================================================================


class TestLinuxAdapter:
    """Test the nmcli and wireless-tools adapter."""

    def test_parse_nmcli_list(self):
        networks = LinuxAdapter(runner=FakeRunner()).parse_nmcli_list(NMCLI_LIST)
        by_ssid = {n.ssid: n for n in networks}

        assert set(by_ssid) == {"Home_Network", "Office_WiFi", "Cafe:Guest"}
        assert by_ssid["Home_Network"].bssid == "00:11:22:33:44:55"
        assert by_ssid["Home_Network"].signal_strength == 90
        assert by_ssid["Office_WiFi"].security is SecurityType.WPA2_ENTERPRISE
        assert by_ssid["Cafe:Guest"].security is SecurityType.OPEN

    def test_parse_nmcli_active(self):
        current = LinuxAdapter(runner=FakeRunner()).parse_nmcli_active(NMCLI_ACTIVE)
        assert current.ssid == "Home_Network"
        assert current.signal_strength == 87

    def test_parse_nmcli_connections_only_wifi(self):
        saved = LinuxAdapter(runner=FakeRunner()).parse_nmcli_connections(NMCLI_CONNECTIONS)

        assert [n.ssid for n in saved] == ["Home_Network", "Office_WiFi"]
        assert saved[0].settings.auto_connect is True
        assert saved[1].settings.auto_connect is False

    def test_parse_iwlist(self):
        networks = LinuxAdapter(runner=FakeRunner()).parse_iwlist(IWLIST_SCAN)
        by_ssid = {n.ssid: n for n in networks}

        assert set(by_ssid) == {"Home_Network", "Cafe_Guest", "Legacy"}
        assert by_ssid["Home_Network"].signal_strength == 100
        assert by_ssid["Home_Network"].security is SecurityType.WPA2
        assert by_ssid["Cafe_Guest"].security is SecurityType.OPEN
        assert by_ssid["Cafe_Guest"].signal_strength == 40
        assert by_ssid["Legacy"].security is SecurityType.WEP
        assert by_ssid["Legacy"].signal_strength == 50

    def test_parse_iwconfig(self):
        current = LinuxAdapter(runner=FakeRunner()).parse_iwconfig(IWCONFIG)
        assert current.ssid == "Home_Network"
        assert current.bssid == "00:11:22:33:44:55"
        assert current.signal_strength == 60

    def test_parse_supplicant_conf(self):
        saved = LinuxAdapter(runner=FakeRunner()).parse_supplicant_conf(SUPPLICANT_CONF)
        by_ssid = {n.ssid: n for n in saved}

        assert by_ssid["Home_Network"].security is SecurityType.WPA2
        assert by_ssid["Home_Network"].settings.priority == 5
        assert by_ssid["Corp"].security is SecurityType.WPA2_ENTERPRISE
        assert by_ssid["Corp"].settings.hidden is True
        assert by_ssid["Guest"].security is SecurityType.OPEN

    @pytest.mark.asyncio
    async def test_probe_selects_toolset(self):
        adapter = LinuxAdapter(runner=FakeRunner(programs={"iwconfig"}))
        assert await adapter.is_available()
        assert adapter.use_nmcli is False

        assert await LinuxAdapter(runner=FakeRunner()).is_available() is False

    @pytest.mark.asyncio
    async def test_connect_with_password(self):
        runner = FakeRunner({("nmcli", "device", "wifi", "connect"): "Device 'wlan0' successfully activated"})
        adapter = LinuxAdapter(runner=runner)

        assert await adapter.connect_to_network("Home_Network", "hunter22")
        assert runner.calls == [("nmcli", "device", "wifi", "connect", "Home_Network", "password", "hunter22")]

    @pytest.mark.asyncio
    async def test_connect_known_profile_without_password(self):
        runner = FakeRunner(
            {
                ("nmcli", "-t", "-f", "NAME", "connection", "show"): "Home_Network\nWired connection 1",
                ("nmcli", "connection", "up"): "Connection successfully activated",
            }
        )
        assert await LinuxAdapter(runner=runner).connect_to_network("Home_Network")
        assert runner.calls[-1] == ("nmcli", "connection", "up", "Home_Network")

    @pytest.mark.asyncio
    async def test_connect_failure_returns_false(self):
        runner = FakeRunner({("nmcli", "device", "wifi", "connect"): CommandError("Secrets were required")})
        assert await LinuxAdapter(runner=runner).connect_to_network("Home_Network", "wrong") is False

    @pytest.mark.asyncio
    async def test_permission_denied_propagates(self):
        runner = FakeRunner({("nmcli", "device", "wifi", "rescan"): PermissionDeniedError("Not authorized")})
        with pytest.raises(PermissionDeniedError):
            await LinuxAdapter(runner=runner).start_scan()

    @pytest.mark.asyncio
    async def test_list_retries_timeouts(self, monkeypatch):
        monkeypatch.setattr("asyncio.sleep", _no_sleep)
        runner = FakeRunner()
        responses = [CommandTimeoutError("slow"), NMCLI_LIST]

        async def run(*cmd, check=True, timeout=None):
            runner.calls.append(cmd)
            result = responses.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        runner.run = run
        networks = await LinuxAdapter(runner=runner).get_available_networks()

        assert len(runner.calls) == 2
        assert len(networks) == 3

    @pytest.mark.asyncio
    async def test_wpa_cli_connect(self):
        runner = FakeRunner(
            {
                ("wpa_cli", "add_network"): "Selected interface 'wlan0'\n1",
                ("wpa_cli", "set_network"): "OK",
                ("wpa_cli", "select_network"): "OK",
            },
            programs={"iwconfig"},
        )
        adapter = LinuxAdapter(runner=runner)
        await adapter.is_available()

        assert await adapter.connect_to_network("Home_Network", "hunter22")
        assert ("wpa_cli", "set_network", "1", "psk", '"hunter22"') in runner.calls
        assert runner.calls[-1] == ("wpa_cli", "select_network", "1")

    @pytest.mark.asyncio
    async def test_saved_falls_back_to_supplicant_conf(self, tmp_path):
        conf = tmp_path / "wpa_supplicant.conf"
        conf.write_text(SUPPLICANT_CONF)
        runner = FakeRunner({("wpa_cli", "list_networks"): CommandError("no daemon")}, programs={"iwconfig"})
        adapter = LinuxAdapter(runner=runner, supplicant_confs=(tmp_path / "missing.conf", conf))
        await adapter.is_available()

        saved = await adapter.get_saved_networks()
        assert {n.ssid for n in saved} == {"Home_Network", "Corp", "Guest"}

    @pytest.mark.asyncio
    async def test_disconnect_without_active_connection(self):
        runner = FakeRunner({("nmcli", "-t", "-f", "NAME,TYPE", "connection", "show", "--active"): "Wired connection 1:802-3-ethernet"})
        assert await LinuxAdapter(runner=runner).disconnect_from_network() is False

    @pytest.mark.asyncio
    async def test_ip_address(self):
        runner = FakeRunner(
            {
                ("nmcli", "-t", "-f", "IP4.ADDRESS", "device", "show", "wlan0"): "IP4.ADDRESS[1]:192.168.1.100/24",
            }
        )
        adapter = LinuxAdapter(runner=runner, interface="wlan0")
        assert await adapter.get_ip_address() == "192.168.1.100"


async def _no_sleep(delay):
    return None
