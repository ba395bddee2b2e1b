"""
Unit tests for the shared parsing helpers and the network data model.
"""

import pytest

from wifiorch.network.models import (
    NetworkFilter,
    NetworkSettings,
    SecurityType,
    WiFiNetwork,
    is_mac,
    normalize_bssid,
)
from wifiorch.network.parsing import (
    infer_security,
    quality_to_percent,
    rssi_to_percent,
    split_terse,
    synthetic_bssid,
)

# =============================================================================
# Signal Normalization
# =============================================================================


class TestSignal:
    """Test dBm and quality conversion."""

    @pytest.mark.parametrize(
        "dbm, expected",
        [(-30, 100), (-50, 100), (-51, 80), (-60, 80), (-65, 60), (-70, 60),
         (-75, 40), (-80, 40), (-85, 20), (-90, 20), (-91, 10), (-100, 10)],
    )
    def test_rssi_staircase(self, dbm, expected):
        assert rssi_to_percent(dbm) == expected

    def test_quality(self):
        assert quality_to_percent(70, 70) == 100
        assert quality_to_percent(35, 70) == 50
        assert quality_to_percent(5, 0) == 0
        assert quality_to_percent(90, 70) == 100


# =============================================================================
# Security Inference
# =============================================================================


class TestInferSecurity:
    """Most specific token wins."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("WPA2(PSK/AES/AES)", SecurityType.WPA2),
            ("WPA1 WPA2", SecurityType.WPA2),
            ("WPA2 WPA3", SecurityType.WPA3),
            ("WPA3(SAE/AES/AES)", SecurityType.WPA3),
            ("WPA2 802.1X", SecurityType.WPA2_ENTERPRISE),
            ("WPA2-Enterprise CCMP", SecurityType.WPA2_ENTERPRISE),
            ("WPA(PSK/TKIP/TKIP)", SecurityType.WPA),
            ("WEP", SecurityType.WEP),
            ("NONE", SecurityType.OPEN),
            ("--", SecurityType.OPEN),
            ("", SecurityType.OPEN),
            (None, SecurityType.OPEN),
        ],
    )
    def test_tokens(self, text, expected):
        assert infer_security(text) is expected


# =============================================================================
# Identity
# =============================================================================


class TestBssid:
    """Test BSSID normalization and placeholders."""

    @pytest.mark.parametrize(
        "raw",
        ["00:11:22:aa:bb:cc", "00-11-22-AA-BB-CC", "001122aabbcc", " 0:11:22:aa:bb:cc "],
    )
    def test_normalize(self, raw):
        assert normalize_bssid(raw) == "00:11:22:AA:BB:CC"

    def test_non_mac_is_left_alone(self):
        assert normalize_bssid(" not-a-mac ") == "NOT-A-MAC"
        assert not is_mac("NOT-A-MAC")

    def test_synthetic_is_stable_and_local(self):
        first = synthetic_bssid("Home_Network")
        assert first == synthetic_bssid("Home_Network")
        assert first != synthetic_bssid("Office_WiFi")
        assert first.startswith("02:")
        assert is_mac(first)

    def test_network_normalizes_on_construction(self):
        network = WiFiNetwork(ssid="Home", bssid="00-11-22-33-44-55", security="WPA2", signal_strength=140)
        assert network.bssid == "00:11:22:33:44:55"
        assert network.security is SecurityType.WPA2
        assert network.signal_strength == 100


class TestSplitTerse:
    """Test nmcli terse-mode splitting."""

    def test_escaped_colons(self):
        assert split_terse(r"Home:00\:11\:22\:33\:44\:55:90:WPA2") == [
            "Home",
            "00:11:22:33:44:55",
            "90",
            "WPA2",
        ]

    def test_escaped_backslash_and_empty_fields(self):
        assert split_terse(r"a\\b::c") == ["a\\b", "", "c"]


class TestSecurityType:
    """Test enum parsing."""

    @pytest.mark.parametrize("value", ["WPA2-Enterprise", "WPA2_ENTERPRISE", "wpa2-enterprise"])
    def test_parse_names_and_values(self, value):
        assert SecurityType.parse(value) is SecurityType.WPA2_ENTERPRISE

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            SecurityType.parse("WPA4")

    def test_password_requirement(self):
        assert not SecurityType.OPEN.requires_password
        assert SecurityType.UNKNOWN.requires_password
        assert SecurityType.WPA2_ENTERPRISE.is_enterprise


# =============================================================================
# Model Records
# =============================================================================


class TestRecords:
    """Test record conversion."""

    def test_to_dict_from_dict(self):
        network = WiFiNetwork(
            ssid="Office_WiFi",
            bssid="AA:BB:CC:DD:EE:FF",
            security=SecurityType.WPA2_ENTERPRISE,
            signal_strength=75,
            saved=True,
            settings=NetworkSettings(auto_connect=True, priority=2, redirect_url="https://intra"),
        )
        data = network.to_dict()

        assert data["security"] == "WPA2-Enterprise"
        assert data["settings"]["redirectUrl"] == "https://intra"
        assert WiFiNetwork.from_dict(data) == network

    def test_copy_does_not_share_settings(self):
        network = WiFiNetwork(ssid="A", bssid="00:00:00:00:00:01")
        clone = network.copy()
        clone.settings.priority = 9
        assert network.settings.priority == 0

    def test_settings_update_rejects_unknown(self):
        with pytest.raises(ValueError):
            NetworkSettings().updated(colour="blue")
        with pytest.raises(ValueError):
            NetworkSettings().updated(redirect_timeout=-5)


# =============================================================================
# Filtering
# =============================================================================


def _networks():
    return [
        WiFiNetwork("Home_Network", "00:00:00:00:00:01", SecurityType.WPA2, 90, saved=True),
        WiFiNetwork("Cafe_Guest", "00:00:00:00:00:02", SecurityType.OPEN, 40),
        WiFiNetwork("Office_WiFi", "00:00:00:00:00:03", SecurityType.WPA2_ENTERPRISE, 75),
        WiFiNetwork("Old_Profile", "00:00:00:00:00:04", SecurityType.WPA2, 0, saved=True),
    ]


class TestNetworkFilter:
    """Test listing filters."""

    def test_no_filter_keeps_order(self):
        assert [n.ssid for n in NetworkFilter().apply(_networks())] == [
            "Home_Network",
            "Cafe_Guest",
            "Office_WiFi",
            "Old_Profile",
        ]

    def test_ssid_substring_case_insensitive(self):
        assert [n.ssid for n in NetworkFilter(ssid="net").apply(_networks())] == ["Home_Network"]

    def test_security_and_signal(self):
        result = NetworkFilter(security=SecurityType.WPA2, min_signal_strength=50).apply(_networks())
        assert [n.ssid for n in result] == ["Home_Network"]

    def test_saved_and_available(self):
        result = NetworkFilter(only_saved=True, only_available=True).apply(_networks())
        assert [n.ssid for n in result] == ["Home_Network"]

    def test_sort_signal_ascending(self):
        result = NetworkFilter(sort_by="signal", sort_direction="asc").apply(_networks())
        assert [n.signal_strength for n in result] == [0, 40, 75, 90]

    def test_sort_name_descending(self):
        result = NetworkFilter(sort_by="name").apply(_networks())
        assert [n.ssid for n in result] == ["Old_Profile", "Office_WiFi", "Home_Network", "Cafe_Guest"]
