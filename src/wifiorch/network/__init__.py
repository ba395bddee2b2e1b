"""Network management module.

Provides:
- Platform adapters and the SystemWifiService facade
- NetworkManager for scan and connection orchestration
- CredentialStore for encrypted passwords
- WifiSimulator for hosts without WiFi tooling
"""

from .adapters import PlatformAdapter, create_adapter, detect_platform
from .connectivity import ConnectivityChecker
from .credentials import CredentialStore
from .manager import NetworkManager
from .models import (
    ConnectionStatus,
    NetworkFilter,
    NetworkSettings,
    ScanState,
    SecurityType,
    WiFiNetwork,
)
from .simulator import WifiSimulator
from .system import SystemWifiService

__all__ = [
    "PlatformAdapter",
    "create_adapter",
    "detect_platform",
    "ConnectivityChecker",
    "CredentialStore",
    "NetworkManager",
    "ConnectionStatus",
    "NetworkFilter",
    "NetworkSettings",
    "ScanState",
    "SecurityType",
    "WiFiNetwork",
    "WifiSimulator",
    "SystemWifiService",
]
