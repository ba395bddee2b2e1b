"""Platform-agnostic facade over the selected platform adapter.

Every call is short-circuited by an availability check, and adapter
failures are normalized here so callers never see raw tool errors:
read operations degrade to empty/None, write operations to False. The
two list operations re-raise a descriptive ``NetworkEnumerationError``
so callers can tell "no networks" from "cannot enumerate".
``PermissionDeniedError`` is surfaced as-is.
"""

import logging
from typing import Any

from ..core.errors import NetworkEnumerationError, PermissionDeniedError
from ..core.process import CommandRunner
from .adapters import PlatformAdapter, create_adapter, detect_platform
from .models import WiFiNetwork

logger = logging.getLogger(__name__)


class SystemWifiService:
    """Facade over one ``PlatformAdapter``.

    Usage:
        service = SystemWifiService()
        if await service.is_available():
            networks = await service.get_available_networks()
    """

    def __init__(
        self,
        adapter: PlatformAdapter | None = None,
        platform: str | None = None,
        runner: CommandRunner | None = None,
        interface: str | None = None,
    ) -> None:
        """Select the adapter for this host.

        Args:
            adapter: Explicit adapter (tests inject fakes here)
            platform: Platform override; ignored when ``adapter`` is given
            runner: Command runner for the created adapter
            interface: WiFi interface override for the created adapter
        """
        if adapter is not None:
            self._adapter: PlatformAdapter | None = adapter
            self._platform = getattr(adapter, "name", "custom")
        else:
            self._platform = detect_platform(platform)
            self._adapter = create_adapter(self._platform, runner=runner, interface=interface)
        logger.info("Platform detected: %s", self._platform)

    @property
    def platform(self) -> str:
        return self._platform

    @property
    def adapter(self) -> PlatformAdapter | None:
        return self._adapter

    def get_platform_info(self) -> dict[str, Any]:
        return {"platform": self._platform, "isSupported": self._adapter is not None}

    async def is_available(self) -> bool:
        if self._adapter is None:
            return False
        try:
            return await self._adapter.is_available()
        except Exception as e:
            logger.error("WiFi availability check failed (%s): %s", self._platform, e)
            return False

    async def _ready(self, operation: str) -> bool:
        if self._adapter is None:
            logger.warning("Unsupported platform %s, cannot %s", self._platform, operation)
            return False
        if not await self.is_available():
            logger.warning("WiFi interface unavailable (%s), cannot %s", self._platform, operation)
            return False
        return True

    async def get_available_networks(self) -> list[WiFiNetwork]:
        """Networks in range; [] when WiFi is unavailable.

        Raises:
            NetworkEnumerationError: The adapter could not enumerate
            PermissionDeniedError: The platform refused the scan listing
        """
        if not await self._ready("list networks"):
            return []
        try:
            return await self._adapter.get_available_networks()
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error("Listing WiFi networks failed (%s): %s", self._platform, e)
            raise NetworkEnumerationError(
                f"Failed to list WiFi networks ({self._platform}): {e}",
                details={"platform": self._platform},
                cause=e,
            ) from e

    async def get_saved_networks(self) -> list[WiFiNetwork]:
        """OS-stored profiles; [] when WiFi is unavailable.

        Raises:
            NetworkEnumerationError: The adapter could not enumerate
            PermissionDeniedError: The platform refused the profile listing
        """
        if not await self._ready("list saved networks"):
            return []
        try:
            return await self._adapter.get_saved_networks()
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error("Listing saved networks failed (%s): %s", self._platform, e)
            raise NetworkEnumerationError(
                f"Failed to list saved WiFi networks ({self._platform}): {e}",
                details={"platform": self._platform},
                cause=e,
            ) from e

    async def get_current_network(self) -> WiFiNetwork | None:
        if not await self._ready("read current network"):
            return None
        try:
            return await self._adapter.get_current_network()
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error("Reading current network failed (%s): %s", self._platform, e)
            return None

    async def start_scan(self) -> bool:
        if not await self._ready("scan"):
            return False
        try:
            return await self._adapter.start_scan()
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error("Starting scan failed (%s): %s", self._platform, e)
            return False

    async def connect_to_network(self, ssid: str, password: str | None = None) -> bool:
        if not await self._ready("connect"):
            return False
        try:
            return await self._adapter.connect_to_network(ssid, password)
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error("Connecting to %s failed (%s): %s", ssid, self._platform, e)
            return False

    async def disconnect_from_network(self) -> bool:
        if not await self._ready("disconnect"):
            return False
        try:
            return await self._adapter.disconnect_from_network()
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error("Disconnecting failed (%s): %s", self._platform, e)
            return False

    async def get_ip_address(self) -> str | None:
        if self._adapter is None:
            return None
        try:
            return await self._adapter.get_ip_address()
        except Exception as e:
            logger.debug("Reading IP address failed (%s): %s", self._platform, e)
            return None
