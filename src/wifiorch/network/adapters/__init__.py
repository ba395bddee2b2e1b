"""Per-OS platform adapters and the factory that picks one."""

import logging
import platform

from ...core.process import CommandRunner
from .base import PlatformAdapter
from .linux import LinuxAdapter
from .macos import MacOSAdapter
from .windows import WindowsAdapter

logger = logging.getLogger(__name__)

ADAPTERS: dict[str, type[PlatformAdapter]] = {
    "windows": WindowsAdapter,
    "macos": MacOSAdapter,
    "linux": LinuxAdapter,
}

_SYSTEM_NAMES = {
    "windows": "windows",
    "win32": "windows",
    "darwin": "macos",
    "macos": "macos",
    "linux": "linux",
}


def detect_platform(system: str | None = None) -> str:
    """Normalized platform name: windows, macos, linux or unknown."""
    raw = (system or platform.system()).strip().lower()
    return _SYSTEM_NAMES.get(raw, "unknown")


def create_adapter(
    system: str | None = None,
    runner: CommandRunner | None = None,
    interface: str | None = None,
) -> PlatformAdapter | None:
    """Instantiate the adapter for ``system`` (default: this host).

    Returns:
        The adapter, or None on an unsupported platform
    """
    name = detect_platform(system)
    adapter_cls = ADAPTERS.get(name)
    if adapter_cls is None:
        logger.warning("Unsupported platform: %s", system or platform.system())
        return None
    return adapter_cls(runner=runner, interface=interface)


__all__ = [
    "PlatformAdapter",
    "WindowsAdapter",
    "MacOSAdapter",
    "LinuxAdapter",
    "create_adapter",
    "detect_platform",
]
