"""Wiring of the engine components from an ``EngineConfig``.

The network manager is built once at process start and handed to whatever
consumes it (the CLI here, a transport layer elsewhere).
"""

import logging

from .core.config import EngineConfig
from .core.crypto import load_or_create_key
from .core.events import EventBus
from .core.process import CommandRunner
from .core.storage import KeyValueStore, YamlFileStore
from .network.connectivity import ConnectivityChecker
from .network.credentials import CredentialStore
from .network.manager import NetworkManager
from .network.simulator import WifiSimulator
from .network.system import SystemWifiService

logger = logging.getLogger(__name__)


def build_network_manager(
    config: EngineConfig,
    store: KeyValueStore | None = None,
    service: SystemWifiService | None = None,
    key: str | None = None,
    events: EventBus | None = None,
) -> NetworkManager:
    """Create a ``NetworkManager`` and its collaborators.

    Args:
        config: Engine configuration
        store: Record store (default: YAML state file from ``config.storage``)
        service: Platform facade (default: detected from the host)
        key: Credential key (default: read or created at ``config.storage.key_file``)
        events: Event channel to publish on

    Returns:
        A manager ready for ``initialize()``
    """
    if store is None:
        store = YamlFileStore(config.storage.state_file)
    if key is None:
        key = load_or_create_key(config.storage.key_file)
    if service is None:
        service = SystemWifiService(
            platform=config.platform.system,
            runner=CommandRunner(timeout=config.platform.command_timeout),
            interface=config.platform.interface,
        )

    manager = NetworkManager(
        service=service,
        store=store,
        credentials=CredentialStore(store, key),
        simulator=WifiSimulator(config.simulator),
        connectivity=ConnectivityChecker(
            endpoints=[tuple(e) for e in config.connectivity.endpoints],
            timeout=config.connectivity.timeout,
        ),
        events=events,
        timing=config.timing,
        defaults=config.defaults,
    )
    logger.debug(
        "Network manager built (platform=%s, simulator=%s)",
        service.platform,
        config.simulator.mode,
    )
    return manager
