"""Network manager: scan and connection orchestration.

Provides high-level WiFi management including:
- Scan state machine with progress events
- Connection state machine with timeout, retry and backoff
- Signal monitoring and post-connect redirects
- Saved networks, credentials and runtime settings

All state lives on one ``NetworkManager`` instance and is only mutated
from the event loop it runs on.
"""

import asyncio
import logging
import re
import time
import uuid
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from ..core.config import TimingConfig, WiFiSettings
from ..core.errors import (
    AdapterUnavailableError,
    AuthenticationFailedError,
    ConfigurationError,
    ConnectionFailedError,
    ConnectionInProgressError,
    ConnectionTimeoutError,
    NetworkEnumerationError,
    PasswordRequiredError,
    PermissionDeniedError,
    ScanInProgressError,
    ScanTimeoutError,
    StorageError,
    WiFiError,
)
from ..core.events import EventBus, EventName
from ..core.logging import apply_log_settings
from ..core.retry import RetryConfig
from ..core.storage import (
    LAST_CONNECTED_KEY,
    SAVED_NETWORKS_KEY,
    SETTINGS_KEY,
    KeyValueStore,
)
from ..core.tasks import TaskSlots
from .connectivity import ConnectivityChecker
from .credentials import CredentialStore
from .models import (
    ConnectionSession,
    ConnectionStatus,
    NetworkFilter,
    NetworkSettings,
    ScanState,
    WiFiNetwork,
    normalize_bssid,
)
from .simulator import WifiSimulator
from .system import SystemWifiService

logger = logging.getLogger(__name__)

SCAN_STEPS = 10
RECOVERED_FROM = 30
RECOVERED_TO = 50
ALTERNATIVE_MIN_SIGNAL = 50
MAX_ALTERNATIVES = 3

_SETTING_NAMES = {
    **{name: name for name in WiFiSettings.model_fields},
    **{to_camel(name): name for name in WiFiSettings.model_fields},
}


class NetworkManager:
    """WiFi orchestration core.

    Drives scans and connections through ``SystemWifiService``, falls back
    to the simulator according to ``simulator.mode`` and reports every
    state change on ``events``.

    Usage:
        manager = NetworkManager(service, store, credentials)
        manager.events.subscribe("scanCompleted", on_scan)
        await manager.initialize()
        await manager.start_scan()
        await manager.wait_for_scan()
        network = manager.get_network_by_ssid("Home_Network")
        await manager.connect_to_network(network, password="secret")
    """

    def __init__(
        self,
        service: SystemWifiService,
        store: KeyValueStore,
        credentials: CredentialStore,
        simulator: WifiSimulator | None = None,
        connectivity: ConnectivityChecker | None = None,
        events: EventBus | None = None,
        timing: TimingConfig | None = None,
        defaults: WiFiSettings | None = None,
    ) -> None:
        """Initialize the manager and load persisted state.

        Args:
            service: Platform facade
            store: Record store for saved networks, settings and markers
            credentials: Encrypted password store
            simulator: Simulated radio; its config decides when it is used
            connectivity: Internet reachability probe
            events: Event channel (a new one is created if omitted)
            timing: Timer intervals
            defaults: Settings used when nothing is persisted yet
        """
        self._service = service
        self._store = store
        self._credentials = credentials
        self._simulator = simulator or WifiSimulator()
        self._connectivity = connectivity or ConnectivityChecker()
        self.events = events or EventBus()
        self._timing = timing or TimingConfig()
        self._defaults = defaults or WiFiSettings()

        self._settings = self._defaults
        self._available: dict[str, WiFiNetwork] = {}
        self._saved: dict[str, WiFiNetwork] = {}

        # Scan state
        self._scan = ScanState()
        self._scan_tasks = TaskSlots()

        # Connection state
        self._status = ConnectionStatus.DISCONNECTED
        self._session: ConnectionSession | None = None
        self._current: WiFiNetwork | None = None
        self._last_error: WiFiError | None = None

        self._initialized = False
        self._load_state()

    @property
    def simulator_mode(self) -> str:
        return self._simulator.config.mode

    @property
    def service(self) -> SystemWifiService:
        return self._service

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _load_state(self) -> None:
        """Load persisted settings and saved networks."""
        stored = self._store.get(SETTINGS_KEY) or {}
        try:
            self._settings = WiFiSettings.model_validate({**self._defaults.to_dict(), **stored})
        except ValidationError as e:
            logger.warning("Stored settings invalid, using defaults: %s", e)
            self._settings = self._defaults

        saved: dict[str, WiFiNetwork] = {}
        for record in self._store.get(SAVED_NETWORKS_KEY) or []:
            try:
                network = WiFiNetwork.from_dict(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed saved network %r: %s", record, e)
                continue
            network.saved = True
            saved[network.bssid] = network
        self._saved = saved
        logger.info("Loaded %d saved networks", len(saved))

    async def initialize(self) -> None:
        """Apply settings, scan and reconnect as configured."""
        if self._initialized:
            return
        apply_log_settings(self._settings.enable_logging, self._settings.log_level)
        logger.info("Initializing network manager (platform: %s)", self._service.platform)

        if self._settings.auto_scan_on_startup:
            try:
                await self.start_scan()
            except WiFiError as e:
                logger.warning("Startup scan failed: %s", e)

        if self._settings.auto_reconnect:
            await self._auto_reconnect()

        self._initialized = True

    async def _auto_reconnect(self) -> None:
        last = self._store.get(LAST_CONNECTED_KEY)
        if not last or "bssid" not in last:
            return
        network = self._saved.get(normalize_bssid(last["bssid"]))
        if network is None or not network.settings.auto_connect:
            return

        logger.info("Auto-reconnecting to %s", network.ssid)
        try:
            await self.connect_to_network(network, save_network=False)
        except WiFiError as e:
            logger.warning("Auto-reconnect to %s failed: %s", network.ssid, e)

    async def shutdown(self) -> None:
        """Cancel the scan driver and all session tasks."""
        await self._scan_tasks.cancel_all()
        self._scan.is_scanning = False
        if self._session is not None:
            await self._session.tasks.cancel_all()
        logger.info("Network manager shut down")

    # =========================================================================
    # Settings
    # =========================================================================

    def get_settings(self) -> WiFiSettings:
        return self._settings.model_copy()

    def update_settings(self, **changes: Any) -> WiFiSettings:
        """Validate, persist and apply settings changes.

        Args:
            **changes: Setting names (snake_case or camelCase) and values

        Returns:
            The new settings

        Raises:
            ConfigurationError: Unknown setting name or invalid value
        """
        unknown = [key for key in changes if key not in _SETTING_NAMES]
        if unknown:
            raise ConfigurationError(
                f"Unknown settings: {', '.join(sorted(unknown))}", details={"keys": unknown}
            )

        old = self._settings
        data = old.model_dump()
        data.update({_SETTING_NAMES[key]: value for key, value in changes.items()})
        try:
            new = WiFiSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError("Invalid settings", cause=e) from e

        self._settings = new
        self._store.set(SETTINGS_KEY, new.to_dict())
        apply_log_settings(new.enable_logging, new.log_level)

        self.events.emit(
            EventName.SETTINGS_UPDATED,
            {"oldSettings": old.to_dict(), "newSettings": new.to_dict()},
        )
        logger.info("Settings updated: %s", ", ".join(sorted(changes)))
        return new.model_copy()

    # =========================================================================
    # Scanning
    # =========================================================================

    async def start_scan(self) -> str:
        """Start a scan; progress and completion arrive as events.

        Returns:
            The new scan id

        Raises:
            ScanInProgressError: A scan is already running
            AdapterUnavailableError: No adapter and the simulator is off
            PermissionDeniedError: The platform refused the scan trigger
        """
        if self._scan.is_scanning:
            raise ScanInProgressError(
                "Scan already in progress", details={"scanId": self._scan.scan_id}
            )

        scan_id = f"scan_{int(time.time() * 1000)}"
        started = time.monotonic()
        self._scan = ScanState(
            is_scanning=True,
            progress=0,
            scan_id=scan_id,
            last_scan_time=self._scan.last_scan_time,
        )
        self.events.emit(EventName.SCAN_STARTED, {"scanId": scan_id})
        logger.info("Scan %s started", scan_id)

        simulated = await self._trigger_scan(scan_id, started)
        self._scan_tasks.start("scan", self._drive_scan(scan_id, simulated, started))
        return scan_id

    async def _trigger_scan(self, scan_id: str, started: float) -> bool:
        """Trigger the platform scan.

        Returns:
            True when the scan must be simulated
        """
        if self.simulator_mode == "always":
            return True

        try:
            triggered = await self._service.start_scan()
        except PermissionDeniedError as e:
            self._fail_scan(scan_id, e, started)
            raise

        if triggered:
            return False
        if self.simulator_mode == "fallback":
            logger.info("Scan trigger failed, using simulated scan")
            return True

        error = AdapterUnavailableError(
            "WiFi adapter unavailable, cannot scan",
            details={"platform": self._service.platform},
        )
        self._fail_scan(scan_id, error, started)
        raise error

    async def _drive_scan(self, scan_id: str, simulated: bool, started: float) -> None:
        timeout = self._settings.scan_timeout / 1000
        try:
            networks = await asyncio.wait_for(self._run_scan(scan_id, simulated), timeout)
        except asyncio.TimeoutError:
            self._fail_scan(
                scan_id,
                ScanTimeoutError("Scan timed out", details={"timeout": self._settings.scan_timeout}),
                started,
            )
            return
        except WiFiError as e:
            self._fail_scan(scan_id, e, started)
            return
        except Exception as e:
            logger.exception("Unexpected scan failure")
            self._fail_scan(scan_id, WiFiError(f"Scan failed: {e}", cause=e), started)
            return

        self._available = self._reconcile(networks)
        duration = int((time.monotonic() - started) * 1000)
        self._scan = ScanState(
            is_scanning=False,
            progress=100,
            scan_id=scan_id,
            last_scan_time=time.time(),
            duration=duration,
        )
        self.events.emit(
            EventName.SCAN_COMPLETED,
            {"scanId": scan_id, "networks": len(self._available), "duration": duration},
        )
        logger.info("Scan %s completed: %d networks in %dms", scan_id, len(self._available), duration)

    async def _run_scan(self, scan_id: str, simulated: bool) -> list[WiFiNetwork]:
        # The native tools report no progress, so progress is time-driven
        for step in range(1, SCAN_STEPS + 1):
            await asyncio.sleep(self._timing.scan_tick_interval)
            self._scan.progress = step * 100 // SCAN_STEPS
            self.events.emit(
                EventName.SCAN_PROGRESS,
                {"scanId": scan_id, "progress": self._scan.progress, "isScanning": True},
            )

        if simulated:
            return self._simulator.scan_networks()
        return await self._service.get_available_networks()

    def _fail_scan(self, scan_id: str, error: WiFiError, started: float) -> None:
        self._scan = ScanState(
            is_scanning=False,
            progress=self._scan.progress,
            scan_id=scan_id,
            last_scan_time=self._scan.last_scan_time,
            duration=int((time.monotonic() - started) * 1000),
            error=error.message,
        )
        self.events.emit(
            EventName.SCAN_ERROR,
            {"error": error.message, "scanId": scan_id, "code": error.code},
        )
        logger.error("Scan %s failed: %s", scan_id, error)

    async def wait_for_scan(self) -> ScanState:
        """Wait for the running scan (if any) to finish."""
        task = self._scan_tasks.get("scan")
        if task is not None:
            await asyncio.wait({task})
        return self.get_scan_state()

    def get_scan_state(self) -> ScanState:
        return ScanState(**vars(self._scan))

    def get_scan_status(self) -> dict[str, Any]:
        return {**self._scan.to_dict(), "availableNetworks": len(self._available)}

    # =========================================================================
    # Network Lists
    # =========================================================================

    def _reconcile(self, networks: list[WiFiNetwork]) -> dict[str, WiFiNetwork]:
        """Merge scan results with the saved set, keyed by bssid."""
        strongest: dict[str, WiFiNetwork] = {}
        for network in networks:
            existing = strongest.get(network.bssid)
            if existing is None or network.signal_strength > existing.signal_strength:
                strongest[network.bssid] = network

        merged = []
        for bssid, network in strongest.items():
            saved = self._saved.get(bssid)
            if saved is not None:
                merged.append(network.copy(saved=True, settings=saved.settings.updated()))
            else:
                merged.append(network.copy(saved=False))

        return {n.bssid: n for n in self._order(merged)}

    def _order(self, networks: list[WiFiNetwork]) -> list[WiFiNetwork]:
        if self._settings.prioritize_known_networks:
            return sorted(
                networks,
                key=lambda n: (not n.saved, -n.settings.priority, -n.signal_strength),
            )
        return sorted(networks, key=lambda n: -n.signal_strength)

    async def get_available_networks(
        self, filters: NetworkFilter | None = None
    ) -> list[WiFiNetwork]:
        """Networks in range, reconciled with the saved set.

        Queries the platform unless the simulator owns the radio; falls
        back to the last scan results when enumeration fails.
        """
        if self.simulator_mode != "always" and await self._service.is_available():
            try:
                networks = await self._service.get_available_networks()
            except NetworkEnumerationError as e:
                logger.warning("Using cached networks: %s", e)
            else:
                self._available = self._reconcile(networks)

        result = [n.copy() for n in self._available.values()]
        return filters.apply(result) if filters else result

    async def get_saved_networks(self, filters: NetworkFilter | None = None) -> list[WiFiNetwork]:
        """Saved networks plus OS profiles not already known by SSID."""
        result = [n.copy() for n in self._saved.values()]

        if self.simulator_mode != "always":
            try:
                profiles = await self._service.get_saved_networks()
            except NetworkEnumerationError as e:
                logger.warning("Could not read OS network profiles: %s", e)
                profiles = []
            known = {n.ssid for n in result}
            for profile in profiles:
                if profile.ssid not in known:
                    known.add(profile.ssid)
                    result.append(profile.copy(saved=True))

        return filters.apply(result) if filters else result

    def get_network_by_bssid(self, bssid: str) -> WiFiNetwork | None:
        key = normalize_bssid(bssid)
        network = self._available.get(key) or self._saved.get(key)
        return network.copy() if network else None

    def get_network_by_ssid(self, ssid: str) -> WiFiNetwork | None:
        """Strongest available network named ``ssid``, else the saved one."""
        matches = [n for n in self._available.values() if n.ssid == ssid]
        if matches:
            return max(matches, key=lambda n: n.signal_strength).copy()
        for network in self._saved.values():
            if network.ssid == ssid:
                return network.copy()
        return None

    def get_current_network(self) -> WiFiNetwork | None:
        return self._current.copy() if self._current else None

    # =========================================================================
    # Saved Networks
    # =========================================================================

    def _persist_saved(self) -> None:
        self._store.set(SAVED_NETWORKS_KEY, [n.to_dict() for n in self._saved.values()])

    def has_saved_credentials(self, network: WiFiNetwork) -> bool:
        return self._credentials.has_credentials(network.bssid)

    def save_network(self, network: WiFiNetwork, password: str | None = None) -> WiFiNetwork:
        """Add ``network`` to the saved set and store its password.

        The password is only persisted when ``secureStorage`` is enabled.

        Returns:
            The saved record
        """
        record = network.copy(saved=True)
        saved = dict(self._saved)
        saved[record.bssid] = record
        self._saved = saved
        self._persist_saved()

        if record.bssid in self._available:
            self._available[record.bssid] = self._available[record.bssid].copy(
                saved=True, settings=record.settings.updated()
            )

        if password and self._settings.secure_storage:
            self._credentials.save_credentials(record.bssid, password)

        self.events.emit(EventName.NETWORK_SAVED, {"network": record.to_dict()})
        logger.info("Saved network %s", record.ssid)
        return record.copy()

    def update_network_settings(self, network: WiFiNetwork, **changes: Any) -> WiFiNetwork:
        """Change per-network settings.

        Settings only persist through the saved set, so updating an
        unsaved network saves it.

        Raises:
            ConfigurationError: Unknown setting or invalid value
        """
        bssid = normalize_bssid(network.bssid)
        base = self._saved.get(bssid) or self._available.get(bssid) or network
        try:
            settings = base.settings.updated(**changes)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(str(e), details={"bssid": bssid}, cause=e) from e

        record = base.copy(saved=True, settings=settings)
        saved = dict(self._saved)
        saved[bssid] = record
        self._saved = saved
        self._persist_saved()

        if bssid in self._available:
            self._available[bssid] = self._available[bssid].copy(
                saved=True, settings=settings.updated()
            )
        if self._current is not None and self._current.bssid == bssid:
            self._current = self._current.copy(saved=True, settings=settings.updated())

        self.events.emit(
            EventName.NETWORK_SETTINGS_UPDATED,
            {"network": record.brief(), "settings": settings.to_dict()},
        )
        return record.copy()

    async def forget_network(self, network: WiFiNetwork) -> bool:
        """Remove a network from the saved set and the credential store.

        Disconnects first when it is the active connection. Forgetting an
        unknown network is a no-op.

        Returns:
            True if anything was removed
        """
        bssid = normalize_bssid(network.bssid)

        if self._session is not None and self._session.network.bssid == bssid:
            await self.disconnect_from_network()

        removed = bssid in self._saved
        if removed:
            self._saved = {k: v for k, v in self._saved.items() if k != bssid}
            self._persist_saved()

        if bssid in self._available:
            self._available[bssid] = self._available[bssid].copy(
                saved=False, settings=NetworkSettings()
            )

        deleted = self._credentials.delete_credentials(bssid)

        if removed or deleted:
            self.events.emit(EventName.NETWORK_FORGOTTEN, {"network": network.brief()})
            logger.info("Forgot network %s", network.ssid)
            return True
        return False

    # =========================================================================
    # Connection
    # =========================================================================

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is not self._status:
            logger.debug("Connection status %s -> %s", self._status.value, status.value)
        self._status = status

    async def connect_to_network(
        self,
        network: WiFiNetwork,
        password: str | None = None,
        save_network: bool = True,
    ) -> WiFiNetwork:
        """Connect to ``network``.

        On a retryable failure the error is raised and retries continue in
        the background, reported through ``retry*`` events.

        Args:
            network: Target network
            password: Password; stored credentials are used when omitted
            save_network: Add the network to the saved set on success

        Returns:
            The connected network

        Raises:
            ConnectionInProgressError: Another attempt is in flight
            PasswordRequiredError: Secured network without any password
            ConnectionTimeoutError: The attempt exceeded ``connectionTimeout``
            ConnectionFailedError: The platform could not associate
            AuthenticationFailedError: Enterprise authentication failed
            AdapterUnavailableError: No adapter and the simulator is off
            PermissionDeniedError: The platform refused the connect
        """
        if self._status in (ConnectionStatus.CONNECTING, ConnectionStatus.AUTHENTICATING):
            raise ConnectionInProgressError(
                "Connection attempt already in progress",
                details={"ssid": self._session.network.ssid if self._session else None},
            )

        if network.security.requires_password and not password:
            if self._settings.secure_storage and self._credentials.has_credentials(network.bssid):
                password = self._credentials.get_credentials(network.bssid)
            else:
                error = PasswordRequiredError(
                    "Password required for secured network",
                    details={"ssid": network.ssid, "bssid": network.bssid},
                )
                self._last_error = error
                self.events.emit(
                    EventName.CONNECTION_ERROR,
                    {
                        "connectionId": None,
                        "error": error.message,
                        "code": error.code,
                        "network": network.brief(),
                    },
                )
                raise error

        # Claim the attempt before the first await
        previous = self._session
        self._session = None
        self._current = None
        self._last_error = None
        self._set_status(ConnectionStatus.CONNECTING)

        try:
            # Switching networks tears down the previous session's tasks
            if previous is not None:
                await previous.tasks.cancel_all()
            simulated = await self._use_simulator()
        except asyncio.CancelledError:
            self._set_status(ConnectionStatus.DISCONNECTED)
            raise

        session = ConnectionSession(
            connection_id=f"conn_{uuid.uuid4().hex[:12]}",
            network=network.copy(),
            password=password,
            save_network=save_network,
            signal_strength=network.signal_strength,
            simulated=simulated,
        )
        self._session = session
        self.events.emit(
            EventName.CONNECTION_STARTED,
            {"connectionId": session.connection_id, "network": network.brief()},
        )
        logger.info(
            "Connecting to %s (%s)%s",
            network.ssid,
            network.bssid,
            " [simulated]" if session.simulated else "",
        )

        attempt = session.tasks.start("attempt", self._try_attempt(session, announce=True))
        try:
            error = await attempt
        except asyncio.CancelledError:
            if self._session is session:
                self._session = None
                self._set_status(ConnectionStatus.DISCONNECTED)
                raise
            # Cancelled by disconnect_from_network
            error = ConnectionFailedError(
                "Connection attempt cancelled", details={"ssid": network.ssid}
            )
            self.events.emit(
                EventName.CONNECTION_ERROR,
                {
                    "connectionId": session.connection_id,
                    "error": error.message,
                    "code": error.code,
                    "network": network.brief(),
                },
            )
            raise error from None

        if error is not None:
            self._on_attempt_failed(session, error)
            raise error
        return session.network.copy(signal_strength=session.signal_strength)

    async def _use_simulator(self) -> bool:
        mode = self.simulator_mode
        if mode == "always":
            return True
        if mode == "off":
            return False
        return not await self._service.is_available()

    async def _try_attempt(self, session: ConnectionSession, announce: bool) -> WiFiError | None:
        """Run one attempt; the error is returned instead of raised."""
        try:
            await self._attempt(session, announce)
        except WiFiError as e:
            return e
        return None

    async def _attempt(self, session: ConnectionSession, announce: bool) -> None:
        timeout_ms = self._settings.connection_timeout
        try:
            await asyncio.wait_for(self._associate(session), timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise ConnectionTimeoutError(
                "Connection timed out",
                details={"ssid": session.network.ssid, "timeout": timeout_ms},
            ) from None
        self._on_connected(session, announce)

    def _authenticating(self, session: ConnectionSession) -> None:
        if self._session is not session or self._status is not ConnectionStatus.CONNECTING:
            return
        self._set_status(ConnectionStatus.AUTHENTICATING)
        self.events.emit(
            EventName.AUTHENTICATION_STARTED,
            {"connectionId": session.connection_id, "network": session.network.brief()},
        )

    async def _associate(self, session: ConnectionSession) -> None:
        network = session.network

        if session.simulated:
            session.ip_address = await self._simulator.connect(
                network, on_authenticating=lambda: self._authenticating(session)
            )
            return

        if not await self._service.is_available():
            raise AdapterUnavailableError(
                "WiFi adapter unavailable, cannot connect",
                details={"platform": self._service.platform},
            )

        if network.security.is_enterprise:
            self._authenticating(session)

        if not await self._service.connect_to_network(network.ssid, session.password):
            error_cls = (
                AuthenticationFailedError if network.security.is_enterprise else ConnectionFailedError
            )
            raise error_cls(
                "Failed to connect to network",
                details={"ssid": network.ssid, "platform": self._service.platform},
            )

        current = await self._service.get_current_network()
        if current is not None and current.ssid == network.ssid and current.signal_strength:
            session.signal_strength = current.signal_strength
        session.ip_address = await self._service.get_ip_address()

    def _on_connected(self, session: ConnectionSession, announce: bool) -> None:
        session.connected_at = time.time()
        network = session.network.copy(signal_strength=session.signal_strength)
        self._current = network
        self._last_error = None
        self._set_status(ConnectionStatus.CONNECTED)

        connection_time = int((session.connected_at - session.start_time) * 1000)
        if announce:
            self.events.emit(
                EventName.CONNECTION_SUCCESSFUL,
                {
                    "connectionId": session.connection_id,
                    "network": network.brief(),
                    "ipAddress": session.ip_address,
                    "connectionTime": connection_time,
                },
            )
        logger.info("Connected to %s in %dms", network.ssid, connection_time)

        try:
            self._store.set(
                LAST_CONNECTED_KEY,
                {"bssid": network.bssid, "ssid": network.ssid, "timestamp": int(time.time() * 1000)},
            )
        except StorageError as e:
            logger.error("Failed to persist last connected network: %s", e)

        if session.save_network and network.bssid not in self._saved:
            try:
                self.save_network(network, session.password)
            except WiFiError as e:
                logger.error("Failed to save network %s: %s", network.ssid, e)
        elif session.password and self._settings.secure_storage:
            self._credentials.save_credentials(network.bssid, session.password)

        session.tasks.start("signal", self._monitor_signal(session))
        self._schedule_redirect(session)

    def _on_attempt_failed(self, session: ConnectionSession, error: WiFiError) -> None:
        self._last_error = error
        self._set_status(ConnectionStatus.ERROR)
        self.events.emit(
            EventName.CONNECTION_ERROR,
            {
                "connectionId": session.connection_id,
                "error": error.message,
                "code": error.code,
                "network": session.network.brief(),
            },
        )
        logger.error("Connection to %s failed: %s", session.network.ssid, error)

        if self._should_retry(error):
            session.tasks.start("retry", self._retry(session))

    def _should_retry(self, error: WiFiError) -> bool:
        return (
            error.retryable
            and self._settings.auto_reconnect
            and self._settings.max_retry_attempts > 0
        )

    def retry_policy(self) -> RetryConfig:
        """Backoff for connection retries derived from the current settings."""
        return RetryConfig(
            max_attempts=self._settings.max_retry_attempts + 1,
            base_delay=self._settings.retry_delay / 1000,
            exponential_base=1.5,
        )

    async def _retry(self, session: ConnectionSession) -> None:
        policy = self.retry_policy()
        max_retries = self._settings.max_retry_attempts

        for retry in range(1, max_retries + 1):
            delay = policy.calculate_delay(retry)
            session.retry_count = retry
            base = {
                "connectionId": session.connection_id,
                "retryCount": retry,
                "network": session.network.brief(),
            }
            self.events.emit(
                EventName.RETRY_SCHEDULED,
                {**base, "maxRetries": max_retries, "delay": round(delay * 1000)},
            )
            logger.info(
                "Retrying %s in %.1fs (%d/%d)", session.network.ssid, delay, retry, max_retries
            )
            await asyncio.sleep(delay)

            self.events.emit(EventName.RETRY_STARTED, base)
            self._set_status(ConnectionStatus.CONNECTING)
            error = await self._try_attempt(session, announce=False)

            if error is None:
                self.events.emit(
                    EventName.RETRY_SUCCESSFUL,
                    {**base, "ipAddress": session.ip_address},
                )
                return

            self._last_error = error
            self._set_status(ConnectionStatus.ERROR)
            self.events.emit(
                EventName.RETRY_FAILED, {**base, "error": error.message, "code": error.code}
            )
            if not error.retryable:
                logger.error("Giving up on %s: %s", session.network.ssid, error)
                return

        self.events.emit(
            EventName.MAX_RETRIES_REACHED,
            {
                "connectionId": session.connection_id,
                "retryCount": session.retry_count,
                "maxRetries": max_retries,
                "network": session.network.brief(),
            },
        )
        logger.error("Max retries reached for %s", session.network.ssid)

        alternatives = self.find_alternatives(session.network)
        if alternatives:
            self.events.emit(
                EventName.ALTERNATIVE_NETWORKS_FOUND,
                {
                    "failedNetwork": session.network.brief(),
                    "alternatives": [n.to_dict() for n in alternatives],
                },
            )

    async def wait_for_retry(self) -> ConnectionStatus:
        """Wait for pending background retries of the current session."""
        session = self._session
        task = session.tasks.get("retry") if session is not None else None
        if task is not None:
            await asyncio.wait({task})
        return self._status

    def find_alternatives(self, failed: WiFiNetwork) -> list[WiFiNetwork]:
        """Available networks worth trying after ``failed`` gave up."""
        stem = re.sub(r"[-_ ]?\d+$", "", failed.ssid).lower()
        candidates = [
            n
            for n in self._available.values()
            if n.bssid != failed.bssid
            and n.signal_strength > 0
            and (
                (stem and n.ssid.lower().startswith(stem))
                or (n.security is failed.security and n.signal_strength > ALTERNATIVE_MIN_SIGNAL)
            )
        ]
        candidates.sort(key=lambda n: n.signal_strength, reverse=True)
        return [n.copy() for n in candidates[:MAX_ALTERNATIVES]]

    async def disconnect_from_network(self) -> bool:
        """Disconnect and cancel every pending session task.

        Returns:
            False if there was nothing to disconnect
        """
        session = self._session
        if session is None:
            logger.warning("No active connection to disconnect")
            return False

        was_connected = self._status is ConnectionStatus.CONNECTED
        network = self._current or session.network

        self._session = None
        await session.tasks.cancel_all()

        if was_connected and not session.simulated:
            if not await self._service.disconnect_from_network():
                logger.warning("Platform disconnect from %s reported failure", network.ssid)

        self._current = None
        self._last_error = None
        self._set_status(ConnectionStatus.DISCONNECTED)
        self.events.emit(EventName.DISCONNECTED, {"network": network.brief()})
        logger.info("Disconnected from %s", network.ssid)
        return True

    def get_connection_status(self) -> dict[str, Any]:
        session = self._session
        duration = None
        if session is not None and session.connected_at and self._status is ConnectionStatus.CONNECTED:
            duration = int((time.time() - session.connected_at) * 1000)
        return {
            "status": self._status.value,
            "currentNetwork": self._current.to_dict() if self._current else None,
            "error": self._last_error.message if self._last_error else None,
            "errorCode": self._last_error.code if self._last_error else None,
            "connectionId": session.connection_id if session else None,
            "signalStrength": session.signal_strength if session else 0,
            "ipAddress": session.ip_address if session else None,
            "duration": duration,
            "retryCount": session.retry_count if session else 0,
            "canRetry": bool(
                session is not None
                and self._status is ConnectionStatus.ERROR
                and self._last_error is not None
                and self._last_error.retryable
            ),
            "simulated": session.simulated if session else False,
        }

    # =========================================================================
    # Signal Monitoring and Redirects
    # =========================================================================

    async def _monitor_signal(self, session: ConnectionSession) -> None:
        while True:
            await asyncio.sleep(self._timing.signal_monitor_interval)
            if self._session is not session or self._status is not ConnectionStatus.CONNECTED:
                return

            strength = None
            if not session.simulated:
                current = await self._service.get_current_network()
                if current is not None and current.ssid == session.network.ssid:
                    strength = current.signal_strength
            if strength is None:
                strength = self._simulator.perturb_signal(session.signal_strength)

            self.update_signal(session, strength)

    def update_signal(self, session: ConnectionSession, strength: int) -> bool:
        """Record a new signal reading for ``session``.

        Readings within the noise threshold are ignored.

        Returns:
            True if the reading was recorded and reported
        """
        previous = session.signal_strength
        if abs(strength - previous) <= self._timing.signal_noise_threshold:
            return False

        session.signal_strength = strength
        network = session.network.brief()
        if self._current is not None and self._current.bssid == session.network.bssid:
            self._current.signal_strength = strength
        if session.network.bssid in self._available:
            self._available[session.network.bssid].signal_strength = strength

        self.events.emit(
            EventName.SIGNAL_STRENGTH_UPDATE,
            {
                "network": network,
                "signalStrength": strength,
                "previousStrength": previous,
                "timestamp": int(time.time() * 1000),
            },
        )
        if strength < self._timing.weak_signal_threshold:
            logger.warning("Weak signal on %s: %d%%", session.network.ssid, strength)
            self.events.emit(
                EventName.WEAK_SIGNAL, {"network": network, "signalStrength": strength}
            )
        elif previous < RECOVERED_FROM and strength > RECOVERED_TO:
            self.events.emit(
                EventName.SIGNAL_RECOVERED,
                {"network": network, "signalStrength": strength, "previousStrength": previous},
            )
        return True

    def _schedule_redirect(self, session: ConnectionSession) -> None:
        settings = session.network.settings
        if settings.redirect_url:
            url, timeout = settings.redirect_url, settings.redirect_timeout
        elif self._settings.default_redirect_url:
            url, timeout = self._settings.default_redirect_url, self._settings.default_redirect_timeout
        else:
            return

        self.events.emit(
            EventName.REDIRECT_SCHEDULED,
            {"url": url, "timeout": timeout, "network": session.network.brief()},
        )
        session.tasks.start("redirect", self._redirect(session, url, timeout))

    async def _redirect(self, session: ConnectionSession, url: str, timeout: int) -> None:
        await asyncio.sleep(timeout / 1000)
        if self._session is session and self._status is ConnectionStatus.CONNECTED:
            logger.info("Redirecting to %s", url)
            self.events.emit(EventName.REDIRECT, {"url": url, "network": session.network.brief()})

    # =========================================================================
    # Connectivity
    # =========================================================================

    async def check_internet(self) -> bool:
        """Whether the current connection reaches the internet."""
        return await self._connectivity.check()
