"""
Shared pytest fixtures for the WiFi orchestration engine tests.

Provides an in-memory store, a command runner with canned tool output,
a scriptable platform adapter, an event recorder and fast timing.
"""

from typing import Any

import pytest

from wifiorch.core.config import SimulatorConfig, TimingConfig, WiFiSettings
from wifiorch.core.errors import CommandError
from wifiorch.core.events import Event, EventBus
from wifiorch.core.process import CommandRunner
from wifiorch.core.storage import MemoryStore
from wifiorch.network.adapters.base import PlatformAdapter
from wifiorch.network.credentials import CredentialStore
from wifiorch.network.manager import NetworkManager
from wifiorch.network.models import SecurityType, WiFiNetwork
from wifiorch.network.simulator import WifiSimulator
from wifiorch.network.system import SystemWifiService

TEST_KEY = "0123456789abcdef" * 4


# =============================================================================
# Fakes
# =============================================================================


class FakeRunner(CommandRunner):
    """Command runner answering from a table of command prefixes."""

    def __init__(
        self,
        outputs: dict[tuple[str, ...], Any] | None = None,
        programs: set[str] | None = None,
    ) -> None:
        super().__init__(timeout=1.0)
        self.outputs = dict(outputs or {})
        self.programs = set(programs or ())
        self.calls: list[tuple[str, ...]] = []

    def which(self, program: str) -> str | None:
        if program in self.programs:
            return program if program.startswith("/") else f"/usr/bin/{program}"
        return None

    async def run(self, *cmd: str, check: bool = True, timeout: float | None = None) -> str:
        self.calls.append(cmd)
        for prefix in sorted(self.outputs, key=len, reverse=True):
            if cmd[: len(prefix)] == prefix:
                result = self.outputs[prefix]
                if isinstance(result, Exception):
                    raise result
                return result
        raise CommandError(f"{cmd[0]} failed: unexpected command", details={"args": cmd[1:]})


class FakeAdapter(PlatformAdapter):
    """Scriptable adapter; every attribute can be changed by a test."""

    name = "fake"

    def __init__(self) -> None:
        super().__init__(runner=FakeRunner())
        self.available = True
        self.networks: list[WiFiNetwork] = []
        self.saved: list[WiFiNetwork] = []
        self.current: WiFiNetwork | None = None
        self.scan_result: bool | Exception = True
        self.connect_result: bool | Exception = True
        self.ip_address: str | None = "10.0.0.42"
        self.connect_calls: list[tuple[str, str | None]] = []
        self.disconnect_calls = 0

    async def _probe(self) -> bool:
        return self.available

    @staticmethod
    def _result(value: Any) -> Any:
        if isinstance(value, Exception):
            raise value
        return value

    async def get_available_networks(self) -> list[WiFiNetwork]:
        return [n.copy() for n in self.networks]

    async def get_current_network(self) -> WiFiNetwork | None:
        return self.current.copy() if self.current else None

    async def get_saved_networks(self) -> list[WiFiNetwork]:
        return [n.copy() for n in self.saved]

    async def start_scan(self) -> bool:
        return self._result(self.scan_result)

    async def connect_to_network(self, ssid: str, password: str | None = None) -> bool:
        self.connect_calls.append((ssid, password))
        return self._result(self.connect_result)

    async def disconnect_from_network(self) -> bool:
        self.disconnect_calls += 1
        return True

    async def get_ip_address(self) -> str | None:
        return self.ip_address


class EventRecorder:
    """Collects every event emitted on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Event] = []
        bus.subscribe_all(self.events.append)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of(self, name: str) -> list[Event]:
        return [e for e in self.events if e.name == name]

    def clear(self) -> None:
        self.events.clear()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def credentials(store) -> CredentialStore:
    return CredentialStore(store, TEST_KEY)


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def service(fake_adapter) -> SystemWifiService:
    return SystemWifiService(adapter=fake_adapter)


@pytest.fixture
def fast_timing() -> TimingConfig:
    """Instant scan ticks; the signal monitor stays out of the way."""
    return TimingConfig(
        scan_tick_interval=0.0,
        signal_monitor_interval=60.0,
        signal_noise_threshold=2,
        weak_signal_threshold=20,
    )


@pytest.fixture
def fast_settings() -> WiFiSettings:
    """Settings with short retry delays and no startup work."""
    return WiFiSettings(
        auto_scan_on_startup=False,
        retry_delay=10,
        connection_timeout=2000,
        scan_timeout=2000,
        default_redirect_timeout=0,
    )


def make_manager(
    service: SystemWifiService,
    store: MemoryStore,
    credentials: CredentialStore,
    timing: TimingConfig,
    defaults: WiFiSettings,
    mode: str = "fallback",
    failure_rate: float = 0.0,
) -> NetworkManager:
    simulator = WifiSimulator(
        SimulatorConfig(
            mode=mode,
            seed=7,
            failure_rate=failure_rate,
            connect_delay=0.0,
            auth_delay=0.0,
            random_networks=2,
        )
    )
    return NetworkManager(
        service=service,
        store=store,
        credentials=credentials,
        simulator=simulator,
        events=EventBus(),
        timing=timing,
        defaults=defaults,
    )


@pytest.fixture
def manager(service, store, credentials, fast_timing, fast_settings) -> NetworkManager:
    """Manager over the fake adapter."""
    return make_manager(service, store, credentials, fast_timing, fast_settings)


@pytest.fixture
def sim_manager(service, store, credentials, fast_timing, fast_settings) -> NetworkManager:
    """Manager that always uses the simulator."""
    return make_manager(service, store, credentials, fast_timing, fast_settings, mode="always")


@pytest.fixture
def recorder(manager) -> EventRecorder:
    return EventRecorder(manager.events)


@pytest.fixture
def sim_recorder(sim_manager) -> EventRecorder:
    return EventRecorder(sim_manager.events)


@pytest.fixture
def home_network() -> WiFiNetwork:
    return WiFiNetwork(
        ssid="Home_Network",
        bssid="00:11:22:33:44:55",
        security=SecurityType.WPA2,
        signal_strength=90,
    )


@pytest.fixture
def office_network() -> WiFiNetwork:
    return WiFiNetwork(
        ssid="Office_WiFi",
        bssid="AA:BB:CC:DD:EE:FF",
        security=SecurityType.WPA2_ENTERPRISE,
        signal_strength=75,
    )
