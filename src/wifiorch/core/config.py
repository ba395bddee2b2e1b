"""Configuration management with Pydantic validation.

Provides type-safe configuration with:
- Pydantic models for the engine's static configuration file
- Runtime WiFi settings that are persisted through the key-value store
- YAML file persistence with atomic writes
"""

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("debug", "info", "warn", "error")


# =============================================================================
# Runtime Settings
# =============================================================================


class WiFiSettings(BaseModel):
    """Process-wide WiFi behaviour, mutated only through explicit updates.

    Durations are milliseconds. Serialized with camelCase keys so stored
    records and ``settingsUpdated`` payloads keep the wire form.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    default_redirect_url: str | None = Field(None, description="Fallback post-connect URL")
    auto_scan_on_startup: bool = Field(True, description="Scan during initialize()")
    auto_reconnect: bool = Field(True, description="Retry failed connections")
    secure_storage: bool = Field(True, description="Persist passwords encrypted")
    default_redirect_timeout: int = Field(3000, ge=0, description="Redirect delay (ms)")
    max_retry_attempts: int = Field(3, ge=0, le=20, description="Retry cap")
    retry_delay: int = Field(5000, ge=0, description="Base retry delay (ms)")
    prioritize_known_networks: bool = Field(True, description="Sort saved networks first")
    connection_timeout: int = Field(15000, gt=0, description="Connect timeout (ms)")
    scan_timeout: int = Field(30000, gt=0, description="Scan timeout (ms)")
    enable_logging: bool = Field(True, description="Enable engine logging")
    log_level: str = Field("info", description="debug, info, warn, error")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        v = v.lower()
        if v == "warning":
            v = "warn"
        if v not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return v

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys."""
        return self.model_dump(by_alias=True)


# =============================================================================
# Configuration Models
# =============================================================================


class SimulatorConfig(BaseModel):
    """Simulated scan/connect behaviour for hosts without WiFi tooling."""

    mode: Literal["off", "fallback", "always"] = Field(
        "fallback", description="When to use the simulator"
    )
    seed: int | None = Field(None, description="Random seed (None=nondeterministic)")
    failure_rate: float = Field(0.0, ge=0.0, le=1.0, description="Simulated connect failure rate")
    connect_delay: float = Field(1.0, ge=0.0, description="Simulated association time (s)")
    auth_delay: float = Field(1.5, ge=0.0, description="Simulated enterprise auth time (s)")
    random_networks: int = Field(5, ge=0, le=50, description="Extra random networks per scan")


class TimingConfig(BaseModel):
    """Timer intervals in seconds."""

    scan_tick_interval: float = Field(0.3, ge=0.0, description="Scan progress tick")
    signal_monitor_interval: float = Field(10.0, gt=0.0, description="Signal poll interval")
    signal_noise_threshold: int = Field(2, ge=0, le=100, description="Ignored signal delta")
    weak_signal_threshold: int = Field(20, ge=0, le=100, description="Weak signal cutoff")


class PlatformConfig(BaseModel):
    """Host platform overrides."""

    system: str | None = Field(None, description="Force windows, macos or linux")
    interface: str | None = Field(None, description="WiFi interface override")
    command_timeout: float = Field(30.0, gt=0.0, description="Native tool timeout (s)")


class StorageConfig(BaseModel):
    """Persistent state locations."""

    state_file: str = Field("~/.wifiorch/state.yaml", description="Key-value state file")
    key_file: str = Field("~/.wifiorch/secret.key", description="Per-installation key")


class ConnectivityConfig(BaseModel):
    """Internet reachability probe."""

    endpoints: list[tuple[str, int]] = Field(
        default_factory=lambda: [
            ("http://connectivitycheck.gstatic.com/generate_204", 204),
            ("http://www.msftconnecttest.com/connecttest.txt", 200),
            ("http://captive.apple.com/hotspot-detect.html", 200),
        ],
        description="(url, expected status) pairs",
    )
    timeout: float = Field(5.0, gt=0.0, description="Per-request timeout (s)")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Log level")
    format: str = Field("simple", description="Format: simple, structured")
    file: str | None = Field(None, description="Log file path")
    max_size_mb: int = Field(10, ge=1, description="Max log file size")
    backup_count: int = Field(3, ge=0, description="Number of backup files")


class EngineConfig(BaseModel):
    """Root configuration model."""

    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    connectivity: ConnectivityConfig = Field(default_factory=ConnectivityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    defaults: WiFiSettings = Field(default_factory=WiFiSettings)


# =============================================================================
# Configuration Manager
# =============================================================================


class ConfigManager:
    """Configuration manager with file persistence.

    Provides:
    - Pydantic validation on load/save
    - Automatic persistence to YAML

    Usage:
        config_manager = ConfigManager("/path/to/config.yaml")
        config = config_manager.get()
        config_manager.update(simulator={"mode": "always"})
    """

    def __init__(self, config_path: str | Path, create: bool = True) -> None:
        self._config_path = Path(config_path).expanduser()
        self._config: EngineConfig
        self._create = create
        self._load()

    @property
    def path(self) -> Path:
        return self._config_path

    def _load(self) -> None:
        """Load and validate configuration from file."""
        if self._config_path.exists():
            try:
                with open(self._config_path) as f:
                    data = yaml.safe_load(f) or {}
                self._config = EngineConfig.model_validate(data)
                logger.info("Loaded config from %s", self._config_path)
            except (OSError, yaml.YAMLError, ValidationError) as e:
                logger.warning("Failed to load config, using defaults: %s", e)
                self._config = EngineConfig()
        else:
            logger.info("Config file not found, using defaults")
            self._config = EngineConfig()
            if self._create:
                self._save()

    def _save(self) -> None:
        """Persist configuration to file."""
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            data = self._config.model_dump(mode="json")

            temp_path = self._config_path.with_suffix(".tmp")
            with open(temp_path, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            temp_path.replace(self._config_path)

            logger.debug("Saved config to %s", self._config_path)
        except OSError as e:
            logger.error("Failed to save config: %s", e)
            raise ConfigurationError(
                "Failed to save config", details={"path": str(self._config_path)}, cause=e
            ) from e

    def get(self) -> EngineConfig:
        """Get a deep copy of the current configuration."""
        return self._config.model_copy(deep=True)

    def update(self, **kwargs: Any) -> EngineConfig:
        """Update top-level config sections.

        Args:
            **kwargs: Section names and their new values

        Returns:
            The updated configuration

        Raises:
            ConfigurationError: If the result does not validate
        """
        data = self._config.model_dump()
        for key, value in kwargs.items():
            if key not in data:
                raise ConfigurationError(f"Unknown config section: {key}")
            if isinstance(value, dict):
                data[key].update(value)
            else:
                data[key] = value
        try:
            self._config = EngineConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError("Invalid configuration", cause=e) from e
        self._save()
        return self.get()
