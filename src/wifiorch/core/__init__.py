"""Core infrastructure module.

Provides foundational components:
- Configuration management with validation
- Custom exception hierarchy
- Structured logging
- Retry backoff
- Event channel and cancellable task slots
- Native command execution, persistence and encryption
"""

from .config import ConfigManager, EngineConfig, WiFiSettings
from .errors import (
    AdapterUnavailableError,
    AuthenticationFailedError,
    CommandError,
    ConfigurationError,
    ConnectionFailedError,
    ConnectionInProgressError,
    ConnectionTimeoutError,
    CredentialsError,
    CredentialsNotFoundError,
    NetworkEnumerationError,
    PasswordRequiredError,
    PermissionDeniedError,
    ScanInProgressError,
    ScanTimeoutError,
    StorageError,
    WiFiError,
)
from .events import Event, EventBus, EventName
from .logging import apply_log_settings, get_logger, setup_logging
from .process import CommandRunner
from .retry import RetryConfig, async_retry
from .storage import KeyValueStore, MemoryStore, YamlFileStore
from .tasks import TaskSlots

__all__ = [
    # Config
    "ConfigManager",
    "EngineConfig",
    "WiFiSettings",
    # Errors
    "WiFiError",
    "AdapterUnavailableError",
    "AuthenticationFailedError",
    "CommandError",
    "ConfigurationError",
    "ConnectionFailedError",
    "ConnectionInProgressError",
    "ConnectionTimeoutError",
    "CredentialsError",
    "CredentialsNotFoundError",
    "NetworkEnumerationError",
    "PasswordRequiredError",
    "PermissionDeniedError",
    "ScanInProgressError",
    "ScanTimeoutError",
    "StorageError",
    # Events
    "Event",
    "EventBus",
    "EventName",
    # Logging
    "setup_logging",
    "apply_log_settings",
    "get_logger",
    # Process
    "CommandRunner",
    # Retry
    "RetryConfig",
    "async_retry",
    # Storage
    "KeyValueStore",
    "MemoryStore",
    "YamlFileStore",
    # Tasks
    "TaskSlots",
]
