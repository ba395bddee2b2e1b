"""Observer registry for engine lifecycle events.

Event names and payload keys are the wire contract consumed by
transport layers, so they stay camelCase.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventName:
    """Every event the network manager emits."""

    SCAN_STARTED = "scanStarted"
    SCAN_PROGRESS = "scanProgress"
    SCAN_COMPLETED = "scanCompleted"
    SCAN_ERROR = "scanError"

    CONNECTION_STARTED = "connectionStarted"
    AUTHENTICATION_STARTED = "authenticationStarted"
    CONNECTION_SUCCESSFUL = "connectionSuccessful"
    CONNECTION_ERROR = "connectionError"

    RETRY_SCHEDULED = "retryScheduled"
    RETRY_STARTED = "retryStarted"
    RETRY_SUCCESSFUL = "retrySuccessful"
    RETRY_FAILED = "retryFailed"
    MAX_RETRIES_REACHED = "maxRetriesReached"
    ALTERNATIVE_NETWORKS_FOUND = "alternativeNetworksFound"

    DISCONNECTED = "disconnected"
    NETWORK_SAVED = "networkSaved"
    NETWORK_FORGOTTEN = "networkForgotten"
    NETWORK_SETTINGS_UPDATED = "networkSettingsUpdated"

    SIGNAL_STRENGTH_UPDATE = "signalStrengthUpdate"
    WEAK_SIGNAL = "weakSignal"
    SIGNAL_RECOVERED = "signalRecovered"

    REDIRECT_SCHEDULED = "redirectScheduled"
    REDIRECT = "redirect"

    SETTINGS_UPDATED = "settingsUpdated"


@dataclass
class Event:
    """A single emitted event."""

    name: str
    payload: dict[str, Any]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.name, "data": self.payload, "timestamp": self.timestamp}


EventHandler = Callable[[Event], None]


class EventBus:
    """Synchronous publish/subscribe channel.

    Handlers run in emission order on the caller's task, so the ordering
    of emitted events is exactly the ordering observed by subscribers.
    A failing handler is logged and never breaks the emitter.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe("scanCompleted", lambda e: print(e.payload))
        bus.emit("scanCompleted", {"scanId": "scan_1", "networks": 8})
        unsubscribe()
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._wildcard: list[EventHandler] = []

    def subscribe(self, name: str, handler: EventHandler) -> Callable[[], None]:
        """Register a handler for one event name.

        Returns:
            Callable that removes the handler again
        """
        self._handlers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscribe_all(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler that receives every event."""
        self._wildcard.append(handler)

        def unsubscribe() -> None:
            if handler in self._wildcard:
                self._wildcard.remove(handler)

        return unsubscribe

    def emit(self, name: str, payload: dict[str, Any] | None = None) -> Event:
        """Deliver an event to its subscribers.

        Args:
            name: Event name (see ``EventName``)
            payload: Event data

        Returns:
            The delivered event
        """
        event = Event(name=name, payload=payload or {})
        logger.debug("Event %s %s", name, event.payload)

        for handler in [*self._handlers.get(name, []), *self._wildcard]:
            try:
                handler(event)
            except Exception as e:
                logger.error("Error in %s handler: %s", name, e)

        return event
