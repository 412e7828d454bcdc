"""
DI Diagnostics - Observability and event tracking for DI containers.
"""

import time
from typing import Any, Dict, List, Optional, Protocol
from enum import Enum
import dataclasses
import logging

logger = logging.getLogger("orderly.di.diagnostics")


class DIEventType(Enum):
    """Types of DI events."""
    REGISTRATION = "registration"
    CONSTRUCTION = "construction"
    RESOLUTION_FAILURE = "resolution_failure"
    LIFECYCLE_START = "lifecycle_start"
    LIFECYCLE_STOP = "lifecycle_stop"
    HOOK_FAILURE = "hook_failure"


@dataclasses.dataclass
class DIEvent:
    """A diagnostic event in the DI system."""
    type: DIEventType
    timestamp: float = dataclasses.field(default_factory=time.time)
    token: Optional[Any] = None
    tag: Optional[str] = None
    provider_name: Optional[str] = None
    sequence: Optional[int] = None
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)


class DiagnosticListener(Protocol):
    """Interface for DI diagnostic listeners."""
    def on_event(self, event: DIEvent) -> None:
        """Called when a DI event occurs."""
        ...


class LoggingDiagnosticListener:
    """Diagnostic listener that writes events to the diagnostics logger."""
    def __init__(self, log_level: int = logging.DEBUG):
        self.log_level = log_level

    def on_event(self, event: DIEvent) -> None:
        if event.type == DIEventType.REGISTRATION:
            logger.log(self.log_level, f"Registered provider '{event.provider_name}' for token={event.token} (tag={event.tag})")
        elif event.type == DIEventType.CONSTRUCTION:
            logger.log(self.log_level, f"Constructed '{event.provider_name}' (sequence={event.sequence})")
        elif event.type == DIEventType.RESOLUTION_FAILURE:
            logger.log(logging.ERROR, f"Failed to resolve token={event.token}: {event.error}")
        elif event.type == DIEventType.LIFECYCLE_START:
            logger.log(logging.INFO, f"Lifecycle start ({event.metadata.get('components', 0)} components)")
        elif event.type == DIEventType.LIFECYCLE_STOP:
            logger.log(logging.INFO, f"Lifecycle stop ({event.metadata.get('components', 0)} components)")
        elif event.type == DIEventType.HOOK_FAILURE:
            logger.log(logging.ERROR, f"{event.metadata.get('phase', 'lifecycle')} hook of '{event.provider_name}' failed: {event.error}")


class DIDiagnostics:
    """Coordinator for DI diagnostic listeners."""
    def __init__(self):
        self._listeners: List[DiagnosticListener] = []

    def add_listener(self, listener: DiagnosticListener) -> None:
        """Add a diagnostic listener."""
        self._listeners.append(listener)

    def remove_listener(self, listener: DiagnosticListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event_type: DIEventType, **kwargs) -> None:
        """Emit a diagnostic event to all listeners."""
        if not self._listeners:
            return
        event = DIEvent(type=event_type, **kwargs)
        for listener in self._listeners:
            try:
                listener.on_event(event)
            except Exception as e:
                # Diagnostics should never crash the main application
                logger.error(f"Diagnostic listener error: {e}")


class RecordingListener:
    """Listener that keeps every event; used by tests and debugging sessions."""
    def __init__(self):
        self.events: List[DIEvent] = []

    def on_event(self, event: DIEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: DIEventType) -> List[DIEvent]:
        return [e for e in self.events if e.type == event_type]
