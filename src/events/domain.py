"""Domain event primitives and dispatcher."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""

    name: str = ""
    timestamp: datetime = field(default_factory=datetime.utcnow)
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Hook for subclasses."""


@dataclass
class EventResult:
    """Outcome of handling an event."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def success_result(cls, data: Optional[Dict[str, Any]] = None) -> "EventResult":
        return cls(success=True, data=data or {})

    @classmethod
    def error_result(cls, error: str, error_type: Optional[str] = None) -> "EventResult":
        return cls(success=False, error=error, error_type=error_type)


class IEventHandler(ABC):
    """Interface for event handlers."""

    @abstractmethod
    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event."""

    @abstractmethod
    def handle(self, event: DomainEvent) -> EventResult:
        """Handle the event."""


class DomainEventDispatcher:
    """
    Synchronous in-process event dispatcher.

    Handler exceptions are logged and turned into error results; they
    never propagate to the code that emitted the event.
    """

    def __init__(self):
        self._handlers: Dict[str, List[IEventHandler]] = {}

    def register(self, event_name: str, handler: IEventHandler) -> None:
        """Register handler for an event name."""
        self._handlers.setdefault(event_name, []).append(handler)

    def has_handlers(self, event_name: str) -> bool:
        return bool(self._handlers.get(event_name))

    def emit(self, event: DomainEvent) -> EventResult:
        """
        Deliver the event to every registered handler.

        Returns:
            Success if at least one handler ran and none failed; the
            ``data`` of each successful handler is merged into the result.
        """
        handlers = self._handlers.get(event.name, [])
        if not handlers:
            logger.debug(f"No handlers registered for {event.name}")
            return EventResult.error_result(
                f"No handlers for {event.name}", error_type="no_handler"
            )

        merged: Dict[str, Any] = {}
        errors: List[str] = []

        for handler in handlers:
            if not handler.can_handle(event):
                continue
            try:
                result = handler.handle(event)
            except Exception as e:
                logger.exception(f"Handler {type(handler).__name__} failed for {event.name}")
                errors.append(str(e))
                continue

            if result.success:
                merged.update(result.data)
            else:
                errors.append(result.error or "unknown error")

        if errors:
            return EventResult(
                success=False, data=merged, error="; ".join(errors), error_type="handler_failed"
            )
        return EventResult.success_result(merged)
