"""Fire-and-forget delivery of notification events."""
import logging
from typing import Optional

from src.events.domain import DomainEvent, DomainEventDispatcher, EventResult

logger = logging.getLogger(__name__)


def notify(dispatcher: Optional[DomainEventDispatcher], event: DomainEvent) -> Optional[EventResult]:
    """
    Emit a notification event without letting failures escape.

    Args:
        dispatcher: Event dispatcher (None disables notifications)
        event: Event to deliver

    Returns:
        The dispatcher result, or None if delivery could not be attempted
    """
    if dispatcher is None:
        logger.debug(f"Notifications disabled, dropping {event.name}")
        return None

    try:
        result = dispatcher.emit(event)
    except Exception:
        logger.exception(f"Failed to deliver notification {event.name}")
        return None

    if not result.success:
        logger.error(f"Notification {event.name} not delivered: {result.error}")
    return result
