"""Domain events for the authentication defense engine."""
from src.events.domain import DomainEvent, EventResult, IEventHandler, DomainEventDispatcher
from src.events.security_events import (
    AccountLockedEvent,
    AnomalousLoginEvent,
    SecurityAlertRaisedEvent,
    EmergencyCodesIssuedEvent,
    SecondFactorResetEvent,
)

__all__ = [
    "DomainEvent",
    "EventResult",
    "IEventHandler",
    "DomainEventDispatcher",
    "AccountLockedEvent",
    "AnomalousLoginEvent",
    "SecurityAlertRaisedEvent",
    "EmergencyCodesIssuedEvent",
    "SecondFactorResetEvent",
]
