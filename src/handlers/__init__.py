"""Event handlers for domain events."""
from src.handlers.security_notification_handler import SecurityNotificationHandler

__all__ = [
    "SecurityNotificationHandler",
]
