"""Security notification event handler."""
import logging
from typing import Any, Dict

from src.events.domain import DomainEvent, EventResult, IEventHandler
from src.events.security_events import (
    AccountLockedEvent,
    AnomalousLoginEvent,
    EmergencyCodesIssuedEvent,
    SecondFactorResetEvent,
    SecurityAlertRaisedEvent,
)
from src.services.email_service import EmailService

logger = logging.getLogger(__name__)


def _timestamp(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


class SecurityNotificationHandler(IEventHandler):
    """
    Turns security events into emails.

    Flow:
    1. Service emits event → 2. Handler renders template → 3. EmailService sends
    """

    EVENT_TYPES = (
        AccountLockedEvent,
        AnomalousLoginEvent,
        SecurityAlertRaisedEvent,
        EmergencyCodesIssuedEvent,
        SecondFactorResetEvent,
    )

    def __init__(self, email_service: EmailService):
        self._email_service = email_service

    def can_handle(self, event: DomainEvent) -> bool:
        return isinstance(event, self.EVENT_TYPES)

    def handle(self, event: DomainEvent) -> EventResult:
        """
        Send the email(s) for the event.

        Returns:
            EventResult; for alerts ``data["notified"]`` holds the ids of
            the administrators that were reached
        """
        if isinstance(event, SecurityAlertRaisedEvent):
            return self.handle_alert_raised(event)
        if isinstance(event, AccountLockedEvent):
            return self._send_to_holder(
                event,
                "account_locked",
                {
                    "locked_until": _timestamp(event.locked_until),
                    "lockout_minutes": event.lockout_minutes,
                    "failed_attempts": event.failed_attempts,
                    "ip": event.ip,
                },
            )
        if isinstance(event, AnomalousLoginEvent):
            return self._send_to_holder(
                event,
                "unusual_login",
                {
                    "ip": event.ip,
                    "location": event.location,
                    "device": event.device,
                    "reasons": event.reasons,
                },
            )
        if isinstance(event, EmergencyCodesIssuedEvent):
            return self._send_to_holder(
                event,
                "emergency_access_issued",
                {"expires_at": _timestamp(event.expires_at)},
            )
        if isinstance(event, SecondFactorResetEvent):
            return self._send_to_holder(event, "second_factor_reset", {"reason": event.reason})
        return EventResult.error_result("Unknown event type")

    def handle_alert_raised(self, event: SecurityAlertRaisedEvent) -> EventResult:
        """Email every recipient; succeed if at least one was reached."""
        context = {
            "alert_id": event.alert_id,
            "alert_type": event.alert_type,
            "severity": event.severity,
            "title": event.title,
            "description": event.description,
            "recommendation": event.recommendation,
        }
        subject = f"{event.severity.upper()}: {event.title}"

        notified = []
        for recipient in event.recipients:
            result = self._email_service.send_template(
                to=recipient.get("email"),
                template="security_alert",
                context=dict(context, admin_name=recipient.get("name")),
                subject=subject,
            )
            if result.success:
                notified.append(recipient.get("id"))
            else:
                logger.error(
                    f"Alert {event.alert_id} not delivered to {recipient.get('email')}: {result.error}"
                )

        if not notified:
            return EventResult.error_result(
                f"Alert {event.alert_id} reached no administrator", error_type="email_failed"
            )
        return EventResult.success_result({"notified": notified})

    def _send_to_holder(self, event, template: str, context: Dict[str, Any]) -> EventResult:
        context = dict(context, email=event.email, user_name=event.user_name)
        result = self._email_service.send_template(
            to=event.email, template=template, context=context
        )
        if not result.success:
            return EventResult.error_result(result.error or "email failed", error_type="email_failed")
        return EventResult.success_result({"email_sent": template})
