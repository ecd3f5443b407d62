"""Security-related domain events."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from src.events.domain import DomainEvent


@dataclass
class AccountLockedEvent(DomainEvent):
    """
    Emitted when an account crosses the lockout threshold.

    Flow: LoginSecurityService emits → SecurityNotificationHandler emails the holder
    """

    name: str = field(default="security.account.locked", init=False)
    user_id: str = ""
    email: str = ""
    user_name: Optional[str] = None
    locked_until: Optional[datetime] = None
    lockout_minutes: int = 0
    failed_attempts: int = 0
    ip: Optional[str] = None


@dataclass
class AnomalousLoginEvent(DomainEvent):
    """Emitted after a successful login flagged by the risk scorer."""

    name: str = field(default="security.login.anomalous", init=False)
    user_id: str = ""
    email: str = ""
    user_name: Optional[str] = None
    ip: Optional[str] = None
    location: Optional[str] = None
    device: Optional[str] = None
    reasons: List[str] = field(default_factory=list)


@dataclass
class SecurityAlertRaisedEvent(DomainEvent):
    """
    Emitted when the aggregate monitor creates an alert.

    Handlers notify ``recipients`` and report the ids they reached in
    ``EventResult.data["notified"]``.
    """

    name: str = field(default="security.alert.raised", init=False)
    alert_id: str = ""
    alert_type: str = ""
    severity: str = ""
    title: str = ""
    description: str = ""
    recommendation: Optional[str] = None
    recipients: List[dict] = field(default_factory=list)


@dataclass
class EmergencyCodesIssuedEvent(DomainEvent):
    """Emitted after emergency codes were generated. Never carries the codes."""

    name: str = field(default="security.emergency_codes.issued", init=False)
    user_id: str = ""
    email: str = ""
    user_name: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass
class SecondFactorResetEvent(DomainEvent):
    """Emitted after an administrator cleared a user's second factor."""

    name: str = field(default="security.second_factor.reset", init=False)
    user_id: str = ""
    email: str = ""
    user_name: Optional[str] = None
    reason: str = ""
