"""Domain models package."""
from src.models.user import User
from src.models.login_attempt import LoginAttempt
from src.models.security_alert import SecurityAlert, AlertSuppressionGuard
from src.models.emergency_code import EmergencyCode
from src.models.two_factor import BackupCode, StepUpChallenge
from src.models.audit_log import AuditLog, SecurityLogEntry
from src.models.enums import (
    UserRole,
    TwoFactorMethod,
    AttemptKind,
    AnomalyReason,
    AlertType,
    AlertSeverity,
    AlertStatus,
    SecurityEventType,
)

__all__ = [
    # Models
    "User",
    "LoginAttempt",
    "SecurityAlert",
    "AlertSuppressionGuard",
    "EmergencyCode",
    "BackupCode",
    "StepUpChallenge",
    "AuditLog",
    "SecurityLogEntry",
    # Enums
    "UserRole",
    "TwoFactorMethod",
    "AttemptKind",
    "AnomalyReason",
    "AlertType",
    "AlertSeverity",
    "AlertStatus",
    "SecurityEventType",
]
