"""Enumeration types for models."""
import enum


class UserRole(enum.Enum):
    """User role."""

    USER = "user"
    ADMIN = "admin"


class TwoFactorMethod(enum.Enum):
    """Second factor delivery method."""

    TOTP = "totp"
    SMS = "sms"


class AttemptKind(enum.Enum):
    """Kind of authentication attempt written to the ledger."""

    LOGIN = "login"
    STEP_UP = "step_up"


class AnomalyReason(enum.Enum):
    """Named reason codes produced by the risk scorer."""

    NEW_COUNTRY = "NEW_COUNTRY"
    NEW_LOCATION = "NEW_LOCATION"
    NEW_DEVICE = "NEW_DEVICE"
    IMPOSSIBLE_TRAVEL = "IMPOSSIBLE_TRAVEL"
    SUSPICIOUS_USER_AGENT = "SUSPICIOUS_USER_AGENT"


class AlertType(enum.Enum):
    """Aggregate alert type."""

    SPIKE_FAILURES = "spike_failures"
    VELOCITY_ATTACK = "velocity_attack"
    GEOGRAPHIC_ANOMALY = "geographic_anomaly"
    SUSTAINED_ATTACK = "sustained_attack"


class AlertSeverity(enum.Enum):
    """Alert severity, ordered info < warning < critical < urgent."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AlertSeverity.INFO: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.CRITICAL: 2,
    AlertSeverity.URGENT: 3,
}


class AlertStatus(enum.Enum):
    """Alert lifecycle status."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.RESOLVED, AlertStatus.FALSE_POSITIVE)


class SecurityEventType(enum.Enum):
    """Security log event types."""

    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_MANUALLY_UNLOCKED = "ACCOUNT_MANUALLY_UNLOCKED"
    EMERGENCY_CODES_GENERATED = "EMERGENCY_CODES_GENERATED"
    EMERGENCY_CODE_USED = "EMERGENCY_CODE_USED"
    EMERGENCY_CODE_FAILED = "EMERGENCY_CODE_FAILED"
    ADMIN_2FA_RESET = "ADMIN_2FA_RESET"
