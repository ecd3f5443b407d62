"""Repository implementations."""
from src.repositories.base import BaseRepository
from src.repositories.user_repository import UserRepository
from src.repositories.login_attempt_repository import LoginAttemptRepository
from src.repositories.security_alert_repository import SecurityAlertRepository
from src.repositories.emergency_code_repository import EmergencyCodeRepository
from src.repositories.two_factor_repository import TwoFactorRepository
from src.repositories.audit_repository import AuditLogRepository, SecurityLogRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "LoginAttemptRepository",
    "SecurityAlertRepository",
    "EmergencyCodeRepository",
    "TwoFactorRepository",
    "AuditLogRepository",
    "SecurityLogRepository",
]
