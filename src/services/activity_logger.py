"""Activity logging service for the audit trail and the security log."""
import logging
from typing import Any, Dict, Optional

from src.models.audit_log import AuditLog, SecurityLogEntry
from src.models.enums import SecurityEventType
from src.utils.identifiers import parse_uuid

logger = logging.getLogger(__name__)


class ActivityLogger:
    """
    Service for logging administrative and security activity.

    Writes the generic audit log and the security log, and mirrors every
    entry to the standard logger. Callers must never pass plain-text
    secrets in ``before``/``after``/``details``.
    """

    def __init__(self, audit_repository=None, security_log_repository=None):
        """
        Initialize activity logger.

        Args:
            audit_repository: AuditLogRepository, or None to log only
            security_log_repository: SecurityLogRepository, or None to log only
        """
        self._audit_repo = audit_repository
        self._security_repo = security_log_repository

    def log(
        self,
        action: str,
        actor_id: Optional[str] = None,
        entity_type: str = "user",
        entity_id: Optional[str] = None,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """
        Record an audit entry.

        Args:
            action: Action identifier (e.g., "ACCOUNT_MANUALLY_UNLOCKED")
            actor_id: Admin or user who performed the action
            entity_type: Kind of entity acted upon
            entity_id: Identifier of the entity
            before: State before the action
            after: State after the action
        """
        logger.info(
            f"Audit: {action}",
            extra={
                "action": action,
                "actor_id": str(actor_id) if actor_id else None,
                "entity": f"{entity_type}:{entity_id}",
            },
        )

        if not self._audit_repo:
            return None

        entry = AuditLog(
            actor_id=parse_uuid(actor_id),
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id else None,
            before=before,
            after=after,
        )
        return self._audit_repo.save(entry)

    def log_security_event(
        self,
        event_type: SecurityEventType,
        action: str,
        user_id: Optional[str] = None,
        admin_id: Optional[str] = None,
        success: bool = True,
        failure_reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[SecurityLogEntry]:
        """
        Record a security log entry.

        Args:
            event_type: Type of security event
            action: Action name (e.g., "USE_EMERGENCY_CODE")
            user_id: Account the event concerns
            admin_id: Administrator involved, if any
            success: Whether the action succeeded
            failure_reason: Reason code when it did not
            ip_address: Origin of the request
            details: Additional event details
        """
        log_method = logger.info if success else logger.warning
        log_method(
            f"Security event: {event_type.value}",
            extra={
                "event_type": event_type.value,
                "user_id": str(user_id) if user_id else None,
                "admin_id": str(admin_id) if admin_id else None,
                "success": success,
                "failure_reason": failure_reason,
            },
        )

        if not self._security_repo:
            return None

        entry = SecurityLogEntry(
            user_id=parse_uuid(user_id),
            admin_id=parse_uuid(admin_id),
            event_type=event_type,
            action=action,
            success=success,
            failure_reason=failure_reason,
            ip_address=ip_address,
            details=details or {},
        )
        return self._security_repo.save(entry)
