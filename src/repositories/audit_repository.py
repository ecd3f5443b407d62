"""Audit and security log repositories."""
from typing import List, Optional
from uuid import UUID

from src.models.audit_log import AuditLog, SecurityLogEntry
from src.models.enums import SecurityEventType
from src.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for generic audit entries."""

    def __init__(self, session):
        super().__init__(session, AuditLog)

    def find_by_entity(self, entity_type: str, entity_id: str, limit: int = 50) -> List[AuditLog]:
        """Audit entries for one entity, newest first."""
        return (
            self._session.query(AuditLog)
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
            .all()
        )


class SecurityLogRepository(BaseRepository[SecurityLogEntry]):
    """Repository for security log entries."""

    def __init__(self, session):
        super().__init__(session, SecurityLogEntry)

    def find_for_user(
        self,
        user_id: UUID,
        event_type: Optional[SecurityEventType] = None,
        limit: int = 50,
    ) -> List[SecurityLogEntry]:
        """Security log entries for a user, newest first."""
        query = self._session.query(SecurityLogEntry).filter(
            SecurityLogEntry.user_id == user_id
        )
        if event_type:
            query = query.filter(SecurityLogEntry.event_type == event_type)
        return query.order_by(SecurityLogEntry.created_at.desc()).limit(limit).all()
