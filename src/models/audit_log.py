"""Audit trail models."""
from sqlalchemy.dialects.postgresql import UUID
from src.extensions import db
from src.models.base import BaseModel
from src.models.enums import SecurityEventType


class AuditLog(BaseModel):
    """Generic before/after audit entry for administrative actions."""

    __tablename__ = "audit_log"

    actor_id = db.Column(UUID(as_uuid=True), nullable=True, index=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True, index=True)
    before = db.Column(db.JSON, nullable=True)
    after = db.Column(db.JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(action='{self.action}', entity={self.entity_type}:{self.entity_id})>"


class SecurityLogEntry(BaseModel):
    """Security log entry (lockouts, emergency codes, second factor resets)."""

    __tablename__ = "security_log"

    user_id = db.Column(UUID(as_uuid=True), nullable=True, index=True)
    admin_id = db.Column(UUID(as_uuid=True), nullable=True)
    event_type = db.Column(db.Enum(SecurityEventType), nullable=False, index=True)
    action = db.Column(db.String(100), nullable=False)
    success = db.Column(db.Boolean, nullable=False, default=True)
    failure_reason = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    details = db.Column(db.JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<SecurityLogEntry(event={self.event_type}, user_id={self.user_id})>"
