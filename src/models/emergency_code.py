"""Administrator-issued emergency access code model."""
from datetime import datetime
from sqlalchemy.dialects.postgresql import UUID
from src.extensions import db
from src.models.base import BaseModel


class EmergencyCode(BaseModel):
    """
    Single-use emergency access code.

    Only the bcrypt hash is stored; the plain code is shown to the
    issuing administrator once and never persisted.
    """

    __tablename__ = "emergency_code"

    user_id = db.Column(
        UUID(as_uuid=True),
        db.ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_hash = db.Column(db.String(255), nullable=False)
    generated_by = db.Column(UUID(as_uuid=True), nullable=False)
    reason = db.Column(db.String(500), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_expired(self) -> bool:
        """Check if code has expired."""
        return self.expires_at <= datetime.utcnow()

    @property
    def is_usable(self) -> bool:
        return not self.used and not self.is_expired

    def __repr__(self) -> str:
        return f"<EmergencyCode(id={self.id}, user_id={self.user_id}, used={self.used})>"
