"""Second factor artifacts cleared by an administrative reset."""
from sqlalchemy.dialects.postgresql import UUID
from src.extensions import db
from src.models.base import BaseModel


class BackupCode(BaseModel):
    """User-held one-time backup code (hashed)."""

    __tablename__ = "two_factor_backup_code"

    user_id = db.Column(
        UUID(as_uuid=True),
        db.ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_hash = db.Column(db.String(255), nullable=False)
    used_at = db.Column(db.DateTime, nullable=True)


class StepUpChallenge(BaseModel):
    """Pending step-up verification (TOTP prompt or SMS code)."""

    __tablename__ = "step_up_challenge"

    user_id = db.Column(
        UUID(as_uuid=True),
        db.ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_hash = db.Column(db.String(255), nullable=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    attempts = db.Column(db.Integer, nullable=False, default=0)
