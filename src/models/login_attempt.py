"""Login attempt ledger model."""
from sqlalchemy.dialects.postgresql import UUID
from src.extensions import db
from src.models.base import BaseModel
from src.models.enums import AttemptKind


class LoginAttempt(BaseModel):
    """
    Append-only record of an authentication attempt.

    ``user_id`` stays empty when the identifier did not resolve to an
    account. Rows are written once and never updated.
    """

    __tablename__ = "login_attempt"

    user_id = db.Column(
        UUID(as_uuid=True),
        db.ForeignKey("user.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    identifier = db.Column(db.String(255), nullable=True, index=True)
    kind = db.Column(db.Enum(AttemptKind), nullable=False, default=AttemptKind.LOGIN)
    ip_address = db.Column(db.String(64), nullable=True, index=True)
    user_agent = db.Column(db.String(512), nullable=True)
    device_fingerprint = db.Column(db.String(255), nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, index=True)
    success = db.Column(db.Boolean, nullable=False, index=True)
    failure_reason = db.Column(db.String(100), nullable=True)
    requires_captcha = db.Column(db.Boolean, nullable=False, default=False)
    captcha_verified = db.Column(db.Boolean, nullable=True)
    location_country = db.Column(db.String(100), nullable=True, index=True)
    location_region = db.Column(db.String(100), nullable=True)
    location_city = db.Column(db.String(100), nullable=True)
    is_anomalous = db.Column(db.Boolean, nullable=False, default=False)
    anomaly_reasons = db.Column(db.JSON, nullable=False, default=list)

    @property
    def location_string(self):
        parts = [self.location_country, self.location_region, self.location_city]
        parts = [p for p in parts if p]
        return ":".join(parts) if parts else None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "user_id": str(self.user_id) if self.user_id else None,
            "kind": self.kind.value if self.kind else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "device_fingerprint": self.device_fingerprint,
            "timestamp": self._iso(self.timestamp),
            "success": self.success,
            "failure_reason": self.failure_reason,
            "requires_captcha": self.requires_captcha,
            "captcha_verified": self.captcha_verified,
            "location": self.location_string,
            "is_anomalous": self.is_anomalous,
            "anomaly_reasons": list(self.anomaly_reasons or []),
        }

    def __repr__(self) -> str:
        return f"<LoginAttempt(id={self.id}, user_id={self.user_id}, success={self.success})>"
