"""Aggregate security alert model."""
from sqlalchemy.dialects.postgresql import UUID
from src.extensions import db
from src.models.base import BaseModel
from src.models.enums import AlertType, AlertSeverity, AlertStatus


class SecurityAlert(BaseModel):
    """
    Alert raised by the aggregate monitor over a time window.

    Type-specific data (affected origins, new countries, ...) is kept in
    ``details``; the remaining columns form the envelope shared by all
    alert types.
    """

    __tablename__ = "security_alert"

    alert_type = db.Column(db.Enum(AlertType), nullable=False, index=True)
    severity = db.Column(db.Enum(AlertSeverity), nullable=False, index=True)
    status = db.Column(
        db.Enum(AlertStatus),
        nullable=False,
        default=AlertStatus.ACTIVE,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    recommendation = db.Column(db.Text, nullable=True)

    metric = db.Column(db.String(100), nullable=False)
    current_value = db.Column(db.Float, nullable=False)
    threshold = db.Column(db.Float, nullable=False)
    baseline_value = db.Column(db.Float, nullable=True)
    period_start = db.Column(db.DateTime, nullable=False)
    period_end = db.Column(db.DateTime, nullable=False)
    affected_user_count = db.Column(db.Integer, nullable=False, default=0)
    details = db.Column(db.JSON, nullable=False, default=dict)

    notification_sent = db.Column(db.Boolean, nullable=False, default=False)
    notification_sent_at = db.Column(db.DateTime, nullable=True)
    notified_admins = db.Column(db.JSON, nullable=False, default=list)

    acknowledged_at = db.Column(db.DateTime, nullable=True)
    acknowledged_by = db.Column(UUID(as_uuid=True), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    resolved_by = db.Column(UUID(as_uuid=True), nullable=True)
    resolution = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "metric": self.metric,
            "current_value": self.current_value,
            "threshold": self.threshold,
            "baseline_value": self.baseline_value,
            "period_start": self._iso(self.period_start),
            "period_end": self._iso(self.period_end),
            "affected_user_count": self.affected_user_count,
            "details": dict(self.details or {}),
            "notification_sent": self.notification_sent,
            "created_at": self._iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<SecurityAlert(type={self.alert_type}, severity={self.severity}, status={self.status})>"


class AlertSuppressionGuard(BaseModel):
    """
    One row per alert type.

    Alert creation bumps the row ``version`` with a conditional update so
    two concurrent monitors cannot both create an alert of the same type.
    """

    __tablename__ = "alert_suppression_guard"

    alert_type = db.Column(db.Enum(AlertType), nullable=False, unique=True)
    last_alert_at = db.Column(db.DateTime, nullable=True)
