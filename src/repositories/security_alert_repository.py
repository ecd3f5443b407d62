"""Security alert repository."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from src.models.enums import AlertSeverity, AlertStatus, AlertType
from src.models.security_alert import AlertSuppressionGuard, SecurityAlert
from src.repositories.base import BaseRepository


class SecurityAlertRepository(BaseRepository[SecurityAlert]):
    """Repository for aggregate security alerts."""

    def __init__(self, session):
        super().__init__(session, SecurityAlert)

    def find_active_since(
        self, alert_type: AlertType, since: datetime
    ) -> Optional[SecurityAlert]:
        """Find an active alert of the given type created at or after ``since``."""
        return (
            self._session.query(SecurityAlert)
            .filter(
                SecurityAlert.alert_type == alert_type,
                SecurityAlert.status == AlertStatus.ACTIVE,
                SecurityAlert.created_at >= since,
            )
            .first()
        )

    def _get_or_create_guard(self, alert_type: AlertType) -> AlertSuppressionGuard:
        guard = (
            self._session.query(AlertSuppressionGuard)
            .filter(AlertSuppressionGuard.alert_type == alert_type)
            .first()
        )
        if guard:
            return guard

        try:
            guard = AlertSuppressionGuard(alert_type=alert_type, version=1)
            self._session.add(guard)
            self._session.commit()
        except IntegrityError:
            # Another monitor inserted the guard row first
            self._session.rollback()
            guard = (
                self._session.query(AlertSuppressionGuard)
                .filter(AlertSuppressionGuard.alert_type == alert_type)
                .one()
            )
        return guard

    def create_unless_suppressed(
        self, alert: SecurityAlert, since: datetime
    ) -> Optional[SecurityAlert]:
        """
        Persist ``alert`` unless an active alert of its type exists since ``since``.

        The existence check and the insert are tied together by a
        conditional update of the per-type guard row, so concurrent
        callers create at most one alert.

        Args:
            alert: Unsaved alert
            since: Start of the suppression horizon

        Returns:
            The saved alert, or None if it was suppressed
        """
        guard = self._get_or_create_guard(alert.alert_type)
        observed_version = guard.version

        if self.find_active_since(alert.alert_type, since):
            self._session.rollback()
            return None

        claimed = (
            self._session.query(AlertSuppressionGuard)
            .filter(
                AlertSuppressionGuard.id == guard.id,
                AlertSuppressionGuard.version == observed_version,
            )
            .update(
                {
                    "version": AlertSuppressionGuard.version + 1,
                    "last_alert_at": datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        if claimed != 1:
            self._session.rollback()
            return None

        self._session.add(alert)
        self._session.commit()
        return alert

    def mark_notified(self, alert_id: UUID, admin_ids: List[str]) -> None:
        """Record that the admins were notified about the alert."""
        alert = self.find_by_id(alert_id)
        if alert:
            alert.notification_sent = True
            alert.notification_sent_at = datetime.utcnow()
            alert.notified_admins = list(admin_ids)
            self._session.commit()

    def find_active(
        self, severity: Optional[AlertSeverity] = None, limit: int = 50
    ) -> List[SecurityAlert]:
        """Active alerts, most severe first, then newest first."""
        query = self._session.query(SecurityAlert).filter(
            SecurityAlert.status == AlertStatus.ACTIVE
        )
        if severity:
            query = query.filter(SecurityAlert.severity == severity)

        alerts = query.order_by(SecurityAlert.created_at.desc()).all()
        # Enum columns sort by value text, so rank in Python
        alerts.sort(key=lambda a: a.severity.rank, reverse=True)
        return alerts[:limit]

    def find_history(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        alert_type: Optional[AlertType] = None,
        severity: Optional[AlertSeverity] = None,
        status: Optional[AlertStatus] = None,
        limit: int = 100,
    ) -> List[SecurityAlert]:
        """Alert history with optional filters, newest first."""
        query = self._session.query(SecurityAlert)

        if start:
            query = query.filter(SecurityAlert.created_at >= start)
        if end:
            query = query.filter(SecurityAlert.created_at <= end)
        if alert_type:
            query = query.filter(SecurityAlert.alert_type == alert_type)
        if severity:
            query = query.filter(SecurityAlert.severity == severity)
        if status:
            query = query.filter(SecurityAlert.status == status)

        return query.order_by(SecurityAlert.created_at.desc()).limit(limit).all()
