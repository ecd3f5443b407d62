"""Login attempt ledger repository."""
from datetime import datetime
from typing import List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import func

from src.models.login_attempt import LoginAttempt
from src.repositories.base import BaseRepository
from src.services.security_errors import ImmutableRecordError
from src.utils.time_window import TimeWindow


class LoginAttemptRepository(BaseRepository[LoginAttempt]):
    """
    Append-only access to the attempt ledger.

    Records are never updated or deleted.
    """

    def __init__(self, session):
        super().__init__(session, LoginAttempt)

    def create(self, attempt: LoginAttempt) -> LoginAttempt:
        """Append an attempt record."""
        return self.save(attempt)

    def delete(self, entity: LoginAttempt) -> None:
        raise ImmutableRecordError("Login attempts are immutable")

    # --- per-account history ---

    def find_recent_successful(
        self, user_id: UUID, since: datetime, limit: int
    ) -> List[LoginAttempt]:
        """Most recent successful attempts for a user, newest first."""
        return (
            self._session.query(LoginAttempt)
            .filter(
                LoginAttempt.user_id == user_id,
                LoginAttempt.success.is_(True),
                LoginAttempt.timestamp >= since,
            )
            .order_by(LoginAttempt.timestamp.desc())
            .limit(limit)
            .all()
        )

    def find_history(
        self,
        user_id: UUID,
        limit: int = 50,
        include_successful: bool = True,
        anomalous_only: bool = False,
    ) -> List[LoginAttempt]:
        """Attempt history for a user, newest first."""
        query = self._session.query(LoginAttempt).filter(LoginAttempt.user_id == user_id)

        if not include_successful:
            query = query.filter(LoginAttempt.success.is_(False))
        if anomalous_only:
            query = query.filter(LoginAttempt.is_anomalous.is_(True))

        return query.order_by(LoginAttempt.timestamp.desc()).limit(limit).all()

    def find_devices(self, user_id: UUID, limit: int = 10) -> List[LoginAttempt]:
        """Latest successful attempt per distinct device fingerprint."""
        latest = (
            self._session.query(
                LoginAttempt.device_fingerprint,
                func.max(LoginAttempt.timestamp).label("last_used"),
            )
            .filter(
                LoginAttempt.user_id == user_id,
                LoginAttempt.success.is_(True),
                LoginAttempt.device_fingerprint.isnot(None),
            )
            .group_by(LoginAttempt.device_fingerprint)
            .subquery()
        )
        return (
            self._session.query(LoginAttempt)
            .join(
                latest,
                (LoginAttempt.device_fingerprint == latest.c.device_fingerprint)
                & (LoginAttempt.timestamp == latest.c.last_used),
            )
            .filter(LoginAttempt.user_id == user_id)
            .order_by(LoginAttempt.timestamp.desc())
            .limit(limit)
            .all()
        )

    # --- aggregate queries over a window ---

    def _in_window(self, query, window: TimeWindow):
        return query.filter(
            LoginAttempt.timestamp >= window.start,
            LoginAttempt.timestamp < window.end,
        )

    def count_in_window(
        self,
        window: TimeWindow,
        success: Optional[bool] = None,
        anomalous: Optional[bool] = None,
    ) -> int:
        """Count attempts in the window, optionally by outcome."""
        query = self._in_window(self._session.query(LoginAttempt), window)
        if success is not None:
            query = query.filter(LoginAttempt.success.is_(success))
        if anomalous is not None:
            query = query.filter(LoginAttempt.is_anomalous.is_(anomalous))
        return query.count()

    def count_by_origin(
        self, window: TimeWindow, min_count: int
    ) -> List[Tuple[str, int]]:
        """Origins with at least ``min_count`` attempts in the window."""
        count = func.count(LoginAttempt.id)
        query = (
            self._session.query(LoginAttempt.ip_address, count)
            .filter(LoginAttempt.ip_address.isnot(None))
        )
        rows = (
            self._in_window(query, window)
            .group_by(LoginAttempt.ip_address)
            .having(count >= min_count)
            .order_by(count.desc())
            .all()
        )
        return [(ip, total) for ip, total in rows]

    def countries_in_window(self, window: TimeWindow) -> Set[str]:
        """Distinct resolved countries seen in the window."""
        query = (
            self._session.query(LoginAttempt.location_country)
            .filter(LoginAttempt.location_country.isnot(None))
            .distinct()
        )
        return {row[0] for row in self._in_window(query, window).all()}

    def count_distinct_accounts(self, window: TimeWindow) -> int:
        """Number of distinct resolved accounts with attempts in the window."""
        query = self._session.query(func.count(func.distinct(LoginAttempt.user_id))).filter(
            LoginAttempt.user_id.isnot(None)
        )
        return self._in_window(query, window).scalar() or 0
