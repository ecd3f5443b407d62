"""Emergency access code repository."""
from datetime import datetime, timedelta
from typing import List
from uuid import UUID

from src.models.emergency_code import EmergencyCode
from src.repositories.base import BaseRepository


class EmergencyCodeRepository(BaseRepository[EmergencyCode]):
    """Repository for emergency code operations."""

    def __init__(self, session):
        super().__init__(session, EmergencyCode)

    def create_batch(self, codes: List[EmergencyCode]) -> List[EmergencyCode]:
        """Persist a batch of hashed codes in one commit."""
        self._session.add_all(codes)
        self._session.commit()
        return codes

    def find_usable(self, user_id: UUID, now: datetime) -> List[EmergencyCode]:
        """Unused, unexpired codes for a user."""
        return (
            self._session.query(EmergencyCode)
            .filter(
                EmergencyCode.user_id == user_id,
                EmergencyCode.used.is_(False),
                EmergencyCode.expires_at > now,
            )
            .order_by(EmergencyCode.created_at.asc())
            .all()
        )

    def mark_used(self, code_id: UUID, now: datetime) -> bool:
        """
        Mark a code as used if nobody else has.

        Args:
            code_id: UUID of the code
            now: Redemption time

        Returns:
            True if this call consumed the code, False if it was already used
        """
        count = (
            self._session.query(EmergencyCode)
            .filter(EmergencyCode.id == code_id, EmergencyCode.used.is_(False))
            .update(
                {
                    "used": True,
                    "used_at": now,
                    "version": EmergencyCode.version + 1,
                },
                synchronize_session=False,
            )
        )
        self._session.commit()
        return count == 1

    def delete_for_user(self, user_id: UUID) -> int:
        """Stage deletion of every code of a user (no commit)."""
        return (
            self._session.query(EmergencyCode)
            .filter(EmergencyCode.user_id == user_id)
            .delete(synchronize_session=False)
        )

    def cleanup_expired(self, older_than_days: int = 7) -> int:
        """
        Delete codes expired more than ``older_than_days`` ago.

        Returns:
            Number of codes deleted
        """
        cutoff = datetime.utcnow() - timedelta(days=older_than_days)

        count = (
            self._session.query(EmergencyCode)
            .filter(EmergencyCode.expires_at < cutoff)
            .delete(synchronize_session=False)
        )

        self._session.commit()
        return count
