"""User repository implementation."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from src.repositories.base import BaseRepository
from src.models import User
from src.models.enums import UserRole


class UserRepository(BaseRepository[User]):
    """Repository for User entity operations."""

    def __init__(self, session):
        super().__init__(session=session, model=User)

    def find_by_email(self, email: str) -> Optional[User]:
        """Find user by email address (case-insensitive)."""
        return (
            self._session.query(User)
            .filter(User.email == email.strip().lower())
            .first()
        )

    def find_admins(self) -> List[User]:
        """Find all administrators."""
        return self._session.query(User).filter(User.role == UserRole.ADMIN).all()

    def refresh(self, user: User) -> User:
        """Reload user state from the database."""
        self._session.refresh(user)
        return user

    def compare_and_update(
        self, user_id, expected_version: int, values: Dict[str, Any]
    ) -> bool:
        """
        Apply ``values`` only if the row still has ``expected_version``.

        The version is bumped in the same statement, so of two concurrent
        writers that read the same version exactly one succeeds.

        Args:
            user_id: UUID of the user
            expected_version: Version observed when the values were computed
            values: Column values to write

        Returns:
            True if the row was updated, False if another writer won
        """
        updates = dict(values)
        updates["version"] = User.version + 1
        updates["updated_at"] = datetime.utcnow()

        count = (
            self._session.query(User)
            .filter(User.id == user_id, User.version == expected_version)
            .update(updates, synchronize_session=False)
        )
        self._session.commit()
        return count == 1

    def count_locked(self, now: datetime) -> int:
        """Count accounts whose lock is still in force."""
        return self._session.query(User).filter(User.locked_until > now).count()

    def count_captcha_required(self) -> int:
        """Count accounts currently flagged for CAPTCHA."""
        return (
            self._session.query(User)
            .filter(User.captcha_required_since.isnot(None))
            .count()
        )
