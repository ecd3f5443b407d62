"""Second factor artifact repository."""
from uuid import UUID

from src.models.two_factor import BackupCode, StepUpChallenge
from src.repositories.base import BaseRepository


class TwoFactorRepository(BaseRepository[BackupCode]):
    """Bulk removal of backup codes and pending step-up challenges."""

    def __init__(self, session):
        super().__init__(session, BackupCode)

    def delete_backup_codes(self, user_id: UUID) -> int:
        """Stage deletion of all backup codes of a user (no commit)."""
        return (
            self._session.query(BackupCode)
            .filter(BackupCode.user_id == user_id)
            .delete(synchronize_session=False)
        )

    def delete_challenges(self, user_id: UUID) -> int:
        """Stage deletion of all pending step-up challenges (no commit)."""
        return (
            self._session.query(StepUpChallenge)
            .filter(StepUpChallenge.user_id == user_id)
            .delete(synchronize_session=False)
        )
