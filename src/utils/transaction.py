"""Atomic application of multi-row security state changes."""
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class TransactionContext:
    """
    Commit everything staged in the block at once, or nothing.

    The session is rolled back and the error re-raised if the block
    fails, or if the commit itself fails.

    Usage:
        with TransactionContext(session, label="second factor reset"):
            user.two_factor_enabled = False
            two_factor_repo.delete_backup_codes(user.id)
            code_repo.delete_for_user(user.id)
    """

    def __init__(self, session, label: Optional[str] = None):
        self._session = session
        self._label = label or "transaction"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self._rollback(exc_val)
            return False
        try:
            self._session.commit()
        except Exception as e:
            self._rollback(e)
            raise
        return False

    def _rollback(self, error) -> None:
        logger.error(f"{self._label} rolled back: {error}")
        self._session.rollback()
