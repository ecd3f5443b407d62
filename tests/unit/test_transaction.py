"""Tests for TransactionContext."""
import pytest
from unittest.mock import MagicMock


@pytest.fixture
def session():
    return MagicMock()


class TestTransactionContext:
    """Commit and rollback behaviour."""

    def test_clean_block_commits_once(self, session):
        from src.utils.transaction import TransactionContext

        with TransactionContext(session):
            session.commit.assert_not_called()

        session.commit.assert_called_once()
        session.rollback.assert_not_called()

    def test_failing_block_rolls_back_and_reraises(self, session):
        from src.utils.transaction import TransactionContext

        with pytest.raises(ValueError, match="delete failed"):
            with TransactionContext(session):
                raise ValueError("delete failed")

        session.rollback.assert_called_once()
        session.commit.assert_not_called()

    def test_failing_commit_rolls_back(self, session):
        from src.utils.transaction import TransactionContext

        session.commit.side_effect = RuntimeError("connection lost")

        with pytest.raises(RuntimeError):
            with TransactionContext(session):
                pass

        session.rollback.assert_called_once()

    def test_rollback_is_logged_with_label(self, session, caplog):
        from src.utils.transaction import TransactionContext

        with caplog.at_level("ERROR"):
            with pytest.raises(KeyError):
                with TransactionContext(session, label="second factor reset"):
                    raise KeyError("user")

        assert "second factor reset rolled back" in caplog.text
