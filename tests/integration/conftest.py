"""Integration test configuration and fixtures."""
import pytest
from datetime import datetime


@pytest.fixture
def container(app):
    return app.container


@pytest.fixture
def make_user(db_session):
    """Factory that persists a user with the given attributes."""
    from src.models import User
    from src.models.enums import UserRole

    counter = {"n": 0}

    def _make_user(email=None, role=UserRole.USER, **attrs):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            role=role,
            **attrs,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_attempts(db_session):
    """Factory that appends ledger rows directly."""
    from src.models.login_attempt import LoginAttempt

    def _make_attempts(count, success, timestamp=None, **attrs):
        timestamp = timestamp or datetime.utcnow()
        rows = [
            LoginAttempt(timestamp=timestamp, success=success, **attrs)
            for _ in range(count)
        ]
        db_session.add_all(rows)
        db_session.commit()
        return rows

    return _make_attempts
