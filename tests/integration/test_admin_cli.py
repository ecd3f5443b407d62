"""Integration tests for the promote-admin command."""
from src.models import User
from src.models.enums import UserRole


class TestPromoteAdminCommand:
    """Creating and promoting alert recipients."""

    def test_creates_new_admin(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["promote-admin", "Ops@Example.com"])

        assert result.exit_code == 0
        assert "Created admin: ops@example.com" in result.output
        stored = db_session.query(User).filter_by(email="ops@example.com").one()
        assert stored.role == UserRole.ADMIN

    def test_promotes_existing_user(self, app, make_user, db_session):
        # Arrange
        user = make_user(email="erin@example.com")

        # Act
        result = app.test_cli_runner().invoke(args=["promote-admin", "erin@example.com"])

        # Assert
        assert result.exit_code == 0
        assert "Updated: erin@example.com -> ADMIN" in result.output
        stored = db_session.get(User, user.id)
        db_session.refresh(stored)
        assert stored.role == UserRole.ADMIN
        assert db_session.query(User).count() == 1

    def test_existing_admin_is_left_alone(self, app, make_user):
        make_user(email="root@example.com", role=UserRole.ADMIN)

        result = app.test_cli_runner().invoke(args=["promote-admin", "root@example.com"])

        assert result.exit_code == 0
        assert "Already admin" in result.output
