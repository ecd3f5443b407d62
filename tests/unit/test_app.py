"""Tests for Flask application factory."""


class TestAppFactory:
    """Test cases for create_app factory function."""

    def test_create_app_returns_flask_instance(self, app):
        """create_app should return a Flask application instance."""
        assert app is not None
        assert app.name == "src.app"

    def test_create_app_with_test_config(self, make_app):
        """create_app should accept test configuration."""
        app = make_app(DEBUG=False)

        assert app.config["TESTING"] is True
        assert app.config["DEBUG"] is False

    def test_cli_commands_registered(self, app):
        commands = app.cli.commands

        assert "run-security-checks" in commands
        assert "unlock-account" in commands
        assert "prune-emergency-codes" in commands
        assert "promote-admin" in commands


class TestContainerWiring:
    """Test cases for DI container wiring."""

    def test_app_has_container(self, app):
        """Application should have container attribute."""
        assert hasattr(app, "container")

    def test_container_receives_flask_config(self, make_app):
        app = make_app(LOGIN_LOCKOUT_THRESHOLD=4)

        with app.app_context():
            service = app.container.login_security_service()

        assert service.policy.lockout_threshold == 4

    def test_notifications_disabled_without_smtp(self, make_app):
        app = make_app(SMTP_HOST="")

        dispatcher = app.container.event_dispatcher()
        assert dispatcher.has_handlers("security.account.locked") is False

    def test_notifications_registered_with_smtp(self, make_app):
        app = make_app(
            SMTP_HOST="smtp.example.com",
            SMTP_PORT=587,
            SMTP_USER="user",
            SMTP_PASSWORD="secret",
            MAIL_FROM="security@example.com",
        )

        dispatcher = app.container.event_dispatcher()
        for name in (
            "security.account.locked",
            "security.login.anomalous",
            "security.alert.raised",
            "security.emergency_codes.issued",
            "security.second_factor.reset",
        ):
            assert dispatcher.has_handlers(name)
