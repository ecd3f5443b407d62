"""Flask application factory."""
import logging
from flask import Flask
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


def create_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Create and configure Flask application.

    The application hosts the authentication defense services; it
    exposes them through ``app.container`` and the ``flask`` CLI.

    Args:
        config: Optional configuration dictionary to override defaults.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Load configuration
    if config:
        app.config.update(config)
    else:
        from src.config import get_config
        from src.utils.startup_check import validate_environment
        app.config.from_object(get_config()())
        validate_environment(app.config)

    # Initialize extensions
    from src.extensions import db
    db.init_app(app)

    # Initialize DI container and wire it to the Flask-SQLAlchemy session
    from src.container import Container
    container = Container()
    container.config.from_dict(dict(app.config))
    container.db_session.override(db.session)
    app.container = container

    _register_notification_handlers(container)

    # Register CLI commands
    from src.cli import (
        run_security_checks_command,
        unlock_account_command,
        prune_emergency_codes_command,
        promote_admin_command,
    )
    app.cli.add_command(run_security_checks_command)
    app.cli.add_command(unlock_account_command)
    app.cli.add_command(prune_emergency_codes_command)
    app.cli.add_command(promote_admin_command)

    return app


def _register_notification_handlers(container) -> None:
    """Route security events to email; skipped when mail is not configured."""
    from src.handlers.security_notification_handler import SecurityNotificationHandler
    from src.services.email_service import EmailConfigError

    try:
        email_service = container.email_service()
    except EmailConfigError as e:
        logger.warning(f"Security notifications disabled: {e}")
        return

    dispatcher = container.event_dispatcher()
    handler = SecurityNotificationHandler(email_service)
    for event_name in (
        "security.account.locked",
        "security.login.anomalous",
        "security.alert.raised",
        "security.emergency_codes.issued",
        "security.second_factor.reset",
    ):
        dispatcher.register(event_name, handler)
