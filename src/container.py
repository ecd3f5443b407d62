"""Dependency injection container."""
from dependency_injector import containers, providers

from src.repositories.user_repository import UserRepository
from src.repositories.login_attempt_repository import LoginAttemptRepository
from src.repositories.security_alert_repository import SecurityAlertRepository
from src.repositories.emergency_code_repository import EmergencyCodeRepository
from src.repositories.two_factor_repository import TwoFactorRepository
from src.repositories.audit_repository import AuditLogRepository, SecurityLogRepository

from src.services.activity_logger import ActivityLogger
from src.services.geolocation import GeoLocationResolver
from src.services.secret_hasher import SecretHasher
from src.services.email_service import EmailService
from src.services.risk_scorer import RiskPolicy, RiskScorer
from src.services.login_security_service import LoginSecurityService, ThrottlePolicy
from src.services.security_alert_service import AlertThresholds, SecurityAlertService
from src.services.emergency_access_service import (
    EmergencyAccessService,
    EmergencyCodePolicy,
)

from src.events.domain import DomainEventDispatcher


class Container(containers.DeclarativeContainer):
    """
    Application dependency injection container.

    Usage:
        container = Container()
        container.config.from_dict(dict(app.config))
        container.db_session.override(db.session)

        login_security = container.login_security_service()
    """

    # Configuration (Flask config keys)
    config = providers.Configuration()

    # Database session - must be overridden with actual db.session
    db_session = providers.Dependency()

    # ==================
    # Repositories
    # ==================

    user_repository = providers.Factory(
        UserRepository,
        session=db_session
    )

    login_attempt_repository = providers.Factory(
        LoginAttemptRepository,
        session=db_session
    )

    security_alert_repository = providers.Factory(
        SecurityAlertRepository,
        session=db_session
    )

    emergency_code_repository = providers.Factory(
        EmergencyCodeRepository,
        session=db_session
    )

    two_factor_repository = providers.Factory(
        TwoFactorRepository,
        session=db_session
    )

    audit_log_repository = providers.Factory(
        AuditLogRepository,
        session=db_session
    )

    security_log_repository = providers.Factory(
        SecurityLogRepository,
        session=db_session
    )

    # ==================
    # Policies
    # ==================

    throttle_policy = providers.Singleton(ThrottlePolicy.from_mapping, cfg=config)
    risk_policy = providers.Singleton(RiskPolicy.from_mapping, cfg=config)
    alert_thresholds = providers.Singleton(AlertThresholds.from_mapping, cfg=config)
    emergency_code_policy = providers.Singleton(EmergencyCodePolicy.from_mapping, cfg=config)

    # ==================
    # Collaborators
    # ==================

    event_dispatcher = providers.Singleton(
        DomainEventDispatcher
    )

    activity_logger = providers.Factory(
        ActivityLogger,
        audit_repository=audit_log_repository,
        security_log_repository=security_log_repository
    )

    geo_resolver = providers.Singleton(
        GeoLocationResolver,
        lookup_url=config.GEOIP_LOOKUP_URL,
        timeout=config.GEOIP_TIMEOUT_SECONDS
    )

    secret_hasher = providers.Singleton(
        SecretHasher,
        rounds=config.EMERGENCY_CODE_BCRYPT_ROUNDS
    )

    email_service = providers.Singleton(
        EmailService,
        smtp_host=config.SMTP_HOST,
        smtp_port=config.SMTP_PORT,
        smtp_user=config.SMTP_USER,
        smtp_password=config.SMTP_PASSWORD,
        from_email=config.MAIL_FROM,
        from_name=config.MAIL_FROM_NAME,
        template_dir=config.MAIL_TEMPLATE_DIR,
        use_tls=config.SMTP_USE_TLS
    )

    # ==================
    # Services
    # ==================

    risk_scorer = providers.Factory(
        RiskScorer,
        attempt_repository=login_attempt_repository,
        policy=risk_policy
    )

    login_security_service = providers.Factory(
        LoginSecurityService,
        user_repository=user_repository,
        attempt_repository=login_attempt_repository,
        risk_scorer=risk_scorer,
        geo_resolver=geo_resolver,
        event_dispatcher=event_dispatcher,
        activity_logger=activity_logger,
        policy=throttle_policy
    )

    security_alert_service = providers.Factory(
        SecurityAlertService,
        alert_repository=security_alert_repository,
        attempt_repository=login_attempt_repository,
        user_repository=user_repository,
        event_dispatcher=event_dispatcher,
        thresholds=alert_thresholds
    )

    emergency_access_service = providers.Factory(
        EmergencyAccessService,
        user_repository=user_repository,
        code_repository=emergency_code_repository,
        two_factor_repository=two_factor_repository,
        hasher=secret_hasher,
        activity_logger=activity_logger,
        event_dispatcher=event_dispatcher,
        policy=emergency_code_policy,
        session=db_session
    )

    # Note: Handlers are registered in app.py after the container is configured
