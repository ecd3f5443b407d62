"""Startup checks for environment and defense policy settings."""
import os
import sys
import logging
from typing import Any, List, Mapping, Optional

logger = logging.getLogger(__name__)

REQUIRED_ENV_VARS = [
    "DATABASE_URL",
]

# Without these no notification email can be sent
NOTIFICATION_ENV_VARS = [
    "SMTP_HOST",
    "MAIL_FROM",
]

INSECURE_SECRET_MARKERS = ("dev-secret-key", "change-me")

RISK_WEIGHT_KEYS = (
    "RISK_WEIGHT_NEW_COUNTRY",
    "RISK_WEIGHT_NEW_LOCATION",
    "RISK_WEIGHT_NEW_DEVICE",
    "RISK_WEIGHT_IMPOSSIBLE_TRAVEL",
    "RISK_WEIGHT_SUSPICIOUS_USER_AGENT",
)

POSITIVE_KEYS = (
    "LOGIN_LOCKOUT_MINUTES",
    "LOGIN_FAILURE_WINDOW_MINUTES",
    "ALERT_VELOCITY_PER_MINUTE",
    "ALERT_SUSTAINED_MINUTES",
    "ALERT_SUPPRESSION_MINUTES",
    "EMERGENCY_CODE_COUNT",
    "EMERGENCY_CODE_EXPIRY_HOURS",
)


def get_missing_vars() -> List[str]:
    """Required environment variables that are not set."""
    return [var for var in REQUIRED_ENV_VARS if not os.environ.get(var)]


def get_missing_notification_vars() -> List[str]:
    """Mail settings that are not configured."""
    return [var for var in NOTIFICATION_ENV_VARS if not os.environ.get(var)]


def get_policy_issues(config: Mapping[str, Any]) -> List[str]:
    """
    Check throttle, risk and alert settings for inconsistent values.

    Keys absent from ``config`` are skipped.

    Returns:
        Human readable descriptions, empty when the policy is usable.
    """
    issues = []

    captcha = config.get("LOGIN_CAPTCHA_THRESHOLD")
    lockout = config.get("LOGIN_LOCKOUT_THRESHOLD")
    if captcha is not None and lockout is not None and captcha >= lockout:
        issues.append(
            f"LOGIN_CAPTCHA_THRESHOLD ({captcha}) must be below "
            f"LOGIN_LOCKOUT_THRESHOLD ({lockout})"
        )

    base = config.get("LOGIN_DELAY_BASE_MS")
    ceiling = config.get("LOGIN_MAX_DELAY_MS")
    if base is not None and ceiling is not None and not 0 <= base <= ceiling:
        issues.append(
            f"LOGIN_DELAY_BASE_MS ({base}) must be between 0 and LOGIN_MAX_DELAY_MS ({ceiling})"
        )

    for key in RISK_WEIGHT_KEYS:
        weight = config.get(key)
        if weight is not None and not 0.0 <= weight <= 1.0:
            issues.append(f"{key} ({weight}) must be within [0, 1]")

    threshold = config.get("RISK_ANOMALY_THRESHOLD")
    if threshold is not None and not 0.0 < threshold <= 1.0:
        issues.append(f"RISK_ANOMALY_THRESHOLD ({threshold}) must be within (0, 1]")

    for key in POSITIVE_KEYS:
        value = config.get(key)
        if value is not None and value <= 0:
            issues.append(f"{key} ({value}) must be positive")

    return issues


def validate_environment(config: Optional[Mapping[str, Any]] = None) -> bool:
    """
    Validate environment variables and, if given, the loaded policy.

    In production a missing or default secret key, a missing database
    URL, or an inconsistent policy stops the process with exit code 1.
    Elsewhere the same problems are logged and startup continues.
    Missing mail settings only disable notifications.

    Returns:
        True when nothing was found.
    """
    is_production = os.environ.get("FLASK_ENV") == "production"
    problems = [f"{var} is not set" for var in get_missing_vars()]

    if is_production:
        secret = os.environ.get("FLASK_SECRET_KEY", "")
        if not secret:
            problems.append("FLASK_SECRET_KEY is not set")
        elif any(marker in secret.lower() for marker in INSECURE_SECRET_MARKERS):
            problems.append("FLASK_SECRET_KEY is using an insecure default")

    if config is not None:
        problems.extend(get_policy_issues(config))

    if problems:
        logger.error(f"Startup check failed: {problems}")
        if is_production:
            logger.critical("Refusing to start in production")
            sys.exit(1)
        logger.warning("Continuing outside production despite startup problems")

    missing_mail = get_missing_notification_vars()
    if missing_mail:
        logger.warning(
            f"Mail settings missing ({missing_mail}), security notifications are disabled"
        )

    return not problems
