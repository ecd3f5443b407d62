"""add_auth_defense_tables

Revision ID: 7c1e4a2b9d30
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "7c1e4a2b9d30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names
USER_ROLE = sa.Enum("USER", "ADMIN", name="userrole")
TWO_FACTOR_METHOD = sa.Enum("TOTP", "SMS", name="twofactormethod")
ATTEMPT_KIND = sa.Enum("LOGIN", "STEP_UP", name="attemptkind")
ALERT_TYPE = sa.Enum(
    "SPIKE_FAILURES",
    "VELOCITY_ATTACK",
    "GEOGRAPHIC_ANOMALY",
    "SUSTAINED_ATTACK",
    name="alerttype",
)
ALERT_SEVERITY = sa.Enum("INFO", "WARNING", "CRITICAL", "URGENT", name="alertseverity")
ALERT_STATUS = sa.Enum(
    "ACTIVE", "ACKNOWLEDGED", "RESOLVED", "FALSE_POSITIVE", name="alertstatus"
)
SECURITY_EVENT_TYPE = sa.Enum(
    "ACCOUNT_LOCKED",
    "ACCOUNT_MANUALLY_UNLOCKED",
    "EMERGENCY_CODES_GENERATED",
    "EMERGENCY_CODE_USED",
    "EMERGENCY_CODE_FAILED",
    "ADMIN_2FA_RESET",
    name="securityeventtype",
)


def _base_columns():
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        *_base_columns(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False),
        # Throttle & lockout state
        sa.Column("failed_login_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_failed_login_at", sa.DateTime(), nullable=True),
        sa.Column("total_failed_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(), nullable=True),
        sa.Column("captcha_required_since", sa.DateTime(), nullable=True),
        sa.Column("known_locations", sa.JSON(), nullable=False),
        sa.Column("known_devices", sa.JSON(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("last_login_ip", sa.String(length=64), nullable=True),
        sa.Column("last_login_location", sa.String(length=255), nullable=True),
        # Second factor
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("two_factor_method", TWO_FACTOR_METHOD, nullable=True),
        sa.Column("two_factor_secret", sa.String(length=255), nullable=True),
        sa.Column("two_factor_verified_at", sa.DateTime(), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("two_factor_last_reset_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("two_factor_last_reset_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_locked_until", "user", ["locked_until"])

    op.create_table(
        "login_attempt",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("identifier", sa.String(length=255), nullable=True),
        sa.Column("kind", ATTEMPT_KIND, nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("device_fingerprint", sa.String(length=255), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("failure_reason", sa.String(length=100), nullable=True),
        sa.Column("requires_captcha", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("captcha_verified", sa.Boolean(), nullable=True),
        sa.Column("location_country", sa.String(length=100), nullable=True),
        sa.Column("location_region", sa.String(length=100), nullable=True),
        sa.Column("location_city", sa.String(length=100), nullable=True),
        sa.Column("is_anomalous", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("anomaly_reasons", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_login_attempt_user_id", "login_attempt", ["user_id"])
    op.create_index("ix_login_attempt_identifier", "login_attempt", ["identifier"])
    op.create_index("ix_login_attempt_ip_address", "login_attempt", ["ip_address"])
    op.create_index("ix_login_attempt_timestamp", "login_attempt", ["timestamp"])
    op.create_index("ix_login_attempt_success", "login_attempt", ["success"])
    op.create_index("ix_login_attempt_location_country", "login_attempt", ["location_country"])

    op.create_table(
        "security_alert",
        *_base_columns(),
        sa.Column("alert_type", ALERT_TYPE, nullable=False),
        sa.Column("severity", ALERT_SEVERITY, nullable=False),
        sa.Column("status", ALERT_STATUS, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("recommendation", sa.Text(), nullable=True),
        sa.Column("metric", sa.String(length=100), nullable=False),
        sa.Column("current_value", sa.Float(), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=False),
        sa.Column("baseline_value", sa.Float(), nullable=True),
        sa.Column("period_start", sa.DateTime(), nullable=False),
        sa.Column("period_end", sa.DateTime(), nullable=False),
        sa.Column("affected_user_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("notification_sent", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("notification_sent_at", sa.DateTime(), nullable=True),
        sa.Column("notified_admins", sa.JSON(), nullable=False),
        sa.Column("acknowledged_at", sa.DateTime(), nullable=True),
        sa.Column("acknowledged_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_security_alert_alert_type", "security_alert", ["alert_type"])
    op.create_index("ix_security_alert_severity", "security_alert", ["severity"])
    op.create_index("ix_security_alert_status", "security_alert", ["status"])

    op.create_table(
        "alert_suppression_guard",
        *_base_columns(),
        sa.Column("alert_type", ALERT_TYPE, nullable=False),
        sa.Column("last_alert_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("alert_type"),
    )

    op.create_table(
        "emergency_code",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code_hash", sa.String(length=255), nullable=False),
        sa.Column("generated_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_emergency_code_user_id", "emergency_code", ["user_id"])
    op.create_index("ix_emergency_code_expires_at", "emergency_code", ["expires_at"])

    op.create_table(
        "two_factor_backup_code",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code_hash", sa.String(length=255), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_two_factor_backup_code_user_id", "two_factor_backup_code", ["user_id"]
    )

    op.create_table(
        "step_up_challenge",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code_hash", sa.String(length=255), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_step_up_challenge_user_id", "step_up_challenge", ["user_id"])

    op.create_table(
        "audit_log",
        *_base_columns(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])

    op.create_table(
        "security_log",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("admin_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("event_type", SECURITY_EVENT_TYPE, nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("failure_reason", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_security_log_user_id", "security_log", ["user_id"])
    op.create_index("ix_security_log_event_type", "security_log", ["event_type"])


def downgrade() -> None:
    for table in (
        "security_log",
        "audit_log",
        "step_up_challenge",
        "two_factor_backup_code",
        "emergency_code",
        "alert_suppression_guard",
        "security_alert",
        "login_attempt",
        "user",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        SECURITY_EVENT_TYPE,
        ALERT_STATUS,
        ALERT_SEVERITY,
        ALERT_TYPE,
        ATTEMPT_KIND,
        TWO_FACTOR_METHOD,
        USER_ROLE,
    ):
        enum_type.drop(bind, checkfirst=True)
