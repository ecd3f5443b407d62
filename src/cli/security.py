"""CLI commands for security operations."""
import click
from flask import current_app
from flask.cli import with_appcontext

from src.models.enums import UserRole
from src.models.user import User
from src.services.security_errors import NotFoundError


@click.command("run-security-checks")
@with_appcontext
def run_security_checks_command():
    """
    Run the aggregate attack detection checks once.

    Safe to call on any schedule; duplicate alerts are suppressed.

    Usage:
        flask run-security-checks
    """
    service = current_app.container.security_alert_service()
    created = service.run_all_checks()

    if not created:
        click.echo("No new security alerts.")
        return

    click.echo("Created security alerts:")
    for alert_type, alert_ids in created.items():
        for alert_id in alert_ids:
            click.echo(f"  {alert_type}: {alert_id}")


@click.command("unlock-account")
@click.argument("user_id")
@click.option("--admin", "admin_id", required=True, help="Id of the administrator")
@with_appcontext
def unlock_account_command(user_id, admin_id):
    """
    Clear the lock, failure counter and CAPTCHA flag of an account.

    Usage:
        flask unlock-account <user-id> --admin <admin-id>
    """
    service = current_app.container.login_security_service()
    try:
        service.unlock_account(user_id, admin_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    click.echo(f"Account {user_id} unlocked.")


@click.command("prune-emergency-codes")
@click.option("--older-than-days", default=7, show_default=True, type=int)
@with_appcontext
def prune_emergency_codes_command(older_than_days):
    """
    Delete emergency codes that expired more than N days ago.

    Usage:
        flask prune-emergency-codes --older-than-days 7
    """
    service = current_app.container.emergency_access_service()
    count = service.prune_expired(older_than_days)
    click.echo(f"Deleted {count} expired emergency codes.")


@click.command("promote-admin")
@click.argument("email")
@with_appcontext
def promote_admin_command(email):
    """
    Create or promote a user to the admin role.

    Administrators receive the aggregate security alerts.

    Usage:
        flask promote-admin admin@example.com
    """
    repo = current_app.container.user_repository()
    user = repo.find_by_email(email)

    if user and user.role == UserRole.ADMIN:
        click.echo(f"Already admin: {user.email}")
        return

    if user:
        user.role = UserRole.ADMIN
        repo.save(user)
        click.echo(f"Updated: {user.email} -> ADMIN")
        return

    user = repo.save(User(email=email.strip().lower(), role=UserRole.ADMIN))
    click.echo(f"Created admin: {user.email} (id={user.id})")
