"""CLI commands package."""
from src.cli.security import (
    run_security_checks_command,
    unlock_account_command,
    prune_emergency_codes_command,
    promote_admin_command,
)

__all__ = [
    "run_security_checks_command",
    "unlock_account_command",
    "prune_emergency_codes_command",
    "promote_admin_command",
]
