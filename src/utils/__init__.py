"""Utility modules."""
from .transaction import TransactionContext
from .startup_check import validate_environment, get_missing_vars
from .time_window import TimeWindow
from .identifiers import parse_uuid

__all__ = [
    "TransactionContext",
    "validate_environment",
    "get_missing_vars",
    "TimeWindow",
    "parse_uuid",
]
