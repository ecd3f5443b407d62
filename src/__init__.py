"""Authentication risk and defense engine."""
