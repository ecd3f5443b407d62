"""One-way hashing for emergency codes."""
from typing import Optional

import bcrypt

DEFAULT_ROUNDS = 12


class SecretHasher:
    """bcrypt wrapper used for secrets that must never be stored in clear text."""

    def __init__(self, rounds: Optional[int] = None):
        self._rounds = int(rounds or DEFAULT_ROUNDS)

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, secret: str) -> str:
        """Hash a secret with a fresh salt."""
        return bcrypt.hashpw(
            secret.encode("utf-8"),
            bcrypt.gensalt(rounds=self._rounds),
        ).decode("utf-8")

    def verify(self, secret: str, hashed: str) -> bool:
        """Check a secret against a stored hash; malformed hashes never match."""
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False
