"""Password hashing backed by bcrypt."""

from __future__ import annotations

import bcrypt

# bcrypt only uses the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """One-way password hashing with constant-time verification."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]

    def hash(self, password: str) -> str:
        """Return the bcrypt digest (salt included) for ``password``."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(self._encode(password), salt).decode("utf-8")

    def verify(self, password: str | None, password_hash: str) -> bool:
        """Return ``True`` when ``password`` matches the stored digest."""
        if not password:
            return False
        try:
            return bcrypt.checkpw(self._encode(password), password_hash.encode("utf-8"))
        except ValueError:
            # malformed stored hash
            return False
