from __future__ import annotations

from dataclasses import dataclass, field

ROLE_USER = "ROLE_USER"
ROLE_ADMIN = "ROLE_ADMIN"


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered identity and its open sessions."""

    username: str
    password_hash: str
    roles: set[str] = field(default_factory=lambda: {ROLE_USER})
    blocked: bool = False
    refresh_tokens: set[str] = field(default_factory=set)

    def has_session(self, refresh_token: str) -> bool:
        return refresh_token in self.refresh_tokens

    def copy(self) -> "Account":
        """Return a detached copy so stores never share mutable sets with callers."""
        return Account(
            username=self.username,
            password_hash=self.password_hash,
            roles=set(self.roles),
            blocked=self.blocked,
            refresh_tokens=set(self.refresh_tokens),
        )
