"""Storage contract every account backend implements."""

from __future__ import annotations

from typing import Protocol

from ..domain.account import Account


class AccountRepository(Protocol):
    """Durable mapping from username to account record.

    Implementations wrap driver failures in ``InfrastructureError`` and never
    raise domain errors themselves.
    """

    def find_by_username(self, username: str) -> Account | None:
        """Return the account stored under ``username`` or ``None``."""
        ...

    def find_by_refresh_token(self, refresh_token: str) -> Account | None:
        """Return the account whose refresh-token set contains ``refresh_token``."""
        ...

    def save(self, account: Account) -> None:
        """Insert or overwrite the record keyed by ``account.username``."""
        ...

    def remove(self, username: str) -> None:
        """Delete the record; absent usernames are ignored."""
        ...
