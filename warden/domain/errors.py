"""Typed failures raised by the account domain and its stores.

None of these carry transport semantics; ``warden.api.routes`` owns the
mapping to HTTP status codes.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for every error surfaced by the account workflows."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AccountError):
    """Input failed a shape or policy check (empty username, weak password)."""


class ConflictError(AccountError):
    """Requested state already holds (duplicate signup, redundant block/unblock)."""


class AuthError(AccountError):
    """Credentials or refresh token rejected.

    Deliberately coarse: absent and blocked accounts produce the same message.
    """


class SessionExpiredError(AccountError):
    """Refresh token was tracked but failed signature or expiry verification."""


class NotFoundError(AccountError):
    """Administrative target account does not exist."""


class InfrastructureError(AccountError):
    """Store or codec failure that is not a policy violation."""
