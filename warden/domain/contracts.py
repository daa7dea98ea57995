"""Domain-level result contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass

from .account import Account


@dataclass(slots=True)
class TokenBundle:
    """Encapsulates the access/refresh token pair returned to API consumers."""

    access_token: str
    access_expires_in: int
    refresh_token: str
    refresh_expires_in: int


@dataclass(slots=True)
class LoginResult:
    """Authenticated account together with the session it was just issued."""

    account: Account
    tokens: TokenBundle
