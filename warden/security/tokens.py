"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import secrets
import time
from typing import Any

import jwt

from ..config import Settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenCodec:
    """Signs and verifies the access and refresh tokens issued by the service.

    One secret signs and verifies every token for the lifetime of the codec.
    """

    algorithm = "HS256"

    def __init__(
        self,
        secret: str,
        *,
        issuer: str,
        access_ttl_seconds: int = 900,
        refresh_ttl_seconds: int = 604800,
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        """Build a codec from the process settings."""
        return cls(
            settings.jwt_secret,
            issuer=settings.jwt_issuer,
            access_ttl_seconds=settings.access_ttl_seconds,
            refresh_ttl_seconds=settings.refresh_ttl_seconds,
        )

    def issue_access_token(self, *, username: str, roles: set[str] | list[str]) -> tuple[str, int]:
        """Create a signed access token for an authenticated account.

        Parameters
        ----------
        username:
            Account identifier embedded in the ``username`` claim.
        roles:
            Role tags copied into the ``roles`` claim for the authorization gate.

        Returns
        -------
        tuple[str, int]
            A tuple containing the encoded JWT string and its TTL (in seconds).
        """
        payload = {"username": username, "roles": sorted(roles)}
        return self._encode(payload, ACCESS_TOKEN_TYPE, self.access_ttl_seconds), self.access_ttl_seconds

    def issue_refresh_token(self, *, username: str) -> tuple[str, int]:
        """Create a signed refresh token; returns the token and its TTL (in seconds)."""
        payload = {"username": username}
        return self._encode(payload, REFRESH_TOKEN_TYPE, self.refresh_ttl_seconds), self.refresh_ttl_seconds

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """Decode and verify an access token returning its payload.

        Raises
        ------
        jwt.PyJWTError
            Propagated when the token is malformed, expired, signed by another
            issuer, or is not an access token.
        """
        return self._decode(token, ACCESS_TOKEN_TYPE)

    def decode_refresh_token(self, token: str) -> dict[str, Any]:
        """Decode and verify a refresh token; raises ``jwt.PyJWTError`` on failure."""
        return self._decode(token, REFRESH_TOKEN_TYPE)

    def _encode(self, claims: dict[str, Any], token_type: str, ttl: int) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            **claims,
            "type": token_type,
            "jti": secrets.token_urlsafe(16),
            "iss": self._issuer,
            "iat": now,
            "exp": now + ttl,
        }
        # PyJWT returns str for HS256 even in PyJWT>=2
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str) -> dict[str, Any]:
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self.algorithm],
            issuer=self._issuer,
            options={"require": ["exp", "username", "type"]},
        )
        if payload.get("type") != token_type:
            raise jwt.InvalidTokenError(f"expected {token_type} token")
        return payload
