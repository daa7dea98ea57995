"""Authorization gate for bearer access tokens issued by this service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import jwt
from fastapi import Depends, Header, HTTPException, Request, status

from .tokens import TokenCodec

BEARER_PREFIX = "Bearer "


class Unauthenticated(Exception):
    """The request carries no usable access token."""


class Forbidden(Exception):
    """The caller is authenticated but lacks every required role."""


@dataclass(slots=True, frozen=True)
class Principal:
    """Identity decoded from a verified access token."""

    username: str
    roles: frozenset[str]


def extract_bearer(authorization: str | None) -> str:
    """Return the raw token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated("missing or invalid authorization header")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated("missing or invalid authorization header")
    return token


def authenticate(authorization: str | None, codec: TokenCodec) -> Principal:
    """Classify the header's token and expose its claims.

    Raises
    ------
    Unauthenticated
        When the header is absent or malformed, or the token fails signature,
        expiry or type checks.
    """
    token = extract_bearer(authorization)
    try:
        claims = codec.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise Unauthenticated("invalid or expired token") from exc
    return Principal(username=claims["username"], roles=frozenset(claims.get("roles") or ()))


def require_role(principal: Principal, *roles: str) -> Principal:
    """Succeed when the principal holds at least one of ``roles``."""
    if not principal.roles.intersection(roles):
        raise Forbidden("insufficient role")
    return principal


def get_codec(request: Request) -> TokenCodec:
    """Resolve the `TokenCodec` stored on the FastAPI application state."""
    codec: TokenCodec = request.app.state.token_codec
    return codec


def require_authenticated(
    authorization: str | None = Header(default=None),
    codec: TokenCodec = Depends(get_codec),
) -> Principal:
    """FastAPI dependency returning the caller's principal or answering 401."""
    try:
        return authenticate(authorization, codec)
    except Unauthenticated as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_roles(*roles: str) -> Callable[..., Principal]:
    """Build a dependency that additionally answers 403 unless a role matches."""

    def dependency(principal: Principal = Depends(require_authenticated)) -> Principal:
        try:
            return require_role(principal, *roles)
        except Forbidden as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    return dependency
