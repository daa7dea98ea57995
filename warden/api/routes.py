"""HTTP route definitions for the account service."""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import Settings, get_settings
from ..domain.account import Account, ROLE_ADMIN
from ..domain.errors import (
    AccountError,
    AuthError,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from ..domain.service import AccountService
from ..security.gate import Principal, require_authenticated, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth")

AUTH_EVENTS = Counter(
    "warden_auth_events_total",
    "Account workflow outcomes served over HTTP.",
    ["event", "outcome"],
)


class CamelModel(BaseModel):
    """Base model exposing camelCase JSON while accepting snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountResponse(CamelModel):
    """Serialised representation of an `Account` aggregate."""

    username: str
    roles: list[str]
    blocked: bool

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(username=account.username, roles=sorted(account.roles), blocked=account.blocked)


class CredentialsRequest(CamelModel):
    """Payload accepted by signup and login."""

    username: str
    password: str


class LoginResponse(CamelModel):
    user: AccountResponse
    access_token: str
    refresh_token: str
    expires_in: int


class RefreshTokenRequest(CamelModel):
    """Request body carrying a refresh token for logout or rotation."""

    refresh_token: str = Field(..., min_length=1)


class TokenResponse(CamelModel):
    """Rotated token pair returned by the refresh endpoint."""

    access_token: str
    new_refresh_token: str
    expires_in: int
    refresh_expires_in: int


class AdminActionRequest(CamelModel):
    username: str = Field(..., min_length=1)


class MessageResponse(CamelModel):
    message: str


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_app_settings(request: Request) -> Settings:
    """Resolve settings from app state, falling back to the process settings."""
    return getattr(request.app.state, "settings", None) or get_settings()


def verify_signup_tokens(
    settings: Settings = Depends(get_app_settings),
    access_token: str | None = Header(default=None, alias="X-Access-Token"),
    secret_token: str | None = Header(default=None, alias="X-Secret-Token"),
) -> None:
    """Require the pre-shared signup headers when the signup guard is configured."""
    if not settings.signup_guard_enabled:
        return
    if not access_token or not secret_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing signup tokens")
    access_ok = hmac.compare_digest(access_token, settings.signup_access_token)
    secret_ok = hmac.compare_digest(secret_token, settings.signup_secret_token)
    if not (access_ok and secret_ok):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid signup tokens")


@router.post(
    "/signup",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_signup_tokens)],
)
def signup(
    payload: CredentialsRequest,
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    """Register an account with the standard user role."""
    try:
        account = service.signup(payload.username, payload.password)
    except AccountError as exc:
        AUTH_EVENTS.labels(event="signup", outcome="rejected").inc()
        raise _http_error_from_account_error(exc) from exc
    AUTH_EVENTS.labels(event="signup", outcome="ok").inc()
    return AccountResponse.from_domain(account)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: CredentialsRequest,
    service: AccountService = Depends(get_service),
) -> LoginResponse:
    """Verify credentials and issue a fresh access/refresh pair."""
    try:
        result = service.login(payload.username, payload.password)
    except AccountError as exc:
        AUTH_EVENTS.labels(event="login", outcome="rejected").inc()
        raise _http_error_from_account_error(exc) from exc
    AUTH_EVENTS.labels(event="login", outcome="ok").inc()
    return LoginResponse(
        user=AccountResponse.from_domain(result.account),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=result.tokens.access_expires_in,
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    payload: RefreshTokenRequest,
    principal: Principal = Depends(require_authenticated),
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    """Close one session. The access token only authorises the call."""
    try:
        service.logout(payload.refresh_token)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    AUTH_EVENTS.labels(event="logout", outcome="ok").inc()
    logger.debug("logout requested by %s", principal.username)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    payload: RefreshTokenRequest,
    service: AccountService = Depends(get_service),
) -> TokenResponse:
    try:
        bundle = service.refresh_access_token(payload.refresh_token)
    except AccountError as exc:
        AUTH_EVENTS.labels(event="refresh", outcome="rejected").inc()
        raise _http_error_from_account_error(exc) from exc
    AUTH_EVENTS.labels(event="refresh", outcome="ok").inc()
    return TokenResponse(
        access_token=bundle.access_token,
        new_refresh_token=bundle.refresh_token,
        expires_in=bundle.access_expires_in,
        refresh_expires_in=bundle.refresh_expires_in,
    )


@router.post("/admin/block", response_model=MessageResponse)
def block_user(
    payload: AdminActionRequest,
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    try:
        service.block_user(payload.username)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    logger.info("%s blocked %s", principal.username, payload.username)
    return MessageResponse(message="User blocked")


@router.post("/admin/unblock", response_model=MessageResponse)
def unblock_user(
    payload: AdminActionRequest,
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    try:
        service.unblock_user(payload.username)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    logger.info("%s unblocked %s", principal.username, payload.username)
    return MessageResponse(message="User unblocked")


@router.post("/admin/remove", response_model=MessageResponse)
def remove_user(
    payload: AdminActionRequest,
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    try:
        service.remove_user(payload.username)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    logger.info("%s removed %s", principal.username, payload.username)
    return MessageResponse(message="User removed")


_STATUS_BY_ERROR: dict[type[AccountError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    SessionExpiredError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InfrastructureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _http_error_from_account_error(exc: AccountError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, InfrastructureError):
        logger.error("account store failure: %s", exc.__cause__ or exc)
    return HTTPException(status_code=status_code, detail=exc.message)
