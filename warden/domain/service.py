"""Account service orchestrating persistence, credential checks, and token lifecycle."""

from __future__ import annotations

import logging

import jwt

from .account import Account, ROLE_USER
from .contracts import LoginResult, TokenBundle
from .errors import AuthError, ConflictError, NotFoundError, SessionExpiredError, ValidationError
from ..repository.base import AccountRepository
from ..security.passwords import PasswordHasher
from ..security.tokens import TokenCodec

logger = logging.getLogger(__name__)


class AccountService:
    """Signup, login, session rotation and administrative account workflows.

    Every operation is a read-modify-write against the repository. No locking
    happens here; concurrent writes to the same account are last-write-wins.
    """

    def __init__(
        self,
        repository: AccountRepository,
        *,
        hasher: PasswordHasher,
        codec: TokenCodec,
        password_min_length: int = 6,
        revoke_sessions_on_block: bool = False,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._repository = repository
        self._hasher = hasher
        self._codec = codec
        self._password_min_length = password_min_length
        self._revoke_sessions_on_block = revoke_sessions_on_block

    def signup(self, username: str, password: str) -> Account:
        """Register a new account holding only the standard user role."""
        if not username or not username.strip():
            raise ValidationError("username is required")
        if not password or len(password) < self._password_min_length:
            raise ValidationError("password too weak")

        if self._repository.find_by_username(username) is not None:
            raise ConflictError("account already exists")

        account = Account(
            username=username,
            password_hash=self._hasher.hash(password),
            roles={ROLE_USER},
            blocked=False,
            refresh_tokens=set(),
        )
        self._repository.save(account)
        logger.info("account created for %s", username)
        return account

    def login(self, username: str, password: str) -> LoginResult:
        """Verify credentials and open a new session for the account.

        Absent and blocked accounts fail with the same message.
        """
        account = self._repository.find_by_username(username)
        if account is None or account.blocked:
            logger.warning("login rejected for %s: unknown or blocked", username)
            raise AuthError("invalid credentials or blocked")
        if not self._hasher.verify(password, account.password_hash):
            logger.warning("login rejected for %s: bad password", username)
            raise AuthError("invalid credentials")

        tokens = self._issue_tokens(account)
        account.refresh_tokens.add(tokens.refresh_token)
        self._repository.save(account)
        logger.info("session opened for %s (%d active)", username, len(account.refresh_tokens))
        return LoginResult(account=account, tokens=tokens)

    def logout(self, refresh_token: str) -> None:
        """Close the session identified by ``refresh_token``; unknown tokens are ignored."""
        account = self._repository.find_by_refresh_token(refresh_token)
        if account is None:
            return
        account.refresh_tokens.discard(refresh_token)
        self._repository.save(account)
        logger.info("session closed for %s", account.username)

    def refresh_access_token(self, refresh_token: str) -> TokenBundle:
        """Exchange a refresh token for a new access/refresh pair.

        The presented token is consumed: it is removed from the account before
        the replacement is stored, so a replay fails as an unknown token.

        Parameters
        ----------
        refresh_token:
            Token obtained from :meth:`login` or a previous rotation.

        Raises
        ------
        AuthError
            No account holds the token, or the account is blocked.
        SessionExpiredError
            The token is tracked but expired, tampered with, or issued to
            another subject. It is dropped from the account before raising.
        """
        account = self._repository.find_by_refresh_token(refresh_token)
        if account is None or not account.has_session(refresh_token) or account.blocked:
            logger.warning("refresh rejected: unknown token or blocked account")
            raise AuthError("invalid refresh token or blocked")

        try:
            claims = self._codec.decode_refresh_token(refresh_token)
        except jwt.PyJWTError:
            claims = None
        if claims is None or claims.get("username") != account.username:
            account.refresh_tokens.discard(refresh_token)
            self._repository.save(account)
            logger.warning("stale refresh token dropped for %s", account.username)
            raise SessionExpiredError("refresh token expired or invalid, please login again")

        account.refresh_tokens.discard(refresh_token)
        tokens = self._issue_tokens(account)
        account.refresh_tokens.add(tokens.refresh_token)
        self._repository.save(account)
        logger.info("session rotated for %s", account.username)
        return tokens

    def block_user(self, username: str) -> None:
        """Disable an account; its sessions stay stored unless revocation is enabled."""
        account = self._require_account(username)
        if account.blocked:
            raise ConflictError("account already blocked")
        account.blocked = True
        if self._revoke_sessions_on_block:
            account.refresh_tokens.clear()
        self._repository.save(account)
        logger.info("account %s blocked", username)

    def unblock_user(self, username: str) -> None:
        account = self._require_account(username)
        if not account.blocked:
            raise ConflictError("account already unblocked")
        account.blocked = False
        self._repository.save(account)
        logger.info("account %s unblocked", username)

    def remove_user(self, username: str) -> None:
        """Delete the account record. Absent accounts are not an error."""
        self._repository.remove(username)
        logger.info("account %s removed", username)

    def get_account(self, username: str) -> Account | None:
        return self._repository.find_by_username(username)

    def _require_account(self, username: str) -> Account:
        account = self._repository.find_by_username(username)
        if account is None:
            raise NotFoundError("account not found")
        return account

    def _issue_tokens(self, account: Account) -> TokenBundle:
        access_token, access_ttl = self._codec.issue_access_token(
            username=account.username, roles=account.roles
        )
        refresh_token, refresh_ttl = self._codec.issue_refresh_token(username=account.username)
        return TokenBundle(
            access_token=access_token,
            access_expires_in=access_ttl,
            refresh_token=refresh_token,
            refresh_expires_in=refresh_ttl,
        )
