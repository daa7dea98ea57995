from __future__ import annotations

import pytest

from warden.config import Settings
from warden.domain.account import ROLE_ADMIN
from warden.domain.service import AccountService
from warden.repository.memory_repository import InMemoryAccountRepository
from warden.security.passwords import PasswordHasher
from warden.security.tokens import TokenCodec


@pytest.fixture
def settings() -> Settings:
    # bcrypt's minimum cost
    return Settings(
        store_backend="memory",
        jwt_secret="test-secret",
        jwt_issuer="warden-test",
        bcrypt_rounds=4,
        signup_access_token="",
        signup_secret_token="",
        revoke_sessions_on_block=False,
    )


@pytest.fixture
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec.from_settings(settings)


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def service(repository, hasher, codec) -> AccountService:
    return AccountService(repository, hasher=hasher, codec=codec)


@pytest.fixture
def grant_admin():
    """Promote an existing account directly in its store."""

    def promote(repository, username: str) -> None:
        account = repository.find_by_username(username)
        account.roles.add(ROLE_ADMIN)
        repository.save(account)

    return promote
