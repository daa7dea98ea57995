from __future__ import annotations

import jwt
import pytest

from warden.security.passwords import PasswordHasher
from warden.security.tokens import TokenCodec


def test_access_token_carries_identity_and_roles(codec):
    token, expires_in = codec.issue_access_token(username="alice", roles={"ROLE_USER", "ROLE_ADMIN"})

    claims = codec.decode_access_token(token)

    assert expires_in == 900
    assert claims["username"] == "alice"
    assert claims["roles"] == ["ROLE_ADMIN", "ROLE_USER"]
    assert claims["type"] == "access"
    assert claims["exp"] - claims["iat"] == 900


def test_refresh_token_omits_roles(codec):
    token, expires_in = codec.issue_refresh_token(username="alice")

    claims = codec.decode_refresh_token(token)

    assert expires_in == 604800
    assert claims["username"] == "alice"
    assert "roles" not in claims


def test_tokens_issued_back_to_back_are_distinct(codec):
    first, _ = codec.issue_refresh_token(username="alice")
    second, _ = codec.issue_refresh_token(username="alice")
    assert first != second


def test_token_types_are_not_interchangeable(codec):
    refresh, _ = codec.issue_refresh_token(username="alice")
    access, _ = codec.issue_access_token(username="alice", roles={"ROLE_USER"})

    with pytest.raises(jwt.InvalidTokenError):
        codec.decode_access_token(refresh)
    with pytest.raises(jwt.InvalidTokenError):
        codec.decode_refresh_token(access)


def test_decode_rejects_other_secret_and_expiry(codec):
    foreign, _ = TokenCodec("other-secret", issuer="warden-test").issue_access_token(
        username="alice", roles=["ROLE_USER"]
    )
    expired, _ = TokenCodec("test-secret", issuer="warden-test", access_ttl_seconds=-5).issue_access_token(
        username="alice", roles=["ROLE_USER"]
    )

    with pytest.raises(jwt.InvalidSignatureError):
        codec.decode_access_token(foreign)
    with pytest.raises(jwt.ExpiredSignatureError):
        codec.decode_access_token(expired)
    with pytest.raises(jwt.DecodeError):
        codec.decode_access_token("not-a-jwt")


def test_password_hasher_round_trip():
    hasher = PasswordHasher(rounds=4)
    digest = hasher.hash("secret1")

    assert digest.startswith("$2b$04$")
    assert hasher.verify("secret1", digest)
    assert not hasher.verify("secret2", digest)
    assert not hasher.verify("", digest)
    assert not hasher.verify("secret1", "not-a-bcrypt-hash")
