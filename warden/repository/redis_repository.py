"""Redis-backed key-value account store."""

from __future__ import annotations

import hashlib
import json

from redis import Redis
from redis.exceptions import RedisError

from ..domain.account import Account
from ..domain.errors import InfrastructureError


class RedisAccountRepository:
    """Account records stored as Redis hashes with a secondary refresh-token index.

    Layout::

        <prefix>:account:<username>   hash {password_hash, roles, blocked, refresh_tokens}
        <prefix>:refresh:<sha256>     string -> username

    The client must be created with ``decode_responses=True``.
    """

    def __init__(self, client: Redis, *, key_prefix: str = "warden") -> None:
        self._client = client
        self._key_prefix = key_prefix

    def _account_key(self, username: str) -> str:
        return f"{self._key_prefix}:account:{username}"

    def _token_key(self, refresh_token: str) -> str:
        digest = hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()
        return f"{self._key_prefix}:refresh:{digest}"

    def find_by_username(self, username: str) -> Account | None:
        try:
            fields = self._client.hgetall(self._account_key(username))
        except RedisError as exc:
            raise InfrastructureError("account store unavailable") from exc
        if not fields:
            return None
        return self._map_record(username, fields)

    def find_by_refresh_token(self, refresh_token: str) -> Account | None:
        try:
            username = self._client.get(self._token_key(refresh_token))
        except RedisError as exc:
            raise InfrastructureError("account store unavailable") from exc
        if username is None:
            return None
        account = self.find_by_username(username)
        # a stale index entry must not resolve to an account that no longer holds the token
        if account is None or not account.has_session(refresh_token):
            return None
        return account

    def save(self, account: Account) -> None:
        key = self._account_key(account.username)
        try:
            stored = self._client.hget(key, "refresh_tokens")
            previous = set(json.loads(stored)) if stored else set()
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(key, mapping=self._to_mapping(account))
            for token in previous - account.refresh_tokens:
                pipe.delete(self._token_key(token))
            for token in account.refresh_tokens:
                pipe.set(self._token_key(token), account.username)
            pipe.execute()
        except RedisError as exc:
            raise InfrastructureError("account store unavailable") from exc

    def remove(self, username: str) -> None:
        key = self._account_key(username)
        try:
            stored = self._client.hget(key, "refresh_tokens")
            tokens = json.loads(stored) if stored else []
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(key)
            for token in tokens:
                pipe.delete(self._token_key(token))
            pipe.execute()
        except RedisError as exc:
            raise InfrastructureError("account store unavailable") from exc

    def _to_mapping(self, account: Account) -> dict[str, str]:
        return {
            "password_hash": account.password_hash,
            "roles": json.dumps(sorted(account.roles)),
            "blocked": "1" if account.blocked else "0",
            "refresh_tokens": json.dumps(sorted(account.refresh_tokens)),
        }

    def _map_record(self, username: str, fields: dict[str, str]) -> Account:
        """Convert a raw Redis hash into the domain ``Account`` dataclass."""
        return Account(
            username=username,
            password_hash=fields["password_hash"],
            roles=set(json.loads(fields.get("roles") or "[]")),
            blocked=fields.get("blocked") == "1",
            refresh_tokens=set(json.loads(fields.get("refresh_tokens") or "[]")),
        )
