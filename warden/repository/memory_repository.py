"""In-memory account store for local development and tests."""

from __future__ import annotations

from threading import Lock

from ..domain.account import Account


class InMemoryAccountRepository:
    """Thread-safe dictionary-backed store with a refresh-token index."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._token_index: dict[str, str] = {}
        self._lock = Lock()

    def find_by_username(self, username: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(username)
            return account.copy() if account else None

    def find_by_refresh_token(self, refresh_token: str) -> Account | None:
        with self._lock:
            username = self._token_index.get(refresh_token)
            account = self._accounts.get(username) if username else None
            if account is None or not account.has_session(refresh_token):
                return None
            return account.copy()

    def save(self, account: Account) -> None:
        with self._lock:
            previous = self._accounts.get(account.username)
            if previous:
                for token in previous.refresh_tokens - account.refresh_tokens:
                    self._token_index.pop(token, None)
            for token in account.refresh_tokens:
                self._token_index[token] = account.username
            self._accounts[account.username] = account.copy()

    def remove(self, username: str) -> None:
        with self._lock:
            account = self._accounts.pop(username, None)
            if account:
                for token in account.refresh_tokens:
                    self._token_index.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
