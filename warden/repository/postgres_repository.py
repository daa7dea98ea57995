"""Postgres repository for account data."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import psycopg
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from ..domain.account import Account
from ..domain.errors import InfrastructureError

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS accounts (
    username TEXT PRIMARY KEY,
    password_hash TEXT NOT NULL,
    roles TEXT[] NOT NULL,
    blocked BOOLEAN NOT NULL DEFAULT FALSE,
    refresh_tokens TEXT[] NOT NULL DEFAULT '{}'
)
"""

_CREATE_TOKEN_INDEX = """
CREATE INDEX IF NOT EXISTS accounts_refresh_tokens_idx
ON accounts USING GIN (refresh_tokens)
"""

_SELECT_COLUMNS = "username, password_hash, roles, blocked, refresh_tokens"


class PostgresAccountRepository:
    """Postgres-backed account persistence keyed by username."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    @contextmanager
    def _cursor(self) -> Iterator[psycopg.Cursor]:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    yield cur
                conn.commit()
        except psycopg.Error as exc:
            raise InfrastructureError("account store unavailable") from exc

    def ensure_schema(self) -> None:
        """Create the accounts table and its refresh-token index when missing."""
        with self._cursor() as cur:
            cur.execute(_CREATE_TABLE)
            cur.execute(_CREATE_TOKEN_INDEX)

    def find_by_username(self, username: str) -> Account | None:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_SELECT_COLUMNS} FROM accounts WHERE username = %s",
                (username,),
            )
            row = cur.fetchone()
        return self._map_record(row) if row else None

    def find_by_refresh_token(self, refresh_token: str) -> Account | None:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_SELECT_COLUMNS} FROM accounts WHERE refresh_tokens @> ARRAY[%s]::text[]",
                (refresh_token,),
            )
            row = cur.fetchone()
        return self._map_record(row) if row else None

    def save(self, account: Account) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO accounts (username, password_hash, roles, blocked, refresh_tokens)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (username) DO UPDATE
                SET password_hash = EXCLUDED.password_hash,
                    roles = EXCLUDED.roles,
                    blocked = EXCLUDED.blocked,
                    refresh_tokens = EXCLUDED.refresh_tokens
                """,
                (
                    account.username,
                    account.password_hash,
                    sorted(account.roles),
                    account.blocked,
                    sorted(account.refresh_tokens),
                ),
            )

    def remove(self, username: str) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM accounts WHERE username = %s", (username,))

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            username=row[0],
            password_hash=row[1],
            roles=set(row[2] or ()),
            blocked=row[3],
            refresh_tokens=set(row[4] or ()),
        )
