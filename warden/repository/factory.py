"""Select and open the account store configured for the running process."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import redis
from psycopg_pool import ConnectionPool

from ..config import Settings
from .base import AccountRepository
from .memory_repository import InMemoryAccountRepository
from .postgres_repository import PostgresAccountRepository
from .redis_repository import RedisAccountRepository

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("memory", "redis", "postgres")


@contextmanager
def open_repository(settings: Settings) -> Iterator[AccountRepository]:
    """Yield the configured repository and release its connections on exit.

    Raises
    ------
    ValueError
        When ``settings.store_backend`` names an unsupported backend.
    """
    backend = settings.store_backend
    if backend not in SUPPORTED_BACKENDS:
        raise ValueError(f"unsupported store backend: {backend}")

    if backend == "memory":
        logger.warning("account store using in-memory backend; data is lost on restart")
        yield InMemoryAccountRepository()
        return

    if backend == "redis":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        logger.info("account store configured for redis backend at %s", settings.redis_url)
        try:
            yield RedisAccountRepository(client, key_prefix=settings.redis_key_prefix)
        finally:
            client.close()
        return

    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    logger.info("account store configured for postgres backend")
    try:
        repository = PostgresAccountRepository(pool)
        repository.ensure_schema()
        yield repository
    finally:
        pool.close()
