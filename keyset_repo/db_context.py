"""Connection pools, context-bound transactions and query tracking.

A transaction binds one pooled connection to the current context; every
repository call made inside it runs on that connection. Nested transactions
become savepoints on the same connection.
"""

import traceback
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from functools import wraps
from typing import Any

import asyncpg

from keyset_repo._logging import logger
from keyset_repo.config import Settings
from keyset_repo.exceptions import PoolNotFoundError

_current_connection: ContextVar[asyncpg.Connection | None] = ContextVar(
    "current_connection", default=None
)


@dataclass
class QueryLog:
    query: str
    params: list[Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    stack_trace: str | None = None


@dataclass
class QueryTracker:
    """Collects the statements run while it is enabled"""

    queries: list[QueryLog] = field(default_factory=list)
    enabled: bool = False

    def enable(self):
        self.enabled = True

    def disable(self):
        self.enabled = False

    def is_enabled(self) -> bool:
        return self.enabled

    def log_query(self, query: str, params: list[Any], stack_trace: str | None = None):
        if self.enabled:
            self.queries.append(QueryLog(query, list(params), stack_trace=stack_trace))

    def get_queries(self) -> list[QueryLog]:
        return list(self.queries)

    def clear(self):
        self.queries.clear()

    def count(self) -> int:
        return len(self.queries)

    def to_dict(self) -> list[dict[str, Any]]:
        return [
            {**asdict(log), "timestamp": log.timestamp.isoformat()} for log in self.queries
        ]


_query_tracker: ContextVar[QueryTracker | None] = ContextVar(
    "query_tracker", default=None
)


@contextmanager
def _enabled_tracker(tracker: QueryTracker | None) -> Iterator[QueryTracker]:
    """Enable the given tracker for the block, or bind a fresh one when None"""
    if tracker is None:
        tracker = QueryTracker(enabled=True)
        token = _query_tracker.set(tracker)
        try:
            yield tracker
        finally:
            _query_tracker.reset(token)
        return

    was_enabled = tracker.is_enabled()
    tracker.enable()
    try:
        yield tracker
    finally:
        if not was_enabled:
            tracker.disable()


@contextmanager
def _bound_connection(conn: asyncpg.Connection) -> Iterator[asyncpg.Connection]:
    token = _current_connection.set(conn)
    try:
        yield conn
    finally:
        _current_connection.reset(token)


class DatabaseManager:
    """Registry of named asyncpg pools and entry point for transactions"""

    _pools: dict[str, asyncpg.Pool] = {}

    @classmethod
    async def add_pool(cls, name: str, pool: asyncpg.Pool):
        cls._pools[name] = pool

    @classmethod
    async def get_pool(cls, name: str = "default") -> asyncpg.Pool:
        try:
            return cls._pools[name]
        except KeyError:
            raise PoolNotFoundError(name) from None

    @classmethod
    async def create_pool(cls, settings: Settings) -> asyncpg.Pool:
        """Open a pool from settings and register it under settings.pool_name"""
        pool = await asyncpg.create_pool(
            settings.database_dsn,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        await cls.add_pool(settings.pool_name, pool)
        logger.info(
            "Database pool opened",
            extra={"pool": settings.pool_name, "max_size": settings.pool_max_size},
        )
        return pool

    @classmethod
    async def close_pool(cls, name: str = "default") -> None:
        """Close and unregister a pool. Unknown names are ignored."""
        pool = cls._pools.pop(name, None)
        if pool is None:
            return
        await pool.close()
        logger.info("Database pool closed", extra={"pool": name})

    @classmethod
    def get_current_connection(cls) -> asyncpg.Connection | None:
        return _current_connection.get()

    @classmethod
    def get_query_tracker(cls) -> QueryTracker | None:
        return _query_tracker.get()

    @classmethod
    def log_query(cls, query: str, params: list[Any]):
        tracker = _query_tracker.get()
        if tracker is None:
            return
        # Drop this frame and the DatabaseOperations frames above it
        stack = traceback.extract_stack()[:-3]
        tracker.log_query(query, params, "".join(traceback.format_list(stack)))

    @classmethod
    @asynccontextmanager
    async def transaction(
        cls, db_name: str = "default", track_queries: bool = False
    ) -> AsyncIterator[asyncpg.Connection]:
        """Run the enclosed block inside a transaction.

        Inside an existing transaction a savepoint is opened on the same
        connection and db_name is not looked up. Otherwise a connection is
        acquired from the named pool and released when the block exits.

        Args:
            db_name: Name of the database pool to use
            track_queries: Track the queries of the block when no tracker is bound yet
        """
        outer = _current_connection.get()
        if outer is not None:
            async with outer.transaction():
                yield outer
            return

        pool = await cls.get_pool(db_name)
        async with pool.acquire() as conn, conn.transaction():
            with _bound_connection(conn):
                if track_queries and _query_tracker.get() is None:
                    with _enabled_tracker(None):
                        yield conn
                else:
                    yield conn

    @classmethod
    @asynccontextmanager
    async def track_queries(cls) -> AsyncIterator[QueryTracker]:
        """Track every query executed inside the block.

        async with DatabaseManager.transaction():
            async with DatabaseManager.track_queries() as tracker:
                await post_repo.find_by_id(1)
                queries = tracker.get_queries()
        """
        with _enabled_tracker(_query_tracker.get()) as tracker:
            yield tracker


def transactional(db_name: str = "default", query_logs: bool = False):
    """Run the decorated coroutine function within DatabaseManager.transaction.

    @transactional("blog", query_logs=True)
    async def publish(post):
        return await post_repo.create(post)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async with DatabaseManager.transaction(db_name, track_queries=query_logs):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
