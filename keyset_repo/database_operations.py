from typing import Any

import asyncpg

from keyset_repo._logging import logger
from keyset_repo.db_context import DatabaseManager
from keyset_repo.exceptions import NoActiveTransactionError


class DatabaseOperations:
    """Runs statements on the connection bound by DatabaseManager.transaction"""

    @staticmethod
    def get_connection() -> asyncpg.Connection:
        conn = DatabaseManager.get_current_connection()
        if conn is None:
            raise NoActiveTransactionError()
        return conn

    async def _run(self, method: str, query: str, params: list[Any]) -> Any:
        conn = self.get_connection()
        # Values may be personal data; log their count only
        logger.debug("Executing query", extra={"query": query, "param_count": len(params)})
        DatabaseManager.log_query(query, params)
        return await getattr(conn, method)(query, *params)

    async def fetch_all(self, query: str, params: list[Any]) -> list[asyncpg.Record]:
        return await self._run("fetch", query, params)

    async def fetch_one(self, query: str, params: list[Any]) -> asyncpg.Record | None:
        return await self._run("fetchrow", query, params)

    async def fetch_value(self, query: str, params: list[Any]) -> Any:
        return await self._run("fetchval", query, params)

    async def execute_query(self, query: str, params: list[Any]) -> str:
        """Execute a statement and return its status tag, e.g. 'DELETE 3'"""
        return await self._run("execute", query, params)


def affected_rows(status: str) -> int:
    """Row count of a status tag such as 'UPDATE 2' or 'INSERT 0 1'"""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0
