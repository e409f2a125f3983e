"""
Data-warehouse client executing parameterized SQL over SQLAlchemy.
"""

import asyncio
import json
import logging
from typing import Any

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from policyledger.services.queries import Query


logger = logging.getLogger(__name__)


class WarehouseError(Exception):
    """A statement failed inside the warehouse."""


class WarehouseClient:
    """
    Thin executor over a shared engine.

    The engine is created once at process start and handed in here; the
    client holds no per-request state. An AsyncEngine is awaited directly,
    a sync Engine (e.g. the BigQuery dialect) runs in a worker thread.
    """

    def __init__(self, engine: AsyncEngine | Engine):
        self.engine = engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def _bind_params(self, query: Query) -> dict[str, Any]:
        """SQLite has no array or struct columns; such values are stored as JSON text."""
        if self.dialect_name != "sqlite":
            return query.params
        return {
            key: json.dumps(value) if isinstance(value, (list, dict)) else value
            for key, value in query.params.items()
        }

    async def execute(self, query: Query) -> list[dict[str, Any]]:
        """
        Execute a statement and return its rows.

        Statements that produce no result set (INSERT) return an empty list,
        which callers treat as a successful write.

        Raises:
            WarehouseError: If the driver or database rejects the statement.
        """
        logger.debug(f"Executing: {query.sql}")
        params = self._bind_params(query)
        try:
            if isinstance(self.engine, AsyncEngine):
                async with self.engine.begin() as conn:
                    result = await conn.execute(text(query.sql), params)
                    return self._rows(result)
            return await asyncio.to_thread(self._execute_sync, query.sql, params)
        except SQLAlchemyError as e:
            logger.error(f"Warehouse query failed: {e}")
            raise WarehouseError(str(e)) from e

    def _execute_sync(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        with self.engine.begin() as conn:
            result = conn.execute(text(sql), params)
            return self._rows(result)

    @staticmethod
    def _rows(result) -> list[dict[str, Any]]:
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings().all()]

    async def close(self):
        """Dispose the underlying engine."""
        if isinstance(self.engine, AsyncEngine):
            await self.engine.dispose()
        else:
            self.engine.dispose()
