"""
Repository base for table-scoped data access.

Subclasses set ``TABLE_NAME`` and write their domain queries either as raw
SQL against ``self._db`` or on top of the helpers below, which build
``$n``-parameterized statements from a column dict. Every helper returns
plain dicts so the chatbot layer never sees asyncpg ``Record`` objects.

Schema lives in ``guestbot.db.initialize.MIGRATIONS``.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .database import Database

logger = logging.getLogger(__name__)


def _split(data: Dict[str, Any], start: int = 1) -> Tuple[List[str], List[str], List[Any]]:
    columns = list(data)
    placeholders = [f"${i}" for i in range(start, start + len(columns))]
    return columns, placeholders, list(data.values())


class Repository:
    TABLE_NAME: str = ""

    def __init__(self, db: Database):
        self._db = db

    @property
    def db(self) -> Database:
        return self._db

    async def _returning_one(self, query: str, values: Sequence[Any]) -> Optional[Dict[str, Any]]:
        row = await self._db.fetchrow(query, *values)
        return dict(row) if row else None

    async def _insert(self, data: Dict[str, Any], returning: str = "*") -> Optional[Dict[str, Any]]:
        columns, placeholders, values = _split(data)
        return await self._returning_one(
            f"INSERT INTO {self.TABLE_NAME} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) RETURNING {returning}",
            values,
        )

    async def _upsert(
        self,
        data: Dict[str, Any],
        conflict_columns: Sequence[str],
        returning: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """INSERT ... ON CONFLICT that overwrites every non-key column."""
        columns, placeholders, values = _split(data)
        assignments = ", ".join(
            f"{col} = EXCLUDED.{col}" for col in columns if col not in conflict_columns
        )
        return await self._returning_one(
            f"INSERT INTO {self.TABLE_NAME} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) "
            f"ON CONFLICT ({', '.join(conflict_columns)}) DO UPDATE SET {assignments} "
            f"RETURNING {returning}",
            values,
        )

    async def _update(
        self,
        id_column: str,
        id_value: Any,
        data: Dict[str, Any],
        returning: str = "*",
    ) -> Optional[Dict[str, Any]]:
        columns, placeholders, values = _split(data)
        assignments = ", ".join(f"{col} = {ph}" for col, ph in zip(columns, placeholders))
        return await self._returning_one(
            f"UPDATE {self.TABLE_NAME} SET {assignments} "
            f"WHERE {id_column} = ${len(values) + 1} RETURNING {returning}",
            values + [id_value],
        )

    async def _fetch_one(self, where: str, args: tuple = ()) -> Optional[Dict[str, Any]]:
        return await self._returning_one(
            f"SELECT * FROM {self.TABLE_NAME} WHERE {where} LIMIT 1", args
        )

    async def _fetch_many(
        self,
        where: str = "",
        args: tuple = (),
        order_by: str = "",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        clauses = [f"SELECT * FROM {self.TABLE_NAME}"]
        if where:
            clauses.append(f"WHERE {where}")
        if order_by:
            clauses.append(f"ORDER BY {order_by}")
        if limit:
            clauses.append(f"LIMIT {limit}")
        rows = await self._db.fetch(" ".join(clauses), *args)
        return [dict(r) for r in rows]
