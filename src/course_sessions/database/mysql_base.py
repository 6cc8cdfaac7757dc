from __future__ import annotations

from contextlib import contextmanager
from datetime import time, timedelta
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

import mysql.connector
from mysql.connector import errorcode

from .connection import DatabaseConnection

T = TypeVar("T")


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def is_duplicate_key(error: mysql.connector.Error) -> bool:
    return getattr(error, "errno", None) == errorcode.ER_DUP_ENTRY


def normalize_mysql_time(value: Any) -> Optional[time]:
    """Normalize MySQL TIME values across connector implementations.

    mysql-connector can return TIME as:
    - datetime.time
    - datetime.timedelta
    - string (e.g. '08:30:00')
    """

    if value is None:
        return None

    if isinstance(value, time):
        return value

    if isinstance(value, timedelta):
        total_seconds = int(value.total_seconds()) % 86400
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        seconds = total_seconds % 60
        return time(hour=hours, minute=minutes, second=seconds)

    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) < 2:
            raise ValueError(f"Invalid time string: {value!r}")
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(parts[2]) if len(parts) >= 3 and parts[2] else 0
        return time(hour=hours, minute=minutes, second=seconds)

    raise TypeError(f"Unsupported MySQL TIME value type: {type(value)!r}")


class MySQLRepository(Generic[T]):
    """Shared find/count/update/delete helpers for one table.

    Subclasses declare `table`, `pk` and `columns` and implement `_to_entity`.
    Column names in updates are checked against `columns`; values always go
    through query parameters.
    """

    table: str = ""
    pk: str = "id"
    columns: Sequence[str] = ()

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _to_entity(self, row: Dict[str, Any]) -> T:
        raise NotImplementedError

    def _select_sql(self) -> str:
        return f"SELECT {', '.join(self.columns)} FROM {self.table}"

    @staticmethod
    def _where_sql(where: str) -> str:
        return f" WHERE {where}" if where else ""

    def _find_one(self, where: str, params: Sequence[Any] = ()) -> Optional[T]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(self._select_sql() + self._where_sql(where) + " LIMIT 1", tuple(params))
            row = fetchone(cur)
            return self._to_entity(row) if row else None

    def _find(
        self,
        where: str = "",
        params: Sequence[Any] = (),
        *,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[T]:
        sql = self._select_sql() + self._where_sql(where)
        args: List[Any] = list(params)
        if order_by:
            sql += f" ORDER BY {order_by}"
        if limit is not None:
            sql += " LIMIT %s OFFSET %s"
            args.extend([int(limit), int(offset)])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(args))
            return [self._to_entity(r) for r in fetchall(cur)]

    def _count(self, where: str = "", params: Sequence[Any] = ()) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM {self.table}" + self._where_sql(where), tuple(params))
            row = fetchone(cur)
            return int(row["n"]) if row else 0

    def _get_by_id(self, entity_id: int) -> Optional[T]:
        return self._find_one(f"{self.pk}=%s", (int(entity_id),))

    def _update_by_id(self, entity_id: int, fields: Mapping[str, Any]) -> bool:
        if not fields:
            return False
        unknown = set(fields) - set(self.columns)
        if unknown:
            raise ValueError(f"Unknown columns for {self.table}: {sorted(unknown)}")

        assignments = ", ".join(f"{col}=%s" for col in fields)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE {self.table} SET {assignments} WHERE {self.pk}=%s",
                (*fields.values(), int(entity_id)),
            )
            # rowcount is 0 when values are unchanged; confirm the row exists.
            if cur.rowcount > 0:
                return True
            cur.execute(f"SELECT 1 AS found FROM {self.table} WHERE {self.pk}=%s", (int(entity_id),))
            return fetchone(cur) is not None

