"""Key-value stores backing the local cache."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Protocol

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn


class KeyValueStore(Protocol):
    """Minimal string-to-string storage capability used by :class:`TTLCache`."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> Iterable[str]:
        ...


class InMemoryKeyValueStore:
    """Dictionary backed store suitable for tests and single-process use."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items.keys())

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items


CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS local_cache_entries (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


class PostgresKeyValueStore:
    """Store persisting cache entries in the ``local_cache_entries`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cursor:
            cursor.execute(CREATE_TABLE_SQL)

    def get(self, key: str) -> Optional[str]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT value FROM local_cache_entries WHERE key = %s LIMIT 1",
                (key,),
            )
            row = cursor.fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO local_cache_entries (key, value)
                VALUES (%s, %s)
                ON CONFLICT (key) DO UPDATE SET
                    value = EXCLUDED.value,
                    updated_at = NOW()
                """,
                (key, value),
            )

    def delete(self, key: str) -> None:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM local_cache_entries WHERE key = %s", (key,))

    def keys(self) -> List[str]:
        with self._cursor() as cursor:
            cursor.execute("SELECT key FROM local_cache_entries ORDER BY key")
            return [row["key"] for row in cursor.fetchall()]
