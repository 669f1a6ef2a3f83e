from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import mysql.connector

from .connection import DatabaseConnection
from .errors import translate_mysql_error


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, operation: str = "query", dictionary: bool = True):
    """Yield `(conn, cursor)` for one repository operation.

    Joins the caller's transaction when one is open on this thread; otherwise
    opens a short-lived connection that commits on success.
    """

    shared = conn_factory.current()
    if shared is not None:
        cur = shared.cursor(dictionary=dictionary)
        try:
            yield shared, cur
        except mysql.connector.Error as exc:
            raise translate_mysql_error(exc, operation=operation) from exc
        finally:
            cur.close()
        return

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        conn.rollback()
        raise translate_mysql_error(exc, operation=operation) from exc
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


def in_clause(values: Sequence[Any]) -> str:
    """Placeholder list for `IN (...)`; callers must not pass an empty sequence."""
    if not values:
        raise ValueError("in_clause needs at least one value")
    return ", ".join(["%s"] * len(values))
