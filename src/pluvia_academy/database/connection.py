from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol

import mysql.connector

from ..core.constants import DEFAULT_CONNECT_TIMEOUT_SECONDS, DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS
from .errors import translate_mysql_error

logger = logging.getLogger(__name__)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT_SECONDS
    lock_wait_timeout: int = DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS

    @classmethod
    def from_dict(cls, db_config: dict) -> "DBConfig":
        return cls(
            host=str(db_config["host"]),
            port=int(db_config.get("port", 3306)),
            user=str(db_config["user"]),
            password=str(db_config.get("password", "")),
            database=str(db_config["database"]),
            connect_timeout=int(db_config.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT_SECONDS)),
            lock_wait_timeout=int(db_config.get("lock_wait_timeout", DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS)),
        )


class TransactionManager(Protocol):
    """Opens one transaction that every repository call inside it joins."""

    def transaction(self):
        raise NotImplementedError


class DatabaseConnection(TransactionManager):
    """DB connection factory, built once per app and injected into repositories.

    Outside a transaction each repository call uses a short-lived connection.
    Inside `transaction()` the calls made on the same thread share one
    connection, which commits or rolls back when the block ends.
    """

    def __init__(self, config: DBConfig):
        self._config = config
        self._local = threading.local()

    def connect(self):
        try:
            return mysql.connector.connect(
                host=self._config.host,
                port=int(self._config.port),
                user=self._config.user,
                password=self._config.password,
                database=self._config.database,
                connection_timeout=int(self._config.connect_timeout),
                autocommit=False,
            )
        except mysql.connector.Error as exc:
            raise translate_mysql_error(exc, operation="connect") from exc

    def current(self):
        """Connection of the transaction open on this thread, if any."""
        return getattr(self._local, "conn", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self.current() is not None:
            # nested block joins the outer transaction
            yield
            return

        conn = self.connect()
        self._local.conn = conn
        try:
            cur = conn.cursor()
            try:
                cur.execute("SET SESSION innodb_lock_wait_timeout = %s", (int(self._config.lock_wait_timeout),))
            finally:
                cur.close()
            yield
            conn.commit()
        except mysql.connector.Error as exc:
            _safe_rollback(conn)
            raise translate_mysql_error(exc, operation="transaction") from exc
        except Exception:
            _safe_rollback(conn)
            raise
        finally:
            self._local.conn = None
            conn.close()


def _safe_rollback(conn) -> None:
    try:
        conn.rollback()
    except mysql.connector.Error:
        logger.warning("Rollback failed; connection is discarded", exc_info=True)


def describe(config: Optional[DBConfig]) -> str:
    if config is None:
        return "<unconfigured>"
    return f"{config.user}@{config.host}:{config.port}/{config.database}"
