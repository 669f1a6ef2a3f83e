"""Schema and demo-data setup for local databases (used by create_app and scripts/)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Union

import mysql.connector
from werkzeug.security import generate_password_hash

from .connection import DBConfig

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]
SCHEMA_PATH = PROJECT_ROOT / "database" / "schema.sql"
SEED_PATH = PROJECT_ROOT / "database" / "seed.sql"

DEMO_USERS = (
    # full_name, email, password, role
    ("Admin Pluvia", "admin@pluvia.test", "admin123", "admin"),
    ("Dosen Demo", "lecturer@pluvia.test", "lecturer123", "lecturer"),
    ("Member Demo", "member@pluvia.test", "member123", "member"),
)
DEMO_ENROLLMENTS = (
    # member email, course_id
    ("member@pluvia.test", 1),
    ("member@pluvia.test", 2),
)


def _connect(config: DBConfig, *, with_database: bool = True):
    kwargs = dict(
        host=config.host,
        port=int(config.port),
        user=config.user,
        password=config.password,
        connection_timeout=int(config.connect_timeout),
        use_pure=True,
    )
    if with_database:
        kwargs["database"] = config.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # the target database comes from DB_CONFIG, not from the file
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_comments(sql: str) -> str:
    return "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on `;` outside quoted strings."""
    buf: List[str] = []
    quote = None
    escape = False

    for ch in sql:
        buf.append(ch)
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch in ("'", '"'):
            if quote is None:
                quote = ch
            elif quote == ch:
                quote = None
            continue
        if ch == ";" and quote is None:
            stmt = "".join(buf[:-1]).strip()
            buf.clear()
            if stmt:
                yield stmt

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: Union[str, Path]) -> int:
    config = DBConfig.from_dict(db_config)
    sql = _strip_comments(_strip_create_db_and_use(Path(path).read_text(encoding="utf-8")))

    conn = _connect(config)
    try:
        cur = conn.cursor()
        count = 0
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
            count += 1
        conn.commit()
        return count
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    config = DBConfig.from_dict(db_config)
    conn = _connect(config, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: Union[str, Path] = SCHEMA_PATH) -> None:
    ensure_database_exists(db_config)
    count = _run_script(db_config, schema_path)
    logger.info("Schema applied from %s (%s statements)", schema_path, count)


def apply_seed_sql(db_config: dict, *, seed_path: Union[str, Path] = SEED_PATH) -> None:
    count = _run_script(db_config, seed_path)
    logger.info("Seed data applied from %s (%s statements)", seed_path, count)


def ensure_demo_users(db_config: dict) -> None:
    """Create or refresh the demo accounts and enroll the demo member."""

    conn = _connect(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor(dictionary=True)

        for full_name, email, password, role in DEMO_USERS:
            cur.execute(
                """
                INSERT INTO users (full_name, email, password_hash, role, is_active)
                VALUES (%s, %s, %s, %s, 1)
                ON DUPLICATE KEY UPDATE
                    full_name=VALUES(full_name),
                    password_hash=VALUES(password_hash),
                    role=VALUES(role),
                    is_active=1
                """,
                (full_name, email, generate_password_hash(password), role),
            )

        for email, course_id in DEMO_ENROLLMENTS:
            cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
            row = cur.fetchone()
            if not row:
                raise RuntimeError(f"Missing demo user {email}")
            cur.execute(
                """
                INSERT INTO enrollments (user_id, course_id, status)
                VALUES (%s, %s, 'active')
                ON DUPLICATE KEY UPDATE status='active'
                """,
                (int(row["user_id"]), int(course_id)),
            )

        conn.commit()
    finally:
        conn.close()
    logger.info("Demo users ready (%s accounts)", len(DEMO_USERS))


def list_tables(db_config: dict) -> List[str]:
    conn = _connect(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
