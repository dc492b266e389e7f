import logging

import psycopg2
from psycopg2.extras import RealDictCursor, Json

from app.config import DATABASE_URL, DB_SSLMODE

logger = logging.getLogger("aionet-backend.db")


# -------------------------------------------------
# DB CONNECTION (LAZY, SAFE)
# -------------------------------------------------
def get_db() -> psycopg2.extensions.connection:
    """
    Returns a new PostgreSQL connection.
    Caller is responsible for closing it.
    Safe for Supabase (SSL required).
    """
    try:
        conn = psycopg2.connect(
            DATABASE_URL,
            cursor_factory=RealDictCursor,
            sslmode=DB_SSLMODE,
            connect_timeout=5,      # Prevents Supabase 30-60s hangs
        )
        return conn

    except Exception as e:
        logger.exception(f"❌ Database connection failed → {e}")
        raise RuntimeError("Database connection failed") from e


def fetch_one(sql: str, params=()):
    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        return cur.fetchone()
    finally:
        conn.close()


def fetch_all(sql: str, params=()):
    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        return cur.fetchall()
    finally:
        conn.close()


def execute(sql: str, params=(), returning: bool = False):
    """
    Runs a single write statement in its own transaction.
    With returning=True the first row produced by RETURNING is handed back.
    """
    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        row = cur.fetchone() if returning else None
        conn.commit()
        return row
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


__all__ = ["get_db", "fetch_one", "fetch_all", "execute", "Json"]
