"""
PostgreSQL connection helper.
Provides get_db() for use by services, plus small schema probes.
"""

import logging
import os

import psycopg2
from psycopg2.extras import DictCursor
from dotenv import load_dotenv

# Load .env variables from the project root
load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")

CONNECT_TIMEOUT_SECONDS = 5


def get_db():
    """
    Open a connection to the ActiveCore database.

    Rows come back as DictCursor rows, so routes read ``row["email"]`` rather
    than positional tuples. Use it as a context manager; psycopg2 commits on a
    clean exit and rolls back when the block raises:

        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)

    Raises:
        psycopg2.Error: If the server cannot be reached.
    """
    try:
        return psycopg2.connect(DATABASE_URL, cursor_factory=DictCursor,
                                connect_timeout=CONNECT_TIMEOUT_SECONDS)
    except psycopg2.Error as e:
        logger.error(f"Error connecting to database: {e}")
        raise


def column_exists(table: str, column: str) -> bool:
    """
    Check whether a column exists on a table in the current schema.

    Used by routes that must work against partially-migrated databases.
    Any probe failure is treated as "column missing".
    """
    sql = """
        SELECT COUNT(*) AS cnt
        FROM information_schema.columns
        WHERE table_schema = current_schema()
          AND table_name = %s
          AND column_name = %s;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (table, column))
                row = cur.fetchone()
    except Exception as e:
        logger.warning(f"column_exists({table}.{column}) probe failed: {e}")
        return False

    return bool(row and int(row["cnt"]) > 0)


def check_connection() -> bool:
    """Run a trivial query; True when the database answers."""
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False
