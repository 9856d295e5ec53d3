"""
PostgreSQL access for the analytics tools

Every read goes through psycopg2 with RealDictCursor so rows come back as
dicts. Sessions are opened read-only with a server-side statement timeout:
tool calls can be abandoned by the chat loop, and the database must not keep
running their queries forever.

Author: TM3
Updated: 2025-11-02
"""
import logging
import time
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor

from .config import settings

logger = logging.getLogger(__name__)


def _connect_kwargs() -> dict:
    database_url = settings.DATABASE_URL
    if not database_url:
        raise Exception("DATABASE_URL not configured")

    return {
        "dsn": database_url,
        "connect_timeout": settings.DB_CONNECT_TIMEOUT,
        "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
    }


def get_db_connection():
    """
    Get a direct psycopg2 connection (returns tuples)

    Used by the ingestion scripts for bulk writes.
    """
    return psycopg2.connect(**_connect_kwargs())


def get_db_connection_dict_with_retry(max_retries=None, retry_delay=1.0):
    """
    Get a psycopg2 connection with RealDictCursor and automatic retry

    Retries OperationalError (dropped SSL sessions, pooler hiccups) with
    exponential backoff. Any other error fails immediately.

    Args:
        max_retries: Maximum number of connection attempts (default: DB_MAX_RETRIES)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Returns:
        psycopg2 connection with RealDictCursor
    """
    kwargs = _connect_kwargs()
    max_retries = max_retries or settings.DB_MAX_RETRIES
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection (dict) attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(cursor_factory=RealDictCursor, **kwargs)
            logger.debug(f"Database connection (dict) successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")
                raise

    raise last_error if last_error else Exception("Connection failed after all retries")


@contextmanager
def db_cursor():
    """
    Read-only dict cursor that always releases its connection

    Example:
        with db_cursor() as cursor:
            cursor.execute("SELECT * FROM stock WHERE material = %s", (material,))
            row = cursor.fetchone()
    """
    conn = get_db_connection_dict_with_retry()
    conn.set_session(readonly=True, autocommit=True)
    cursor = conn.cursor()
    try:
        yield cursor
    finally:
        cursor.close()
        conn.close()
