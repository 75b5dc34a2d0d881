"""
Database connection management.

Two clients share one Postgres database:
    - Supabase (PostgREST) client for single-statement reads and inserts
    - psycopg connection pool for multi-statement transactions, which
      PostgREST cannot express
"""

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator, Optional

import structlog
from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from supabase import create_client, Client

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        ConnectionError: If connection fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_key
        )

        logger.info(
            "supabase_connected",
            status="success"
        )

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e


# Convenience alias
db = get_supabase_client


# ===================
# TRANSACTIONAL POOL
# ===================

_pool: Optional[ConnectionPool] = None


def get_pool() -> ConnectionPool:
    """
    Get or create the Postgres connection pool.

    Raises:
        ConnectionError: If DATABASE_URL is not configured
    """
    global _pool
    if _pool is None:
        if not settings.database_url:
            raise ConnectionError("DATABASE_URL is not configured")
        logger.info(
            "creating_connection_pool",
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size
        )
        _pool = ConnectionPool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            kwargs={"row_factory": dict_row},
            open=True,
        )
    return _pool


def close_pool() -> None:
    """Close connection pool."""
    global _pool
    if _pool is not None:
        _pool.close()
        _pool = None
        logger.info("connection_pool_closed")


@contextmanager
def get_connection() -> Iterator[Connection]:
    """Get a connection from the pool."""
    with get_pool().connection() as conn:
        yield conn


@contextmanager
def transaction() -> Iterator[Connection]:
    """
    Context manager for database transactions.

    Commits when the block exits normally, rolls back if it raises.

    Usage:
        with transaction() as conn:
            conn.execute("UPDATE titles SET genre = %s WHERE id = %s", (...))
    """
    with get_connection() as conn:
        with conn.transaction():
            yield conn


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()

        titles = client.table("titles").select("id", count="exact").limit(1).execute()

        return {
            "status": "healthy",
            "titles_count": titles.count,
            "transactions": "configured" if settings.transactions_configured else "disabled"
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


def reset_connection():
    """
    Reset the cached database connections.

    Call this if connection becomes stale or after config changes.
    """
    get_supabase_client.cache_clear()
    close_pool()
    logger.info("database_connection_reset")
