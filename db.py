

import psycopg2
from psycopg2.pool import SimpleConnectionPool
from contextlib import contextmanager
from settings import settings
_pool: SimpleConnectionPool | None = None


def init_pool():
    """
    Initialize the PostgreSQL connection pool.
    Sized for the worker threads used by asyncio.to_thread.
    """
    global _pool
    if _pool is None:
        _pool = SimpleConnectionPool(
            minconn=1,
            maxconn=max(2, settings.PAYOUT_UPDATE_CONCURRENCY),
            dsn=settings.DATABASE_URL,
            connect_timeout=5,
        )


def close_pool():
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn():
    """
    Provides a transactional DB connection.
    Auto-commits on success, rolls back on error.
    """
    if _pool is None:
        init_pool()

    conn = _pool.getconn()

    try:
        with conn.cursor() as cur:
            cur.execute("SET statement_timeout = %s;", (f"{settings.DB_STATEMENT_TIMEOUT_MS}ms",))
            cur.execute("SET application_name = 'expense_payouts';")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        _pool.putconn(conn)
