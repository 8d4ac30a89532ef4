"""
Database session and connection pool setup.

Pool parameters:
- pool_size: persistent connections (default 10, fits a 4-worker uvicorn)
- max_overflow: extra connections allowed at peak
- pool_timeout: max seconds to wait for a connection
- pool_recycle: recycle period so PostgreSQL does not drop idle connections
- pool_pre_ping: check liveness before use

SQLite URLs (tests, local tooling) skip the pool tuning.
"""

import logging
import time
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from app.config import settings

logger = logging.getLogger("storefront.db")

POOL_SIZE = settings.DB_POOL_SIZE
MAX_OVERFLOW = settings.DB_MAX_OVERFLOW
POOL_TIMEOUT = settings.DB_POOL_TIMEOUT
POOL_RECYCLE = settings.DB_POOL_RECYCLE

# Slow query threshold (ms)
SLOW_QUERY_THRESHOLD_MS = settings.SLOW_QUERY_THRESHOLD_MS


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine with slow-query logging attached."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", POOL_SIZE)
        kwargs.setdefault("max_overflow", MAX_OVERFLOW)
        kwargs.setdefault("pool_timeout", POOL_TIMEOUT)
        kwargs.setdefault("pool_recycle", POOL_RECYCLE)
    kwargs.setdefault("echo", settings.DB_ECHO)

    new_engine = create_engine(url, **kwargs)
    event.listen(new_engine, "before_cursor_execute", _before_cursor_execute)
    event.listen(new_engine, "after_cursor_execute", _after_cursor_execute)
    return new_engine


# ---------------------------------------------------------------------------
# Slow query monitoring
# ---------------------------------------------------------------------------
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    total_ms = (time.perf_counter() - conn.info["query_start_time"].pop()) * 1000

    if total_ms >= SLOW_QUERY_THRESHOLD_MS:
        # Truncate long SQL so logs stay bounded
        stmt_preview = statement[:500] + "..." if len(statement) > 500 else statement
        logger.warning(
            "Slow query detected",
            extra={
                "duration_ms": round(total_ms, 2),
                "statement": stmt_preview,
                "threshold_ms": SLOW_QUERY_THRESHOLD_MS,
            },
        )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_pool_status() -> dict:
    """Connection pool state (for /health)."""
    pool = engine.pool
    status = {"pool": type(pool).__name__}
    for name in ("size", "checkedin", "checkedout", "overflow"):
        stat = getattr(pool, name, None)
        if callable(stat):
            status[name] = stat()
    return status
