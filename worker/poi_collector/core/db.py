"""Database helpers for the worker."""

import logging
from contextlib import contextmanager
from typing import Optional

from psycopg2 import pool

from poi_collector.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.ThreadedConnectionPool] = None


def init_pool(
    minconn: int = 1,
    maxconn: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> pool.ThreadedConnectionPool:
    """Initialise and return the shared connection pool.

    Scanner tasks run on a thread pool, so the pool is thread-safe and sized to
    at least one connection per worker thread of ``settings`` (the environment
    settings when omitted). Once created, later calls return the same pool.
    """
    global _connection_pool
    if _connection_pool is None:
        settings = settings or get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        if maxconn is None:
            maxconn = settings.max_workers + 1
        _connection_pool = pool.ThreadedConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised (max %d connections)", maxconn)
    return _connection_pool


def close_pool() -> None:
    global _connection_pool
    if _connection_pool is not None:
        _connection_pool.closeall()
        _connection_pool = None
        logger.info("Database connection pool closed")


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS scanned_grid (
    id BIGSERIAL PRIMARY KEY,
    region_name TEXT NOT NULL,
    keyword TEXT NOT NULL,
    grid_center_lat DOUBLE PRECISION NOT NULL,
    grid_center_lng DOUBLE PRECISION NOT NULL,
    grid_radius INTEGER NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('COMPLETED', 'SUBDIVIDED')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS scanned_grid_key_idx
    ON scanned_grid (region_name, keyword, grid_center_lat, grid_center_lng, grid_radius);

CREATE TABLE IF NOT EXISTS places (
    id BIGSERIAL PRIMARY KEY,
    place_id TEXT NOT NULL UNIQUE,
    region TEXT,
    keyword TEXT,
    place_name TEXT,
    road_address TEXT,
    lot_address TEXT,
    lat DOUBLE PRECISION,
    lng DOUBLE PRECISION,
    phone TEXT,
    category TEXT,
    category_group_code TEXT,
    category_group_name TEXT,
    place_url TEXT,
    distance TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS places_region_keyword_idx ON places (region, keyword);
"""


def ensure_schema() -> None:
    """Create the ledger and place tables if they do not exist yet."""
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_SCHEMA)
        conn.commit()
    logger.info("Database schema ensured")
