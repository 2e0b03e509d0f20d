"""Database helpers for the saved vets store."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import extras, pool

from vetfinder.core.config import get_settings
from vetfinder.core.errors import ConfigError, UpstreamUnavailable
from vetfinder.models import SavedVet

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigError("DATABASE_URL is required for database connections")
        try:
            _connection_pool = pool.SimpleConnectionPool(
                minconn,
                maxconn,
                dsn=settings.database_url,
                connect_timeout=10,
            )
        except psycopg2.Error as exc:
            raise UpstreamUnavailable(f"Could not connect to database: {exc}") from exc
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection; driver errors become UpstreamUnavailable."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    except psycopg2.Error as exc:
        conn.rollback()
        logger.error("Database operation failed: %s", exc)
        raise UpstreamUnavailable(str(exc)) from exc
    finally:
        pg_pool.putconn(conn)


_CREATE_SAVED_VETS = """
CREATE TABLE IF NOT EXISTS saved_vets (
    user_id TEXT NOT NULL,
    vet_id TEXT NOT NULL,
    name TEXT NOT NULL,
    address TEXT NOT NULL DEFAULT '',
    rating DOUBLE PRECISION,
    services JSONB NOT NULL DEFAULT '[]'::jsonb,
    image_url TEXT NOT NULL DEFAULT '',
    added_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (user_id, vet_id)
);
"""

_UPSERT_SAVED_VET = """
INSERT INTO saved_vets (
    user_id,
    vet_id,
    name,
    address,
    rating,
    services,
    image_url,
    added_at,
    updated_at
) VALUES (
    %(user_id)s,
    %(vet_id)s,
    %(name)s,
    %(address)s,
    %(rating)s,
    %(services)s,
    %(image_url)s,
    %(added_at)s,
    NOW()
)
ON CONFLICT (user_id, vet_id) DO UPDATE SET
    name = EXCLUDED.name,
    address = EXCLUDED.address,
    rating = EXCLUDED.rating,
    services = EXCLUDED.services,
    image_url = EXCLUDED.image_url,
    added_at = EXCLUDED.added_at,
    updated_at = NOW();
"""

_SELECT_COLUMNS = "vet_id, name, address, rating, services, image_url, added_at"


def init_schema() -> None:
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_CREATE_SAVED_VETS)
        conn.commit()
        logger.info("saved_vets table ensured")


def _prepare_params(user_id: str, vet: SavedVet) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "vet_id": vet.vet_id,
        "name": vet.name,
        "address": vet.address or "",
        "rating": vet.rating,
        "services": extras.Json(list(vet.services or [])),
        "image_url": vet.image_url or "",
        "added_at": vet.added_at,
    }


def _row_to_saved_vet(row) -> SavedVet:
    vet_id, name, address, rating, services, image_url, added_at = row
    return SavedVet(
        vet_id=vet_id,
        name=name,
        address=address or "",
        rating=rating,
        services=list(services or []),
        image_url=image_url or "",
        added_at=added_at,
    )


def upsert_saved_vet(user_id: str, vet: SavedVet) -> None:
    """Persist a saved vet; re-saving the same (user, vet) pair overwrites the row."""
    params = _prepare_params(user_id, vet)
    if not params["user_id"] or not params["vet_id"] or not params["name"]:
        raise ValueError("user_id, vet_id and name are required for upsert")
    if params["added_at"] is None:
        raise ValueError("added_at is required for upsert")

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_UPSERT_SAVED_VET, params)
        conn.commit()
        logger.debug("Upserted saved vet %s for user %s", vet.vet_id, user_id)


def get_saved_vet(user_id: str, vet_id: str) -> Optional[SavedVet]:
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                f"SELECT {_SELECT_COLUMNS} FROM saved_vets WHERE user_id = %(user_id)s AND vet_id = %(vet_id)s",
                {"user_id": user_id, "vet_id": vet_id},
            )
            row = cur.fetchone()
    return _row_to_saved_vet(row) if row else None


def list_saved_vets(user_id: str) -> List[SavedVet]:
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                f"SELECT {_SELECT_COLUMNS} FROM saved_vets WHERE user_id = %(user_id)s ORDER BY name",
                {"user_id": user_id},
            )
            rows = cur.fetchall()
    return [_row_to_saved_vet(row) for row in rows]


def delete_saved_vet(user_id: str, vet_id: str) -> bool:
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "DELETE FROM saved_vets WHERE user_id = %(user_id)s AND vet_id = %(vet_id)s",
                {"user_id": user_id, "vet_id": vet_id},
            )
            deleted = cur.rowcount > 0
        conn.commit()
    return deleted
